# PlayIt: background music player for the command line
# Package: src.playit

__version__ = "1.0.0"
__author__ = "PlayIt Contributors"
__description__ = "Command-line music player that plays a playlist from a detached daemon"

# Module structure:
#   - playit.audio    : Decode, resample and render tracks
#   - playit.player   : Playback sequencing and daemon lifecycle
#   - playit.library  : Playlist record and music directory
#   - playit.config   : Configuration management
#   - playit.cli      : Command-line interface
