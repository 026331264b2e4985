"""
Library Module: The playlist record and the music storage directory.

- playlist.json holds the ordered file names
- music/ holds the audio bytes, filled by local import or URL download
"""

__all__ = ["playlist", "importer"]
