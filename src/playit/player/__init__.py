"""
Player Module: Daemon lifecycle and playback sequencing.

- One detached player process, tracked by a PID file
- Tracks play strictly in order, one stream at a time
- SIGTERM stops the player after the current track
"""

__all__ = ["sequencer", "supervisor", "daemon"]
