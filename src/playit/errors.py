"""
Exception hierarchy for PlayIt.

Every error a command can report to the user derives from PlayitError so the
CLI can print it and exit non-zero without a traceback.
"""


class PlayitError(Exception):
    """Base class for user-facing PlayIt errors."""
    pass


# Playlist state

class PlaylistError(PlayitError):
    """Raised when the playlist record cannot be read or written."""
    pass


class PlaylistNotFoundError(PlaylistError):
    """Raised when no playlist record exists yet."""
    pass


class PlaylistEmptyError(PlaylistError):
    """Raised when the playlist exists but holds no tracks."""
    pass


class TrackNotFoundError(PlaylistError):
    """Raised when a remove target matches no playlist entry."""
    pass


class LibraryImportError(PlayitError):
    """Raised when a file or URL cannot be added to the music directory."""
    pass


# Daemon lifecycle

class SupervisorError(PlayitError):
    """Raised for player-process lifecycle failures."""
    pass


class AlreadyRunningError(SupervisorError):
    """Raised by start when a PID record already exists."""

    def __init__(self, pid=None):
        self.pid = pid
        detail = f" (PID: {pid})" if pid is not None else ""
        super().__init__(f"Music player is already running{detail}")


class NotRunningError(SupervisorError):
    """Raised by stop when there is no player to signal."""

    def __init__(self, message: str = "No music player is currently running"):
        super().__init__(message)


# Audio pipeline

class AudioError(PlayitError):
    """Base class for decode and output failures."""
    pass


class UnsupportedFormatError(AudioError):
    """Raised when a file extension has no decoder."""
    pass


class DecodeError(AudioError):
    """Raised when a supported file cannot be decoded."""
    pass


class DeviceError(AudioError):
    """Raised when the output device cannot be opened or used."""
    pass
