"""
Playlist record persistence.

The playlist is one JSON document, {"files": [...]}, read fully and
rewritten fully on every mutation. Entries are file names inside the music
directory; order is insertion order.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import mutagen

from ..errors import PlaylistError, PlaylistNotFoundError, TrackNotFoundError

logger = logging.getLogger(__name__)


@dataclass
class TrackInfo:
    """Display information for one playlist entry."""

    position: int
    name: str
    extension: str
    exists: bool
    size_bytes: Optional[int] = None
    duration_seconds: Optional[float] = None


class PlaylistStore:
    """Load and rewrite the playlist record."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> List[str]:
        """
        Read the playlist.

        Returns:
            Ordered list of file names.

        Raises:
            PlaylistNotFoundError: If the record does not exist.
            PlaylistError: If the record is not valid playlist JSON.
        """
        if not self.path.exists():
            raise PlaylistNotFoundError("No playlist found. Use 'playit add' to add music files first.")

        try:
            text = self.path.read_text()
        except OSError as e:
            raise PlaylistError(f"Error reading playlist: {e}")

        if not text.strip():
            return []

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise PlaylistError(f"Error parsing playlist: {e}")

        files = data.get("files") if isinstance(data, dict) else None
        if files is None:
            return []
        if not isinstance(files, list) or not all(isinstance(f, str) for f in files):
            raise PlaylistError("Error parsing playlist: 'files' must be a list of file names")
        return list(files)

    def load_or_empty(self) -> List[str]:
        """Like load(), but a missing record reads as an empty playlist."""
        try:
            return self.load()
        except PlaylistNotFoundError:
            return []

    def save(self, files: List[str]) -> None:
        """Rewrite the whole record."""
        payload = json.dumps({"files": list(files)}, indent=2)
        try:
            if self.path.parent != Path("."):
                self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(payload + "\n")
        except OSError as e:
            raise PlaylistError(f"Error writing playlist: {e}")
        logger.debug(f"Saved playlist with {len(files)} entries to {self.path}")

    def append(self, names: List[str]) -> List[str]:
        """
        Append names, skipping ones already present.

        Returns:
            The names actually added, in order.
        """
        files = self.load_or_empty()
        existing = set(files)
        added = []
        for name in names:
            if name not in existing:
                files.append(name)
                existing.add(name)
                added.append(name)
        self.save(files)
        logger.info(f"Playlist updated: {len(added)} added, {len(files)} total")
        return added

    def remove(self, target: str) -> str:
        """
        Remove one entry by 1-based index or exact file name.

        Returns:
            The removed file name.

        Raises:
            TrackNotFoundError: If the index is out of range or no name matches.
        """
        files = self.load()
        if not files:
            raise TrackNotFoundError("Playlist is empty. Use 'playit add' to add music files.")

        try:
            index = int(target)
        except ValueError:
            index = None

        if index is not None:
            if not 1 <= index <= len(files):
                raise TrackNotFoundError(
                    f"Invalid index. Please use a number between 1 and {len(files)}."
                )
            removed = files.pop(index - 1)
        elif target in files:
            files.remove(target)
            removed = target
        else:
            raise TrackNotFoundError(f"Song '{target}' not found in playlist.")

        self.save(files)
        logger.info(f"Removed {removed} from playlist")
        return removed

    def describe(self, music_dir: Path) -> List[TrackInfo]:
        """Collect size, type and duration for each entry."""
        infos = []
        for position, name in enumerate(self.load(), start=1):
            file_path = Path(music_dir) / name
            info = TrackInfo(
                position=position,
                name=name,
                extension=Path(name).suffix.lstrip(".").upper(),
                exists=file_path.is_file(),
            )
            if info.exists:
                info.size_bytes = file_path.stat().st_size
                info.duration_seconds = _read_duration(file_path)
            infos.append(info)
        return infos


def _read_duration(file_path: Path) -> Optional[float]:
    """Read track length from tags, or None if mutagen cannot parse the file."""
    try:
        audio = mutagen.File(file_path)
    except (mutagen.MutagenError, OSError) as e:
        logger.debug(f"Could not read duration for {file_path}: {e}")
        return None
    if audio is None or audio.info is None:
        return None
    return getattr(audio.info, "length", None)


def format_bytes(size: int) -> str:
    """Human-readable byte count, e.g. 3.4 MB."""
    unit = 1024
    if size < unit:
        return f"{size} B"
    div, exp = unit, 0
    n = size // unit
    while n >= unit:
        div *= unit
        exp += 1
        n //= unit
    return f"{size / div:.1f} {'KMGTPE'[exp]}B"


def format_duration(seconds: Optional[float]) -> str:
    if seconds is None:
        return "--:--"
    total = int(round(seconds))
    return f"{total // 60}:{total % 60:02d}"
