"""
Bring music files into the storage directory.

Local files and folders are copied in; URLs are downloaded with requests,
streamed in chunks with progress reporting.
"""

import logging
import os
import shutil
from pathlib import Path
from typing import Callable, List, Optional
from urllib.parse import unquote, urlparse

import requests

from ..errors import LibraryImportError

logger = logging.getLogger(__name__)

MUSIC_EXTENSIONS = {".mp3", ".wav", ".flac"}
DEFAULT_DOWNLOAD_NAME = "downloaded_music.mp3"

# progress(bytes_written, total_bytes_or_None)
ProgressCallback = Callable[[int, Optional[int]], None]


def is_music_file(path) -> bool:
    return Path(path).suffix.lower() in MUSIC_EXTENSIONS


def is_url(text: str) -> bool:
    parsed = urlparse(text)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _copy_into(src: Path, music_dir: Path) -> str:
    dest = music_dir / src.name
    if src.resolve() == dest.resolve():
        logger.debug(f"{src} already in music directory")
        return src.name
    with open(src, "rb") as fin, open(dest, "wb") as fout:
        shutil.copyfileobj(fin, fout)
    logger.debug(f"Copied {src} -> {dest}")
    return src.name


def import_path(path, music_dir: Path) -> List[str]:
    """
    Copy a music file, or every music file under a folder, into music_dir.

    Folder walks skip files that fail to copy; a single non-music file is an
    error.

    Args:
        path: File or directory to import.
        music_dir: Storage directory (created if needed).

    Returns:
        File names copied, in walk order.

    Raises:
        LibraryImportError: If the path is missing, unreadable or not music.
    """
    src = Path(path)
    music_dir = Path(music_dir)
    if not src.exists():
        raise LibraryImportError(f"Error accessing path: {src} does not exist")

    music_dir.mkdir(parents=True, exist_ok=True)

    if src.is_dir():
        added = []
        for root, dirs, files in os.walk(src):
            dirs.sort()
            for name in sorted(files):
                file_path = Path(root) / name
                if not is_music_file(file_path):
                    continue
                try:
                    added.append(_copy_into(file_path, music_dir))
                except OSError as e:
                    logger.warning(f"Error adding file {file_path}: {e}")
        logger.info(f"Imported {len(added)} file(s) from {src}")
        return added

    if not is_music_file(src):
        raise LibraryImportError(f"File {src} is not a supported music format")

    try:
        return [_copy_into(src, music_dir)]
    except OSError as e:
        raise LibraryImportError(f"Error adding file: {e}")


def filename_from_url(url: str) -> str:
    name = Path(unquote(urlparse(url).path)).name
    return name or DEFAULT_DOWNLOAD_NAME


def download(
    url: str,
    music_dir: Path,
    timeout_seconds: float = 30,
    chunk_size: int = 32 * 1024,
    progress: Optional[ProgressCallback] = None,
) -> str:
    """
    Download a music file into music_dir.

    Args:
        url: http(s) URL whose path ends in a music file name.
        music_dir: Storage directory (created if needed).
        timeout_seconds: Connect/read timeout.
        chunk_size: Bytes per streamed chunk.
        progress: Optional callback fed (written, total) after each chunk.

    Returns:
        The stored file name.

    Raises:
        LibraryImportError: On a non-music URL, HTTP error or write failure.
            Partial files are removed.
    """
    file_name = filename_from_url(url)
    if not is_music_file(file_name):
        raise LibraryImportError(
            "URL does not point to a supported music format (.mp3, .wav, .flac)"
        )

    music_dir = Path(music_dir)
    music_dir.mkdir(parents=True, exist_ok=True)
    dest = music_dir / file_name

    logger.info(f"Downloading {url} -> {dest}")
    try:
        with requests.get(url, stream=True, timeout=timeout_seconds) as response:
            if response.status_code != 200:
                raise LibraryImportError(f"HTTP error: {response.status_code}")

            total = response.headers.get("Content-Length")
            total = int(total) if total and total.isdigit() else None

            written = 0
            with open(dest, "wb") as f:
                for chunk in response.iter_content(chunk_size=chunk_size):
                    if not chunk:
                        continue
                    f.write(chunk)
                    written += len(chunk)
                    if progress is not None:
                        progress(written, total)
    except LibraryImportError:
        _remove_partial(dest)
        raise
    except (requests.RequestException, OSError) as e:
        _remove_partial(dest)
        raise LibraryImportError(f"Failed to download file: {e}")

    logger.info(f"✅ Download complete: {file_name} ({written} bytes)")
    return file_name


def _remove_partial(dest: Path) -> None:
    try:
        dest.unlink()
        logger.debug(f"Removed partial download: {dest}")
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Failed to remove partial download {dest}: {e}")
