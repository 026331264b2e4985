#!/usr/bin/env python3
"""
PlayIt command line.

Commands:
    add PATH|URL      Copy music files (or download one) and append to the playlist
    remove INDEX|NAME Remove a playlist entry
    playlist          Show the playlist
    run [--shuffle]   Start the background player
    status            Report whether the player is running
    stop              Stop the player after the current song
    run-music         Internal: the player process itself
"""

import argparse
import logging
import sys
from typing import List, Optional

from .config import Config
from .errors import PlayitError, PlaylistNotFoundError
from .library.importer import download, filename_from_url, import_path, is_url
from .library.playlist import PlaylistStore, format_bytes, format_duration
from .player.daemon import install_signal_handlers, run_player
from .player.sequencer import CancellationToken
from .player.supervisor import SubprocessSupervisor
from .audio.output import get_output_device

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"
PROGRESS_BAR_WIDTH = 50

logger = logging.getLogger(__name__)


class ProgressBar:
    """Single-line download progress: name [=====     ] 42%"""

    def __init__(self, name: str, stream=None):
        self.name = name
        self.stream = stream or sys.stdout
        self.last_percent = -1

    def __call__(self, written: int, total: Optional[int]) -> None:
        if not total:
            return
        percent = min(100, written * 100 // total)
        if percent <= self.last_percent:
            return
        self.last_percent = percent
        filled = PROGRESS_BAR_WIDTH * percent // 100
        bar = "=" * filled + " " * (PROGRESS_BAR_WIDTH - filled)
        self.stream.write(f"\r{self.name} [{bar}] {percent}%")
        self.stream.flush()


def cmd_add(args, config: Config) -> int:
    store = PlaylistStore(config.playlist_path)
    if is_url(args.target):
        name = filename_from_url(args.target)
        print(f"Downloading {name}...")
        stored = download(
            args.target,
            config.music_dir,
            timeout_seconds=config.get("download", "timeout_seconds"),
            chunk_size=config.get("download", "chunk_size"),
            progress=ProgressBar(name),
        )
        print(f"\nDownload complete: {stored}")
        store.append([stored])
        print("Successfully downloaded and added music file from URL to playlist")
        return 0

    names = import_path(args.target, config.music_dir)
    store.append(names)
    print(f"Successfully added {len(names)} music file(s) to playlist")
    return 0


def cmd_remove(args, config: Config) -> int:
    store = PlaylistStore(config.playlist_path)
    removed = store.remove(args.target)
    remaining = len(store.load())
    print(f"Removed song: {removed}")
    print(f"Playlist updated. {remaining} songs remaining.")
    return 0


def cmd_playlist(args, config: Config) -> int:
    store = PlaylistStore(config.playlist_path)
    infos = store.describe(config.music_dir)
    if not infos:
        print("Playlist is empty. Use 'playit add' to add music files.")
        return 0

    print(f"Playlist ({len(infos)} songs):")
    print("-" * 80)
    for info in infos:
        if not info.exists:
            print(f"{info.position:3d}. {info.name} [File not found]")
            continue
        print(
            f"{info.position:3d}. {info.name} "
            f"({info.extension}, {format_bytes(info.size_bytes)}, {format_duration(info.duration_seconds)})"
        )
    print("-" * 80)
    return 0


def cmd_run(args, config: Config) -> int:
    supervisor = SubprocessSupervisor(config)
    supervisor.preflight()
    print("Starting music player in background...")
    pid = supervisor.start(shuffle=args.shuffle)
    print(f"Music player started with PID: {pid}")
    print("Use 'playit status' to check status or 'playit stop' to stop it.")
    return 0


def cmd_status(args, config: Config) -> int:
    status = SubprocessSupervisor(config).status()
    if not status.running:
        print("Status: STOPPED")
        print("Playit is not currently running.")
        print("Use 'playit run' to start playing music.")
        return 0
    pid = status.pid if status.pid is not None else "starting"
    print(f"Status: RUNNING (PID: {pid})")
    print("Playit is currently active.")
    print("Use 'playit stop' to stop the player.")
    return 0


def cmd_stop(args, config: Config) -> int:
    pid = SubprocessSupervisor(config).stop()
    print(f"Stopping music player (PID: {pid})...")
    print("The player will stop after the current song finishes.")
    return 0


def cmd_run_music(args, config: Config) -> int:
    token = CancellationToken()
    device = get_output_device()
    install_signal_handlers(token, device)
    return run_player(config, shuffle=args.shuffle, token=token, device=device)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="playit",
        description="PlayIt - a command-line music player that plays playlists in the background.",
    )
    parser.add_argument("--config", help="Path to playit.toml (default: $PLAYIT_CONFIG_PATH or ./playit.toml)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show informational log output")

    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True

    p = sub.add_parser("add", help="Add music files or download from URL to the playlist")
    p.add_argument("target", metavar="file|folder|url")
    p.set_defaults(func=cmd_add)

    p = sub.add_parser("remove", help="Remove a song from the playlist")
    p.add_argument("target", metavar="index|filename")
    p.set_defaults(func=cmd_remove)

    p = sub.add_parser("playlist", help="Show the current playlist")
    p.set_defaults(func=cmd_playlist)

    p = sub.add_parser("run", help="Play songs from the playlist in the background")
    p.add_argument("-s", "--shuffle", action="store_true", help="Shuffle playlist before playing")
    p.set_defaults(func=cmd_run)

    p = sub.add_parser("status", help="Show the status of the music player")
    p.set_defaults(func=cmd_status)

    p = sub.add_parser("stop", help="Stop the running music player")
    p.set_defaults(func=cmd_stop)

    # Internal: no help entry
    p = sub.add_parser("run-music")
    p.add_argument("-s", "--shuffle", action="store_true")
    p.set_defaults(func=cmd_run_music)

    return parser


def _configure_logging(args, config: Config) -> None:
    if args.command == "run-music":
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT, filename=str(config.log_file))
    else:
        level = logging.INFO if args.verbose else logging.WARNING
        logging.basicConfig(level=level, format=LOG_FORMAT)


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entrypoint."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = Config.load(args.config)
        _configure_logging(args, config)
        return args.func(args, config)
    except PlaylistNotFoundError as e:
        print(e)
        return 1
    except PlayitError as e:
        print(f"Error: {e}")
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
