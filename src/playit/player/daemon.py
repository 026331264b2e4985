"""
Player-mode entry point.

This is what runs inside the detached child: load the playlist, play it,
and remove the PID record on the way out. SIGTERM asks for a stop after
the current track; SIGINT also cuts the current track short.
"""

import logging
import os
import signal
from typing import Optional

from ..audio.output import OutputDevice, get_output_device
from ..config import Config
from ..errors import DeviceError, PlayitError
from ..library.playlist import PlaylistStore
from .sequencer import CancellationToken, PlaybackSequencer
from .supervisor import DaemonRecord

logger = logging.getLogger(__name__)


def install_signal_handlers(token: CancellationToken, device: Optional[OutputDevice] = None) -> None:
    """Route SIGTERM/SIGINT to the cancellation token. Main thread only."""

    def handle_term(signum, frame):
        logger.info("Received SIGTERM; stopping after the current song")
        token.cancel()

    def handle_int(signum, frame):
        logger.info("Received SIGINT; stopping now")
        token.cancel()
        if device is not None:
            device.interrupt()

    signal.signal(signal.SIGTERM, handle_term)
    signal.signal(signal.SIGINT, handle_int)


def run_player(
    config: Config,
    shuffle: bool = False,
    token: Optional[CancellationToken] = None,
    device: Optional[OutputDevice] = None,
) -> int:
    """
    Play the playlist once and release the PID record.

    Args:
        config: Loaded configuration
        shuffle: Play a shuffled copy of the playlist
        token: Cancellation token; a fresh one if None
        device: Output device; the process singleton if None

    Returns:
        Process exit code: 0 after a normal or cancelled run, 1 on a
        configuration or device error.
    """
    record = DaemonRecord(config.pid_file)
    token = token or CancellationToken()
    owns_device = device is None
    if device is None:
        device = get_output_device()

    logger.info(f"Music player starting (PID: {os.getpid()}, shuffle={shuffle})")
    # Fill our own claim so release on exit can recognise it
    record.write(os.getpid())
    try:
        files = PlaylistStore(config.playlist_path).load()
        if not files:
            logger.warning("Playlist is empty.")
            return 0

        sequencer = PlaybackSequencer(
            music_dir=config.music_dir,
            device=device,
            sample_rate=config.get("playback", "sample_rate"),
            buffer_frames=config.buffer_frames,
            channels=config.get("playback", "channels"),
            token=token,
        )
        sequencer.run(files, shuffle=shuffle)
        return 0
    except DeviceError as e:
        logger.error(f"Output device unavailable: {e}")
        return 1
    except PlayitError as e:
        logger.error(f"Player aborted: {e}")
        return 1
    finally:
        if owns_device:
            device.close()
        record.release(owner_pid=os.getpid())
        logger.info("Music player stopped.")
