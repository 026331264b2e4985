"""
Playback sequencing.

Drives decode -> resample -> output for each playlist entry in order (or a
shuffled copy of it). Per-track failures are logged and skipped; only a
device failure ends the run early. Cancellation is checked between tracks,
so a stop request lets the current track finish.
"""

import logging
import random
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from ..audio.output import OutputDevice
from ..audio.pipeline import play_track
from ..errors import AudioError, DeviceError

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_RATE = 44100
DEFAULT_BUFFER_FRAMES = DEFAULT_SAMPLE_RATE // 10


class CancellationToken:
    """One-way stop flag shared between a signal handler and the sequencer."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)


@dataclass
class PlaybackReport:
    """Cumulative outcome of one run."""

    order: List[str] = field(default_factory=list)
    played: List[str] = field(default_factory=list)
    skipped: List[Tuple[str, str]] = field(default_factory=list)
    cancelled: bool = False

    @property
    def skipped_names(self) -> List[str]:
        return [name for name, _ in self.skipped]


class PlaybackSequencer:
    """Play a list of tracks from the music directory through one output device."""

    def __init__(
        self,
        music_dir: Path,
        device: OutputDevice,
        sample_rate: int = DEFAULT_SAMPLE_RATE,
        buffer_frames: int = DEFAULT_BUFFER_FRAMES,
        channels: int = 2,
        token: Optional[CancellationToken] = None,
        rng: Optional[random.Random] = None,
        player: Callable[[Path, OutputDevice], None] = play_track,
    ):
        """
        Args:
            music_dir: Directory track names are resolved against
            device: Output sink, initialized once per run
            sample_rate: Fixed device rate
            buffer_frames: Device block size
            channels: Device channel count
            token: Cancellation token checked at track boundaries
            rng: Random source for shuffle
            player: Per-track pipeline (decode, resample, play)
        """
        self.music_dir = Path(music_dir)
        self.device = device
        self.sample_rate = sample_rate
        self.buffer_frames = buffer_frames
        self.channels = channels
        self.token = token or CancellationToken()
        self.rng = rng or random.Random()
        self.player = player

    def order(self, tracks: List[str], shuffle: bool) -> List[str]:
        """Working order for a run; the input list is never mutated."""
        working = list(tracks)
        if shuffle:
            self.rng.shuffle(working)
        return working

    def run(self, tracks: List[str], shuffle: bool = False) -> PlaybackReport:
        """
        Play every track once.

        Args:
            tracks: Playlist file names
            shuffle: Play a random permutation instead of playlist order

        Returns:
            PlaybackReport with played and skipped tracks.

        Raises:
            DeviceError: If the output device cannot be initialized.
        """
        report = PlaybackReport(order=self.order(tracks, shuffle))
        logger.info(f"Starting playback: {len(report.order)} track(s), shuffle={shuffle}")

        self.device.init(self.sample_rate, self.buffer_frames, self.channels)

        for name in report.order:
            if self.token.cancelled:
                logger.info("Stop requested; ending playback at track boundary")
                report.cancelled = True
                break

            file_path = self.music_dir / name
            if not file_path.is_file():
                logger.warning(f"Skipping {name}: file not found")
                report.skipped.append((name, "file not found"))
                continue

            logger.info(f"▶ Playing {name}")
            try:
                self.player(file_path, self.device)
            except DeviceError as e:
                logger.error(f"Skipping {name}: output error: {e}")
                report.skipped.append((name, str(e)))
                continue
            except (AudioError, OSError) as e:
                logger.warning(f"Skipping {name}: {e}")
                report.skipped.append((name, str(e)))
                continue
            except Exception as e:
                logger.error(f"Skipping {name}: unexpected error: {e}", exc_info=True)
                report.skipped.append((name, str(e)))
                continue

            report.played.append(name)

        logger.info(
            f"✅ Playback finished: {len(report.played)} played, "
            f"{len(report.skipped)} skipped{' (cancelled)' if report.cancelled else ''}"
        )
        return report
