"""
Process-wide audio output device.

A single sounddevice OutputStream is opened once per process with a fixed
sample rate and block size. The stream callback pulls frames from the one
active source; when the source is exhausted a one-shot completion event fires
and the device plays silence until the next track is submitted.
"""

import logging
import threading
from typing import Iterable, Iterator, Optional

import numpy as np

from ..errors import DeviceError

logger = logging.getLogger(__name__)

# Poll interval while blocking in play(); keeps the main thread responsive to signals
WAIT_INTERVAL_SECONDS = 0.25


def ensure_channels(block: np.ndarray, channels: int) -> np.ndarray:
    """Map a block to the device channel count (mono is duplicated, extras dropped)."""
    if block.ndim == 1:
        block = block[:, np.newaxis]
    have = block.shape[1]
    if have == channels:
        return block
    if have == 1:
        return np.repeat(block, channels, axis=1)
    if have > channels:
        return block[:, :channels]
    # Pad missing channels with the last available one
    pad = np.repeat(block[:, -1:], channels - have, axis=1)
    return np.concatenate([block, pad], axis=1)


class OutputDevice:
    """
    Audio sink accepting one stream at a time.

    Use get_output_device() for the process singleton; direct construction is
    for tests.
    """

    def __init__(self):
        self.sample_rate: Optional[int] = None
        self.buffer_frames: Optional[int] = None
        self.channels: Optional[int] = None
        self._stream = None
        self._lock = threading.Lock()
        self._source: Optional[Iterator[np.ndarray]] = None
        self._pending: Optional[np.ndarray] = None
        self._done: Optional[threading.Event] = None
        self._error: Optional[BaseException] = None
        # Set without the lock so signal handlers can request a stop
        self._interrupt_requested = False

    @property
    def initialized(self) -> bool:
        return self._stream is not None

    def init(self, sample_rate: int, buffer_frames: int, channels: int = 2) -> None:
        """
        Open and start the output stream.

        Calling again with the same parameters is a no-op.

        Raises:
            DeviceError: If the device cannot be opened, or it is already open
                with different parameters.
        """
        if self.initialized:
            if (sample_rate, buffer_frames, channels) == (self.sample_rate, self.buffer_frames, self.channels):
                return
            raise DeviceError(
                f"Output device already initialized at {self.sample_rate} Hz / "
                f"{self.buffer_frames} frames / {self.channels} ch"
            )

        try:
            # Imported here: loading sounddevice needs the PortAudio shared library
            import sounddevice as sd
        except OSError as e:
            raise DeviceError(f"PortAudio is not available: {e}")

        try:
            stream = sd.OutputStream(
                samplerate=sample_rate,
                channels=channels,
                dtype="float32",
                blocksize=buffer_frames,
                callback=self._callback,
            )
            stream.start()
        except (sd.PortAudioError, ValueError) as e:
            raise DeviceError(f"Failed to open output device: {e}")

        self._stream = stream
        self.sample_rate = sample_rate
        self.buffer_frames = buffer_frames
        self.channels = channels
        logger.info(f"Output device ready: {sample_rate} Hz, {buffer_frames} frames, {channels} ch")

    def play(self, blocks: Iterable[np.ndarray]) -> None:
        """
        Play a block stream and block until its last frame was submitted.

        Raises:
            DeviceError: If the device is not initialized or already busy.
            Exception: Whatever the source raised while being consumed.
        """
        if not self.initialized:
            raise DeviceError("Output device is not initialized")

        done = threading.Event()
        with self._lock:
            if self._source is not None:
                raise DeviceError("Output device is busy with another stream")
            self._source = iter(blocks)
            self._pending = None
            self._error = None
            self._done = done
            self._interrupt_requested = False

        while not done.wait(WAIT_INTERVAL_SECONDS):
            if self._interrupt_requested:
                self._stop_active()
                break

        with self._lock:
            error, self._error = self._error, None
        if error is not None:
            raise error

    def interrupt(self) -> None:
        """
        Ask the active stream to stop now; play() returns as if it had finished.

        Only sets a flag and takes no lock, so it is safe to call from a
        signal handler running on the thread blocked in play().
        """
        self._interrupt_requested = True

    def close(self) -> None:
        self._stop_active()
        if self._stream is not None:
            try:
                self._stream.stop()
                self._stream.close()
            finally:
                self._stream = None
                logger.debug("Output device closed")

    def _stop_active(self) -> None:
        with self._lock:
            if self._source is not None:
                logger.info("Interrupting active stream")
                self._finish_locked()

    def _finish_locked(self) -> None:
        self._source = None
        self._pending = None
        if self._done is not None:
            self._done.set()
            self._done = None

    def _callback(self, outdata, frames, time_info, status) -> None:
        if status:
            logger.debug(f"Output stream status: {status}")
        filled = 0
        with self._lock:
            if self._interrupt_requested and self._source is not None:
                self._finish_locked()
            while filled < frames and self._source is not None:
                if self._pending is None or not len(self._pending):
                    try:
                        block = next(self._source)
                    except StopIteration:
                        self._finish_locked()
                        break
                    except Exception as e:
                        self._error = e
                        self._finish_locked()
                        break
                    self._pending = ensure_channels(block, self.channels)
                    continue
                take = min(frames - filled, len(self._pending))
                outdata[filled:filled + take] = self._pending[:take]
                self._pending = self._pending[take:]
                filled += take
        outdata[filled:] = 0


_device: Optional[OutputDevice] = None
_device_lock = threading.Lock()


def get_output_device() -> OutputDevice:
    """Return the process-wide OutputDevice, creating it on first use."""
    global _device
    with _device_lock:
        if _device is None:
            _device = OutputDevice()
        return _device
