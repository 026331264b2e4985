"""
Streaming sample-rate conversion.

Blocks are handed to an FFmpeg resampler (libswresample via PyAV), which
low-pass filters when downsampling and keeps its filter state across block
boundaries, so the output is continuous regardless of how the decoder chunks
its frames.
"""

import logging
from typing import Iterable, Iterator, List

import av
import numpy as np

logger = logging.getLogger(__name__)


def _layout_name(channels: int) -> str:
    return av.AudioLayout(channels).name


class Resampler:
    """Convert interleaved (n, channels) float32 blocks from one rate to another."""

    def __init__(self, source_rate: int, target_rate: int):
        if source_rate <= 0 or target_rate <= 0:
            raise ValueError(f"Sample rates must be positive: {source_rate} -> {target_rate}")
        self.source_rate = source_rate
        self.target_rate = target_rate
        self._converter = None
        self._channels = None

    def process(self, blocks: Iterable[np.ndarray]) -> Iterator[np.ndarray]:
        """Resample a block stream lazily, flushing the filter tail at the end."""
        logger.debug(f"Resampling {self.source_rate} Hz -> {self.target_rate} Hz")
        for block in blocks:
            out = self.convert(block)
            if len(out):
                yield out
        tail = self.flush()
        if len(tail):
            yield tail

    def convert(self, block: np.ndarray) -> np.ndarray:
        """Resample one block. Some output may be held back until the next call."""
        if block.ndim == 1:
            block = block[:, np.newaxis]
        channels = block.shape[1]
        if self._converter is None:
            self._channels = channels
            self._converter = av.AudioResampler(
                format="flt",
                layout=_layout_name(channels),
                rate=self.target_rate,
            )
        elif channels != self._channels:
            raise ValueError(f"Channel count changed mid-stream: {self._channels} -> {channels}")

        if not len(block):
            return np.empty((0, channels), dtype=np.float32)

        packed = np.ascontiguousarray(block, dtype=np.float32).reshape(1, -1)
        frame = av.AudioFrame.from_ndarray(packed, format="flt", layout=_layout_name(channels))
        frame.sample_rate = self.source_rate
        frame.pts = None
        return self._collect(self._converter.resample(frame))

    def flush(self) -> np.ndarray:
        """Drain samples buffered inside the filter; the resampler is reset after."""
        if self._converter is None:
            return np.empty((0, 1), dtype=np.float32)
        out = self._collect(self._converter.resample(None))
        self.reset()
        return out

    def reset(self) -> None:
        self._converter = None
        self._channels = None

    def _collect(self, frames: List) -> np.ndarray:
        blocks = [f.to_ndarray().reshape(-1, self._channels) for f in frames if f.samples]
        if not blocks:
            return np.empty((0, self._channels), dtype=np.float32)
        return np.ascontiguousarray(np.concatenate(blocks), dtype=np.float32)


def resample_stream(blocks: Iterable[np.ndarray], source_rate: int, target_rate: int) -> Iterator[np.ndarray]:
    """Pass blocks through unchanged when the rates already match."""
    if source_rate == target_rate:
        return iter(blocks)
    return Resampler(source_rate, target_rate).process(blocks)
