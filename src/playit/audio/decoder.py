"""
Audio decoding via PyAV.

Each decoder wraps one open file and exposes its native AudioFormat plus a
forward-only iterator of interleaved float32 frames shaped (n, channels).
Dispatch is by file extension; FLAC is recognized but not decodable yet.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterator, Optional

import av
import numpy as np

from ..errors import DecodeError, UnsupportedFormatError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AudioFormat:
    """Native format of a decoded stream."""

    sample_rate: int
    channels: int
    bits_per_sample: int
    sample_format: str


class AudioDecoder:
    """
    Base decoder over a PyAV container.

    Use as a context manager; the file handle and container are released on
    exit whether or not the stream was fully consumed.
    """

    container_format: Optional[str] = None

    def __init__(self, path: Path):
        self.path = Path(path)
        self._file: Optional[BinaryIO] = None
        self._container = None
        self._stream = None
        self._format: Optional[AudioFormat] = None
        self._consumed = False

    def __enter__(self) -> "AudioDecoder":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def open(self) -> None:
        """Open the file and inspect its audio stream."""
        self._file = open(self.path, "rb")
        try:
            self._container = av.open(self._file, mode="r", format=self.container_format)
            if not self._container.streams.audio:
                raise DecodeError(f"No audio stream in {self.path.name}")
            self._stream = self._container.streams.audio[0]
            codec = self._stream.codec_context
            self._format = AudioFormat(
                sample_rate=int(codec.sample_rate),
                channels=len(codec.layout.channels),
                bits_per_sample=int(codec.format.bits) if codec.format is not None else 0,
                sample_format=codec.format.name if codec.format is not None else "unknown",
            )
        except DecodeError:
            self.close()
            raise
        except (av.FFmpegError, ValueError) as e:
            self.close()
            raise DecodeError(f"Failed to open {self.path.name}: {e}")

        logger.debug(f"Opened {self.path.name}: {self._format}")

    def close(self) -> None:
        """Release the container and the underlying file handle."""
        if self._container is not None:
            try:
                self._container.close()
            finally:
                self._container = None
                self._stream = None
        if self._file is not None:
            self._file.close()
            self._file = None

    @property
    def format(self) -> AudioFormat:
        if self._format is None:
            raise DecodeError("Decoder is not open")
        return self._format

    def frames(self) -> Iterator[np.ndarray]:
        """
        Yield interleaved float32 blocks at the native rate.

        The stream is forward-only: a second call raises DecodeError.
        """
        if self._container is None:
            raise DecodeError("Decoder is not open")
        if self._consumed:
            raise DecodeError(f"Stream for {self.path.name} was already consumed")
        self._consumed = True
        return self._iter_frames()

    def _iter_frames(self) -> Iterator[np.ndarray]:
        channels = self.format.channels
        # Packed float output at the native layout and rate; rate conversion is
        # left to the Resampler.
        converter = av.AudioResampler(
            format="flt",
            layout=self._stream.codec_context.layout.name,
            rate=self.format.sample_rate,
        )
        try:
            for frame in self._container.decode(self._stream):
                frame.pts = None
                for out_frame in converter.resample(frame):
                    yield _to_interleaved(out_frame, channels)
            for out_frame in converter.resample(None):
                yield _to_interleaved(out_frame, channels)
        except av.FFmpegError as e:
            raise DecodeError(f"Decode failed for {self.path.name}: {e}")


class Mp3Decoder(AudioDecoder):
    container_format = "mp3"


class WavDecoder(AudioDecoder):
    container_format = "wav"


DECODERS = {
    ".mp3": Mp3Decoder,
    ".wav": WavDecoder,
}

# Recognized as music files but not decodable yet.
UNSUPPORTED_FORMATS = {
    ".flac": "FLAC format not yet supported",
}


def _to_interleaved(frame, channels: int) -> np.ndarray:
    data = frame.to_ndarray()
    return np.ascontiguousarray(data.reshape(-1, channels), dtype=np.float32)


def open_decoder(path: Path) -> AudioDecoder:
    """
    Create the decoder for a file based on its extension.

    The returned decoder is not yet open; use it in a with block.

    Raises:
        UnsupportedFormatError: For FLAC and unknown extensions.
    """
    ext = Path(path).suffix.lower()
    if ext in UNSUPPORTED_FORMATS:
        raise UnsupportedFormatError(UNSUPPORTED_FORMATS[ext])
    decoder_cls = DECODERS.get(ext)
    if decoder_cls is None:
        raise UnsupportedFormatError(f"unsupported format: {ext or '(none)'}")
    return decoder_cls(path)
