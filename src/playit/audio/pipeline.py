"""
Per-track decode -> resample -> play pipeline.
"""

import logging
from pathlib import Path

from .decoder import open_decoder
from .output import OutputDevice
from .resample import resample_stream

logger = logging.getLogger(__name__)


def play_track(path: Path, device: OutputDevice) -> None:
    """
    Decode one file and play it to completion on an initialized device.

    The decoder (and its file handle) is closed on every exit path. Errors
    propagate so the caller can decide to skip the track.

    Args:
        path: Audio file to play.
        device: Output device, already initialized.

    Raises:
        UnsupportedFormatError: For extensions without a decoder.
        DecodeError: If the file cannot be decoded.
        DeviceError: If the device rejects the stream.
    """
    decoder = open_decoder(path)
    with decoder:
        native = decoder.format
        frames = decoder.frames()
        if native.sample_rate != device.sample_rate:
            logger.debug(f"{path.name}: resampling {native.sample_rate} Hz -> {device.sample_rate} Hz")
        frames = resample_stream(frames, native.sample_rate, device.sample_rate)
        device.play(frames)
