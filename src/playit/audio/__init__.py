"""
Audio Module: Decode, resample and render tracks.

- PyAV decoders for MP3 and WAV (FLAC declared unsupported)
- Streaming linear resampler to the device rate
- One process-wide sounddevice output stream, one track at a time
"""

__all__ = ["decoder", "resample", "output", "pipeline"]
