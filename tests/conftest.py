"""
Shared fixtures: temporary config, generated WAV files and a fake output device.
"""

import json
import math
import struct
import threading
import wave
from pathlib import Path

import numpy as np
import pytest

from playit.config import Config


class FakeDevice:
    """Records init/play calls instead of touching audio hardware."""

    def __init__(self, fail_init=False, gate=None):
        self.fail_init = fail_init
        self.gate = gate
        self.sample_rate = None
        self.buffer_frames = None
        self.channels = None
        self.init_calls = []
        self.streams = []
        self.playing = threading.Event()
        self.interrupted = False
        self.closed = False

    def init(self, sample_rate, buffer_frames, channels=2):
        from playit.errors import DeviceError

        self.init_calls.append((sample_rate, buffer_frames, channels))
        if self.fail_init:
            raise DeviceError("no audio device")
        self.sample_rate = sample_rate
        self.buffer_frames = buffer_frames
        self.channels = channels

    def play(self, blocks):
        self.playing.set()
        frames = [np.asarray(b) for b in blocks]
        self.streams.append(frames)
        if self.gate is not None:
            self.gate.wait(5)

    def interrupt(self):
        self.interrupted = True

    def close(self):
        self.closed = True


def write_wav(path: Path, sample_rate=22050, seconds=0.1, channels=1, freq=440.0) -> Path:
    """Write a 16-bit PCM sine wave."""
    n = int(sample_rate * seconds)
    with wave.open(str(path), "wb") as w:
        w.setnchannels(channels)
        w.setsampwidth(2)
        w.setframerate(sample_rate)
        frames = bytearray()
        for i in range(n):
            value = int(12000 * math.sin(2 * math.pi * freq * i / sample_rate))
            frames += struct.pack("<h", value) * channels
        w.writeframes(bytes(frames))
    return path


@pytest.fixture
def fake_device():
    return FakeDevice()


@pytest.fixture
def workspace(tmp_path):
    """Music dir, playlist and PID paths inside tmp_path."""
    music_dir = tmp_path / "music"
    music_dir.mkdir()
    return tmp_path


@pytest.fixture
def config(workspace):
    return Config({
        "storage": {
            "music_dir": str(workspace / "music"),
            "playlist_path": str(workspace / "playlist.json"),
        },
        "daemon": {
            "pid_file": str(workspace / "playit.pid"),
            "log_file": str(workspace / "playit.log"),
        },
    })


@pytest.fixture
def config_file(workspace):
    """The same layout as `config`, written to a TOML file."""
    path = workspace / "playit.toml"
    path.write_text(
        "[storage]\n"
        f'music_dir = "{(workspace / "music").as_posix()}"\n'
        f'playlist_path = "{(workspace / "playlist.json").as_posix()}"\n'
        "\n[daemon]\n"
        f'pid_file = "{(workspace / "playit.pid").as_posix()}"\n'
        f'log_file = "{(workspace / "playit.log").as_posix()}"\n'
    )
    return path


def write_playlist(path: Path, files) -> None:
    Path(path).write_text(json.dumps({"files": list(files)}, indent=2))
