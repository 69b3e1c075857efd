"""Shared test fixtures for the blisper test suite.

WHY: Driver, pipeline and CLI tests all need a whisper.cpp stand-in and
WAV files in known formats. Centralizing them keeps every test module
using the same, well-understood stubs.

HOW: StubEngine implements the Engine protocol in pure Python and records
every call. write_wav() writes integer PCM with the stdlib wave module.
Test modules reach them only through fixtures: make_engine and
wav_writer are factories, offline_client is a ready client.

RULES:
- No test loads libwhisper, runs ffmpeg or touches the network
- StubEngine segment times are in centiseconds, like whisper.cpp
- StubEngine writes its ``noise`` to fd 2, the way the native library does
"""

from __future__ import annotations

import os
import wave
from pathlib import Path
from typing import Any, List, Optional, Tuple

import httpx
import numpy as np
import pytest


class StubEngine:
    """Pure-Python Engine that replays canned segments."""

    def __init__(
        self,
        segments: Optional[List[Tuple[int, int, str]]] = None,
        status: int = 0,
        init_ok: bool = True,
        noise: bytes = b"",
    ) -> None:
        self.segments = list(segments or [])
        self.status = status
        self.init_ok = init_ok
        self.noise = noise
        self.calls: List[str] = []
        self.freed_models = 0
        self.freed_states = 0
        self.samples_seen: Optional[np.ndarray] = None
        self._next_state = 0

    def _make_noise(self) -> None:
        if self.noise:
            os.write(2, self.noise)

    def init(self, model_path: str) -> Optional[Any]:
        self.calls.append("init")
        self._make_noise()
        return {"model": model_path} if self.init_ok else None

    def init_state(self, handle: Any) -> Any:
        self.calls.append("init_state")
        self._next_state += 1
        return {"state": self._next_state}

    def free_state(self, state: Any) -> None:
        self.calls.append("free_state")
        self.freed_states += 1

    def free(self, handle: Any) -> None:
        self.calls.append("free")
        self.freed_models += 1

    def reset_timings(self, handle: Any) -> None:
        self.calls.append("reset_timings")

    def full(self, handle: Any, state: Any, samples: np.ndarray) -> int:
        self.calls.append("full")
        self.samples_seen = samples
        self._make_noise()
        return self.status

    def n_segments(self, state: Any) -> int:
        return len(self.segments)

    def segment_text(self, state: Any, index: int) -> str:
        return self.segments[index][2]

    def segment_t0(self, state: Any, index: int) -> int:
        return self.segments[index][0]

    def segment_t1(self, state: Any, index: int) -> int:
        return self.segments[index][1]

    def system_info(self) -> str:
        return "AVX = 1 | NEON = 0 |"


def write_wav(
    path: Path,
    samples: np.ndarray,
    rate: int = 16000,
    channels: int = 1,
) -> Path:
    """Write int16 ``samples`` (interleaved when channels > 1) as a WAV file."""
    with wave.open(str(path), "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(2)
        wf.setframerate(rate)
        wf.writeframes(np.asarray(samples, dtype="<i2").tobytes())
    return path


def no_network_client() -> httpx.Client:
    """httpx client whose every request fails the test."""

    def _handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("unexpected network access: {}".format(request.url))

    return httpx.Client(transport=httpx.MockTransport(_handler))


@pytest.fixture
def make_engine():
    """Factory for StubEngine instances with per-test settings."""
    return StubEngine


@pytest.fixture
def wav_writer():
    """The write_wav() helper, for tests that build their own WAV files."""
    return write_wav


@pytest.fixture
def offline_client():
    client = no_network_client()
    yield client
    client.close()


@pytest.fixture
def stub_engine():
    return StubEngine(segments=[(0, 150, " Hello"), (150, 320, " world.")])


@pytest.fixture
def data_dir(tmp_path):
    d = tmp_path / "models"
    d.mkdir()
    return d


@pytest.fixture
def silent_wav(tmp_path):
    """Three seconds of 16 kHz mono silence."""
    return write_wav(tmp_path / "silence.wav", np.zeros(48000, dtype=np.int16))


@pytest.fixture
def stereo_wav(tmp_path):
    """One second of 44.1 kHz stereo noise, which violates the audio contract."""
    rng = np.random.default_rng(0)
    frames = rng.integers(-1000, 1000, size=44100 * 2, dtype=np.int16)
    return write_wav(tmp_path / "stereo.wav", frames, rate=44100, channels=2)


@pytest.fixture
def empty_wav(tmp_path):
    """A well-formed 16 kHz mono WAV file with no frames."""
    return write_wav(tmp_path / "empty.wav", np.zeros(0, dtype=np.int16))
