"""Load an arbitrary audio file as 16 kHz mono float32 samples.

WHY: whisper.cpp only accepts 16 kHz mono float samples. Most inputs
(mp3, m4a, 44.1 kHz stereo wav, video files) don't qualify, but some
do, and for those spawning ffmpeg would be wasted time.

HOW: An explicit two-step pipeline:
  1. try_decode() reads the file with the stdlib ``wave`` module and
     returns either a SampleBuffer or a DecodeFailure value.
  2. Only on DecodeFailure, a Converter (ffmpeg by default) re-encodes
     the input into a scoped temporary WAV that meets the contract, and
     try_decode() runs once more on that file.

RULES:
- The first decode failure is a value, not an exception; it gates step 2
- A failure after conversion raises ConversionError (no further retries)
- The temporary WAV is deleted on every exit path
- ffmpeg output is captured (and logged at debug) unless verbose, in
  which case it goes to the terminal verbatim
- Integer PCM of 8/16/24/32 bits is scaled to float32 in [-1, 1)
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import tempfile
import wave
from collections.abc import Callable
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Protocol, Union

import numpy as np

from blisper.capture import maybe_captured
from blisper.config import CHANNELS, FFMPEG_BINARY, SAMPLE_RATE
from blisper.core.ir import SampleBuffer
from blisper.errors import ConversionError

logger = logging.getLogger(__name__)

# Keep error messages readable when ffmpeg is chatty
_MAX_ERROR_OUTPUT = 2000


@dataclass(frozen=True)
class DecodeFailure:
    """Why a file could not be used directly."""

    path: Path
    reason: str


DecodeResult = Union[SampleBuffer, DecodeFailure]


# ---------------------------------------------------------------------------
# Step 1: direct decode
# ---------------------------------------------------------------------------


def try_decode(path: Union[str, Path]) -> DecodeResult:
    """Decode ``path`` if it is a 16 kHz mono PCM WAV file.

    Returns:
        A SampleBuffer with one sample per frame, or a DecodeFailure
        describing why the file does not meet the contract.
    """
    path = Path(path)
    try:
        with wave.open(str(path), "rb") as wf:
            channels = wf.getnchannels()
            rate = wf.getframerate()
            width = wf.getsampwidth()
            raw = wf.readframes(wf.getnframes())
    except (wave.Error, EOFError, OSError) as exc:
        return DecodeFailure(path, "not a readable PCM WAV file: {}".format(exc))

    if rate != SAMPLE_RATE:
        return DecodeFailure(path, "unsupported sample rate: {}".format(rate))
    if channels != CHANNELS:
        return DecodeFailure(path, "unsupported number of channels: {}".format(channels))

    try:
        samples = pcm_to_float32(raw, width)
    except ValueError as exc:
        return DecodeFailure(path, str(exc))

    return SampleBuffer(samples)


def pcm_to_float32(raw: bytes, sample_width: int) -> np.ndarray:
    """Convert little-endian integer PCM bytes to float32 samples in [-1, 1)."""
    usable = len(raw) - len(raw) % sample_width
    raw = raw[:usable]

    if sample_width == 1:
        # 8-bit WAV is unsigned
        data = np.frombuffer(raw, dtype=np.uint8).astype(np.float32)
        return (data - 128.0) / 128.0
    if sample_width == 2:
        return np.frombuffer(raw, dtype="<i2").astype(np.float32) / 32768.0
    if sample_width == 3:
        b = np.frombuffer(raw, dtype=np.uint8).reshape(-1, 3).astype(np.int32)
        ints = b[:, 0] | (b[:, 1] << 8) | (b[:, 2] << 16)
        ints = (ints << 8) >> 8  # sign-extend from 24 bits
        return ints.astype(np.float32) / 8388608.0
    if sample_width == 4:
        return (np.frombuffer(raw, dtype="<i4").astype(np.float64) / 2147483648.0).astype(np.float32)
    raise ValueError("unsupported sample width: {} bytes".format(sample_width))


# ---------------------------------------------------------------------------
# Step 2: conversion
# ---------------------------------------------------------------------------


class Converter(Protocol):
    """Anything that can re-encode ``src`` into a 16 kHz mono 16-bit WAV."""

    def convert(self, src: Path, dst: Path) -> None:
        ...


class FfmpegConverter:
    """Converter that shells out to ffmpeg.

    RULES:
    - Output is always 16 kHz, mono, pcm_s16le, overwriting ``dst``
    - stdin is /dev/null so ffmpeg never waits for an answer
    - verbose=False: stdout/stderr are captured, logged at debug, and
      attached to ConversionError on failure
    - verbose=True: the command line is reported and ffmpeg writes to the
      terminal directly
    """

    def __init__(
        self,
        binary: str = FFMPEG_BINARY,
        verbose: bool = False,
        on_status: Callable[[str], None] | None = None,
    ) -> None:
        self.binary = binary
        self.verbose = verbose
        self.on_status = on_status

    def command(self, src: Path, dst: Path) -> List[str]:
        return [
            self.binary,
            "-nostdin",
            "-y",  # overwrite the (empty) temp file
            "-i", str(src),
            "-ar", str(SAMPLE_RATE),
            "-ac", str(CHANNELS),
            "-c:a", "pcm_s16le",
            str(dst),
        ]

    def convert(self, src: Path, dst: Path) -> None:
        cmd = self.command(src, dst)
        if self.verbose and self.on_status:
            self.on_status(" ".join(shlex.quote(part) for part in cmd))

        try:
            with maybe_captured(not self.verbose) as session:
                proc = subprocess.run(cmd, stdin=subprocess.DEVNULL, check=False)
        except FileNotFoundError as exc:
            raise ConversionError(
                "{} not found. Install ffmpeg or set BLISPER_FFMPEG.".format(self.binary)
            ) from exc

        output = session.result.stdout_text + session.result.stderr_text
        if output:
            logger.debug("ffmpeg output:\n%s", output)

        if proc.returncode != 0:
            raise ConversionError(
                "ffmpeg exited with status {} converting {}".format(proc.returncode, src),
                output=output[-_MAX_ERROR_OUTPUT:],
            )

        if self.verbose and self.on_status:
            self.on_status("wrote wav file {}".format(dst))


@contextmanager
def temporary_wav() -> Iterator[Path]:
    """Yield a fresh temporary ``.wav`` path and delete it afterwards."""
    fd, name = tempfile.mkstemp(prefix="blisper", suffix=".wav")
    os.close(fd)
    path = Path(name)
    try:
        yield path
    finally:
        try:
            path.unlink()
        except FileNotFoundError:
            pass


# ---------------------------------------------------------------------------
# Two-step loader
# ---------------------------------------------------------------------------


class AudioNormalizer:
    """Turns any input file into a SampleBuffer, converting only when needed."""

    def __init__(
        self,
        converter: Optional[Converter] = None,
        verbose: bool = False,
        on_status: Callable[[str], None] | None = None,
    ) -> None:
        self.converter = converter or FfmpegConverter(verbose=verbose, on_status=on_status)
        self.verbose = verbose
        self.on_status = on_status

    def load(self, path: Union[str, Path]) -> SampleBuffer:
        """Return the samples of ``path`` under the engine's audio contract.

        Raises:
            FileNotFoundError: ``path`` does not exist.
            ConversionError: Neither the file nor its converted form decodes.
        """
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError("input file not found: {}".format(path))

        first = try_decode(path)
        if isinstance(first, SampleBuffer):
            logger.debug("Decoded %s directly (%d samples)", path, len(first))
            return first

        logger.info("Direct decode of %s failed: %s", path, first.reason)
        if self.verbose and self.on_status:
            self.on_status(first.reason)
            self.on_status("attempting to convert to wav with ffmpeg")

        with temporary_wav() as tmp:
            self.converter.convert(path, tmp)
            second = try_decode(tmp)

        if isinstance(second, DecodeFailure):
            raise ConversionError(
                "could not decode {} after conversion: {}".format(path, second.reason)
            )
        return second


def load_audio(path: Union[str, Path], verbose: bool = False) -> SampleBuffer:
    """Shortcut for ``AudioNormalizer(verbose=verbose).load(path)``."""
    return AudioNormalizer(verbose=verbose).load(path)
