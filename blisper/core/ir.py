"""Intermediate representation shared by the audio, driver and formatter stages.

WHY: The engine wants a flat float buffer with an exact format, and the
subtitle formatters want an ordered list of timed text. Typed containers
at both seams keep each stage honest about what it hands to the next.

HOW: Three types:
  SampleBuffer: mono 16 kHz float32 samples, validated on creation
  Segment: one timed piece of transcribed text
  TranscriptionResult: ordered Segments; also usable as a segment callback

RULES:
- A SampleBuffer that exists satisfies the engine's contract; anything
  else is rejected at construction, never resampled
- Segment times are timedelta offsets from the start of the audio
- Segments are immutable and appended in non-decreasing start order
- Insertion order is presentation order
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Iterator, List, Tuple

import numpy as np

from blisper.config import CHANNELS, SAMPLE_RATE


@dataclass(frozen=True, eq=False)
class SampleBuffer:
    """Audio ready for the engine: 1-D float32 samples at 16 kHz, mono.

    Raises:
        ValueError: When the samples or sample rate break the contract.
    """

    samples: np.ndarray
    sample_rate: int = SAMPLE_RATE
    channels: int = CHANNELS

    def __post_init__(self) -> None:
        if not isinstance(self.samples, np.ndarray):
            raise ValueError("samples must be a numpy array")
        if self.samples.dtype != np.float32:
            raise ValueError("samples must be float32, got {}".format(self.samples.dtype))
        if self.samples.ndim != 1:
            raise ValueError("samples must be one-dimensional (mono)")
        if self.sample_rate != SAMPLE_RATE:
            raise ValueError(
                "sample rate must be {} Hz, got {}".format(SAMPLE_RATE, self.sample_rate)
            )
        if self.channels != CHANNELS:
            raise ValueError("audio must be mono, got {} channels".format(self.channels))

    def __len__(self) -> int:
        return int(self.samples.shape[0])

    @property
    def duration(self) -> timedelta:
        return timedelta(seconds=len(self) / self.sample_rate)


@dataclass(frozen=True)
class Segment:
    """One unit of transcribed text with its position in the audio."""

    start: timedelta
    end: timedelta
    text: str


@dataclass
class TranscriptionResult:
    """Ordered collection of segments, owned by the caller.

    Instances are callable so they can be passed straight to
    ``TranscriptionDriver.process(samples, on_segment=result)``.
    """

    segments: List[Segment] = field(default_factory=list)

    def append(self, segment: Segment) -> None:
        if self.segments and segment.start < self.segments[-1].start:
            raise ValueError(
                "segment starting at {} arrived after one starting at {}".format(
                    segment.start, self.segments[-1].start
                )
            )
        self.segments.append(segment)

    def __call__(self, segment: Segment) -> None:
        self.append(segment)

    def __iter__(self) -> Iterator[Segment]:
        return iter(self.segments)

    def __len__(self) -> int:
        return len(self.segments)

    def items(self) -> List[Tuple[timedelta, timedelta, str]]:
        """Return ``(start, end, text)`` tuples in presentation order."""
        return [(s.start, s.end, s.text) for s in self.segments]
