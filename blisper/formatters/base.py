"""Abstract base formatter and output container.

WHY: Every subtitle format consumes the same TranscriptionResult but
produces different bytes. This base class enforces a consistent interface
so the CLI and pipeline can work with any formatter generically.

HOW: BaseFormatter is an ABC with ``name``, ``extension`` and
``format()``. FormatterOutput bundles content (str or bytes) with its
MIME type. Shared timecode helpers live here so each format only decides
how to lay the numbers out.

RULES:
- ``format()`` never mutates the result it is given
- Segment text is written stripped; whisper prefixes most segments
  with a space
- str content is written as UTF-8 by the caller, bytes verbatim
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import timedelta
from typing import Tuple

from blisper.core.ir import TranscriptionResult


@dataclass
class FormatterOutput:
    """One output file produced by a formatter.

    Attributes:
        content: The file content as a string (SRT, VTT, ...) or bytes (STL).
        media_type: MIME type for the content, e.g. ``"application/x-subrip"``.
    """

    content: str | bytes
    media_type: str


def split_time(value: timedelta) -> Tuple[int, int, int, int]:
    """Split a non-negative timedelta into (hours, minutes, seconds, milliseconds)."""
    total_ms = max(0, int(round(value.total_seconds() * 1000)))
    hours, rest = divmod(total_ms, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    seconds, millis = divmod(rest, 1000)
    return hours, minutes, seconds, millis


def clock(value: timedelta, separator: str = ".") -> str:
    """Format as ``HH:MM:SS<separator>mmm``."""
    hours, minutes, seconds, millis = split_time(value)
    return "{:02d}:{:02d}:{:02d}{}{:03d}".format(hours, minutes, seconds, separator, millis)


class BaseFormatter(ABC):
    """Abstract base for all subtitle formatters.

    To add a new output format:
    1. Create a new file in formatters/
    2. Subclass BaseFormatter
    3. Implement name, extension and format()
    4. Register in FORMATTERS dict in formatters/__init__.py
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable format name, e.g. 'SubRip'."""

    @property
    @abstractmethod
    def extension(self) -> str:
        """Conventional file extension including the dot, e.g. '.srt'."""

    @abstractmethod
    def format(self, result: TranscriptionResult) -> FormatterOutput:
        """Convert the segments of ``result`` into file content."""
