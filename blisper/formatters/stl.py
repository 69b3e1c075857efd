"""EBU-STL (Tech 3264) binary subtitle formatter.

WHY: EBU-STL is the exchange format many European broadcast subtitling
systems still require. Unlike the text formats it is a fixed-layout
binary file, so it gets its own small encoder.

HOW: One 1024-byte General Subtitle Information (GSI) block followed by
one 128-byte Text and Timing Information (TTI) block per segment.
GSI fields are space-padded ASCII at fixed offsets; TTI timecodes are
four binary bytes (HH, MM, SS, FF) at 25 frames per second.

RULES:
- GSI code page 850, disk format STL25.01, Latin character table
- Text is reduced to ASCII (accents stripped via NFKD) because the TTI
  character table is ISO 6937, which Python has no codec for
- Text longer than the 112-byte text field is truncated
- Line breaks become 0x8A; the unused text field is filled with 0x8F
"""

from __future__ import annotations

import struct
import unicodedata
from datetime import date, timedelta
from typing import List, Optional

from blisper.core.ir import TranscriptionResult
from blisper.formatters.base import BaseFormatter, FormatterOutput, split_time

GSI_SIZE = 1024
TTI_SIZE = 128
TEXT_FIELD_SIZE = 112
FRAME_RATE = 25

_LINE_BREAK = 0x8A
_UNUSED = 0x8F
_LAST_EXTENSION_BLOCK = 0xFF
_CENTERED = 0x02
_DEFAULT_ROW = 22

# (offset, width) of the GSI fields that are written
_GSI_FIELDS = {
    "CPN": (0, 3),
    "DFC": (3, 8),
    "DSC": (11, 1),
    "CCT": (12, 2),
    "LC": (14, 2),
    "OPT": (16, 32),
    "CD": (224, 6),
    "RD": (230, 6),
    "RN": (236, 2),
    "TNB": (238, 5),
    "TNS": (243, 5),
    "TNG": (248, 3),
    "MNC": (251, 2),
    "MNR": (253, 2),
    "TCS": (255, 1),
    "TCP": (256, 8),
    "TCF": (264, 8),
    "TND": (272, 1),
    "DSN": (273, 1),
}


def _ascii(text: str) -> bytes:
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    return stripped.encode("ascii", errors="replace")


def _frames(value: timedelta) -> bytes:
    hours, minutes, seconds, millis = split_time(value)
    return bytes([hours % 24, minutes, seconds, millis * FRAME_RATE // 1000])


def _smpte(value: timedelta) -> str:
    hh, mm, ss, ff = _frames(value)
    return "{:02d}{:02d}{:02d}{:02d}".format(hh, mm, ss, ff)


def build_gsi(
    subtitle_count: int,
    title: str = "",
    first_cue: Optional[timedelta] = None,
    today: Optional[date] = None,
) -> bytes:
    """Build the 1024-byte General Subtitle Information block."""
    stamp = (today or date.today()).strftime("%y%m%d")
    values = {
        "CPN": "850",
        "DFC": "STL25.01",
        "DSC": " ",
        "CCT": "00",
        "LC": "00",
        "OPT": title,
        "CD": stamp,
        "RD": stamp,
        "RN": "00",
        "TNB": "{:05d}".format(subtitle_count),
        "TNS": "{:05d}".format(subtitle_count),
        "TNG": "001",
        "MNC": "40",
        "MNR": "23",
        "TCS": "1",
        "TCP": "00000000",
        "TCF": _smpte(first_cue) if first_cue is not None else "00000000",
        "TND": "1",
        "DSN": "1",
    }

    block = bytearray(b" " * GSI_SIZE)
    for key, (offset, width) in _GSI_FIELDS.items():
        raw = _ascii(values[key])[:width].ljust(width, b" ")
        block[offset:offset + width] = raw
    return bytes(block)


def build_tti(number: int, start: timedelta, end: timedelta, text: str) -> bytes:
    """Build one 128-byte Text and Timing Information block."""
    lines = [_ascii(line) for line in text.strip().splitlines()] or [b""]
    body = bytes([_LINE_BREAK]).join(lines)[:TEXT_FIELD_SIZE]
    body = body.ljust(TEXT_FIELD_SIZE, bytes([_UNUSED]))

    header = struct.pack(
        "<BHBB4s4sBBB",
        0,  # subtitle group
        number & 0xFFFF,
        _LAST_EXTENSION_BLOCK,
        0,  # not cumulative
        _frames(start),
        _frames(end),
        _DEFAULT_ROW,
        _CENTERED,
        0,  # not a comment
    )
    return header + body


class STLFormatter(BaseFormatter):
    def __init__(self, title: str = "") -> None:
        self.title = title

    @property
    def name(self) -> str:
        return "EBU-STL"

    @property
    def extension(self) -> str:
        return ".stl"

    def format(self, result: TranscriptionResult) -> FormatterOutput:
        segments = list(result)
        blocks: List[bytes] = [
            build_gsi(
                len(segments),
                title=self.title,
                first_cue=segments[0].start if segments else None,
            )
        ]
        for number, segment in enumerate(segments):
            blocks.append(build_tti(number, segment.start, segment.end, segment.text))
        return FormatterOutput(content=b"".join(blocks), media_type="application/x-ebu-stl")
