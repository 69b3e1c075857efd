"""SubStation Alpha (.ssa) formatter.

WHY: SSA is still the lowest common denominator for players that style
subtitles (mpv, VLC, Aegisub import). One default style is enough for a
transcript; users restyle in their editor.

HOW: Writes the three mandatory sections ([Script Info], [V4 Styles]
and [Events]) with one Dialogue line per segment.

RULES:
- ScriptType is v4.00 (SSA, not ASS)
- Times are H:MM:SS.cc (centiseconds, single-digit hours)
- Line breaks inside text become the SSA hard break ``\\N``
"""

from __future__ import annotations

from datetime import timedelta
from typing import List

from blisper.core.ir import TranscriptionResult
from blisper.formatters.base import BaseFormatter, FormatterOutput, split_time

_HEADER = """[Script Info]
ScriptType: v4.00
Collisions: Normal
PlayResX: 384
PlayResY: 288
Timer: 100.0000

[V4 Styles]
Format: Name, Fontname, Fontsize, PrimaryColour, SecondaryColour, TertiaryColour, BackColour, Bold, Italic, BorderStyle, Outline, Shadow, Alignment, MarginL, MarginR, MarginV, AlphaLevel, Encoding
Style: Default,Arial,20,16777215,65535,65535,0,0,0,1,2,0,2,10,10,10,0,0

[Events]
Format: Marked, Start, End, Style, Name, MarginL, MarginR, MarginV, Effect, Text
"""


def _ssa_time(value: timedelta) -> str:
    hours, minutes, seconds, millis = split_time(value)
    return "{:d}:{:02d}:{:02d}.{:02d}".format(hours, minutes, seconds, millis // 10)


class SSAFormatter(BaseFormatter):
    @property
    def name(self) -> str:
        return "SubStation Alpha"

    @property
    def extension(self) -> str:
        return ".ssa"

    def format(self, result: TranscriptionResult) -> FormatterOutput:
        events: List[str] = []
        for segment in result:
            text = segment.text.strip().replace("\r\n", "\n").replace("\n", "\\N")
            events.append("Dialogue: Marked=0,{},{},Default,,0000,0000,0000,,{}".format(
                _ssa_time(segment.start),
                _ssa_time(segment.end),
                text,
            ))
        content = _HEADER + "".join(line + "\n" for line in events)
        return FormatterOutput(content=content, media_type="text/x-ssa")
