"""SubRip (.srt) formatter.

RULES:
- Cues are numbered from 1 in presentation order
- Timestamps use a comma before the milliseconds: 00:00:01,500
- Each cue ends with a blank line
"""

from __future__ import annotations

from typing import List

from blisper.core.ir import TranscriptionResult
from blisper.formatters.base import BaseFormatter, FormatterOutput, clock


class SRTFormatter(BaseFormatter):
    @property
    def name(self) -> str:
        return "SubRip"

    @property
    def extension(self) -> str:
        return ".srt"

    def format(self, result: TranscriptionResult) -> FormatterOutput:
        blocks: List[str] = []
        for index, segment in enumerate(result, start=1):
            blocks.append("{}\n{} --> {}\n{}\n".format(
                index,
                clock(segment.start, ","),
                clock(segment.end, ","),
                segment.text.strip(),
            ))
        return FormatterOutput(content="\n".join(blocks), media_type="application/x-subrip")
