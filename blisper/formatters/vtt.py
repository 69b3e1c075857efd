"""WebVTT formatter.

RULES:
- File starts with the ``WEBVTT`` signature and a blank line
- Cue identifiers are the 1-based cue index
- Timestamps use a dot before the milliseconds: 00:00:01.500
"""

from __future__ import annotations

from typing import List

from blisper.core.ir import TranscriptionResult
from blisper.formatters.base import BaseFormatter, FormatterOutput, clock


class WebVTTFormatter(BaseFormatter):
    @property
    def name(self) -> str:
        return "WebVTT"

    @property
    def extension(self) -> str:
        return ".vtt"

    def format(self, result: TranscriptionResult) -> FormatterOutput:
        parts: List[str] = ["WEBVTT\n"]
        for index, segment in enumerate(result, start=1):
            parts.append("{}\n{} --> {}\n{}\n".format(
                index,
                clock(segment.start),
                clock(segment.end),
                segment.text.strip(),
            ))
        return FormatterOutput(content="\n".join(parts), media_type="text/vtt")
