"""Plain text transcript formatter with timestamps.

WHY: The quickest way to read a transcript is a text file with one line
per segment. Timestamps stay on each line so a reader can still find the
spot in the audio.

RULES:
- One line per segment: ``[HH:MM:SS.mmm -> HH:MM:SS.mmm]  text``
- Fixed-width timestamps so the text column lines up
- Output ends with a newline when there is at least one segment
"""

from __future__ import annotations

from blisper.core.ir import TranscriptionResult
from blisper.formatters.base import BaseFormatter, FormatterOutput, clock


class PlainTextFormatter(BaseFormatter):
    @property
    def name(self) -> str:
        return "Plain Text"

    @property
    def extension(self) -> str:
        return ".txt"

    def format(self, result: TranscriptionResult) -> FormatterOutput:
        lines = [
            "[{} -> {}]  {}".format(clock(s.start), clock(s.end), s.text.strip())
            for s in result
        ]
        content = "\n".join(lines)
        if content:
            content += "\n"
        return FormatterOutput(content=content, media_type="text/plain")
