"""Output formatter registry for pluggable subtitle formats.

WHY: The CLI and the pipeline need a single lookup to find the right
formatter by name. A central dict makes it trivial to add new formats:
create the formatter class, import it here, add one line.

HOW: FORMATTERS maps the ``--format`` keys to formatter *classes* (not
instances). Callers instantiate as needed: ``FORMATTERS["srt"]()``.

RULES:
- Keys are the lowercase names accepted by ``--format``
- Values are BaseFormatter subclasses (not instances)
- Every formatter listed here must be importable without side effects
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from blisper.formatters.plain_text import PlainTextFormatter
from blisper.formatters.srt import SRTFormatter
from blisper.formatters.ssa import SSAFormatter
from blisper.formatters.stl import STLFormatter
from blisper.formatters.ttml import TTMLFormatter
from blisper.formatters.vtt import WebVTTFormatter

if TYPE_CHECKING:
    from blisper.formatters.base import BaseFormatter

FORMATTERS: dict[str, type[BaseFormatter]] = {
    "srt": SRTFormatter,
    "ssa": SSAFormatter,
    "stl": STLFormatter,
    "ttml": TTMLFormatter,
    "txt": PlainTextFormatter,
    "vtt": WebVTTFormatter,
}
