"""TTML (Timed Text Markup Language) formatter.

WHY: TTML and its profiles (EBU-TT-D, IMSC) are what broadcast and
streaming platforms ingest. A plain TTML document with one ``<p>`` per
segment is accepted by all of them as a starting point.

HOW: Builds the document with xml.etree.ElementTree so text is escaped
correctly, then serializes it with an XML declaration.

RULES:
- Root element is ``tt`` in the TTML namespace with ``xml:lang``
- One ``<p begin=... end=...>`` per segment inside body/div
- Clock times are HH:MM:SS.mmm
"""

from __future__ import annotations

import xml.etree.ElementTree as ET

from blisper.core.ir import TranscriptionResult
from blisper.formatters.base import BaseFormatter, FormatterOutput, clock

TTML_NS = "http://www.w3.org/ns/ttml"
XML_NS = "http://www.w3.org/XML/1998/namespace"


class TTMLFormatter(BaseFormatter):
    def __init__(self, language: str = "") -> None:
        self.language = language

    @property
    def name(self) -> str:
        return "TTML"

    @property
    def extension(self) -> str:
        return ".ttml"

    def format(self, result: TranscriptionResult) -> FormatterOutput:
        ET.register_namespace("", TTML_NS)
        root = ET.Element("{%s}tt" % TTML_NS, {"{%s}lang" % XML_NS: self.language})
        body = ET.SubElement(root, "{%s}body" % TTML_NS)
        div = ET.SubElement(body, "{%s}div" % TTML_NS)

        for segment in result:
            p = ET.SubElement(div, "{%s}p" % TTML_NS, {
                "begin": clock(segment.start),
                "end": clock(segment.end),
            })
            p.text = segment.text.strip()

        ET.indent(root)
        content = '<?xml version="1.0" encoding="UTF-8"?>\n' + ET.tostring(root, encoding="unicode") + "\n"
        return FormatterOutput(content=content, media_type="application/ttml+xml")
