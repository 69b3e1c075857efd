"""End-to-end transcription pipeline.

WHY: The CLI, tests and any embedding script need the same sequence:
fetch model, normalize audio, transcribe, write output, without
re-implementing the wiring or the verbosity rules each time.

HOW: run() walks the stages in order on the calling thread. Every
collaborator (engine, converter, HTTP client, formatter) can be passed
in; omitted ones get their production defaults. Status text goes through
a callback that is only invoked when progress output is enabled.

RULES:
- Stages run sequentially; nothing here is concurrent
- --stream prints each segment to stdout as the driver delivers it
- Status text goes to stderr so stdout stays clean for --stream
- Exceptions propagate untouched; the CLI maps them to exit codes
- Audio with no samples raises EmptyAudioError before the engine starts
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import httpx

from blisper import models
from blisper.audio import AudioNormalizer, Converter
from blisper.config import DEFAULT_FORMAT, DEFAULT_MODEL, Verbosity
from blisper.core.ir import Segment, TranscriptionResult
from blisper.driver import TranscriptionDriver
from blisper.engine import Engine
from blisper.errors import EmptyAudioError, UnknownFormatError
from blisper.formatters import FORMATTERS
from blisper.formatters.base import BaseFormatter, clock

logger = logging.getLogger(__name__)

StatusCallback = Callable[[str], None]


@dataclass
class PipelineOptions:
    """Everything a single run needs to know."""

    input_path: Path
    output_path: Path
    model: str = DEFAULT_MODEL
    format: str = DEFAULT_FORMAT
    stream: bool = False
    verbosity: Verbosity = field(default_factory=Verbosity)
    data_dir: Optional[Path] = None


def status(msg: str) -> None:
    """Print a status message to stderr.

    WHY: Status output must not pollute stdout so --stream can be piped.
    """
    print(msg, file=sys.stderr, flush=True)


def get_formatter(key: str) -> BaseFormatter:
    try:
        return FORMATTERS[key]()
    except KeyError:
        raise UnknownFormatError(
            "Invalid format {!r}. Must be one of {}".format(key, ", ".join(sorted(FORMATTERS)))
        ) from None


def print_segment(segment: Segment) -> None:
    """Write one segment to stdout the moment it is available."""
    print(
        "[{} -> {}]  {}".format(clock(segment.start), clock(segment.end), segment.text.strip()),
        flush=True,
    )


def write_output(result: TranscriptionResult, path: Path, formatter: BaseFormatter) -> Path:
    """Encode ``result`` with ``formatter`` and write it to ``path``.

    RULES:
    - String content written as UTF-8 text
    - Bytes content written in binary mode
    """
    output = formatter.format(result)
    path = Path(path)
    if isinstance(output.content, bytes):
        path.write_bytes(output.content)
    else:
        path.write_text(output.content, encoding="utf-8")
    return path


def run(
    options: PipelineOptions,
    engine: Optional[Engine] = None,
    converter: Optional[Converter] = None,
    client: Optional[httpx.Client] = None,
    formatter: Optional[BaseFormatter] = None,
    on_status: StatusCallback = status,
) -> TranscriptionResult:
    """Transcribe ``options.input_path`` into ``options.output_path``.

    Args:
        options: Input/output paths, model, format and verbosity.
        engine: Engine to drive (default: libwhisper via ctypes).
        converter: Audio converter for the fallback path (default: ffmpeg).
        client: httpx client used if the model must be downloaded.
        formatter: Overrides the formatter looked up from options.format.
        on_status: Receives status lines when progress output is enabled.

    Returns:
        The collected TranscriptionResult (already written to disk).
    """
    verbosity = options.verbosity

    def report(msg: str) -> None:
        if verbosity.show_progress:
            on_status(msg)

    def report_engine(msg: str) -> None:
        if verbosity.show_engine_logs:
            on_status(msg)

    formatter = formatter or get_formatter(options.format)

    report("loading model")
    model_file = models.resolve(
        options.model,
        data_dir=options.data_dir,
        client=client,
        show_progress=verbosity.show_progress,
        on_status=report,
    )

    report("preparing audio")
    normalizer = AudioNormalizer(
        converter=converter,
        verbose=verbosity.show_engine_logs,
        on_status=report_engine,
    )
    samples = normalizer.load(options.input_path)
    logger.debug("Loaded %d samples (%s)", len(samples), samples.duration)
    if len(samples) == 0:
        raise EmptyAudioError("no audio samples in {}".format(options.input_path))

    report("transcribing audio file")
    with TranscriptionDriver.load_model(
        model_file,
        engine=engine,
        quiet=not verbosity.show_engine_logs,
        on_status=report_engine,
    ) as driver:
        result = driver.transcribe(
            samples,
            on_segment=print_segment if options.stream else None,
        )

    report("writing {} with format {}".format(options.output_path, formatter.name))
    write_output(result, options.output_path, formatter)
    return result
