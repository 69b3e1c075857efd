"""Command-line interface for blisper.

WHY: Users need one command that turns an audio file into a subtitle
file. The CLI wires together the full pipeline (model download, audio
normalization, whisper.cpp transcription and formatter output) and is
the only place where errors become exit codes.

HOW: Uses argparse for an input path, an output path and a handful of
flags, builds PipelineOptions, and calls pipeline.run(). Status messages
go to stderr; with --stream, segments go to stdout as they are produced.

RULES:
- Positional arguments: <input-audio> <output-transcript>
- --format defaults to txt; --model/-m defaults to small
- --quiet/-q hides status text; --verbose/-v shows engine and ffmpeg
  output plus debug logging. The two are independent.
- --config and --list-models print information and exit without
  needing the positional arguments
- Exit codes: 0 success, 1 failure, 130 cancelled by the user
- OSError (missing input, unwritable output, full disk) is a failure
  with a one-line message, never a traceback
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from blisper import models
from blisper.config import DEFAULT_FORMAT, DEFAULT_MODEL, VALID_MODELS, Verbosity, get_data_dir
from blisper.errors import BlisperError, DownloadCancelledError
from blisper.formatters import FORMATTERS
from blisper.pipeline import PipelineOptions, run, status

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CANCELLED = 130


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI.

    WHY: Separating parser construction from main() makes the CLI
    testable: tests can inspect the parser without running the pipeline.
    """
    parser = argparse.ArgumentParser(
        prog="blisper",
        description="Use whisper.cpp to transcribe <input-audio> into <output-transcript>.",
        epilog="Models are downloaded automatically into {} the first time "
               "they are used.".format(get_data_dir()),
    )

    parser.add_argument("input_file", nargs="?", help="Audio or video file to transcribe.")
    parser.add_argument("output_file", nargs="?", help="Where to write the transcript.")

    parser.add_argument(
        "--format",
        default=DEFAULT_FORMAT,
        choices=sorted(FORMATTERS.keys()),
        help="Output format (default: %(default)s).",
    )
    parser.add_argument(
        "--model", "-m",
        default=DEFAULT_MODEL,
        choices=VALID_MODELS,
        metavar="MODEL",
        help="Whisper model to use: {} (default: %(default)s).".format(", ".join(VALID_MODELS)),
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Do not print status messages or the download progress bar.",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show whisper.cpp and ffmpeg output and debug logging.",
    )
    parser.add_argument(
        "--stream",
        action="store_true",
        help="Print each segment to stdout as it is transcribed.",
    )
    parser.add_argument(
        "--config",
        action="store_true",
        help="Print the model directory and exit.",
    )
    parser.add_argument(
        "--list-models",
        action="store_true",
        help="List available models, marking the ones already downloaded.",
    )
    return parser


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )


def _list_models() -> None:
    installed = set(models.list_installed())
    for name in VALID_MODELS:
        marker = "*" if name in installed else " "
        print("{} {}".format(marker, name))


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the ``blisper`` command.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.config:
        print("Model dir: {}".format(get_data_dir()))
        return

    if args.list_models:
        _list_models()
        return

    if not args.input_file or not args.output_file:
        parser.error("Missing argument. Must have <input-audio> <output-transcript>")

    _configure_logging(args.verbose)

    options = PipelineOptions(
        input_path=Path(args.input_file),
        output_path=Path(args.output_file),
        model=args.model,
        format=args.format,
        stream=args.stream,
        verbosity=Verbosity(show_progress=not args.quiet, show_engine_logs=args.verbose),
    )

    try:
        run(options)
    except (DownloadCancelledError, KeyboardInterrupt):
        sys.exit(EXIT_CANCELLED)
    except (BlisperError, OSError) as e:
        logger.debug("Run failed", exc_info=True)
        status("Error: {}".format(e))
        sys.exit(EXIT_FAILURE)


if __name__ == "__main__":
    main()
