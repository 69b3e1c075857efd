"""Exception taxonomy for the transcription pipeline.

WHY: The CLI has to tell apart caller mistakes (a bad model name), hard
failures (network, ffmpeg, the native engine) and a user pressing
Ctrl-C, which is not an error at all. Typed exceptions make that a
matter of ``except`` clauses instead of string matching.

HOW: Everything derives from BlisperError so the CLI can catch the whole
family in one place. Exceptions carry the data a diagnostic needs
(model name, native status code, ffmpeg output) as attributes.

RULES:
- Lower layers raise; only the CLI turns exceptions into exit codes
- DownloadCancelledError means "exit quietly", never "print an error"
- DecodeFailure is deliberately NOT an exception (see audio.py)
"""

from __future__ import annotations

from typing import Iterable


class BlisperError(Exception):
    """Base class for every error raised by this package."""


class InvalidModelError(BlisperError, ValueError):
    """Raised when a model name is not one of the downloadable models."""

    def __init__(self, name: str, valid: Iterable[str]) -> None:
        self.name = name
        self.valid = tuple(valid)
        super().__init__(
            "invalid model name {!r}. Valid models are: {}".format(
                name, ", ".join(self.valid)
            )
        )


class NetworkError(BlisperError):
    """Raised when a model download fails for any reason but cancellation.

    Not retried internally; retries are the caller's decision.
    """


class DownloadCancelledError(BlisperError):
    """Raised when the user interrupts a download.

    The partial file has already been removed by the time this propagates.
    """


class ConversionError(BlisperError):
    """Raised when audio cannot be decoded even after conversion with ffmpeg.

    Attributes:
        output: Whatever ffmpeg wrote to stdout/stderr, if it was captured.
    """

    def __init__(self, message: str, output: str = "") -> None:
        self.output = output
        super().__init__(message)


class ModelInitError(BlisperError):
    """Raised when the engine cannot create a context from a model file."""


class ProcessingError(BlisperError):
    """Raised when the engine returns a non-zero status from a run.

    Attributes:
        status: The native status code.
    """

    def __init__(self, status: int) -> None:
        self.status = status
        super().__init__("transcription failed, engine status {}".format(status))


class EngineUnavailableError(BlisperError):
    """Raised when the whisper.cpp shared library cannot be loaded."""


class DriverStateError(BlisperError, RuntimeError):
    """Raised when a driver method is called in the wrong state."""


class CaptureError(BlisperError):
    """Raised when stdout/stderr could not be redirected or restored."""


class CaptureActiveError(CaptureError):
    """Raised by begin() while another capture session is still open."""


class AlreadyEndedError(CaptureError):
    """Raised when end() is called a second time on the same handle."""


class UnknownFormatError(BlisperError, ValueError):
    """Raised when an output format key is not in FORMATTERS."""


class EmptyAudioError(BlisperError):
    """Raised when the input decodes to zero samples."""
