"""Drive a whisper.cpp model through one or more transcription runs.

WHY: The native API is a handful of calls that must happen in a strict
order, own resources that must be freed exactly once, and print to
stderr without asking. The driver makes the order explicit, owns the
resources, and keeps the engine quiet unless the user wants to see it.

HOW: A small state machine around an Engine:

    UNINITIALIZED --load_model--> MODEL_LOADED --new_context--> CONTEXT_READY
    CONTEXT_READY --process--> PROCESSING --> DONE --new_context--> CONTEXT_READY
    any --close--> CLOSED

Every native call that may log (init, state allocation, the full run)
runs inside maybe_captured(quiet). Captured output is logged at debug
level and otherwise dropped.

RULES:
- A fresh processing context (with reset timings) is required per run
- process() rejects empty sample buffers
- A non-zero engine status raises ProcessingError and drops the context
- The per-segment callback runs after capture has ended, in order, so
  a callback that prints is never swallowed
- segments() returns a one-shot generator bounded by n_segments
- close() frees the state and then the model, exactly once
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from datetime import timedelta
from pathlib import Path
from typing import Any, Iterator, Optional, Union

from blisper.capture import CaptureSession, maybe_captured
from blisper.core.ir import SampleBuffer, Segment, TranscriptionResult
from blisper.engine import Engine, default_engine
from blisper.errors import DriverStateError, ModelInitError, ProcessingError

logger = logging.getLogger(__name__)

SegmentCallback = Callable[[Segment], None]


class DriverState(str, enum.Enum):
    """Lifecycle of a TranscriptionDriver."""

    UNINITIALIZED = "uninitialized"
    MODEL_LOADED = "model_loaded"
    CONTEXT_READY = "context_ready"
    PROCESSING = "processing"
    DONE = "done"
    CLOSED = "closed"


def centiseconds(value: int) -> timedelta:
    """whisper.cpp reports segment times in units of 10 ms."""
    return timedelta(milliseconds=value * 10)


class TranscriptionDriver:
    """Owns one loaded model and its per-run processing contexts.

    Use as a context manager so the native model is always released:

        with TranscriptionDriver.load_model(path) as driver:
            result = driver.transcribe(samples)
    """

    def __init__(
        self,
        engine: Engine,
        quiet: bool = True,
        on_status: Callable[[str], None] | None = None,
    ) -> None:
        self._engine = engine
        self.quiet = quiet
        self.on_status = on_status
        self._handle: Optional[Any] = None
        self._run_state: Optional[Any] = None
        self.state = DriverState.UNINITIALIZED

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @classmethod
    def load_model(
        cls,
        model_path: Union[str, Path],
        engine: Optional[Engine] = None,
        quiet: bool = True,
        on_status: Callable[[str], None] | None = None,
    ) -> TranscriptionDriver:
        """Create a driver with the model at ``model_path`` loaded.

        Raises:
            ModelInitError: The engine could not build a context from the
                file (missing, corrupt or incompatible model).
        """
        driver = cls(engine or default_engine(), quiet=quiet, on_status=on_status)
        driver._load(str(model_path))
        return driver

    def _load(self, model_path: str) -> None:
        self._require(DriverState.UNINITIALIZED)
        with maybe_captured(self.quiet) as session:
            handle = self._engine.init(model_path)
        self._log_captured("model init", session)

        if not handle:
            raise ModelInitError("unable to init context from {}".format(model_path))

        self._handle = handle
        self.state = DriverState.MODEL_LOADED
        logger.debug("Loaded model %s", model_path)

        if not self.quiet and self.on_status:
            self.on_status(self._engine.system_info())

    def new_context(self) -> None:
        """Allocate a fresh processing context and reset the timing counters."""
        self._require(DriverState.MODEL_LOADED, DriverState.CONTEXT_READY, DriverState.DONE)
        self._free_run_state()

        with maybe_captured(self.quiet) as session:
            run_state = self._engine.init_state(self._handle)
        self._log_captured("state init", session)

        if not run_state:
            raise ModelInitError("unable to allocate a processing context")

        self._engine.reset_timings(self._handle)
        self._run_state = run_state
        self.state = DriverState.CONTEXT_READY

    def close(self) -> None:
        """Release the processing context and the model. Safe to call twice."""
        if self.state == DriverState.CLOSED:
            return
        self._free_run_state()
        if self._handle is not None:
            self._engine.free(self._handle)
            self._handle = None
        self.state = DriverState.CLOSED

    def __enter__(self) -> TranscriptionDriver:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        self.close()

    # ------------------------------------------------------------------
    # Running
    # ------------------------------------------------------------------

    def process(
        self,
        samples: SampleBuffer,
        on_segment: Optional[SegmentCallback] = None,
    ) -> None:
        """Run the model over ``samples``.

        Args:
            samples: Non-empty 16 kHz mono buffer.
            on_segment: Optional callback, called once per segment in
                order after the engine finishes. Without it, segments are
                read afterwards with segments().

        Raises:
            ValueError: ``samples`` is empty.
            ProcessingError: The engine returned a non-zero status.
        """
        if not isinstance(samples, SampleBuffer):
            raise TypeError("samples must be a SampleBuffer")
        if len(samples) == 0:
            raise ValueError("cannot transcribe an empty sample buffer")
        self._require(DriverState.CONTEXT_READY)

        self.state = DriverState.PROCESSING
        status: Optional[int] = None
        try:
            with maybe_captured(self.quiet) as session:
                status = self._engine.full(self._handle, self._run_state, samples.samples)
            self._log_captured("transcription", session)
        finally:
            if status != 0:
                self._free_run_state()
                self.state = DriverState.MODEL_LOADED

        if status != 0:
            raise ProcessingError(status)

        self.state = DriverState.DONE

        if on_segment is not None:
            for segment in self.segments():
                on_segment(segment)

    def segments(self) -> Iterator[Segment]:
        """Return a one-shot iterator over the segments of the last run."""
        self._require(DriverState.DONE)
        return self._iter_segments(self._run_state)

    def _iter_segments(self, run_state: Any) -> Iterator[Segment]:
        engine = self._engine
        index = 0
        while True:
            if self._run_state is not run_state:
                raise DriverStateError("processing context released during iteration")
            if index >= engine.n_segments(run_state):
                return
            yield Segment(
                start=centiseconds(engine.segment_t0(run_state, index)),
                end=centiseconds(engine.segment_t1(run_state, index)),
                text=engine.segment_text(run_state, index),
            )
            index += 1

    def transcribe(
        self,
        samples: SampleBuffer,
        on_segment: Optional[SegmentCallback] = None,
    ) -> TranscriptionResult:
        """Run a fresh context over ``samples`` and collect every segment."""
        result = TranscriptionResult()

        def _deliver(segment: Segment) -> None:
            result.append(segment)
            if on_segment is not None:
                on_segment(segment)

        self.new_context()
        self.process(samples, on_segment=_deliver)
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require(self, *allowed: DriverState) -> None:
        if self.state not in allowed:
            raise DriverStateError(
                "cannot do that while {}; expected one of: {}".format(
                    self.state.value, ", ".join(s.value for s in allowed)
                )
            )

    def _free_run_state(self) -> None:
        if self._run_state is not None:
            self._engine.free_state(self._run_state)
            self._run_state = None

    def _log_captured(self, step: str, session: CaptureSession) -> None:
        if not session.enabled:
            return
        text = session.result.stdout_text + session.result.stderr_text
        if text:
            logger.debug("Engine output during %s:\n%s", step, text)
