"""File-descriptor level capture of stdout and stderr.

WHY: whisper.cpp prints model-loading and timing diagnostics straight to
the process's stderr from C code, and ffmpeg inherits our descriptors
when it runs. Neither offers a way to be quiet, and swapping
``sys.stdout`` does nothing for writes that bypass Python. The only
reliable interception point is the descriptor table itself.

HOW: begin() duplicates fd 1 and fd 2 aside, points them at the write
ends of two fresh pipes, and starts one drain thread per pipe so a
writer never blocks on a full pipe buffer. end() puts the original
descriptors back, closes the write ends so the drain threads hit EOF,
collects their buffers and returns them as CapturedStreams.

    writer ──> fd 1 ══pipe══> drain thread ──> bytearray
    writer ──> fd 2 ══pipe══> drain thread ──> bytearray

RULES:
- One session per process at a time; a second begin() raises
  CaptureActiveError instead of nesting
- begin() either redirects both streams or neither
- end() is single-use per handle; the second call raises
  AlreadyEndedError and touches nothing
- end() always tries to restore both streams, even if one step fails
- Python-level sys.stdout/sys.stderr buffers are flushed at both edges
- Once started, a drain thread owns its read end; a capture cut short by
  a child that outlives the session returns a snapshot of what was read
"""

from __future__ import annotations

import logging
import os
import sys
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, List, Optional

from blisper.errors import AlreadyEndedError, CaptureActiveError, CaptureError

logger = logging.getLogger(__name__)

STDOUT_FD = 1
STDERR_FD = 2

_READ_CHUNK = 65536
_JOIN_TIMEOUT_S = 10.0

# Held for the whole lifetime of a session; never re-entered.
_session_lock = threading.Lock()


@dataclass(frozen=True)
class CapturedStreams:
    """Everything written to stdout and stderr during one capture session."""

    stdout: bytes = b""
    stderr: bytes = b""

    @property
    def stdout_text(self) -> str:
        return self.stdout.decode("utf-8", errors="replace")

    @property
    def stderr_text(self) -> str:
        return self.stderr.decode("utf-8", errors="replace")


class _RedirectedStream:
    """One standard descriptor, its saved original, and the pipe replacing it."""

    def __init__(self, target_fd: int) -> None:
        self.target_fd = target_fd
        self.saved_fd = os.dup(target_fd)
        try:
            self.read_fd, self.write_fd = os.pipe()
        except OSError:
            os.close(self.saved_fd)
            raise
        self.buffer = bytearray()
        self.thread: Optional[threading.Thread] = None

    def start_drain(self) -> None:
        self.thread = threading.Thread(
            target=self._drain,
            name="blisper-capture-fd{}".format(self.target_fd),
            daemon=True,
        )
        self.thread.start()

    def _drain(self) -> None:
        try:
            while True:
                chunk = os.read(self.read_fd, _READ_CHUNK)
                if not chunk:
                    break
                self.buffer.extend(chunk)
        except OSError:
            logger.exception("Error draining captured fd %d", self.target_fd)
        finally:
            # The drain thread owns the read end once started
            _close_quietly(self.read_fd)

    def close_pipe_fds(self) -> None:
        for fd in (self.read_fd, self.write_fd, self.saved_fd):
            _close_quietly(fd)


def _close_quietly(fd: int) -> None:
    try:
        os.close(fd)
    except OSError:
        logger.debug("fd %d already closed", fd)


def _flush_python_streams() -> None:
    for stream in (sys.stdout, sys.stderr):
        if stream is None:
            continue
        try:
            stream.flush()
        except (OSError, ValueError):
            logger.debug("Could not flush %r", stream)


class CaptureHandle:
    """Token for one open capture session, returned by begin()."""

    def __init__(self, streams: List[_RedirectedStream]) -> None:
        self._streams: Optional[List[_RedirectedStream]] = streams

    @property
    def ended(self) -> bool:
        return self._streams is None

    def _detach(self) -> List[_RedirectedStream]:
        if self._streams is None:
            raise AlreadyEndedError("end() called twice on the same capture handle")
        streams, self._streams = self._streams, None
        return streams


def begin() -> CaptureHandle:
    """Redirect fd 1 and fd 2 into in-memory buffers.

    Raises:
        CaptureActiveError: Another session is still open.
        CaptureError: A dup, pipe or dup2 call failed. Nothing is left
            redirected, so the call is safe to retry.
    """
    if not _session_lock.acquire(blocking=False):
        raise CaptureActiveError("a stdout/stderr capture session is already active")

    _flush_python_streams()

    prepared: List[_RedirectedStream] = []
    try:
        for fd in (STDOUT_FD, STDERR_FD):
            prepared.append(_RedirectedStream(fd))
    except OSError as exc:
        for stream in prepared:
            stream.close_pipe_fds()
        _session_lock.release()
        raise CaptureError("could not prepare capture pipes: {}".format(exc)) from exc

    redirected: List[_RedirectedStream] = []
    try:
        for stream in prepared:
            os.dup2(stream.write_fd, stream.target_fd)
            redirected.append(stream)
    except OSError as exc:
        for stream in redirected:
            os.dup2(stream.saved_fd, stream.target_fd)
        for stream in prepared:
            stream.close_pipe_fds()
        _session_lock.release()
        raise CaptureError("could not redirect standard streams: {}".format(exc)) from exc

    for stream in prepared:
        stream.start_drain()

    return CaptureHandle(prepared)


def end(handle: CaptureHandle) -> CapturedStreams:
    """Restore the original descriptors and return what was captured.

    Raises:
        AlreadyEndedError: This handle has already been ended.
        CaptureError: Restoring a descriptor failed. Restoration of the
            other stream is still attempted before this is raised.
    """
    streams = handle._detach()
    failures: List[OSError] = []

    _flush_python_streams()

    for stream in streams:
        try:
            os.dup2(stream.saved_fd, stream.target_fd)
        except OSError as exc:
            logger.error("Could not restore fd %d: %s", stream.target_fd, exc)
            failures.append(exc)

    # Once the last write end is gone the drain thread sees EOF.
    for stream in streams:
        _close_quietly(stream.write_fd)

    for stream in streams:
        if stream.thread is not None:
            stream.thread.join(_JOIN_TIMEOUT_S)
            if stream.thread.is_alive():
                # A child process still holds the pipe open. The thread keeps
                # its read end and closes it once the child lets go.
                logger.warning(
                    "Capture of fd %d did not finish; returning the output read so far",
                    stream.target_fd,
                )

    for stream in streams:
        _close_quietly(stream.saved_fd)

    _session_lock.release()

    if failures:
        raise CaptureError(
            "could not restore standard streams: {}".format(failures[0])
        ) from failures[0]

    out, err = streams
    return CapturedStreams(stdout=bytes(out.buffer), stderr=bytes(err.buffer))


def is_active() -> bool:
    """Return True while a capture session is open."""
    return _session_lock.locked()


@dataclass
class CaptureSession:
    """Yielded by captured(); ``result`` is filled in when the block exits."""

    enabled: bool = True
    result: CapturedStreams = field(default_factory=CapturedStreams)


@contextmanager
def captured() -> Iterator[CaptureSession]:
    """Capture stdout/stderr for the duration of a ``with`` block."""
    session = CaptureSession()
    handle = begin()
    try:
        yield session
    finally:
        session.result = end(handle)


@contextmanager
def maybe_captured(enabled: bool) -> Iterator[CaptureSession]:
    """Like captured(), but a pass-through when ``enabled`` is False."""
    if not enabled:
        yield CaptureSession(enabled=False)
        return
    with captured() as session:
        yield session
