"""Tests for file-descriptor level stdout/stderr capture.

WHY: Capture rewires process-wide state. A bug here doesn't fail one
call; it leaves the whole process without a usable stdout or stderr,
or deadlocks a writer on a full pipe.

HOW: Tests write with os.write() and from child processes (both bypass
sys.stdout), then check the captured bytes. pytest's capfd fixture
verifies that the real descriptors work again afterwards.

RULES:
- Every test leaves no capture session active
- Writes go through os.write or subprocesses, never print()
"""

from __future__ import annotations

import os
import subprocess
import sys
import time

import pytest

from blisper import capture
from blisper.capture import CapturedStreams, captured, maybe_captured
from blisper.errors import AlreadyEndedError, CaptureActiveError, CaptureError


def _write_all(fd: int, data: bytes) -> None:
    view = memoryview(data)
    while view:
        written = os.write(fd, view)
        view = view[written:]


class TestBeginEnd:
    def test_captures_both_streams(self):
        handle = capture.begin()
        try:
            os.write(1, b"to stdout\n")
            os.write(2, b"to stderr\n")
        finally:
            result = capture.end(handle)

        assert result == CapturedStreams(stdout=b"to stdout\n", stderr=b"to stderr\n")
        assert result.stdout_text == "to stdout\n"

    def test_captured_output_does_not_reach_terminal(self, capfd):
        handle = capture.begin()
        os.write(2, b"engine noise\n")
        capture.end(handle)

        _, err = capfd.readouterr()
        assert "engine noise" not in err

    def test_captures_child_process_output(self):
        code = "import sys; sys.stdout.write('child out'); sys.stderr.write('child err')"
        with captured() as session:
            subprocess.run([sys.executable, "-c", code], check=True)

        assert session.result.stdout == b"child out"
        assert session.result.stderr == b"child err"

    def test_large_output_does_not_block_writer(self):
        payload = b"x" * (1 << 20)  # far beyond any pipe buffer
        handle = capture.begin()
        try:
            _write_all(2, payload)
        finally:
            result = capture.end(handle)

        assert len(result.stderr) == len(payload)

    def test_empty_session(self):
        handle = capture.begin()
        result = capture.end(handle)
        assert result.stdout == b""
        assert result.stderr == b""


class TestSingleUse:
    def test_end_twice_raises_and_streams_still_work(self, capfd):
        handle = capture.begin()
        capture.end(handle)

        with pytest.raises(AlreadyEndedError):
            capture.end(handle)

        assert handle.ended
        os.write(1, b"visible again\n")
        out, _ = capfd.readouterr()
        assert "visible again" in out

    def test_second_begin_is_rejected(self):
        handle = capture.begin()
        try:
            assert capture.is_active()
            with pytest.raises(CaptureActiveError):
                capture.begin()
        finally:
            capture.end(handle)
        assert not capture.is_active()

    def test_new_session_allowed_after_end(self):
        capture.end(capture.begin())
        handle = capture.begin()
        os.write(1, b"again")
        assert capture.end(handle).stdout == b"again"


class TestFailures:
    def test_pipe_failure_leaves_streams_untouched(self, monkeypatch, capfd):
        def _boom():
            raise OSError("too many open files")

        monkeypatch.setattr(capture.os, "pipe", _boom)

        with pytest.raises(CaptureError):
            capture.begin()

        monkeypatch.undo()
        assert not capture.is_active()
        os.write(1, b"still here\n")
        out, _ = capfd.readouterr()
        assert "still here" in out

    def test_redirect_failure_restores_stream_already_redirected(self, monkeypatch, capfd):
        real_dup2 = os.dup2

        def _dup2_refusing_stderr(fd, fd2, *args, **kwargs):
            if fd2 == 2:
                raise OSError("bad file descriptor")
            return real_dup2(fd, fd2, *args, **kwargs)

        monkeypatch.setattr(capture.os, "dup2", _dup2_refusing_stderr)

        with pytest.raises(CaptureError):
            capture.begin()

        monkeypatch.undo()
        assert not capture.is_active()
        os.write(1, b"stdout is back\n")
        out, _ = capfd.readouterr()
        assert "stdout is back" in out

    def test_restore_failure_still_restores_other_stream(self, monkeypatch, capfd):
        real_dup2 = os.dup2
        handle = capture.begin()

        def _dup2_reporting_failure_on_stdout(fd, fd2, *args, **kwargs):
            # Descriptor is put back so later tests keep a working fd 1;
            # only the report of the call fails.
            real_dup2(fd, fd2, *args, **kwargs)
            if fd2 == 1:
                raise OSError("interrupted restore")

        monkeypatch.setattr(capture.os, "dup2", _dup2_reporting_failure_on_stdout)

        with pytest.raises(CaptureError):
            capture.end(handle)

        monkeypatch.undo()
        assert not capture.is_active()
        assert handle.ended
        os.write(2, b"stderr is back\n")
        _, err = capfd.readouterr()
        assert "stderr is back" in err

    def test_child_outliving_session_does_not_block_end(self, monkeypatch):
        monkeypatch.setattr(capture, "_JOIN_TIMEOUT_S", 0.2)
        code = "import sys, time; sys.stderr.write('early'); sys.stderr.flush(); time.sleep(1.5)"

        handle = capture.begin()
        child = subprocess.Popen([sys.executable, "-c", code])
        time.sleep(0.5)
        started = time.monotonic()
        result = capture.end(handle)
        elapsed = time.monotonic() - started
        child.wait()

        assert elapsed < 1.0
        assert result.stderr in (b"", b"early")
        assert not capture.is_active()

    def test_result_available_when_block_raises(self):
        with pytest.raises(RuntimeError):
            with captured() as session:
                os.write(2, b"before the error")
                raise RuntimeError("boom")

        assert session.result.stderr == b"before the error"
        assert not capture.is_active()


class TestMaybeCaptured:
    def test_disabled_is_pass_through(self, capfd):
        with maybe_captured(False) as session:
            os.write(2, b"shown\n")

        assert not session.enabled
        assert session.result == CapturedStreams()
        _, err = capfd.readouterr()
        assert "shown" in err

    def test_enabled_captures(self):
        with maybe_captured(True) as session:
            os.write(2, b"hidden")

        assert session.enabled
        assert session.result.stderr == b"hidden"
