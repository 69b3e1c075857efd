"""Tests for locating and loading the whisper.cpp shared library."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from blisper.engine import whisper_cpp
from blisper.engine.whisper_cpp import WhisperCppEngine, find_library
from blisper.errors import EngineUnavailableError


class TestFindLibrary:
    def test_explicit_path_wins(self):
        assert find_library("/opt/whisper/libwhisper.so") == "/opt/whisper/libwhisper.so"

    def test_nothing_found(self):
        with patch.object(whisper_cpp, "WHISPER_LIBRARY", ""), \
                patch("blisper.engine.whisper_cpp.ctypes.util.find_library", return_value=None):
            with pytest.raises(EngineUnavailableError):
                find_library()


class TestWhisperCppEngine:
    def test_unloadable_library(self, tmp_path):
        bogus = tmp_path / "libwhisper.so"
        bogus.write_bytes(b"not a shared object")

        with pytest.raises(EngineUnavailableError) as excinfo:
            WhisperCppEngine(str(bogus))
        assert str(bogus) in str(excinfo.value)
