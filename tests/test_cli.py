"""Tests for the blisper command-line interface.

HOW: pipeline.run is patched where cli imports it, so these tests only
check argument handling, option building and exit codes.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from blisper.cli import EXIT_CANCELLED, EXIT_FAILURE, build_parser, main
from blisper.config import VALID_MODELS, Verbosity
from blisper.errors import ConversionError, DownloadCancelledError, InvalidModelError


class TestParser:
    def test_defaults(self):
        args = build_parser().parse_args(["in.mp3", "out.txt"])
        assert args.format == "txt"
        assert args.model == "small"
        assert not args.quiet and not args.verbose and not args.stream

    def test_short_flags(self):
        args = build_parser().parse_args(["-m", "tiny.en", "-q", "-v", "a.wav", "b.vtt"])
        assert args.model == "tiny.en"
        assert args.quiet and args.verbose

    def test_invalid_format_rejected(self):
        with pytest.raises(SystemExit) as excinfo:
            build_parser().parse_args(["--format", "docx", "a.wav", "b.docx"])
        assert excinfo.value.code == 2

    def test_invalid_model_rejected(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--model", "huge", "a.wav", "b.txt"])


class TestMain:
    def test_builds_options(self):
        with patch("blisper.cli.run") as mock_run:
            main(["--format", "srt", "-m", "base", "--stream", "-q", "in.wav", "out.srt"])

        options = mock_run.call_args.args[0]
        assert options.input_path == Path("in.wav")
        assert options.output_path == Path("out.srt")
        assert options.format == "srt"
        assert options.model == "base"
        assert options.stream
        assert options.verbosity == Verbosity(show_progress=False, show_engine_logs=False)

    def test_verbose_enables_engine_logs(self):
        with patch("blisper.cli.run") as mock_run:
            main(["-v", "in.wav", "out.txt"])
        assert mock_run.call_args.args[0].verbosity == Verbosity(True, True)

    def test_missing_positionals(self, capsys):
        with patch("blisper.cli.run") as mock_run:
            with pytest.raises(SystemExit) as excinfo:
                main(["only-input.wav"])
        assert excinfo.value.code == 2
        mock_run.assert_not_called()
        assert "Missing argument" in capsys.readouterr().err

    def test_config_prints_model_dir(self, capsys, tmp_path, monkeypatch):
        monkeypatch.setenv("BLISPER_DATA_DIR", str(tmp_path))
        main(["--config"])
        assert capsys.readouterr().out.strip() == "Model dir: {}".format(tmp_path)

    def test_list_models_marks_installed(self, capsys, tmp_path, monkeypatch):
        monkeypatch.setenv("BLISPER_DATA_DIR", str(tmp_path))
        (tmp_path / "ggml-base.en.bin").write_bytes(b"x")

        main(["--list-models"])

        lines = capsys.readouterr().out.splitlines()
        assert len(lines) == len(VALID_MODELS)
        assert "* base.en" in lines
        assert "  tiny" in lines

    @pytest.mark.parametrize("error", [
        InvalidModelError("huge", VALID_MODELS),
        ConversionError("ffmpeg exited with status 1"),
        FileNotFoundError("input file not found: in.wav"),
        PermissionError(13, "Permission denied", "out.txt"),
        OSError(28, "No space left on device"),
    ])
    def test_failures_exit_1(self, error, capsys):
        with patch("blisper.cli.run", side_effect=error):
            with pytest.raises(SystemExit) as excinfo:
                main(["in.wav", "out.txt"])
        assert excinfo.value.code == EXIT_FAILURE
        assert capsys.readouterr().err.startswith("Error: ")

    @pytest.mark.parametrize("error", [DownloadCancelledError("cancelled"), KeyboardInterrupt()])
    def test_cancellation_exits_130(self, error):
        with patch("blisper.cli.run", side_effect=error):
            with pytest.raises(SystemExit) as excinfo:
                main(["in.wav", "out.txt"])
        assert excinfo.value.code == EXIT_CANCELLED

    def test_empty_audio_exits_1_without_traceback(self, empty_wav, tmp_path, monkeypatch, capsys):
        models_dir = tmp_path / "models"
        models_dir.mkdir()
        (models_dir / "ggml-tiny.bin").write_bytes(b"ggml")
        monkeypatch.setenv("BLISPER_DATA_DIR", str(models_dir))
        out = tmp_path / "out.txt"

        with pytest.raises(SystemExit) as excinfo:
            main(["-q", "-m", "tiny", str(empty_wav), str(out)])

        assert excinfo.value.code == EXIT_FAILURE
        err = capsys.readouterr().err
        assert err.startswith("Error: no audio samples in")
        assert "Traceback" not in err
        assert not out.exists()
