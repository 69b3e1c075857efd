"""Configuration constants, model names, and .env loading.

WHY: Centralizes all configurable values so they are easy to find,
update, and override. The model list, output formats, and download
location are plain data structures, not buried in logic.

HOW: python-dotenv loads the .env file on import. Constants are defined
as module-level tuples and strings. get_data_dir() resolves the per-user
directory where model files live.

RULES:
- VALID_MODELS is the complete set of downloadable ggml models
- Model files are named ggml-<name>.bin inside the data directory
- SAMPLE_RATE is fixed by whisper.cpp and is not configurable
- All other defaults can be overridden via environment variables
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env from the directory the command is run from
load_dotenv()

# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

VALID_MODELS: tuple[str, ...] = (
    "tiny.en", "tiny",
    "base.en", "base",
    "small.en", "small",
    "medium.en", "medium",
    "large-v1", "large",
)
"""Model names accepted by --model, in the order they are listed to users."""

# https://github.com/ggerganov/whisper.cpp/blob/master/models/download-ggml-model.sh
MODEL_BASE_URL = os.getenv(
    "BLISPER_MODEL_URL",
    "https://huggingface.co/ggerganov/whisper.cpp/resolve/main/ggml",
)
DEFAULT_MODEL = os.getenv("BLISPER_DEFAULT_MODEL", "small")

PARTIAL_SUFFIX = ".part"
"""Suffix for an in-flight download; renamed away only on success."""

# ---------------------------------------------------------------------------
# Audio contract
# ---------------------------------------------------------------------------

SAMPLE_RATE = 16000
CHANNELS = 1

FFMPEG_BINARY = os.getenv("BLISPER_FFMPEG", "ffmpeg")
WHISPER_LIBRARY = os.getenv("BLISPER_WHISPER_LIB", "")

# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------

DEFAULT_FORMAT = os.getenv("BLISPER_DEFAULT_FORMAT", "txt")


@dataclass(frozen=True)
class Verbosity:
    """Two independent output switches.

    show_progress controls the user-facing status lines and the download
    bar. show_engine_logs controls whether the native engine and ffmpeg
    may write to the terminal; when False their output is captured and
    only logged at debug level. Neither switch changes what is attempted.
    """

    show_progress: bool = True
    show_engine_logs: bool = False


def get_data_dir() -> Path:
    """Return the directory where blisper stores the user's model files.

    RULES:
    - BLISPER_DATA_DIR wins when set
    - Windows: %LocalAppData%/blisper
    - $XDG_DATA_HOME/blisper when XDG_DATA_HOME is set
    - Otherwise ~/.local/share/blisper
    """
    override = os.getenv("BLISPER_DATA_DIR", "").strip()
    if override:
        return Path(override)

    base: Optional[str]
    if sys.platform == "win32":
        base = os.getenv("LocalAppData")
    elif os.getenv("XDG_DATA_HOME"):
        base = os.getenv("XDG_DATA_HOME")
    else:
        base = str(Path.home() / ".local" / "share")
    return Path(base or ".") / "blisper"
