"""ctypes binding to the whisper.cpp shared library.

WHY: whisper.cpp exposes a plain C API. Loading it with ctypes needs no
compiler at install time; the user only needs ``libwhisper`` on the
library path (or BLISPER_WHISPER_LIB pointing at it).

HOW: Each C function used by the Engine protocol gets explicit argtypes
and restype. Model contexts and per-run states are opaque pointers.
whisper_full_params is passed by value, so it lives in an opaque
structure large enough for any released layout: whisper.cpp writes its
defaults into it and reads them back, never touching the spare tail.

RULES:
- Greedy sampling with library defaults; no parameter is modified here
- Samples must be contiguous float32; anything else is copied first
- Segment text is decoded as UTF-8 with replacement characters
"""

from __future__ import annotations

import ctypes
import ctypes.util
import logging
from typing import Optional

import numpy as np

from blisper.config import WHISPER_LIBRARY
from blisper.errors import EngineUnavailableError

logger = logging.getLogger(__name__)

WHISPER_SAMPLING_GREEDY = 0

# 2 KiB; whisper_full_params is a few hundred bytes in every release.
_PARAMS_STORAGE_WORDS = 256


class _FullParams(ctypes.Structure):
    _fields_ = [("_storage", ctypes.c_uint64 * _PARAMS_STORAGE_WORDS)]


def find_library(path: Optional[str] = None) -> str:
    """Return the path or soname to load libwhisper from."""
    candidate = path or WHISPER_LIBRARY or ctypes.util.find_library("whisper")
    if not candidate:
        raise EngineUnavailableError(
            "libwhisper not found. Build whisper.cpp as a shared library and "
            "set BLISPER_WHISPER_LIB to its path."
        )
    return candidate


class WhisperCppEngine:
    """Engine implementation backed by libwhisper."""

    def __init__(self, library_path: Optional[str] = None) -> None:
        path = find_library(library_path)
        try:
            self._lib = ctypes.CDLL(path)
        except OSError as exc:
            raise EngineUnavailableError("could not load {}: {}".format(path, exc)) from exc
        logger.debug("Loaded whisper.cpp from %s", path)
        self._declare()
        self._params = self._lib.whisper_full_default_params(WHISPER_SAMPLING_GREEDY)

    def _declare(self) -> None:
        lib = self._lib
        vp, c_int = ctypes.c_void_p, ctypes.c_int

        lib.whisper_init_from_file.argtypes = [ctypes.c_char_p]
        lib.whisper_init_from_file.restype = vp
        lib.whisper_init_state.argtypes = [vp]
        lib.whisper_init_state.restype = vp
        lib.whisper_free_state.argtypes = [vp]
        lib.whisper_free_state.restype = None
        lib.whisper_free.argtypes = [vp]
        lib.whisper_free.restype = None
        lib.whisper_reset_timings.argtypes = [vp]
        lib.whisper_reset_timings.restype = None
        lib.whisper_print_system_info.argtypes = []
        lib.whisper_print_system_info.restype = ctypes.c_char_p

        lib.whisper_full_default_params.argtypes = [c_int]
        lib.whisper_full_default_params.restype = _FullParams
        lib.whisper_full_with_state.argtypes = [
            vp, vp, _FullParams, ctypes.POINTER(ctypes.c_float), c_int,
        ]
        lib.whisper_full_with_state.restype = c_int

        lib.whisper_full_n_segments_from_state.argtypes = [vp]
        lib.whisper_full_n_segments_from_state.restype = c_int
        lib.whisper_full_get_segment_text_from_state.argtypes = [vp, c_int]
        lib.whisper_full_get_segment_text_from_state.restype = ctypes.c_char_p
        lib.whisper_full_get_segment_t0_from_state.argtypes = [vp, c_int]
        lib.whisper_full_get_segment_t0_from_state.restype = ctypes.c_int64
        lib.whisper_full_get_segment_t1_from_state.argtypes = [vp, c_int]
        lib.whisper_full_get_segment_t1_from_state.restype = ctypes.c_int64

    # ------------------------------------------------------------------
    # Engine protocol
    # ------------------------------------------------------------------

    def init(self, model_path: str) -> Optional[int]:
        return self._lib.whisper_init_from_file(model_path.encode("utf-8"))

    def init_state(self, handle: int) -> Optional[int]:
        return self._lib.whisper_init_state(handle)

    def free_state(self, state: int) -> None:
        self._lib.whisper_free_state(state)

    def free(self, handle: int) -> None:
        self._lib.whisper_free(handle)

    def reset_timings(self, handle: int) -> None:
        self._lib.whisper_reset_timings(handle)

    def full(self, handle: int, state: int, samples: np.ndarray) -> int:
        data = np.ascontiguousarray(samples, dtype=np.float32)
        ptr = data.ctypes.data_as(ctypes.POINTER(ctypes.c_float))
        return int(self._lib.whisper_full_with_state(handle, state, self._params, ptr, len(data)))

    def n_segments(self, state: int) -> int:
        return int(self._lib.whisper_full_n_segments_from_state(state))

    def segment_text(self, state: int, index: int) -> str:
        raw = self._lib.whisper_full_get_segment_text_from_state(state, index)
        return (raw or b"").decode("utf-8", errors="replace")

    def segment_t0(self, state: int, index: int) -> int:
        return int(self._lib.whisper_full_get_segment_t0_from_state(state, index))

    def segment_t1(self, state: int, index: int) -> int:
        return int(self._lib.whisper_full_get_segment_t1_from_state(state, index))

    def system_info(self) -> str:
        raw = self._lib.whisper_print_system_info()
        return (raw or b"").decode("utf-8", errors="replace")
