"""Engine protocol: the narrow contract the driver needs from whisper.cpp.

WHY: The driver's state machine, stream capture and segment iteration
are worth testing without a 500 MB model and a compiled shared library.
Describing the native calls as a Protocol lets tests substitute a stub.

HOW: The method set mirrors the whisper.cpp C API one-to-one (context,
per-run state, full run, segment accessors). WhisperCppEngine in
whisper_cpp.py implements it with ctypes.

RULES:
- init() returns None when the model cannot be loaded
- full() returns the native status; 0 means success
- segment_t0/segment_t1 are in centiseconds, as whisper.cpp reports them
"""

from __future__ import annotations

from typing import Any, Optional, Protocol

import numpy as np


class Engine(Protocol):
    def init(self, model_path: str) -> Optional[Any]:
        ...

    def init_state(self, handle: Any) -> Optional[Any]:
        ...

    def free_state(self, state: Any) -> None:
        ...

    def free(self, handle: Any) -> None:
        ...

    def reset_timings(self, handle: Any) -> None:
        ...

    def full(self, handle: Any, state: Any, samples: np.ndarray) -> int:
        ...

    def n_segments(self, state: Any) -> int:
        ...

    def segment_text(self, state: Any, index: int) -> str:
        ...

    def segment_t0(self, state: Any, index: int) -> int:
        ...

    def segment_t1(self, state: Any, index: int) -> int:
        ...

    def system_info(self) -> str:
        ...


def default_engine() -> Engine:
    """Load the whisper.cpp shared library (imported lazily)."""
    from blisper.engine.whisper_cpp import WhisperCppEngine

    return WhisperCppEngine()


__all__ = ["Engine", "default_engine"]
