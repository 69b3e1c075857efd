"""Cancellation token and the signal handler that trips it.

WHY: A model download can run for minutes. When the user presses Ctrl-C
the copy must stop at once, delete its partial file and exit quietly,
not die with a KeyboardInterrupt traceback in the middle of a write. A
flag polled between chunks is not enough on its own: a read that is
stalled on the network only returns when data or the read timeout
arrives.

HOW: CancellationToken wraps a threading.Event. cancel_on_signals()
installs SIGINT/SIGTERM handlers that call token.interrupt(). Outside an
interruptible() block that only sets the flag, which the download loop
polls after every network read. Inside one, the first interrupt also
raises DownloadCancelledError from the handler, which aborts whatever
blocking call the main thread is sitting in. The previous handlers are
restored when the block exits.

RULES:
- cancel() is idempotent; the token only ever trips once
- Only the first interrupt raises, so a second Ctrl-C cannot break the
  cleanup of the first
- interrupt() raises only on the thread that entered interruptible()
- Handlers can only be installed from the main thread; elsewhere the
  block runs without them
"""

from __future__ import annotations

import logging
import signal
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Optional, Sequence

from blisper.errors import DownloadCancelledError

logger = logging.getLogger(__name__)

DEFAULT_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class CancellationToken:
    """A one-way flag shared between a signal handler and a worker loop."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._interruptible_thread: Optional[int] = None

    def cancel(self) -> None:
        if not self._event.is_set():
            logger.debug("Cancellation requested")
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise DownloadCancelledError("cancelled by user")

    @contextmanager
    def interruptible(self) -> Iterator[None]:
        """Let interrupt() abort the block immediately on this thread."""
        self._interruptible_thread = threading.get_ident()
        try:
            yield
        finally:
            self._interruptible_thread = None

    def interrupt(self) -> None:
        """Cancel, and raise if the calling thread is inside interruptible()."""
        first = not self._event.is_set()
        self.cancel()
        if first and self._interruptible_thread == threading.get_ident():
            raise DownloadCancelledError("interrupted by signal")


@contextmanager
def cancel_on_signals(
    token: CancellationToken,
    signals: Sequence[int] = DEFAULT_SIGNALS,
) -> Iterator[CancellationToken]:
    """Interrupt ``token`` when any of ``signals`` arrives inside the block."""
    previous: Dict[int, object] = {}

    def _handler(signum, frame):  # noqa: ANN001
        token.interrupt()

    if threading.current_thread() is threading.main_thread():
        for sig in signals:
            previous[sig] = signal.signal(sig, _handler)
    else:
        logger.debug("Not on the main thread; download cannot be interrupted by signal")

    try:
        yield token
    finally:
        for sig, handler in previous.items():
            # None means the old handler was not installed from Python
            signal.signal(sig, handler if handler is not None else signal.SIG_DFL)
