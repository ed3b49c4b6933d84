"""
Cooperative cancellation for the ingestion loop.

The signal handler only flips the token; the supervisor notices it at the top
of its loop (or when a bounded wait returns) and performs the transport
disconnect itself, on its own thread.
"""

from __future__ import annotations

import signal
import threading
from typing import Callable, Iterable

from loguru import logger

DEFAULT_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class ShutdownToken:
    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "requested") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block up to timeout seconds; True if the token was cancelled."""
        return self._event.wait(timeout)


def install_signal_handlers(
    token: ShutdownToken, signals: Iterable[signal.Signals] = DEFAULT_SIGNALS
) -> Callable[[], None]:
    """Cancel token on the given signals. Returns a function restoring the old handlers."""
    previous = {}

    # No logging in here: loguru's sink lock is not reentrant.
    def _on_signal(signum, _frame):
        token.cancel(signal.Signals(signum).name)

    for sig in signals:
        previous[sig] = signal.signal(sig, _on_signal)
    logger.debug(f"Shutdown handlers installed for {[s.name for s in previous]}")

    def restore() -> None:
        for sig, handler in previous.items():
            signal.signal(sig, handler)

    return restore
