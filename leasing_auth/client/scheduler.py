from __future__ import annotations

import threading
from typing import Callable


class RenewalScheduler:
    """Holds at most one pending one-shot timer; scheduling replaces it."""

    def __init__(self):
        self._timer: threading.Timer | None = None
        self._lock = threading.Lock()

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None and self._timer.is_alive()

    def schedule(self, delay_seconds: float, callback: Callable[[], None]) -> None:
        with self._lock:
            self._cancel_locked()
            timer = threading.Timer(max(0.0, delay_seconds), callback)
            timer.daemon = True
            self._timer = timer
            timer.start()

    def cancel(self) -> None:
        with self._lock:
            self._cancel_locked()

    def _cancel_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
