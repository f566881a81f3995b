"""
lootspot.service.confirmation - Repeat-to-confirm for destructive commands
"""

from typing import Callable, Dict
import threading
import time

from ..config import CONFIRMATION_TIMEOUT_SECONDS


class ConfirmationTracker:
    """
    Destructive actions must be requested twice within the timeout.

    The first request arms a confirmation and returns False; a second one
    from the same requester within the window returns True and disarms it.
    """

    def __init__(
        self,
        timeout: float = CONFIRMATION_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.timeout = timeout
        self._clock = clock
        self._pending: Dict[str, float] = {}
        self._lock = threading.Lock()

    def confirm(self, requester: str, action: str) -> bool:
        key = f"{requester}_{action}"
        now = self._clock()
        with self._lock:
            self._purge(now)
            if key in self._pending:
                del self._pending[key]
                return True
            self._pending[key] = now
            return False

    def cancel(self, requester: str, action: str) -> bool:
        with self._lock:
            return self._pending.pop(f"{requester}_{action}", None) is not None

    def pending_count(self) -> int:
        with self._lock:
            self._purge(self._clock())
            return len(self._pending)

    def _purge(self, now: float) -> None:
        expired = [k for k, t in self._pending.items() if now - t > self.timeout]
        for key in expired:
            del self._pending[key]
