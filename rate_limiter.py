import time
from collections import deque
from typing import Callable, Deque, Dict, Optional

from constants import RATE_LIMIT_BURST, RATE_LIMIT_WINDOW_MS
from logging_config import get_logger

logger = get_logger(__name__)


def monotonic_ms() -> float:
    return time.monotonic() * 1000


class RateLimiter:
    """Sliding-window message limiter keyed by connection ID.

    Each window holds the timestamps (ms) of admitted messages that are still
    inside the trailing window, so it never grows past `burst` entries.
    """

    def __init__(self, burst: int = RATE_LIMIT_BURST, window_ms: int = RATE_LIMIT_WINDOW_MS,
                 clock: Optional[Callable[[], float]] = None):
        self.burst = burst
        self.window_ms = window_ms
        self.clock = clock or monotonic_ms
        self._windows: Dict[str, Deque[float]] = {}

    def try_admit(self, connection_id: str) -> bool:
        now = self.clock()
        window = self._windows.setdefault(connection_id, deque())
        # Prune lazily, oldest first
        while window and now - window[0] >= self.window_ms:
            window.popleft()
        if len(window) >= self.burst:
            logger.debug(f"Rate limit hit for connection {connection_id} ({len(window)}/{self.burst})")
            return False
        window.append(now)
        return True

    def release(self, connection_id: str) -> None:
        self._windows.pop(connection_id, None)

    def tracked(self, connection_id: str) -> int:
        """Number of admitted timestamps currently held for a connection."""
        return len(self._windows.get(connection_id, ()))
