"""Process-wide fixed-window request limiter keyed by (identifier, mode).

Advisory throttling only: bursts within a window are not smoothed, and the
counter map lives in this process. A multi-process deployment needs a
shared counter behind the same ``allow`` contract.
"""

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from karat.config import RateLimitConfig

logger = logging.getLogger(__name__)


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """Per-identifier, per-mode request counter.

    Thread-safe via an internal lock. The clock is injectable for tests and
    must be monotonic.
    """

    def __init__(
        self,
        limits: RateLimitConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._limits = limits or RateLimitConfig()
        self._clock = clock
        self._windows: dict[tuple[str, str], _Window] = {}
        self._lock = threading.Lock()

    def allow(self, identifier: str, mode: str) -> bool:
        """Count one request and report whether it is within the ceiling.

        On first use, or once the window has elapsed, the counter resets to
        1 and a new window starts.
        """
        limit = self._limits.limit_for(mode)
        key = (identifier, mode)
        with self._lock:
            now = self._clock()
            window = self._windows.get(key)
            if window is None or now >= window.reset_at:
                self._windows[key] = _Window(
                    count=1, reset_at=now + self._limits.window_seconds
                )
                return True
            if window.count >= limit:
                logger.info(
                    "Rate limit reached: mode=%s limit=%d", mode, limit
                )
                return False
            window.count += 1
            return True


_limiter: RateLimiter | None = None
_limiter_lock = threading.Lock()


def get_rate_limiter() -> RateLimiter:
    """Return the process-wide limiter, creating it from config on first use."""
    global _limiter
    if _limiter is None:
        with _limiter_lock:
            if _limiter is None:
                from karat.config import get_config

                _limiter = RateLimiter(get_config().rate_limits)
    return _limiter
