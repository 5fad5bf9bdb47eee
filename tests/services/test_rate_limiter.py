"""Tests for the fixed-window RateLimiter."""

import threading

from karat.config import RateLimitConfig
from karat.services.rate_limiter import RateLimiter


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _limiter(clock=None, **limits):
    return RateLimiter(RateLimitConfig(**limits), clock=clock or FakeClock())


class TestAllow:
    def test_guest_ceiling(self):
        limiter = _limiter()
        results = [limiter.allow("1.2.3.4", "guest") for _ in range(21)]
        assert results[:20] == [True] * 20
        assert results[20] is False

    def test_assistant_has_higher_ceiling(self):
        limiter = _limiter(assistant=3, guest=1)
        assert [limiter.allow("u1", "assistant") for _ in range(4)] == [True, True, True, False]

    def test_modes_counted_separately(self):
        limiter = _limiter(guest=1, help=1)
        assert limiter.allow("u1", "guest") is True
        assert limiter.allow("u1", "help") is True
        assert limiter.allow("u1", "guest") is False

    def test_identifiers_counted_separately(self):
        limiter = _limiter(guest=1)
        assert limiter.allow("a", "guest") is True
        assert limiter.allow("b", "guest") is True

    def test_window_resets(self):
        clock = FakeClock()
        limiter = _limiter(clock, guest=2, window_seconds=60)
        limiter.allow("u1", "guest")
        limiter.allow("u1", "guest")
        assert limiter.allow("u1", "guest") is False

        clock.advance(60)
        assert limiter.allow("u1", "guest") is True
        assert limiter.allow("u1", "guest") is True
        assert limiter.allow("u1", "guest") is False

    def test_rejections_do_not_extend_window(self):
        clock = FakeClock()
        limiter = _limiter(clock, guest=1, window_seconds=60)
        limiter.allow("u1", "guest")
        clock.advance(59)
        assert limiter.allow("u1", "guest") is False
        clock.advance(1)
        assert limiter.allow("u1", "guest") is True

    def test_unknown_mode_uses_guest_ceiling(self):
        limiter = _limiter(guest=1)
        assert limiter.allow("u1", "kiosk") is True
        assert limiter.allow("u1", "kiosk") is False


class TestConcurrency:
    def test_concurrent_requests_never_exceed_ceiling(self):
        limiter = RateLimiter(RateLimitConfig(guest=50))
        allowed = []
        lock = threading.Lock()

        def worker():
            for _ in range(20):
                ok = limiter.allow("shared", "guest")
                with lock:
                    allowed.append(ok)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sum(allowed) == 50
