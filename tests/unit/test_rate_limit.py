"""
Unit Tests - Rate Limiter Window Bookkeeping
"""
import pytest

from liveops.serving.api.middleware import RateLimitMiddleware


async def noop_app(scope, receive, send):
    pass


@pytest.fixture
def limiter(clock) -> RateLimitMiddleware:
    return RateLimitMiddleware(noop_app, max_requests=3, window_seconds=60, clock=clock)


class TestRateLimitWindow:
    """Tests for per-caller sliding windows"""

    def test_remaining_counts_down(self, limiter, clock):
        assert [limiter._record("user:p1", clock()) for _ in range(3)] == [2, 1, 0]

    def test_over_limit(self, limiter, clock):
        for _ in range(3):
            limiter._record("user:p1", clock())
        assert limiter._record("user:p1", clock()) is None

    def test_window_slides(self, limiter, clock):
        for _ in range(3):
            limiter._record("user:p1", clock())
        clock.advance(60)
        assert limiter._record("user:p1", clock()) == 2

    def test_callers_independent(self, limiter, clock):
        for _ in range(3):
            limiter._record("user:p1", clock())
        assert limiter._record("user:p2", clock()) == 2


class TestIdleCallerSweep:
    """Callers that stop sending are forgotten"""

    def test_idle_callers_dropped(self, limiter, clock):
        for i in range(500):
            limiter._record(f"user:p{i}", clock())
        assert limiter.tracked_callers == 500

        clock.advance(120)
        limiter._record("user:late", clock())

        assert limiter.tracked_callers == 1

    def test_active_callers_kept(self, limiter, clock):
        limiter._record("user:idle", clock())
        clock.advance(30)
        limiter._record("user:active", clock())
        clock.advance(30)

        limiter._record("user:new", clock())

        assert limiter.tracked_callers == 2
        assert "user:idle" not in limiter._requests
