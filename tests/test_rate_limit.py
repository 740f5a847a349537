"""Tests for the sliding-window session rate limiter."""
import pytest

from research_network.core.errors import RateLimitExceeded
from research_network.core.rate_limit import RateLimiter


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


class TestRateLimiter:
    def test_per_client_limit(self, clock):
        limiter = RateLimiter(per_client=2, global_limit=10, clock=clock)
        limiter.check("a")
        limiter.check("a")

        with pytest.raises(RateLimitExceeded) as exc_info:
            limiter.check("a")
        assert exc_info.value.scope == "client"
        assert exc_info.value.retry_after == pytest.approx(3600)

        # Other clients are unaffected
        limiter.check("b")

    def test_global_limit(self, clock):
        limiter = RateLimiter(per_client=5, global_limit=3, clock=clock)
        for client in ("a", "b", "c"):
            limiter.check(client)

        with pytest.raises(RateLimitExceeded) as exc_info:
            limiter.check("d")
        assert exc_info.value.scope == "global"

    def test_window_slides(self, clock):
        limiter = RateLimiter(per_client=1, global_limit=10, window_seconds=60, clock=clock)
        limiter.check("a")

        clock.now = 30
        with pytest.raises(RateLimitExceeded) as exc_info:
            limiter.check("a")
        assert exc_info.value.retry_after == pytest.approx(30)

        clock.now = 60
        limiter.check("a")

    def test_rejected_requests_are_not_counted(self, clock):
        limiter = RateLimiter(per_client=1, global_limit=10, window_seconds=60, clock=clock)
        limiter.check("a")
        for _ in range(5):
            with pytest.raises(RateLimitExceeded):
                limiter.check("a")
        assert limiter.remaining("b") == 1

    def test_remaining(self, clock):
        limiter = RateLimiter(per_client=3, global_limit=4, clock=clock)
        assert limiter.remaining("a") == 3
        limiter.check("a")
        limiter.check("b")
        limiter.check("c")
        assert limiter.remaining("a") == 1
        assert limiter.remaining("d") == 1

    def test_disabled(self, clock):
        limiter = RateLimiter(per_client=1, global_limit=1, enabled=False, clock=clock)
        for _ in range(10):
            limiter.check("a")
        assert limiter.remaining("a") == 1

    def test_reset(self, clock):
        limiter = RateLimiter(per_client=1, clock=clock)
        limiter.check("a")
        limiter.reset()
        limiter.check("a")

    def test_idle_clients_are_forgotten(self, clock):
        limiter = RateLimiter(per_client=2, global_limit=1000, window_seconds=60, clock=clock)
        for i in range(50):
            limiter.check(f"client-{i}")
        assert limiter.tracked_clients == 50

        clock.now = 61
        limiter.check("fresh")

        assert limiter.tracked_clients == 1
        assert limiter.remaining("client-0") == 2

    def test_remaining_does_not_track_unknown_clients(self, clock):
        limiter = RateLimiter(per_client=2, clock=clock)
        assert limiter.remaining("nobody") == 2
        assert limiter.tracked_clients == 0
