"""Tests for InMemoryRateLimiter."""

from feedsync_api.ratelimit import InMemoryRateLimiter, RateLimiter


class TestInMemoryRateLimiter:

    def test_one_call_per_window(self, clock):
        limiter = InMemoryRateLimiter(60, clock)

        assert limiter.try_acquire("1.2.3.4")
        assert not limiter.try_acquire("1.2.3.4")

        clock.advance(59)
        assert not limiter.check("1.2.3.4")
        clock.advance(1)
        assert limiter.try_acquire("1.2.3.4")

    def test_callers_are_independent(self, clock):
        limiter = InMemoryRateLimiter(60, clock)
        assert limiter.try_acquire("1.2.3.4")
        assert limiter.try_acquire("5.6.7.8")

    def test_check_does_not_consume(self, clock):
        limiter = InMemoryRateLimiter(60, clock)
        assert limiter.check("1.2.3.4")
        assert limiter.check("1.2.3.4")
        limiter.consume("1.2.3.4")
        assert not limiter.check("1.2.3.4")

    def test_retry_after_rounds_up(self, clock):
        limiter = InMemoryRateLimiter(60, clock)
        assert limiter.retry_after("1.2.3.4") == 0
        limiter.consume("1.2.3.4")
        clock.advance(15)
        assert limiter.retry_after("1.2.3.4") == 45

    def test_zero_window_disables(self, clock):
        limiter = InMemoryRateLimiter(0, clock)
        assert all(limiter.try_acquire("1.2.3.4") for _ in range(5))
        assert limiter.retry_after("1.2.3.4") == 0

    def test_unknown_caller_is_not_limited(self, clock):
        limiter = InMemoryRateLimiter(60, clock)
        assert limiter.try_acquire(None)
        assert limiter.try_acquire(None)

    def test_reset(self, clock):
        limiter = InMemoryRateLimiter(60, clock)
        limiter.consume("1.2.3.4")
        limiter.reset()
        assert limiter.check("1.2.3.4")

    def test_satisfies_protocol(self):
        assert isinstance(InMemoryRateLimiter(), RateLimiter)
