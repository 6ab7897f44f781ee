"""Tests for the sliding-window rate limiter and auth lookup cache."""

import pytest

from taskapp.services.auth_cache import CachedUserLookup
from taskapp.services.rate_limit import SlidingWindowRateLimiter, get_client_ip


class TestSlidingWindowRateLimiter:

    def test_allows_up_to_limit(self, clock):
        limiter = SlidingWindowRateLimiter(max_requests=3, window_seconds=60, clock=clock)

        results = [limiter.check("1.2.3.4") for _ in range(4)]

        assert [r.allowed for r in results] == [True, True, True, False]
        assert [r.remaining for r in results] == [2, 1, 0, 0]

    def test_window_slides(self, clock):
        limiter = SlidingWindowRateLimiter(max_requests=2, window_seconds=60, clock=clock)
        limiter.check("ip")
        clock.advance(30)
        limiter.check("ip")

        assert not limiter.check("ip").allowed

        clock.advance(31)  # first request has left the window
        assert limiter.check("ip").allowed
        assert not limiter.check("ip").allowed

    def test_rejected_request_reports_reset(self, clock):
        limiter = SlidingWindowRateLimiter(max_requests=1, window_seconds=60, clock=clock)
        limiter.check("ip")
        clock.advance(10)

        result = limiter.check("ip")

        assert result.reset_at == pytest.approx(1060.0)
        assert result.retry_after(clock()) == 50

    def test_keys_are_independent(self, clock):
        limiter = SlidingWindowRateLimiter(max_requests=1, window_seconds=60, clock=clock)

        assert limiter.check("a").allowed
        assert limiter.check("b").allowed
        assert not limiter.check("a").allowed

    def test_stale_keys_pruned(self, clock):
        limiter = SlidingWindowRateLimiter(max_requests=5, window_seconds=10, clock=clock)
        limiter.check("old")
        clock.advance(SlidingWindowRateLimiter.CLEANUP_INTERVAL + 1)
        limiter.check("new")

        assert len(limiter) == 1

    def test_reset(self, clock):
        limiter = SlidingWindowRateLimiter(max_requests=1, window_seconds=60, clock=clock)
        limiter.check("ip")
        limiter.reset("ip")

        assert limiter.check("ip").allowed

    def test_invalid_settings(self):
        with pytest.raises(ValueError):
            SlidingWindowRateLimiter(max_requests=0)


class TestClientIp:

    def test_forwarded_for_first_hop(self):
        assert get_client_ip({"x-forwarded-for": "10.0.0.1, 172.16.0.1"}) == "10.0.0.1"

    def test_real_ip(self):
        assert get_client_ip({"x-real-ip": " 10.0.0.2 "}) == "10.0.0.2"

    def test_fallback(self):
        assert get_client_ip({}, "127.0.0.1") == "127.0.0.1"
        assert get_client_ip({}) == "unknown"


class TestCachedUserLookup:

    def test_caches_within_ttl(self, clock):
        calls = []
        lookup = CachedUserLookup(lambda token: calls.append(token) or {"id": token}, ttl_seconds=5, clock=clock)

        assert lookup.get("tok") == {"id": "tok"}
        clock.advance(4)
        assert lookup.get("tok") == {"id": "tok"}

        assert calls == ["tok"]
        assert "tok" in lookup

    def test_refetches_after_ttl(self, clock):
        calls = []
        lookup = CachedUserLookup(lambda token: calls.append(token) or token, ttl_seconds=5, clock=clock)

        lookup.get("tok")
        clock.advance(5)
        lookup.get("tok")

        assert calls == ["tok", "tok"]

    def test_invalidate_token(self, clock):
        calls = []
        lookup = CachedUserLookup(lambda token: calls.append(token) or token, clock=clock)

        lookup.get("a")
        lookup.get("b")
        lookup.invalidate("a")

        assert "a" not in lookup
        assert "b" in lookup
        lookup.get("a")
        assert calls == ["a", "b", "a"]

    def test_invalidate_all(self, clock):
        lookup = CachedUserLookup(lambda token: token, clock=clock)
        lookup.get("a")
        lookup.invalidate()

        assert "a" not in lookup

    def test_failures_not_cached(self, clock):
        attempts = []

        def fetch(token):
            attempts.append(token)
            raise LookupError("unavailable")

        lookup = CachedUserLookup(fetch, clock=clock)

        for _ in range(2):
            with pytest.raises(LookupError):
                lookup.get("tok")

        assert attempts == ["tok", "tok"]
