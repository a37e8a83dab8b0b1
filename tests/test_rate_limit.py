"""Tests for the rate limiting middleware."""

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from jobboard.middleware.rate_limit import (
    PathRateLimitConfig,
    RateLimiter,
    RateLimitMiddleware,
)


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now


class TestRateLimiter:
    """Tests for the RateLimiter class."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def rate_limiter(self, clock):
        """Create a fresh rate limiter instance."""
        return RateLimiter(clock=clock)

    @pytest.mark.asyncio
    async def test_allows_first_request(self, rate_limiter):
        allowed, headers = await rate_limiter.check_rate_limit("192.168.1.1", "/api/jobs")

        assert allowed is True
        assert headers["X-RateLimit-Limit"] == "100"
        assert headers["X-RateLimit-Remaining"] == "99"

    def test_auth_paths_are_stricter(self, rate_limiter):
        """Credential endpoints get their own, lower limits."""
        assert rate_limiter.get_config_for_path("/api/auth/login").requests_per_minute == 10
        assert rate_limiter.get_config_for_path("/api/auth/register").requests_per_minute == 5
        assert rate_limiter.get_config_for_path("/api/auth/forgot-password").burst_size == 3

    def test_default_config_for_unknown_path(self, rate_limiter):
        config = rate_limiter.get_config_for_path("/api/jobs")

        assert config.requests_per_minute == 100
        assert config.burst_size == 20

    @pytest.mark.asyncio
    async def test_burst_limiting(self, rate_limiter):
        """Back-to-back requests beyond the burst size are rejected."""
        results = [
            (await rate_limiter.check_rate_limit("10.0.0.1", "/api/auth/login"))[0]
            for _ in range(6)
        ]

        assert results == [True] * 5 + [False]

    @pytest.mark.asyncio
    async def test_bucket_refills_over_time(self, rate_limiter, clock):
        for _ in range(5):
            await rate_limiter.check_rate_limit("10.0.0.1", "/api/auth/login")

        clock.now += 12  # 10/min refills a token every 6 seconds
        allowed, _ = await rate_limiter.check_rate_limit("10.0.0.1", "/api/auth/login")

        assert allowed is True

    @pytest.mark.asyncio
    async def test_minute_limit_enforced(self, clock):
        rate_limiter = RateLimiter(
            path_configs={"/limited": PathRateLimitConfig(requests_per_minute=3, burst_size=10)},
            clock=clock,
        )
        for _ in range(3):
            assert (await rate_limiter.check_rate_limit("10.0.0.1", "/limited"))[0]
            clock.now += 1

        allowed, headers = await rate_limiter.check_rate_limit("10.0.0.1", "/limited")

        assert allowed is False
        assert headers["Retry-After"] == "57"
        assert headers["X-RateLimit-Remaining"] == "0"

        clock.now += 60
        assert (await rate_limiter.check_rate_limit("10.0.0.1", "/limited"))[0]

    @pytest.mark.asyncio
    async def test_separate_buckets_per_ip_and_group(self, rate_limiter):
        for _ in range(5):
            await rate_limiter.check_rate_limit("10.0.0.1", "/api/auth/login")

        other_ip, _ = await rate_limiter.check_rate_limit("10.0.0.2", "/api/auth/login")
        other_group, _ = await rate_limiter.check_rate_limit("10.0.0.1", "/api/jobs")

        assert other_ip is True
        assert other_group is True
        assert len(rate_limiter) == 3

    @pytest.mark.asyncio
    async def test_reset(self, rate_limiter):
        await rate_limiter.check_rate_limit("10.0.0.1", "/api/jobs")
        await rate_limiter.check_rate_limit("10.0.0.2", "/api/jobs")

        await rate_limiter.reset("10.0.0.1")
        assert len(rate_limiter) == 1

        await rate_limiter.reset()
        assert len(rate_limiter) == 0

    @pytest.mark.asyncio
    async def test_cleanup_inactive_buckets(self, rate_limiter, clock):
        await rate_limiter.check_rate_limit("10.0.0.1", "/api/jobs")
        clock.now += 4000
        await rate_limiter.check_rate_limit("10.0.0.2", "/api/jobs")

        removed = await rate_limiter.cleanup_inactive_buckets(inactive_seconds=3600)

        assert removed == 1
        assert len(rate_limiter) == 1


class TestRateLimitMiddleware:
    """Tests for the middleware wrapped around an app."""

    @pytest.fixture
    def limited_app(self):
        app = FastAPI()
        limiter = RateLimiter(
            path_configs={"/limited": PathRateLimitConfig(requests_per_minute=60, burst_size=2)}
        )
        app.add_middleware(RateLimitMiddleware, rate_limiter=limiter, exclude_paths=["/health"])

        @app.get("/limited")
        async def limited():
            return {"ok": True}

        @app.get("/health")
        async def health():
            return {"status": "healthy"}

        return app

    @pytest.mark.asyncio
    async def test_returns_429_with_retry_after(self, limited_app):
        transport = ASGITransport(app=limited_app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            first = await client.get("/limited")
            await client.get("/limited")
            blocked = await client.get("/limited")

        assert first.status_code == 200
        assert first.headers["X-RateLimit-Limit"] == "60"
        assert blocked.status_code == 429
        assert blocked.headers["Retry-After"] == "1"
        assert blocked.json()["retry_after"] == 1

    @pytest.mark.asyncio
    async def test_excluded_paths_are_not_limited(self, limited_app):
        transport = ASGITransport(app=limited_app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            responses = [await client.get("/health") for _ in range(5)]

        assert all(r.status_code == 200 for r in responses)
        assert "X-RateLimit-Limit" not in responses[0].headers

    @pytest.mark.asyncio
    async def test_disabled(self):
        app = FastAPI()
        limiter = RateLimiter(path_configs={"/": PathRateLimitConfig(requests_per_minute=1, burst_size=1)})
        app.add_middleware(RateLimitMiddleware, rate_limiter=limiter, enabled=False)

        @app.get("/ping")
        async def ping():
            return {"ok": True}

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            responses = [await client.get("/ping") for _ in range(3)]

        assert all(r.status_code == 200 for r in responses)
