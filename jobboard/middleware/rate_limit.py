"""Rate limiting middleware for API protection."""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60.0


@dataclass
class PathRateLimitConfig:
    """Configuration for rate limiting a specific path prefix."""

    requests_per_minute: int = 60
    burst_size: int = 10


@dataclass
class RateLimitBucket:
    """Rate limit tracking for a single client+path group."""

    tokens: float
    last_update: float
    minute_requests: list[float] = field(default_factory=list)


def default_path_configs() -> dict[str, PathRateLimitConfig]:
    """Stricter limits for the endpoints that guess or create credentials."""
    return {
        "/api/auth/login": PathRateLimitConfig(requests_per_minute=10, burst_size=5),
        "/api/auth/register": PathRateLimitConfig(requests_per_minute=5, burst_size=3),
        "/api/auth/forgot-password": PathRateLimitConfig(requests_per_minute=5, burst_size=3),
    }


class RateLimiter:
    """In-memory rate limiter: one-minute sliding window plus a token bucket for bursts.

    Requests are grouped per client IP and per configured path prefix; paths
    matching no prefix share a default group.
    """

    def __init__(
        self,
        requests_per_minute: int = 100,
        path_configs: dict[str, PathRateLimitConfig] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._clock = clock
        self._lock = asyncio.Lock()
        self._path_configs = default_path_configs() if path_configs is None else path_configs
        self._default_config = PathRateLimitConfig(
            requests_per_minute=requests_per_minute,
            burst_size=max(1, requests_per_minute // 5),
        )
        self._buckets: dict[str, RateLimitBucket] = {}

    def _group(self, path: str) -> tuple[str, PathRateLimitConfig]:
        for prefix, config in self._path_configs.items():
            if path.startswith(prefix):
                return prefix, config
        return "default", self._default_config

    def get_config_for_path(self, path: str) -> PathRateLimitConfig:
        """Get rate limit config for a given path."""
        return self._group(path)[1]

    async def check_rate_limit(
        self,
        client_ip: str,
        path: str,
    ) -> tuple[bool, dict[str, str]]:
        """Check if request is allowed.

        Returns:
            Tuple of (is_allowed, headers_dict)
        """
        group, config = self._group(path)
        bucket_key = f"{client_ip}:{group}"

        async with self._lock:
            now = self._clock()
            bucket = self._buckets.get(bucket_key)
            if bucket is None:
                bucket = RateLimitBucket(tokens=float(config.burst_size), last_update=now)
                self._buckets[bucket_key] = bucket

            cutoff = now - WINDOW_SECONDS
            bucket.minute_requests = [ts for ts in bucket.minute_requests if ts > cutoff]
            remaining = config.requests_per_minute - len(bucket.minute_requests)

            headers = {
                "X-RateLimit-Limit": str(config.requests_per_minute),
                "X-RateLimit-Remaining": str(max(0, remaining - 1)),
            }

            if remaining <= 0:
                oldest = min(bucket.minute_requests)
                reset_seconds = max(1, int(WINDOW_SECONDS - (now - oldest)))
                headers["Retry-After"] = str(reset_seconds)
                headers["X-RateLimit-Reset"] = str(reset_seconds)
                return False, headers

            refill_rate = config.requests_per_minute / WINDOW_SECONDS
            bucket.tokens = min(
                config.burst_size,
                bucket.tokens + (now - bucket.last_update) * refill_rate,
            )
            bucket.last_update = now

            if bucket.tokens < 1.0:
                headers["Retry-After"] = "1"
                return False, headers

            bucket.tokens -= 1.0
            bucket.minute_requests.append(now)
            return True, headers

    async def reset(self, client_ip: str | None = None) -> None:
        async with self._lock:
            if client_ip:
                for key in [k for k in self._buckets if k.startswith(f"{client_ip}:")]:
                    del self._buckets[key]
            else:
                self._buckets.clear()

    async def cleanup_inactive_buckets(self, inactive_seconds: float = 3600) -> int:
        """Remove buckets with no activity for ``inactive_seconds``. Returns count removed."""
        async with self._lock:
            cutoff = self._clock() - inactive_seconds
            stale = [key for key, bucket in self._buckets.items() if bucket.last_update < cutoff]
            for key in stale:
                del self._buckets[key]

        if stale:
            logger.info(f"Cleaned up {len(stale)} inactive rate limit buckets")
        return len(stale)

    def __len__(self) -> int:
        return len(self._buckets)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-IP rate limiting with rate limit headers on every response."""

    def __init__(
        self,
        app: ASGIApp,
        rate_limiter: RateLimiter,
        exclude_paths: list[str] | None = None,
        enabled: bool = True,
    ) -> None:
        super().__init__(app)
        self.rate_limiter = rate_limiter
        self.exclude_paths = exclude_paths or [
            "/health",
            "/docs",
            "/redoc",
            "/openapi.json",
        ]
        self.enabled = enabled

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Process request with rate limiting."""
        if not self.enabled:
            return await call_next(request)

        path = request.url.path
        if any(path.startswith(p) for p in self.exclude_paths):
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        is_allowed, headers = await self.rate_limiter.check_rate_limit(client_ip, path)

        if not is_allowed:
            logger.warning(f"Rate limit exceeded for {client_ip} on {path}")
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={
                    "detail": "Rate limit exceeded. Please try again later.",
                    "retry_after": int(headers.get("Retry-After", 60)),
                },
                headers=headers,
            )

        response = await call_next(request)
        for key, value in headers.items():
            response.headers[key] = value
        return response


async def rate_limit_cleanup_loop(rate_limiter: RateLimiter, interval_seconds: float = 3600) -> None:
    """Periodic cleanup of inactive rate limit buckets to prevent memory leaks."""
    while True:
        try:
            await asyncio.sleep(interval_seconds)
            removed = await rate_limiter.cleanup_inactive_buckets(inactive_seconds=interval_seconds)
            if removed > 0:
                logger.debug(f"Rate limiter cleanup: removed {removed} inactive buckets")
        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.warning(f"Rate limiter cleanup error: {e}")
