"""Middleware module for the job board backend."""

from jobboard.middleware.rate_limit import (
    RateLimiter,
    RateLimitMiddleware,
    rate_limit_cleanup_loop,
)

__all__ = [
    "RateLimitMiddleware",
    "RateLimiter",
    "rate_limit_cleanup_loop",
]
