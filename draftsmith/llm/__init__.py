"""Generation-service clients."""

from .base_client import GenerationBackend
from .provider import build_backend, build_rate_limiter, estimate_cost_usd
from .rate_limiter import RateLimiter

__all__ = [
    "GenerationBackend",
    "RateLimiter",
    "build_backend",
    "build_rate_limiter",
    "estimate_cost_usd",
]
