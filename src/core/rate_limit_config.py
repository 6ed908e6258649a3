"""
Rate limit policy: route groups, their fixed windows, and the result type.

Enforcement lives in rate_limiter.py; change limits in RATE_LIMITS below.
"""
from dataclasses import dataclass
from enum import Enum


class RouteGroup(Enum):
    """Group of routes sharing one rate limit bucket per client."""

    DEFAULT = "default"
    BOOKMARK_LIST = "bookmark_list"
    CATEGORY_LIST = "category_list"


@dataclass(frozen=True)
class RateLimitConfig:
    """Fixed window size and request allowance for a route group."""

    window_seconds: int
    limit: int


@dataclass
class RateLimitResult:
    """Outcome of counting one request, with the values sent as response headers."""

    allowed: bool
    limit: int  # Allowance for the window
    remaining: int
    reset: int  # Epoch seconds the window ends, rounded up
    retry_after: int  # 0 when allowed


class RateLimitExceededError(Exception):
    """Raised by the rate_limit dependency when a request is denied."""

    def __init__(self, result: RateLimitResult) -> None:
        self.result = result
        super().__init__("Rate limit exceeded")


# ---------------------------------------------------------------------------
# Rate Limit Policy Configuration
# ---------------------------------------------------------------------------
# List endpoints are the expensive ones and get their own, stricter buckets.

RATE_LIMITS: dict[RouteGroup, RateLimitConfig] = {
    RouteGroup.DEFAULT: RateLimitConfig(window_seconds=60, limit=100),
    RouteGroup.BOOKMARK_LIST: RateLimitConfig(window_seconds=60, limit=30),
    RouteGroup.CATEGORY_LIST: RateLimitConfig(window_seconds=60, limit=20),
}
