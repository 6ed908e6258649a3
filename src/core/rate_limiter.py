"""
Fixed-window rate limiting, keyed by route group and client address.

Limits come from rate_limit_config.RATE_LIMITS; counters live in a
RateLimitStore.
"""
import logging
import math
import time
from collections.abc import Callable

from fastapi import Depends, Request

from core.auth import AuthenticatedIdentity, get_current_identity
from core.rate_limit_config import (
    RATE_LIMITS,
    RateLimitConfig,
    RateLimitExceededError,
    RateLimitResult,
    RouteGroup,
)
from core.rate_limit_store import InMemoryRateLimitStore, RateLimitRecord, RateLimitStore

logger = logging.getLogger(__name__)

FORWARDED_FOR_HEADER = "x-forwarded-for"
UNKNOWN_CLIENT = "unknown"


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    """Response headers describing a client's allowance. Denials also get Retry-After."""
    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset),
    }
    if not result.allowed:
        headers["Retry-After"] = str(result.retry_after)
    return headers


def get_client_key(request: Request) -> str:
    """
    Identify the client a rate limit is tracked for.

    Uses the first address in X-Forwarded-For (the originating client), or
    "unknown" when the header is missing or blank.
    """
    forwarded = request.headers.get(FORWARDED_FOR_HEADER, "")
    client = forwarded.split(",")[0].strip()
    return client or UNKNOWN_CLIENT


class RateLimiter:
    """Counts requests per (route group, client) in fixed windows."""

    def __init__(
        self,
        store: RateLimitStore,
        limits: dict[RouteGroup, RateLimitConfig] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._limits = RATE_LIMITS if limits is None else limits
        self._clock = clock

    @property
    def store(self) -> RateLimitStore:
        """The backing record store."""
        return self._store

    def config_for(self, route_group: RouteGroup) -> RateLimitConfig:
        """Return the window and allowance configured for a route group."""
        return self._limits[route_group]

    async def admit(
        self,
        client_key: str,
        route_group: RouteGroup = RouteGroup.DEFAULT,
    ) -> RateLimitResult:
        """
        Count one request and decide whether it is allowed.

        A missing record, or one read at or after its reset time, is replaced by
        a fresh window before counting. Denied requests still count.
        """
        config = self.config_for(route_group)
        now = self._clock()

        def count_request(record: RateLimitRecord | None) -> RateLimitRecord:
            if record is None or now >= record.window_reset_at:
                record = RateLimitRecord(count=0, window_reset_at=now + config.window_seconds)
            record.count += 1
            return record

        record = await self._store.update((route_group.value, client_key), count_request)

        allowed = record.count <= config.limit
        return RateLimitResult(
            allowed=allowed,
            limit=config.limit,
            remaining=max(0, config.limit - record.count),
            reset=math.ceil(record.window_reset_at),
            retry_after=0 if allowed else max(1, math.ceil(record.window_reset_at - now)),
        )


class _LimiterState:
    """Container for the process-wide rate limiter."""

    limiter: RateLimiter | None = None


_state = _LimiterState()


def get_rate_limiter() -> RateLimiter:
    """Get the global rate limiter, creating an in-memory one on first use."""
    if _state.limiter is None:
        _state.limiter = RateLimiter(InMemoryRateLimitStore())
    return _state.limiter


def set_rate_limiter(limiter: RateLimiter | None) -> None:
    """Set the global rate limiter instance."""
    _state.limiter = limiter


async def enforce_rate_limit(request: Request, route_group: RouteGroup) -> RateLimitResult:
    """
    Admit or reject the request and keep the result on request.state.rate_limit.

    Raises:
        RateLimitExceededError: If the client is over the limit for this group.
    """
    client_key = get_client_key(request)
    result = await get_rate_limiter().admit(client_key, route_group)
    request.state.rate_limit = result
    if not result.allowed:
        logger.warning(
            "rate_limit_exceeded",
            extra={
                "client": client_key,
                "route_group": route_group.value,
                "retry_after": result.retry_after,
            },
        )
        raise RateLimitExceededError(result)
    return result


def rate_limit(
    route_group: RouteGroup = RouteGroup.DEFAULT,
    *,
    authenticated: bool = True,
) -> Callable:
    """
    Build a dependency that rate limits a route.

    With `authenticated=True` the authentication gate runs first, so
    unauthenticated requests are rejected before they count against a limit.
    """
    if authenticated:
        async def authenticated_dependency(
            request: Request,
            _identity: AuthenticatedIdentity = Depends(get_current_identity),
        ) -> RateLimitResult:
            return await enforce_rate_limit(request, route_group)

        return authenticated_dependency

    async def anonymous_dependency(request: Request) -> RateLimitResult:
        return await enforce_rate_limit(request, route_group)

    return anonymous_dependency
