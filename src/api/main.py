"""FastAPI application entry point."""
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from api.routers import auth, bookmarks, categories, health, tags
from core.config import get_settings
from core.passwords import PasswordHasher, set_password_hasher
from core.rate_limit_config import RateLimitExceededError, RateLimitResult
from core.rate_limit_store import InMemoryRateLimitStore, RateLimitSweeper
from core.rate_limiter import RateLimiter, rate_limit_headers, set_rate_limiter
from core.tokens import TokenIssuer, set_token_issuer
from db.session import init_db

app_settings = get_settings()

logging.basicConfig(
    level=app_settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None]:
    """
    Build the auth core, create the schema and run the rate limit sweeper.

    Hasher and issuer are built here rather than on first request so that an
    unusable cost factor or TTL is reported at startup.
    """
    settings = get_settings()
    set_password_hasher(PasswordHasher.from_settings(settings))
    set_token_issuer(TokenIssuer.from_settings(settings))

    await init_db()

    store = InMemoryRateLimitStore()
    set_rate_limiter(RateLimiter(store))
    sweeper = RateLimitSweeper(store, interval_seconds=settings.rate_limit_sweep_interval)
    sweeper.start()
    logger.info("Application startup complete")

    try:
        yield
    finally:
        await sweeper.stop()
        set_rate_limiter(None)
        set_token_issuer(None)
        set_password_hasher(None)


class RateLimitHeadersMiddleware(BaseHTTPMiddleware):
    """Copy the allowance recorded by the rate_limit dependency onto the response."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        response = await call_next(request)
        # Denials already carry their headers from the 429 handler
        result: RateLimitResult | None = getattr(request.state, "rate_limit", None)
        if result is not None and result.allowed:
            response.headers.update(rate_limit_headers(result))
        return response


app = FastAPI(
    title="Bookmarks API",
    description="Bookmark, category and tag management with JWT authentication.",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(RateLimitExceededError)
async def rate_limit_exception_handler(
    _request: Request, exc: RateLimitExceededError,
) -> JSONResponse:
    """Answer 429 with Retry-After and the exhausted allowance."""
    return JSONResponse(
        status_code=429,
        content={"detail": "Too many requests, please try again later."},
        headers=rate_limit_headers(exc.result),
    )


app.add_middleware(RateLimitHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=app_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(categories.router)
app.include_router(bookmarks.router)
app.include_router(tags.router)
