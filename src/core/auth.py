"""
Authentication gate for bearer access tokens.

Every protected route resolves the caller through `get_current_identity`:

1. the Authorization header must use the literal "Bearer " scheme,
2. the token must verify as an access token,
3. the user it names must still exist.

Each failure has its own RejectionKind for logs, but callers always get the
same 401 so responses never reveal why a token was refused.
"""
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.tokens import TokenClass, TokenIssuer, TokenVerificationError, get_token_issuer
from db.session import get_async_session
from models.user import User
from services import user_service

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "

IdentityLookup = Callable[[int], Awaitable[User | None]]


class RejectionKind(StrEnum):
    """Why a request failed authentication (internal diagnostics only)."""

    MISSING_CREDENTIAL = "missing_credential"
    INVALID_OR_EXPIRED_TOKEN = "invalid_or_expired_token"
    IDENTITY_GONE = "identity_gone"


class AuthenticationError(Exception):
    """Raised when a request cannot be authenticated."""

    def __init__(self, kind: RejectionKind) -> None:
        self.kind = kind
        super().__init__(f"Authentication rejected: {kind.value}")


@dataclass(frozen=True)
class AuthenticatedIdentity:
    """The caller resolved from a verified access token."""

    subject_id: int
    subject_name: str
    # Row returned by the identity lookup
    user: User | None = field(default=None, compare=False, repr=False)


async def authenticate(
    authorization: str | None,
    issuer: TokenIssuer,
    find_identity: IdentityLookup,
) -> AuthenticatedIdentity:
    """
    Resolve the Authorization header value to an existing identity.

    Lookup failures (database errors, timeouts) are treated the same as a
    missing identity and are not retried.

    Raises:
        AuthenticationError: With the kind of rejection.
    """
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise AuthenticationError(RejectionKind.MISSING_CREDENTIAL)

    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        raise AuthenticationError(RejectionKind.MISSING_CREDENTIAL)

    try:
        claims = issuer.verify(token, TokenClass.ACCESS)
    except TokenVerificationError as e:
        logger.debug("Access token rejected: %s", type(e).__name__)
        raise AuthenticationError(RejectionKind.INVALID_OR_EXPIRED_TOKEN) from e

    try:
        identity = await find_identity(claims.subject_id)
    except (SQLAlchemyError, TimeoutError, OSError) as e:
        logger.warning(
            "Identity lookup failed for user %s: %s", claims.subject_id, e, exc_info=True,
        )
        raise AuthenticationError(RejectionKind.IDENTITY_GONE) from e

    if identity is None:
        raise AuthenticationError(RejectionKind.IDENTITY_GONE)

    return AuthenticatedIdentity(
        subject_id=claims.subject_id,
        subject_name=claims.subject_name,
        user=identity,
    )


def unauthorized() -> HTTPException:
    """The single outward response for every authentication failure."""
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_identity(
    request: Request,
    db: AsyncSession = Depends(get_async_session),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> AuthenticatedIdentity:
    """
    Dependency that authenticates the request.

    On success publishes `subject_id` and `subject_name` on `request.state`
    for downstream handlers and middleware.
    """

    async def find_identity(user_id: int) -> User | None:
        return await user_service.get_user_by_id(db, user_id)

    try:
        identity = await authenticate(
            request.headers.get("Authorization"), issuer, find_identity,
        )
    except AuthenticationError as e:
        logger.info(
            "auth_rejected",
            extra={"kind": e.kind.value, "path": request.url.path},
        )
        raise unauthorized() from e

    request.state.subject_id = identity.subject_id
    request.state.subject_name = identity.subject_name
    return identity


async def get_current_user(
    request: Request,
    identity: AuthenticatedIdentity = Depends(get_current_identity),
) -> User:
    """Dependency returning the authenticated user's row, as loaded by the gate."""
    if identity.user is None:
        logger.info(
            "auth_rejected",
            extra={"kind": RejectionKind.IDENTITY_GONE.value, "path": request.url.path},
        )
        raise unauthorized()
    return identity.user
