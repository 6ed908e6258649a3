"""Registration, login and token refresh endpoints."""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import (
    get_async_session,
    get_current_user,
    get_password_hasher,
    get_token_issuer,
    rate_limit,
)
from core.passwords import PasswordHasher
from core.tokens import TokenClass, TokenIssuer, TokenVerificationError
from models.user import User
from schemas.auth import (
    AuthResponse,
    LoginRequest,
    RefreshRequest,
    RefreshResponse,
    RegisterRequest,
    UserResponse,
)
from services import user_service
from services.exceptions import UserAlreadyExistsError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

# Credential endpoints are throttled per client address; there is no identity yet.
anonymous_rate_limit = rate_limit(authenticated=False)


def _auth_response(message: str, user: User, issuer: TokenIssuer) -> AuthResponse:
    return AuthResponse(
        message=message,
        user=UserResponse.model_validate(user),
        token=issuer.issue_access_token(user.id, user.username),
        refresh_token=issuer.issue_refresh_token(user.id, user.username),
    )


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=201,
    dependencies=[Depends(anonymous_rate_limit)],
)
async def register(
    data: RegisterRequest,
    db: AsyncSession = Depends(get_async_session),
    hasher: PasswordHasher = Depends(get_password_hasher),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> AuthResponse:
    """
    Register a new account and return access and refresh tokens.

    Returns 409 if the username or email is already registered.
    """
    password_hash = await run_in_threadpool(hasher.hash, data.password)
    try:
        user = await user_service.create_user(
            db, data.username, data.email, password_hash,
        )
    except UserAlreadyExistsError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    logger.info("user_registered", extra={"user_id": user.id})
    return _auth_response("User registered successfully", user, issuer)


@router.post(
    "/login",
    response_model=AuthResponse,
    dependencies=[Depends(anonymous_rate_limit)],
)
async def login(
    data: LoginRequest,
    db: AsyncSession = Depends(get_async_session),
    hasher: PasswordHasher = Depends(get_password_hasher),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> AuthResponse:
    """
    Log in with email and password.

    Unknown email and wrong password get the same 401.
    """
    user = await user_service.get_user_by_email(db, data.email)
    if user is None or not await run_in_threadpool(
        hasher.verify, data.password, user.password_hash,
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    logger.info("user_logged_in", extra={"user_id": user.id})
    return _auth_response("Login successful", user, issuer)


@router.post(
    "/refresh",
    response_model=RefreshResponse,
    dependencies=[Depends(anonymous_rate_limit)],
)
async def refresh(
    data: RefreshRequest,
    db: AsyncSession = Depends(get_async_session),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> RefreshResponse:
    """
    Exchange a refresh token for a new access token.

    Only refresh tokens are accepted; an access token here is a 401. The
    refresh token itself is not rotated.
    """
    invalid = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired refresh token",
    )
    try:
        claims = issuer.verify(data.refresh_token, TokenClass.REFRESH)
    except TokenVerificationError as e:
        logger.info("refresh_rejected", extra={"reason": type(e).__name__})
        raise invalid from e

    try:
        user = await user_service.get_user_by_id(db, claims.subject_id)
    except (SQLAlchemyError, TimeoutError, OSError) as e:
        logger.warning(
            "refresh_rejected",
            extra={"reason": "identity_lookup_failed", "user_id": claims.subject_id},
            exc_info=True,
        )
        raise invalid from e
    if user is None:
        logger.info("refresh_rejected", extra={"reason": "identity_gone"})
        raise invalid

    return RefreshResponse(
        message="Token refreshed successfully",
        token=issuer.issue_access_token(user.id, user.username),
    )


@router.get("/me", response_model=UserResponse, dependencies=[Depends(rate_limit())])
async def get_me(current_user: User = Depends(get_current_user)) -> User:
    """Get the current authenticated user's info."""
    return current_user
