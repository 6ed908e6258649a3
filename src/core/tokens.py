"""
Signed bearer tokens for API access.

Two token classes share one claim shape but are signed with different keys:
access tokens (short-lived, accepted by protected routes) and refresh tokens
(long-lived, only accepted by the refresh endpoint). Both keys come from the
single JWT_SECRET; the refresh key appends REFRESH_KEY_SUFFIX.
"""
import logging
import re
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum

import jwt

from core.config import Settings, get_settings

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
REFRESH_KEY_SUFFIX = "-refresh"

SECONDS_PER_UNIT = {"d": 86400, "h": 3600, "m": 60}
ACCESS_TTL_UNITS = {"h": 3600, "m": 60}
REFRESH_TTL_UNITS = {"d": 86400, "h": 3600}

_LEADING_INT = re.compile(r"\d+")

REQUIRED_CLAIMS = ["sub", "username", "iat", "exp"]


def parse_duration(value: str, units: Mapping[str, int] = SECONDS_PER_UNIT) -> int:
    """
    Convert a duration string like '24h', '15m' or '7d' to seconds.

    The leading integer is multiplied by the unit's second count. Without a
    recognised unit suffix the whole string is read as seconds. Never raises:
    anything unparseable is 0.
    """
    text = value.strip() if isinstance(value, str) else ""
    multiplier = 1
    if text and text[-1] in units:
        multiplier = units[text[-1]]
        text = text[:-1]

    match = _LEADING_INT.match(text)
    if match is None:
        return 0
    return int(match.group()) * multiplier


class TokenClass(StrEnum):
    """Which signing key a token belongs to."""

    ACCESS = "access"
    REFRESH = "refresh"


@dataclass(frozen=True)
class TokenClaims:
    """Claims carried inside a signed token."""

    subject_id: int
    subject_name: str
    issued_at: datetime
    expires_at: datetime


class TokenVerificationError(Exception):
    """Raised when a token cannot be trusted."""


class MalformedTokenError(TokenVerificationError):
    """Token is not a well-formed token signed with the expected key."""


class ExpiredTokenError(TokenVerificationError):
    """Token signature is valid but its expiry has passed."""


def derive_refresh_key(secret: str) -> str:
    """Derive the refresh-token signing key from the base secret."""
    return secret + REFRESH_KEY_SUFFIX


class TokenIssuer:
    """Issues and verifies access and refresh tokens."""

    def __init__(
        self,
        secret: str,
        access_ttl_seconds: int,
        refresh_ttl_seconds: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._keys = {
            TokenClass.ACCESS: secret,
            TokenClass.REFRESH: derive_refresh_key(secret),
        }
        self._ttls = {
            TokenClass.ACCESS: access_ttl_seconds,
            TokenClass.REFRESH: refresh_ttl_seconds,
        }
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        clock: Callable[[], float] = time.time,
    ) -> "TokenIssuer":
        """Build an issuer from JWT_SECRET and the configured TTL strings."""
        access_ttl = parse_duration(settings.jwt_expires_in, ACCESS_TTL_UNITS)
        refresh_ttl = parse_duration(settings.refresh_token_expires_in, REFRESH_TTL_UNITS)
        for name, raw, ttl in (
            ("JWT_EXPIRES_IN", settings.jwt_expires_in, access_ttl),
            ("REFRESH_TOKEN_EXPIRES_IN", settings.refresh_token_expires_in, refresh_ttl),
        ):
            if ttl <= 0:
                logger.warning(
                    "token_ttl_invalid",
                    extra={"setting": name, "value": raw},
                )
        return cls(settings.jwt_secret, access_ttl, refresh_ttl, clock=clock)

    def ttl(self, token_class: TokenClass) -> int:
        """Lifetime in seconds of newly issued tokens of this class."""
        return self._ttls[token_class]

    def issue(self, token_class: TokenClass, subject_id: int, subject_name: str) -> str:
        """Sign a new token of the given class for a user."""
        issued_at = int(self._clock())
        payload = {
            "sub": str(subject_id),
            "username": subject_name,
            "iat": issued_at,
            "exp": issued_at + self._ttls[token_class],
        }
        return jwt.encode(payload, self._keys[token_class], algorithm=ALGORITHM)

    def issue_access_token(self, subject_id: int, subject_name: str) -> str:
        """Create a short-lived access token."""
        return self.issue(TokenClass.ACCESS, subject_id, subject_name)

    def issue_refresh_token(self, subject_id: int, subject_name: str) -> str:
        """Create a long-lived refresh token."""
        return self.issue(TokenClass.REFRESH, subject_id, subject_name)

    def verify(self, token: str, token_class: TokenClass) -> TokenClaims:
        """
        Verify a token against the key for `token_class` and return its claims.

        Expiry is checked against the issuer's clock with no leeway: a token is
        rejected once `exp <= now`.

        Raises:
            MalformedTokenError: Bad structure, wrong key, or missing claims.
            ExpiredTokenError: Valid signature but expired.
        """
        try:
            payload = jwt.decode(
                token,
                self._keys[token_class],
                algorithms=[ALGORITHM],
                options={
                    "require": REQUIRED_CLAIMS,
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
        except jwt.PyJWTError as e:
            raise MalformedTokenError(str(e)) from e

        try:
            subject_id = int(payload["sub"])
            issued_at = int(payload["iat"])
            expires_at = int(payload["exp"])
        except (TypeError, ValueError) as e:
            raise MalformedTokenError("Token claims have invalid types") from e
        subject_name = payload["username"]
        if not isinstance(subject_name, str):
            raise MalformedTokenError("Token claims have invalid types")

        if expires_at <= self._clock():
            raise ExpiredTokenError("Token has expired")

        return TokenClaims(
            subject_id=subject_id,
            subject_name=subject_name,
            issued_at=datetime.fromtimestamp(issued_at, UTC),
            expires_at=datetime.fromtimestamp(expires_at, UTC),
        )


class _IssuerState:
    """Container for the process-wide token issuer."""

    issuer: TokenIssuer | None = None


_state = _IssuerState()


def get_token_issuer() -> TokenIssuer:
    """Get the global token issuer, building it from settings on first use."""
    if _state.issuer is None:
        _state.issuer = TokenIssuer.from_settings(get_settings())
    return _state.issuer


def set_token_issuer(issuer: TokenIssuer | None) -> None:
    """Set the global token issuer instance."""
    _state.issuer = issuer
