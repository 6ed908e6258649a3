"""FastAPI dependencies for injection."""
from core.auth import get_current_identity, get_current_user
from core.config import get_settings
from core.passwords import get_password_hasher
from core.rate_limiter import rate_limit
from core.tokens import get_token_issuer
from db.session import get_async_session

__all__ = [
    "get_async_session",
    "get_current_identity",
    "get_current_user",
    "get_password_hasher",
    "get_settings",
    "get_token_issuer",
    "rate_limit",
]
