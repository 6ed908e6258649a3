"""
Password hashing and verification.

Uses bcrypt with a per-call random salt and a configurable work factor.
"""
import bcrypt

from core.config import ConfigurationError, Settings, get_settings

# bcrypt only consumes the first 72 bytes of a password. Newer releases raise
# instead of truncating, so both hashing and verification truncate explicitly.
BCRYPT_MAX_PASSWORD_BYTES = 72


def _encode(password: str) -> bytes:
    return password.encode()[:BCRYPT_MAX_PASSWORD_BYTES]


class PasswordHasher:
    """Hashes and verifies plaintext passwords with a fixed bcrypt cost."""

    def __init__(self, rounds: int = 10) -> None:
        try:
            bcrypt.gensalt(rounds=rounds)
        except (ValueError, TypeError) as e:
            raise ConfigurationError(f"Invalid bcrypt cost factor: {rounds!r}") from e
        self._rounds = rounds

    @classmethod
    def from_settings(cls, settings: Settings) -> "PasswordHasher":
        """Build a hasher using BCRYPT_ROUNDS."""
        return cls(rounds=settings.bcrypt_rounds)

    @property
    def rounds(self) -> int:
        """The bcrypt cost factor used for new hashes."""
        return self._rounds

    def hash(self, password: str) -> str:
        """Hash a password. Two calls on the same input produce different values."""
        return bcrypt.hashpw(_encode(password), bcrypt.gensalt(rounds=self._rounds)).decode()

    def verify(self, password: str, password_hash: str) -> bool:
        """Constant-time comparison against a bcrypt hash. Malformed hashes return False."""
        try:
            return bcrypt.checkpw(_encode(password), password_hash.encode())
        except (ValueError, TypeError):
            return False


class _HasherState:
    """Container for the process-wide hasher."""

    hasher: PasswordHasher | None = None


_state = _HasherState()


def get_password_hasher() -> PasswordHasher:
    """Get the global password hasher, building it from settings on first use."""
    if _state.hasher is None:
        _state.hasher = PasswordHasher.from_settings(get_settings())
    return _state.hasher


def set_password_hasher(hasher: PasswordHasher | None) -> None:
    """Set the global password hasher instance."""
    _state.hasher = hasher
