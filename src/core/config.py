"""Application configuration using pydantic-settings."""
from functools import lru_cache

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """
    Raised when the process cannot start with the configured environment.

    Missing secrets or unusable values are fatal at startup rather than
    falling back to defaults at request time.
    """


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Database
    database_url: str

    # Token signing - the refresh key is derived from this one secret
    jwt_secret: str = Field(validation_alias="JWT_SECRET")
    jwt_expires_in: str = Field(default="24h", validation_alias="JWT_EXPIRES_IN")
    refresh_token_expires_in: str = Field(
        default="7d", validation_alias="REFRESH_TOKEN_EXPIRES_IN",
    )

    # Password hashing work factor
    bcrypt_rounds: int = Field(default=10, validation_alias="BCRYPT_ROUNDS")

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    # Seconds between sweeps of expired rate limit windows
    rate_limit_sweep_interval: float = Field(
        default=60.0, gt=0, validation_alias="RATE_LIMIT_SWEEP_INTERVAL",
    )

    # CORS - comma-separated list of allowed origins (stored as string, parsed via property)
    cors_origins_str: str = Field(
        default="http://localhost:5173",
        validation_alias="CORS_ORIGINS",
    )

    @field_validator("jwt_secret")
    @classmethod
    def validate_jwt_secret(cls, v: str) -> str:
        """Refuse an empty or whitespace-only signing secret."""
        if not v.strip():
            raise ValueError("JWT_SECRET must not be empty")
        return v

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Upper-case the log level so 'debug' and 'DEBUG' both work."""
        return v.strip().upper()

    @property
    def cors_origins(self) -> list[str]:
        """Parse comma-separated CORS origins string into a list."""
        if not self.cors_origins_str:
            return []
        return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Raises:
        ConfigurationError: If a required variable is missing or invalid.
    """
    try:
        return Settings()
    except ValidationError as e:
        fields = ", ".join(
            str(err["loc"][0]) if err["loc"] else "settings" for err in e.errors()
        )
        raise ConfigurationError(f"Invalid or missing configuration: {fields}") from e
