"""Job board configuration, loaded from environment variables and .env."""

import secrets
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

# Generated once per process when JWT_SECRET_KEY is not configured.
# Tokens signed with it do not survive a restart.
_EPHEMERAL_JWT_SECRET = secrets.token_urlsafe(48)


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "Job Board"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"

    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_db: str = "job_board"
    mongodb_timeout_ms: int = Field(default=5000, ge=100)

    # Shared revocation list. No URL means the in-process store.
    redis_url: str | None = None
    redis_socket_timeout: float = Field(default=2.0, gt=0)

    jwt_secret_key: str | None = None
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = Field(default=24 * 60, ge=1)
    jwt_refresh_token_expire_days: int = Field(default=7, ge=1)
    password_reset_expire_minutes: int = Field(default=60, ge=1)
    email_verification_expire_hours: int = Field(default=24, ge=1)

    revocation_cleanup_interval_seconds: int = Field(default=60, ge=1)
    rate_limit_requests_per_minute: int = Field(default=100, ge=1)

    cors_origins: str = "http://localhost:5174"
    client_url: str = "http://localhost:5174"
    enable_metrics: bool = False

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in _VALID_LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(_VALID_LOG_LEVELS)}")
        return level

    @field_validator("jwt_secret_key")
    @classmethod
    def validate_jwt_secret_key(cls, value: str | None) -> str | None:
        if value is not None and len(value) < 32:
            raise ValueError("JWT_SECRET_KEY must be at least 32 characters")
        return value

    @property
    def effective_jwt_secret_key(self) -> str:
        """The configured signing secret, or the per-process fallback."""
        return self.jwt_secret_key or _EPHEMERAL_JWT_SECRET

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    def check_security_configuration(self) -> list[str]:
        """Return warnings for insecure but allowed configuration."""
        warnings: list[str] = []

        if not self.jwt_secret_key:
            warnings.append(
                "JWT_SECRET_KEY is not set; using a random per-process secret. "
                "Issued tokens become invalid on restart."
            )

        if not self.redis_url and not self.debug:
            warnings.append(
                "REDIS_URL is not set; revoked tokens are tracked in process memory "
                "and are not shared between workers."
            )

        if "*" in self.cors_origins_list:
            warnings.append("CORS_ORIGINS contains '*'; any origin may call the API.")

        return warnings


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
