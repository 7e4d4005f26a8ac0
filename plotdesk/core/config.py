"""Plotdesk Configuration - environment driven settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MIN_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Plotdesk"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    # Database
    database_url: str = "sqlite+aiosqlite:///./plotdesk.db"
    db_pool_size: int = Field(default=20, ge=1)
    db_max_overflow: int = Field(default=20, ge=0)
    db_pool_timeout: int = Field(default=30, ge=1)
    db_pool_recycle: int = Field(default=1800, ge=-1)

    # Tokens
    access_token_secret: str = Field(
        default="change-me-access-token-secret-0123456789",
        description="HMAC secret for access tokens",
    )
    refresh_token_secret: str = Field(
        default="change-me-refresh-token-secret-0123456789",
        description="HMAC secret for refresh tokens (must differ from the access secret)",
    )
    jwt_algorithm: Literal["HS256", "HS384", "HS512"] = "HS256"
    access_token_expire_seconds: int = Field(default=25, ge=1)
    refresh_token_expire_seconds: int = Field(default=60 * 60 * 24 * 30, ge=1)
    refresh_token_mode: Literal["stateless", "stateful"] = "stateful"

    # Revocation
    revocation_backend: Literal["memory", "database"] = "database"
    revocation_purge_interval_seconds: int = Field(default=300, ge=1)

    # Read-only demo account (empty disables the observer guard)
    observer_account_id: str = ""

    # Password reset links
    password_reset_expire_seconds: int = Field(default=300, ge=1)
    frontend_url: str = "http://localhost:3000"

    # Outgoing mail (empty SMTP_HOST logs messages instead of sending them)
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    mail_from: str = "noreply@plotdesk.local"

    # HTTP
    cors_origins: str = "http://localhost:3000"
    enable_metrics: bool = False

    @field_validator("access_token_secret", "refresh_token_secret")
    @classmethod
    def validate_secret_length(cls, v: str) -> str:
        if len(v) < MIN_SECRET_LENGTH:
            raise ValueError(f"Token secrets must be at least {MIN_SECRET_LENGTH} characters")
        return v

    @model_validator(mode="after")
    def validate_distinct_secrets(self) -> "Settings":
        if self.access_token_secret == self.refresh_token_secret:
            raise ValueError("ACCESS_TOKEN_SECRET and REFRESH_TOKEN_SECRET must differ")
        return self

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    def check_security_configuration(self) -> list[str]:
        """Return warnings for settings that are unsafe in production."""
        warnings: list[str] = []

        if self.access_token_secret.startswith("change-me") or self.refresh_token_secret.startswith(
            "change-me"
        ):
            warnings.append(
                "Default token secrets in use. Set ACCESS_TOKEN_SECRET and REFRESH_TOKEN_SECRET."
            )

        if self.debug:
            warnings.append("DEBUG is enabled; API docs are publicly exposed.")

        if not self.smtp_host:
            warnings.append("SMTP_HOST is not set; password reset emails are only logged.")

        if "*" in self.cors_origins_list:
            warnings.append("CORS_ORIGINS allows every origin.")

        if self.revocation_backend == "memory" and not self.is_sqlite:
            warnings.append(
                "REVOCATION_BACKEND=memory is only visible to this process; "
                "use 'database' when running more than one instance."
            )

        return warnings


@lru_cache
def get_settings() -> Settings:
    """Return the cached settings instance."""
    return Settings()


settings = get_settings()
