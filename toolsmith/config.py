"""
Server settings.

Environment-based configuration for toolsmith HTTP servers. Every setting
reads from a ``TOOLSMITH_``-prefixed environment variable or a ``.env`` file.
"""

from functools import lru_cache

from limits import parse_many
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerSettings(BaseSettings):
    """Settings shared by the HTTP server and the CLI."""

    model_config = SettingsConfigDict(
        env_prefix="TOOLSMITH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server
    host: str = Field(default="0.0.0.0", description="Host to bind the server")
    port: int = Field(default=3000, ge=1, le=65535, description="Port to bind the server")

    # Auth: TOOLSMITH_API_KEYS='["key-one", "key-two"]'; empty disables the check
    api_keys: list[SecretStr] = Field(default_factory=list)

    # Rate limit on the execute routes, per client address; empty disables it
    rate_limit: str | None = Field(default="100 per 15 minutes")

    # Execution
    execution_timeout_seconds: float = Field(default=30.0, gt=0)

    # Logging
    log_level: str = Field(default="INFO")
    json_logs: bool = Field(default=False, description="Render logs as JSON lines")

    # Metrics
    metrics_history_size: int = Field(default=1000, ge=1)
    metrics_retention_seconds: float = Field(default=86400.0, gt=0)

    # CORS
    cors_origins: list[str] = Field(default_factory=list)

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level {value!r}")
        return level

    @field_validator("rate_limit")
    @classmethod
    def _check_rate_limit(cls, value: str | None) -> str | None:
        if not value:
            return None
        parse_many(value)
        return value

    @property
    def auth_enabled(self) -> bool:
        return bool(self.api_keys)


@lru_cache()
def get_settings() -> ServerSettings:
    """Get cached server settings."""
    return ServerSettings()
