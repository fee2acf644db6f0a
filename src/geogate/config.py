"""Configuration module using Pydantic Settings."""

from dataclasses import dataclass
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# 12 hours in milliseconds
DEFAULT_WINDOW_MS = 12 * 60 * 60 * 1000
DEFAULT_LIMIT = 2


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="GEOGATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite:///data/rate-limits.db"

    # Quota
    window_ms: int = Field(default=DEFAULT_WINDOW_MS, gt=0)
    default_limit: int = Field(default=DEFAULT_LIMIT, gt=0)

    # Sweeper
    sweeper_enabled: bool = True
    sweep_interval_minutes: int = Field(default=60, gt=0)
    scheduler_timezone: str = "UTC"

    # Downstream lookup
    lookup_backend: str = "mmdbinspect"  # "mmdbinspect" or "http"
    mmdb_path: str = "location_sample.mmdb"
    mmdbinspect_bin: str = "mmdbinspect"
    lookup_url: str | None = None  # e.g. http://geo.internal/lookup/{ip}
    lookup_timeout: float = 10.0

    # Logging
    log_level: str = "INFO"

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = 3000
    trust_forwarded_for: bool = True

    def quota_policy(self) -> "QuotaPolicy":
        """Freeze the quota-related settings into a policy value."""
        return QuotaPolicy(window_ms=self.window_ms, default_limit=self.default_limit)


@dataclass(frozen=True)
class QuotaPolicy:
    """
    Process-wide quota parameters.

    Built once at startup and handed to the store, engine and sweeper.
    """

    window_ms: int = DEFAULT_WINDOW_MS
    default_limit: int = DEFAULT_LIMIT

    def __post_init__(self) -> None:
        if self.window_ms <= 0:
            raise ValueError("window_ms must be positive")
        if self.default_limit <= 0:
            raise ValueError("default_limit must be positive")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
