from enum import Enum
from typing import Literal

from fastapi import Depends, Request
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from vibereader import __version__


class AuthMode(str, Enum):
    NONE = "none"
    DEV = "dev"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="VibeReader", description="Application name")
    version: str = Field(default=__version__, description="Application version")
    environment: str = Field(default="development", description="Environment")
    debug: bool = Field(default=False, description="Debug mode")

    # Authentication
    auth_mode: AuthMode = Field(
        default=AuthMode.NONE, description="Authentication mode"
    )
    dev_user_id: str = Field(
        default="1", description="Default user ID when AUTH_MODE=none"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )

    # Server
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=8000, description="Server port")

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/vibereader.db",
        description="Database connection URL",
    )
    db_pool_size: int = Field(default=10, description="Database connection pool size")
    db_max_overflow: int = Field(
        default=20, description="Database max overflow connections"
    )
    db_pool_timeout: int = Field(
        default=30, description="Database pool timeout in seconds"
    )
    db_pool_recycle: int = Field(
        default=3600, description="Database connection recycle time in seconds"
    )

    # Background jobs
    jobs_enabled: bool = Field(
        default=False, description="Allow the scheduler and worker to act"
    )
    jobs_worker_sleep: int = Field(
        default=5, ge=0, description="Seconds a daemon worker sleeps on an empty queue"
    )
    jobs_max_attempts: int = Field(
        default=3, ge=1, description="Attempts before a job is terminally failed"
    )
    jobs_cleanup_days: int = Field(
        default=7, ge=1, description="Age in days of terminal jobs to purge"
    )
    jobs_refresh_interval: int = Field(
        default=15, ge=1, description="Minutes after which a feed is due for refresh"
    )
    jobs_lease_seconds: int = Field(
        default=900,
        ge=0,
        description="Seconds a claimed job may stay in processing (0 disables)",
    )
    jobs_handler_timeout: float = Field(
        default=120.0, gt=0, description="Seconds a single handler may run"
    )
    jobs_retry_backoff_seconds: float = Field(
        default=0.0, ge=0, description="Base retry delay, doubled per attempt"
    )
    jobs_retry_backoff_max_seconds: float = Field(
        default=3600.0, ge=0, description="Upper bound for the retry delay"
    )

    # Feed fetching and retention
    feed_fetch_timeout: float = Field(
        default=30.0, gt=0, description="Total feed fetch timeout in seconds"
    )
    feed_fetch_connect_timeout: float = Field(
        default=10.0, gt=0, description="Connect timeout in seconds"
    )
    feed_max_redirects: int = Field(default=10, ge=0, description="Max redirects")
    feed_user_agent: str = Field(
        default=f"VibeReader/{__version__}", description="User-Agent for fetches"
    )
    feed_retention_days: int = Field(
        default=90, ge=1, description="Days to keep feed items"
    )
    feed_retention_count: int | None = Field(
        default=None, ge=1, description="Items to keep per feed (unset = unlimited)"
    )

    def model_post_init(self, __context) -> None:
        """Validate settings after initialization."""
        if self.environment == "production" and self.auth_mode == AuthMode.NONE:
            raise ValueError(
                f"AUTH_MODE={self.auth_mode.value} is not allowed in production environment. "
                "Put the API behind an authenticating proxy and use AUTH_MODE=dev."
            )
        if 0 < self.jobs_lease_seconds <= self.jobs_handler_timeout:
            raise ValueError(
                f"JOBS_LEASE_SECONDS={self.jobs_lease_seconds} must exceed "
                f"JOBS_HANDLER_TIMEOUT={self.jobs_handler_timeout} "
                "(or be 0 to disable leases)."
            )

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


def get_settings(request: Request) -> Settings:
    """Dependency injection function for settings."""
    return request.app.state.settings


# Convenience type alias for dependency injection
SettingsDep = Depends(get_settings)
