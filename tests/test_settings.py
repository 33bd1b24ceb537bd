import pytest
from pydantic import ValidationError

from vibereader.config.settings import AuthMode, Settings


def test_default_settings(monkeypatch):
    """Test default settings values."""
    for name in ("DATABASE_URL", "JOBS_ENABLED", "AUTH_MODE", "ENVIRONMENT", "DEBUG"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings(_env_file=None)

    assert settings.app_name == "VibeReader"
    assert settings.version == "1.0.0"
    assert settings.environment == "development"
    assert settings.debug is False
    assert settings.auth_mode == AuthMode.NONE
    assert settings.database_url == "sqlite+aiosqlite:///./data/vibereader.db"
    assert settings.is_sqlite is True


def test_job_defaults():
    settings = Settings(_env_file=None)

    assert settings.jobs_worker_sleep == 5
    assert settings.jobs_max_attempts == 3
    assert settings.jobs_cleanup_days == 7
    assert settings.jobs_refresh_interval == 15
    assert settings.jobs_lease_seconds == 900
    assert settings.jobs_retry_backoff_seconds == 0
    assert settings.feed_retention_days == 90
    assert settings.feed_retention_count is None


def test_jobs_disabled_by_default(monkeypatch):
    monkeypatch.delenv("JOBS_ENABLED", raising=False)

    assert Settings(_env_file=None).jobs_enabled is False


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("JOBS_ENABLED", "true")
    monkeypatch.setenv("JOBS_MAX_ATTEMPTS", "5")
    monkeypatch.setenv("FEED_RETENTION_COUNT", "200")

    settings = Settings(_env_file=None)

    assert settings.jobs_enabled is True
    assert settings.jobs_max_attempts == 5
    assert settings.feed_retention_count == 200


@pytest.mark.parametrize(
    "field, value",
    [
        ("jobs_max_attempts", 0),
        ("jobs_cleanup_days", 0),
        ("jobs_refresh_interval", 0),
        ("jobs_worker_sleep", -1),
        ("jobs_lease_seconds", -1),
        ("feed_retention_count", 0),
    ],
)
def test_invalid_job_settings_rejected(field, value):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **{field: value})


def test_lease_must_outlast_handler_timeout():
    with pytest.raises(ValueError, match="JOBS_LEASE_SECONDS=60 must exceed"):
        Settings(_env_file=None, jobs_lease_seconds=60, jobs_handler_timeout=120)

    with pytest.raises(ValueError):
        Settings(_env_file=None, jobs_lease_seconds=120, jobs_handler_timeout=120)


def test_zero_lease_ignores_handler_timeout():
    settings = Settings(_env_file=None, jobs_lease_seconds=0, jobs_handler_timeout=600)

    assert settings.jobs_lease_seconds == 0


def test_production_validation_blocks_none_auth():
    """Test that production environment blocks AUTH_MODE=none."""
    with pytest.raises(ValueError, match="AUTH_MODE=none is not allowed in production"):
        Settings(_env_file=None, environment="production", auth_mode=AuthMode.NONE)


def test_production_allows_dev_auth():
    settings = Settings(_env_file=None, environment="production", auth_mode=AuthMode.DEV)

    assert settings.auth_mode == AuthMode.DEV


def test_postgres_url_is_not_sqlite():
    settings = Settings(
        _env_file=None, database_url="postgresql+asyncpg://user:pw@db/vibereader"
    )

    assert settings.is_sqlite is False
