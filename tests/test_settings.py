import pytest
from pydantic import ValidationError

from backend.app.core.settings import Settings, get_settings


def test_settings_defaults():
    settings = get_settings()
    assert settings.app_name == "Roster Admin"
    assert settings.environment == "development"
    assert isinstance(settings.secret_key, str) and settings.secret_key
    assert isinstance(settings.database_url, str) and settings.database_url
    assert settings.dashboard_cache_ttl == 60
    assert settings.stats_cache_ttl == 300
    assert settings.bulk_enrollment_timeout_ms == 30000
    assert settings.duplicate_recent_activity_days == 30


def test_settings_read_prefixed_environment(monkeypatch):
    monkeypatch.setenv("ROSTER_LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("ROSTER_DEFAULT_PAGE_SIZE", "25")
    monkeypatch.setenv("ROSTER_WEEKEND_SESSIONS_ONLY", "false")
    settings = Settings()
    assert settings.log_level == "DEBUG"
    assert settings.default_page_size == 25
    assert settings.weekend_sessions_only is False


def test_get_settings_is_singleton():
    assert get_settings() is get_settings()


def test_settings_reject_malformed_numbers(monkeypatch):
    monkeypatch.setenv("ROSTER_STATS_CACHE_TTL", "five minutes")
    with pytest.raises(ValidationError):
        Settings()


def test_uppercase_aliases_follow_fields():
    settings = Settings(secret_key="s3cret", access_token_expire_minutes=5)
    assert settings.SECRET_KEY == "s3cret"
    assert settings.ACCESS_TOKEN_EXPIRE_MINUTES == 5
