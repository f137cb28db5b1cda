from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings, overridable through ``ROSTER_*`` environment variables."""

    app_name: str = "Roster Admin"
    api_version: str = "1.0.0"
    environment: str = "development"
    secret_key: str = "CHANGE_ME"
    access_token_expire_minutes: int = 30
    database_url: str = "sqlite:///./roster.db"
    log_level: str = "INFO"
    # Read-through cache lifetimes, in seconds
    dashboard_cache_ttl: int = 60
    stats_cache_ttl: int = 300
    bulk_enrollment_timeout_ms: int = 30000
    duplicate_recent_activity_days: int = 30
    default_page_size: int = 50
    weekend_sessions_only: bool = True

    model_config = SettingsConfigDict(env_prefix="ROSTER_", case_sensitive=False, extra="ignore")

    @property
    def SECRET_KEY(self) -> str:
        return self.secret_key

    @property
    def ACCESS_TOKEN_EXPIRE_MINUTES(self) -> int:
        return self.access_token_expire_minutes


_settings_instance = None


def get_settings():
    """Return a singleton Settings instance."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
