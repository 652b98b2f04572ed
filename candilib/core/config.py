"""Application configuration via pydantic-settings.

Loads all settings from environment variables with sensible defaults.
A global `settings` singleton is available for import throughout the app.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Supabase
    SUPABASE_URL: str
    SUPABASE_KEY: str
    STORAGE_TIMEOUT_SECONDS: int = 10

    # Calendar
    TIMEZONE: str = "Europe/Paris"
    NON_WORKING_WEEKDAYS: list[int] = [6]  # Sunday
    VISIBLE_AT_HOUR: int = 12

    # Eligibility rules
    THEORY_REQUIRED: bool = True
    THEORY_VALIDITY_YEARS: int = 5
    RETRY_DELAY_DAYS: int = 45
    MAX_FAILURES: int = 5
    DAYS_FORBID_CANCEL: int = 7

    # Slot listing
    PAGE_SIZE: int = 200

    # Candidate action log
    ACTION_LOG_MAX_SIZE: int = 5000
    ACTION_LOG_FLUSH_SECONDS: int = 180

    # CORS
    ALLOWED_ORIGINS: str = "*"

    # Logging
    LOG_LEVEL: str = "INFO"


settings = Settings()  # type: ignore[call-arg]
