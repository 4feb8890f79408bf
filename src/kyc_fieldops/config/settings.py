"""Configuration settings for the KYC field-study tooling."""

from datetime import date
from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class FlatSettings(BaseSettings):
    """Flat settings loaded from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", validation_alias="LOG_LEVEL"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", validation_alias="LOG_FORMAT"
    )

    # Schedule generator
    study_seed: int = Field(default=20251021, validation_alias="STUDY_SEED")
    study_start_monday: date = Field(
        default=date(2026, 2, 2), validation_alias="STUDY_START_MONDAY"
    )
    schedule_output_dir: str = Field(
        default="data/randomization", validation_alias="SCHEDULE_OUTPUT_DIR"
    )
    roster_path: str | None = Field(default=None, validation_alias="ROSTER_PATH")

    # Reminder automation: storage
    reminder_sheet_name: str = Field(
        default="Payment Schedule", validation_alias="REMINDER_SHEET_NAME"
    )
    reminder_workbook_dir: str = Field(
        default="data/payments", validation_alias="REMINDER_WORKBOOK_DIR"
    )
    reminder_properties_path: str = Field(
        default="data/payments/document_properties.json",
        validation_alias="REMINDER_PROPERTIES_PATH",
    )

    # Reminder automation: events
    reminder_calendar_id: str = Field(default="", validation_alias="REMINDER_CALENDAR_ID")
    reminder_timezone: str = Field(default="UTC", validation_alias="REMINDER_TIMEZONE")
    reminder_event_hour: int = Field(default=9, validation_alias="REMINDER_EVENT_HOUR")
    reminder_event_minute: int = Field(default=0, validation_alias="REMINDER_EVENT_MINUTE")
    reminder_event_duration_min: int = Field(
        default=20, validation_alias="REMINDER_EVENT_DURATION_MIN"
    )
    reminder_popup_min: int | None = Field(default=10, validation_alias="REMINDER_POPUP_MIN")
    reminder_email_min: int | None = Field(default=60, validation_alias="REMINDER_EMAIL_MIN")

    # Reminder automation: throttling
    reminder_max_events_per_run: int = Field(
        default=40, validation_alias="REMINDER_MAX_EVENTS_PER_RUN"
    )
    reminder_sleep_between_creates: float = Field(
        default=0.3, validation_alias="REMINDER_SLEEP_BETWEEN_CREATES"
    )
    reminder_max_retries: int = Field(default=6, validation_alias="REMINDER_MAX_RETRIES")
    reminder_backoff_cap_seconds: float = Field(
        default=60.0, validation_alias="REMINDER_BACKOFF_CAP_SECONDS"
    )

    # Google Calendar API
    google_calendar_api_url: str = Field(
        default="https://www.googleapis.com/calendar/v3",
        validation_alias="GOOGLE_CALENDAR_API_URL",
    )
    google_calendar_token: SecretStr = Field(
        default=SecretStr(""), validation_alias="GOOGLE_CALENDAR_TOKEN"
    )
    google_calendar_timeout: float = Field(
        default=30.0, validation_alias="GOOGLE_CALENDAR_TIMEOUT"
    )


@lru_cache
def get_settings() -> FlatSettings:
    """Get cached settings instance."""
    return FlatSettings()
