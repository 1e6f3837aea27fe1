"""
Configuration management using environment variables.
Handles all changelog watcher settings with proper validation and defaults.
"""

from typing import List, Optional
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from watcher.models import Source
from watcher.sources import DEFAULT_SOURCES


class ChangelogWatchConfig(BaseSettings):
    """
    Configuration class for changelog watcher settings.
    Uses pydantic BaseSettings for environment variable management.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Sources to monitor
    sources: List[Source] = Field(default_factory=lambda: list(DEFAULT_SOURCES))

    # Notification
    email_recipient: Optional[str] = Field(default=None)
    email_sender: str = Field(default="changelog-watch@localhost")
    smtp_host: str = Field(default="localhost")
    smtp_port: int = Field(default=587)
    smtp_username: Optional[str] = Field(default=None)
    smtp_password: Optional[str] = Field(default=None)
    smtp_use_tls: bool = Field(default=True)

    # Summarization
    gemini_api_key: Optional[str] = Field(default=None)
    gemini_model: str = Field(default="gemini-2.0-flash")
    gemini_api_base: str = Field(default="https://generativelanguage.googleapis.com/v1beta")
    summarizer_enabled: bool = Field(default=True)
    summary_max_chars: int = Field(default=2000)

    # Change detection
    detection_mode: str = Field(default="content_hash")
    skip_empty_extractions: bool = Field(default=False)

    # Fingerprint storage
    store_backend: str = Field(default="mongodb")
    mongodb_url: str = Field(default="mongodb://localhost:27017")
    mongodb_database: str = Field(default="changelog_watch")
    mongodb_collection: str = Field(default="properties")
    state_file: str = Field(default="changelog_state.json")

    # Fetching
    request_timeout: int = Field(default=30)
    rate_limit_per_second: float = Field(default=1.0)

    # Scheduler Configuration
    schedule_interval: str = Field(default="daily")
    schedule_hour: int = Field(default=9)
    schedule_minute: int = Field(default=0)
    timezone: str = Field(default="UTC")

    # Logging Configuration
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")
    log_file: Optional[str] = Field(default="logs/changelog_watch.log")

    # Development/Testing
    debug: bool = Field(default=False)

    @field_validator('request_timeout')
    @classmethod
    def validate_timeout(cls, v):
        """Ensure timeout is reasonable."""
        if v < 5 or v > 300:
            raise ValueError('request_timeout must be between 5 and 300 seconds')
        return v

    @field_validator('rate_limit_per_second')
    @classmethod
    def validate_rate_limit(cls, v):
        """Ensure rate limit is reasonable."""
        if v < 0.1 or v > 10:
            raise ValueError('rate_limit_per_second must be between 0.1 and 10')
        return v

    @field_validator('detection_mode')
    @classmethod
    def validate_detection_mode(cls, v):
        valid_modes = ['content_hash', 'external_date', 'raw_content']
        if v.lower() not in valid_modes:
            raise ValueError(f'detection_mode must be one of: {valid_modes}')
        return v.lower()

    @field_validator('store_backend')
    @classmethod
    def validate_store_backend(cls, v):
        valid_backends = ['mongodb', 'json']
        if v.lower() not in valid_backends:
            raise ValueError(f'store_backend must be one of: {valid_backends}')
        return v.lower()

    @field_validator('schedule_interval')
    @classmethod
    def validate_schedule_interval(cls, v):
        valid_intervals = ['daily', 'hourly']
        if v.lower() not in valid_intervals:
            raise ValueError(f'schedule_interval must be one of: {valid_intervals}')
        return v.lower()

    @field_validator('sources')
    @classmethod
    def validate_unique_sources(cls, v):
        """Source names key the fingerprint store, so they must be unique."""
        names = [source.name for source in v]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f'duplicate source names: {duplicates}')
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'log_level must be one of: {valid_levels}')
        return v.upper()

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v):
        """Ensure log format is valid."""
        valid_formats = ['json', 'console']
        if v.lower() not in valid_formats:
            raise ValueError(f'log_format must be one of: {valid_formats}')
        return v.lower()

    def get_log_file_path(self) -> Optional[Path]:
        """Get log file path as Path object."""
        if self.log_file:
            return Path(self.log_file)
        return None

    def get_state_file_path(self) -> Path:
        """Get state file path as Path object."""
        return Path(self.state_file)

    def get_user_agent(self) -> str:
        """Get user agent string for requests."""
        return "ChangelogWatch/1.0 (+release monitor)"

    def get_headers(self) -> dict:
        """Get default headers for HTTP requests."""
        return {
            "User-Agent": self.get_user_agent(),
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
        }


# Global configuration instance, read by entry points only
config = ChangelogWatchConfig()
