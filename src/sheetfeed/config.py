"""Library configuration using pydantic-settings.

Every value can be overridden through a ``SHEETFEED_``-prefixed environment
variable or a ``.env`` file, e.g. ``SHEETFEED_TIMEOUT=30``.
"""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class FeedSettings(BaseSettings):
    """Settings for talking to the spreadsheet feed service."""

    model_config = SettingsConfigDict(
        env_prefix="SHEETFEED_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Root under which structured feed paths are joined
    feed_url: str = "https://spreadsheets.google.com/feeds/"

    # Scopes requested for service account tokens
    auth_scopes: list[str] = ["https://spreadsheets.google.com/feeds"]

    gdata_version: str = "3.0"

    # Transport timeout in seconds
    timeout: float = 60.0

    # Defaults for add_worksheet()
    default_row_count: int = 50
    default_col_count: int = 20

    log_level: str = "INFO"

    @field_validator("feed_url")
    @classmethod
    def validate_feed_url(cls, v: str) -> str:
        """Structured paths are appended directly, so keep a trailing slash."""
        return v if v.endswith("/") else v + "/"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a known value."""
        allowed = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"log_level must be one of: {allowed}")
        return v_upper


@lru_cache
def get_settings() -> FeedSettings:
    """Get cached settings instance.

    Settings are loaded once and cached for the lifetime of the process.
    """
    return FeedSettings()
