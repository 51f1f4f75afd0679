"""Configuration settings for the chatbot widget browser tests."""

import json
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuration settings loaded from environment variables or JSON file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # Chatbot URLs
    chatbot_base_url: str = Field(
        default="https://whoosh.int.virginmediao2.co.uk",
        description="Base URL of the site hosting the chat widget",
    )
    chatbot_path: str = Field(
        default="/support/help/moving-home",
        description="Path to the page with the chat widget",
    )
    widget: Literal["generic", "virgin_media"] = Field(
        default="virgin_media",
        description="Selector catalog used to locate chat widget controls",
    )

    # Browser settings
    headless: bool = Field(
        default=True,
        description="Run browser in headless mode",
    )
    browser: Literal["chromium", "firefox", "webkit"] = Field(
        default="chromium",
        description="Browser to use for testing",
    )
    timeout: int = Field(
        default=30000,
        description="Default timeout for browser actions (ms)",
    )
    expect_timeout: int = Field(
        default=15000,
        description="Default timeout for expect operations (ms)",
    )

    # Chat timings
    response_timeout: int = Field(
        default=30000,
        description="How long to wait for a bot reply (ms)",
    )
    typing_timeout: int = Field(
        default=10000,
        description="How long to wait for the typing indicator to show up (ms)",
    )
    message_timeout: int = Field(
        default=15000,
        description="Timeout for message input operations (ms)",
    )
    widget_load_timeout: int = Field(
        default=20000,
        description="How long the chat widget may take to load after opening (ms)",
    )

    # Wait utility settings
    default_wait_timeout: int = Field(default=10000, description="Default wait timeout (ms)")
    short_wait_timeout: int = Field(default=5000, description="Short wait timeout (ms)")
    long_wait_timeout: int = Field(default=30000, description="Long wait timeout (ms)")
    poll_interval: int = Field(
        default=500,
        description="Delay between predicate evaluations while waiting (ms)",
    )

    # Retry settings
    max_retries: int = Field(
        default=3,
        description="Maximum attempts for retried operations",
    )
    retry_delay: int = Field(
        default=1000,
        description="Delay between retry attempts (ms)",
    )
    retry_backoff: Literal["fixed", "exponential"] = Field(
        default="fixed",
        description="Delay strategy between attempts; exponential adds jitter",
    )

    # Output directories
    reports_dir: str = Field(
        default="./reports",
        description="Directory for test reports",
    )
    screenshots_dir: str = Field(
        default="./screenshots",
        description="Directory for screenshots",
    )
    logs_dir: str = Field(
        default="./logs",
        description="Directory for the error log",
    )

    # Failure artifacts
    screenshot_on_failure: bool = Field(
        default=True,
        description="Capture a screenshot when a browser test fails",
    )
    capture_console_logs: bool = Field(
        default=True,
        description="Capture browser console logs when a browser test fails",
    )

    # Test data settings
    fixtures_dir: Optional[str] = Field(
        default=None,
        description="Directory containing test data (defaults to ./fixtures relative to package)",
    )
    data_environment: str = Field(
        default="test",
        description="Environment suffix for environment-specific data files",
    )
    conversations_file: str = Field(
        default="conversations.json",
        description="Conversation scripts replayed by the conversation suite",
    )
    scenarios_file: str = Field(
        default="test-scenarios.csv",
        description="CSV file driving the data-driven suite",
    )

    @model_validator(mode='after')
    def validate_timings(self):
        """Validate that timeouts and retry settings are usable."""
        for name in ("timeout", "response_timeout", "default_wait_timeout", "poll_interval"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name.upper()} must be a positive number of milliseconds")

        if self.poll_interval > self.default_wait_timeout:
            raise ValueError(
                "POLL_INTERVAL must not be larger than DEFAULT_WAIT_TIMEOUT"
            )

        if self.max_retries < 1:
            raise ValueError("MAX_RETRIES must be at least 1")

        if self.retry_delay < 0:
            raise ValueError("RETRY_DELAY must not be negative")
        return self

    @property
    def chatbot_url(self) -> str:
        """Full URL to the chatbot page."""
        return f"{self.chatbot_base_url}{self.chatbot_path}"

    @property
    def reports_path(self) -> Path:
        return Path(self.reports_dir)

    @property
    def screenshots_path(self) -> Path:
        return Path(self.screenshots_dir)

    @property
    def logs_path(self) -> Path:
        return Path(self.logs_dir)

    @property
    def fixtures_path(self) -> Path:
        """Get the path to the fixtures directory."""
        if self.fixtures_dir:
            return Path(self.fixtures_dir)
        return Path(__file__).parent / "fixtures"

    @property
    def wait_timeouts(self) -> dict:
        """Timeouts in the shape used by WaitUtils.set_timeouts."""
        return {
            "default": self.default_wait_timeout,
            "short": self.short_wait_timeout,
            "long": self.long_wait_timeout,
            "retry_interval": self.poll_interval,
        }

    @classmethod
    def from_json(cls, json_path: Path) -> "Settings":
        """Load settings from a JSON config file.

        JSON keys use snake_case matching the field names.
        JSON values take precedence over environment variables and .env.
        """
        with open(json_path) as f:
            config_data = json.load(f)
        return cls(**config_data)


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the current settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def set_settings(settings: Optional[Settings]) -> None:
    """Set the global settings instance."""
    global _settings
    _settings = settings


def load_settings_from_json(json_path: Path) -> Settings:
    """Load settings from JSON file and set as global instance."""
    global _settings
    _settings = Settings.from_json(json_path)
    return _settings
