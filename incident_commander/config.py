"""Incident Commander configuration using Pydantic Settings."""

from __future__ import annotations

from typing import Annotated, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class IncidentConfig(BaseSettings):
    """Main configuration class. Loads from .env file and environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    app_name: str = "Incident Commander"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 3000
    log_dir: str = "logs"

    # Database
    database_url: str = "sqlite+aiosqlite:///./incidents.db"
    seed_templates: bool = True

    # Slack
    slack_bot_token: str = ""
    slack_api_base_url: str = "https://slack.com/api"

    # Notification routing
    p1_channels: Annotated[list[str], NoDecode] = []
    p2_channels: Annotated[list[str], NoDecode] = []
    p1_dm_recipients: Annotated[list[str], NoDecode] = []
    dm_throttle_seconds: int = 300  # rolling window per (recipient, incident)
    delivery_timeout_seconds: float = 10.0
    record_throttled_notifications: bool = False

    # Status page
    statuspage_api_key: Optional[str] = None
    statuspage_page_id: Optional[str] = None
    statuspage_timeout_seconds: float = 30.0

    # Services offered in the declare form
    services: Annotated[list[str], NoDecode] = []

    @field_validator("p1_channels", "p2_channels", "p1_dm_recipients", "services", mode="before")
    @classmethod
    def split_comma_list(cls, v):
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("dm_throttle_seconds", "delivery_timeout_seconds", "statuspage_timeout_seconds")
    @classmethod
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v

    @property
    def statuspage_enabled(self) -> bool:
        return bool(self.statuspage_api_key and self.statuspage_page_id)


def get_config() -> IncidentConfig:
    """Factory function to create config instance."""
    return IncidentConfig()
