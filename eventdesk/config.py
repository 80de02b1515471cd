"""Runtime settings for the event desk service."""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuration read from ``EVENTDESK_*`` environment variables."""

    # Listing
    page_size: int = 5
    default_timezone: str = "Europe/Zurich"

    # Booking
    privileged_roles: list[str] = ["admin", "co-curator", "co-designer"]
    max_recurrence_instances: int = 52

    # Logging
    log_level: str = "INFO"
    log_json_format: bool = False

    model_config = SettingsConfigDict(
        env_prefix="EVENTDESK_", env_file=".env", env_file_encoding="utf-8"
    )

    def is_privileged(self, role: str | None) -> bool:
        return role in self.privileged_roles


settings = Settings()
