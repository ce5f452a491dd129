"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is loaded from .env or environment variables."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # HR backend
    hr_api_base_url: str = "http://localhost:5000"
    hr_api_key: str = ""
    hr_api_timeout: float = 15.0

    # Default scope (onboarding wins when both are set)
    onboarding_id: int | None = None
    employee_id: int | None = None

    # Reconciliation
    status_poll_interval: float = 10.0
    status_poll_max_ticks: int = 12
    submissions_refresh_interval: float = 15.0

    # Push Notifications
    pushover_user_key: str = ""
    pushover_api_token: str = ""
    ntfy_topic: str = ""
    ntfy_server: str = "https://ntfy.sh"

    # Application
    log_level: str = "WARNING"

    def has_api_key(self) -> bool:
        return bool(self.hr_api_key)

    def has_pushover(self) -> bool:
        return bool(self.pushover_user_key and self.pushover_api_token)

    def has_ntfy(self) -> bool:
        return bool(self.ntfy_topic)

    def has_push(self) -> bool:
        return self.has_pushover() or self.has_ntfy()


def get_settings() -> Settings:
    return Settings()
