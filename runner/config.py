"""Application settings loaded from environment variables."""

import os
import zoneinfo
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """Runner configuration. Values come from ``RUNNER_*`` environment variables."""

    # Task discovery
    tasks_dir: Path = Field(default=Path("tasks"))
    auto_reload: bool = Field(default=False)
    auto_reload_interval_seconds: float = Field(default=2.0, gt=0)

    # History
    history_path: Path = Field(default=Path("data/history.json"))
    history_retention_days: int = Field(default=30, ge=1)
    history_prune_interval_hours: int = Field(default=24, ge=1)
    reconcile_interrupted_runs: bool = Field(default=False)

    # Scheduler
    scheduler_timezone: str = Field(default="America/New_York")
    scheduler_tick_seconds: float = Field(default=15.0, gt=0, le=60)
    task_timeout_seconds: float | None = Field(default=None, gt=0)

    # Notifications
    notify_on_success: bool = Field(default=False)
    notify_on_failure: bool = Field(default=True)
    notify_on_scheduled: bool = Field(default=False)
    notify_on_info: bool = Field(default=True)
    notify_on_warning: bool = Field(default=True)
    notification_webhook_url: str = Field(default="")

    # Logging
    log_level: str = Field(default="INFO")
    log_file: Path | None = Field(default=None)

    model_config = SettingsConfigDict(
        env_prefix="RUNNER_",
        env_file=_env_file(),
        env_file_encoding="utf-8",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

    @field_validator("scheduler_timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            zoneinfo.ZoneInfo(value)
        except (zoneinfo.ZoneInfoNotFoundError, ValueError) as exc:
            msg = f"Unknown timezone: {value}"
            raise ValueError(msg) from exc
        return value

    @field_validator("log_level")
    @classmethod
    def _normalise_log_level(cls, value: str) -> str:
        return value.strip().upper()

    @property
    def tzinfo(self) -> zoneinfo.ZoneInfo:
        """The scheduler timezone as a ``ZoneInfo``."""
        return zoneinfo.ZoneInfo(self.scheduler_timezone)
