"""Runtime settings and logging setup."""

from __future__ import annotations

import logging
import sys
from datetime import time
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from timetable.services.rules import SeverityPolicy

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TIMETABLE_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Severity thresholds
    high_overlap_ratio: float = 0.5
    capacity_low_ratio: float = 0.10
    capacity_medium_ratio: float = 0.25
    flag_department_overlap: bool = True

    # Repository retries
    store_retry_attempts: int = 3
    store_retry_backoff_seconds: float = 0.05

    # Suggestion search window
    day_start: time = time(8, 0)
    day_end: time = time(18, 0)
    slot_step_minutes: int = 30
    max_suggestions: int = 3

    log_level: str = "INFO"

    def severity_policy(self) -> SeverityPolicy:
        return SeverityPolicy(
            high_overlap_ratio=self.high_overlap_ratio,
            capacity_low_ratio=self.capacity_low_ratio,
            capacity_medium_ratio=self.capacity_medium_ratio,
            flag_department_overlap=self.flag_department_overlap,
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: str | None = None) -> logging.Logger:
    """Attach a stdout handler to the ``timetable`` logger (once)."""
    logger = logging.getLogger("timetable")
    logger.setLevel((level or get_settings().log_level).upper())

    # Prevent duplicate handlers if called more than once
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(handler)
    return logger
