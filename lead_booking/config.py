"""
Centralized configuration with environment variable overrides.

Backend location, business hours, slot granularity and booking defaults
are configurable here. Nothing is hardcoded in engine or backend logic.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

from lead_booking.logging_context import OperationIdFilter
from lead_booking.utils import range_minutes

load_dotenv()

logger = logging.getLogger(__name__)

# Real-world UTC offsets run from UTC-12:00 to UTC+14:00
MIN_TZ_OFFSET_MINUTES = -12 * 60
MAX_TZ_OFFSET_MINUTES = 14 * 60


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class ApiConfig:
    """Booking backend connection settings."""

    base_url: str = os.getenv("BOOKING_API_URL", "http://localhost:3000")
    timeout_sec: float = _safe_float("BOOKING_API_TIMEOUT", "15.0")
    token: Optional[str] = os.getenv("BOOKING_API_TOKEN") or None


@dataclass(frozen=True)
class ScheduleConfig:
    """Working hours, granularity and booking payload defaults."""

    business_hours_start: str = os.getenv("BUSINESS_HOURS_START", "09:00")
    business_hours_end: str = os.getenv("BUSINESS_HOURS_END", "18:00")
    slot_minutes: int = _safe_int("SLOT_MINUTES", "15")
    viewer_tz_offset_minutes: int = _safe_int("VIEWER_TZ_OFFSET_MINUTES", "0")
    booking_type: str = os.getenv("BOOKING_TYPE", "manual_followup")
    booking_source: str = os.getenv("BOOKING_SOURCE", "user_ui")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    api: ApiConfig = field(default_factory=ApiConfig)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    app_name: str = os.getenv("APP_NAME", "lead-booking")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if config.api.timeout_sec <= 0:
        raise ValueError(
            f"BOOKING_API_TIMEOUT must be > 0, got {config.api.timeout_sec}"
        )
    if not 1 <= config.schedule.slot_minutes <= 1440:
        raise ValueError(
            f"SLOT_MINUTES must be between 1 and 1440, got {config.schedule.slot_minutes}"
        )
    offset = config.schedule.viewer_tz_offset_minutes
    if not MIN_TZ_OFFSET_MINUTES <= offset <= MAX_TZ_OFFSET_MINUTES:
        raise ValueError(
            f"VIEWER_TZ_OFFSET_MINUTES must be between {MIN_TZ_OFFSET_MINUTES} "
            f"and {MAX_TZ_OFFSET_MINUTES}, got {offset}"
        )

    start = config.schedule.business_hours_start
    end = config.schedule.business_hours_end
    try:
        start_min, end_min = range_minutes(start, end)
    except ValueError:
        raise ValueError(
            f"BUSINESS_HOURS_START/BUSINESS_HOURS_END must be HH:MM, got {start!r}-{end!r}"
        ) from None
    if start_min >= end_min:
        raise ValueError(
            f"BUSINESS_HOURS_START must be before BUSINESS_HOURS_END, got {start}-{end}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s [%(op_id)s]: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, OperationIdFilter) for f in handler.filters):
            handler.addFilter(OperationIdFilter())
    logger.info("Configuration loaded for '%s' (%s)", config.app_name, config.api.base_url)
    return config


# Singleton instance
settings = load_config()
