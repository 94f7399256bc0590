"""
Environment-driven settings for the back-office API.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

from .formatting import DEFAULT_LOCALE
from .service import DAILY_REVENUE_WINDOW_DAYS, DEFAULT_CURRENCY, RECENT_EVENTS_LIMIT

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class DatabaseConfig(BaseModel):
    url: Optional[str] = None


class BackofficeConfig(BaseModel):
    database: DatabaseConfig = DatabaseConfig()
    locale: str = DEFAULT_LOCALE
    timezone: Optional[str] = None
    """IANA timezone for day/month bucketing; unset means the server's local time."""

    default_currency: str = DEFAULT_CURRENCY
    revenue_window_days: int = DAILY_REVENUE_WINDOW_DAYS
    recent_events_limit: int = RECENT_EVENTS_LIMIT
    log_level: str = "INFO"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def load_config() -> BackofficeConfig:
    load_dotenv()
    cfg = BackofficeConfig()
    return BackofficeConfig(
        database=DatabaseConfig(url=os.getenv("BACKOFFICE_DATABASE_URL", cfg.database.url)),
        locale=os.getenv("BACKOFFICE_LOCALE", cfg.locale),
        timezone=os.getenv("BACKOFFICE_TIMEZONE", cfg.timezone),
        default_currency=os.getenv("BACKOFFICE_DEFAULT_CURRENCY", cfg.default_currency),
        revenue_window_days=_env_int("BACKOFFICE_REVENUE_WINDOW_DAYS", cfg.revenue_window_days),
        recent_events_limit=_env_int("BACKOFFICE_RECENT_EVENTS", cfg.recent_events_limit),
        log_level=os.getenv("BACKOFFICE_LOG_LEVEL", cfg.log_level),
    )


def configure_logging(level: str = "INFO") -> None:
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
