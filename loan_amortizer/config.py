"""Runtime settings read from the environment."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///loan_amortizer.sqlite3"
DEFAULT_LOG_LEVEL = "WARNING"
DEFAULT_MAX_ROWS = 120

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class Settings:
    database_url: str = DEFAULT_DATABASE_URL
    log_level: str = DEFAULT_LOG_LEVEL
    # Schedule rows printed before the output is truncated
    max_rows: int = DEFAULT_MAX_ROWS


def _log_level() -> str:
    value = os.environ.get("LOAN_AMORTIZER_LOG_LEVEL", "").strip().upper()
    if not value:
        return DEFAULT_LOG_LEVEL
    if value not in LOG_LEVELS:
        logger.warning("Unknown LOAN_AMORTIZER_LOG_LEVEL %r; using %s", value, DEFAULT_LOG_LEVEL)
        return DEFAULT_LOG_LEVEL
    return value


def _max_rows() -> int:
    value = os.environ.get("LOAN_AMORTIZER_MAX_ROWS", "").strip()
    if not value:
        return DEFAULT_MAX_ROWS
    if not value.isdigit() or int(value) < 1:
        logger.warning("Invalid LOAN_AMORTIZER_MAX_ROWS %r; using %d", value, DEFAULT_MAX_ROWS)
        return DEFAULT_MAX_ROWS
    return int(value)


def load_settings() -> Settings:
    """Build ``Settings`` from ``LOAN_AMORTIZER_*`` environment variables."""
    return Settings(
        database_url=os.environ.get("LOAN_AMORTIZER_DATABASE_URL") or DEFAULT_DATABASE_URL,
        log_level=_log_level(),
        max_rows=_max_rows(),
    )
