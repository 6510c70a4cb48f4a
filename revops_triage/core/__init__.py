"""
Core infrastructure for the triage engine.

Provides:
- Configuration management via pydantic-settings
- Async PostgreSQL connectivity via asyncpg
- The engine's error taxonomy
- Logging setup for host processes

Usage Examples:
    from revops_triage.core import get_settings, configure_logging

    configure_logging()
    settings = get_settings()
    print(settings.touch_target)
"""

import logging
from typing import Optional

from revops_triage.core.config import Settings, get_settings
from revops_triage.core.database import close_db, get_db_pool, init_db
from revops_triage.core.errors import (
    BatchEvaluationError,
    TriageError,
    TriageValidationError,
    UpstreamUnavailable,
)


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Apply the standard log format; level defaults to settings.log_level."""
    logging.basicConfig(
        level=(level or get_settings().log_level).upper(),
        format=LOG_FORMAT,
    )


__all__ = [
    # Configuration
    "Settings",
    "get_settings",
    "configure_logging",
    # Database
    "init_db",
    "close_db",
    "get_db_pool",
    # Errors
    "TriageError",
    "TriageValidationError",
    "UpstreamUnavailable",
    "BatchEvaluationError",
]
