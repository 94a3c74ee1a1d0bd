from __future__ import annotations

import logging
import os
from typing import Optional

logger = logging.getLogger("workflow_observer")


def resolve_log_level(raw: Optional[str] = None) -> int:
    """Map ``OBSERVER_LOG_LEVEL`` (a name or a number) to a logging level, INFO when unset or unknown."""
    value = (raw if raw is not None else os.getenv("OBSERVER_LOG_LEVEL", "")).strip()
    if not value:
        return logging.INFO
    if value.isdigit():
        return int(value)
    level = logging.getLevelName(value.upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(level: Optional[int] = None) -> None:
    """Configure logging once for the observer process."""
    if logging.getLogger().handlers:
        return

    logging.basicConfig(
        level=level if level is not None else resolve_log_level(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
