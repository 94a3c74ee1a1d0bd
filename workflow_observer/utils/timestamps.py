"""Shared helpers for timestamps, timezones and durations."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from dateutil import parser as date_parser
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..logging_config import logger


UTC = timezone.utc


def utc_now() -> datetime:
    """Return the current time in UTC."""

    return datetime.now(UTC)


def ensure_aware(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC."""

    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment


def parse_iso(timestamp: str) -> datetime:
    """Parse an ISO timestamp, defaulting to UTC when timezone is absent."""

    return ensure_aware(date_parser.isoparse(timestamp))


def to_storage_timestamp(moment: datetime) -> str:
    """Normalize timestamps before writing to disk."""

    return ensure_aware(moment).astimezone(UTC).isoformat(timespec="seconds").replace("+00:00", "Z")


def resolve_timezone(timezone_name: Optional[str]) -> ZoneInfo:
    """Return a `ZoneInfo` instance, defaulting to UTC on errors."""

    if timezone_name:
        try:
            return ZoneInfo(timezone_name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(
                "unknown timezone provided; defaulting to UTC",
                extra={"timezone": timezone_name},
            )
    return ZoneInfo("UTC")


def seconds_between(start: datetime, end: datetime) -> float:
    """Elapsed seconds from *start* to *end* (negative when reversed)."""

    return (ensure_aware(end) - ensure_aware(start)).total_seconds()


def format_duration(seconds: float) -> str:
    """Render a duration as ``45s``, ``12m`` or ``1h 5m``."""

    total = int(round(seconds))
    if total < 60:
        return f"{total}s"
    if total < 3600:
        return f"{round(total / 60)}m"
    hours = total // 3600
    minutes = round((total % 3600) / 60)
    return f"{hours}h {minutes}m"


__all__ = [
    "UTC",
    "ensure_aware",
    "format_duration",
    "parse_iso",
    "resolve_timezone",
    "seconds_between",
    "to_storage_timestamp",
    "utc_now",
]
