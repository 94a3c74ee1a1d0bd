from .text import estimate_units, is_near_duplicate, overlap_score, truncate_to_units
from .timestamps import (
    UTC,
    ensure_aware,
    format_duration,
    parse_iso,
    resolve_timezone,
    seconds_between,
    to_storage_timestamp,
    utc_now,
)

__all__ = [
    "UTC",
    "ensure_aware",
    "estimate_units",
    "format_duration",
    "is_near_duplicate",
    "overlap_score",
    "parse_iso",
    "resolve_timezone",
    "seconds_between",
    "to_storage_timestamp",
    "truncate_to_units",
    "utc_now",
]
