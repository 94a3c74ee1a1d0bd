"""Swappable heuristic tables consulted by the task boundary detector.

The same-task table is asymmetric. ``AppPair("*", "Slack")`` says a switch
*into* Slack from any app is not by itself a boundary. Nothing is implied
about switching *out of* Slack, and a long enough stay in an exception app
(``exception_dwell_seconds``) still closes the task.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time
from typing import Optional, Tuple

from ...utils.timestamps import ensure_aware, resolve_timezone, seconds_between


WILDCARD = "*"


@dataclass(frozen=True)
class AppPair:
    from_app: str
    to_app: str

    def matches(self, from_app: str, to_app: str) -> bool:
        return _app_matches(self.from_app, from_app) and _app_matches(self.to_app, to_app)


def _app_matches(pattern: str, app: str) -> bool:
    if pattern == WILDCARD:
        return True
    return bool(app) and pattern.lower() in app.lower()


DEFAULT_SAME_TASK_PAIRS: Tuple[AppPair, ...] = (
    # Browser research while in main app
    AppPair(WILDCARD, "Google Chrome"),
    AppPair(WILDCARD, "Safari"),
    AppPair(WILDCARD, "Firefox"),
    AppPair(WILDCARD, "Arc"),
    AppPair(WILDCARD, "Microsoft Edge"),
    # Quick reference lookups
    AppPair(WILDCARD, "Calculator"),
    AppPair(WILDCARD, "Notes"),
    AppPair(WILDCARD, "Preview"),
    AppPair(WILDCARD, "Finder"),
    AppPair(WILDCARD, "File Explorer"),
    # Brief communication checks
    AppPair(WILDCARD, "Slack"),
    AppPair(WILDCARD, "Microsoft Teams"),
    AppPair(WILDCARD, "Discord"),
)

DEFAULT_NEW_TASK_APPS: Tuple[str, ...] = (
    "Mail",
    "Outlook",
    "Calendar",
    "Zoom",
    "Google Meet",
    "Webex",
    "FaceTime",
)


@dataclass(frozen=True)
class AppSwitchPolicy:
    same_task_pairs: Tuple[AppPair, ...] = DEFAULT_SAME_TASK_PAIRS
    new_task_apps: Tuple[str, ...] = DEFAULT_NEW_TASK_APPS
    exception_dwell_seconds: float = 300.0

    def is_same_task_switch(self, from_app: str, to_app: str) -> bool:
        if not from_app or not to_app:
            return False
        return any(pair.matches(from_app, to_app) for pair in self.same_task_pairs)

    def is_new_task_app(self, app: str) -> bool:
        return bool(app) and any(candidate.lower() in app.lower() for candidate in self.new_task_apps)

    def is_boundary(self, from_app: str, to_app: str, dwell_seconds: float, debounce_seconds: float) -> bool:
        """Whether a stay of *dwell_seconds* in *to_app*, entered from *from_app*, ends the task."""

        if dwell_seconds < debounce_seconds:
            return False
        if self.is_new_task_app(to_app):
            return True
        if self.is_same_task_switch(from_app, to_app):
            return dwell_seconds >= self.exception_dwell_seconds
        return True


@dataclass(frozen=True)
class DayBoundary:
    name: str
    at: time


DEFAULT_DAY_BOUNDARIES: Tuple[DayBoundary, ...] = (
    DayBoundary("lunch", time(12, 0)),
    DayBoundary("end_of_day", time(17, 30)),
)


@dataclass(frozen=True)
class TimePatternPolicy:
    """Fixed times of day that bias a pause toward ending the task."""

    boundaries: Tuple[DayBoundary, ...] = DEFAULT_DAY_BOUNDARIES
    min_gap_seconds: float = 120.0
    timezone: str = "UTC"

    def crossed(self, previous: datetime, current: datetime) -> Optional[DayBoundary]:
        if seconds_between(previous, current) < self.min_gap_seconds:
            return None
        tz = resolve_timezone(self.timezone)
        prev_local = ensure_aware(previous).astimezone(tz)
        curr_local = ensure_aware(current).astimezone(tz)
        if prev_local.date() != curr_local.date():
            return DayBoundary("new_day", time(0, 0))
        for boundary in self.boundaries:
            if prev_local.time() < boundary.at <= curr_local.time():
                return boundary
        return None


__all__ = [
    "AppPair",
    "AppSwitchPolicy",
    "DEFAULT_DAY_BOUNDARIES",
    "DEFAULT_NEW_TASK_APPS",
    "DEFAULT_SAME_TASK_PAIRS",
    "DayBoundary",
    "TimePatternPolicy",
    "WILDCARD",
]
