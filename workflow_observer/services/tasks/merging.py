"""Backward merging of over-segmented tasks."""

from __future__ import annotations

from typing import Dict, List

from ...models import AppSegment, BoundaryTrigger, Task, TaskStatus
from ...utils.timestamps import seconds_between


_EXPLICIT_STARTS = {
    BoundaryTrigger.TIME_GAP,
    BoundaryTrigger.TIME_PATTERN,
    BoundaryTrigger.USER_INDICATION,
}


def should_merge_tasks(earlier: Task, later: Task, *, merge_gap_seconds: float) -> bool:
    if earlier.end_time is None or later.end_time is None:
        return False
    if earlier.status != TaskStatus.COMPLETED:
        return False
    if later.start_trigger in _EXPLICIT_STARTS:
        return False

    gap = seconds_between(earlier.end_time, later.start_time)
    if gap < 0 or gap > merge_gap_seconds:
        return False

    return earlier.dominant_app() == later.dominant_app()


def merge_tasks(first: Task, second: Task) -> Task:
    """Combine two tasks into the earlier one's identity.

    Order-insensitive and idempotent: segments are keyed by (app, start, end),
    so re-merging an already absorbed task adds nothing.
    """

    earlier, later = sorted((first, second), key=lambda task: (task.start_time, task.id))
    segments: Dict[tuple, AppSegment] = {}
    for segment in [*earlier.app_segments, *later.app_segments]:
        segments.setdefault(segment.key(), segment)

    refs: List[str] = list(dict.fromkeys([*earlier.observation_refs, *later.observation_refs]))
    titles: List[str] = list(dict.fromkeys([*earlier.window_titles, *later.window_titles]))
    end_times = [task.end_time for task in (earlier, later) if task.end_time is not None]

    if earlier.id == later.id:
        latest = earlier
    else:
        latest = max((earlier, later), key=lambda task: task.end_time or task.start_time)
    return Task(
        id=earlier.id,
        session_id=earlier.session_id,
        start_time=earlier.start_time,
        name=earlier.name if earlier.is_named else later.name,
        end_time=max(end_times) if end_times else None,
        status=latest.status,
        app_segments=sorted(segments.values(), key=lambda segment: segment.start_time),
        observation_refs=refs,
        window_titles=titles,
        user_explanation=earlier.user_explanation or later.user_explanation,
        start_trigger=earlier.start_trigger,
        end_trigger=latest.end_trigger,
    )


__all__ = ["merge_tasks", "should_merge_tasks"]
