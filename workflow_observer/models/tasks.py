from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from ..utils.timestamps import format_duration, seconds_between, to_storage_timestamp


DEFAULT_TASK_NAME = "Unnamed task"


class TaskStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    INTERRUPTED = "interrupted"


class BoundaryTrigger(str, Enum):
    APP_SWITCH = "app_switch"
    TIME_GAP = "time_gap"
    CONTEXT_CHANGE = "context_change"
    TIME_PATTERN = "time_pattern"
    USER_INDICATION = "user_indication"
    SESSION_START = "session_start"
    SESSION_END = "session_end"


class TaskEventKind(str, Enum):
    STARTED = "started"
    ENDED = "ended"
    SWITCHED = "switched"
    INTERRUPTED = "interrupted"
    RESUMED = "resumed"
    MERGED = "merged"
    NAMED = "named"


@dataclass
class AppSegment:
    """Contiguous time a task spent in one application."""

    app: str
    window_title: str
    start_time: datetime
    end_time: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.end_time is None

    @property
    def duration(self) -> float:
        if self.end_time is None:
            return 0.0
        return max(seconds_between(self.start_time, self.end_time), 0.0)

    def close(self, at: datetime) -> "AppSegment":
        self.end_time = at if at >= self.start_time else self.start_time
        return self

    def key(self) -> tuple:
        return (self.app, self.start_time, self.end_time)

    def to_record(self) -> Dict[str, Any]:
        return {
            "app": self.app,
            "window_title": self.window_title,
            "start_time": to_storage_timestamp(self.start_time),
            "end_time": to_storage_timestamp(self.end_time) if self.end_time else None,
            "duration": self.duration,
        }


@dataclass
class Task:
    """A detected unit of work."""

    id: str
    session_id: str
    start_time: datetime
    name: str = DEFAULT_TASK_NAME
    end_time: Optional[datetime] = None
    status: TaskStatus = TaskStatus.ACTIVE
    app_segments: List[AppSegment] = field(default_factory=list)
    observation_refs: List[str] = field(default_factory=list)
    window_titles: List[str] = field(default_factory=list)
    user_explanation: Optional[str] = None
    start_trigger: BoundaryTrigger = BoundaryTrigger.SESSION_START
    end_trigger: Optional[BoundaryTrigger] = None

    @property
    def open_segment(self) -> Optional[AppSegment]:
        if self.app_segments and self.app_segments[-1].is_open:
            return self.app_segments[-1]
        return None

    @property
    def duration(self) -> float:
        """Active seconds: the sum of closed segment spans, idle gaps excluded."""
        return sum(segment.duration for segment in self.app_segments)

    @property
    def apps(self) -> List[str]:
        return list(OrderedDict.fromkeys(segment.app for segment in self.app_segments))

    @property
    def is_named(self) -> bool:
        return self.name != DEFAULT_TASK_NAME

    def app_time(self, *, now: Optional[datetime] = None, before: Optional[datetime] = None) -> Dict[str, float]:
        totals: Dict[str, float] = {}
        for segment in self.app_segments:
            if before is not None and segment.start_time >= before:
                continue
            if segment.is_open:
                end = before or now
                spent = max(seconds_between(segment.start_time, end), 0.0) if end else 0.0
            else:
                spent = segment.duration
                if before is not None and segment.end_time and segment.end_time > before:
                    spent = max(seconds_between(segment.start_time, before), 0.0)
            totals[segment.app] = totals.get(segment.app, 0.0) + spent
        return totals

    def dominant_app(self, *, now: Optional[datetime] = None, before: Optional[datetime] = None) -> Optional[str]:
        """App with the most time in this task; ties go to the app seen first."""

        totals = self.app_time(now=now, before=before)
        if not totals:
            if self.app_segments:
                return self.app_segments[0].app
            return None
        order = {app: index for index, app in enumerate(self.apps)}
        return max(totals, key=lambda app: (totals[app], -order.get(app, 0)))

    def note_title(self, title: str) -> None:
        if title and title not in self.window_titles:
            self.window_titles.append(title)

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "name": self.name,
            "start_time": to_storage_timestamp(self.start_time),
            "end_time": to_storage_timestamp(self.end_time) if self.end_time else None,
            "duration": self.duration,
            "status": self.status.value,
            "app_segments": [segment.to_record() for segment in self.app_segments],
            "observation_refs": list(self.observation_refs),
            "user_explanation": self.user_explanation,
            "start_trigger": self.start_trigger.value,
            "end_trigger": self.end_trigger.value if self.end_trigger else None,
        }

    def to_export(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "start_time": to_storage_timestamp(self.start_time),
            "end_time": to_storage_timestamp(self.end_time) if self.end_time else None,
            "duration": self.duration,
            "duration_formatted": format_duration(self.duration),
            "status": self.status.value,
            "applications": [
                {"app": segment.app, "duration": segment.duration} for segment in self.app_segments
            ],
            "observation_count": len(self.observation_refs),
            "user_explanation": self.user_explanation,
        }


@dataclass(frozen=True)
class TaskBoundaryEvent:
    """Emitted whenever the detector starts, ends, switches, resumes or merges tasks."""

    kind: TaskEventKind
    trigger: BoundaryTrigger
    timestamp: datetime
    previous_task: Optional[Task] = None
    new_task: Optional[Task] = None
    merged_task_id: Optional[str] = None

    @property
    def closed_task(self) -> Optional[Task]:
        if self.kind in {TaskEventKind.ENDED, TaskEventKind.SWITCHED, TaskEventKind.INTERRUPTED}:
            return self.previous_task
        return None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "trigger": self.trigger.value,
            "previous_task": self.previous_task.to_record() if self.previous_task else None,
            "new_task": self.new_task.to_record() if self.new_task else None,
            "merged_task_id": self.merged_task_id,
        }


__all__ = [
    "AppSegment",
    "BoundaryTrigger",
    "DEFAULT_TASK_NAME",
    "Task",
    "TaskBoundaryEvent",
    "TaskEventKind",
    "TaskStatus",
]
