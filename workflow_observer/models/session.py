from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..utils.timestamps import to_storage_timestamp


@dataclass
class TaskSummary:
    """Compact view of a task kept in the session tier."""

    task_id: str
    name: str
    start_time: datetime
    end_time: Optional[datetime]
    duration: float
    apps: List[str] = field(default_factory=list)
    brief: str = ""

    def to_record(self) -> Dict[str, Any]:
        return {
            "task_id": self.task_id,
            "name": self.name,
            "start_time": to_storage_timestamp(self.start_time),
            "end_time": to_storage_timestamp(self.end_time) if self.end_time else None,
            "duration": self.duration,
            "apps": list(self.apps),
            "brief": self.brief,
        }


@dataclass
class SessionContext:
    """Per-session facts accumulated while observing."""

    session_id: str
    start_time: datetime
    profile_id: str = "default"
    tasks_so_far: Dict[str, TaskSummary] = field(default_factory=dict)
    app_time_accumulator: Dict[str, float] = field(default_factory=dict)
    questions_asked: List[str] = field(default_factory=list)
    current_task_theory: Optional[str] = None
    last_summary_update: Optional[datetime] = None
    last_observation_time: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.last_summary_update is None:
            self.last_summary_update = self.start_time

    @property
    def task_names(self) -> List[str]:
        return [summary.name for summary in self.tasks_so_far.values()]

    def to_record(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "profile_id": self.profile_id,
            "start_time": to_storage_timestamp(self.start_time),
            "tasks_so_far": [summary.to_record() for summary in self.tasks_so_far.values()],
            "app_time_accumulator": dict(self.app_time_accumulator),
            "questions_asked": list(self.questions_asked),
            "current_task_theory": self.current_task_theory,
            "last_summary_update": (
                to_storage_timestamp(self.last_summary_update) if self.last_summary_update else None
            ),
        }


class SessionSummary(BaseModel):
    """Periodic compression of a session, appended to the historical record."""

    model_config = ConfigDict(extra="ignore")

    session_id: str
    date: datetime
    duration: float = 0.0
    tasks_completed: List[str] = Field(default_factory=list)
    apps_used: List[str] = Field(default_factory=list)
    questions_answered: int = 0
    new_observations: List[str] = Field(default_factory=list)
    brief: str = ""
    final: bool = False


class InterviewSummary(BaseModel):
    """Baseline role information captured before observation starts."""

    model_config = ConfigDict(extra="ignore")

    role: Optional[str] = None
    role_summary: Optional[str] = None
    department: Optional[str] = None
    responsibilities: List[str] = Field(default_factory=list)
    systems_used: List[str] = Field(default_factory=list)
    stated_pain_points: List[str] = Field(default_factory=list)
    typical_day: Optional[str] = None

    def describe_role(self) -> str:
        return self.role_summary or self.role or "Unknown role"


class QARecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    question: str
    answer: str
    answered_at: Optional[datetime] = None


class HistoricalContext(BaseModel):
    """Read-only composite loaded at session start."""

    model_config = ConfigDict(frozen=True)

    interview_summary: Optional[InterviewSummary] = None
    known_tasks: List[str] = Field(default_factory=list)
    previous_session_summaries: List[SessionSummary] = Field(default_factory=list)
    relevant_qa: List[QARecord] = Field(default_factory=list)

    @classmethod
    def empty(cls) -> "HistoricalContext":
        return cls()


__all__ = [
    "HistoricalContext",
    "InterviewSummary",
    "QARecord",
    "SessionContext",
    "SessionSummary",
    "TaskSummary",
]
