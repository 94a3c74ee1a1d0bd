from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ConfusionType(str, Enum):
    UNFAMILIAR_APP = "unfamiliar_app"
    UNCLEAR_PURPOSE = "unclear_purpose"
    REPEATED_ACTION = "repeated_action"
    MULTI_SYSTEM = "multi_system"
    PATTERN_DEVIATION = "pattern_deviation"
    MANUAL_ENTRY = "manual_entry"
    ERROR_STATE = "error_state"


class QuestionStatus(str, Enum):
    PENDING = "pending"
    ANSWERED = "answered"
    DISMISSED = "dismissed"
    DEFERRED = "deferred"

    @property
    def is_terminal(self) -> bool:
        return self in {QuestionStatus.ANSWERED, QuestionStatus.DISMISSED}


@dataclass(frozen=True)
class ConfusionSignal:
    """Ephemeral claim that current activity cannot be explained confidently."""

    type: ConfusionType
    confidence: float
    trigger_context: str
    suggested_question: str


class ClarificationQuestion(BaseModel):
    """A throttled, deduplicated question surfaced to the user."""

    model_config = ConfigDict(validate_assignment=True)

    id: str
    session_id: str
    timestamp: datetime
    trigger_context: str = ""
    question: str
    status: QuestionStatus = QuestionStatus.PENDING
    answer: Optional[str] = None
    answered_at: Optional[datetime] = None
    deferred_at: Optional[datetime] = None
    resurfaced_at: Optional[datetime] = None
    confusion_type: Optional[ConfusionType] = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


__all__ = [
    "ClarificationQuestion",
    "ConfusionSignal",
    "ConfusionType",
    "QuestionStatus",
]
