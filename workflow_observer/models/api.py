from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..utils.timestamps import ensure_aware, parse_iso, utc_now
from .events import ObserverEvent
from .observation import Observation


def _parse_timestamp(value: Any) -> Any:
    """Accept any ISO 8601 form the capture side may send, compact or extended."""
    if isinstance(value, str) and value.strip():
        try:
            return parse_iso(value.strip())
        except (ValueError, OverflowError):
            return value
    return value


class HealthResponse(BaseModel):
    ok: bool
    service: str
    version: str
    active_session: Optional[str] = None


class StartSessionRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    profile_id: str = Field(default="default", min_length=1)
    session_id: Optional[str] = None
    started_at: Optional[datetime] = None

    @field_validator("started_at", mode="before")
    @classmethod
    def _parse_started_at(cls, value: Any) -> Any:
        return _parse_timestamp(value)


class ObservationRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    timestamp: Optional[datetime] = None
    active_app: str = Field(..., min_length=1)
    window_title: str = ""
    image_ref: Optional[str] = None

    @field_validator("timestamp", mode="before")
    @classmethod
    def _parse_observed_at(cls, value: Any) -> Any:
        return _parse_timestamp(value)

    @field_validator("active_app")
    @classmethod
    def _strip_app(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("active_app must not be blank")
        return cleaned

    def to_observation(self) -> Observation:
        return Observation(
            id=self.id or f"obs-{uuid.uuid4().hex[:12]}",
            timestamp=ensure_aware(self.timestamp) if self.timestamp else utc_now(),
            active_app=self.active_app,
            window_title=self.window_title or "",
            image_ref=self.image_ref,
        )


class ObservationResponse(BaseModel):
    ok: bool = True
    observation_id: str
    boundary_events: List[str] = Field(default_factory=list)
    current_task: Optional[Dict[str, Any]] = None


class IdleCheckRequest(BaseModel):
    now: Optional[datetime] = None

    @field_validator("now", mode="before")
    @classmethod
    def _parse_now(cls, value: Any) -> Any:
        return _parse_timestamp(value)


class EndSessionRequest(BaseModel):
    at: Optional[datetime] = None

    @field_validator("at", mode="before")
    @classmethod
    def _parse_at(cls, value: Any) -> Any:
        return _parse_timestamp(value)


class AnswerQuestionRequest(BaseModel):
    answer: str = Field(..., min_length=1)
    starts_new_task: bool = False


class SessionResponse(BaseModel):
    ok: bool = True
    session: Dict[str, Any]


class EventsResponse(BaseModel):
    events: List[ObserverEvent] = Field(default_factory=list)


__all__ = [
    "AnswerQuestionRequest",
    "EndSessionRequest",
    "EventsResponse",
    "HealthResponse",
    "IdleCheckRequest",
    "ObservationRequest",
    "ObservationResponse",
    "SessionResponse",
    "StartSessionRequest",
]
