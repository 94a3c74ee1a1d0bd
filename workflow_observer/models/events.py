from __future__ import annotations

from datetime import datetime
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field


class ObserverEvent(BaseModel):
    """Discrete event delivered to the UI collaborator."""

    model_config = ConfigDict(frozen=True)

    kind: str = Field(..., min_length=1)
    session_id: str
    timestamp: datetime
    payload: Dict[str, Any] = Field(default_factory=dict)


__all__ = ["ObserverEvent"]
