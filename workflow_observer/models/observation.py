from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Deque, List, Optional


@dataclass(frozen=True)
class Observation:
    """One timestamped screen/app/window snapshot delivered by the capture collaborator."""

    id: str
    timestamp: datetime
    active_app: str
    window_title: str = ""
    image_ref: Optional[str] = None


@dataclass
class ImmediateContext:
    """Rolling short-term window over the most recent observations."""

    capacity: int = 6
    buffer: Deque[Observation] = field(default_factory=deque)
    current_app: str = ""
    current_window_title: str = ""
    last_app_switch_time: Optional[datetime] = None
    last_change_description: Optional[str] = None

    def __post_init__(self) -> None:
        self.buffer = deque(self.buffer, maxlen=self.capacity)

    @property
    def latest(self) -> Optional[Observation]:
        return self.buffer[-1] if self.buffer else None

    def recent(self) -> List[Observation]:
        return list(self.buffer)

    def image_refs(self) -> List[str]:
        return [item.image_ref for item in self.buffer if item.image_ref]


__all__ = ["ImmediateContext", "Observation"]
