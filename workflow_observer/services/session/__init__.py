"""Session runtime: per-session orchestration, event channel and manager."""

from .channel import EventChannel, InFlightSlot
from .manager import SessionManager, get_session_manager, set_session_manager
from .runtime import ObservationSession, SessionStatus

__all__ = [
    "EventChannel",
    "InFlightSlot",
    "ObservationSession",
    "SessionManager",
    "SessionStatus",
    "get_session_manager",
    "set_session_manager",
]
