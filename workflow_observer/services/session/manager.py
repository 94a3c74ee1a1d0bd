from __future__ import annotations

import uuid
from datetime import datetime
from typing import Callable, Optional

from ...config import ObservationConfig, Settings, get_settings
from ...errors import SessionNotFoundError, SessionStateError
from ...logging_config import logger
from ...models import SessionSummary
from ...utils.timestamps import utc_now
from ..context import HistoricalContextLoader
from ..reasoning import ReasoningCollaborator, ReasoningService
from ..storage import JsonSessionStore, SessionStore
from ..tasks import AppSwitchPolicy, TimePatternPolicy
from .runtime import ObservationSession, SessionStatus


def _new_session_id() -> str:
    return f"session-{uuid.uuid4().hex[:12]}"


def _default_reasoning(settings: Settings) -> Optional[ReasoningCollaborator]:
    if not settings.reasoning_enabled:
        logger.info("reasoning collaborator not configured; analysis disabled")
        return None
    return ReasoningService(settings)


class SessionManager:
    """Owns the single active observation session of this process."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        store: Optional[SessionStore] = None,
        reasoning_factory: Callable[[Settings], Optional[ReasoningCollaborator]] = _default_reasoning,
    ) -> None:
        self._settings = settings or get_settings()
        self._store = store if store is not None else JsonSessionStore(self._settings.data_dir)
        self._reasoning_factory = reasoning_factory
        self._active: Optional[ObservationSession] = None

    @property
    def store(self) -> SessionStore:
        return self._store

    @property
    def active(self) -> Optional[ObservationSession]:
        session = self._active
        if session is None or session.status == SessionStatus.ENDED:
            return None
        return session

    def start(
        self,
        *,
        profile_id: str = "default",
        session_id: Optional[str] = None,
        started_at: Optional[datetime] = None,
        config: Optional[ObservationConfig] = None,
    ) -> ObservationSession:
        if self.active is not None:
            raise SessionStateError(f"session {self._active.session_id} is still active")

        settings = self._settings
        historical = HistoricalContextLoader(self._store).load(profile_id)
        config = config or settings.observation
        session = ObservationSession(
            session_id=session_id or _new_session_id(),
            started_at=started_at or utc_now(),
            profile_id=profile_id,
            config=config,
            reasoning=self._reasoning_factory(settings),
            store=self._store,
            historical=historical,
            app_policy=AppSwitchPolicy(exception_dwell_seconds=config.exception_dwell_seconds),
            time_policy=TimePatternPolicy(timezone=settings.user_timezone),
        )
        self._active = session
        logger.info(
            "session started",
            extra={"session_id": session.session_id, "profile_id": profile_id},
        )
        return session

    def get(self, session_id: str) -> ObservationSession:
        session = self._active
        if session is None or session.session_id != session_id:
            raise SessionNotFoundError(session_id)
        return session

    async def end(self, session_id: str, at: Optional[datetime] = None) -> SessionSummary:
        session = self.get(session_id)
        return await session.end(at)


_manager_instance: Optional[SessionManager] = None


def get_session_manager() -> SessionManager:
    global _manager_instance
    if _manager_instance is None:
        _manager_instance = SessionManager()
    return _manager_instance


def set_session_manager(manager: Optional[SessionManager]) -> None:
    global _manager_instance
    _manager_instance = manager


__all__ = ["SessionManager", "get_session_manager", "set_session_manager"]
