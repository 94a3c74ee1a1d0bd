from __future__ import annotations

from fastapi import HTTPException, status

from ..errors import SessionNotFoundError
from ..services.session import ObservationSession, SessionManager


def resolve_session(manager: SessionManager, session_id: str) -> ObservationSession:
    try:
        return manager.get(session_id)
    except SessionNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown session: {exc.args[0]}"
        ) from exc


__all__ = ["resolve_session"]
