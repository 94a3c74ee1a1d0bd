from __future__ import annotations

from fastapi import APIRouter, Depends

from ..models import EventsResponse
from ..services.session import SessionManager, get_session_manager
from ._deps import resolve_session

router = APIRouter(prefix="/sessions/{session_id}/events", tags=["events"])


@router.get("", response_model=EventsResponse)
# Drain events queued for the UI since the last poll
async def drain_events(session_id: str, manager: SessionManager = Depends(get_session_manager)) -> EventsResponse:
    session = resolve_session(manager, session_id)
    return EventsResponse(events=session.events.drain())
