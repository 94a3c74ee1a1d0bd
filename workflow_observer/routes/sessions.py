from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from ..errors import SessionStateError
from ..models import (
    EndSessionRequest,
    IdleCheckRequest,
    ObservationRequest,
    ObservationResponse,
    SessionResponse,
    SessionSummary,
    StartSessionRequest,
)
from ..services.session import SessionManager, get_session_manager
from ..utils.timestamps import ensure_aware, utc_now
from ._deps import resolve_session

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _conflict(exc: SessionStateError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))


@router.post("", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
# Start the single observation session for this process
async def start_session(
    payload: StartSessionRequest,
    manager: SessionManager = Depends(get_session_manager),
) -> SessionResponse:
    try:
        session = manager.start(
            profile_id=payload.profile_id,
            session_id=payload.session_id,
            started_at=ensure_aware(payload.started_at) if payload.started_at else None,
        )
    except SessionStateError as exc:
        raise _conflict(exc)
    return SessionResponse(session=session.snapshot())


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str, manager: SessionManager = Depends(get_session_manager)) -> SessionResponse:
    return SessionResponse(session=resolve_session(manager, session_id).snapshot())


@router.post("/{session_id}/observations", response_model=ObservationResponse)
# Feed one screen observation from the capture collaborator
async def post_observation(
    session_id: str,
    payload: ObservationRequest,
    manager: SessionManager = Depends(get_session_manager),
) -> ObservationResponse:
    session = resolve_session(manager, session_id)
    observation = payload.to_observation()
    try:
        output = session.ingest(observation)
    except SessionStateError as exc:
        raise _conflict(exc)
    current = session.detector.current_task
    return ObservationResponse(
        observation_id=observation.id,
        boundary_events=[event.kind.value for event in output.events],
        current_task=current.to_export() if current else None,
    )


@router.post("/{session_id}/idle-check", response_model=SessionResponse)
async def idle_check(
    session_id: str,
    payload: IdleCheckRequest,
    manager: SessionManager = Depends(get_session_manager),
) -> SessionResponse:
    session = resolve_session(manager, session_id)
    session.check_idle(ensure_aware(payload.now) if payload.now else utc_now())
    return SessionResponse(session=session.snapshot())


@router.post("/{session_id}/pause", response_model=SessionResponse)
async def pause_session(session_id: str, manager: SessionManager = Depends(get_session_manager)) -> SessionResponse:
    session = resolve_session(manager, session_id)
    try:
        session.pause()
    except SessionStateError as exc:
        raise _conflict(exc)
    return SessionResponse(session=session.snapshot())


@router.post("/{session_id}/resume", response_model=SessionResponse)
async def resume_session(session_id: str, manager: SessionManager = Depends(get_session_manager)) -> SessionResponse:
    session = resolve_session(manager, session_id)
    try:
        session.resume()
    except SessionStateError as exc:
        raise _conflict(exc)
    return SessionResponse(session=session.snapshot())


@router.post("/{session_id}/end", response_model=SessionSummary)
# End the session, closing the active task and writing the final summary
async def end_session(
    session_id: str,
    payload: Optional[EndSessionRequest] = None,
    manager: SessionManager = Depends(get_session_manager),
) -> SessionSummary:
    session = resolve_session(manager, session_id)
    at = payload.at if payload and payload.at else None
    try:
        return await session.end(ensure_aware(at) if at else None)
    except SessionStateError as exc:
        raise _conflict(exc)


@router.get("/{session_id}/tasks")
async def list_tasks(session_id: str, manager: SessionManager = Depends(get_session_manager)) -> List[Dict[str, Any]]:
    return resolve_session(manager, session_id).detector.tasks_for_export()
