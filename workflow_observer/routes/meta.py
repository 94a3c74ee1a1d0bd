from __future__ import annotations

from fastapi import APIRouter, Depends

from ..config import Settings, get_settings
from ..models import HealthResponse
from ..services.session import SessionManager, get_session_manager

router = APIRouter(tags=["meta"])


@router.get("/health", response_model=HealthResponse)
# Return service health status and the active session, if any
def health(
    settings: Settings = Depends(get_settings),
    manager: SessionManager = Depends(get_session_manager),
) -> HealthResponse:
    active = manager.active
    return HealthResponse(
        ok=True,
        service="workflow-observer",
        version=settings.app_version,
        active_session=active.session_id if active else None,
    )
