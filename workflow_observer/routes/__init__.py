from __future__ import annotations

from fastapi import APIRouter

from .events import router as events_router
from .meta import router as meta_router
from .questions import router as questions_router
from .sessions import router as sessions_router

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(meta_router)
api_router.include_router(sessions_router)
api_router.include_router(questions_router)
api_router.include_router(events_router)

__all__ = ["api_router"]
