from __future__ import annotations

import json
from typing import Optional

from ...errors import ReasoningError
from ...logging_config import logger
from ...models import DEFAULT_TASK_NAME, Task
from ..reasoning import ReasoningCollaborator


MAX_NAME_LENGTH = 80
TITLE_SAMPLE = 10


def fallback_task_name(task: Task) -> str:
    dominant = task.dominant_app()
    return f"Work in {dominant}" if dominant else DEFAULT_TASK_NAME


def clean_task_name(raw: Optional[str]) -> Optional[str]:
    """Reduce a naming reply to a single short label, or None when nothing usable remains."""

    text = (raw or "").strip()
    if text.startswith("{"):
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            data = None
        if isinstance(data, dict):
            text = str(data.get("name") or data.get("task") or "").strip()
    first_line = text.splitlines()[0] if text else ""
    cleaned = first_line.strip().strip("\"'`*").strip()
    if cleaned.lower().startswith("task name:"):
        cleaned = cleaned[len("task name:"):].strip()
    if not cleaned:
        return None
    return cleaned[:MAX_NAME_LENGTH].rstrip()


class TaskNamer:
    """Labels closed tasks; a failed call falls back to the dominant app."""

    def __init__(self, reasoning: Optional[ReasoningCollaborator]) -> None:
        self._reasoning = reasoning

    async def name(self, task: Task, *, baseline: str = "") -> str:
        if task.user_explanation:
            return task.name
        fallback = fallback_task_name(task)
        if self._reasoning is None:
            return fallback
        try:
            raw = await self._reasoning.name_task(task.apps, task.window_titles[-TITLE_SAMPLE:], baseline)
        except ReasoningError as exc:
            logger.warning("task naming failed", extra={"task_id": task.id, "error": str(exc)})
            return fallback
        return clean_task_name(raw) or fallback


__all__ = ["TaskNamer", "clean_task_name", "fallback_task_name"]
