"""Session-tier memory: tasks so far, per-app time, questions asked, task theory."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from ...logging_config import logger
from ...models import SessionContext, Task, TaskBoundaryEvent, TaskEventKind, TaskSummary
from ...utils.text import truncate_to_units
from ...utils.timestamps import seconds_between


def summarize_task(task: Task) -> TaskSummary:
    return TaskSummary(
        task_id=task.id,
        name=task.name,
        start_time=task.start_time,
        end_time=task.end_time,
        duration=task.duration,
        apps=task.apps,
        brief=task.user_explanation or task.name,
    )


class SessionContextAggregator:
    """Sole owner of the live :class:`SessionContext` for one session.

    Updates are additive or overwriting. Merged-away tasks are the only entries
    ever dropped from ``tasks_so_far``, since their ids are never persisted.
    """

    def __init__(self, session_id: str, start_time: datetime, *, profile_id: str = "default") -> None:
        self._context = SessionContext(session_id=session_id, start_time=start_time, profile_id=profile_id)

    @property
    def context(self) -> SessionContext:
        return self._context

    def on_task_boundary(self, event: TaskBoundaryEvent) -> None:
        context = self._context
        if event.kind == TaskEventKind.MERGED:
            if event.merged_task_id:
                context.tasks_so_far.pop(event.merged_task_id, None)
            if event.new_task is not None:
                context.tasks_so_far[event.new_task.id] = summarize_task(event.new_task)
            return

        closed = event.closed_task
        if closed is not None:
            context.tasks_so_far[closed.id] = summarize_task(closed)

        if event.kind == TaskEventKind.NAMED and event.new_task is not None:
            existing = context.tasks_so_far.get(event.new_task.id)
            if existing is not None:
                context.tasks_so_far[event.new_task.id] = summarize_task(event.new_task)

        if event.kind in {TaskEventKind.SWITCHED, TaskEventKind.STARTED} and event.new_task is not None:
            if event.new_task.user_explanation:
                context.current_task_theory = event.new_task.user_explanation
            elif event.kind == TaskEventKind.SWITCHED:
                context.current_task_theory = None

    def on_app_time(self, app: str, delta_seconds: float) -> None:
        if not app or delta_seconds <= 0:
            return
        accumulator = self._context.app_time_accumulator
        accumulator[app] = accumulator.get(app, 0.0) + delta_seconds

    def record_question_asked(self, text: str) -> None:
        cleaned = (text or "").strip()
        if cleaned and cleaned not in self._context.questions_asked:
            self._context.questions_asked.append(cleaned)

    def set_task_theory(self, text: Optional[str]) -> None:
        cleaned = (text or "").strip()
        if not cleaned:
            return
        self._context.current_task_theory = cleaned
        logger.debug("task theory updated", extra={"session_id": self._context.session_id})

    def note_observation(self, at: datetime) -> None:
        self._context.last_observation_time = at

    def mark_summarized(self, at: datetime) -> None:
        self._context.last_summary_update = at

    def format_digest(self, now: Optional[datetime] = None, *, budget_units: int = 500) -> str:
        return format_session_digest(self._context, now, budget_units=budget_units)


def format_session_digest(
    context: SessionContext, now: Optional[datetime] = None, *, budget_units: int = 500
) -> str:
    reference = now or context.last_observation_time or context.start_time
    parts = [f"Session duration: {int(seconds_between(context.start_time, reference) // 60)} minutes"]

    top_apps = sorted(context.app_time_accumulator.items(), key=lambda item: (-item[1], item[0]))[:5]
    if top_apps:
        parts.append("Top apps: " + ", ".join(f"{app} ({int(secs // 60)}m)" for app, secs in top_apps))
    if context.tasks_so_far:
        parts.append("Tasks completed: " + ", ".join(context.task_names))
    if context.current_task_theory:
        parts.append(f"Current task: {context.current_task_theory}")
    if context.questions_asked:
        parts.append(f"Questions asked this session: {len(context.questions_asked)}")
    return truncate_to_units("\n".join(parts), budget_units)


__all__ = ["SessionContextAggregator", "format_session_digest", "summarize_task"]
