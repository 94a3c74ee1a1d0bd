from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Sequence

from ...errors import ReasoningError, SummarizationError
from ...logging_config import logger
from ...models import QARecord, SessionContext, SessionSummary
from ...utils.text import truncate_to_units
from ...utils.timestamps import seconds_between
from ..reasoning import ReasoningCollaborator


DEFAULT_SUMMARY_INTERVAL_SECONDS = 300
TOP_APPS = 5


def _top_apps(session: SessionContext) -> List[str]:
    ranked = sorted(session.app_time_accumulator.items(), key=lambda item: (-item[1], item[0]))
    return [app for app, _ in ranked]


def build_session_facts(
    session: SessionContext,
    *,
    now: datetime,
    answered: Sequence[QARecord] = (),
    budget_units: int = 500,
) -> str:
    """Structured facts handed to the reasoning collaborator, bounded to *budget_units*."""

    minutes = int(seconds_between(session.start_time, now) // 60)
    app_usage = ", ".join(
        f"{app} ({int(session.app_time_accumulator[app] // 60)}m)" for app in _top_apps(session)[:TOP_APPS]
    )
    lines = [
        f"Duration: {minutes} minutes",
        f"App usage: {app_usage or 'None'}",
        f"Tasks completed: {', '.join(session.task_names) or 'None yet'}",
        f"Current activity: {session.current_task_theory or 'Unknown'}",
    ]
    for record in answered:
        lines.append(f"User explained: {record.question} -> {record.answer}")
    return truncate_to_units("\n".join(lines), budget_units)


def fallback_brief(session: SessionContext, *, now: datetime) -> str:
    minutes = int(seconds_between(session.start_time, now) // 60)
    tasks = ", ".join(session.task_names) or "no completed tasks"
    apps = ", ".join(_top_apps(session)[:3]) or "no applications"
    return f"{minutes}-minute session covering {tasks} in {apps}."


def _clean_brief(raw: str) -> str:
    return " ".join((raw or "").split())


class SessionSummarizer:
    """Compresses the live session context into a :class:`SessionSummary`."""

    def __init__(
        self,
        reasoning: Optional[ReasoningCollaborator],
        *,
        interval_seconds: float = DEFAULT_SUMMARY_INTERVAL_SECONDS,
        budget_units: int = 500,
    ) -> None:
        self._reasoning = reasoning
        self._interval_seconds = interval_seconds
        self._budget_units = budget_units

    def should_summarize(self, session: SessionContext, *, now: datetime, task_closed: bool = False) -> bool:
        if task_closed:
            return True
        last = session.last_summary_update or session.start_time
        return seconds_between(last, now) >= self._interval_seconds

    async def _call_reasoning(self, facts: str) -> str:
        if self._reasoning is None:
            raise SummarizationError("no reasoning collaborator configured")

        last_error: Optional[Exception] = None
        for attempt in range(2):
            try:
                text = _clean_brief(await self._reasoning.summarize(facts))
                if text:
                    return text
                raise ReasoningError("summary reply was empty")
            except ReasoningError as exc:
                last_error = exc
                if attempt == 0:
                    logger.warning(
                        "session summarization attempt failed; retrying",
                        extra={"error": str(exc)},
                    )
                    continue
                logger.error("session summarization failed", extra={"error": str(exc)})
        raise SummarizationError(str(last_error or "session summarization failed")) from last_error

    async def summarize(
        self,
        session: SessionContext,
        *,
        now: datetime,
        answered: Sequence[QARecord] = (),
        final: bool = False,
    ) -> SessionSummary:
        """Produce a summary; for the final one a deterministic brief replaces a failed call."""

        facts = build_session_facts(session, now=now, answered=answered, budget_units=self._budget_units)
        logger.info(
            "session summarization started",
            extra={"session_id": session.session_id, "final": final, "tasks": len(session.tasks_so_far)},
        )
        try:
            brief = await self._call_reasoning(facts)
        except SummarizationError:
            if not final:
                raise
            brief = fallback_brief(session, now=now)

        summary = SessionSummary(
            session_id=session.session_id,
            date=now,
            duration=max(seconds_between(session.start_time, now), 0.0),
            tasks_completed=session.task_names,
            apps_used=_top_apps(session),
            questions_answered=len(answered),
            new_observations=[f"{record.question} -> {record.answer}" for record in answered],
            brief=truncate_to_units(brief, self._budget_units),
            final=final,
        )
        logger.info("session summarization completed", extra={"session_id": session.session_id})
        return summary


__all__ = [
    "DEFAULT_SUMMARY_INTERVAL_SECONDS",
    "SessionSummarizer",
    "build_session_facts",
    "fallback_brief",
]
