"""Shapes and selects historical context; persistence itself belongs to the store."""

from __future__ import annotations

from collections import OrderedDict
from typing import TYPE_CHECKING, List, Optional, Tuple

from ...logging_config import logger
from ...models import HistoricalContext, SessionSummary
from ...utils.text import overlap_score, truncate_to_units

if TYPE_CHECKING:  # pragma: no cover - typing only
    from ..storage import SessionStore


DEFAULT_SUMMARY_LIMIT = 10
KNOWN_TASK_LIMIT = 10
RECENCY_WEIGHT = 0.5
RELEVANCE_WEIGHT = 1.0


class HistoricalContextLoader:
    """Reads prior summaries and baseline role data for a profile."""

    def __init__(self, store: "SessionStore", *, limit: int = DEFAULT_SUMMARY_LIMIT) -> None:
        self._store = store
        self._limit = limit

    def load(self, profile_id: str) -> HistoricalContext:
        interview = self._store.load_interview_summary(profile_id)
        summaries = sorted(
            self._store.load_session_summaries(profile_id, limit=self._limit),
            key=lambda summary: summary.date,
            reverse=True,
        )[: self._limit]

        known_tasks: "OrderedDict[str, None]" = OrderedDict()
        for summary in summaries:
            for name in summary.tasks_completed:
                if name:
                    known_tasks.setdefault(name, None)

        relevant_qa = self._store.load_answered_questions(profile_id)
        logger.info(
            "historical context loaded",
            extra={"profile_id": profile_id, "summaries": len(summaries), "qa": len(relevant_qa)},
        )
        return HistoricalContext(
            interview_summary=interview,
            known_tasks=list(known_tasks),
            previous_session_summaries=summaries,
            relevant_qa=relevant_qa,
        )


def _summary_text(summary: SessionSummary) -> str:
    return " ".join([summary.brief, *summary.tasks_completed, *summary.apps_used])


def rank_summaries(
    summaries: List[SessionSummary], query: str
) -> List[Tuple[float, SessionSummary]]:
    """Order summaries by lexical overlap with *query* plus a recency bonus."""

    newest_first = sorted(summaries, key=lambda summary: (summary.date, summary.session_id), reverse=True)
    scored: List[Tuple[float, int, SessionSummary]] = []
    for position, summary in enumerate(newest_first):
        recency = 1.0 / (1 + position)
        relevance = overlap_score(query, _summary_text(summary)) if query.strip() else 0.0
        scored.append((RELEVANCE_WEIGHT * relevance + RECENCY_WEIGHT * recency, position, summary))
    scored.sort(key=lambda item: (-item[0], item[1]))
    return [(score, summary) for score, _, summary in scored]


def get_relevant_history(
    historical: Optional[HistoricalContext],
    *,
    current_task_theory: Optional[str],
    current_app: Optional[str],
    budget_units: int = 1000,
) -> str:
    """Greedy, budget-bounded selection of prior session excerpts."""

    if historical is None:
        return "No historical context available."

    query = " ".join(part for part in (current_task_theory, current_app) if part)
    limit_chars = max(budget_units, 0) * 4
    lines: List[str] = []
    used = 0

    def _try_add(line: str) -> bool:
        nonlocal used
        cost = len(line) + (1 if lines else 0)
        if used + cost > limit_chars:
            return False
        lines.append(line)
        used += cost
        return True

    ranked = rank_summaries(list(historical.previous_session_summaries), query)
    if ranked:
        _try_add("Relevant sessions:")
        for _, summary in ranked:
            _try_add(f"- {summary.date.date().isoformat()}: {summary.brief}")

    if historical.known_tasks:
        _try_add("Known tasks: " + ", ".join(historical.known_tasks[:KNOWN_TASK_LIMIT]))

    if query and historical.relevant_qa:
        matches = [
            record
            for record in historical.relevant_qa
            if overlap_score(query, f"{record.question} {record.answer}") > 0
        ]
        for record in matches:
            _try_add(f"Q: {record.question} A: {record.answer}")

    if not lines:
        return ""
    return "\n".join(lines)


def format_baseline(historical: Optional[HistoricalContext], *, budget_units: int = 500) -> str:
    interview = historical.interview_summary if historical else None
    if interview is None:
        return "No interview data available."

    parts: List[str] = []
    if interview.role:
        parts.append(f"Role: {interview.role}")
    if interview.department:
        parts.append(f"Department: {interview.department}")
    if interview.responsibilities:
        parts.append(f"Responsibilities: {', '.join(interview.responsibilities)}")
    if interview.systems_used:
        parts.append(f"Systems used: {', '.join(interview.systems_used)}")
    if interview.stated_pain_points:
        parts.append(f"Pain points: {', '.join(interview.stated_pain_points)}")
    if interview.typical_day:
        parts.append(f"Typical day: {interview.typical_day}")
    return truncate_to_units("\n".join(parts), budget_units)


__all__ = [
    "HistoricalContextLoader",
    "format_baseline",
    "get_relevant_history",
    "rank_summaries",
]
