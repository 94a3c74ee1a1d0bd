"""Merge the four memory tiers into one budgeted bundle for a reasoning call."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from ...config import TokenBudget
from ...models import HistoricalContext, ImmediateContext, SessionContext
from ...utils.text import estimate_units
from .historical import format_baseline, get_relevant_history
from .immediate import format_immediate_state
from .session import format_session_digest


@dataclass(frozen=True)
class AssembledContext:
    immediate_state: str
    session: str
    historical: str
    baseline: str
    image_refs: List[str] = field(default_factory=list)
    observation_id: Optional[str] = None

    @property
    def text_units(self) -> int:
        return sum(estimate_units(part) for part in (self.session, self.historical, self.baseline))

    def render(self) -> str:
        return (
            "=== BASELINE (User's Role) ===\n"
            f"{self.baseline}\n\n"
            "=== HISTORICAL (Previous Sessions) ===\n"
            f"{self.historical}\n\n"
            "=== SESSION (Current Session) ===\n"
            f"{self.session}\n\n"
            "=== IMMEDIATE (Current State) ===\n"
            f"{self.immediate_state}"
        )


class ContextAssembler:
    """Stateless and deterministic: identical tier inputs give identical bundles."""

    def assemble(
        self,
        immediate: ImmediateContext,
        session: SessionContext,
        historical: Optional[HistoricalContext],
        token_budget: TokenBudget,
        *,
        now: Optional[datetime] = None,
    ) -> AssembledContext:
        latest = immediate.latest
        reference = now or (latest.timestamp if latest else session.last_observation_time or session.start_time)
        return AssembledContext(
            immediate_state=format_immediate_state(immediate, reference),
            session=format_session_digest(session, reference, budget_units=token_budget.session),
            historical=get_relevant_history(
                historical,
                current_task_theory=session.current_task_theory,
                current_app=immediate.current_app or None,
                budget_units=token_budget.historical,
            ),
            baseline=format_baseline(historical, budget_units=token_budget.baseline),
            image_refs=immediate.image_refs(),
            observation_id=latest.id if latest else None,
        )


__all__ = ["AssembledContext", "ContextAssembler"]
