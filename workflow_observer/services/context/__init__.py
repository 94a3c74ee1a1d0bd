"""Tiered memory: immediate, session, historical and baseline context."""

from .assembler import AssembledContext, ContextAssembler
from .historical import HistoricalContextLoader, format_baseline, get_relevant_history, rank_summaries
from .immediate import ImmediateContextTracker, describe_change, format_immediate_state
from .session import SessionContextAggregator, format_session_digest, summarize_task

__all__ = [
    "AssembledContext",
    "ContextAssembler",
    "HistoricalContextLoader",
    "ImmediateContextTracker",
    "SessionContextAggregator",
    "describe_change",
    "format_baseline",
    "format_immediate_state",
    "format_session_digest",
    "get_relevant_history",
    "rank_summaries",
    "summarize_task",
]
