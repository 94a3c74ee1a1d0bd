"""Periodic and final session summarization."""

from .scheduler import SummarizationScheduler
from .summarizer import (
    DEFAULT_SUMMARY_INTERVAL_SECONDS,
    SessionSummarizer,
    build_session_facts,
    fallback_brief,
)

__all__ = [
    "DEFAULT_SUMMARY_INTERVAL_SECONDS",
    "SessionSummarizer",
    "SummarizationScheduler",
    "build_session_facts",
    "fallback_brief",
]
