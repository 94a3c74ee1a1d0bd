"""Service layer components."""

from .context import ContextAssembler, HistoricalContextLoader, ImmediateContextTracker, SessionContextAggregator
from .questions import ConfusionEvaluator, QuestionThrottler
from .reasoning import ReasoningCollaborator, ReasoningService
from .session import EventChannel, ObservationSession, SessionManager, get_session_manager
from .storage import JsonSessionStore, SessionStore
from .summarization import SessionSummarizer, SummarizationScheduler
from .tasks import AppSwitchPolicy, TaskBoundaryDetector, TaskNamer, TimePatternPolicy

__all__ = [
    "AppSwitchPolicy",
    "ConfusionEvaluator",
    "ContextAssembler",
    "EventChannel",
    "HistoricalContextLoader",
    "ImmediateContextTracker",
    "JsonSessionStore",
    "ObservationSession",
    "QuestionThrottler",
    "ReasoningCollaborator",
    "ReasoningService",
    "SessionContextAggregator",
    "SessionManager",
    "SessionStore",
    "SessionSummarizer",
    "SummarizationScheduler",
    "TaskBoundaryDetector",
    "TaskNamer",
    "TimePatternPolicy",
    "get_session_manager",
]
