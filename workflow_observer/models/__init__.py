from .api import (
    AnswerQuestionRequest,
    EndSessionRequest,
    EventsResponse,
    HealthResponse,
    IdleCheckRequest,
    ObservationRequest,
    ObservationResponse,
    SessionResponse,
    StartSessionRequest,
)
from .events import ObserverEvent
from .observation import ImmediateContext, Observation
from .questions import ClarificationQuestion, ConfusionSignal, ConfusionType, QuestionStatus
from .reasoning import ConfusionResponse, ContextChangeResponse, InvalidResponse, decode_response
from .session import (
    HistoricalContext,
    InterviewSummary,
    QARecord,
    SessionContext,
    SessionSummary,
    TaskSummary,
)
from .tasks import (
    DEFAULT_TASK_NAME,
    AppSegment,
    BoundaryTrigger,
    Task,
    TaskBoundaryEvent,
    TaskEventKind,
    TaskStatus,
)

__all__ = [
    "AnswerQuestionRequest",
    "EndSessionRequest",
    "EventsResponse",
    "HealthResponse",
    "IdleCheckRequest",
    "ObservationRequest",
    "ObservationResponse",
    "SessionResponse",
    "StartSessionRequest",
    "AppSegment",
    "BoundaryTrigger",
    "ClarificationQuestion",
    "ConfusionResponse",
    "ConfusionSignal",
    "ConfusionType",
    "ContextChangeResponse",
    "DEFAULT_TASK_NAME",
    "HistoricalContext",
    "ImmediateContext",
    "InterviewSummary",
    "InvalidResponse",
    "Observation",
    "ObserverEvent",
    "QARecord",
    "QuestionStatus",
    "SessionContext",
    "SessionSummary",
    "Task",
    "TaskBoundaryEvent",
    "TaskEventKind",
    "TaskStatus",
    "TaskSummary",
    "decode_response",
]
