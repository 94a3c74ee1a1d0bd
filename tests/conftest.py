"""
Shared pytest fixtures for the workflow observer test suite.

Provides an observation factory on a fixed clock, a scripted reasoning
collaborator and an in-memory store so tests run without network access or
filesystem side effects.
"""

from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Deque, Dict, List, Optional, Sequence, Union

import pytest

from workflow_observer.config import ObservationConfig
from workflow_observer.errors import ReasoningError, StorageError
from workflow_observer.models import (
    ClarificationQuestion,
    InterviewSummary,
    Observation,
    QARecord,
    QuestionStatus,
    SessionContext,
    SessionSummary,
    Task,
)


# A Monday morning, well clear of the default day boundaries.
T0 = datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc)


def at(seconds: float) -> datetime:
    return T0 + timedelta(seconds=seconds)


class ObservationFactory:
    """Builds observations with sequential ids at offsets from ``T0``."""

    def __init__(self) -> None:
        self._counter = 0

    def __call__(
        self,
        seconds: float,
        app: str,
        title: str = "",
        image_ref: Optional[str] = None,
    ) -> Observation:
        self._counter += 1
        return Observation(
            id=f"obs-{self._counter}",
            timestamp=at(seconds),
            active_app=app,
            window_title=title,
            image_ref=image_ref,
        )

    def series(self, start: float, app: str, count: int, *, step: float = 10, title: str = "") -> List[Observation]:
        return [self(start + index * step, app, title) for index in range(count)]


Reply = Union[str, Exception]


class FakeReasoning:
    """Scripted reasoning collaborator; each concern pops replies in order."""

    def __init__(
        self,
        *,
        confusion: Sequence[Reply] = (),
        context_change: Sequence[Reply] = (),
        summaries: Sequence[Reply] = (),
        names: Sequence[Reply] = (),
    ) -> None:
        self.confusion: Deque[Reply] = deque(confusion)
        self.context_change: Deque[Reply] = deque(context_change)
        self.summaries: Deque[Reply] = deque(summaries)
        self.names: Deque[Reply] = deque(names)
        self.calls: List[str] = []

    @staticmethod
    def _next(queue: Deque[Reply], default: str) -> str:
        if not queue:
            return default
        reply = queue.popleft()
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def evaluate_confusion(self, context, questions_asked=()) -> str:
        self.calls.append("confusion")
        return self._next(self.confusion, '{"confused": false}')

    async def evaluate_context_change(self, task_theory, recent_activity, image_refs=()) -> str:
        self.calls.append("context_change")
        return self._next(self.context_change, '{"sameTask": true, "confidence": 0.9, "reasoning": "same"}')

    async def summarize(self, facts: str) -> str:
        self.calls.append("summarize")
        return self._next(self.summaries, "Worked through the session.")

    async def name_task(self, apps, window_titles, baseline: str = "") -> str:
        self.calls.append("name_task")
        return self._next(self.names, "")


class InMemoryStore:
    """Dict-backed stand-in for the storage collaborator."""

    def __init__(self) -> None:
        self.interviews: Dict[str, InterviewSummary] = {}
        self.summaries: Dict[str, List[SessionSummary]] = {}
        self.qa: Dict[str, List[QARecord]] = {}
        self.tasks: Dict[str, List[dict]] = {}
        self.questions: Dict[str, List[dict]] = {}
        self.contexts: Dict[str, dict] = {}
        self.fail_writes = False

    def _check(self) -> None:
        if self.fail_writes:
            raise StorageError("disk full")

    def load_interview_summary(self, profile_id: str) -> Optional[InterviewSummary]:
        return self.interviews.get(profile_id)

    def load_session_summaries(self, profile_id: str, *, limit: int = 10) -> List[SessionSummary]:
        items = sorted(self.summaries.get(profile_id, []), key=lambda item: item.date, reverse=True)
        return items[:limit]

    def load_answered_questions(self, profile_id: str) -> List[QARecord]:
        return list(self.qa.get(profile_id, []))

    def save_interview_summary(self, profile_id: str, summary: InterviewSummary) -> None:
        self._check()
        self.interviews[profile_id] = summary

    def append_session_summary(self, profile_id: str, summary: SessionSummary) -> None:
        self._check()
        self.summaries.setdefault(profile_id, []).append(summary)

    def save_tasks(self, session_id: str, tasks: Sequence[Task]) -> None:
        self._check()
        self.tasks[session_id] = [task.to_record() for task in tasks]

    def save_questions(self, profile_id: str, session_id: str, questions: Sequence[ClarificationQuestion]) -> None:
        self._check()
        self.questions[session_id] = [question.model_dump(mode="json") for question in questions]
        self.qa[profile_id] = [
            QARecord(question=item.question, answer=item.answer or "", answered_at=item.answered_at)
            for item in questions
            if item.status == QuestionStatus.ANSWERED
        ]

    def save_session_context(self, context: SessionContext) -> None:
        self._check()
        self.contexts[context.session_id] = context.to_record()


@pytest.fixture
def obs():
    return ObservationFactory()


@pytest.fixture
def config():
    return ObservationConfig()


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def reasoning():
    return FakeReasoning()


def confused_reply(question: str, *, confidence: float = 0.9, kind: str = "unclear_purpose") -> str:
    return (
        '{"confused": true, "type": "%s", "confidence": %s, '
        '"context": "copying values between systems", "question": "%s"}' % (kind, confidence, question)
    )
