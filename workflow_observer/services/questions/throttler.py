"""Rate limiting, deduplication and lifecycle for clarifying questions."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from ...config import ObservationConfig
from ...errors import QuestionNotFoundError, SessionStateError
from ...logging_config import logger
from ...models import ClarificationQuestion, ConfusionSignal, QuestionStatus, SessionContext
from ...utils.text import is_near_duplicate
from ...utils.timestamps import seconds_between
from ..context.session import SessionContextAggregator


RATE_WINDOW = timedelta(hours=1)


def _new_question_id() -> str:
    return f"q-{uuid.uuid4().hex[:12]}"


class QuestionThrottler:
    """Gates confusion signals and owns the questions raised in one session.

    Every raised question counts against the hourly limit from the moment it was
    first raised, whatever happens to it afterwards.
    """

    def __init__(
        self,
        session_id: str,
        aggregator: SessionContextAggregator,
        config: Optional[ObservationConfig] = None,
        *,
        id_factory: Callable[[], str] = _new_question_id,
    ) -> None:
        self._session_id = session_id
        self._aggregator = aggregator
        self._config = config or ObservationConfig()
        self._id_factory = id_factory
        self._questions: Dict[str, ClarificationQuestion] = {}

    # ------------------------------------------------------------------
    # Gating
    # ------------------------------------------------------------------
    def questions_in_window(self, now: datetime) -> int:
        cutoff = now - RATE_WINDOW
        return sum(1 for question in self._questions.values() if cutoff < question.timestamp <= now)

    def last_raised_at(self) -> Optional[datetime]:
        if not self._questions:
            return None
        return max(question.timestamp for question in self._questions.values())

    def should_ask(
        self,
        signal: ConfusionSignal,
        config: Optional[ObservationConfig] = None,
        session: Optional[SessionContext] = None,
        *,
        now: datetime,
    ) -> bool:
        config = config or self._config
        session = session or self._aggregator.context

        if signal.confidence < config.confidence_threshold:
            return False
        if not signal.suggested_question.strip():
            return False

        if self.questions_in_window(now) >= config.max_questions_per_hour:
            logger.debug("question rate limit reached", extra={"session_id": self._session_id})
            return False

        last = self.last_raised_at()
        if last is not None and seconds_between(last, now) < config.min_time_between_questions_seconds:
            return False

        if is_near_duplicate(
            signal.suggested_question,
            session.questions_asked,
            config.duplicate_similarity_threshold,
        ):
            logger.debug("duplicate question suppressed", extra={"session_id": self._session_id})
            return False
        return True

    def accept(self, signal: ConfusionSignal, *, now: datetime) -> ClarificationQuestion:
        question = ClarificationQuestion(
            id=self._id_factory(),
            session_id=self._session_id,
            timestamp=now,
            trigger_context=signal.trigger_context,
            question=signal.suggested_question.strip(),
            confusion_type=signal.type,
            confidence=signal.confidence,
        )
        self._questions[question.id] = question
        self._aggregator.record_question_asked(question.question)
        logger.info(
            "question raised",
            extra={
                "session_id": self._session_id,
                "question_id": question.id,
                "confusion_type": signal.type.value,
            },
        )
        return question

    def offer(self, signal: ConfusionSignal, *, now: datetime) -> Optional[ClarificationQuestion]:
        if not self.should_ask(signal, now=now):
            return None
        return self.accept(signal, now=now)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def get(self, question_id: str) -> ClarificationQuestion:
        question = self._questions.get(question_id)
        if question is None:
            raise QuestionNotFoundError(question_id)
        return question

    def _open(self, question_id: str) -> ClarificationQuestion:
        question = self.get(question_id)
        if question.status.is_terminal:
            raise SessionStateError(f"question {question_id} is already {question.status.value}")
        return question

    def answer(self, question_id: str, answer: str, *, at: datetime) -> ClarificationQuestion:
        question = self._open(question_id)
        question.answer = answer.strip()
        question.answered_at = at
        question.status = QuestionStatus.ANSWERED
        return question

    def dismiss(self, question_id: str, *, at: datetime) -> ClarificationQuestion:
        question = self._open(question_id)
        question.answered_at = at
        question.status = QuestionStatus.DISMISSED
        return question

    def defer(self, question_id: str, *, at: datetime) -> ClarificationQuestion:
        question = self._open(question_id)
        question.deferred_at = at
        question.status = QuestionStatus.DEFERRED
        return question

    def resurface(self, question_id: str, *, at: datetime) -> ClarificationQuestion:
        question = self.get(question_id)
        if question.status != QuestionStatus.DEFERRED:
            raise SessionStateError(f"question {question_id} is not deferred")
        question.resurfaced_at = at
        question.status = QuestionStatus.PENDING
        return question

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------
    @property
    def questions(self) -> List[ClarificationQuestion]:
        return sorted(self._questions.values(), key=lambda question: question.timestamp)

    def _with_status(self, status: QuestionStatus) -> List[ClarificationQuestion]:
        return [question for question in self.questions if question.status == status]

    def pending(self) -> List[ClarificationQuestion]:
        return self._with_status(QuestionStatus.PENDING)

    def deferred(self) -> List[ClarificationQuestion]:
        return self._with_status(QuestionStatus.DEFERRED)

    def answered(self) -> List[ClarificationQuestion]:
        return self._with_status(QuestionStatus.ANSWERED)

    def current(self) -> Optional[ClarificationQuestion]:
        pending = self.pending()
        return pending[-1] if pending else None


__all__ = ["QuestionThrottler", "RATE_WINDOW"]
