"""Per-session orchestration of the observation pipeline.

An :class:`ObservationSession` is created at session start and owns every
component for that session. Observations are applied synchronously in arrival
order; reasoning calls run in the background, one per concern, and their
results are dropped when the session has moved on (paused, ended, or the task
they describe is gone).
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set

from ...config import ObservationConfig
from ...errors import ReasoningError, SessionStateError, StorageError
from ...logging_config import logger
from ...models import (
    ClarificationQuestion,
    ContextChangeResponse,
    HistoricalContext,
    Observation,
    ObserverEvent,
    QARecord,
    SessionSummary,
    Task,
    TaskStatus,
    decode_response,
)
from ..context import (
    AssembledContext,
    ContextAssembler,
    ImmediateContextTracker,
    SessionContextAggregator,
    format_baseline,
)
from ..questions import ConfusionEvaluator, QuestionThrottler
from ..reasoning import ReasoningCollaborator
from ..storage import SessionStore
from ..summarization import SessionSummarizer, SummarizationScheduler
from ..tasks import (
    AppSwitchPolicy,
    DetectorOutput,
    TaskBoundaryDetector,
    TaskNamer,
    TimePatternPolicy,
    fallback_task_name,
)
from .channel import EventChannel, InFlightSlot


class SessionStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    ENDED = "ended"


class ObservationSession:
    def __init__(
        self,
        *,
        session_id: str,
        started_at: datetime,
        profile_id: str = "default",
        config: Optional[ObservationConfig] = None,
        reasoning: Optional[ReasoningCollaborator] = None,
        store: Optional[SessionStore] = None,
        historical: Optional[HistoricalContext] = None,
        app_policy: Optional[AppSwitchPolicy] = None,
        time_policy: Optional[TimePatternPolicy] = None,
        channel: Optional[EventChannel] = None,
    ) -> None:
        self.session_id = session_id
        self.profile_id = profile_id
        self.started_at = started_at
        self.config = config or ObservationConfig()
        self.historical = historical or HistoricalContext.empty()
        self._reasoning = reasoning
        self._store = store

        self.tracker = ImmediateContextTracker(self.config.immediate_buffer_size)
        self.aggregator = SessionContextAggregator(session_id, started_at, profile_id=profile_id)
        self.detector = TaskBoundaryDetector(
            session_id, self.config, app_policy=app_policy, time_policy=time_policy
        )
        self.assembler = ContextAssembler()
        self.evaluator = ConfusionEvaluator(self.aggregator, threshold=self.config.confidence_threshold)
        self.throttler = QuestionThrottler(session_id, self.aggregator, self.config)
        self.summarizer = SessionSummarizer(
            reasoning,
            interval_seconds=self.config.summary_interval_seconds,
            budget_units=self.config.token_budget.session,
        )
        self.namer = TaskNamer(reasoning)
        self.events = channel or EventChannel()

        self._confusion_slot = InFlightSlot("confusion")
        self._context_slot = InFlightSlot("context_change")
        self._summaries = SummarizationScheduler(self._run_summary, name=f"summary-{session_id}")
        self._naming: Set[asyncio.Task] = set()
        self._status = SessionStatus.ACTIVE
        self._generation = 0
        self._observation_count = 0
        self.latest_summary: Optional[SessionSummary] = None

        self._publish("session.started", {"profile_id": profile_id}, started_at)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------
    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def now(self) -> datetime:
        """Session clock: the latest observation time, never wall-clock."""
        last = self.detector.last_observation
        return last.timestamp if last else self.started_at

    @property
    def tasks(self) -> List[Task]:
        return self.detector.tasks

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------
    def ingest(self, observation: Observation) -> DetectorOutput:
        if self._status == SessionStatus.ENDED:
            raise SessionStateError(f"session {self.session_id} has ended")
        if self._status == SessionStatus.PAUSED:
            logger.debug("observation dropped while paused", extra={"session_id": self.session_id})
            return DetectorOutput()
        last = self.detector.last_observation
        if last is not None and observation.timestamp < last.timestamp:
            logger.warning(
                "observation out of order; ignored",
                extra={"session_id": self.session_id, "observation_id": observation.id},
            )
            return DetectorOutput()

        self.tracker.update(observation)
        output = self.detector.observe(observation)
        self.aggregator.note_observation(observation.timestamp)
        self._observation_count += 1
        self._apply(output)

        if self._should_analyze():
            self._launch_analysis(observation)
        if self._reasoning is not None and self.summarizer.should_summarize(
            self.aggregator.context, now=observation.timestamp
        ):
            self._summaries.schedule()
        return output

    def check_idle(self, now: datetime) -> DetectorOutput:
        output = self.detector.check_idle(now)
        self._apply(output)
        return output

    def _should_analyze(self) -> bool:
        if self._reasoning is None:
            return False
        if self.tracker.last_update_changed:
            return True
        return self._observation_count % self.config.analysis_interval == 0

    # ------------------------------------------------------------------
    # Detector fan-out
    # ------------------------------------------------------------------
    def _apply(self, output: DetectorOutput) -> None:
        for segment in output.closed_segments:
            self.aggregator.on_app_time(segment.app, segment.duration)

        task_closed = False
        for event in output.events:
            self.aggregator.on_task_boundary(event)
            self._publish(f"task.{event.kind.value}", event.to_payload(), event.timestamp)
            closed = event.closed_task
            if closed is not None and closed.status == TaskStatus.COMPLETED:
                task_closed = True
                self._request_name(closed)

        if output.events:
            self._persist("tasks", lambda: self._store.save_tasks(self.session_id, self.detector.tasks))
        if task_closed and self._status == SessionStatus.ACTIVE and self._reasoning is not None:
            self._summaries.schedule()

    def _request_name(self, task: Task) -> None:
        if task.user_explanation or task.is_named:
            return
        if self._reasoning is None:
            self._apply_name(task.id, fallback_task_name(task))
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._apply_name(task.id, fallback_task_name(task))
            return
        naming = loop.create_task(self._name_task(task), name=f"name-{task.id}")
        self._naming.add(naming)
        naming.add_done_callback(self._naming.discard)

    async def _name_task(self, task: Task) -> None:
        baseline = format_baseline(self.historical, budget_units=self.config.token_budget.baseline)
        name = await self.namer.name(task, baseline=baseline)
        self._apply_name(task.id, name)

    def _apply_name(self, task_id: str, name: str) -> None:
        event = self.detector.apply_task_name(task_id, name)
        if event is None:
            logger.debug("task name dropped; task no longer exists", extra={"task_id": task_id})
            return
        self.aggregator.on_task_boundary(event)
        self._publish("task.named", event.to_payload(), event.timestamp)
        self._persist("tasks", lambda: self._store.save_tasks(self.session_id, self.detector.tasks))

    # ------------------------------------------------------------------
    # Reasoning cycles
    # ------------------------------------------------------------------
    def assemble_context(self) -> AssembledContext:
        return self.assembler.assemble(
            self.tracker.context,
            self.aggregator.context,
            self.historical,
            self.config.token_budget,
        )

    def _launch_analysis(self, observation: Observation) -> None:
        generation = self._generation
        task = self.detector.current_task
        task_id = task.id if task else None

        context = self.assemble_context()
        questions_asked = list(self.aggregator.context.questions_asked)
        self._confusion_slot.try_start(
            lambda: self._run_confusion(context, questions_asked, observation.id, task_id, generation)
        )

        if task is None or len(task.observation_refs) < self.config.context_change_min_observations:
            return
        recent = "\n".join(
            f"{item.active_app}: {item.window_title}" for item in self.tracker.context.recent()
        )
        theory = self.aggregator.context.current_task_theory
        images = self.tracker.context.image_refs()
        self._context_slot.try_start(
            lambda: self._run_context_change(theory, recent, images, task.id, generation)
        )

    def _is_stale(self, generation: int, task_id: Optional[str]) -> bool:
        if generation != self._generation or self._status != SessionStatus.ACTIVE:
            return True
        current = self.detector.current_task
        return task_id is not None and (current is None or current.id != task_id)

    async def _run_confusion(
        self,
        context: AssembledContext,
        questions_asked: List[str],
        observation_id: str,
        task_id: Optional[str],
        generation: int,
    ) -> None:
        try:
            raw = await self._reasoning.evaluate_confusion(context, questions_asked)
        except ReasoningError as exc:
            logger.warning("confusion cycle skipped", extra={"session_id": self.session_id, "error": str(exc)})
            return
        if self._is_stale(generation, task_id):
            logger.debug("stale confusion result dropped", extra={"observation_id": observation_id})
            return

        signal = self.evaluator.evaluate(raw)
        if signal is None:
            return
        question = self.throttler.offer(signal, now=self.now)
        if question is None:
            return
        self._publish("question.created", self._question_payload(question), question.timestamp)
        self._persist_questions()

    async def _run_context_change(
        self,
        theory: Optional[str],
        recent: str,
        images: List[str],
        task_id: str,
        generation: int,
    ) -> None:
        try:
            raw = await self._reasoning.evaluate_context_change(theory, recent, images)
        except ReasoningError as exc:
            logger.warning(
                "context-change cycle skipped", extra={"session_id": self.session_id, "error": str(exc)}
            )
            return
        if self._is_stale(generation, task_id):
            logger.debug("stale context-change result dropped", extra={"task_id": task_id})
            return
        result = decode_response(ContextChangeResponse, raw)
        self._apply(self.detector.apply_context_change(result, task_id=task_id))

    async def _run_summary(self) -> None:
        generation = self._generation
        now = self.now
        summary = await self.summarizer.summarize(
            self.aggregator.context, now=now, answered=self._answered_records()
        )
        if generation != self._generation:
            return
        self._record_summary(summary, now)

    def _record_summary(self, summary: SessionSummary, at: datetime) -> None:
        self.aggregator.mark_summarized(at)
        self.latest_summary = summary
        self._publish("summary.updated", summary.model_dump(mode="json"), at)
        self._persist(
            "summary", lambda: self._store.append_session_summary(self.profile_id, summary)
        )
        self._persist("context", lambda: self._store.save_session_context(self.aggregator.context))

    # ------------------------------------------------------------------
    # Questions
    # ------------------------------------------------------------------
    def pending_questions(self) -> List[ClarificationQuestion]:
        return self.throttler.pending()

    def answer_question(
        self,
        question_id: str,
        answer: str,
        *,
        starts_new_task: bool = False,
        at: Optional[datetime] = None,
    ) -> ClarificationQuestion:
        at = at or self.now
        question = self.throttler.answer(question_id, answer, at=at)
        self._publish("question.answered", self._question_payload(question), at)
        if starts_new_task and self._status != SessionStatus.ENDED:
            self._apply(self.detector.indicate_new_task(question.answer, at))
        elif question.answer:
            self.aggregator.set_task_theory(question.answer)
        self._persist_questions()
        return question

    def dismiss_question(self, question_id: str, *, at: Optional[datetime] = None) -> ClarificationQuestion:
        at = at or self.now
        question = self.throttler.dismiss(question_id, at=at)
        self._publish("question.dismissed", self._question_payload(question), at)
        self._persist_questions()
        return question

    def defer_question(self, question_id: str, *, at: Optional[datetime] = None) -> ClarificationQuestion:
        at = at or self.now
        question = self.throttler.defer(question_id, at=at)
        self._publish("question.deferred", self._question_payload(question), at)
        self._persist_questions()
        return question

    def resurface_question(self, question_id: str, *, at: Optional[datetime] = None) -> ClarificationQuestion:
        at = at or self.now
        question = self.throttler.resurface(question_id, at=at)
        self._publish("question.resurfaced", self._question_payload(question), at)
        self._persist_questions()
        return question

    def _answered_records(self) -> List[QARecord]:
        return [
            QARecord(question=item.question, answer=item.answer or "", answered_at=item.answered_at)
            for item in self.throttler.answered()
        ]

    @staticmethod
    def _question_payload(question: ClarificationQuestion) -> Dict[str, Any]:
        return question.model_dump(mode="json")

    def _persist_questions(self) -> None:
        self._persist(
            "questions",
            lambda: self._store.save_questions(self.profile_id, self.session_id, self.throttler.questions),
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def _cancel_background(self) -> None:
        self._generation += 1
        self._confusion_slot.cancel()
        self._context_slot.cancel()
        self._summaries.cancel()

    def pause(self) -> None:
        if self._status != SessionStatus.ACTIVE:
            raise SessionStateError(f"session {self.session_id} is {self._status.value}")
        self._cancel_background()
        self._status = SessionStatus.PAUSED
        logger.info("session paused", extra={"session_id": self.session_id})
        self._publish("session.paused", {}, self.now)

    def resume(self) -> None:
        if self._status != SessionStatus.PAUSED:
            raise SessionStateError(f"session {self.session_id} is {self._status.value}")
        self._status = SessionStatus.ACTIVE
        logger.info("session resumed", extra={"session_id": self.session_id})
        self._publish("session.resumed", {}, self.now)

    async def end(self, at: Optional[datetime] = None) -> SessionSummary:
        """Close the active task, name it, and write the final summary."""

        if self._status == SessionStatus.ENDED:
            raise SessionStateError(f"session {self.session_id} already ended")
        self._cancel_background()
        self._status = SessionStatus.ENDED

        self._apply(self.detector.end_session(at))
        for task in self.detector.tasks:
            if task.status == TaskStatus.INTERRUPTED:
                self._request_name(task)
        if self._naming:
            await asyncio.gather(*list(self._naming), return_exceptions=True)

        end_at = at or self.now
        summary = await self.summarizer.summarize(
            self.aggregator.context, now=end_at, answered=self._answered_records(), final=True
        )
        self._record_summary(summary, end_at)
        self._persist("tasks", lambda: self._store.save_tasks(self.session_id, self.detector.tasks))
        self._persist_questions()
        logger.info(
            "session ended",
            extra={"session_id": self.session_id, "tasks": len(self.detector.tasks)},
        )
        self._publish("session.ended", {"tasks": self.detector.tasks_for_export()}, end_at)
        return summary

    async def wait_idle(self) -> None:
        """Wait for in-flight background work; used by callers that need a settled state."""

        await self._confusion_slot.wait()
        await self._context_slot.wait()
        if self._naming:
            await asyncio.gather(*list(self._naming), return_exceptions=True)
        await self._summaries.wait_idle()

    # ------------------------------------------------------------------
    # Events and storage
    # ------------------------------------------------------------------
    def _publish(self, kind: str, payload: Dict[str, Any], at: datetime) -> None:
        self.events.publish(
            ObserverEvent(kind=kind, session_id=self.session_id, timestamp=at, payload=payload)
        )

    def _persist(self, what: str, write: Callable[[], None]) -> None:
        if self._store is None:
            return
        try:
            write()
        except StorageError as exc:
            logger.warning(
                "storage write failed; keeping in-memory state",
                extra={"session_id": self.session_id, "what": what, "error": str(exc)},
            )
            self._publish("storage.warning", {"what": what, "error": str(exc)}, self.now)

    def snapshot(self) -> Dict[str, Any]:
        current = self.detector.current_task
        return {
            "session_id": self.session_id,
            "profile_id": self.profile_id,
            "status": self._status.value,
            "started_at": self.started_at,
            "observations": self._observation_count,
            "current_task": current.to_export() if current else None,
            "tasks": self.detector.tasks_for_export(),
            "app_time": dict(self.aggregator.context.app_time_accumulator),
            "current_task_theory": self.aggregator.context.current_task_theory,
            "pending_questions": len(self.throttler.pending()),
        }


__all__ = ["ObservationSession", "SessionStatus"]
