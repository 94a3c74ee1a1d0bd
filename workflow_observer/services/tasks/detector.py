"""State machine that segments the observation stream into tasks.

The detector owns a single current-task slot. Every transition (start, switch,
interrupt, resume, end, merge) goes through the slot, so there is never more
than one active task and each closure is reported exactly once.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Union

from ...config import ObservationConfig
from ...errors import InvariantViolation, SessionStateError
from ...logging_config import logger
from ...models import (
    AppSegment,
    BoundaryTrigger,
    ContextChangeResponse,
    InvalidResponse,
    Observation,
    Task,
    TaskBoundaryEvent,
    TaskEventKind,
    TaskStatus,
)
from ...utils.timestamps import seconds_between
from .merging import merge_tasks, should_merge_tasks
from .policy import AppSwitchPolicy, TimePatternPolicy


class DetectorState(str, Enum):
    NO_TASK = "no_task"
    TASK_ACTIVE = "task_active"
    TASK_INTERRUPTED = "task_interrupted"
    TASK_COMPLETED = "task_completed"


@dataclass
class DetectorOutput:
    """Boundary events plus the app segments closed while producing them."""

    events: List[TaskBoundaryEvent] = field(default_factory=list)
    closed_segments: List[AppSegment] = field(default_factory=list)

    def extend(self, other: "DetectorOutput") -> None:
        self.events.extend(other.events)
        self.closed_segments.extend(other.closed_segments)

    def __bool__(self) -> bool:
        return bool(self.events or self.closed_segments)


@dataclass
class _PendingSwitch:
    app: str
    from_app: str
    since: datetime


def _new_task_id() -> str:
    return f"task-{uuid.uuid4().hex[:12]}"


class TaskBoundaryDetector:
    def __init__(
        self,
        session_id: str,
        config: Optional[ObservationConfig] = None,
        *,
        app_policy: Optional[AppSwitchPolicy] = None,
        time_policy: Optional[TimePatternPolicy] = None,
    ) -> None:
        self._session_id = session_id
        self._config = config or ObservationConfig()
        self._app_policy = app_policy or AppSwitchPolicy(
            exception_dwell_seconds=self._config.exception_dwell_seconds
        )
        self._time_policy = time_policy or TimePatternPolicy()

        self._tasks: List[Task] = []
        self._current: Optional[Task] = None
        self._state = DetectorState.NO_TASK
        self._pending: Optional[_PendingSwitch] = None
        self._last_observation: Optional[Observation] = None
        self._observation_times: Dict[str, datetime] = {}
        self._ended = False

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------
    @property
    def state(self) -> DetectorState:
        return self._state

    @property
    def current_task(self) -> Optional[Task]:
        return self._current

    @property
    def tasks(self) -> List[Task]:
        return list(self._tasks)

    @property
    def last_observation(self) -> Optional[Observation]:
        return self._last_observation

    def get_task(self, task_id: str) -> Optional[Task]:
        for task in self._tasks:
            if task.id == task_id:
                return task
        return None

    def tasks_for_export(self) -> List[Dict[str, object]]:
        return [task.to_export() for task in self._tasks]

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def observe(self, observation: Observation) -> DetectorOutput:
        if self._ended:
            raise SessionStateError("observation received after the session ended")

        output = DetectorOutput()
        previous = self._last_observation
        if previous is not None and observation.timestamp < previous.timestamp:
            logger.warning(
                "observation out of order; ignored",
                extra={"session_id": self._session_id, "observation_id": observation.id},
            )
            return output

        current = self._current
        if current is None:
            self._begin(observation, output)
        elif previous is None:
            self._record(current, observation, output)
        else:
            gap = seconds_between(previous.timestamp, observation.timestamp)
            crossed = self._time_policy.crossed(previous.timestamp, observation.timestamp)
            if crossed is not None:
                logger.info(
                    "day boundary crossed",
                    extra={"session_id": self._session_id, "boundary": crossed.name},
                )
                closed = self._close_current(
                    previous.timestamp, TaskStatus.COMPLETED, BoundaryTrigger.TIME_PATTERN, output
                )
                task = self._open_task(observation.timestamp, BoundaryTrigger.TIME_PATTERN)
                self._record(task, observation, output)
                self._emit_switch(closed, task, BoundaryTrigger.TIME_PATTERN, observation.timestamp, output)
            elif gap > self._config.idle_threshold_seconds:
                self._interrupt(previous.timestamp, output)
                self._begin(observation, output)
            else:
                self._evaluate_pending(observation, output)
                self._record(self._current, observation, output)
                self._track_switch(observation, output)

        self._last_observation = observation
        self._check_invariants()
        return output

    def check_idle(self, now: datetime) -> DetectorOutput:
        """Interrupt the current task if nothing has been observed for too long."""

        output = DetectorOutput()
        last = self._last_observation
        if self._current is None or last is None:
            return output
        if seconds_between(last.timestamp, now) > self._config.idle_threshold_seconds:
            self._interrupt(last.timestamp, output)
            self._check_invariants()
        return output

    def apply_context_change(
        self, result: Union[ContextChangeResponse, InvalidResponse], *, task_id: str
    ) -> DetectorOutput:
        output = DetectorOutput()
        current = self._current
        if current is None or current.id != task_id:
            logger.debug("stale context-change result dropped", extra={"task_id": task_id})
            return output
        if isinstance(result, InvalidResponse):
            logger.warning(
                "context-change response unusable",
                extra={"task_id": task_id, "reason": result.reason},
            )
            return output
        if result.same_task or result.confidence < self._config.context_change_threshold:
            return output

        at = self._last_observation.timestamp if self._last_observation else current.start_time
        self._split(at, BoundaryTrigger.CONTEXT_CHANGE, output)
        self._check_invariants()
        return output

    def indicate_new_task(self, description: Optional[str], at: datetime) -> DetectorOutput:
        """The user said they moved on to something new."""

        if self._ended:
            raise SessionStateError("session already ended")

        output = DetectorOutput()
        explanation = (description or "").strip() or None
        last = self._last_observation
        if self._current is not None:
            at = max(at, self._current.start_time)
            if last is not None:
                at = max(at, last.timestamp)
            task = self._split(at, BoundaryTrigger.USER_INDICATION, output, explanation=explanation)
        else:
            task = self._open_task(at, BoundaryTrigger.USER_INDICATION)
            task.user_explanation = explanation
            if explanation:
                task.name = explanation
            if last is not None:
                task.app_segments.append(AppSegment(last.active_app, last.window_title, at))
            output.events.append(
                TaskBoundaryEvent(
                    kind=TaskEventKind.STARTED,
                    trigger=BoundaryTrigger.USER_INDICATION,
                    timestamp=at,
                    new_task=task,
                )
            )
        logger.info("user indicated new task", extra={"session_id": self._session_id, "task_id": task.id})
        self._check_invariants()
        return output

    def apply_task_name(self, task_id: str, name: str) -> Optional[TaskBoundaryEvent]:
        task = self.get_task(task_id)
        cleaned = (name or "").strip()
        if task is None or not cleaned or task.user_explanation:
            return None
        task.name = cleaned
        return TaskBoundaryEvent(
            kind=TaskEventKind.NAMED,
            trigger=task.start_trigger,
            timestamp=task.end_time or task.start_time,
            new_task=task,
        )

    def end_session(self, at: Optional[datetime] = None) -> DetectorOutput:
        output = DetectorOutput()
        if self._ended:
            return output
        last = self._last_observation
        end_at = at or (last.timestamp if last else None)
        if self._current is not None and end_at is not None:
            if last is not None:
                end_at = max(end_at, last.timestamp)
            closed = self._close_current(end_at, TaskStatus.COMPLETED, BoundaryTrigger.SESSION_END, output)
            output.events.append(
                TaskBoundaryEvent(
                    kind=TaskEventKind.ENDED,
                    trigger=BoundaryTrigger.SESSION_END,
                    timestamp=end_at,
                    previous_task=closed,
                )
            )
            self._merge_backward(closed, output)
        self._pending = None
        self._ended = True
        self._check_invariants()
        return output

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _begin(self, observation: Observation, output: DetectorOutput) -> None:
        """Start a task from the empty slot, resuming an interrupted one when possible."""

        resumable = self._resumable(observation)
        if resumable is not None:
            resumable.status = TaskStatus.ACTIVE
            resumable.end_time = None
            resumable.end_trigger = None
            self._current = resumable
            self._state = DetectorState.TASK_ACTIVE
            self._record(resumable, observation, output)
            output.events.append(
                TaskBoundaryEvent(
                    kind=TaskEventKind.RESUMED,
                    trigger=BoundaryTrigger.TIME_GAP,
                    timestamp=observation.timestamp,
                    new_task=resumable,
                )
            )
            logger.info("task resumed", extra={"session_id": self._session_id, "task_id": resumable.id})
            return

        trigger = BoundaryTrigger.TIME_GAP if self._tasks else BoundaryTrigger.SESSION_START
        task = self._open_task(observation.timestamp, trigger)
        self._record(task, observation, output)
        output.events.append(
            TaskBoundaryEvent(
                kind=TaskEventKind.STARTED,
                trigger=trigger,
                timestamp=observation.timestamp,
                new_task=task,
            )
        )

    def _resumable(self, observation: Observation) -> Optional[Task]:
        if not self._tasks:
            return None
        candidate = self._tasks[-1]
        if candidate.status != TaskStatus.INTERRUPTED or candidate.end_time is None:
            return None
        if observation.active_app not in candidate.apps:
            return None
        if seconds_between(candidate.end_time, observation.timestamp) > self._config.resume_window_seconds:
            return None
        return candidate

    def _open_task(self, at: datetime, trigger: BoundaryTrigger) -> Task:
        if self._current is not None:
            raise InvariantViolation(f"task {self._current.id} still active while opening another")
        task = Task(id=_new_task_id(), session_id=self._session_id, start_time=at, start_trigger=trigger)
        self._tasks.append(task)
        self._current = task
        self._state = DetectorState.TASK_ACTIVE
        self._pending = None
        logger.info(
            "task started",
            extra={"session_id": self._session_id, "task_id": task.id, "trigger": trigger.value},
        )
        return task

    def _record(self, task: Task, observation: Observation, output: DetectorOutput) -> None:
        segment = task.open_segment
        if segment is not None and segment.app != observation.active_app:
            output.closed_segments.append(segment.close(observation.timestamp))
            segment = None
        if segment is None:
            task.app_segments.append(
                AppSegment(observation.active_app, observation.window_title, observation.timestamp)
            )
        else:
            segment.window_title = observation.window_title or segment.window_title
        task.observation_refs.append(observation.id)
        task.note_title(observation.window_title)
        self._observation_times[observation.id] = observation.timestamp

    def _close_current(
        self,
        at: datetime,
        status: TaskStatus,
        trigger: BoundaryTrigger,
        output: DetectorOutput,
    ) -> Task:
        task = self._current
        if task is None:
            raise InvariantViolation("no active task to close")
        segment = task.open_segment
        if segment is not None:
            output.closed_segments.append(segment.close(at))
        task.end_time = max(at, task.start_time)
        task.status = status
        task.end_trigger = trigger
        self._current = None
        self._pending = None
        self._state = (
            DetectorState.TASK_INTERRUPTED if status == TaskStatus.INTERRUPTED else DetectorState.TASK_COMPLETED
        )
        logger.info(
            "task closed",
            extra={
                "session_id": self._session_id,
                "task_id": task.id,
                "status": status.value,
                "trigger": trigger.value,
            },
        )
        return task

    def _interrupt(self, at: datetime, output: DetectorOutput) -> None:
        closed = self._close_current(at, TaskStatus.INTERRUPTED, BoundaryTrigger.TIME_GAP, output)
        output.events.append(
            TaskBoundaryEvent(
                kind=TaskEventKind.INTERRUPTED,
                trigger=BoundaryTrigger.TIME_GAP,
                timestamp=at,
                previous_task=closed,
            )
        )

    def _split(
        self,
        at: datetime,
        trigger: BoundaryTrigger,
        output: DetectorOutput,
        *,
        explanation: Optional[str] = None,
    ) -> Task:
        """End the current task at *at* and carry everything from *at* onward into a new one."""

        old = self._current
        if old is None:
            raise InvariantViolation("cannot split without an active task")

        kept = [segment for segment in old.app_segments if segment.start_time < at]
        moved = [segment for segment in old.app_segments if segment.start_time >= at]
        carry: Optional[AppSegment] = None
        if kept and kept[-1].is_open:
            straddling = kept[-1]
            carry = AppSegment(straddling.app, straddling.window_title, at)
            output.closed_segments.append(straddling.close(at))
        elif not kept and not moved and self._last_observation is not None:
            carry = AppSegment(self._last_observation.active_app, self._last_observation.window_title, at)

        moved_refs = [ref for ref in old.observation_refs if self._observation_times.get(ref, at) >= at]
        moved_set = set(moved_refs)
        old.app_segments = kept
        old.observation_refs = [ref for ref in old.observation_refs if ref not in moved_set]
        old.end_time = max(at, old.start_time)
        old.status = TaskStatus.COMPLETED
        old.end_trigger = trigger
        self._current = None

        new = self._open_task(at, trigger)
        new.app_segments = ([carry] if carry else []) + moved
        new.observation_refs = moved_refs
        for segment in new.app_segments:
            new.note_title(segment.window_title)
        if explanation:
            new.user_explanation = explanation
            new.name = explanation

        self._emit_switch(old, new, trigger, at, output)
        return new

    def _emit_switch(
        self, closed: Task, new: Task, trigger: BoundaryTrigger, at: datetime, output: DetectorOutput
    ) -> None:
        output.events.append(
            TaskBoundaryEvent(
                kind=TaskEventKind.SWITCHED,
                trigger=trigger,
                timestamp=at,
                previous_task=closed,
                new_task=new,
            )
        )
        self._merge_backward(closed, output)

    def _merge_backward(self, closed: Task, output: DetectorOutput) -> None:
        if closed.duration >= self._config.min_task_duration_seconds:
            return
        index = self._tasks.index(closed)
        if index == 0:
            return
        earlier = self._tasks[index - 1]
        if not should_merge_tasks(earlier, closed, merge_gap_seconds=self._config.merge_gap_seconds):
            return

        merged = merge_tasks(earlier, closed)
        self._tasks[index - 1] = merged
        del self._tasks[index]
        logger.info(
            "short task merged",
            extra={"session_id": self._session_id, "task_id": merged.id, "merged_task_id": closed.id},
        )
        output.events.append(
            TaskBoundaryEvent(
                kind=TaskEventKind.MERGED,
                trigger=closed.end_trigger or BoundaryTrigger.APP_SWITCH,
                timestamp=merged.end_time or merged.start_time,
                new_task=merged,
                merged_task_id=closed.id,
            )
        )

    def _evaluate_pending(self, observation: Observation, output: DetectorOutput) -> None:
        """Settle a pending switch whose episode ends with this observation."""

        pending = self._pending
        if pending is None or observation.active_app == pending.app:
            return

        dwell = seconds_between(pending.since, observation.timestamp)
        if self._app_policy.is_boundary(
            pending.from_app, pending.app, dwell, self._config.app_switch_debounce_seconds
        ):
            self._split(pending.since, BoundaryTrigger.APP_SWITCH, output)
            # new task's dominant app is the one we switched into
            self._pending = _PendingSwitch(observation.active_app, pending.app, observation.timestamp)
            return

        task = self._current
        dominant = task.dominant_app(before=pending.since) if task else None
        if observation.active_app == dominant:
            self._pending = None
        else:
            self._pending = _PendingSwitch(observation.active_app, pending.app, observation.timestamp)

    def _track_switch(self, observation: Observation, output: DetectorOutput) -> None:
        task = self._current
        if task is None:
            return

        pending = self._pending
        if pending is None:
            dominant = task.dominant_app(before=observation.timestamp)
            if dominant is None or observation.active_app == dominant:
                return
            previous = self._last_observation
            from_app = previous.active_app if previous else dominant
            pending = self._pending = _PendingSwitch(observation.active_app, from_app, observation.timestamp)

        if observation.active_app != pending.app:
            return
        dwell = seconds_between(pending.since, observation.timestamp)
        if self._app_policy.is_boundary(
            pending.from_app, pending.app, dwell, self._config.app_switch_debounce_seconds
        ):
            self._split(pending.since, BoundaryTrigger.APP_SWITCH, output)

    def _check_invariants(self) -> None:
        active = [task for task in self._tasks if task.status == TaskStatus.ACTIVE]
        if len(active) > 1:
            raise InvariantViolation(f"{len(active)} tasks active at once")
        if active and active[0] is not self._current:
            raise InvariantViolation("active task does not occupy the current slot")
        if not active and self._current is not None:
            raise InvariantViolation("current slot holds a task that is not active")


__all__ = ["DetectorOutput", "DetectorState", "TaskBoundaryDetector"]
