import pytest

from conftest import at

from workflow_observer.config import ObservationConfig
from workflow_observer.errors import SessionStateError
from workflow_observer.models import (
    AppSegment,
    BoundaryTrigger,
    ContextChangeResponse,
    InvalidResponse,
    Task,
    TaskEventKind,
    TaskStatus,
)
from workflow_observer.services.tasks import (
    AppPair,
    AppSwitchPolicy,
    DetectorState,
    TaskBoundaryDetector,
    TimePatternPolicy,
    merge_tasks,
    should_merge_tasks,
)


def feed(detector, observations):
    events = []
    for observation in observations:
        events.extend(detector.observe(observation).events)
    return events


def kinds(events):
    return [event.kind for event in events]


@pytest.fixture
def detector(config):
    return TaskBoundaryDetector("session-1", config)


def test_first_observation_starts_a_task(detector, obs):
    events = feed(detector, [obs(0, "Excel", "Budget.xlsx")])

    assert kinds(events) == [TaskEventKind.STARTED]
    assert events[0].trigger == BoundaryTrigger.SESSION_START
    assert detector.state == DetectorState.TASK_ACTIVE
    assert detector.current_task.app_segments[0].app == "Excel"


def test_brief_dip_into_messaging_app_keeps_one_task(detector, obs):
    events = feed(
        detector,
        [
            obs(0, "Excel"),
            obs(10, "Excel"),
            obs(20, "Excel"),
            obs(30, "Slack"),
            obs(40, "Slack"),
            obs(50, "Excel"),
            obs(60, "Excel"),
        ],
    )

    assert kinds(events) == [TaskEventKind.STARTED]
    assert len(detector.tasks) == 1
    assert [segment.app for segment in detector.current_task.app_segments] == ["Excel", "Slack", "Excel"]


def test_switch_to_unrelated_app_past_debounce_opens_new_task(detector, obs):
    feed(detector, obs.series(0, "Excel", 6))
    events = feed(detector, obs.series(60, "SAP", 5))

    switched = [event for event in events if event.kind == TaskEventKind.SWITCHED]
    assert len(switched) == 1
    assert switched[0].trigger == BoundaryTrigger.APP_SWITCH

    first, second = detector.tasks
    assert first.status == TaskStatus.COMPLETED
    assert first.end_time == at(60)
    assert first.duration == 60
    assert second.status == TaskStatus.ACTIVE
    assert second.app_segments[0].app == "SAP"
    assert second.app_segments[0].start_time == at(60)
    assert second.observation_refs[0] == "obs-7"
    assert "obs-7" not in first.observation_refs


def test_switch_shorter_than_debounce_is_ignored(detector, obs):
    feed(detector, obs.series(0, "Excel", 6))
    events = feed(detector, [obs(60, "SAP"), obs(70, "SAP"), obs(80, "Excel")])

    assert TaskEventKind.SWITCHED not in kinds(events)
    assert len(detector.tasks) == 1


def test_long_dwell_in_exception_app_closes_task(obs):
    detector = TaskBoundaryDetector("session-1", ObservationConfig(exception_dwell_seconds=120))
    feed(detector, obs.series(0, "Excel", 6))
    events = feed(detector, obs.series(60, "Slack", 13))

    assert TaskEventKind.SWITCHED in kinds(events)
    assert detector.current_task.dominant_app() == "Slack"


def test_new_task_app_overrides_exception_table(obs):
    policy = AppSwitchPolicy(same_task_pairs=(AppPair("*", "Zoom"),), new_task_apps=("Zoom",))
    detector = TaskBoundaryDetector("session-1", ObservationConfig(), app_policy=policy)
    feed(detector, obs.series(0, "Excel", 6))
    events = feed(detector, obs.series(60, "Zoom", 4))

    assert TaskEventKind.SWITCHED in kinds(events)


def test_same_task_pairs_are_asymmetric():
    policy = AppSwitchPolicy()
    assert policy.is_same_task_switch("Excel", "Google Chrome")
    assert not policy.is_same_task_switch("Google Chrome", "Excel")
    assert policy.is_new_task_app("Microsoft Outlook")
    assert not policy.is_boundary("Excel", "Slack", 60, 30)
    assert policy.is_boundary("Excel", "SAP", 30, 30)


def test_idle_gap_interrupts_and_same_app_resumes(detector, obs):
    feed(detector, obs.series(0, "Excel", 6))
    events = feed(detector, [obs(450, "Excel")])

    assert kinds(events) == [TaskEventKind.INTERRUPTED, TaskEventKind.RESUMED]
    assert len(detector.tasks) == 1
    task = detector.current_task
    assert task.status == TaskStatus.ACTIVE
    assert task.end_time is None
    # the idle gap is not counted as work
    assert task.duration == 50


def test_idle_gap_in_other_app_starts_new_task(detector, obs):
    feed(detector, obs.series(0, "Excel", 6))
    events = feed(detector, [obs(450, "Outlook")])

    assert kinds(events) == [TaskEventKind.INTERRUPTED, TaskEventKind.STARTED]
    assert events[1].trigger == BoundaryTrigger.TIME_GAP
    first, second = detector.tasks
    assert first.status == TaskStatus.INTERRUPTED
    assert first.end_time == at(50)
    assert second.status == TaskStatus.ACTIVE


def test_check_idle_interrupts_without_new_observation(detector, obs):
    feed(detector, obs.series(0, "Excel", 3))

    assert not detector.check_idle(at(200))
    output = detector.check_idle(at(400))

    assert kinds(output.events) == [TaskEventKind.INTERRUPTED]
    assert detector.state == DetectorState.TASK_INTERRUPTED
    assert detector.current_task is None


def test_crossing_lunch_boundary_ends_task(obs):
    detector = TaskBoundaryDetector("session-1", ObservationConfig(), time_policy=TimePatternPolicy(timezone="UTC"))
    feed(detector, obs.series(10620, "Excel", 7))  # 11:57 to 11:58
    events = feed(detector, [obs(10860, "Excel")])  # 12:01

    assert kinds(events) == [TaskEventKind.SWITCHED]
    assert events[0].trigger == BoundaryTrigger.TIME_PATTERN
    assert detector.tasks[0].status == TaskStatus.COMPLETED


def test_confident_context_change_splits_task(detector, obs):
    feed(detector, obs.series(0, "Excel", 11))
    task_id = detector.current_task.id

    output = detector.apply_context_change(
        ContextChangeResponse(sameTask=False, confidence=0.9, reasoning="new workbook"), task_id=task_id
    )

    assert kinds(output.events) == [TaskEventKind.SWITCHED]
    assert detector.tasks[0].end_time == at(100)
    assert detector.current_task.start_trigger == BoundaryTrigger.CONTEXT_CHANGE


def test_context_change_is_conservative(detector, obs):
    feed(detector, obs.series(0, "Excel", 5))
    task_id = detector.current_task.id

    low = ContextChangeResponse(sameTask=False, confidence=0.6, reasoning="maybe")
    assert not detector.apply_context_change(low, task_id=task_id)
    assert not detector.apply_context_change(InvalidResponse(reason="garbage"), task_id=task_id)
    assert not detector.apply_context_change(
        ContextChangeResponse(sameTask=False, confidence=0.95), task_id="task-stale"
    )
    assert len(detector.tasks) == 1


def test_short_task_in_same_app_is_merged_backward(detector, obs):
    feed(detector, obs.series(0, "Excel", 11))
    first_id = detector.current_task.id
    detector.apply_context_change(ContextChangeResponse(sameTask=False, confidence=0.9), task_id=first_id)
    short_id = detector.current_task.id

    feed(detector, obs.series(110, "Excel", 2))
    events = feed(detector, obs.series(130, "SAP", 4))

    assert kinds(events) == [TaskEventKind.SWITCHED, TaskEventKind.MERGED]
    merged_event = events[1]
    assert merged_event.merged_task_id == short_id
    assert merged_event.new_task.id == first_id

    ids = [task.id for task in detector.tasks]
    assert short_id not in ids
    assert ids[0] == first_id
    assert detector.tasks[0].duration == 130
    assert detector.current_task.dominant_app() == "SAP"


def test_user_indication_forces_named_task(detector, obs):
    feed(detector, obs.series(0, "Excel", 6))
    output = detector.indicate_new_task("Preparing payroll", at(60))

    assert kinds(output.events) == [TaskEventKind.SWITCHED]
    current = detector.current_task
    assert current.name == "Preparing payroll"
    assert current.user_explanation == "Preparing payroll"
    assert current.start_trigger == BoundaryTrigger.USER_INDICATION
    assert detector.tasks[0].end_time == at(60)


def test_task_name_applies_only_to_known_tasks(detector, obs):
    feed(detector, obs.series(0, "Excel", 3))
    task_id = detector.current_task.id

    event = detector.apply_task_name(task_id, "Update budget")
    assert event.kind == TaskEventKind.NAMED
    assert detector.current_task.name == "Update budget"
    assert detector.apply_task_name("task-missing", "Anything") is None


def test_end_session_completes_active_task_and_blocks_intake(detector, obs):
    feed(detector, obs.series(0, "Excel", 10))
    output = detector.end_session(at(100))

    assert kinds(output.events) == [TaskEventKind.ENDED]
    task = detector.tasks[0]
    assert task.status == TaskStatus.COMPLETED
    assert task.end_trigger == BoundaryTrigger.SESSION_END
    assert task.end_time == at(100)
    assert detector.state == DetectorState.TASK_COMPLETED
    with pytest.raises(SessionStateError):
        detector.observe(obs(110, "Excel"))


def test_out_of_order_observation_is_ignored(detector, obs):
    feed(detector, [obs(20, "Excel")])
    output = detector.observe(obs(10, "SAP"))

    assert not output
    assert detector.last_observation.id == "obs-1"


def test_export_formats_durations(detector, obs):
    feed(detector, obs.series(0, "Excel", 6))
    detector.end_session(at(45))
    exported = detector.tasks_for_export()

    assert exported[0]["duration_formatted"] == "50s"
    assert exported[0]["applications"] == [{"app": "Excel", "duration": 50.0}]


def test_structural_invariants_hold_over_mixed_stream(detector, obs):
    stream = (
        obs.series(0, "Excel", 6)
        + obs.series(60, "Google Chrome", 2)
        + obs.series(80, "Excel", 3)
        + obs.series(110, "SAP", 6)
        + obs.series(500, "SAP", 3)
        + obs.series(530, "Outlook", 5)
        + obs.series(580, "Slack", 2)
        + obs.series(600, "Outlook", 3)
    )
    for observation in stream:
        detector.observe(observation)
        active = [task for task in detector.tasks if task.status == TaskStatus.ACTIVE]
        assert len(active) <= 1

    detector.end_session()
    for task in detector.tasks:
        assert task.end_time >= task.start_time
        segments = task.app_segments
        for earlier, later in zip(segments, segments[1:]):
            assert earlier.end_time <= later.start_time


def _task(task_id, *spans, status=TaskStatus.COMPLETED):
    segments = [AppSegment(app, "", at(start), at(end)) for app, start, end in spans]
    return Task(
        id=task_id,
        session_id="session-1",
        start_time=segments[0].start_time,
        end_time=segments[-1].end_time,
        status=status,
        app_segments=segments,
        start_trigger=BoundaryTrigger.APP_SWITCH,
    )


def test_merge_is_commutative_and_idempotent_in_duration():
    a = _task("task-a", ("Excel", 0, 60))
    b = _task("task-b", ("Excel", 100, 130), ("Chrome", 130, 140))

    ab = merge_tasks(a, b)
    ba = merge_tasks(b, a)

    assert ab.duration == a.duration + b.duration
    assert ba.duration == ab.duration
    assert ab.id == ba.id == "task-a"
    assert merge_tasks(ab, b).duration == ab.duration
    assert merge_tasks(ab, ab).duration == ab.duration


def test_should_merge_requires_same_dominant_app_and_short_gap():
    a = _task("task-a", ("Excel", 0, 60))
    close_same = _task("task-b", ("Excel", 100, 130))
    far_same = _task("task-c", ("Excel", 400, 430))
    close_other = _task("task-d", ("SAP", 100, 130))
    interrupted = _task("task-e", ("Excel", 0, 60), status=TaskStatus.INTERRUPTED)

    assert should_merge_tasks(a, close_same, merge_gap_seconds=120)
    assert not should_merge_tasks(a, far_same, merge_gap_seconds=120)
    assert not should_merge_tasks(a, close_other, merge_gap_seconds=120)
    assert not should_merge_tasks(interrupted, close_same, merge_gap_seconds=120)
