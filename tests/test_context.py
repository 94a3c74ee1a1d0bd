from datetime import timedelta

from conftest import T0, at

from workflow_observer.config import TokenBudget
from workflow_observer.models import (
    ContextChangeResponse,
    HistoricalContext,
    InterviewSummary,
    QARecord,
    SessionSummary,
)
from workflow_observer.services.context import (
    ContextAssembler,
    HistoricalContextLoader,
    ImmediateContextTracker,
    SessionContextAggregator,
    get_relevant_history,
    rank_summaries,
)
from workflow_observer.services.tasks import TaskBoundaryDetector


def run_stream(detector, aggregator, observations):
    for observation in observations:
        output = detector.observe(observation)
        apply_output(aggregator, output)


def apply_output(aggregator, output):
    for segment in output.closed_segments:
        aggregator.on_app_time(segment.app, segment.duration)
    for event in output.events:
        aggregator.on_task_boundary(event)


def test_app_time_matches_closed_segments(obs, config):
    detector = TaskBoundaryDetector("session-1", config)
    aggregator = SessionContextAggregator("session-1", T0)
    stream = (
        obs.series(0, "Excel", 6)
        + obs.series(60, "Google Chrome", 2)
        + obs.series(80, "Excel", 4)
        + obs.series(120, "SAP", 6)
        + obs.series(600, "SAP", 2)
        + obs.series(620, "Outlook", 5)
    )
    run_stream(detector, aggregator, stream)
    apply_output(aggregator, detector.end_session())

    expected = {}
    for task in detector.tasks:
        for segment in task.app_segments:
            expected[segment.app] = expected.get(segment.app, 0.0) + segment.duration
    assert aggregator.context.app_time_accumulator == expected
    assert set(aggregator.context.tasks_so_far) == {task.id for task in detector.tasks}


def test_merged_task_entry_is_replaced(obs, config):
    detector = TaskBoundaryDetector("session-1", config)
    aggregator = SessionContextAggregator("session-1", T0)
    run_stream(detector, aggregator, obs.series(0, "Excel", 11))
    first_id = detector.current_task.id
    apply_output(
        aggregator,
        detector.apply_context_change(ContextChangeResponse(sameTask=False, confidence=0.9), task_id=first_id),
    )
    short_id = detector.current_task.id
    assert first_id in aggregator.context.tasks_so_far

    run_stream(detector, aggregator, obs.series(110, "Excel", 2) + obs.series(130, "SAP", 4))

    tasks_so_far = aggregator.context.tasks_so_far
    assert short_id not in tasks_so_far
    assert tasks_so_far[first_id].duration == 130


def test_switch_clears_theory_unless_user_explained(obs, config):
    detector = TaskBoundaryDetector("session-1", config)
    aggregator = SessionContextAggregator("session-1", T0)
    run_stream(detector, aggregator, obs.series(0, "Excel", 6))
    aggregator.set_task_theory("Reconciling invoices")

    run_stream(detector, aggregator, obs.series(60, "SAP", 4))
    assert aggregator.context.current_task_theory is None

    apply_output(aggregator, detector.indicate_new_task("Vendor onboarding", at(100)))
    assert aggregator.context.current_task_theory == "Vendor onboarding"


def test_aggregator_ignores_blank_and_repeated_input():
    aggregator = SessionContextAggregator("session-1", T0)
    aggregator.record_question_asked("Why copy these values?")
    aggregator.record_question_asked("Why copy these values?")
    aggregator.record_question_asked("   ")
    aggregator.set_task_theory("Budget review")
    aggregator.set_task_theory("")
    aggregator.on_app_time("Excel", -5)

    context = aggregator.context
    assert context.questions_asked == ["Why copy these values?"]
    assert context.current_task_theory == "Budget review"
    assert context.app_time_accumulator == {}


def test_digest_lists_top_apps_and_current_task():
    aggregator = SessionContextAggregator("session-1", T0)
    aggregator.on_app_time("Excel", 600)
    aggregator.on_app_time("SAP", 1200)
    aggregator.set_task_theory("Vendor onboarding")

    digest = aggregator.format_digest(at(1800))

    assert digest.splitlines()[0] == "Session duration: 30 minutes"
    assert "Top apps: SAP (20m), Excel (10m)" in digest
    assert "Current task: Vendor onboarding" in digest
    assert len(aggregator.format_digest(at(1800), budget_units=5)) <= 20


def _summary(session_id, days_ago, brief, tasks=(), apps=()):
    return SessionSummary(
        session_id=session_id,
        date=T0 - timedelta(days=days_ago),
        brief=brief,
        tasks_completed=list(tasks),
        apps_used=list(apps),
    )


def test_loader_collects_known_tasks_newest_first(store):
    store.interviews["alex"] = InterviewSummary(role="Accounts payable clerk")
    store.summaries["alex"] = [
        _summary("s-old", 3, "Processed invoices", tasks=["Invoice entry"]),
        _summary("s-new", 1, "Vendor setup", tasks=["Vendor onboarding", "Invoice entry"]),
    ]
    store.qa["alex"] = [QARecord(question="Why SAP?", answer="System of record")]

    historical = HistoricalContextLoader(store, limit=10).load("alex")

    assert [item.session_id for item in historical.previous_session_summaries] == ["s-new", "s-old"]
    assert historical.known_tasks == ["Vendor onboarding", "Invoice entry"]
    assert historical.interview_summary.role == "Accounts payable clerk"
    assert len(historical.relevant_qa) == 1


def test_loader_for_unknown_profile_is_empty(store):
    historical = HistoricalContextLoader(store).load("nobody")

    assert historical.interview_summary is None
    assert historical.previous_session_summaries == []
    assert historical.known_tasks == []


def test_ranking_prefers_overlap_then_recency():
    summaries = [
        _summary("s-1", 1, "Answered email"),
        _summary("s-2", 5, "Reconciled vendor invoices in SAP", apps=["SAP"]),
        _summary("s-3", 2, "Team meeting"),
    ]

    ranked = rank_summaries(summaries, "vendor invoices SAP")
    assert ranked[0][1].session_id == "s-2"

    by_recency = rank_summaries(summaries, "")
    assert [item.session_id for _, item in by_recency] == ["s-1", "s-3", "s-2"]


def test_relevant_history_respects_budget():
    historical = HistoricalContext(
        previous_session_summaries=[_summary(f"s-{n}", n, "Reconciled invoices " * 5) for n in range(10)],
        known_tasks=["Invoice entry"],
    )

    text = get_relevant_history(historical, current_task_theory="invoices", current_app="Excel", budget_units=40)

    assert len(text) <= 160
    assert text.startswith("Relevant sessions:")
    assert get_relevant_history(None, current_task_theory=None, current_app=None) == (
        "No historical context available."
    )


def test_relevant_history_includes_matching_answers():
    historical = HistoricalContext(
        relevant_qa=[
            QARecord(question="Why export from SAP?", answer="Finance needs the file"),
            QARecord(question="What is the blue form?", answer="Travel request"),
        ]
    )

    text = get_relevant_history(historical, current_task_theory="SAP export", current_app=None)

    assert "Why export from SAP?" in text
    assert "blue form" not in text


def test_assembler_is_deterministic_and_bounded(obs):
    tracker = ImmediateContextTracker()
    for observation in obs.series(0, "Excel", 3, title="Budget.xlsx"):
        tracker.update(observation)
    aggregator = SessionContextAggregator("session-1", T0)
    aggregator.on_app_time("Excel", 20)
    historical = HistoricalContext(
        interview_summary=InterviewSummary(role="Analyst", systems_used=["Excel", "SAP"]),
        previous_session_summaries=[_summary("s-1", 1, "Built the quarterly budget")],
    )
    budget = TokenBudget(session=100, historical=100, baseline=100)
    assembler = ContextAssembler()

    first = assembler.assemble(tracker.context, aggregator.context, historical, budget)
    second = assembler.assemble(tracker.context, aggregator.context, historical, budget)

    assert first == second
    assert first.text_units <= budget.total
    assert first.observation_id == "obs-3"
    assert "Current app: Excel" in first.immediate_state
    assert "Role: Analyst" in first.baseline
    assert "=== IMMEDIATE (Current State) ===" in first.render()


def test_assembler_handles_missing_tiers():
    tracker = ImmediateContextTracker()
    aggregator = SessionContextAggregator("session-1", T0)

    bundle = ContextAssembler().assemble(tracker.context, aggregator.context, None, TokenBudget())

    assert bundle.immediate_state == "No immediate context available."
    assert bundle.historical == "No historical context available."
    assert bundle.baseline == "No interview data available."
    assert bundle.observation_id is None
