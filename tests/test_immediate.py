from conftest import at

from workflow_observer.services.context import ImmediateContextTracker, describe_change


def test_buffer_never_exceeds_capacity(obs):
    tracker = ImmediateContextTracker(capacity=6)
    for index in range(20):
        context = tracker.update(obs(index * 10, "Excel", "Budget.xlsx"))
        assert len(context.buffer) <= 6
    assert [item.id for item in tracker.context.buffer] == [f"obs-{n}" for n in range(15, 21)]


def test_app_switch_records_description_and_time(obs):
    tracker = ImmediateContextTracker()
    tracker.update(obs(0, "Excel", "Budget.xlsx"))
    context = tracker.update(obs(10, "SAP", "Vendor master"))

    assert context.current_app == "SAP"
    assert context.last_change_description == "switched from Excel to SAP"
    assert context.last_app_switch_time == at(10)
    assert tracker.last_update_changed


def test_unchanged_observation_keeps_previous_description(obs):
    tracker = ImmediateContextTracker()
    tracker.update(obs(0, "Excel", "Budget.xlsx"))
    tracker.update(obs(10, "SAP", "Vendor master"))
    context = tracker.update(obs(20, "SAP", "Vendor master"))

    assert context.last_change_description == "switched from Excel to SAP"
    assert context.last_app_switch_time == at(10)
    assert not tracker.last_update_changed


def test_window_title_change_is_described_only_when_meaningful(obs):
    first = obs(0, "Excel", "Budget.xlsx")
    assert describe_change(first, obs(10, "Excel", "Budget.xlsx - Saved")) is None
    assert describe_change(first, obs(20, "Excel", "Invoices Q3.xlsx")) == "window changed to: Invoices Q3.xlsx"
    assert describe_change(None, first) is None


def test_format_state_reports_seconds_since_switch(obs):
    tracker = ImmediateContextTracker()
    tracker.update(obs(0, "Excel", "Budget.xlsx"))
    tracker.update(obs(10, "Chrome", "Exchange rates"))

    state = tracker.format_state(at(40))
    assert "Current app: Chrome" in state
    assert "Recent change: switched from Excel to Chrome" in state
    assert "Last app switch: 30s ago" in state


def test_reset_starts_fresh(obs):
    tracker = ImmediateContextTracker(capacity=3)
    tracker.update(obs(0, "Excel"))
    tracker.reset()
    assert tracker.context.latest is None
    assert tracker.context.capacity == 3
    assert tracker.format_state() == "No immediate context available."
