import itertools
from datetime import datetime

import pytest

from planner_app.planner.controllers import (
    DayRolloverController,
    PlannerState,
    TaskCompletionController,
    ToggleOutcome,
)
from planner_app.planner.models import InvalidIntervalError
from planner_app.planner.storage import LOGS, TODAY_TODOS, CollectionGateway, MemoryBlobStore

from conftest import FixedClock, make_day, make_log


def _setup(logs=None):
    items = [
        {"id": "t1", "title": "Kinematics", "subjectTag": "physics"},
        {"id": "t2", "title": "Run", "subjectTag": "exercise"},
    ]
    backend = MemoryBlobStore({TODAY_TODOS: make_day("2024-01-17", items), LOGS: logs or []})
    state = PlannerState.load(CollectionGateway(backend))
    DayRolloverController(state, clock=FixedClock(datetime(2024, 1, 17, 9, 0))).ensure_current_day()
    counter = itertools.count(1)
    controller = TaskCompletionController(state, id_factory=lambda prefix: f"{prefix}-{next(counter)}")
    return backend, state, controller


def _assert_done_implies_log(state):
    for item in state.day.items:
        if item.done:
            assert state.logs.has_entry(item.id, state.day.date), item.id


def test_toggle_without_log_requests_interval():
    _, state, controller = _setup()
    assert controller.toggle("t1") is ToggleOutcome.NEEDS_INTERVAL
    assert state.day.find("t1").done is False
    assert controller.pending.task_id == "t1"
    assert state.logs.all() == []


def test_submit_interval_logs_and_completes():
    backend, state, controller = _setup()
    controller.toggle("t1")
    entry = controller.submit_interval("t1", "08:00", "09:15")

    assert entry.id == "log-1"
    assert entry.duration_minutes == 75
    assert entry.task_title == "Kinematics"
    assert entry.subject_tag == "physics"
    assert state.day.find("t1").done is True
    assert controller.pending is None
    assert backend.writes[LOGS] == 1
    _assert_done_implies_log(state)


def test_invalid_interval_is_rejected_without_mutation():
    backend, state, controller = _setup()
    writes_before = dict(backend.writes)
    controller.toggle("t1")
    with pytest.raises(InvalidIntervalError, match="End time must be after start time."):
        controller.submit_interval("t1", "10:00", "09:00")
    assert state.day.find("t1").done is False
    assert state.logs.all() == []
    assert backend.writes == writes_before


def test_existing_log_completes_directly():
    _, state, controller = _setup(logs=[make_log("focus", "2024-01-17", "physics", 45, task_id="t1")])
    assert controller.toggle("t1") is ToggleOutcome.COMPLETED
    assert state.day.find("t1").done is True


def test_log_from_another_day_does_not_count():
    _, state, controller = _setup(logs=[make_log("old", "2024-01-16", "physics", 45, task_id="t1")])
    assert controller.toggle("t1") is ToggleOutcome.NEEDS_INTERVAL
    assert state.day.find("t1").done is False


def test_reopen_keeps_history():
    _, state, controller = _setup()
    controller.submit_interval("t1", "08:00", "09:00")
    assert controller.toggle("t1") is ToggleOutcome.REOPENED
    assert state.day.find("t1").done is False
    assert len(state.logs.all()) == 1
    assert controller.toggle("t1") is ToggleOutcome.COMPLETED
    assert len(state.logs.all()) == 1


def test_cancel_pending_leaves_task_open():
    _, state, controller = _setup()
    controller.toggle("t2")
    controller.cancel_pending()
    assert controller.pending is None
    assert state.day.find("t2").done is False


def test_done_always_has_a_log_over_toggle_sequences():
    for sequence in itertools.product(["t1", "t2"], repeat=4):
        _, state, controller = _setup()
        for task_id in sequence:
            if controller.toggle(task_id) is ToggleOutcome.NEEDS_INTERVAL and task_id == "t2":
                controller.submit_interval(task_id, "17:00", "17:30")
            _assert_done_implies_log(state)


def test_focus_session_rounds_to_whole_minutes():
    _, state, controller = _setup()
    entry = controller.log_focus_session("t2", datetime(2024, 1, 17, 6, 0, 0), datetime(2024, 1, 17, 6, 0, 20))
    assert entry.duration_minutes == 1
    assert entry.start_time == "06:00"
    assert entry.end_time == "06:01"
    assert state.day.find("t2").done is True

    entry = controller.log_focus_session("t1", datetime(2024, 1, 17, 7, 0, 30), datetime(2024, 1, 17, 7, 44, 40))
    assert (entry.start_time, entry.end_time, entry.duration_minutes) == ("07:00", "07:45", 45)
    with pytest.raises(InvalidIntervalError):
        controller.log_focus_session("t1", datetime(2024, 1, 17, 8, 0), datetime(2024, 1, 17, 7, 0))


def test_focus_session_across_midnight_is_capped():
    _, state, controller = _setup()
    entry = controller.log_focus_session("t1", datetime(2024, 1, 17, 23, 30), datetime(2024, 1, 18, 0, 15))
    assert (entry.start_time, entry.end_time, entry.duration_minutes) == ("23:30", "23:59", 29)
    assert entry.end_time > entry.start_time
    assert str(entry.date) == "2024-01-17"

    edited = entry.with_interval(entry.start_time, entry.end_time)
    assert edited.duration_minutes == 29

    with pytest.raises(InvalidIntervalError):
        controller.log_focus_session("t2", datetime(2024, 1, 17, 23, 59, 30), datetime(2024, 1, 18, 0, 0, 10))
    assert state.day.find("t2").done is False
    assert not state.logs.has_entry("t2", state.day.date)


def test_unknown_task_raises_key_error():
    _, _, controller = _setup()
    with pytest.raises(KeyError):
        controller.toggle("missing")
    with pytest.raises(KeyError):
        controller.submit_interval("missing", "08:00", "09:00")
