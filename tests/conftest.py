import sys
from datetime import date, datetime
from pathlib import Path

import pytest

# Ensure planner packages are importable during tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from planner_app.planner.storage import CollectionGateway, MemoryBlobStore, PersistenceError  # noqa: E402


class FixedClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, value: datetime) -> None:
        self.now = value


def make_log(log_id, entry_date, tag, minutes, task_id="t1", start="09:00", end="10:00"):
    return {
        "id": log_id,
        "date": entry_date if isinstance(entry_date, str) else entry_date.isoformat(),
        "taskId": task_id,
        "taskTitle": f"Task {task_id}",
        "subjectTag": tag,
        "startTime": start,
        "endTime": end,
        "durationMinutes": minutes,
    }


def make_day(day, items):
    return {"date": day.isoformat() if isinstance(day, date) else day, "items": items}


@pytest.fixture
def memory_store():
    return MemoryBlobStore()


@pytest.fixture
def gateway(memory_store):
    return CollectionGateway(memory_store)


@pytest.fixture
def clock():
    # Wednesday
    return FixedClock(datetime(2024, 1, 17, 10, 30))


class FailingStore(MemoryBlobStore):
    """Memory store whose reads, or writes to the named collections, fail."""

    def __init__(self, initial=None, fail_get=False, fail_set=()):
        super().__init__(initial)
        self.fail_get = fail_get
        self.fail_set = set(fail_set)

    def get(self, collection):
        if self.fail_get:
            raise PersistenceError("offline")
        return super().get(collection)

    def set(self, collection, payload):
        if collection in self.fail_set:
            raise PersistenceError("offline")
        super().set(collection, payload)
