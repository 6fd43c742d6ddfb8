"""In-memory collection stores, each paired with a full-collection write."""
from __future__ import annotations

import logging
from datetime import date
from typing import Callable, Dict, Generic, Iterable, List, Optional, TypeVar

from . import baseline
from .models import ClassSession, Day, LogEntry, Syllabus, TestResult, WeeklySummary
from .storage import (
    CLASSES,
    LOGS,
    SYLLABUS,
    TESTS,
    TODAY_TODOS,
    WEEKLY_SUMMARIES,
    CollectionGateway,
)

LOGGER = logging.getLogger(__name__)

R = TypeVar("R")


def _parse_list(factory: Callable[[dict], R]) -> Callable[[object], List[R]]:
    def parse(data: object) -> List[R]:
        if not isinstance(data, list):
            raise TypeError(f"expected a list, found {type(data).__name__}")
        return [factory(row) for row in data]

    return parse


def _encode_list(records: List) -> List[dict]:
    return [record.to_dict() for record in records]


class RecordStore(Generic[R]):
    """Flat list of records persisted as one collection.

    Records are never edited in place; changes go through ``append`` or
    ``replace_all``.
    """

    collection = ""
    factory: Callable[[dict], R]
    seed: Callable[[], List[R]]

    def __init__(self, gateway: CollectionGateway, records: Optional[Iterable[R]] = None) -> None:
        self.gateway = gateway
        self._records: List[R] = list(records or [])
        self.last_save_ok = True

    @classmethod
    def load(cls, gateway: CollectionGateway):
        records = gateway.load(cls.collection, _parse_list(cls.factory), cls.seed, _encode_list)
        store = cls(gateway, records or [])
        LOGGER.debug("Loaded %s %s records", len(store), cls.collection)
        return store

    def __len__(self) -> int:
        return len(self._records)

    def all(self) -> List[R]:
        return list(self._records)

    def append(self, records: Iterable[R]) -> bool:
        self._records.extend(records)
        return self._persist()

    def replace_all(self, records: Iterable[R]) -> bool:
        self._records = list(records)
        return self._persist()

    def restore(self, records: Iterable[R]) -> None:
        """Put ``records`` back in memory without writing them."""
        self._records = list(records)

    def _persist(self) -> bool:
        self.last_save_ok = self.gateway.save(self.collection, _encode_list(self._records))
        return self.last_save_ok


class LogStore(RecordStore[LogEntry]):
    collection = LOGS
    factory = staticmethod(LogEntry.from_dict)
    seed = staticmethod(baseline.baseline_logs)

    def get(self, log_id: str) -> LogEntry:
        for entry in self._records:
            if entry.id == log_id:
                return entry
        raise KeyError(log_id)

    def entries_for(self, task_id: str, day: date) -> List[LogEntry]:
        return [e for e in self._records if e.task_id == task_id and e.date == day]

    def has_entry(self, task_id: str, day: date) -> bool:
        return bool(self.entries_for(task_id, day))


class WeeklySummaryStore(RecordStore[WeeklySummary]):
    collection = WEEKLY_SUMMARIES
    factory = staticmethod(WeeklySummary.from_dict)
    seed = staticmethod(baseline.baseline_weekly_summaries)

    def by_week(self) -> Dict[date, WeeklySummary]:
        return {summary.week_of: summary for summary in self._records}

    def upsert(self, summaries: Iterable[WeeklySummary]) -> bool:
        """Replace summaries that share a ``week_of`` and append the rest."""
        merged = self.by_week()
        for summary in summaries:
            if summary.week_of in merged:
                LOGGER.info("Replacing weekly summary for %s", summary.week_of)
            merged[summary.week_of] = summary
        return self.replace_all(merged.values())


class SyllabusStore(RecordStore[Syllabus]):
    collection = SYLLABUS
    factory = staticmethod(Syllabus.from_dict)
    seed = staticmethod(baseline.baseline_syllabus)


class TestStore(RecordStore[TestResult]):
    __test__ = False

    collection = TESTS
    factory = staticmethod(TestResult.from_dict)
    seed = staticmethod(baseline.baseline_tests)


class ClassStore(RecordStore[ClassSession]):
    collection = CLASSES
    factory = staticmethod(ClassSession.from_dict)
    seed = staticmethod(baseline.baseline_classes)


class DailyTaskStore:
    """Owns the single persisted "current day" record."""

    def __init__(self, gateway: CollectionGateway, day: Optional[Day] = None) -> None:
        self.gateway = gateway
        self.day = day

    @classmethod
    def load(cls, gateway: CollectionGateway) -> "DailyTaskStore":
        day = gateway.load(TODAY_TODOS, Day.from_dict, baseline.baseline_day, lambda d: d.to_dict())
        return cls(gateway, day)

    def save(self, day: Day) -> bool:
        self.day = day
        return self.gateway.save(TODAY_TODOS, day.to_dict())
