"""Data models for the study planner application."""
from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Any, Dict, List, Optional

CLOCK_FORMAT = "%H:%M"


class InvalidIntervalError(ValueError):
    """Raised when a start/end time pair cannot produce a log entry."""


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


def parse_clock(value: Optional[str]) -> datetime:
    if not value:
        raise InvalidIntervalError("Both start and end times are required.")
    try:
        return datetime.strptime(value.strip(), CLOCK_FORMAT)
    except ValueError as exc:
        raise InvalidIntervalError(f"Invalid time {value!r}; expected HH:MM.") from exc


def interval_minutes(start_time: Optional[str], end_time: Optional[str]) -> int:
    """Validate an HH:MM interval and return its length in whole minutes."""
    start = parse_clock(start_time)
    end = parse_clock(end_time)
    if end <= start:
        raise InvalidIntervalError("End time must be after start time.")
    return round_half_up((end - start).total_seconds() / 60.0)


def _as_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


@dataclass
class TaskItem:
    """A single to-do item on the current day."""

    id: str
    title: str
    subject_tag: str = "personal"
    note: str = ""
    done: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TaskItem":
        tag = data.get("subjectTag", data.get("subjectId")) or "personal"
        return cls(
            id=str(data["id"]),
            title=str(data["title"]),
            subject_tag=str(tag),
            note=data.get("note") or "",
            done=bool(data.get("done", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "subjectTag": self.subject_tag,
            "note": self.note,
            "done": self.done,
        }


@dataclass
class Day:
    """The current date's container for task items."""

    date: date
    items: List[TaskItem] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Day":
        return cls(
            date=_as_date(data["date"]),
            items=[TaskItem.from_dict(item) for item in data.get("items") or []],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"date": self.date.isoformat(), "items": [item.to_dict() for item in self.items]}

    def find(self, task_id: str) -> TaskItem:
        for item in self.items:
            if item.id == task_id:
                return item
        raise KeyError(task_id)

    def unfinished(self) -> List[TaskItem]:
        return [replace(item) for item in self.items if not item.done]


@dataclass(frozen=True)
class LogEntry:
    """Immutable record of a completed, timed activity."""

    id: str
    date: date
    task_id: str
    task_title: str
    subject_tag: str
    start_time: str
    end_time: str
    duration_minutes: int

    @classmethod
    def create(
        cls,
        log_id: str,
        entry_date: date,
        task: TaskItem,
        start_time: str,
        end_time: str,
    ) -> "LogEntry":
        """Build a log entry for ``task``; raises ``InvalidIntervalError``."""
        minutes = interval_minutes(start_time, end_time)
        return cls(
            id=log_id,
            date=entry_date,
            task_id=task.id,
            task_title=task.title,
            subject_tag=task.subject_tag,
            start_time=start_time.strip(),
            end_time=end_time.strip(),
            duration_minutes=minutes,
        )

    def with_interval(self, start_time: str, end_time: str) -> "LogEntry":
        minutes = interval_minutes(start_time, end_time)
        return replace(
            self, start_time=start_time.strip(), end_time=end_time.strip(), duration_minutes=minutes
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LogEntry":
        duration = int(data["durationMinutes"])
        if duration < 0:
            raise ValueError(f"Negative duration in log {data.get('id')}")
        return cls(
            id=str(data["id"]),
            date=_as_date(data["date"]),
            task_id=str(data.get("taskId", data.get("todoItemId", ""))),
            task_title=str(data.get("taskTitle", data.get("todoItemTitle", ""))),
            subject_tag=str(data.get("subjectTag", data.get("subjectId")) or "personal"),
            start_time=str(data.get("startTime", "")),
            end_time=str(data.get("endTime", "")),
            duration_minutes=duration,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "taskId": self.task_id,
            "taskTitle": self.task_title,
            "subjectTag": self.subject_tag,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "durationMinutes": self.duration_minutes,
        }


@dataclass(frozen=True)
class WeeklySummary:
    """Aggregate of one past week's log entries, keyed by its Sunday."""

    week_of: date
    total_minutes: int
    average_minutes_per_day: int
    subject_averages: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WeeklySummary":
        averages = data.get("subjectAverages") or {}
        if not isinstance(averages, dict):
            raise TypeError("subjectAverages must be a mapping")
        return cls(
            week_of=_as_date(data["weekOf"]),
            total_minutes=int(data["totalMinutes"]),
            average_minutes_per_day=int(data["averageMinutesPerDay"]),
            subject_averages={str(k): int(v) for k, v in averages.items()},
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "weekOf": self.week_of.isoformat(),
            "totalMinutes": self.total_minutes,
            "averageMinutesPerDay": self.average_minutes_per_day,
            "subjectAverages": dict(self.subject_averages),
        }


@dataclass
class Subunit:
    id: str
    name: str
    sinhala_name: str = ""
    tute_done: Optional[bool] = None
    past_done: Optional[bool] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Subunit":
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            sinhala_name=data.get("sinhala_name") or "",
            tute_done=data.get("tuteDone"),
            past_done=data.get("pastDone"),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, "name": self.name, "sinhala_name": self.sinhala_name}
        if self.tute_done is not None:
            data["tuteDone"] = self.tute_done
        if self.past_done is not None:
            data["pastDone"] = self.past_done
        return data


@dataclass
class Unit:
    id: str
    name: str
    sinhala_name: str = ""
    subunits: List[Subunit] = field(default_factory=list)
    status: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Unit":
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            sinhala_name=data.get("sinhala_name") or "",
            subunits=[Subunit.from_dict(s) for s in data.get("subunits") or []],
            status=data.get("status"),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "sinhala_name": self.sinhala_name,
            "subunits": [s.to_dict() for s in self.subunits],
        }
        if self.status is not None:
            data["status"] = self.status
        return data


@dataclass
class Syllabus:
    """Syllabus tree for one subject (or the applied half of Combined Maths)."""

    subject_id: str
    units: List[Unit] = field(default_factory=list)
    combined_mode: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Syllabus":
        return cls(
            subject_id=str(data["subjectId"]),
            units=[Unit.from_dict(u) for u in data.get("units") or []],
            combined_mode=data.get("combinedMode"),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"subjectId": self.subject_id, "units": [u.to_dict() for u in self.units]}
        if self.combined_mode is not None:
            data["combinedMode"] = self.combined_mode
        return data


@dataclass
class TestResult:
    """A scored test paper."""

    __test__ = False  # not a pytest class

    id: str
    name: str
    subject_id: str
    date: date
    score: float
    total: float

    @property
    def percent(self) -> float:
        return (self.score / self.total * 100.0) if self.total else 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TestResult":
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            subject_id=str(data["subjectId"]),
            date=_as_date(data["date"]),
            score=float(data["score"]),
            total=float(data["total"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "subjectId": self.subject_id,
            "date": self.date.isoformat(),
            "score": self.score,
            "total": self.total,
        }


@dataclass
class ClassSession:
    """A recurring weekly class; ``weekday`` counts from Sunday = 0."""

    id: str
    name: str
    weekday: int
    start: str
    end: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClassSession":
        weekday = int(data["weekday"])
        if not 0 <= weekday <= 6:
            raise ValueError(f"weekday out of range: {weekday}")
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            weekday=weekday,
            start=str(data["start"]),
            end=str(data["end"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "weekday": self.weekday, "start": self.start, "end": self.end}
