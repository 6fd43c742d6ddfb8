"""Controllers orchestrating storage, rollup, day rollover and task completion."""
from __future__ import annotations

import logging
import tomllib
import uuid
from dataclasses import dataclass, replace
from datetime import date, datetime, time, timedelta
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Dict, Iterable, List, Optional

from . import __version__, analytics
from .models import (
    CLOCK_FORMAT,
    ClassSession,
    Day,
    InvalidIntervalError,
    LogEntry,
    Subunit,
    Syllabus,
    TaskItem,
    TestResult,
    WeeklySummary,
)
from .rollup import RollupEngine, RollupResult
from .storage import CollectionGateway, SQLiteBlobStore
from .stores import ClassStore, DailyTaskStore, LogStore, SyllabusStore, TestStore, WeeklySummaryStore
from .subjects import normalize_tag
from .timers import FocusSession, FocusSessionManager

if TYPE_CHECKING:
    from reports.excel_export import ExcelExporter

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], datetime]

LAST_MINUTE = time(23, 59)

SUBUNIT_FLAGS = {"tuteDone": "tute_done", "pastDone": "past_done"}

CONFIG_DIR = Path.home() / ".study_planner"
DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "default_config.toml"


@dataclass
class AppConfig:
    storage_backend: str = "sqlite"
    data_path: str = str(CONFIG_DIR / "planner.db")
    firestore_collection: str = "study_planner"
    firebase_credentials: str = ""
    export_path: str = "logbook.xlsx"
    focus_minutes: int = 45
    exam_month: int = analytics.DEFAULT_EXAM_MONTH
    exam_day: int = analytics.DEFAULT_EXAM_DAY

    @classmethod
    def from_toml(cls, data: dict) -> "AppConfig":
        defaults = cls()
        backend = str(data.get("storage_backend", defaults.storage_backend)).lower()
        if backend not in ("sqlite", "firestore", "memory"):
            LOGGER.warning("Unknown storage backend %r; using sqlite", backend)
            backend = "sqlite"
        try:
            focus_minutes = int(data.get("focus_minutes", defaults.focus_minutes))
        except (TypeError, ValueError):
            focus_minutes = defaults.focus_minutes
        return cls(
            storage_backend=backend,
            data_path=str(data.get("data_path") or defaults.data_path),
            firestore_collection=data.get("firestore_collection", defaults.firestore_collection),
            firebase_credentials=data.get("firebase_credentials", ""),
            export_path=data.get("export_path", defaults.export_path),
            focus_minutes=max(1, focus_minutes),
            exam_month=int(data.get("exam_month", defaults.exam_month)),
            exam_day=int(data.get("exam_day", defaults.exam_day)),
        )

    def to_toml(self) -> str:
        lines = [
            f"storage_backend = \"{self.storage_backend}\"",
            f"data_path = \"{self.data_path}\"",
            f"firestore_collection = \"{self.firestore_collection}\"",
            f"firebase_credentials = \"{self.firebase_credentials}\"",
            f"export_path = \"{self.export_path}\"",
            f"focus_minutes = {self.focus_minutes}",
            f"exam_month = {self.exam_month}",
            f"exam_day = {self.exam_day}",
        ]
        return "\n".join(lines) + "\n"


class ConfigManager:
    def __init__(self, config_dir: Optional[Path] = None) -> None:
        self.config_dir = Path(config_dir) if config_dir else CONFIG_DIR
        self.config_file = self.config_dir / "config.toml"
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.config = self._load()

    def _load(self) -> AppConfig:
        if self.config_file.exists():
            with open(self.config_file, "rb") as fh:
                return AppConfig.from_toml(tomllib.load(fh))
        with open(DEFAULT_CONFIG_PATH, "rb") as fh:
            config = AppConfig.from_toml(tomllib.load(fh))
        self.save(config)
        return config

    def save(self, config: Optional[AppConfig] = None) -> None:
        cfg = config or self.config
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.config_file.write_text(cfg.to_toml(), encoding="utf-8")
        LOGGER.info("Saved configuration to %s", self.config_file)


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def _find(records, attr: str, value: str):
    for record in records:
        if getattr(record, attr) == value:
            return record
    raise KeyError(value)


@dataclass
class PendingCompletion:
    """A toggle waiting for the user to supply a start/end interval."""

    task_id: str
    date: date


@dataclass
class PlannerState:
    """Single state handle shared by the rollup, rollover and completion controllers."""

    gateway: CollectionGateway
    tasks: DailyTaskStore
    logs: LogStore
    summaries: WeeklySummaryStore
    syllabus: SyllabusStore
    tests: TestStore
    classes: ClassStore
    pending: Optional[PendingCompletion] = None

    @classmethod
    def load(cls, gateway: CollectionGateway) -> "PlannerState":
        return cls(
            gateway=gateway,
            tasks=DailyTaskStore.load(gateway),
            logs=LogStore.load(gateway),
            summaries=WeeklySummaryStore.load(gateway),
            syllabus=SyllabusStore.load(gateway),
            tests=TestStore.load(gateway),
            classes=ClassStore.load(gateway),
        )

    @property
    def day(self) -> Day:
        if self.tasks.day is None:
            raise RuntimeError("No current day; run day rollover first")
        return self.tasks.day


class DayRolloverController:
    """Replace a stale day with today's, carrying unfinished tasks forward."""

    def __init__(self, state: PlannerState, clock: Clock = datetime.now) -> None:
        self.state = state
        self.clock = clock

    def ensure_current_day(self) -> Day:
        today = self.clock().date()
        previous = self.state.tasks.day
        if previous is not None and previous.date == today:
            return previous

        carried = previous.unfinished() if previous is not None else []
        new_day = Day(date=today, items=carried)
        self.state.pending = None
        self.state.tasks.save(new_day)
        if previous is None:
            LOGGER.info("Started first day %s", today)
        else:
            LOGGER.info(
                "Rolled day %s over to %s carrying %s of %s tasks",
                previous.date,
                today,
                len(carried),
                len(previous.items),
            )
        return new_day


class ToggleOutcome(str, Enum):
    COMPLETED = "completed"
    REOPENED = "reopened"
    NEEDS_INTERVAL = "needs_interval"


class TaskCompletionController:
    """Mark tasks done only once a log entry exists for them on the current day."""

    def __init__(
        self,
        state: PlannerState,
        id_factory: Callable[[str], str] = new_id,
    ) -> None:
        self.state = state
        self.id_factory = id_factory

    @property
    def pending(self) -> Optional[PendingCompletion]:
        return self.state.pending

    def toggle(self, task_id: str) -> ToggleOutcome:
        day = self.state.day
        task = day.find(task_id)
        if task.done:
            task.done = False
            self.state.tasks.save(day)
            LOGGER.info("Task %s reopened", task_id)
            return ToggleOutcome.REOPENED

        if self.state.logs.has_entry(task_id, day.date):
            task.done = True
            self.state.tasks.save(day)
            LOGGER.info("Task %s completed using an existing log entry", task_id)
            return ToggleOutcome.COMPLETED

        self.state.pending = PendingCompletion(task_id=task_id, date=day.date)
        LOGGER.debug("Task %s needs a logged interval before completion", task_id)
        return ToggleOutcome.NEEDS_INTERVAL

    def submit_interval(self, task_id: str, start_time: str, end_time: str) -> LogEntry:
        """Log ``start_time``-``end_time`` for the task and mark it done.

        Raises ``InvalidIntervalError`` without changing anything when the
        interval is missing or not strictly increasing.
        """
        day = self.state.day
        task = day.find(task_id)
        entry = LogEntry.create(self.id_factory("log"), day.date, task, start_time, end_time)
        self._complete_with(task, entry)
        return entry

    def cancel_pending(self) -> None:
        if self.state.pending is not None:
            LOGGER.debug("Abandoned pending completion for %s", self.state.pending.task_id)
        self.state.pending = None

    def log_focus_session(self, task_id: str, started_at: datetime, ended_at: datetime) -> LogEntry:
        """Log a finished focus session for the task and mark it done.

        The start is floored and the end ceiled to whole minutes, so even a
        short session spans at least one minute. A session running past
        midnight is capped at 23:59 on its start date.
        """
        day = self.state.day
        task = day.find(task_id)
        if ended_at < started_at:
            raise InvalidIntervalError("Focus session ended before it started.")
        start = started_at.replace(second=0, microsecond=0)
        end = ended_at.replace(second=0, microsecond=0)
        if end < ended_at or end == start:
            end += timedelta(minutes=1)
        if end.date() != start.date():
            LOGGER.warning("Focus session for %s crossed midnight; capping it at 23:59", task_id)
            end = datetime.combine(start.date(), LAST_MINUTE, tzinfo=start.tzinfo)
        entry = LogEntry.create(
            self.id_factory("log-focus"),
            day.date,
            task,
            start.strftime(CLOCK_FORMAT),
            end.strftime(CLOCK_FORMAT),
        )
        self._complete_with(task, entry)
        return entry

    def _complete_with(self, task: TaskItem, entry: LogEntry) -> None:
        self.state.logs.append([entry])
        task.done = True
        self.state.tasks.save(self.state.day)
        if self.state.pending is not None and self.state.pending.task_id == task.id:
            self.state.pending = None
        LOGGER.info("Logged %s minutes for task %s and marked it done", entry.duration_minutes, task.id)


class AppController:
    def __init__(
        self,
        gateway: CollectionGateway,
        config: Optional[AppConfig] = None,
        exporter: Optional["ExcelExporter"] = None,
        clock: Clock = datetime.now,
        focus: Optional[FocusSessionManager] = None,
    ) -> None:
        self.gateway = gateway
        self.config = config or AppConfig()
        self.exporter = exporter
        self.clock = clock
        self.focus = focus or FocusSessionManager()
        self.state: Optional[PlannerState] = None
        self.rollover: Optional[DayRolloverController] = None
        self.completion: Optional[TaskCompletionController] = None
        self.last_rollup: RollupResult = RollupResult()

    # Session lifecycle
    def start_session(self) -> Day:
        LOGGER.info("Study Planner v%s session starting", __version__)
        self.state = PlannerState.load(self.gateway)
        self.last_rollup = RollupEngine(self.state.logs, self.state.summaries, clock=self.clock).run()
        self.rollover = DayRolloverController(self.state, clock=self.clock)
        self.completion = TaskCompletionController(self.state)
        return self.rollover.ensure_current_day()

    def _require_state(self) -> PlannerState:
        if self.state is None or self.rollover is None:
            raise RuntimeError("Session not started; call start_session() first")
        return self.state

    def ensure_current_day(self) -> Day:
        self._require_state()
        assert self.rollover is not None
        return self.rollover.ensure_current_day()

    @property
    def today(self) -> Day:
        return self.ensure_current_day()

    def _completion(self) -> TaskCompletionController:
        self.ensure_current_day()
        assert self.completion is not None
        return self.completion

    # Task management
    def add_tasks(self, drafts: Iterable[Dict[str, str]]) -> List[TaskItem]:
        day = self.today
        added = [
            TaskItem(
                id=new_id("task"),
                title=(draft.get("title") or "").strip() or "Untitled Task",
                subject_tag=normalize_tag(draft.get("subjectTag") or draft.get("subjectId")),
                note=draft.get("note") or "",
            )
            for draft in drafts
        ]
        day.items.extend(added)
        self._require_state().tasks.save(day)
        LOGGER.info("Added %s tasks", len(added))
        return added

    def remove_task(self, task_id: str) -> None:
        day = self.today
        task = day.find(task_id)
        day.items.remove(task)
        self._require_state().tasks.save(day)

    def toggle_task(self, task_id: str) -> ToggleOutcome:
        return self._completion().toggle(task_id)

    def submit_log_interval(self, task_id: str, start_time: str, end_time: str) -> LogEntry:
        return self._completion().submit_interval(task_id, start_time, end_time)

    def cancel_pending(self) -> None:
        self._completion().cancel_pending()

    def start_focus(
        self,
        task_id: str,
        duration_minutes: Optional[float] = None,
        on_tick: Callable[[float], None] | None = None,
    ) -> FocusSession:
        self.today.find(task_id)
        minutes = duration_minutes if duration_minutes is not None else self.config.focus_minutes

        def _on_complete(started_at: datetime, ended_at: datetime) -> None:
            assert self.completion is not None
            self.completion.log_focus_session(task_id, started_at, ended_at)

        return self.focus.start(task_id, minutes, on_complete=_on_complete, on_tick=on_tick)

    def cancel_focus(self, task_id: str) -> None:
        self.focus.cancel(task_id)

    # Log book
    def current_week_logs(self) -> List[LogEntry]:
        return self._require_state().logs.all()

    def task_logs(self, task_id: str, on: Optional[date] = None) -> List[LogEntry]:
        """Log entries for ``task_id`` on ``on`` (today by default)."""
        day = on or self.today.date
        return self._require_state().logs.entries_for(task_id, day)

    def weekly_summaries(self) -> List[WeeklySummary]:
        return sorted(self._require_state().summaries.all(), key=lambda s: s.week_of, reverse=True)

    def edit_log(self, log_id: str, start_time: str, end_time: str) -> LogEntry:
        logs = self._require_state().logs
        updated = logs.get(log_id).with_interval(start_time, end_time)
        logs.replace_all(updated if entry.id == log_id else entry for entry in logs.all())
        LOGGER.info("Updated log %s to %s-%s", log_id, start_time, end_time)
        return updated

    def delete_log(self, log_id: str) -> None:
        logs = self._require_state().logs
        logs.get(log_id)
        logs.replace_all(entry for entry in logs.all() if entry.id != log_id)
        LOGGER.info("Deleted log %s", log_id)

    # CMS-managed collections
    def syllabi(self) -> List[Syllabus]:
        return self._require_state().syllabus.all()

    def replace_syllabus(self, syllabi: Iterable[Syllabus]) -> None:
        self._require_state().syllabus.replace_all(syllabi)

    def set_subunit_flag(self, subject_id: str, unit_id: str, subunit_id: str, field: str, value: bool) -> Subunit:
        """Tick or untick the tute or past-paper checkmark of one subunit.

        ``field`` is ``tuteDone``/``pastDone`` (or the attribute names).
        Unknown subject, unit or subunit ids raise ``KeyError``.
        """
        attr = SUBUNIT_FLAGS.get(field, field)
        if attr not in SUBUNIT_FLAGS.values():
            raise ValueError(f"Unknown subunit flag: {field}")
        store = self._require_state().syllabus
        syllabi = store.all()
        syllabus = _find(syllabi, "subject_id", subject_id)
        unit = _find(syllabus.units, "id", unit_id)
        subunit = _find(unit.subunits, "id", subunit_id)

        ticked = replace(subunit, **{attr: bool(value)})
        new_unit = replace(unit, subunits=[ticked if s is subunit else s for s in unit.subunits])
        new_syllabus = replace(syllabus, units=[new_unit if u is unit else u for u in syllabus.units])
        store.replace_all(new_syllabus if s is syllabus else s for s in syllabi)
        LOGGER.info("Set %s of %s/%s/%s to %s", attr, subject_id, unit_id, subunit_id, bool(value))
        return ticked

    def tests(self) -> List[TestResult]:
        return self._require_state().tests.all()

    def replace_tests(self, tests: Iterable[TestResult]) -> None:
        self._require_state().tests.replace_all(tests)

    def classes(self) -> List[ClassSession]:
        return self._require_state().classes.all()

    def replace_classes(self, classes: Iterable[ClassSession]) -> None:
        self._require_state().classes.replace_all(classes)

    # Analytics
    def get_week_overview(self) -> Dict[str, object]:
        logs = self.current_week_logs()
        now = self.clock()
        return {
            "total_minutes": analytics.current_week_total(logs),
            "categories": analytics.category_totals(logs),
            "daily_averages": analytics.historical_daily_averages(
                self._require_state().summaries.all(), logs, now.date()
            ),
            "log_book": analytics.log_book(logs),
            "classes_remaining": analytics.classes_remaining(self.classes(), now),
            "average_scores": analytics.average_scores(self.tests()),
            "exam_countdown": analytics.exam_countdown(
                now.date(), self.config.exam_month, self.config.exam_day
            ),
        }

    def insight_payload(self, mode: str) -> Dict[str, object]:
        """Data slice handed to the text-generation collaborator for ``mode``."""
        if mode == "marks":
            return {"tests": [t.to_dict() for t in self.tests()]}
        if mode == "syllabus":
            return {"progressData": analytics.subject_progress(self.syllabi())}
        if mode == "logs":
            return {
                "logs": [e.to_dict() for e in self.current_week_logs()],
                "weeklySummaries": [s.to_dict() for s in self.weekly_summaries()],
            }
        raise ValueError(f"Unknown insight mode: {mode}")

    # Export
    def export_to_excel(self) -> Path:
        if self.exporter is None:
            raise RuntimeError("No exporter configured")
        return self.exporter.export(self.current_week_logs(), self.weekly_summaries())

    def backup(self) -> Path:
        backend = self.gateway.backend
        if not isinstance(backend, SQLiteBlobStore):
            raise RuntimeError("Backups are only supported for the sqlite backend")
        return backend.backup_database()
