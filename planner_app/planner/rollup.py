"""Weekly rollup of past-week log entries into summary records.

On session start every log entry whose week began before the current week is
folded into a :class:`WeeklySummary` for its week and removed from the live
log collection. Averages always divide by seven, whatever the number of days
that actually had entries.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Dict, Iterable, List, Tuple

from .models import LogEntry, WeeklySummary, round_half_up
from .stores import LogStore, WeeklySummaryStore
from .subjects import canonical_tag
from .weeks import start_of_week

LOGGER = logging.getLogger(__name__)

DAYS_PER_WEEK = 7


@dataclass(frozen=True)
class RollupResult:
    summaries: List[WeeklySummary] = field(default_factory=list)
    kept: List[LogEntry] = field(default_factory=list)
    rolled_up: int = 0

    @property
    def changed(self) -> bool:
        return self.rolled_up > 0


def partition_logs(entries: Iterable[LogEntry], current_week_start: date) -> Tuple[List[LogEntry], List[LogEntry]]:
    """Split entries into (stale, fresh) relative to ``current_week_start``."""
    stale: List[LogEntry] = []
    fresh: List[LogEntry] = []
    for entry in entries:
        if start_of_week(entry.date) < current_week_start:
            stale.append(entry)
        else:
            fresh.append(entry)
    return stale, fresh


def summarize_week(week_of: date, entries: Iterable[LogEntry]) -> WeeklySummary:
    total = 0
    per_subject: Dict[str, int] = defaultdict(int)
    for entry in entries:
        total += entry.duration_minutes
        per_subject[canonical_tag(entry.subject_tag)] += entry.duration_minutes
    return WeeklySummary(
        week_of=week_of,
        total_minutes=total,
        average_minutes_per_day=round_half_up(total / DAYS_PER_WEEK),
        subject_averages={tag: round_half_up(minutes / DAYS_PER_WEEK) for tag, minutes in per_subject.items()},
    )


def summarize_stale(stale: Iterable[LogEntry]) -> List[WeeklySummary]:
    """One summary per week present in ``stale``, oldest week first."""
    weeks: Dict[date, List[LogEntry]] = defaultdict(list)
    for entry in stale:
        weeks[start_of_week(entry.date)].append(entry)
    return [summarize_week(week_of, weeks[week_of]) for week_of in sorted(weeks)]


class RollupEngine:
    """Fold stale log entries into weekly summaries and persist both stores."""

    def __init__(
        self,
        logs: LogStore,
        summaries: WeeklySummaryStore,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.logs = logs
        self.summaries = summaries
        self.clock = clock
        self._running = False

    def run(self) -> RollupResult:
        if self._running:
            raise RuntimeError("Rollup is already running")
        self._running = True
        try:
            return self._run()
        finally:
            self._running = False

    def _run(self) -> RollupResult:
        current_week_start = start_of_week(self.clock())
        stale, fresh = partition_logs(self.logs.all(), current_week_start)
        if not stale:
            LOGGER.debug("No logs older than %s; nothing to roll up", current_week_start)
            return RollupResult(kept=fresh)

        new_summaries = summarize_stale(stale)
        previous = self.summaries.all()
        # Summaries first, then logs; a rerun over the same weeks upserts.
        if not self.summaries.upsert(new_summaries):
            self.summaries.restore(previous)
            LOGGER.error("Weekly summaries were not persisted; leaving %s stale log entries in place", len(stale))
            return RollupResult(kept=self.logs.all())
        if not self.logs.replace_all(fresh):
            LOGGER.error("Log store was not persisted; stale entries remain in the backing store")
        LOGGER.info(
            "Rolled %s log entries into %s weekly summaries (%s entries kept)",
            len(stale),
            len(new_summaries),
            len(fresh),
        )
        return RollupResult(summaries=new_summaries, kept=fresh, rolled_up=len(stale))
