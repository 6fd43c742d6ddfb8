"""Log book and analytics computations over logs, summaries and CMS data."""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .models import ClassSession, LogEntry, Syllabus, TestResult, WeeklySummary, parse_clock
from .subjects import CATEGORY_ORDER, SUBJECTS, category_for
from .weeks import elapsed_days_in_week

DEFAULT_EXAM_MONTH = 8
DEFAULT_EXAM_DAY = 10


def format_duration(minutes: int) -> str:
    if minutes < 1:
        return "0m"
    if minutes < 60:
        return f"{minutes}m"
    hours, rest = divmod(minutes, 60)
    return f"{hours}h {rest}m" if rest else f"{hours}h"


def current_week_total(logs: Iterable[LogEntry]) -> int:
    return sum(entry.duration_minutes for entry in logs)


def category_totals(logs: Iterable[LogEntry]) -> Dict[str, int]:
    """Minutes per category for the current week, in display order."""
    totals: Dict[str, int] = defaultdict(int)
    for entry in logs:
        totals[category_for(entry.subject_tag)] += entry.duration_minutes
    return {key: totals[key] for key in CATEGORY_ORDER if key in totals}


def historical_daily_averages(
    summaries: Iterable[WeeklySummary], logs: Iterable[LogEntry], today: date
) -> Dict[str, float]:
    """Average minutes per day per category across past weeks and this week.

    Each summarized week covers seven days; the running week covers the days
    elapsed so far.
    """
    totals: Dict[str, float] = defaultdict(float)
    covered_days = 0
    for summary in summaries:
        covered_days += 7
        for tag, per_day in summary.subject_averages.items():
            totals[category_for(tag)] += per_day * 7

    covered_days += elapsed_days_in_week(today)
    for entry in logs:
        totals[category_for(entry.subject_tag)] += entry.duration_minutes

    return {key: round(totals[key] / covered_days, 1) for key in CATEGORY_ORDER if key in totals}


@dataclass
class CategoryGroup:
    category: str
    total_minutes: int
    entries: List[LogEntry] = field(default_factory=list)


@dataclass
class LogBookDay:
    date: date
    total_minutes: int
    categories: List[CategoryGroup] = field(default_factory=list)


def log_book(logs: Iterable[LogEntry]) -> List[LogBookDay]:
    """Group logs by date (newest first), then by category in display order."""
    by_date: Dict[date, List[LogEntry]] = defaultdict(list)
    for entry in logs:
        by_date[entry.date].append(entry)

    days: List[LogBookDay] = []
    for day in sorted(by_date, reverse=True):
        by_category: Dict[str, List[LogEntry]] = defaultdict(list)
        for entry in sorted(by_date[day], key=lambda e: e.start_time):
            by_category[category_for(entry.subject_tag)].append(entry)
        groups = [
            CategoryGroup(key, sum(e.duration_minutes for e in by_category[key]), by_category[key])
            for key in CATEGORY_ORDER
            if key in by_category
        ]
        days.append(LogBookDay(day, sum(g.total_minutes for g in groups), groups))
    return days


def top_subjects(summary: WeeklySummary, n: int = 3) -> List[Tuple[str, int]]:
    ranked = sorted(summary.subject_averages.items(), key=lambda item: item[1], reverse=True)
    return ranked[:n]


def syllabus_progress(syllabus: Optional[Syllabus]) -> int:
    """Percentage of tute/past-paper checkmarks completed."""
    if syllabus is None:
        return 0
    total = 0
    completed = 0
    for unit in syllabus.units:
        for sub in unit.subunits:
            for flag in (sub.tute_done, sub.past_done):
                if flag is None:
                    continue
                total += 1
                completed += 1 if flag else 0
    if total == 0:
        return 0
    return int(completed / total * 100 + 0.5)


def subject_progress(syllabi: Sequence[Syllabus]) -> Dict[str, int]:
    return {s.subject_id: syllabus_progress(s) for s in syllabi}


def average_scores(tests: Iterable[TestResult]) -> Dict[str, float]:
    """Mean percentage score per academic subject that has tests."""
    scores: Dict[str, List[float]] = defaultdict(list)
    for test in tests:
        scores[test.subject_id].append(test.percent)
    return {
        subject.id: round(sum(scores[subject.id]) / len(scores[subject.id]), 1)
        for subject in SUBJECTS
        if scores.get(subject.id)
    }


def classes_remaining(classes: Iterable[ClassSession], now: datetime) -> List[ClassSession]:
    """Today's classes whose end time has not passed yet."""
    weekday = (now.weekday() + 1) % 7
    remaining = []
    for session in classes:
        if session.weekday != weekday:
            continue
        end = parse_clock(session.end)
        if now.time() < end.time():
            remaining.append(session)
    return sorted(remaining, key=lambda s: s.start)


def exam_countdown(
    today: date, exam_month: int = DEFAULT_EXAM_MONTH, exam_day: int = DEFAULT_EXAM_DAY
) -> Tuple[int, int]:
    """Whole months and remaining days until the next exam date."""
    exam = date(today.year, exam_month, exam_day)
    if today > exam:
        exam = date(today.year + 1, exam_month, exam_day)
    months = (exam.year - today.year) * 12 + (exam.month - today.month)
    days = exam.day - today.day
    if days < 0:
        months -= 1
        # Borrow the length of the month before the exam month.
        prev_month_end = date(exam.year, exam.month, 1).toordinal() - 1
        days += date.fromordinal(prev_month_end).day
    return months, days
