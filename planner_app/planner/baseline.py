"""Baseline data used to seed empty or unreadable collections."""
from __future__ import annotations

from typing import List, Optional

from .models import ClassSession, Day, LogEntry, Subunit, Syllabus, TestResult, Unit, WeeklySummary


def _unit(unit_id: str, name: str, subunits: List[str]) -> Unit:
    return Unit(
        id=unit_id,
        name=name,
        subunits=[
            Subunit(id=f"{unit_id}-{index}", name=title, tute_done=False, past_done=False)
            for index, title in enumerate(subunits, start=1)
        ],
        status="not-started",
    )


def baseline_syllabus() -> List[Syllabus]:
    return [
        Syllabus(
            subject_id="physics",
            units=[
                _unit("phy-1", "Measurement", ["Units and dimensions", "Measuring instruments"]),
                _unit("phy-2", "Mechanics", ["Kinematics", "Newton's laws", "Work, energy and power"]),
                _unit("phy-3", "Oscillations and Waves", ["Simple harmonic motion", "Sound waves"]),
            ],
        ),
        Syllabus(
            subject_id="chemistry",
            units=[
                _unit("chem-1", "Atomic Structure", ["Atomic models", "Electron configuration"]),
                _unit("chem-2", "Chemical Bonding", ["Ionic bonds", "Covalent bonds"]),
                _unit("chem-3", "Organic Chemistry", ["Hydrocarbons", "Functional groups"]),
            ],
        ),
        Syllabus(
            subject_id="combined",
            combined_mode="pure",
            units=[
                _unit("cm-1", "Functions", ["Real functions", "Inverse functions"]),
                _unit("cm-2", "Calculus", ["Limits", "Differentiation", "Integration"]),
            ],
        ),
        Syllabus(
            subject_id="combined-applied",
            combined_mode="applied",
            units=[_unit("cma-1", "Statics", ["Forces at a point", "Friction"])],
        ),
    ]


def baseline_tests() -> List[TestResult]:
    return []


def baseline_classes() -> List[ClassSession]:
    return []


def baseline_logs() -> List[LogEntry]:
    return []


def baseline_weekly_summaries() -> List[WeeklySummary]:
    return []


def baseline_day() -> Optional[Day]:
    # No stored day means first run: day rollover creates an empty one.
    return None
