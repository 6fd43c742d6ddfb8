"""Subject tags and the categories they roll up into."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

STUDY = "study"
EXERCISE = "exercise"
ENTERTAINMENT = "entertainment"
PERSONAL = "personal"

CATEGORY_ORDER: Tuple[str, ...] = (STUDY, EXERCISE, ENTERTAINMENT, PERSONAL)
CATEGORY_LABELS: Dict[str, str] = {
    STUDY: "Study Sessions",
    EXERCISE: "Exercise",
    ENTERTAINMENT: "Entertainment",
    PERSONAL: "Personal Activities",
}
CATEGORY_COLORS: Dict[str, str] = {
    STUDY: "#4f46e5",
    EXERCISE: "#f97316",
    ENTERTAINMENT: "#ec4899",
    PERSONAL: "#6b7280",
}


@dataclass(frozen=True)
class Subject:
    id: str
    name: str
    category: str
    color: str
    sinhala_name: str = ""


SUBJECTS: Tuple[Subject, ...] = (
    Subject("physics", "Physics", STUDY, "#3b82f6", "භෞතික විද්‍යාව"),
    Subject("chemistry", "Chemistry", STUDY, "#10b981", "රසායන විද්‍යාව"),
    Subject("combined", "Combined Maths", STUDY, "#8b5cf6", "සංයුක්ත ගණිතය"),
    Subject("exercise", "Exercise", EXERCISE, CATEGORY_COLORS[EXERCISE]),
    Subject("entertainment", "Entertainment", ENTERTAINMENT, CATEGORY_COLORS[ENTERTAINMENT]),
    Subject("personal", "Personal", PERSONAL, CATEGORY_COLORS[PERSONAL]),
)

_BY_ID: Dict[str, Subject] = {subject.id: subject for subject in SUBJECTS}

VALID_TAGS: Tuple[str, ...] = tuple(_BY_ID)
ACADEMIC_SUBJECTS: Tuple[Subject, ...] = tuple(s for s in SUBJECTS if s.category == STUDY)


def subject_for(tag: Optional[str]) -> Optional[Subject]:
    return _BY_ID.get((tag or "").strip().lower())


def normalize_tag(tag: Optional[str]) -> str:
    """Return a known subject id, defaulting unknown or blank tags to personal."""
    subject = subject_for(tag)
    return subject.id if subject else PERSONAL


def canonical_tag(tag: Optional[str]) -> str:
    """Known subjects map to their id; other non-blank tags are kept as given."""
    subject = subject_for(tag)
    if subject:
        return subject.id
    return (tag or "").strip() or PERSONAL


def category_for(tag: Optional[str]) -> str:
    subject = subject_for(tag)
    return subject.category if subject else PERSONAL
