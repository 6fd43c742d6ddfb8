"""Gemini text-generation helpers.

The module uses the Google Generative AI SDK when the ``GEMINI_API_KEY``
environment variable is set. Without a key every helper returns ``None`` so
callers can degrade gracefully; once configured, generation failures raise
:class:`GenerationError`.
"""
from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, List, Optional

import google.generativeai as genai

from planner_app.planner.subjects import ACADEMIC_SUBJECTS, SUBJECTS, VALID_TAGS, normalize_tag

LOGGER = logging.getLogger(__name__)

FAST_MODEL = "gemini-2.5-flash"
DEEP_MODEL = "gemini-2.5-pro"

INSIGHT_MODES = ("marks", "syllabus", "logs")
AID_TYPES = ("notes", "quiz")


class GenerationError(RuntimeError):
    """The model was reachable but did not produce a usable answer."""


def _client(model_name: str, **kwargs: Any) -> Optional[Any]:
    """Return a configured Gemini model if credentials exist."""

    api_key = os.getenv("GEMINI_API_KEY")
    if not api_key:
        return None
    try:
        genai.configure(api_key=api_key)
        return genai.GenerativeModel(model_name, **kwargs)
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("Failed to configure Gemini client")
        raise GenerationError("AI client could not be configured.") from exc


def _generate(model: Any, content: str, failure: str) -> str:
    try:
        result = model.generate_content(content)
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("Gemini request failed")
        raise GenerationError(failure) from exc
    text = getattr(result, "text", "") if result else ""
    if not text:
        raise GenerationError(failure)
    return text


def _planner_instruction() -> str:
    subjects = "\n".join(
        f"- '{subject.id}': {subject.name}" + (f" ({subject.sinhala_name})" if subject.sinhala_name else "")
        for subject in SUBJECTS
    )
    allowed = ", ".join(f"'{tag}'" for tag in VALID_TAGS)
    return (
        "You are a daily planner assistant for a student. Extract the actionable to-do items from "
        "the user's text and answer with a JSON array of objects with the keys title, subjectId "
        "and note.\n"
        f"Subjects:\n{subjects}\n"
        f"subjectId must be one of {allowed}; use 'personal' when nothing fits. "
        "Write title and note in the language of the user's text."
    )


def suggest_tasks(text: str) -> Optional[List[Dict[str, str]]]:
    """Turn free text into task drafts ``{title, subjectId, note}``."""

    model = _client(
        FAST_MODEL,
        system_instruction=_planner_instruction(),
        generation_config={"response_mime_type": "application/json"},
    )
    if model is None:
        return None
    raw = _generate(model, text, "Failed to get suggestions from AI.")
    try:
        suggestions = json.loads(raw)
    except json.JSONDecodeError as exc:
        LOGGER.warning("Gemini returned non-JSON suggestions: %s", raw[:200])
        raise GenerationError("Failed to get suggestions from AI.") from exc
    if not isinstance(suggestions, list):
        raise GenerationError("AI response was not a valid list.")
    drafts = []
    for item in suggestions:
        if not isinstance(item, dict):
            item = {}
        drafts.append(
            {
                "title": item.get("title") or "Untitled Task",
                "subjectId": normalize_tag(item.get("subjectId")),
                "note": item.get("note") or "",
            }
        )
    return drafts


def analytics_insights(mode: str, data: Dict[str, Any]) -> Optional[str]:
    """Markdown coaching notes for test marks, syllabus progress or time logs."""

    if mode not in INSIGHT_MODES:
        raise ValueError(f"Unknown insight mode: {mode}")
    model = _client(DEEP_MODEL)
    if model is None:
        return None
    content = (
        "You are an academic coach for an A/L student. Give encouraging, actionable insights "
        "in Markdown.\n"
    )
    if mode == "marks":
        content += f"Test results (scores out of total):\n{json.dumps(data.get('tests', []))}"
    elif mode == "syllabus":
        content += f"Syllabus completion percentages:\n{json.dumps(data.get('progressData', {}))}"
    else:
        content += (
            "Time logs for the current week and past weekly summaries, in minutes.\n"
            f"Current week logs: {json.dumps(data.get('logs', []))}\n"
            f"Weekly summaries: {json.dumps(data.get('weeklySummaries', []))}"
        )
    return _generate(model, content, "Failed to get insights from AI.")


def study_aid(subject_id: str, unit_name: str, subunit_name: str, aid_type: str) -> Optional[str]:
    """Study notes or a short quiz for one syllabus topic."""

    if aid_type not in AID_TYPES:
        raise ValueError(f"Unknown study aid type: {aid_type}")
    model = _client(DEEP_MODEL)
    if model is None:
        return None
    subject_name = next((s.name for s in ACADEMIC_SUBJECTS if s.id == subject_id), subject_id)
    content = (
        f"Help a physical science A/L student with \"{subunit_name}\" from the unit "
        f"\"{unit_name}\" in {subject_name}.\n"
    )
    if aid_type == "notes":
        content += "Write concise Markdown study notes covering the key concepts, formulas and definitions."
    else:
        content += (
            "Write a four-question multiple-choice quiz in Markdown with options A to D and an "
            "answer key with short explanations at the end."
        )
    return _generate(model, content, "Failed to generate content from AI.")
