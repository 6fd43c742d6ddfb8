"""AI assistant orchestration between planner data and the Gemini client."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from planner_app.ai import gemini_client
from planner_app.ai.gemini_client import GenerationError
from planner_app.planner.controllers import AppController

LOGGER = logging.getLogger(__name__)

NOT_CONFIGURED = "AI features are not configured. Set GEMINI_API_KEY to enable them."

MOCK_SUGGESTIONS: List[Dict[str, str]] = [
    {"title": "Mock: Review Physics chapter 5", "subjectId": "physics", "note": "AI features are disabled."},
    {"title": "Mock: Complete Chemistry homework", "subjectId": "chemistry", "note": "Configure an API key."},
]


@dataclass
class InsightResult:
    text: str = ""
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class AIAssistantService:
    """Provide AI-powered suggestions and insights over planner data.

    This layer keeps the CLI free of Gemini details and ensures graceful
    degradation: missing configuration and generation failures become
    user-visible messages, never exceptions.
    """

    def __init__(self, controller: AppController):
        self.controller = controller

    def suggest_tasks(self, text: str) -> List[Dict[str, str]]:
        """Task drafts extracted from ``text``; mock drafts when AI is off.

        Raises ``GenerationError`` when a configured model fails, so the caller
        can show the message instead of silently adding nothing.
        """
        drafts = gemini_client.suggest_tasks(text)
        if drafts is None:
            LOGGER.warning("AI features are not configured; returning mock suggestions")
            return [dict(item) for item in MOCK_SUGGESTIONS]
        return drafts

    def add_suggested_tasks(self, text: str):
        return self.controller.add_tasks(self.suggest_tasks(text))

    def insights(self, mode: str) -> InsightResult:
        payload = self.controller.insight_payload(mode)
        try:
            text = gemini_client.analytics_insights(mode, payload)
        except GenerationError as exc:
            return InsightResult(error=str(exc))
        if text is None:
            LOGGER.warning("Insights requested without AI configuration")
            return InsightResult(error=NOT_CONFIGURED)
        return InsightResult(text=text)

    def study_aid(self, subject_id: str, unit_name: str, subunit_name: str, aid_type: str) -> InsightResult:
        try:
            text = gemini_client.study_aid(subject_id, unit_name, subunit_name, aid_type)
        except GenerationError as exc:
            return InsightResult(error=str(exc))
        if text is None:
            LOGGER.warning("Study aid requested without AI configuration")
            return InsightResult(error=NOT_CONFIGURED)
        return InsightResult(text=text)
