"""
Clinical Analysis Extraction

Turns a transcript into validated structured documentation, and turns
therapist-approved plan content into a plain-language client view.

Extraction retries with exponential backoff (1s, 2s, 4s, ... by default);
every attempt starts from scratch. The client view and the session summary
are single-shot: a failure surfaces immediately so that approval can refuse
to proceed.
"""

import asyncio
import json
import logging
from typing import Any, Optional

from pydantic import BaseModel

from therapy_copilot.errors import (
    AnalysisGenerationError,
    ClientViewGenerationError,
    SummaryGenerationError,
)
from therapy_copilot.llm.prompts import (
    ANALYSIS_SYSTEM,
    ANALYSIS_USER,
    CLIENT_VIEW_SYSTEM,
    CLIENT_VIEW_USER,
    SESSION_SUMMARY_SYSTEM,
    SESSION_SUMMARY_USER,
)
from therapy_copilot.schemas.analysis import AnalysisResponse, ClientView, SessionSummary

logger = logging.getLogger(__name__)


class AnalysisExtractor:
    """LLM-backed extraction with pydantic validation of every response."""

    def __init__(self, llm, max_retries: int = 3, backoff_seconds: float = 1.0):
        self.llm = llm
        self.max_retries = max(1, max_retries)
        self.backoff_seconds = backoff_seconds

    async def _backoff(self, attempt: int):
        await asyncio.sleep(self.backoff_seconds * (2 ** (attempt - 1)))

    async def generate_analysis(self, transcript: str) -> AnalysisResponse:
        """
        Extract concerns, themes, goals, interventions, homework, strengths
        and risk indicators from a transcript.

        Raises:
            AnalysisGenerationError: every attempt failed; carries the last error
        """
        messages = [
            {"role": "system", "content": ANALYSIS_SYSTEM},
            {"role": "user", "content": ANALYSIS_USER.format(transcript=transcript)},
        ]

        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_retries + 1):
            try:
                parsed = await self.llm.complete_json(messages, temperature=0.3)
                return AnalysisResponse.model_validate(parsed)
            except Exception as e:
                last_error = e
                logger.warning(f"Analysis attempt {attempt}/{self.max_retries} failed: {e}")
                if attempt < self.max_retries:
                    await self._backoff(attempt)

        raise AnalysisGenerationError(
            f"Failed to generate analysis after {self.max_retries} attempts: {last_error}",
            attempts=self.max_retries,
            last_error=last_error,
        )

    async def generate_client_view(self, content: dict[str, Any] | BaseModel) -> ClientView:
        """
        Paraphrase clinical plan content for the client at an 8th grade
        reading level. No retry.

        Raises:
            ClientViewGenerationError: on any failure
        """
        if isinstance(content, BaseModel):
            content = content.model_dump(mode="json")

        def field(name: str) -> str:
            return json.dumps(content.get(name) or [])

        messages = [
            {"role": "system", "content": CLIENT_VIEW_SYSTEM},
            {
                "role": "user",
                "content": CLIENT_VIEW_USER.format(
                    concerns=field("concerns"),
                    themes=field("themes"),
                    goals=field("goals"),
                    interventions=field("interventions"),
                    homework=field("homework"),
                    strengths=field("strengths"),
                ),
            },
        ]

        try:
            parsed = await self.llm.complete_json(messages, temperature=0.5)
            return ClientView.model_validate(parsed)
        except Exception as e:
            logger.error(f"Error generating client view: {e}")
            raise ClientViewGenerationError(f"Failed to generate client view: {e}") from e

    async def generate_session_summary(self, transcript: str) -> SessionSummary:
        """Therapist-facing and client-facing summaries of one session. No retry."""
        messages = [
            {"role": "system", "content": SESSION_SUMMARY_SYSTEM},
            {"role": "user", "content": SESSION_SUMMARY_USER.format(transcript=transcript)},
        ]

        try:
            parsed = await self.llm.complete_json(messages, temperature=0.4)
            return SessionSummary.model_validate(parsed)
        except Exception as e:
            logger.error(f"Error generating session summary: {e}")
            raise SummaryGenerationError(f"Failed to generate session summary: {e}") from e
