"""
AI Analysis Service

Runs clinical extraction and risk detection for a session and stores the
results. The analysis row, its risk flags and the session status change are
committed together; nothing is written if extraction fails.
"""

import logging
from datetime import datetime
from uuid import UUID
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from therapy_copilot.assessment.extraction import AnalysisExtractor
from therapy_copilot.assessment.safety import RiskDetector
from therapy_copilot.config import Settings, get_settings
from therapy_copilot.errors import ConflictError, NotFoundError, PreconditionError
from therapy_copilot.models.clinical import AIAnalysis, RiskFlag, TherapistImpressions
from therapy_copilot.models.session import TherapySession
from therapy_copilot.models.user import Client, Therapist
from therapy_copilot.schemas.analysis import AnalysisResponse, SessionSummary
from therapy_copilot.schemas.risk import RiskDetection
from therapy_copilot.schemas.session import SessionStatus
from therapy_copilot.schemas.severity import ClinicalSeverity, SEVERITY_RANK
from therapy_copilot.services.notification_service import NotificationService
from therapy_copilot.services.session_service import advance_status

logger = logging.getLogger(__name__)


def sort_flags(flags: list[RiskFlag]) -> list[RiskFlag]:
    """Highest severity first, then oldest first."""
    return sorted(flags, key=lambda f: (SEVERITY_RANK[ClinicalSeverity(f.severity)], f.created_at))


class AnalysisService:
    def __init__(self, db: AsyncSession, llm, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()
        self.extractor = AnalysisExtractor(
            llm,
            max_retries=self.settings.analysis_max_retries,
            backoff_seconds=self.settings.analysis_backoff_seconds,
        )
        self.detector = RiskDetector(llm, context_chars=self.settings.risk_context_chars)

    async def get_analysis(self, session: TherapySession) -> Optional[AIAnalysis]:
        result = await self.db.execute(select(AIAnalysis).where(AIAnalysis.session_id == session.id))
        return result.scalar_one_or_none()

    async def get_risk_flags(self, session: TherapySession) -> list[RiskFlag]:
        result = await self.db.execute(select(RiskFlag).where(RiskFlag.session_id == session.id))
        return sort_flags(list(result.scalars().all()))

    async def _detect(self, transcript: str, analysis: AnalysisResponse) -> tuple[list[RiskDetection], bool]:
        try:
            report = await self.detector.detect(transcript)
            return report.risks, report.degraded
        except Exception as e:
            # Fall back to the indicators the extraction itself reported
            logger.error(f"Risk detection failed, using analysis risk indicators: {e}")
            fallback = [
                RiskDetection(type=r.type, severity=r.severity, excerpt=r.excerpt)
                for r in analysis.risk_indicators
            ]
            return fallback, True

    async def analyze(self, session: TherapySession) -> tuple[AIAnalysis, list[RiskFlag]]:
        """
        Generate and store the AI analysis for a session.

        Raises:
            PreconditionError: the transcript is empty
            ConflictError: an analysis already exists
            AnalysisGenerationError: extraction failed after all retries
        """
        if not session.transcript or not session.transcript.strip():
            raise PreconditionError("Cannot analyze session without transcript")
        if await self.get_analysis(session):
            raise ConflictError("AI analysis already exists for this session")

        logger.info(f"Starting AI analysis for session {session.id}")
        result = await self.extractor.generate_analysis(session.transcript)

        logger.info(f"Starting risk detection for session {session.id}")
        risks, degraded = await self._detect(session.transcript, result)

        # Must run before the adds; autoflush would send the INSERTs outside the try below
        has_impressions = await self.db.execute(
            select(TherapistImpressions.id).where(TherapistImpressions.session_id == session.id)
        )
        impressions_exist = has_impressions.scalar_one_or_none() is not None

        dumped = result.model_dump(mode="json")
        analysis = AIAnalysis(
            session_id=session.id,
            concerns=dumped["concerns"],
            themes=dumped["themes"],
            goals=dumped["goals"],
            interventions=dumped["interventions"],
            homework=dumped["homework"],
            strengths=dumped["strengths"],
            risk_indicators=dumped["risk_indicators"],
            raw_output=dumped,
            model_version=getattr(self.extractor.llm, "model", None),
            risk_detection_degraded=degraded,
        )
        self.db.add(analysis)

        flags = [
            RiskFlag(
                session_id=session.id,
                risk_type=risk.type,
                severity=risk.severity.value,
                excerpt=risk.excerpt,
                keyword=risk.keyword,
                acknowledged=False,
            )
            for risk in risks
        ]
        self.db.add_all(flags)

        if impressions_exist:
            advance_status(session, SessionStatus.COMPARISON_READY)
        else:
            advance_status(session, SessionStatus.AI_ANALYZED)

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("AI analysis already exists for this session")

        await self.db.refresh(analysis)

        logger.info(f"AI analysis completed for session {session.id}. Detected {len(flags)} risk(s).")

        if flags:
            therapist = await self.db.get(Therapist, session.therapist_id)
            client = await self.db.get(Client, session.client_id)
            await NotificationService(self.db).notify_risk_flags(
                therapist.user_id,
                client.display_name if client else "a client",
                session.id,
                [f.risk_type for f in flags],
            )

        return analysis, sort_flags(flags)

    async def acknowledge_flag(self, session: TherapySession, flag_id: UUID, therapist: Therapist) -> RiskFlag:
        flag = await self.db.get(RiskFlag, flag_id)
        if not flag or flag.session_id != session.id:
            raise NotFoundError("Risk flag not found")

        if not flag.acknowledged:
            flag.acknowledged = True
            flag.acknowledged_at = datetime.utcnow()
            flag.acknowledged_by = therapist.id
            await self.db.commit()
            await self.db.refresh(flag)
        return flag

    async def summarize(self, session: TherapySession) -> SessionSummary:
        """Generate and store therapist and client summaries for a session."""
        if not session.transcript or not session.transcript.strip():
            raise PreconditionError("Cannot summarize session without transcript")

        summary = await self.extractor.generate_session_summary(session.transcript)
        session.therapist_summary = summary.therapist_summary
        session.client_summary = summary.client_summary
        await self.db.commit()
        return summary
