from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from therapy_copilot.assessment.comparison import build_selection_list, compare_session, compute_stats
from therapy_copilot.config import Settings, get_settings
from therapy_copilot.errors import NotFoundError
from therapy_copilot.models.clinical import AIAnalysis, RiskFlag, TherapistImpressions
from therapy_copilot.models.session import TherapySession
from therapy_copilot.schemas.analysis import RiskFlagResponse
from therapy_copilot.schemas.comparison import CompareSessionResponse
from therapy_copilot.services.analysis_service import sort_flags


class ComparisonService:
    def __init__(self, db: AsyncSession, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()

    async def compare(self, session: TherapySession) -> CompareSessionResponse:
        """Side-by-side comparison of impressions and AI analysis. Read-only."""
        impressions = (
            await self.db.execute(
                select(TherapistImpressions).where(TherapistImpressions.session_id == session.id)
            )
        ).scalar_one_or_none()
        if not impressions:
            raise NotFoundError("No therapist impressions found for this session")

        analysis = (
            await self.db.execute(select(AIAnalysis).where(AIAnalysis.session_id == session.id))
        ).scalar_one_or_none()
        if not analysis:
            raise NotFoundError("No AI analysis found for this session")

        flags = (
            await self.db.execute(select(RiskFlag).where(RiskFlag.session_id == session.id))
        ).scalars().all()

        thresholds = self.settings.comparison_thresholds
        result = compare_session(impressions, analysis, thresholds)

        return CompareSessionResponse(
            session_id=session.id,
            status=session.status,
            comparison=result,
            stats=compute_stats(result),
            thresholds=thresholds,
            selection=build_selection_list(impressions, analysis),
            risk_flags=[RiskFlagResponse.model_validate(f) for f in sort_flags(list(flags))],
        )
