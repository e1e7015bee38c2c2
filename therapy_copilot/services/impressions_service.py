"""
Therapist Impressions Service

One impressions record per session. Creation is rejected when a record
already exists; a concurrent double submission that slips past the check is
caught by the unique constraint on ``session_id`` and reported the same way.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from therapy_copilot.errors import ConflictError, NotFoundError
from therapy_copilot.models.clinical import AIAnalysis, TherapistImpressions
from therapy_copilot.models.session import TherapySession
from therapy_copilot.schemas.impressions import ImpressionsData
from therapy_copilot.schemas.session import SessionStatus
from therapy_copilot.services.session_service import advance_status

logger = logging.getLogger(__name__)


def _impressions_fields(data: ImpressionsData) -> dict:
    return data.model_dump(mode="json")


class ImpressionsService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, session: TherapySession) -> Optional[TherapistImpressions]:
        result = await self.db.execute(
            select(TherapistImpressions).where(TherapistImpressions.session_id == session.id)
        )
        return result.scalar_one_or_none()

    async def _has_analysis(self, session: TherapySession) -> bool:
        result = await self.db.execute(select(AIAnalysis.id).where(AIAnalysis.session_id == session.id))
        return result.scalar_one_or_none() is not None

    async def create(self, session: TherapySession, data: ImpressionsData) -> TherapistImpressions:
        if await self.get(session):
            raise ConflictError("Impressions already exist for this session. Use PUT to update.")

        # Must run before the add; autoflush would send the INSERT outside the try below
        has_analysis = await self._has_analysis(session)

        impressions = TherapistImpressions(session_id=session.id, **_impressions_fields(data))
        self.db.add(impressions)

        if has_analysis:
            advance_status(session, SessionStatus.COMPARISON_READY)
        else:
            advance_status(session, SessionStatus.IMPRESSIONS_COMPLETE)

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Impressions already exist for this session. Use PUT to update.")

        await self.db.refresh(impressions)
        logger.info(f"Impressions saved for session {session.id} (status {session.status})")
        return impressions

    async def update(self, session: TherapySession, data: ImpressionsData) -> TherapistImpressions:
        impressions = await self.get(session)
        if not impressions:
            raise NotFoundError("No impressions found for this session. Use POST to create.")

        for field, value in _impressions_fields(data).items():
            setattr(impressions, field, value)

        await self.db.commit()
        await self.db.refresh(impressions)
        return impressions
