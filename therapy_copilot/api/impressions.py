from uuid import UUID
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from therapy_copilot.database import get_db
from therapy_copilot.models.user import Therapist
from therapy_copilot.api.deps import get_current_therapist
from therapy_copilot.errors import NotFoundError
from therapy_copilot.schemas.impressions import (
    ImpressionsData,
    ImpressionsResponse,
    ImpressionsSavedResponse,
)
from therapy_copilot.services.session_service import SessionService
from therapy_copilot.services.impressions_service import ImpressionsService

router = APIRouter(prefix="/sessions/{session_id}/impressions", tags=["Impressions"])


@router.get("", response_model=ImpressionsResponse)
async def get_impressions(
    session_id: UUID,
    db: AsyncSession = Depends(get_db),
    therapist: Therapist = Depends(get_current_therapist),
):
    session = await SessionService(db).get_owned_session(session_id, therapist)
    impressions = await ImpressionsService(db).get(session)
    if not impressions:
        raise NotFoundError("No impressions found for this session")
    return impressions


@router.post("", response_model=ImpressionsSavedResponse, status_code=status.HTTP_201_CREATED)
async def create_impressions(
    session_id: UUID,
    data: ImpressionsData,
    db: AsyncSession = Depends(get_db),
    therapist: Therapist = Depends(get_current_therapist),
):
    """Record the therapist's impressions. 409 if the session already has them."""
    session = await SessionService(db).get_owned_session(session_id, therapist)
    impressions = await ImpressionsService(db).create(session, data)
    return ImpressionsSavedResponse(
        message="Impressions saved successfully",
        impressions=ImpressionsResponse.model_validate(impressions),
        session_status=session.status,
    )


@router.put("", response_model=ImpressionsSavedResponse)
async def update_impressions(
    session_id: UUID,
    data: ImpressionsData,
    db: AsyncSession = Depends(get_db),
    therapist: Therapist = Depends(get_current_therapist),
):
    session = await SessionService(db).get_owned_session(session_id, therapist)
    impressions = await ImpressionsService(db).update(session, data)
    return ImpressionsSavedResponse(
        message="Impressions updated successfully",
        impressions=ImpressionsResponse.model_validate(impressions),
        session_status=session.status,
    )
