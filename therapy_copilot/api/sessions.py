from uuid import UUID
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from therapy_copilot.database import get_db
from therapy_copilot.models.user import Client, Therapist
from therapy_copilot.api.deps import get_current_client, get_current_therapist, get_llm_client
from therapy_copilot.errors import NotFoundError
from therapy_copilot.schemas.session import (
    ClientSessionResponse,
    SessionCreate,
    SessionResponse,
    SessionListResponse,
    SessionStatus,
    SessionSummaryResponse,
)
from therapy_copilot.schemas.analysis import (
    AIAnalysisResponse,
    AnalyzeSessionResponse,
    RiskFlagResponse,
    SessionAnalysisResponse,
)
from therapy_copilot.schemas.comparison import CompareSessionResponse
from therapy_copilot.services.session_service import SessionService
from therapy_copilot.services.analysis_service import AnalysisService
from therapy_copilot.services.comparison_service import ComparisonService

router = APIRouter(prefix="/sessions", tags=["Sessions"])


@router.post("", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    data: SessionCreate,
    db: AsyncSession = Depends(get_db),
    therapist: Therapist = Depends(get_current_therapist),
):
    """Upload a session transcript for one of the therapist's clients."""
    return await SessionService(db).create_session(data, therapist)


@router.get("", response_model=list[SessionListResponse])
async def list_sessions(
    client_id: Optional[UUID] = Query(None, description="Filter by client ID"),
    session_status: Optional[SessionStatus] = Query(None, alias="status", description="Filter by status"),
    db: AsyncSession = Depends(get_db),
    therapist: Therapist = Depends(get_current_therapist),
):
    return await SessionService(db).list_sessions(therapist, client_id=client_id, status=session_status)


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: UUID,
    db: AsyncSession = Depends(get_db),
    therapist: Therapist = Depends(get_current_therapist),
):
    return await SessionService(db).get_owned_session(session_id, therapist)


# =============================================================================
# AI analysis
# =============================================================================

@router.post(
    "/{session_id}/analyze",
    response_model=AnalyzeSessionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def analyze_session(
    session_id: UUID,
    db: AsyncSession = Depends(get_db),
    therapist: Therapist = Depends(get_current_therapist),
    llm=Depends(get_llm_client),
):
    """
    Run clinical extraction and risk detection on the session transcript.

    Returns 400 when the transcript is empty and 409 when the session has
    already been analyzed.
    """
    session = await SessionService(db).get_owned_session(session_id, therapist)
    analysis, flags = await AnalysisService(db, llm).analyze(session)

    return AnalyzeSessionResponse(
        message="AI analysis completed successfully",
        analysis=AIAnalysisResponse.model_validate(analysis),
        risk_flags=[RiskFlagResponse.model_validate(f) for f in flags],
        session_status=session.status,
    )


@router.get("/{session_id}/analysis", response_model=SessionAnalysisResponse)
async def get_session_analysis(
    session_id: UUID,
    db: AsyncSession = Depends(get_db),
    therapist: Therapist = Depends(get_current_therapist),
    llm=Depends(get_llm_client),
):
    session = await SessionService(db).get_owned_session(session_id, therapist)
    service = AnalysisService(db, llm)

    analysis = await service.get_analysis(session)
    if not analysis:
        raise NotFoundError("No AI analysis found for this session")

    flags = await service.get_risk_flags(session)
    return SessionAnalysisResponse(
        analysis=AIAnalysisResponse.model_validate(analysis),
        risk_flags=[RiskFlagResponse.model_validate(f) for f in flags],
    )


@router.get("/{session_id}/compare", response_model=CompareSessionResponse)
async def compare_session(
    session_id: UUID,
    db: AsyncSession = Depends(get_db),
    therapist: Therapist = Depends(get_current_therapist),
):
    """Therapist impressions vs. AI analysis, with alignment stats and the merge pick list."""
    session = await SessionService(db).get_owned_session(session_id, therapist)
    return await ComparisonService(db).compare(session)


# =============================================================================
# Risk flags
# =============================================================================

@router.get("/{session_id}/risk-flags", response_model=list[RiskFlagResponse])
async def list_risk_flags(
    session_id: UUID,
    db: AsyncSession = Depends(get_db),
    therapist: Therapist = Depends(get_current_therapist),
    llm=Depends(get_llm_client),
):
    session = await SessionService(db).get_owned_session(session_id, therapist)
    return await AnalysisService(db, llm).get_risk_flags(session)


@router.post("/{session_id}/risk-flags/{flag_id}/acknowledge", response_model=RiskFlagResponse)
async def acknowledge_risk_flag(
    session_id: UUID,
    flag_id: UUID,
    db: AsyncSession = Depends(get_db),
    therapist: Therapist = Depends(get_current_therapist),
    llm=Depends(get_llm_client),
):
    session = await SessionService(db).get_owned_session(session_id, therapist)
    return await AnalysisService(db, llm).acknowledge_flag(session, flag_id, therapist)


# =============================================================================
# Summary
# =============================================================================

@router.post("/{session_id}/summary", response_model=SessionSummaryResponse)
async def summarize_session(
    session_id: UUID,
    db: AsyncSession = Depends(get_db),
    therapist: Therapist = Depends(get_current_therapist),
    llm=Depends(get_llm_client),
):
    """Generate therapist-facing and client-facing session summaries."""
    session = await SessionService(db).get_owned_session(session_id, therapist)
    summary = await AnalysisService(db, llm).summarize(session)
    return SessionSummaryResponse(
        session_id=session.id,
        therapist_summary=summary.therapist_summary,
        client_summary=summary.client_summary,
    )


# =============================================================================
# Client
# =============================================================================

client_router = APIRouter(prefix="/client/sessions", tags=["Sessions"])


@client_router.get("", response_model=list[ClientSessionResponse])
async def list_my_sessions(
    db: AsyncSession = Depends(get_db),
    client: Client = Depends(get_current_client),
):
    """The client's own sessions with their plain-language summaries."""
    return await SessionService(db).list_for_client(client)


@client_router.get("/{session_id}", response_model=ClientSessionResponse)
async def get_my_session(
    session_id: UUID,
    db: AsyncSession = Depends(get_db),
    client: Client = Depends(get_current_client),
):
    return await SessionService(db).get_client_session(session_id, client)
