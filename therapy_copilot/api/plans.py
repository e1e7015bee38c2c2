from uuid import UUID
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from therapy_copilot.database import get_db
from therapy_copilot.models.user import Client, Therapist
from therapy_copilot.api.deps import get_current_client, get_current_therapist, get_llm_client
from therapy_copilot.schemas.plan import (
    ClientPlanResponse,
    PlanApprovedResponse,
    PlanCreate,
    PlanMutationResponse,
    PlanResponse,
    PlanStatus,
    PlanUpdate,
)
from therapy_copilot.services.plan_service import PlanService

router = APIRouter(tags=["Treatment Plans"])


# =============================================================================
# Therapist
# =============================================================================

@router.get("/plans", response_model=list[PlanResponse])
async def list_plans(
    client_id: Optional[UUID] = Query(None, description="Filter by client ID"),
    db: AsyncSession = Depends(get_db),
    therapist: Therapist = Depends(get_current_therapist),
):
    service = PlanService(db)
    plans = await service.list_for_therapist(therapist, client_id=client_id)
    return [await service.to_response(plan) for plan in plans]


@router.post("/plans", response_model=PlanMutationResponse, status_code=status.HTTP_201_CREATED)
async def create_plan(
    data: PlanCreate,
    db: AsyncSession = Depends(get_db),
    therapist: Therapist = Depends(get_current_therapist),
    llm=Depends(get_llm_client),
):
    """
    Merge the therapist's selection from a session comparison into the
    client's plan. Creates the plan (version 1) or adds the next version.
    """
    service = PlanService(db, llm)
    plan = await service.create_or_merge(data, therapist)
    message = (
        "Treatment plan approved successfully"
        if data.status == PlanStatus.APPROVED
        else "Treatment plan saved as draft"
    )
    return PlanMutationResponse(message=message, plan=await service.to_response(plan))


@router.get("/plans/{plan_id}", response_model=PlanResponse)
async def get_plan(
    plan_id: UUID,
    db: AsyncSession = Depends(get_db),
    therapist: Therapist = Depends(get_current_therapist),
):
    service = PlanService(db)
    plan = await service.get_plan_for_therapist(plan_id, therapist)
    return await service.to_response(plan)


@router.put("/plans/{plan_id}", response_model=PlanMutationResponse)
async def update_plan(
    plan_id: UUID,
    data: PlanUpdate,
    db: AsyncSession = Depends(get_db),
    therapist: Therapist = Depends(get_current_therapist),
):
    """Edit the current version in place. The version returns to DRAFT."""
    service = PlanService(db)
    plan = await service.get_plan_for_therapist(plan_id, therapist)
    await service.edit(plan, data.therapist_content)
    return PlanMutationResponse(
        message="Treatment plan updated. Re-approval required.",
        plan=await service.to_response(plan),
    )


@router.post("/plans/{plan_id}/approve", response_model=PlanApprovedResponse)
async def approve_plan(
    plan_id: UUID,
    db: AsyncSession = Depends(get_db),
    therapist: Therapist = Depends(get_current_therapist),
    llm=Depends(get_llm_client),
):
    """Generate the client view and approve. 409 if already approved."""
    service = PlanService(db, llm)
    plan = await service.get_plan_for_therapist(plan_id, therapist)
    version = await service.approve(plan)
    return PlanApprovedResponse(
        message="Treatment plan approved successfully",
        plan=await service.to_response(plan),
        client_content=version.client_content,
    )


# =============================================================================
# Client
# =============================================================================

@router.get("/client/plans", response_model=list[ClientPlanResponse])
async def list_my_plans(
    db: AsyncSession = Depends(get_db),
    client: Client = Depends(get_current_client),
):
    service = PlanService(db)
    plans = await service.list_for_client(client)
    return [await service.to_client_response(plan) for plan in plans]


@router.get("/client/plans/{plan_id}", response_model=ClientPlanResponse)
async def get_my_plan(
    plan_id: UUID,
    db: AsyncSession = Depends(get_db),
    client: Client = Depends(get_current_client),
):
    service = PlanService(db)
    plan = await service.get_plan_for_client(plan_id, client)
    return await service.to_client_response(plan)
