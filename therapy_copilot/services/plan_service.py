"""
Treatment Plan Service

State machine per plan version:

    no plan -> DRAFT -> APPROVED -> DRAFT (edit) -> APPROVED ...

- Merging a session's comparison into a client's plan always adds a new
  version (1 for a new plan, otherwise max + 1) and repoints
  ``current_version_id``. Older versions are never deleted.
- Editing changes the current version in place, drops it back to DRAFT and
  clears the client view.
- Approving generates the client view first; the version only becomes
  APPROVED if that succeeds, so an APPROVED version always has client content.
"""

import logging
from datetime import datetime
from uuid import UUID, uuid4
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from therapy_copilot.assessment.extraction import AnalysisExtractor
from therapy_copilot.config import Settings, get_settings
from therapy_copilot.errors import ConflictError, ForbiddenError, NotFoundError, PreconditionError
from therapy_copilot.models.plan import TreatmentPlan, TreatmentPlanVersion
from therapy_copilot.models.user import Client, Therapist
from therapy_copilot.schemas.plan import (
    ClientPlanResponse,
    ClientPlanVersion,
    PlanContentV2,
    PlanCreate,
    PlanResponse,
    PlanStatus,
    PlanVersionResponse,
    normalize_plan_content,
)
from therapy_copilot.schemas.session import SessionStatus
from therapy_copilot.services.client_service import ClientService
from therapy_copilot.services.notification_service import NotificationService
from therapy_copilot.services.session_service import SessionService, advance_status

logger = logging.getLogger(__name__)


class PlanService:
    def __init__(self, db: AsyncSession, llm=None, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()
        self.extractor = AnalysisExtractor(llm) if llm is not None else None

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_versions(self, plan: TreatmentPlan) -> list[TreatmentPlanVersion]:
        result = await self.db.execute(
            select(TreatmentPlanVersion)
            .where(TreatmentPlanVersion.treatment_plan_id == plan.id)
            .order_by(TreatmentPlanVersion.version_number.desc())
        )
        return list(result.scalars().all())

    async def get_current_version(self, plan: TreatmentPlan) -> TreatmentPlanVersion:
        version = None
        if plan.current_version_id:
            version = await self.db.get(TreatmentPlanVersion, plan.current_version_id)
        if not version:
            raise PreconditionError("Plan has no current version")
        return version

    async def get_plan_for_therapist(self, plan_id: UUID, therapist: Therapist) -> TreatmentPlan:
        plan = await self.db.get(TreatmentPlan, plan_id)
        if not plan:
            raise NotFoundError("Treatment plan not found")
        client = await self.db.get(Client, plan.client_id)
        if not client or client.therapist_id != therapist.id:
            raise ForbiddenError("Not authorized to access this plan")
        return plan

    async def get_plan_for_client(self, plan_id: UUID, client: Client) -> TreatmentPlan:
        plan = await self.db.get(TreatmentPlan, plan_id)
        if not plan:
            raise NotFoundError("Treatment plan not found")
        if plan.client_id != client.id:
            raise ForbiddenError("Not authorized to access this plan")
        return plan

    async def list_for_therapist(self, therapist: Therapist, client_id: Optional[UUID] = None) -> list[TreatmentPlan]:
        query = (
            select(TreatmentPlan)
            .join(Client, Client.id == TreatmentPlan.client_id)
            .where(Client.therapist_id == therapist.id)
        )
        if client_id:
            query = query.where(TreatmentPlan.client_id == client_id)
        query = query.order_by(TreatmentPlan.updated_at.desc())
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_for_client(self, client: Client) -> list[TreatmentPlan]:
        result = await self.db.execute(select(TreatmentPlan).where(TreatmentPlan.client_id == client.id))
        return list(result.scalars().all())

    async def find_client_plan(self, client: Client) -> Optional[TreatmentPlan]:
        """A client has at most one plan; None before the first merge."""
        result = await self.db.execute(select(TreatmentPlan).where(TreatmentPlan.client_id == client.id))
        return result.scalar_one_or_none()

    async def to_response(self, plan: TreatmentPlan) -> PlanResponse:
        versions = await self.get_versions(plan)
        return PlanResponse(
            id=plan.id,
            client_id=plan.client_id,
            current_version_id=plan.current_version_id,
            versions=[PlanVersionResponse.model_validate(v) for v in versions],
            created_at=plan.created_at,
            updated_at=plan.updated_at,
        )

    async def to_client_response(self, plan: TreatmentPlan) -> ClientPlanResponse:
        """Clients only see approved versions, and only their plain-language content."""
        versions = await self.get_versions(plan)
        return ClientPlanResponse(
            id=plan.id,
            client_id=plan.client_id,
            current_version_id=plan.current_version_id,
            versions=[
                ClientPlanVersion(
                    id=v.id,
                    version_number=v.version_number,
                    client_content=v.client_content,
                    approved_at=v.approved_at,
                )
                for v in versions
                if v.status == PlanStatus.APPROVED.value and v.client_content
            ],
        )

    # =========================================================================
    # Mutations
    # =========================================================================

    async def _client_view(self, content: PlanContentV2) -> dict:
        if self.extractor is None:
            raise RuntimeError("PlanService needs an LLM client to generate client views")
        view = await self.extractor.generate_client_view(content)
        return view.model_dump(mode="json")

    async def _notify_approved(self, plan: TreatmentPlan):
        client = await self.db.get(Client, plan.client_id)
        if client:
            await NotificationService(self.db).notify_plan_approved(client.user_id, plan.id)

    async def create_or_merge(self, data: PlanCreate, therapist: Therapist) -> TreatmentPlan:
        """
        Merge selected items into the client's plan as a new version.

        The version row, the plan pointer and the source session status are
        committed together. When the requested status is APPROVED the client
        view is generated first, and nothing is written if that fails.
        """
        session = await SessionService(self.db).get_owned_session(data.session_id, therapist)
        client = await ClientService(self.db).get_owned_client(data.client_id, therapist)
        if session.client_id != client.id:
            raise PreconditionError("Session does not belong to this client")

        client_content = None
        approved_at = None
        if data.status == PlanStatus.APPROVED:
            client_content = await self._client_view(data.content)
            approved_at = datetime.utcnow()

        plan = await self.find_client_plan(client)

        if plan is None:
            plan = TreatmentPlan(id=uuid4(), client_id=client.id)
            self.db.add(plan)
            try:
                await self.db.flush()
            except IntegrityError:
                # Another merge created this client's plan first
                await self.db.rollback()
                raise ConflictError("Plan was modified concurrently, please retry")
            next_version = 1
        else:
            max_version = await self.db.scalar(
                select(func.max(TreatmentPlanVersion.version_number)).where(
                    TreatmentPlanVersion.treatment_plan_id == plan.id
                )
            )
            next_version = (max_version or 0) + 1

        version = TreatmentPlanVersion(
            id=uuid4(),
            treatment_plan_id=plan.id,
            version_number=next_version,
            source_session_id=session.id,
            therapist_content=data.content.model_dump(mode="json"),
            client_content=client_content,
            status=data.status.value,
            approved_at=approved_at,
        )
        self.db.add(version)

        plan.current_version_id = version.id
        plan.updated_at = datetime.utcnow()
        advance_status(session, SessionStatus.PLAN_MERGED)

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Plan was modified concurrently, please retry")

        await self.db.refresh(plan)
        logger.info(f"Plan {plan.id} version {next_version} created ({data.status.value}) from session {session.id}")

        if data.status == PlanStatus.APPROVED:
            await self._notify_approved(plan)
        return plan

    async def edit(self, plan: TreatmentPlan, content: PlanContentV2) -> TreatmentPlanVersion:
        """Revise the current version in place. It always goes back to DRAFT."""
        version = await self.get_current_version(plan)

        version.therapist_content = content.model_dump(mode="json")
        version.status = PlanStatus.DRAFT.value
        version.client_content = None
        version.approved_at = None
        version.edited_at = datetime.utcnow()
        plan.updated_at = datetime.utcnow()

        await self.db.commit()
        await self.db.refresh(version)
        logger.info(f"Plan {plan.id} version {version.version_number} edited, back to DRAFT")
        return version

    async def approve(self, plan: TreatmentPlan) -> TreatmentPlanVersion:
        """
        Approve the current version.

        Raises:
            ConflictError: the version is already approved
            ClientViewGenerationError: paraphrasing failed; the version stays DRAFT
        """
        version = await self.get_current_version(plan)
        if version.status == PlanStatus.APPROVED.value:
            raise ConflictError("Plan version is already approved")

        client_content = await self._client_view(normalize_plan_content(version.therapist_content))

        version.client_content = client_content
        version.status = PlanStatus.APPROVED.value
        version.approved_at = datetime.utcnow()
        plan.updated_at = datetime.utcnow()

        await self.db.commit()
        await self.db.refresh(version)
        logger.info(f"Plan {plan.id} version {version.version_number} approved")

        await self._notify_approved(plan)
        return version
