import logging
from uuid import UUID
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from therapy_copilot.errors import ForbiddenError, NotFoundError
from therapy_copilot.models.session import TherapySession
from therapy_copilot.models.user import Client, Therapist
from therapy_copilot.schemas.session import SessionCreate, SessionStatus, SESSION_STATUS_ORDER
from therapy_copilot.services.client_service import ClientService

logger = logging.getLogger(__name__)


def advance_status(session: TherapySession, target: SessionStatus) -> bool:
    """
    Move a session forward in the workflow. A target at or below the
    current status is ignored. Returns True when the status changed.
    """
    current = SessionStatus(session.status)
    if SESSION_STATUS_ORDER.index(target) <= SESSION_STATUS_ORDER.index(current):
        return False
    session.status = target.value
    return True


class SessionService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_session(self, session_id: UUID) -> Optional[TherapySession]:
        return await self.db.get(TherapySession, session_id)

    async def get_owned_session(self, session_id: UUID, therapist: Therapist) -> TherapySession:
        session = await self.get_session(session_id)
        if not session:
            raise NotFoundError("Session not found")
        if session.therapist_id != therapist.id:
            raise ForbiddenError("Not authorized to access this session")
        return session

    async def list_sessions(
        self,
        therapist: Therapist,
        client_id: Optional[UUID] = None,
        status: Optional[SessionStatus] = None,
    ) -> list[TherapySession]:
        query = select(TherapySession).where(TherapySession.therapist_id == therapist.id)
        if client_id:
            query = query.where(TherapySession.client_id == client_id)
        if status:
            query = query.where(TherapySession.status == status.value)
        query = query.order_by(TherapySession.session_date.desc())

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_for_client(self, client: Client) -> list[TherapySession]:
        result = await self.db.execute(
            select(TherapySession)
            .where(TherapySession.client_id == client.id)
            .order_by(TherapySession.session_date.desc())
        )
        return list(result.scalars().all())

    async def get_client_session(self, session_id: UUID, client: Client) -> TherapySession:
        session = await self.get_session(session_id)
        if not session:
            raise NotFoundError("Session not found")
        if session.client_id != client.id:
            raise ForbiddenError("Not authorized to access this session")
        return session

    async def create_session(self, data: SessionCreate, therapist: Therapist) -> TherapySession:
        client = await ClientService(self.db).get_owned_client(data.client_id, therapist)

        session = TherapySession(
            therapist_id=therapist.id,
            client_id=client.id,
            session_date=data.session_date,
            transcript=data.transcript,
            status=SessionStatus.TRANSCRIPT_UPLOADED.value,
        )
        self.db.add(session)
        await self.db.commit()
        await self.db.refresh(session)

        logger.info(f"Session {session.id} uploaded for client {client.id}")
        return session
