import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from therapy_copilot.errors import ConflictError, ForbiddenError, NotFoundError
from therapy_copilot.models.user import Client, Therapist, User
from therapy_copilot.schemas.client import ClientCreate
from therapy_copilot.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


class ClientService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, client_id: UUID) -> Client | None:
        return await self.db.get(Client, client_id)

    async def get_owned_client(self, client_id: UUID, therapist: Therapist) -> Client:
        """Load a client, checking it is on this therapist's roster."""
        client = await self.get_by_id(client_id)
        if not client:
            raise NotFoundError("Client not found")
        if client.therapist_id != therapist.id:
            raise ForbiddenError("Not authorized to access this client")
        return client

    async def list_for_therapist(self, therapist: Therapist) -> list[Client]:
        query = (
            select(Client)
            .where(Client.therapist_id == therapist.id)
            .order_by(Client.created_at.desc())
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def create(self, data: ClientCreate, therapist: Therapist) -> Client:
        """Create a CLIENT login and attach its profile to the therapist."""
        email = data.email.strip().lower()
        existing = await self.db.execute(select(User).where(User.email == email))
        if existing.scalar_one_or_none():
            raise ConflictError("A user with this email already exists")

        user = User(email=email, role="CLIENT")
        self.db.add(user)
        try:
            await self.db.flush()
            client = Client(user_id=user.id, therapist_id=therapist.id, display_name=data.display_name)
            self.db.add(client)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("A user with this email already exists")
        await self.db.refresh(client)

        logger.info(f"Client {client.id} added for therapist {therapist.id}")
        await NotificationService(self.db).notify_new_client(therapist.user_id, client.display_name)
        return client
