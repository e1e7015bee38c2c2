"""
Notification Service

Notifications are a side channel: they are written in their own session after
the operation that triggered them has committed, and a failure here is
logged, never raised.
"""

import logging
from uuid import UUID
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from therapy_copilot.errors import ForbiddenError, NotFoundError
from therapy_copilot.models.notification import Notification
from therapy_copilot.schemas.notification import NotificationType

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def notify(
        self,
        user_id: UUID,
        type: NotificationType,
        title: str,
        message: str,
        link: Optional[str] = None,
    ) -> Optional[Notification]:
        notification = Notification(
            user_id=user_id,
            type=type.value,
            title=title,
            message=message,
            link=link,
        )
        # Own session, so a failure here cannot roll back or expire the caller's objects
        try:
            async with AsyncSession(self.db.bind, expire_on_commit=False) as session:
                session.add(notification)
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to create {type.value} notification for user {user_id}: {e}")
            return None
        return notification

    async def notify_risk_flags(self, therapist_user_id: UUID, client_name: str, session_id: UUID, risk_types: list[str]):
        kinds = ", ".join(sorted(set(risk_types)))
        return await self.notify(
            therapist_user_id,
            NotificationType.RISK_FLAG_DETECTED,
            title="Risk Flag Detected",
            message=f"A {kinds} risk indicator was detected for {client_name}. Please review.",
            link=f"/therapist/sessions/{session_id}",
        )

    async def notify_plan_approved(self, client_user_id: UUID, plan_id: UUID):
        return await self.notify(
            client_user_id,
            NotificationType.PLAN_APPROVED,
            title="Treatment Plan Approved",
            message="Your therapist has approved a new treatment plan for you.",
            link=f"/client/plans/{plan_id}",
        )

    async def notify_new_client(self, therapist_user_id: UUID, client_name: str):
        return await self.notify(
            therapist_user_id,
            NotificationType.NEW_CLIENT,
            title="New Client Added",
            message=f"{client_name} has been added to your client list.",
            link="/therapist/clients",
        )

    async def list_for_user(self, user_id: UUID, unread_only: bool = False) -> list[Notification]:
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.read.is_(False))
        query = query.order_by(Notification.created_at.desc()).limit(50)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def mark_read(self, notification_id: UUID, user_id: UUID, read: bool = True) -> Notification:
        notification = await self.db.get(Notification, notification_id)
        if not notification:
            raise NotFoundError("Notification not found")
        if notification.user_id != user_id:
            raise ForbiddenError("Not authorized to modify this notification")

        notification.read = read
        await self.db.commit()
        await self.db.refresh(notification)
        return notification
