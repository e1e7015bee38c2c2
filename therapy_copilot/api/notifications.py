from uuid import UUID
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from therapy_copilot.database import get_db
from therapy_copilot.models.user import User
from therapy_copilot.api.deps import get_current_user
from therapy_copilot.schemas.notification import NotificationResponse, NotificationUpdate
from therapy_copilot.services.notification_service import NotificationService

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    unread_only: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Most recent 50 notifications for the current user."""
    return await NotificationService(db).list_for_user(user.id, unread_only=unread_only)


@router.patch("/{notification_id}", response_model=NotificationResponse)
async def update_notification(
    notification_id: UUID,
    data: NotificationUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return await NotificationService(db).mark_read(notification_id, user.id, read=data.read)
