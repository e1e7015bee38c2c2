from pydantic import BaseModel
from datetime import datetime
from uuid import UUID
from typing import Optional
from enum import Enum


class NotificationType(str, Enum):
    RISK_FLAG_DETECTED = "RISK_FLAG_DETECTED"
    PLAN_APPROVED = "PLAN_APPROVED"
    NEW_CLIENT = "NEW_CLIENT"


class NotificationResponse(BaseModel):
    id: UUID
    type: str
    title: str
    message: str
    link: Optional[str] = None
    read: bool
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationUpdate(BaseModel):
    read: bool = True
