from pydantic import BaseModel, Field
from datetime import datetime
from uuid import UUID
from typing import Optional
from enum import Enum


class SessionStatus(str, Enum):
    TRANSCRIPT_UPLOADED = "TRANSCRIPT_UPLOADED"
    IMPRESSIONS_COMPLETE = "IMPRESSIONS_COMPLETE"
    AI_ANALYZED = "AI_ANALYZED"
    COMPARISON_READY = "COMPARISON_READY"
    PLAN_MERGED = "PLAN_MERGED"


# Workflow order; a session's status never moves to a lower rank
SESSION_STATUS_ORDER: list[SessionStatus] = [
    SessionStatus.TRANSCRIPT_UPLOADED,
    SessionStatus.IMPRESSIONS_COMPLETE,
    SessionStatus.AI_ANALYZED,
    SessionStatus.COMPARISON_READY,
    SessionStatus.PLAN_MERGED,
]


class SessionCreate(BaseModel):
    client_id: UUID
    session_date: datetime
    transcript: str = Field("", max_length=100000)


class SessionResponse(BaseModel):
    id: UUID
    therapist_id: UUID
    client_id: UUID
    session_date: datetime
    transcript: str
    status: str
    therapist_summary: Optional[str] = None
    client_summary: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class SessionListResponse(BaseModel):
    id: UUID
    client_id: UUID
    session_date: datetime
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class SessionSummaryResponse(BaseModel):
    session_id: UUID
    therapist_summary: str
    client_summary: str


class ClientSessionResponse(BaseModel):
    """What a client sees of a session: no transcript, no clinical summary."""

    id: UUID
    session_date: datetime
    status: str
    client_summary: Optional[str] = None

    class Config:
        from_attributes = True
