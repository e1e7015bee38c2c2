from sqlalchemy import String, Text, ForeignKey, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from uuid import UUID, uuid4
from datetime import datetime
from typing import Optional

from therapy_copilot.models.base import Base, TimestampMixin


class TherapySession(Base, TimestampMixin):
    """A therapy session with its uploaded transcript."""

    __tablename__ = "therapy_sessions"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    therapist_id: Mapped[UUID] = mapped_column(ForeignKey("therapists.id"), nullable=False, index=True)
    client_id: Mapped[UUID] = mapped_column(
        ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True
    )

    session_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    transcript: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # TRANSCRIPT_UPLOADED, IMPRESSIONS_COMPLETE, AI_ANALYZED, COMPARISON_READY, PLAN_MERGED
    status: Mapped[str] = mapped_column(String(30), default="TRANSCRIPT_UPLOADED", nullable=False)

    # Populated by the session summary endpoint
    therapist_summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    client_summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<TherapySession {self.id} ({self.status})>"
