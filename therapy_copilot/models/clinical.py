"""
Clinical Record Models

Therapist impressions, AI analysis and risk flags for a therapy session.
Impressions and analysis are one-per-session; the unique constraint on
``session_id`` is what turns a concurrent double submission into a conflict.
"""

from sqlalchemy import String, Text, ForeignKey, DateTime, Boolean
from sqlalchemy.orm import Mapped, mapped_column
from uuid import UUID, uuid4
from datetime import datetime
from typing import Optional

from therapy_copilot.models.base import Base, TimestampMixin, JSONType


class TherapistImpressions(Base, TimestampMixin):
    __tablename__ = "therapist_impressions"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    session_id: Mapped[UUID] = mapped_column(
        ForeignKey("therapy_sessions.id", ondelete="CASCADE"), unique=True, nullable=False
    )

    concerns: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    highlights: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    themes: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    goals: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    diagnoses: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)
    modalities: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)
    risk_observations: Mapped[dict] = mapped_column(JSONType, nullable=False)
    strengths: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    session_quality: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

    def __repr__(self) -> str:
        return f"<TherapistImpressions session={self.session_id}>"


class AIAnalysis(Base, TimestampMixin):
    __tablename__ = "ai_analyses"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    session_id: Mapped[UUID] = mapped_column(
        ForeignKey("therapy_sessions.id", ondelete="CASCADE"), unique=True, nullable=False
    )

    concerns: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    themes: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    goals: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    interventions: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    homework: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    strengths: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    risk_indicators: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)

    # Full validated response plus detector metadata, kept for audit
    raw_output: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    model_version: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    risk_detection_degraded: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<AIAnalysis session={self.session_id}>"


class RiskFlag(Base, TimestampMixin):
    """
    One detected risk instance. Flags are an audit trail: they are never
    deleted, and the only mutation is acknowledgment.
    """

    __tablename__ = "risk_flags"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    session_id: Mapped[UUID] = mapped_column(
        ForeignKey("therapy_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )

    risk_type: Mapped[str] = mapped_column(String(50), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)  # LOW, MODERATE, HIGH
    excerpt: Mapped[str] = mapped_column(Text, nullable=False)
    keyword: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    acknowledged: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    acknowledged_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    acknowledged_by: Mapped[Optional[UUID]] = mapped_column(ForeignKey("therapists.id"), nullable=True)

    def __repr__(self) -> str:
        return f"<RiskFlag {self.risk_type} {self.severity}>"
