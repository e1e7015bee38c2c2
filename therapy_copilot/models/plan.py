"""
Treatment Plan Models

A client has at most one TreatmentPlan. Every merge adds a
TreatmentPlanVersion; superseded versions are kept as history and
``current_version_id`` points at the newest one.
"""

from sqlalchemy import String, Integer, ForeignKey, DateTime, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from uuid import UUID, uuid4
from datetime import datetime
from typing import Optional

from therapy_copilot.models.base import Base, TimestampMixin, JSONType


class TreatmentPlan(Base, TimestampMixin):
    __tablename__ = "treatment_plans"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    client_id: Mapped[UUID] = mapped_column(
        ForeignKey("clients.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    # Plain column (no FK) to avoid a plan <-> version dependency cycle
    current_version_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)

    def __repr__(self) -> str:
        return f"<TreatmentPlan client={self.client_id}>"


class TreatmentPlanVersion(Base, TimestampMixin):
    __tablename__ = "treatment_plan_versions"
    __table_args__ = (
        UniqueConstraint("treatment_plan_id", "version_number", name="uq_plan_version_number"),
    )

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    treatment_plan_id: Mapped[UUID] = mapped_column(
        ForeignKey("treatment_plans.id", ondelete="CASCADE"), nullable=False
    )
    version_number: Mapped[int] = mapped_column(Integer, nullable=False)
    source_session_id: Mapped[Optional[UUID]] = mapped_column(
        ForeignKey("therapy_sessions.id", ondelete="SET NULL"), nullable=True
    )

    therapist_content: Mapped[dict] = mapped_column(JSONType, nullable=False)
    # Only populated on approval; cleared whenever therapist_content is edited
    client_content: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

    status: Mapped[str] = mapped_column(String(20), default="DRAFT", nullable=False)  # DRAFT, APPROVED
    edited_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<TreatmentPlanVersion v{self.version_number} ({self.status})>"
