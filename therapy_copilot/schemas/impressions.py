"""
Therapist Impressions Schemas

Structured record a therapist enters for a session. Severities here use the
lowercase therapist enums; mixed-case input is folded to lowercase so the
stored record always has a single casing.
"""

from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from uuid import UUID
from typing import Optional

from therapy_copilot.schemas.severity import TherapistSeverity, TherapistRiskLevel


def _lowercase(value):
    if isinstance(value, str):
        return value.strip().lower()
    return value


class Concern(BaseModel):
    text: str = Field(min_length=1)
    severity: TherapistSeverity
    excerpt_ids: list[str] = Field(default_factory=list)

    normalize_severity = field_validator("severity", mode="before")(_lowercase)


class Highlight(BaseModel):
    excerpt: str = Field(min_length=1)
    timestamp: Optional[str] = None
    note: Optional[str] = None


class Goal(BaseModel):
    text: str = Field(min_length=1)
    timeline: Optional[str] = None
    excerpt_ids: list[str] = Field(default_factory=list)


class Diagnosis(BaseModel):
    code: str = Field(min_length=1)
    description: str = Field(min_length=1)


class RiskObservation(BaseModel):
    level: TherapistRiskLevel
    notes: Optional[str] = None
    excerpt_ids: list[str] = Field(default_factory=list)

    normalize_level = field_validator("level", mode="before")(_lowercase)


class Strength(BaseModel):
    text: str = Field(min_length=1)
    excerpt_ids: list[str] = Field(default_factory=list)


class SessionQuality(BaseModel):
    rapport: Optional[int] = Field(None, ge=1, le=5)
    engagement: Optional[int] = Field(None, ge=1, le=5)
    resistance: Optional[int] = Field(None, ge=1, le=5)
    notes: Optional[str] = None


class ImpressionsData(BaseModel):
    """Body of POST and PUT /sessions/{id}/impressions."""

    concerns: list[Concern] = Field(max_length=20)
    highlights: list[Highlight] = Field(default_factory=list, max_length=15)
    themes: list[str] = Field(max_length=10)
    goals: list[Goal] = Field(max_length=10)
    diagnoses: Optional[list[Diagnosis]] = Field(None, max_length=5)
    modalities: Optional[list[str]] = Field(None, max_length=10)
    risk_observations: RiskObservation
    strengths: list[Strength] = Field(default_factory=list, max_length=10)
    session_quality: Optional[SessionQuality] = None

    @field_validator("themes", "modalities")
    @classmethod
    def no_blank_entries(cls, v):
        if v is not None and any(not item.strip() for item in v):
            raise ValueError("entries cannot be empty")
        return v


class ImpressionsResponse(BaseModel):
    id: UUID
    session_id: UUID
    concerns: list[dict]
    highlights: list[dict]
    themes: list[str]
    goals: list[dict]
    diagnoses: Optional[list[dict]] = None
    modalities: Optional[list[str]] = None
    risk_observations: dict
    strengths: list[dict]
    session_quality: Optional[dict] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ImpressionsSavedResponse(BaseModel):
    message: str
    impressions: ImpressionsResponse
    session_status: str
