from pydantic import BaseModel, Field
from typing import Any, Optional
from enum import Enum
from uuid import UUID

from therapy_copilot.schemas.analysis import RiskFlagResponse
from therapy_copilot.schemas.severity import ClinicalRiskLevel


class Alignment(str, Enum):
    ALIGNED = "aligned"
    AI_ONLY = "ai_only"
    THERAPIST_ONLY = "therapist_only"
    # Reserved for a contradicting pair; the similarity matcher never emits it
    CONFLICT = "conflict"


class RiskAlignment(str, Enum):
    ALIGNED = "aligned"
    AI_DETECTED_RISK = "ai_detected_risk"
    THERAPIST_DETECTED_RISK = "therapist_detected_risk"
    SEVERITY_MISMATCH = "severity_mismatch"


class ItemSource(str, Enum):
    THERAPIST = "therapist"
    AI = "ai"
    BOTH = "both"


class ComparisonItem(BaseModel):
    therapist: Optional[Any] = None
    ai: Optional[Any] = None
    alignment: Alignment
    similarity: Optional[float] = None


class RiskComparison(BaseModel):
    therapist: Optional[dict] = None
    ai: list[dict] = Field(default_factory=list)
    therapist_level: ClinicalRiskLevel
    ai_highest_severity: ClinicalRiskLevel
    alignment: RiskAlignment


class ComparisonResult(BaseModel):
    concerns: list[ComparisonItem]
    themes: list[ComparisonItem]
    goals: list[ComparisonItem]
    strengths: list[ComparisonItem]
    # Therapists do not record these; passed through from the analysis
    interventions: list[dict]
    homework: list[dict]
    risk_assessment: RiskComparison


class CategoryStats(BaseModel):
    aligned: int = 0
    ai_only: int = 0
    therapist_only: int = 0

    @property
    def total(self) -> int:
        return self.aligned + self.ai_only + self.therapist_only


class ComparisonStats(BaseModel):
    concerns: CategoryStats
    themes: CategoryStats
    goals: CategoryStats
    strengths: CategoryStats
    overall_alignment: int


class SelectionItem(BaseModel):
    """Entry in the therapist's pick list for building a plan."""

    text: str
    source: ItemSource
    severity: Optional[str] = None
    timeline: Optional[str] = None
    rationale: Optional[str] = None


class SelectionList(BaseModel):
    concerns: list[SelectionItem]
    themes: list[SelectionItem]
    goals: list[SelectionItem]
    strengths: list[SelectionItem]
    interventions: list[SelectionItem]
    homework: list[SelectionItem]


class CompareSessionResponse(BaseModel):
    session_id: UUID
    status: str
    comparison: ComparisonResult
    stats: ComparisonStats
    thresholds: dict[str, float]
    selection: SelectionList
    risk_flags: list[RiskFlagResponse]
