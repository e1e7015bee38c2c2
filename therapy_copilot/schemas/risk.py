from pydantic import BaseModel, Field, field_validator
import re
from typing import Optional
from enum import Enum

from therapy_copilot.schemas.severity import ClinicalSeverity, ClinicalRiskLevel


class RiskType(str, Enum):
    SUICIDAL_IDEATION = "suicidal_ideation"
    SELF_HARM = "self_harm"
    HARM_TO_OTHERS = "harm_to_others"
    SUBSTANCE_CRISIS = "substance_crisis"


class KeywordMatch(BaseModel):
    type: RiskType
    keyword: str
    excerpt: str
    position: int


class RiskDetection(BaseModel):
    """A single detected risk. Keyword hits carry the trigger phrase; AI hits do not."""

    type: str
    severity: ClinicalSeverity
    excerpt: str
    keyword: Optional[str] = None


class ContextualRisk(BaseModel):
    """One item of the contextual (LLM) risk pass."""

    type: str = "unknown"
    severity: ClinicalSeverity = ClinicalSeverity.MODERATE
    excerpt: str = ""
    reasoning: Optional[str] = None

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v):
        # "self-harm" and "suicidal ideation" map onto the snake_case taxonomy
        if not v or not isinstance(v, str):
            return "unknown"
        return re.sub(r"[^a-z0-9]+", "_", v.lower()).strip("_") or "unknown"

    @field_validator("severity", mode="before")
    @classmethod
    def normalize_severity(cls, v):
        if isinstance(v, str) and v.strip().upper() in ClinicalSeverity.__members__:
            return v.strip().upper()
        return ClinicalSeverity.MODERATE

    @field_validator("excerpt", mode="before")
    @classmethod
    def default_excerpt(cls, v):
        return v if isinstance(v, str) else ""


class RiskDetectionReport(BaseModel):
    risks: list[RiskDetection] = Field(default_factory=list)
    # True when the contextual pass failed and only keyword hits are present
    degraded: bool = False


class RiskSummary(BaseModel):
    total: int
    by_type: dict[str, int]
    by_severity: dict[str, int]
    highest_severity: ClinicalRiskLevel
