"""
Pydantic Models for LLM Structured Outputs

Clinical analysis extraction, client-facing paraphrase and session summary
responses. LLM output is validated against these before anything is stored.
"""

from pydantic import BaseModel, Field
from typing import Optional
from uuid import UUID
from datetime import datetime

from therapy_copilot.schemas.severity import ClinicalSeverity


# =============================================================================
# ANALYSIS EXTRACTION
# =============================================================================

class Excerpt(BaseModel):
    text: str
    timestamp: Optional[str] = None


class AIConcern(BaseModel):
    text: str
    severity: ClinicalSeverity
    excerpts: list[Excerpt] = Field(default_factory=list)


class AIGoal(BaseModel):
    text: str
    timeline: Optional[str] = None
    excerpts: list[Excerpt] = Field(default_factory=list)


class Intervention(BaseModel):
    name: str
    rationale: str


class Homework(BaseModel):
    task: str
    rationale: str


class AIStrength(BaseModel):
    text: str
    excerpts: list[Excerpt] = Field(default_factory=list)


class RiskIndicator(BaseModel):
    type: str
    severity: ClinicalSeverity
    excerpt: str


class AnalysisResponse(BaseModel):
    """Complete structured extraction from one transcript."""

    concerns: list[AIConcern]
    themes: list[str]
    goals: list[AIGoal]
    interventions: list[Intervention]
    homework: list[Homework]
    strengths: list[AIStrength]
    risk_indicators: list[RiskIndicator]


# =============================================================================
# CLIENT VIEW / SESSION SUMMARY
# =============================================================================

class ClientView(BaseModel):
    """Plain-language plan summary shown to the client."""

    summary: str
    your_goals: list[str]
    what_we_are_doing: list[str]
    your_homework: list[str]
    your_strengths: list[str]
    next_time: str


class SessionSummary(BaseModel):
    therapist_summary: str
    client_summary: str


# =============================================================================
# API RESPONSES
# =============================================================================

class AIAnalysisResponse(BaseModel):
    id: UUID
    session_id: UUID
    concerns: list[dict]
    themes: list[str]
    goals: list[dict]
    interventions: list[dict]
    homework: list[dict]
    strengths: list[dict]
    risk_indicators: list[dict]
    model_version: Optional[str] = None
    risk_detection_degraded: bool = False
    created_at: datetime

    class Config:
        from_attributes = True


class RiskFlagResponse(BaseModel):
    id: UUID
    session_id: UUID
    risk_type: str
    severity: str
    excerpt: str
    keyword: Optional[str] = None
    acknowledged: bool
    acknowledged_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class AnalyzeSessionResponse(BaseModel):
    message: str
    analysis: AIAnalysisResponse
    risk_flags: list[RiskFlagResponse]
    session_status: str


class SessionAnalysisResponse(BaseModel):
    analysis: AIAnalysisResponse
    risk_flags: list[RiskFlagResponse]
