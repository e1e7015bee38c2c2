"""
Treatment Plan Schemas

Plan content is stored as a JSON blob tagged with ``schema_version``:

- version 1: the merge-editor shape, where every concern/goal/strength is plain
  text. Older rows may also hold objects, a bare string for ``strengths``, or a
  string ``diagnosis``. Rows without a tag are treated as version 1.
- version 2: the current shape, with structured items and a
  ``{primary, specifiers}`` diagnosis.

``upgrade_plan_content`` migrates anything older to version 2. It runs as a
before-validator, so API input and stored rows come out the same shape.
"""

from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from uuid import UUID
from typing import Any, Literal, Optional
from enum import Enum

from therapy_copilot.schemas.analysis import Intervention, Homework
from therapy_copilot.schemas.severity import ClinicalSeverity, to_clinical_severity


CURRENT_PLAN_SCHEMA_VERSION = 2


class PlanStatus(str, Enum):
    DRAFT = "DRAFT"
    APPROVED = "APPROVED"


# =============================================================================
# Content (tagged by schema_version)
# =============================================================================

class PlanItem(BaseModel):
    text: str
    severity: Optional[ClinicalSeverity] = None


class PlanGoal(BaseModel):
    text: str
    timeline: Optional[str] = None


class PlanDiagnosis(BaseModel):
    primary: str
    specifiers: list[str] = Field(default_factory=list)


class PlanContentV2(BaseModel):
    schema_version: Literal[2] = 2
    concerns: list[PlanItem] = Field(default_factory=list)
    themes: list[str] = Field(default_factory=list)
    goals: list[PlanGoal] = Field(default_factory=list)
    strengths: list[PlanItem] = Field(default_factory=list)
    interventions: list[Intervention] = Field(default_factory=list)
    homework: list[Homework] = Field(default_factory=list)
    diagnosis: Optional[PlanDiagnosis] = None
    notes: Optional[str] = None


def _item_text(item: Any) -> str:
    if isinstance(item, str):
        return item
    if isinstance(item, dict):
        for key in ("text", "description", "goal", "name"):
            if item.get(key):
                return str(item[key])
    return str(item)


def _as_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, (str, dict)):
        return [value]
    return list(value)


def _migrate_severity(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    try:
        return to_clinical_severity(value.strip().lower()).value
    except ValueError:
        return None


def _migrate_item(item: Any) -> dict:
    migrated = {"text": _item_text(item)}
    if isinstance(item, dict):
        migrated["severity"] = _migrate_severity(item.get("severity"))
    return migrated


def _migrate_goal(item: Any) -> dict:
    migrated = {"text": _item_text(item)}
    if isinstance(item, dict):
        migrated["timeline"] = item.get("timeline") or item.get("target")
    return migrated


def _migrate_intervention(item: Any) -> Any:
    if isinstance(item, str):
        return {"name": item, "rationale": ""}
    return item


def _migrate_homework(item: Any) -> Any:
    if isinstance(item, str):
        return {"task": item, "rationale": ""}
    return item


def _migrate_diagnosis(value: Any) -> Optional[dict]:
    if not value:
        return None
    if isinstance(value, str):
        return {"primary": value, "specifiers": []}
    if isinstance(value, dict):
        primary = value.get("primary") or value.get("description") or value.get("code") or ""
        return {"primary": str(primary), "specifiers": list(value.get("specifiers") or [])}
    return None


def _migrate_v1(raw: dict) -> dict:
    return {
        "schema_version": 2,
        "concerns": [_migrate_item(c) for c in _as_list(raw.get("concerns"))],
        "themes": [_item_text(t) for t in _as_list(raw.get("themes"))],
        "goals": [_migrate_goal(g) for g in _as_list(raw.get("goals"))],
        "strengths": [_migrate_item(s) for s in _as_list(raw.get("strengths"))],
        "interventions": [_migrate_intervention(i) for i in _as_list(raw.get("interventions"))],
        "homework": [_migrate_homework(h) for h in _as_list(raw.get("homework"))],
        "diagnosis": _migrate_diagnosis(raw.get("diagnosis")),
        "notes": raw.get("notes"),
    }


def upgrade_plan_content(raw: Any) -> Any:
    """Bring stored or submitted plan content up to the current schema version."""
    if isinstance(raw, BaseModel):
        raw = raw.model_dump(mode="json")
    if not isinstance(raw, dict):
        return raw

    version = raw.get("schema_version", 1)
    if version == CURRENT_PLAN_SCHEMA_VERSION:
        return raw
    if version == 1:
        return _migrate_v1(raw)
    raise ValueError(f"Unsupported plan content schema_version: {version}")


def normalize_plan_content(raw: Any) -> PlanContentV2:
    return PlanContentV2.model_validate(upgrade_plan_content(raw))


# =============================================================================
# Requests
# =============================================================================

class PlanCreate(BaseModel):
    """Merge selected comparison items into a client's plan."""

    session_id: UUID
    client_id: UUID
    status: PlanStatus = PlanStatus.DRAFT
    content: PlanContentV2

    upgrade_content = field_validator("content", mode="before")(upgrade_plan_content)


class PlanUpdate(BaseModel):
    therapist_content: PlanContentV2

    upgrade_content = field_validator("therapist_content", mode="before")(upgrade_plan_content)


# =============================================================================
# Responses
# =============================================================================

class PlanVersionResponse(BaseModel):
    id: UUID
    version_number: int
    source_session_id: Optional[UUID] = None
    therapist_content: PlanContentV2
    client_content: Optional[dict] = None
    status: PlanStatus
    created_at: datetime
    edited_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None

    upgrade_content = field_validator("therapist_content", mode="before")(upgrade_plan_content)

    class Config:
        from_attributes = True


class PlanResponse(BaseModel):
    id: UUID
    client_id: UUID
    current_version_id: Optional[UUID] = None
    versions: list[PlanVersionResponse]
    created_at: datetime
    updated_at: datetime


class ClientPlanVersion(BaseModel):
    """What a client sees: approved versions, plain-language content only."""

    id: UUID
    version_number: int
    client_content: dict
    approved_at: Optional[datetime] = None


class ClientPlanResponse(BaseModel):
    id: UUID
    client_id: UUID
    current_version_id: Optional[UUID] = None
    versions: list[ClientPlanVersion]


class PlanMutationResponse(BaseModel):
    message: str
    plan: PlanResponse


class PlanApprovedResponse(BaseModel):
    message: str
    plan: PlanResponse
    client_content: dict
