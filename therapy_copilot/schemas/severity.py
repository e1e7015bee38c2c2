"""
Severity Enums

Therapist impressions use lowercase severities ("low", "moderate", "high",
plus "none" for risk level); AI analysis and risk flags use uppercase. The
two are kept as separate enums and only converted through the tables below,
so a value from one side is never compared against the other by accident.
Uppercase is the canonical casing for anything computed across both sides.
"""

from enum import Enum


class TherapistSeverity(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"


class TherapistRiskLevel(str, Enum):
    NONE = "none"
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"


class ClinicalSeverity(str, Enum):
    LOW = "LOW"
    MODERATE = "MODERATE"
    HIGH = "HIGH"


class ClinicalRiskLevel(str, Enum):
    NONE = "NONE"
    LOW = "LOW"
    MODERATE = "MODERATE"
    HIGH = "HIGH"


THERAPIST_TO_CLINICAL_SEVERITY: dict[TherapistSeverity, ClinicalSeverity] = {
    TherapistSeverity.LOW: ClinicalSeverity.LOW,
    TherapistSeverity.MODERATE: ClinicalSeverity.MODERATE,
    TherapistSeverity.HIGH: ClinicalSeverity.HIGH,
}

THERAPIST_TO_CLINICAL_RISK_LEVEL: dict[TherapistRiskLevel, ClinicalRiskLevel] = {
    TherapistRiskLevel.NONE: ClinicalRiskLevel.NONE,
    TherapistRiskLevel.LOW: ClinicalRiskLevel.LOW,
    TherapistRiskLevel.MODERATE: ClinicalRiskLevel.MODERATE,
    TherapistRiskLevel.HIGH: ClinicalRiskLevel.HIGH,
}

# Ranking used for sorting (highest first) and "highest severity" lookups
SEVERITY_RANK: dict[ClinicalSeverity, int] = {
    ClinicalSeverity.HIGH: 0,
    ClinicalSeverity.MODERATE: 1,
    ClinicalSeverity.LOW: 2,
}


def to_clinical_severity(value: TherapistSeverity | str) -> ClinicalSeverity:
    """Convert a therapist severity to the canonical uppercase enum. Raises ValueError if unknown."""
    return THERAPIST_TO_CLINICAL_SEVERITY[TherapistSeverity(value.lower())]


def to_clinical_risk_level(value: TherapistRiskLevel | str | None) -> ClinicalRiskLevel:
    """Convert a therapist risk level; a missing level counts as NONE."""
    if value is None:
        return ClinicalRiskLevel.NONE
    return THERAPIST_TO_CLINICAL_RISK_LEVEL[TherapistRiskLevel(value.lower())]
