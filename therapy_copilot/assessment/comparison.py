"""
Impressions vs. AI Analysis Comparison

Aligns what the therapist recorded against what the AI extracted, per
category, using bag-of-words Jaccard similarity with greedy one-to-one
matching. Risk levels are compared separately with fixed rules.

Therapist severities are lowercase and AI severities uppercase; both are
converted to the uppercase clinical enums before any comparison.

Two matching strategies:
- ``compare_items``: similarity-based, used for the comparison report/stats
- ``build_selection_list``: exact normalized-text match, used to build the
  pick list a therapist merges into a plan
"""

import math
import re
from typing import Any, Iterable, Optional

from therapy_copilot.schemas.comparison import (
    Alignment,
    CategoryStats,
    ComparisonItem,
    ComparisonResult,
    ComparisonStats,
    ItemSource,
    RiskAlignment,
    RiskComparison,
    SelectionItem,
    SelectionList,
)
from therapy_copilot.schemas.severity import (
    ClinicalRiskLevel,
    ClinicalSeverity,
    SEVERITY_RANK,
    to_clinical_risk_level,
    to_clinical_severity,
)


DEFAULT_THRESHOLDS: dict[str, float] = {
    "concerns": 0.5,
    "themes": 0.6,
    "goals": 0.5,
    "strengths": 0.5,
}

SIMILARITY_CATEGORIES = ("concerns", "themes", "goals", "strengths")

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


# =============================================================================
# SIMILARITY
# =============================================================================

def normalize_text(text: str) -> str:
    """Lowercase, drop punctuation, collapse whitespace."""
    text = _PUNCTUATION.sub("", text.lower())
    return _WHITESPACE.sub(" ", text).strip()


def calculate_similarity(text1: str, text2: str) -> float:
    """Jaccard index over normalized word sets. Two empty texts score 0.0."""
    words1 = set(normalize_text(text1).split())
    words2 = set(normalize_text(text2).split())

    union = words1 | words2
    if not union:
        return 0.0
    return len(words1 & words2) / len(union)


def _item_text(item: Any, text_field: str) -> str:
    if isinstance(item, str):
        return item
    if isinstance(item, dict):
        value = item.get(text_field)
        return value if isinstance(value, str) else ""
    return ""


def compare_items(
    therapist_items: list,
    ai_items: list,
    text_field: str = "text",
    threshold: float = 0.5,
) -> list[ComparisonItem]:
    """
    Greedy one-to-one alignment of therapist items against AI items.

    Each therapist item claims the most similar AI item still unclaimed (the
    earliest one wins a tie). A claim at or above ``threshold`` is aligned;
    otherwise the therapist item is therapist_only. Unclaimed AI items come
    last as ai_only. Items may be plain strings or dicts holding
    ``text_field``.
    """
    results: list[ComparisonItem] = []
    matched: set[int] = set()

    for therapist_item in therapist_items:
        therapist_text = _item_text(therapist_item, text_field)

        best_index = -1
        best_similarity = 0.0
        for index, ai_item in enumerate(ai_items):
            if index in matched:
                continue
            similarity = calculate_similarity(therapist_text, _item_text(ai_item, text_field))
            if similarity > best_similarity:
                best_similarity = similarity
                best_index = index

        if best_index != -1 and best_similarity >= threshold:
            matched.add(best_index)
            results.append(
                ComparisonItem(
                    therapist=therapist_item,
                    ai=ai_items[best_index],
                    alignment=Alignment.ALIGNED,
                    similarity=round(best_similarity, 4),
                )
            )
        else:
            results.append(
                ComparisonItem(
                    therapist=therapist_item,
                    alignment=Alignment.THERAPIST_ONLY,
                    similarity=round(best_similarity, 4) if best_index != -1 else None,
                )
            )

    for index, ai_item in enumerate(ai_items):
        if index not in matched:
            results.append(ComparisonItem(ai=ai_item, alignment=Alignment.AI_ONLY))

    return results


# =============================================================================
# RISK
# =============================================================================

def _highest_ai_severity(ai_risks: list[dict]) -> ClinicalRiskLevel:
    severities = []
    for risk in ai_risks:
        value = risk.get("severity") if isinstance(risk, dict) else None
        if isinstance(value, str) and value.upper() in ClinicalSeverity.__members__:
            severities.append(ClinicalSeverity(value.upper()))
    if not severities:
        return ClinicalRiskLevel.NONE
    return ClinicalRiskLevel(min(severities, key=SEVERITY_RANK.__getitem__).value)


def compare_risks(therapist_risks: Optional[dict], ai_risks: list[dict]) -> RiskComparison:
    """
    Rule-based comparison of the therapist's risk level against AI-detected
    risks. Rules apply in order, first match wins:

    - therapist NONE, AI found something: ai_detected_risk
    - therapist flagged risk, AI found nothing: therapist_detected_risk
    - therapist HIGH, no AI HIGH: severity_mismatch
    - therapist MODERATE, no AI MODERATE or HIGH: severity_mismatch
    - otherwise: aligned
    """
    therapist_level = to_clinical_risk_level((therapist_risks or {}).get("level"))
    ai_highest = _highest_ai_severity(ai_risks)

    has_high = ai_highest == ClinicalRiskLevel.HIGH
    has_moderate_or_high = ai_highest in (ClinicalRiskLevel.HIGH, ClinicalRiskLevel.MODERATE)

    if therapist_level == ClinicalRiskLevel.NONE and ai_risks:
        alignment = RiskAlignment.AI_DETECTED_RISK
    elif therapist_level != ClinicalRiskLevel.NONE and not ai_risks:
        alignment = RiskAlignment.THERAPIST_DETECTED_RISK
    elif therapist_level == ClinicalRiskLevel.HIGH and not has_high:
        alignment = RiskAlignment.SEVERITY_MISMATCH
    elif therapist_level == ClinicalRiskLevel.MODERATE and not has_moderate_or_high:
        alignment = RiskAlignment.SEVERITY_MISMATCH
    else:
        alignment = RiskAlignment.ALIGNED

    return RiskComparison(
        therapist=therapist_risks,
        ai=list(ai_risks),
        therapist_level=therapist_level,
        ai_highest_severity=ai_highest,
        alignment=alignment,
    )


# =============================================================================
# SESSION COMPARISON + STATS
# =============================================================================

def _as_list(value) -> list:
    return value if isinstance(value, list) else []


def compare_session(impressions, analysis, thresholds: Optional[dict[str, float]] = None) -> ComparisonResult:
    """Compare a session's TherapistImpressions against its AIAnalysis."""
    thresholds = {**DEFAULT_THRESHOLDS, **(thresholds or {})}

    return ComparisonResult(
        concerns=compare_items(
            _as_list(impressions.concerns), _as_list(analysis.concerns), "text", thresholds["concerns"]
        ),
        themes=compare_items(
            _as_list(impressions.themes), _as_list(analysis.themes), "text", thresholds["themes"]
        ),
        goals=compare_items(
            _as_list(impressions.goals), _as_list(analysis.goals), "text", thresholds["goals"]
        ),
        strengths=compare_items(
            _as_list(impressions.strengths), _as_list(analysis.strengths), "text", thresholds["strengths"]
        ),
        interventions=_as_list(analysis.interventions),
        homework=_as_list(analysis.homework),
        risk_assessment=compare_risks(impressions.risk_observations, _as_list(analysis.risk_indicators)),
    )


def _category_stats(items: Iterable[ComparisonItem]) -> CategoryStats:
    stats = CategoryStats()
    for item in items:
        if item.alignment == Alignment.ALIGNED:
            stats.aligned += 1
        elif item.alignment == Alignment.AI_ONLY:
            stats.ai_only += 1
        elif item.alignment == Alignment.THERAPIST_ONLY:
            stats.therapist_only += 1
    return stats


def compute_stats(result: ComparisonResult) -> ComparisonStats:
    """Per-category counts plus overall alignment as a 0-100 percentage."""
    per_category = {name: _category_stats(getattr(result, name)) for name in SIMILARITY_CATEGORIES}

    aligned = sum(s.aligned for s in per_category.values())
    total = sum(s.total for s in per_category.values())
    # Half-up rounding, so 62.5 reports as 63
    overall = math.floor(100 * aligned / total + 0.5) if total else 0

    return ComparisonStats(**per_category, overall_alignment=overall)


# =============================================================================
# SELECTION LIST (plan merge)
# =============================================================================

def _selection_key(text: str) -> str:
    return text.lower().strip()


def _severity_for_selection(value) -> Optional[str]:
    if not isinstance(value, str):
        return None
    try:
        return to_clinical_severity(value.strip().lower()).value
    except ValueError:
        return None


def _selection_item(item: Any, source: ItemSource) -> SelectionItem:
    if isinstance(item, str):
        return SelectionItem(text=item, source=source)
    return SelectionItem(
        text=_item_text(item, "text"),
        source=source,
        severity=_severity_for_selection(item.get("severity")),
        timeline=item.get("timeline"),
    )


def merge_for_selection(therapist_items: list, ai_items: list) -> list[SelectionItem]:
    """
    Exact-match merge: a therapist item whose lowercased, trimmed text equals
    an AI item's is shown once as ``both``.
    """
    ai_keys = {_selection_key(_item_text(item, "text")) for item in ai_items}
    claimed: set[str] = set()
    merged: list[SelectionItem] = []

    for item in therapist_items:
        key = _selection_key(_item_text(item, "text"))
        if key in ai_keys:
            merged.append(_selection_item(item, ItemSource.BOTH))
            claimed.add(key)
        else:
            merged.append(_selection_item(item, ItemSource.THERAPIST))

    for item in ai_items:
        if _selection_key(_item_text(item, "text")) not in claimed:
            merged.append(_selection_item(item, ItemSource.AI))

    return merged


def build_selection_list(impressions, analysis) -> SelectionList:
    """Pick list for plan merging. Interventions and homework are AI-only."""
    return SelectionList(
        concerns=merge_for_selection(_as_list(impressions.concerns), _as_list(analysis.concerns)),
        themes=merge_for_selection(_as_list(impressions.themes), _as_list(analysis.themes)),
        goals=merge_for_selection(_as_list(impressions.goals), _as_list(analysis.goals)),
        strengths=merge_for_selection(_as_list(impressions.strengths), _as_list(analysis.strengths)),
        interventions=[
            SelectionItem(text=i.get("name", ""), source=ItemSource.AI, rationale=i.get("rationale"))
            for i in _as_list(analysis.interventions)
            if isinstance(i, dict)
        ],
        homework=[
            SelectionItem(text=h.get("task", ""), source=ItemSource.AI, rationale=h.get("rationale"))
            for h in _as_list(analysis.homework)
            if isinstance(h, dict)
        ],
    )
