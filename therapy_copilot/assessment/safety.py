"""
Safety Risk Detection

Two-stage risk screen over a session transcript:

1. Keyword scan: deterministic, always runs. Every occurrence of a trigger
   phrase becomes a MODERATE-severity hit, since presence alone says nothing
   about intent.
2. Contextual assessment: the LLM grades risk in context (past history vs.
   current intent, passive thoughts vs. plans). If this stage fails for any
   reason the report is marked degraded and the keyword hits stand alone.

The two lists are then merged (AI first, so AI severity wins a tie),
deduplicated on a normalized excerpt key and ranked HIGH > MODERATE > LOW.
"""

import logging
import re
from typing import Optional

from pydantic import ValidationError

from therapy_copilot.llm.prompts import (
    RISK_ASSESSMENT_SYSTEM,
    RISK_ASSESSMENT_USER,
    RISK_KEYWORD_HINT_HEADER,
    RISK_NO_KEYWORDS_HINT,
)
from therapy_copilot.schemas.risk import (
    ContextualRisk,
    KeywordMatch,
    RiskDetection,
    RiskDetectionReport,
    RiskSummary,
    RiskType,
)
from therapy_copilot.schemas.severity import ClinicalRiskLevel, ClinicalSeverity, SEVERITY_RANK

logger = logging.getLogger(__name__)


RISK_KEYWORDS: dict[RiskType, list[str]] = {
    RiskType.SUICIDAL_IDEATION: [
        "kill myself",
        "end my life",
        "suicide",
        "suicidal",
        "want to die",
        "better off dead",
        "no reason to live",
        "not worth living",
        "take my own life",
        "end it all",
    ],
    RiskType.SELF_HARM: [
        "cut myself",
        "hurt myself",
        "self-harm",
        "self harm",
        "cutting",
        "burning myself",
        "harm my body",
    ],
    RiskType.HARM_TO_OTHERS: [
        "hurt someone",
        "kill someone",
        "harm others",
        "violent thoughts",
        "want to hurt",
        "attack",
        "make them pay",
    ],
    RiskType.SUBSTANCE_CRISIS: [
        "overdose",
        "using again",
        "relapse",
        "can't stop drinking",
        "can't stop using",
        "too much",
        "blackout",
    ],
}

DEFAULT_CONTEXT_CHARS = 100
DEDUP_KEY_LENGTH = 50

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def scan_for_keywords(transcript: str, context_chars: int = DEFAULT_CONTEXT_CHARS) -> list[KeywordMatch]:
    """
    Find every occurrence of every trigger phrase.

    Matching is case-insensitive. Each hit keeps ``context_chars`` characters
    on either side; a side that stops short of the transcript boundary gets
    a ``...`` marker. Results are ordered by position in the transcript.
    """
    matches: list[KeywordMatch] = []

    for risk_type, keywords in RISK_KEYWORDS.items():
        for keyword in keywords:
            # Match on the transcript itself so positions index the original text
            for hit in re.finditer(re.escape(keyword), transcript, re.IGNORECASE):
                position = hit.start()
                start = max(0, position - context_chars)
                end = min(len(transcript), hit.end() + context_chars)
                excerpt = transcript[start:end].strip()
                if start > 0:
                    excerpt = f"...{excerpt}"
                if end < len(transcript):
                    excerpt = f"{excerpt}..."

                matches.append(
                    KeywordMatch(type=risk_type, keyword=keyword, excerpt=excerpt, position=position)
                )

    # sort() is stable, so hits at the same position keep taxonomy order
    matches.sort(key=lambda m: m.position)
    return matches


def has_risk_keywords(transcript: str) -> bool:
    """Quick check used to flag a transcript before full analysis."""
    return bool(scan_for_keywords(transcript))


def _dedup_key(excerpt: str) -> str:
    return _NON_ALNUM.sub("", excerpt.lower())[:DEDUP_KEY_LENGTH]


def merge_risks(ai_risks: list[RiskDetection], keyword_risks: list[RiskDetection]) -> list[RiskDetection]:
    """Deduplicate on normalized excerpt, AI entries first, then rank by severity."""
    unique: list[RiskDetection] = []
    seen: set[str] = set()

    for risk in [*ai_risks, *keyword_risks]:
        key = _dedup_key(risk.excerpt)
        if key in seen:
            continue
        seen.add(key)
        unique.append(risk)

    unique.sort(key=lambda r: SEVERITY_RANK[r.severity])
    return unique


def _keyword_hint(matches: list[KeywordMatch]) -> str:
    if not matches:
        return RISK_NO_KEYWORDS_HINT
    lines = [f'- "{m.keyword}" in context: {m.excerpt}' for m in matches]
    return RISK_KEYWORD_HINT_HEADER + "\n".join(lines)


class RiskDetector:
    """Keyword scan plus LLM contextual assessment."""

    def __init__(self, llm, context_chars: int = DEFAULT_CONTEXT_CHARS):
        self.llm = llm
        self.context_chars = context_chars

    async def analyze_context(
        self,
        transcript: str,
        keyword_matches: list[KeywordMatch],
    ) -> list[RiskDetection]:
        """
        Ask the LLM for a contextual risk assessment.

        The model may answer with a bare array or ``{"risks": [...]}``.
        Missing fields fall back to type "unknown" and MODERATE severity.
        Raises on transport or parse failure; ``detect`` handles that.
        """
        messages = [
            {"role": "system", "content": RISK_ASSESSMENT_SYSTEM},
            {
                "role": "user",
                "content": RISK_ASSESSMENT_USER.format(
                    transcript=transcript,
                    keyword_summary=_keyword_hint(keyword_matches),
                ),
            },
        ]
        parsed = await self.llm.complete_json(messages, temperature=0.2)

        if isinstance(parsed, list):
            items = parsed
        elif isinstance(parsed, dict) and isinstance(parsed.get("risks"), list):
            items = parsed["risks"]
        else:
            items = []

        risks: list[RiskDetection] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            try:
                contextual = ContextualRisk.model_validate(item)
            except ValidationError as e:
                logger.warning(f"Skipping malformed contextual risk item: {e}")
                continue
            risks.append(
                RiskDetection(
                    type=contextual.type,
                    severity=contextual.severity,
                    excerpt=contextual.excerpt,
                )
            )
        return risks

    async def detect(self, transcript: str) -> RiskDetectionReport:
        """Run both stages and return the merged, ranked risk list."""
        keyword_matches = scan_for_keywords(transcript, self.context_chars)

        degraded = False
        try:
            ai_risks = await self.analyze_context(transcript, keyword_matches)
        except Exception as e:
            # Keyword hits are still reported; the workflow must not block here
            logger.warning(f"Contextual risk assessment failed, using keyword scan only: {e}")
            ai_risks = []
            degraded = True

        keyword_risks = [
            RiskDetection(
                type=m.type.value,
                severity=ClinicalSeverity.MODERATE,
                excerpt=m.excerpt,
                keyword=m.keyword,
            )
            for m in keyword_matches
        ]

        risks = merge_risks(ai_risks, keyword_risks)
        logger.info(
            f"Risk detection: {len(keyword_matches)} keyword hits, {len(ai_risks)} contextual, "
            f"{len(risks)} after merge (degraded={degraded})"
        )
        return RiskDetectionReport(risks=risks, degraded=degraded)


async def detect_risks(transcript: str, llm, context_chars: Optional[int] = None) -> list[RiskDetection]:
    """Convenience wrapper returning only the ranked risk list."""
    detector = RiskDetector(llm, context_chars or DEFAULT_CONTEXT_CHARS)
    report = await detector.detect(transcript)
    return report.risks


def get_risk_summary(risks: list[RiskDetection]) -> RiskSummary:
    by_type: dict[str, int] = {}
    by_severity: dict[str, int] = {"LOW": 0, "MODERATE": 0, "HIGH": 0}

    for risk in risks:
        by_type[risk.type] = by_type.get(risk.type, 0) + 1
        by_severity[risk.severity.value] += 1

    highest = ClinicalRiskLevel.NONE
    for level in (ClinicalSeverity.HIGH, ClinicalSeverity.MODERATE, ClinicalSeverity.LOW):
        if by_severity[level.value] > 0:
            highest = ClinicalRiskLevel(level.value)
            break

    return RiskSummary(
        total=len(risks),
        by_type=by_type,
        by_severity=by_severity,
        highest_severity=highest,
    )
