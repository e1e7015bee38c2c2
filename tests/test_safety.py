"""
Tests for Safety Risk Detection

Keyword scan, contextual stage (mocked LLM), merge/dedup and summary.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from therapy_copilot.assessment.safety import (
    RISK_KEYWORDS,
    RiskDetector,
    detect_risks,
    get_risk_summary,
    has_risk_keywords,
    merge_risks,
    scan_for_keywords,
)
from therapy_copilot.schemas.risk import RiskDetection, RiskType
from therapy_copilot.schemas.severity import ClinicalRiskLevel, ClinicalSeverity


def _llm(return_value=None, side_effect=None):
    llm = MagicMock()
    llm.complete_json = AsyncMock(return_value=return_value, side_effect=side_effect)
    return llm


class TestKeywordScan:
    """Tests for the deterministic keyword pass."""

    def test_taxonomy_has_four_categories(self):
        assert set(RISK_KEYWORDS) == {
            RiskType.SUICIDAL_IDEATION,
            RiskType.SELF_HARM,
            RiskType.HARM_TO_OTHERS,
            RiskType.SUBSTANCE_CRISIS,
        }

    def test_no_keywords(self):
        assert scan_for_keywords("We talked about the weekend and her new job.") == []
        assert has_risk_keywords("We talked about the weekend.") is False

    def test_every_occurrence_is_found(self):
        transcript = "I had a relapse in May. " + ("Filler sentence here. " * 20) + "Another relapse last week."
        matches = [m for m in scan_for_keywords(transcript) if m.keyword == "relapse"]

        assert len(matches) == 2
        assert matches[0].position < matches[1].position
        assert all(m.type == RiskType.SUBSTANCE_CRISIS for m in matches)

    def test_case_insensitive(self):
        matches = scan_for_keywords("Sometimes I think about SUICIDE.")
        assert [m.keyword for m in matches] == ["suicide"]

    def test_context_window_bounds(self):
        transcript = ("a" * 300) + " want to die " + ("b" * 300)
        match = scan_for_keywords(transcript)[0]

        assert match.excerpt.startswith("...")
        assert match.excerpt.endswith("...")
        window = match.excerpt[3:-3]
        assert len(window) <= 200 + len("want to die")
        assert "want to die" in window

    def test_ellipsis_only_on_truncated_side(self):
        transcript = "I want to die" + (" and more words" * 20)
        match = scan_for_keywords(transcript)[0]

        assert not match.excerpt.startswith("...")
        assert match.excerpt.endswith("...")

    def test_short_transcript_has_no_ellipsis(self):
        match = scan_for_keywords("I want to hurt myself.")[0]
        assert "..." not in match.excerpt

    def test_sorted_by_position(self):
        transcript = "I had a blackout. Later I said I want to die."
        matches = scan_for_keywords(transcript)
        positions = [m.position for m in matches]
        assert positions == sorted(positions)
        assert matches[0].keyword == "blackout"

    def test_custom_context_size(self):
        transcript = ("x" * 50) + "overdose" + ("y" * 50)
        match = scan_for_keywords(transcript, context_chars=10)[0]
        assert match.excerpt == "..." + "x" * 10 + "overdose" + "y" * 10 + "..."

    def test_positions_index_original_text(self):
        # "İ" lowercases to two characters; positions must still index the transcript
        transcript = "İstanbul trip. " * 3 + "I want to die"
        match = scan_for_keywords(transcript)[0]

        assert transcript[match.position:match.position + len("want to die")] == "want to die"
        assert match.excerpt == transcript


class TestMergeRisks:
    """Tests for dedup and severity ranking."""

    def test_ai_wins_duplicate_excerpt(self):
        ai = [RiskDetection(type="suicidal_ideation", severity=ClinicalSeverity.HIGH, excerpt="I want to die!")]
        keyword = [
            RiskDetection(
                type="suicidal_ideation",
                severity=ClinicalSeverity.MODERATE,
                excerpt="i want to die",
                keyword="want to die",
            )
        ]

        merged = merge_risks(ai, keyword)
        assert len(merged) == 1
        assert merged[0].severity == ClinicalSeverity.HIGH
        assert merged[0].keyword is None

    def test_dedup_key_uses_first_50_chars(self):
        prefix = "x" * 50
        risks = [
            RiskDetection(type="self_harm", severity=ClinicalSeverity.MODERATE, excerpt=prefix + "one"),
            RiskDetection(type="self_harm", severity=ClinicalSeverity.MODERATE, excerpt=prefix + "two"),
        ]
        assert len(merge_risks([], risks)) == 1

    def test_sorted_high_to_low(self):
        risks = [
            RiskDetection(type="a", severity=ClinicalSeverity.LOW, excerpt="one"),
            RiskDetection(type="b", severity=ClinicalSeverity.HIGH, excerpt="two"),
            RiskDetection(type="c", severity=ClinicalSeverity.MODERATE, excerpt="three"),
        ]
        merged = merge_risks(risks, [])
        assert [r.severity for r in merged] == [
            ClinicalSeverity.HIGH,
            ClinicalSeverity.MODERATE,
            ClinicalSeverity.LOW,
        ]


class TestRiskDetector:
    """Tests for the combined pipeline."""

    @pytest.mark.asyncio
    async def test_no_risk_anywhere(self):
        llm = _llm(return_value=[])

        risks = await detect_risks("We discussed her garden and upcoming holiday.", llm)

        assert risks == []
        assert get_risk_summary(risks).highest_severity == ClinicalRiskLevel.NONE

    @pytest.mark.asyncio
    async def test_accepts_object_with_risks_key(self):
        llm = _llm(return_value={
            "risks": [
                {
                    "type": "suicidal ideation",
                    "severity": "HIGH",
                    "excerpt": "I have a plan for Friday",
                    "reasoning": "Specific plan",
                }
            ]
        })

        report = await RiskDetector(llm).detect("Client said: I have a plan for Friday.")

        assert report.degraded is False
        assert len(report.risks) == 1
        assert report.risks[0].type == "suicidal_ideation"
        assert report.risks[0].severity == ClinicalSeverity.HIGH

    @pytest.mark.asyncio
    async def test_missing_fields_get_defaults(self):
        llm = _llm(return_value=[{"excerpt": "things feel heavy"}])

        report = await RiskDetector(llm).detect("Client: things feel heavy lately.")

        assert report.risks[0].type == "unknown"
        assert report.risks[0].severity == ClinicalSeverity.MODERATE

    @pytest.mark.asyncio
    async def test_keyword_prompt_hint(self):
        llm = _llm(return_value=[])

        await RiskDetector(llm).detect("Sometimes I want to die.")

        messages = llm.complete_json.call_args[0][0]
        assert messages[0]["role"] == "system"
        assert "Keyword matches found" in messages[1]["content"]
        assert '"want to die"' in messages[1]["content"]

    @pytest.mark.asyncio
    async def test_contextual_failure_degrades_to_keywords(self):
        llm = _llm(side_effect=ValueError("Empty response from model"))

        report = await RiskDetector(llm).detect("Last month I thought about how to end my life.")

        assert report.degraded is True
        assert len(report.risks) == 1
        assert report.risks[0].keyword == "end my life"
        assert report.risks[0].severity == ClinicalSeverity.MODERATE

    @pytest.mark.asyncio
    async def test_ai_and_keyword_hits_both_kept_when_excerpts_differ(self):
        transcript = "I keep cutting myself when stressed."
        llm = _llm(return_value=[
            {"type": "self_harm", "severity": "HIGH", "excerpt": "cutting myself when stressed"}
        ])

        risks = await detect_risks(transcript, llm)

        assert risks[0].severity == ClinicalSeverity.HIGH
        assert risks[0].keyword is None
        assert any(r.keyword == "cutting" for r in risks)


class TestRiskSummary:
    def test_summary_counts(self):
        risks = [
            RiskDetection(type="self_harm", severity=ClinicalSeverity.MODERATE, excerpt="a"),
            RiskDetection(type="self_harm", severity=ClinicalSeverity.LOW, excerpt="b"),
            RiskDetection(type="substance_crisis", severity=ClinicalSeverity.MODERATE, excerpt="c"),
        ]

        summary = get_risk_summary(risks)

        assert summary.total == 3
        assert summary.by_type == {"self_harm": 2, "substance_crisis": 1}
        assert summary.by_severity == {"LOW": 1, "MODERATE": 2, "HIGH": 0}
        assert summary.highest_severity == ClinicalRiskLevel.MODERATE

    def test_empty_summary(self):
        summary = get_risk_summary([])
        assert summary.total == 0
        assert summary.by_severity == {"LOW": 0, "MODERATE": 0, "HIGH": 0}
        assert summary.highest_severity == ClinicalRiskLevel.NONE
