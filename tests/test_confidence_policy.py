"""Tests for the confidence and compliance policy.

Covers:
- Confidence extraction (explicit, parsed from narrative, missing)
- Clamping
- The exclusive compliance threshold
- Findings splitting
- Recommendations and status mapping
- Fallback decision

Author: AgriMRV Platform Team
Date: October 2026
Status: Production Ready
"""

import pytest

from agrimrv.confidence_policy import (
    FALLBACK_FINDING,
    REMEDIATION_CHECKLIST,
    clamp_confidence,
    evaluate_analysis,
    extract_confidence,
    fallback_decision,
    is_compliant,
    parse_confidence,
    resolve_status,
    split_findings,
)
from agrimrv.exceptions import AnalysisFailure
from agrimrv.models import AnalyzerOutput, VerificationStatus


# ==============================================================================
# Confidence extraction
# ==============================================================================

class TestConfidenceExtraction:
    """Reading and clamping confidence scores."""

    @pytest.mark.parametrize("text,expected", [
        ("Findings...\nConfidence: 82", 82.0),
        ("The confidence score of 67.5% reflects clear evidence", 67.5),
        ("confidence level is 91", 91.0),
        ("Overall rating 73/100", 73.0),
    ])
    def test_parse_from_narrative(self, text, expected):
        assert parse_confidence(text) == expected

    def test_parse_returns_none_without_score(self):
        assert parse_confidence("Healthy crop, no issues observed") is None
        assert parse_confidence("") is None

    def test_explicit_confidence_wins_over_narrative(self):
        output = AnalyzerOutput(narrative="Confidence: 20", confidence=88)

        assert extract_confidence(output) == 88.0

    @pytest.mark.parametrize("raw,expected", [(-5, 0.0), (150, 100.0), (42.5, 42.5)])
    def test_clamp(self, raw, expected):
        assert clamp_confidence(raw) == expected

    def test_out_of_range_narrative_score_is_clamped(self):
        assert extract_confidence(AnalyzerOutput(narrative="Confidence: 140")) == 100.0


# ==============================================================================
# Building blocks
# ==============================================================================

class TestThresholds:
    """Compliance and status rules."""

    def test_compliance_threshold_is_exclusive(self):
        assert is_compliant(75.0) is False
        assert is_compliant(75.01) is True

    def test_status_mapping(self):
        assert resolve_status(True) == VerificationStatus.VERIFIED
        assert resolve_status(False) == VerificationStatus.PENDING_REVIEW


class TestSplitFindings:
    """Narrative -> findings."""

    def test_strips_blank_lines_and_whitespace(self):
        narrative = "  first  \n\n\tsecond\n   \nthird"

        assert split_findings(narrative) == ["first", "second", "third"]

    def test_caps_at_five(self):
        narrative = "\n".join(f"finding {i}" for i in range(9))

        assert split_findings(narrative) == [f"finding {i}" for i in range(5)]

    def test_custom_cap(self):
        assert split_findings("a\nb\nc", max_findings=2) == ["a", "b"]


# ==============================================================================
# Decisions
# ==============================================================================

class TestEvaluateAnalysis:
    """Full interpretation of analyzer output."""

    def test_compliant_output_is_verified_without_recommendations(self):
        decision = evaluate_analysis(AnalyzerOutput(
            narrative="Uniform canopy\nConfidence: 76", confidence=76,
        ))

        assert decision.compliance is True
        assert decision.status == VerificationStatus.VERIFIED
        assert decision.recommendations == []
        assert decision.findings == ["Uniform canopy", "Confidence: 76"]

    def test_boundary_75_needs_review_with_checklist(self):
        decision = evaluate_analysis(AnalyzerOutput(narrative="Patchy", confidence=75))

        assert decision.compliance is False
        assert decision.status == VerificationStatus.PENDING_REVIEW
        assert decision.recommendations == list(REMEDIATION_CHECKLIST)

    def test_low_confidence_goes_to_review(self):
        decision = evaluate_analysis(AnalyzerOutput(narrative="Confidence: 12"))

        assert decision.confidence == 12.0
        assert decision.compliance is False
        assert decision.status == VerificationStatus.PENDING_REVIEW

    def test_analyzer_recommendations_are_kept(self):
        decision = evaluate_analysis(AnalyzerOutput(
            narrative="Flooded field", confidence=55,
            recommendations=["Drain field mid-season", "  "],
            carbon_impact=1.4,
        ))

        assert decision.recommendations == ["Drain field mid-season"]
        assert decision.carbon_impact == 1.4

    def test_missing_confidence_is_malformed(self):
        with pytest.raises(AnalysisFailure) as exc_info:
            evaluate_analysis(AnalyzerOutput(narrative="Looks fine"))

        assert exc_info.value.reason == "malformed"

    def test_to_analysis_projection(self):
        decision = evaluate_analysis(AnalyzerOutput(narrative="x", confidence=95))
        analysis = decision.to_analysis()

        assert analysis.confidence == 95.0
        assert analysis.compliance is True
        assert analysis.findings == ["x"]


class TestFallbackDecision:
    """Decision applied when analysis fails."""

    def test_fallback_defaults(self):
        decision = fallback_decision()

        assert decision.confidence == 50.0
        assert decision.compliance is False
        assert decision.findings == [FALLBACK_FINDING]
        assert decision.recommendations == []
        assert decision.status == VerificationStatus.PENDING_REVIEW
