# -*- coding: utf-8 -*-
"""
Confidence & Compliance Policy

Pure functions turning raw analyzer output into the decision applied to a
verification record. Nothing here touches storage, the clock or the
network, so every rule can be exercised with synthetic analyzer outputs.

Rules:
    - Confidence comes from the analyzer's explicit score when present,
      otherwise it is read from the narrative ("Confidence: 82",
      "confidence score of 82%", "82/100"). Output with no confidence at
      all is malformed. Scores are clamped to [0, 100].
    - ``compliance = confidence > compliance_threshold`` (75, exclusive).
    - Findings are the non-blank narrative lines, stripped, first five.
    - Non-compliant decisions carry the remediation checklist unless the
      analyzer supplied its own recommendations.
    - Status: compliant -> verified, otherwise pending_review. The
      pipeline never rejects evidence on its own.

Example:
    >>> from agrimrv.models import AnalyzerOutput
    >>> decision = evaluate_analysis(AnalyzerOutput(narrative="ok", confidence=76))
    >>> decision.compliance, decision.status.value
    (True, 'verified')

Author: AgriMRV Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional

from agrimrv.exceptions import AnalysisFailure
from agrimrv.models import AnalyzerOutput, PolicyDecision, VerificationStatus

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_COMPLIANCE_THRESHOLD = 75.0
DEFAULT_FALLBACK_CONFIDENCE = 50.0
DEFAULT_MAX_FINDINGS = 5

REMEDIATION_CHECKLIST = (
    "Consider reviewing irrigation schedule",
    "Check fertilizer application",
)

FALLBACK_FINDING = "Automated analysis temporarily unavailable"

# Ordered from most to least specific.
_CONFIDENCE_PATTERNS = (
    re.compile(
        r"confidence(?:\s+(?:score|level))?\s*(?:of|is|[:=])?\s*(\d{1,3}(?:\.\d+)?)\s*%?",
        re.IGNORECASE,
    ),
    re.compile(r"(\d{1,3}(?:\.\d+)?)\s*(?:/\s*100|%\s*confiden)", re.IGNORECASE),
)


# ---------------------------------------------------------------------------
# Building blocks
# ---------------------------------------------------------------------------


def clamp_confidence(value: float) -> float:
    """Clamp a confidence score into [0, 100]."""
    return max(0.0, min(100.0, float(value)))


def parse_confidence(narrative: str) -> Optional[float]:
    """Read a confidence score from free text, or None if there is none."""
    if not narrative:
        return None
    for pattern in _CONFIDENCE_PATTERNS:
        match = pattern.search(narrative)
        if match:
            return float(match.group(1))
    return None


def extract_confidence(output: AnalyzerOutput) -> Optional[float]:
    """Return the clamped confidence of an analyzer output, or None."""
    raw = output.confidence
    if raw is None:
        raw = parse_confidence(output.narrative)
    if raw is None:
        return None
    return clamp_confidence(raw)


def split_findings(narrative: str, max_findings: int = DEFAULT_MAX_FINDINGS) -> List[str]:
    """Split a narrative into stripped, non-blank lines, keeping the first few."""
    if not narrative:
        return []
    lines = [line.strip() for line in narrative.splitlines()]
    return [line for line in lines if line][:max_findings]


def is_compliant(confidence: float, threshold: float = DEFAULT_COMPLIANCE_THRESHOLD) -> bool:
    """Compliance holds strictly above the threshold."""
    return confidence > threshold


def resolve_status(compliance: bool) -> VerificationStatus:
    """Map a scored analysis onto its post-analysis status.

    ``rejected`` is reserved for manual escalation by a reviewer.
    """
    if compliance:
        return VerificationStatus.VERIFIED
    return VerificationStatus.PENDING_REVIEW


# ---------------------------------------------------------------------------
# Decisions
# ---------------------------------------------------------------------------


def evaluate_analysis(
    output: AnalyzerOutput,
    compliance_threshold: float = DEFAULT_COMPLIANCE_THRESHOLD,
    max_findings: int = DEFAULT_MAX_FINDINGS,
) -> PolicyDecision:
    """Interpret raw analyzer output.

    Args:
        output: Raw analyzer output.
        compliance_threshold: Confidence strictly above which the evidence
            is compliant.
        max_findings: Maximum findings kept.

    Returns:
        PolicyDecision to apply to the record.

    Raises:
        AnalysisFailure: If the output carries no confidence score.
    """
    confidence = extract_confidence(output)
    if confidence is None:
        raise AnalysisFailure(
            "Analyzer output contains no confidence score", reason="malformed",
        )

    compliance = is_compliant(confidence, compliance_threshold)
    supplied = [r.strip() for r in (output.recommendations or []) if r and r.strip()]
    if supplied:
        recommendations = supplied
    elif not compliance:
        recommendations = list(REMEDIATION_CHECKLIST)
    else:
        recommendations = []

    return PolicyDecision(
        confidence=confidence,
        compliance=compliance,
        findings=split_findings(output.narrative, max_findings),
        recommendations=recommendations,
        carbon_impact=output.carbon_impact,
        status=resolve_status(compliance),
    )


def fallback_decision(confidence: float = DEFAULT_FALLBACK_CONFIDENCE) -> PolicyDecision:
    """Decision applied when analysis fails for any reason.

    Always non-compliant and always routed to manual review.
    """
    return PolicyDecision(
        confidence=clamp_confidence(confidence),
        compliance=False,
        findings=[FALLBACK_FINDING],
        recommendations=[],
        carbon_impact=None,
        status=VerificationStatus.PENDING_REVIEW,
    )


__all__ = [
    "REMEDIATION_CHECKLIST",
    "FALLBACK_FINDING",
    "clamp_confidence",
    "parse_confidence",
    "extract_confidence",
    "split_findings",
    "is_compliant",
    "resolve_status",
    "evaluate_analysis",
    "fallback_decision",
]
