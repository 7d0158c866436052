# -*- coding: utf-8 -*-
"""
Image Analyzer Clients

The vision model is an external collaborator reached through
``ImageAnalyzer.analyze(image_url, practice_type, verification_type)``.
Two implementations are provided:

- ``VisionChatAnalyzer``: calls an OpenAI-compatible ``/chat/completions``
  endpoint with the evidence image and a structured compliance prompt.
- ``MockImageAnalyzer``: deterministic SHA-256 seeded output for
  development mode (``use_mock_analyzer``), so the same image always
  yields the same narrative and confidence.

Analyzer implementations raise ``AnalysisFailure`` (or any exception) on
error. The verification engine converts every failure into the fallback
decision.

Example:
    >>> analyzer = MockImageAnalyzer()
    >>> out = analyzer.analyze("https://files/img.jpg", "SRI", "crop_stage")
    >>> 60 <= out.confidence <= 99
    True

Author: AgriMRV Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import hashlib
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import requests

from agrimrv.config import get_config
from agrimrv.exceptions import AnalysisFailure
from agrimrv.models import AnalyzerOutput

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------

_ASSESSMENT_CHECKLIST = (
    "Compliance with sustainable farming practices",
    "Crop health and growth stage",
    "Evidence of proper irrigation/fertilizer use",
    "Any signs of pest/disease issues",
    "Overall sustainability indicators",
)


def build_analysis_prompt(practice_type: str, verification_type: str) -> str:
    """Build the compliance assessment prompt for one piece of evidence.

    The prompt asks for one finding per line and an explicit
    ``Confidence: <0-100>`` line so the policy can read the score.
    """
    practice = getattr(practice_type, "value", practice_type)
    verification = getattr(verification_type, "value", verification_type)
    lines = [
        f"Analyze this agricultural image for {practice} farming compliance.",
        "",
        f"Verification type: {verification}",
        f"Practice type: {practice}",
        "",
        "Please assess:",
    ]
    lines.extend(f"{i}. {item}" for i, item in enumerate(_ASSESSMENT_CHECKLIST, start=1))
    lines.extend([
        "",
        "Provide a confidence score (0-100) and specific findings.",
        "Write each finding on its own line and finish with a line of the form "
        "'Confidence: <score>'.",
    ])
    return "\n".join(lines)


# =============================================================================
# Interface
# =============================================================================


class ImageAnalyzer(ABC):
    """Vision analysis of a single evidence image."""

    @abstractmethod
    def analyze(
        self,
        image_url: str,
        practice_type: str,
        verification_type: str,
    ) -> AnalyzerOutput:
        """Analyze an image and return the raw analyzer output."""


# =============================================================================
# VisionChatAnalyzer
# =============================================================================


class VisionChatAnalyzer(ImageAnalyzer):
    """Analyzer backed by an OpenAI-compatible chat completions endpoint.

    Attributes:
        base_url: Endpoint base URL (``.../v1``).
        model: Vision model name.
        max_tokens: Completion token budget.
        timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
        config: Any = None,
    ) -> None:
        cfg = config or get_config()
        self.base_url = (base_url or cfg.analyzer_base_url).rstrip("/")
        self.api_key = api_key if api_key is not None else cfg.analyzer_api_key
        self.model = model or cfg.analyzer_model
        self.max_tokens = max_tokens or cfg.analyzer_max_tokens
        self.timeout = timeout or cfg.analyzer_timeout_seconds
        self.session = session or requests.Session()
        logger.info(
            "VisionChatAnalyzer initialized: %s model=%s timeout=%.1fs",
            self.base_url, self.model, self.timeout,
        )

    def _build_payload(
        self,
        image_url: str,
        practice_type: str,
        verification_type: str,
    ) -> Dict[str, Any]:
        return {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "text",
                            "text": build_analysis_prompt(practice_type, verification_type),
                        },
                        {"type": "image_url", "image_url": {"url": image_url}},
                    ],
                },
            ],
        }

    def analyze(
        self,
        image_url: str,
        practice_type: str,
        verification_type: str,
    ) -> AnalyzerOutput:
        """POST the image and prompt, returning the completion as narrative.

        Raises:
            AnalysisFailure: On transport errors, non-2xx responses or a
                response without message content.
        """
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            response = self.session.post(
                f"{self.base_url}/chat/completions",
                json=self._build_payload(image_url, practice_type, verification_type),
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.Timeout as e:
            raise AnalysisFailure(f"Analyzer request timed out: {e}", reason="timeout")
        except requests.RequestException as e:
            raise AnalysisFailure(f"Analyzer request failed: {e}", reason="http_error")

        try:
            body = response.json()
        except ValueError as e:
            raise AnalysisFailure(f"Analyzer returned invalid JSON: {e}", reason="malformed")

        try:
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise AnalysisFailure(
                f"Analyzer response missing message content: {e}", reason="malformed",
            )
        if not isinstance(content, str) or not content.strip():
            raise AnalysisFailure("Analyzer returned empty content", reason="malformed")

        logger.debug("Analyzer returned %d characters for %s", len(content), image_url)
        return AnalyzerOutput(narrative=content)


# =============================================================================
# MockImageAnalyzer
# =============================================================================


def _hash_seed(value: str) -> int:
    """Derive a deterministic integer seed from a string value."""
    return int(hashlib.sha256(value.encode("utf-8")).hexdigest()[:8], 16)


def _deterministic_float(seed: int, index: int, low: float = 0.0, high: float = 1.0) -> float:
    """Generate a deterministic float in [low, high] from seed and index."""
    combined = hashlib.sha256(f"{seed}:{index}".encode("utf-8")).hexdigest()
    fraction = int(combined[:8], 16) / 0xFFFFFFFF
    return low + fraction * (high - low)


_MOCK_OBSERVATIONS = {
    "crop_stage": "Crop canopy is uniform and consistent with the expected growth stage",
    "fertilizer_use": "No visible over-application of synthetic fertilizer",
    "irrigation": "Field shows alternate wetting and drying pattern",
    "harvest": "Harvest residue is retained on the field",
    "pest_management": "No significant pest or disease damage visible",
    "soil_health": "Soil surface shows organic matter cover",
    "tree_planting": "Young trees are planted at regular spacing",
    "methane_reduction": "Standing water depth is consistent with reduced flooding",
}


class MockImageAnalyzer(ImageAnalyzer):
    """Deterministic analyzer for development and testing.

    Confidence falls in [60, 99] and is derived from the SHA-256 of the
    image URL, practice and verification type.
    """

    def analyze(
        self,
        image_url: str,
        practice_type: str,
        verification_type: str,
    ) -> AnalyzerOutput:
        practice = getattr(practice_type, "value", practice_type)
        verification = getattr(verification_type, "value", verification_type)
        seed = _hash_seed(f"{image_url}:{practice}:{verification}")
        confidence = int(_deterministic_float(seed, 0, 60.0, 99.0))
        health = _deterministic_float(seed, 1, 0.5, 0.95)

        narrative = "\n".join([
            f"{practice} practice evidence reviewed for {verification}",
            _MOCK_OBSERVATIONS.get(verification, "Field conditions reviewed"),
            f"Estimated vegetation health index {health:.2f}",
            f"Confidence: {confidence}",
        ])
        return AnalyzerOutput(narrative=narrative, confidence=float(confidence))


__all__ = [
    "ImageAnalyzer",
    "VisionChatAnalyzer",
    "MockImageAnalyzer",
    "build_analysis_prompt",
]
