# -*- coding: utf-8 -*-
"""
Carbon MRV Service Configuration

Centralized configuration for the field evidence verification and carbon
credit aggregation service covering:
- Logging level
- Image analyzer endpoint, credentials, model, timeout and token budget
- Confidence and compliance policy thresholds
- Credit generation window, confidence curve, pricing and methodology
- Certification eligibility threshold
- Analysis task queue sizing
- Node rollup write contention budget
- Feature toggle (use_mock_analyzer for development mode)

All settings can be overridden via environment variables with the
``AGRIMRV_`` prefix (e.g. ``AGRIMRV_ANALYZER_MODEL``).

Example:
    >>> from agrimrv.config import get_config
    >>> cfg = get_config()
    >>> print(cfg.compliance_threshold, cfg.price_per_credit_usd)

Author: AgriMRV Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Environment variable prefix
# ---------------------------------------------------------------------------

_ENV_PREFIX = "AGRIMRV_"


# ---------------------------------------------------------------------------
# CarbonMRVConfig
# ---------------------------------------------------------------------------


@dataclass
class CarbonMRVConfig:
    """Complete configuration for the AgriMRV carbon verification service.

    Attributes:
        log_level: Logging level applied to the ``agrimrv`` logger.
        analyzer_base_url: Base URL of the OpenAI-compatible vision endpoint.
        analyzer_api_key: Bearer token for the vision endpoint.
        analyzer_model: Vision model name sent with every request.
        analyzer_timeout_seconds: Upper bound on a single analyzer call.
        analyzer_max_tokens: Completion token budget per analysis.
        use_mock_analyzer: Use the deterministic mock analyzer instead of
            the HTTP analyzer (development and testing).
        compliance_threshold: Confidence strictly above this value is
            compliant.
        fallback_confidence: Confidence assigned when analysis fails.
        max_findings: Maximum number of findings kept per analysis.
        credit_window_days: Default look-back window for credit generation.
        confidence_base: Credit confidence with zero evidence.
        confidence_step: Credit confidence added per evidence record.
        confidence_cap: Upper bound on credit confidence.
        price_per_credit_usd: Estimated market value per tCO2e.
        methodology: Carbon accounting methodology stamped on credits.
        certification_threshold: Overall compliance percentage required for
            certification eligibility.
        worker_count: Number of analysis worker threads.
        queue_max_size: Maximum queued analysis tasks (0 = unbounded).
        node_write_retries: Compare-and-swap attempts per node mutation.
        status_query_limit: Maximum records returned by status queries.
    """

    # -- Logging -------------------------------------------------------------
    log_level: str = "INFO"

    # -- Image analyzer ------------------------------------------------------
    analyzer_base_url: str = "https://api.openai.com/v1"
    analyzer_api_key: str = ""
    analyzer_model: str = "gpt-4o-mini"
    analyzer_timeout_seconds: float = 30.0
    analyzer_max_tokens: int = 500

    # -- Feature toggles -----------------------------------------------------
    use_mock_analyzer: bool = True

    # -- Confidence & compliance policy --------------------------------------
    compliance_threshold: float = 75.0
    fallback_confidence: float = 50.0
    max_findings: int = 5

    # -- Credit generation ---------------------------------------------------
    credit_window_days: int = 30
    confidence_base: float = 60.0
    confidence_step: float = 5.0
    confidence_cap: float = 95.0
    price_per_credit_usd: float = 15.0
    methodology: str = "VM0042"

    # -- Compliance reports --------------------------------------------------
    certification_threshold: float = 80.0

    # -- Task queue ----------------------------------------------------------
    worker_count: int = 4
    queue_max_size: int = 0

    # -- Node rollup ---------------------------------------------------------
    node_write_retries: int = 5

    # -- Queries -------------------------------------------------------------
    status_query_limit: int = 50

    # ------------------------------------------------------------------
    # Factory helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls) -> CarbonMRVConfig:
        """Build a CarbonMRVConfig from environment variables.

        Every field can be overridden via ``AGRIMRV_<FIELD_UPPER>``.
        Boolean values accept ``true/1/yes`` (case-insensitive).

        Returns:
            Populated CarbonMRVConfig instance.
        """
        prefix = _ENV_PREFIX

        def _env(name: str, default: Any = None) -> Optional[str]:
            return os.environ.get(f"{prefix}{name}", default)

        def _bool(name: str, default: bool) -> bool:
            val = _env(name)
            if val is None:
                return default
            return val.lower() in ("true", "1", "yes")

        def _int(name: str, default: int) -> int:
            val = _env(name)
            if val is None:
                return default
            try:
                return int(val)
            except ValueError:
                logger.warning(
                    "Invalid integer for %s%s=%s, using default %d",
                    prefix, name, val, default,
                )
                return default

        def _float(name: str, default: float) -> float:
            val = _env(name)
            if val is None:
                return default
            try:
                return float(val)
            except ValueError:
                logger.warning(
                    "Invalid float for %s%s=%s, using default %s",
                    prefix, name, val, default,
                )
                return default

        def _str(name: str, default: str) -> str:
            val = _env(name)
            if val is None:
                return default
            return val

        config = cls(
            log_level=_str("LOG_LEVEL", cls.log_level),
            analyzer_base_url=_str(
                "ANALYZER_BASE_URL", cls.analyzer_base_url,
            ),
            analyzer_api_key=_str("ANALYZER_API_KEY", cls.analyzer_api_key),
            analyzer_model=_str("ANALYZER_MODEL", cls.analyzer_model),
            analyzer_timeout_seconds=_float(
                "ANALYZER_TIMEOUT_SECONDS", cls.analyzer_timeout_seconds,
            ),
            analyzer_max_tokens=_int(
                "ANALYZER_MAX_TOKENS", cls.analyzer_max_tokens,
            ),
            use_mock_analyzer=_bool(
                "USE_MOCK_ANALYZER", cls.use_mock_analyzer,
            ),
            compliance_threshold=_float(
                "COMPLIANCE_THRESHOLD", cls.compliance_threshold,
            ),
            fallback_confidence=_float(
                "FALLBACK_CONFIDENCE", cls.fallback_confidence,
            ),
            max_findings=_int("MAX_FINDINGS", cls.max_findings),
            credit_window_days=_int(
                "CREDIT_WINDOW_DAYS", cls.credit_window_days,
            ),
            confidence_base=_float("CONFIDENCE_BASE", cls.confidence_base),
            confidence_step=_float("CONFIDENCE_STEP", cls.confidence_step),
            confidence_cap=_float("CONFIDENCE_CAP", cls.confidence_cap),
            price_per_credit_usd=_float(
                "PRICE_PER_CREDIT_USD", cls.price_per_credit_usd,
            ),
            methodology=_str("METHODOLOGY", cls.methodology),
            certification_threshold=_float(
                "CERTIFICATION_THRESHOLD", cls.certification_threshold,
            ),
            worker_count=_int("WORKER_COUNT", cls.worker_count),
            queue_max_size=_int("QUEUE_MAX_SIZE", cls.queue_max_size),
            node_write_retries=_int(
                "NODE_WRITE_RETRIES", cls.node_write_retries,
            ),
            status_query_limit=_int(
                "STATUS_QUERY_LIMIT", cls.status_query_limit,
            ),
        )

        logger.info(
            "CarbonMRVConfig loaded: analyzer=%s (%s, timeout=%.1fs, "
            "max_tokens=%d, key=%s), mock=%s, compliance>%.1f, "
            "fallback=%.1f, window=%dd, "
            "confidence=%.0f+%.0f/n<=%.0f, price=$%.2f, methodology=%s, "
            "certification>=%.1f%%, workers=%d, node_retries=%d",
            config.analyzer_base_url,
            config.analyzer_model,
            config.analyzer_timeout_seconds,
            config.analyzer_max_tokens,
            "***" if config.analyzer_api_key else "(unset)",
            config.use_mock_analyzer,
            config.compliance_threshold,
            config.fallback_confidence,
            config.credit_window_days,
            config.confidence_base,
            config.confidence_step,
            config.confidence_cap,
            config.price_per_credit_usd,
            config.methodology,
            config.certification_threshold,
            config.worker_count,
            config.node_write_retries,
        )
        return config


# ---------------------------------------------------------------------------
# Thread-safe singleton accessor
# ---------------------------------------------------------------------------

_config_instance: Optional[CarbonMRVConfig] = None
_config_lock = threading.Lock()


def get_config() -> CarbonMRVConfig:
    """Return the singleton CarbonMRVConfig, creating from env if needed."""
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = CarbonMRVConfig.from_env()
    return _config_instance


def set_config(config: CarbonMRVConfig) -> None:
    """Replace the singleton CarbonMRVConfig (useful for testing).

    Args:
        config: New configuration to install.
    """
    global _config_instance
    with _config_lock:
        _config_instance = config
    logger.info("CarbonMRVConfig replaced programmatically")


def reset_config() -> None:
    """Reset the singleton (primarily for test teardown)."""
    global _config_instance
    with _config_lock:
        _config_instance = None


__all__ = [
    "CarbonMRVConfig",
    "get_config",
    "set_config",
    "reset_config",
]
