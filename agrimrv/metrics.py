# -*- coding: utf-8 -*-
"""
Prometheus Metrics - AgriMRV Carbon Verification Service

Metrics:
    1.  agrimrv_evidence_submitted_total (Counter) [practice_type, verification_type]
    2.  agrimrv_analyses_total (Counter) [status, outcome]
    3.  agrimrv_analysis_duration_seconds (Histogram) [outcome]
    4.  agrimrv_analysis_fallbacks_total (Counter) [reason]
    5.  agrimrv_credits_generated_total (Counter) [credit_type]
    6.  agrimrv_credit_amount_tco2e_total (Counter) [credit_type]
    7.  agrimrv_settlement_events_total (Counter) [status]
    8.  agrimrv_compliance_reports_total (Counter) [eligible]
    9.  agrimrv_node_rollups_total (Counter) [result]
    10. agrimrv_analysis_queue_depth (Gauge) []
    11. agrimrv_processing_errors_total (Counter) [engine, error_type]

Author: AgriMRV Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging

from prometheus_client import Counter, Gauge, Histogram

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Metric definitions
# ---------------------------------------------------------------------------

# 1. Evidence submissions by practice and verification type
evidence_submitted_total = Counter(
    "agrimrv_evidence_submitted_total",
    "Total field evidence records submitted",
    labelnames=["practice_type", "verification_type"],
)

# 2. Analyses applied by resulting status and outcome
analyses_total = Counter(
    "agrimrv_analyses_total",
    "Total analyses applied to verification records",
    labelnames=["status", "outcome"],
)

# 3. Analysis duration (analyzer call plus policy)
analysis_duration_seconds = Histogram(
    "agrimrv_analysis_duration_seconds",
    "Verification analysis duration in seconds",
    labelnames=["outcome"],
    buckets=(
        0.05, 0.1, 0.25, 0.5, 1.0, 2.5,
        5.0, 10.0, 20.0, 30.0, 60.0,
    ),
)

# 4. Fallbacks by reason
analysis_fallbacks_total = Counter(
    "agrimrv_analysis_fallbacks_total",
    "Total analyses resolved with the fallback decision",
    labelnames=["reason"],
)

# 5. Credits generated by credit type
credits_generated_total = Counter(
    "agrimrv_credits_generated_total",
    "Total carbon credit records generated",
    labelnames=["credit_type"],
)

# 6. Credited amount by credit type
credit_amount_tco2e_total = Counter(
    "agrimrv_credit_amount_tco2e_total",
    "Total tCO2e credited",
    labelnames=["credit_type"],
)

# 7. Settlement events by new status
settlement_events_total = Counter(
    "agrimrv_settlement_events_total",
    "Total credit settlement events applied",
    labelnames=["status"],
)

# 8. Compliance reports by certification eligibility
compliance_reports_total = Counter(
    "agrimrv_compliance_reports_total",
    "Total compliance reports generated",
    labelnames=["eligible"],
)

# 9. Node rollups by result
node_rollups_total = Counter(
    "agrimrv_node_rollups_total",
    "Total MRV node rollup attempts",
    labelnames=["result"],
)

# 10. Analysis queue depth
analysis_queue_depth = Gauge(
    "agrimrv_analysis_queue_depth",
    "Number of analysis tasks waiting in the queue",
)

# 11. Processing errors by engine and error type
processing_errors_total = Counter(
    "agrimrv_processing_errors_total",
    "Total processing errors encountered",
    labelnames=["engine", "error_type"],
)


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------


def record_evidence_submitted(practice_type: str, verification_type: str) -> None:
    """Record an evidence submission.

    Args:
        practice_type: Practice being evidenced (SRI, Organic, ...).
        verification_type: Kind of evidence (crop_stage, irrigation, ...).
    """
    evidence_submitted_total.labels(
        practice_type=practice_type, verification_type=verification_type,
    ).inc()


def record_analysis(status: str, outcome: str, duration_seconds: float) -> None:
    """Record an applied analysis and its duration.

    Args:
        status: Terminal status applied (verified, pending_review, rejected).
        outcome: analyzed or fallback.
        duration_seconds: Wall time of the analysis.
    """
    analyses_total.labels(status=status, outcome=outcome).inc()
    analysis_duration_seconds.labels(outcome=outcome).observe(duration_seconds)


def record_analysis_fallback(reason: str) -> None:
    """Record a fallback decision.

    Args:
        reason: timeout, analyzer_error, http_error or malformed.
    """
    analysis_fallbacks_total.labels(reason=reason).inc()


def record_credit_generated(credit_type: str, amount: float) -> None:
    """Record a generated credit and its amount."""
    credits_generated_total.labels(credit_type=credit_type).inc()
    credit_amount_tco2e_total.labels(credit_type=credit_type).inc(amount)


def record_settlement_event(status: str) -> None:
    """Record a credit settlement event."""
    settlement_events_total.labels(status=status).inc()


def record_compliance_report(eligible: bool) -> None:
    """Record a compliance report generation."""
    compliance_reports_total.labels(eligible=str(eligible).lower()).inc()


def record_node_rollup(result: str) -> None:
    """Record a node rollup attempt.

    Args:
        result: applied, conflict or exhausted.
    """
    node_rollups_total.labels(result=result).inc()


def update_queue_depth(depth: int) -> None:
    """Set the analysis queue depth gauge."""
    analysis_queue_depth.set(depth)


def record_processing_error(engine: str, error_type: str) -> None:
    """Record a processing error event.

    Args:
        engine: Engine that produced the error (verification, task_queue,
            credit_aggregation, node_rollup, compliance_report).
        error_type: Error classification (exception class name).
    """
    processing_errors_total.labels(engine=engine, error_type=error_type).inc()


__all__ = [
    # Metric objects
    "evidence_submitted_total",
    "analyses_total",
    "analysis_duration_seconds",
    "analysis_fallbacks_total",
    "credits_generated_total",
    "credit_amount_tco2e_total",
    "settlement_events_total",
    "compliance_reports_total",
    "node_rollups_total",
    "analysis_queue_depth",
    "processing_errors_total",
    # Helper functions
    "record_evidence_submitted",
    "record_analysis",
    "record_analysis_fallback",
    "record_credit_generated",
    "record_settlement_event",
    "record_compliance_report",
    "record_node_rollup",
    "update_queue_depth",
    "record_processing_error",
]
