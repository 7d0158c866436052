# -*- coding: utf-8 -*-
"""
Compliance Report Engine

Builds immutable per-farmer compliance reports over a practice and a
period. Records are partitioned into four fixed categories (crop stage,
fertilizer use, irrigation, harvest); each category percentage uses a
``max(total, 1)`` denominator so an empty category reports 0%.
Overall compliance is passed / total x 100 over the whole selection (0 for
an empty selection) and certification requires at least 80%.

A report also carries the carbon metrics of the farmer's credits whose
verification period starts inside the report window, when there are any.

Author: AgriMRV Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from agrimrv.config import get_config
from agrimrv.exceptions import NotFoundError
from agrimrv.identity import IdentityProvider, OwnershipGuard
from agrimrv.metrics import record_compliance_report
from agrimrv.models import (
    CarbonCreditRecord,
    CarbonMetrics,
    ComplianceReport,
    ComplianceStats,
    CreditType,
    GenerateReportRequest,
    ReportData,
    VerificationPeriod,
    VerificationRecord,
    VerificationType,
)
from agrimrv.store import CARBON_CREDITS, COMPLIANCE_REPORTS, VERIFICATIONS, EvidenceStore

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Report field -> verification type it measures
REPORT_CATEGORIES = {
    "crop_stages": VerificationType.CROP_STAGE,
    "fertilizer_compliance": VerificationType.FERTILIZER_USE,
    "irrigation_compliance": VerificationType.IRRIGATION,
    "harvest_compliance": VerificationType.HARVEST,
}


def _utcnow() -> datetime:
    """Return current UTC datetime with microseconds zeroed."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def category_percentage(records: Sequence[VerificationRecord], verification_type: VerificationType) -> float:
    """Compliant share of one category, 0 when the category is empty."""
    in_category = [r for r in records if r.verification_type == verification_type]
    passed = sum(1 for r in in_category if r.analysis.compliance)
    return round(passed / max(len(in_category), 1) * 100, 2)


def build_report_data(records: Sequence[VerificationRecord]) -> ReportData:
    return ReportData(**{
        field: category_percentage(records, vtype)
        for field, vtype in REPORT_CATEGORIES.items()
    })


def summarise_credits(credits: Sequence[CarbonCreditRecord], price_per_credit: float) -> CarbonMetrics:
    sequestration = sum(
        c.amount for c in credits if c.credit_type != CreditType.METHANE_REDUCTION
    )
    methane = sum(
        c.amount for c in credits if c.credit_type == CreditType.METHANE_REDUCTION
    )
    return CarbonMetrics(
        total_sequestration=round(sequestration, 6),
        methane_reduction=round(methane, 6),
        credits_generated=len(credits),
        estimated_value=round((sequestration + methane) * price_per_credit, 2),
    )


# =============================================================================
# ComplianceReportEngine
# =============================================================================


class ComplianceReportEngine:
    """Engine generating compliance reports and compliance statistics.

    Attributes:
        config: CarbonMRVConfig instance.
        store: EvidenceStore holding records, credits and reports.
        provenance: Optional ProvenanceTracker for audit trails.
    """

    def __init__(
        self,
        store: EvidenceStore,
        identity: IdentityProvider,
        config: Any = None,
        provenance: Any = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.config = config or get_config()
        self.store = store
        self.guard = OwnershipGuard(store, identity)
        self.provenance = provenance
        self.clock = clock or _utcnow
        logger.info(
            "ComplianceReportEngine initialized: certification>=%.1f%%",
            self.config.certification_threshold,
        )

    # ------------------------------------------------------------------
    # Report generation
    # ------------------------------------------------------------------

    def generate_report(self, request: GenerateReportRequest) -> ComplianceReport:
        """Generate and persist a compliance report.

        Args:
            request: Farmer, practice and inclusive period.

        Returns:
            The persisted ComplianceReport.

        Raises:
            OwnershipError: If the caller does not own the farmer.
        """
        self.guard.authorize_farmer(request.farmer_id)
        start, end = request.start_date, request.end_date

        records = [
            VerificationRecord.model_validate(doc)
            for doc in self.store.query(
                VERIFICATIONS,
                farmer_id=request.farmer_id,
                practice_type=request.practice_type,
            )
            if start <= doc["timestamp"] <= end
        ]
        total = len(records)
        passed = sum(1 for r in records if r.analysis.compliance)
        ratio = passed / total * 100 if total else 0.0
        eligible = ratio >= self.config.certification_threshold
        overall = round(ratio, 2)

        credits = [
            CarbonCreditRecord.model_validate(doc)
            for doc in self.store.query_by_owner(CARBON_CREDITS, request.farmer_id)
            if start <= doc["verification_period"]["start_date"] <= end
        ]
        carbon_metrics = (
            summarise_credits(credits, self.config.price_per_credit_usd) if credits else None
        )

        report_data = build_report_data(records)
        if carbon_metrics is not None:
            report_data.carbon_sequestration = carbon_metrics.total_sequestration
            report_data.methane_reduction = carbon_metrics.methane_reduction

        report = ComplianceReport(
            farmer_id=request.farmer_id,
            report_period=VerificationPeriod(start_date=start, end_date=end),
            practice_type=request.practice_type,
            overall_compliance=overall,
            verification_count=total,
            passed_verifications=passed,
            certification_eligible=eligible,
            report_data=report_data,
            carbon_metrics=carbon_metrics,
            generated_at=self.clock(),
        )
        if self.provenance is not None:
            report.provenance_hash = self.provenance.build_hash(
                report.model_dump(mode="json", exclude={"provenance_hash"}),
            )
            self.provenance.record(
                "compliance_report", report.id, "generate", report.provenance_hash,
            )

        self.store.insert(COMPLIANCE_REPORTS, report.model_dump())
        record_compliance_report(report.certification_eligible)
        logger.info(
            "Compliance report %s for farmer %s (%s): %d/%d passed, "
            "overall=%.2f%%, eligible=%s",
            report.id, request.farmer_id, request.practice_type.value,
            passed, total, overall, report.certification_eligible,
        )
        return report

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_report(self, report_id: str) -> ComplianceReport:
        doc = self.store.get(COMPLIANCE_REPORTS, report_id)
        if doc is None:
            raise NotFoundError(
                "Compliance report not found", entity_type="compliance_report",
                entity_id=report_id, engine="compliance_report",
            )
        return ComplianceReport.model_validate(doc)

    def get_farmer_reports(self, farmer_id: str) -> List[ComplianceReport]:
        """Return the farmer's reports, newest first."""
        self.guard.authorize_farmer(farmer_id)
        docs = self.store.query_by_owner(COMPLIANCE_REPORTS, farmer_id)
        docs.sort(key=lambda d: d["generated_at"], reverse=True)
        return [ComplianceReport.model_validate(doc) for doc in docs]

    def get_compliance_stats(self, practice_type: Optional[str] = None) -> ComplianceStats:
        """Aggregate compliance across stored reports.

        ``certification_eligible`` counts farmers with at least one
        eligible report.
        """
        filters: Dict[str, Any] = {}
        if practice_type is not None:
            filters["practice_type"] = practice_type
        reports = [
            ComplianceReport.model_validate(doc)
            for doc in self.store.query(COMPLIANCE_REPORTS, **filters)
        ]
        if not reports:
            return ComplianceStats()
        return ComplianceStats(
            total_farmers=len({r.farmer_id for r in reports}),
            average_compliance=round(
                sum(r.overall_compliance for r in reports) / len(reports), 2,
            ),
            certification_eligible=len({
                r.farmer_id for r in reports if r.certification_eligible
            }),
            total_verifications=sum(r.verification_count for r in reports),
            total_reports=len(reports),
        )

    @property
    def report_count(self) -> int:
        return self.store.count(COMPLIANCE_REPORTS)


__all__ = [
    "ComplianceReportEngine",
    "REPORT_CATEGORIES",
    "category_percentage",
    "build_report_data",
    "summarise_credits",
]
