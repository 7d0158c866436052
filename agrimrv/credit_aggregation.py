# -*- coding: utf-8 -*-
"""
Carbon Credit Aggregation Engine

Turns verified field evidence into carbon credit records and keeps the
derived farmer and node totals consistent with the credit set.

Credit generation (``generate_credits``):
    1. Select the farmer's ``verified`` records with timestamp inside
       ``[now - window_days, now]``. None -> NoEvidenceError.
    2. For each registered crop: amount = rate[practice] x area.
    3. confidence = min(cap, base + step x evidence_count).
    4. Persist one ``pending`` credit per crop with the configured
       methodology, value = amount x price, evidence = every selected id.

Generation appends; invoking it twice over the same window yields two
credit sets. After every credit change the farmer's totals and every node
listing the farmer are recomputed.

Settlement events advance a credit exactly one step along
``pending -> verified -> issued -> traded``.

Zero-Hallucination Guarantees:
    - Amounts come only from the fixed rate table and registered areas
    - Confidence comes only from the evidence count
    - No analyzer output is used for credit amounts

Author: AgriMRV Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from agrimrv.config import get_config
from agrimrv.exceptions import InvalidTransitionError, NoEvidenceError, NotFoundError
from agrimrv.identity import IdentityProvider, OwnershipGuard
from agrimrv.metrics import record_credit_generated, record_settlement_event
from agrimrv.models import (
    CarbonCreditRecord,
    CarbonStats,
    CreditStatus,
    CreditType,
    Crop,
    Farmer,
    PracticeType,
    SettlementEvent,
    VerificationPeriod,
    VerificationStatus,
)
from agrimrv.node_rollup import VERIFIED_CREDIT_STATUSES, MRVNodeEngine
from agrimrv.store import CARBON_CREDITS, CROPS, FARMERS, VERIFICATIONS, EvidenceStore

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# tCO2e per hectare per year
SEQUESTRATION_RATES: Dict[str, float] = {
    PracticeType.SRI.value: 2.5,
    PracticeType.ORGANIC.value: 1.8,
    PracticeType.REGENERATIVE.value: 3.2,
    PracticeType.AGROFORESTRY.value: 4.5,
}

DEFAULT_SEQUESTRATION_RATE = 1.0

_SETTLEMENT_ORDER = [
    CreditStatus.PENDING,
    CreditStatus.VERIFIED,
    CreditStatus.ISSUED,
    CreditStatus.TRADED,
]


def _utcnow() -> datetime:
    """Return current UTC datetime with microseconds zeroed."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def _value(enum_or_str: Any) -> str:
    return getattr(enum_or_str, "value", enum_or_str)


# ---------------------------------------------------------------------------
# Pure calculations
# ---------------------------------------------------------------------------


def sequestration_rate(practice_type: Any) -> float:
    """Annual sequestration rate (tCO2e/ha) for a practice, 1.0 if unknown."""
    return SEQUESTRATION_RATES.get(_value(practice_type), DEFAULT_SEQUESTRATION_RATE)


def compute_credit_amount(practice_type: Any, area_ha: float) -> float:
    """Credit amount for a crop: rate[practice] x area."""
    return round(sequestration_rate(practice_type) * area_ha, 6)


def compute_confidence(
    evidence_count: int,
    base: float = 60.0,
    step: float = 5.0,
    cap: float = 95.0,
) -> float:
    """Credit confidence: min(cap, base + step x evidence_count)."""
    return min(cap, base + step * evidence_count)


def credit_type_for(practice_type: Any) -> CreditType:
    if _value(practice_type) == PracticeType.AGROFORESTRY.value:
        return CreditType.AGROFORESTRY
    return CreditType.SEQUESTRATION


# =============================================================================
# CarbonCreditEngine
# =============================================================================


class CarbonCreditEngine:
    """Generates carbon credits and maintains farmer and node totals.

    Attributes:
        config: CarbonMRVConfig instance.
        store: EvidenceStore holding records, crops, credits and farmers.
        node_engine: MRVNodeEngine used to recompute node rollups.
        provenance: Optional ProvenanceTracker for audit entries.

    Example:
        >>> engine = CarbonCreditEngine(store, identity, node_engine)
        >>> credits = engine.generate_credits("FRM-0a1b2c3d4e5f")
        >>> credits[0].confidence_score
        75.0
    """

    def __init__(
        self,
        store: EvidenceStore,
        identity: IdentityProvider,
        node_engine: Optional[MRVNodeEngine] = None,
        config: Any = None,
        provenance: Any = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.config = config or get_config()
        self.store = store
        self.guard = OwnershipGuard(store, identity)
        self.node_engine = node_engine or MRVNodeEngine(
            store, identity, config=self.config, provenance=provenance, clock=clock,
        )
        self.provenance = provenance
        self.clock = clock or _utcnow
        logger.info(
            "CarbonCreditEngine initialized: methodology=%s price=$%.2f window=%dd",
            self.config.methodology, self.config.price_per_credit_usd,
            self.config.credit_window_days,
        )

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def generate_credits(
        self,
        farmer_id: str,
        window_days: Optional[int] = None,
    ) -> List[CarbonCreditRecord]:
        """Generate one pending credit per crop from recent verified evidence.

        Args:
            farmer_id: Farmer to generate credits for.
            window_days: Look-back window; defaults to the configured 30 days.

        Returns:
            The newly persisted credit records (empty if the farmer has no
            registered crops).

        Raises:
            OwnershipError: If the caller does not own the farmer.
            NoEvidenceError: If there is no verified evidence in the window.
        """
        start = time.monotonic()
        farmer = Farmer.model_validate(self.guard.authorize_farmer(farmer_id))
        window = window_days if window_days is not None else self.config.credit_window_days
        now = self.clock()
        window_start = now - timedelta(days=window)

        evidence = sorted(
            (
                doc for doc in self.store.query(
                    VERIFICATIONS, farmer_id=farmer_id, status=VerificationStatus.VERIFIED,
                )
                if window_start <= doc["timestamp"] <= now
            ),
            key=lambda d: d["timestamp"],
        )
        if not evidence:
            raise NoEvidenceError(
                farmer_id=farmer_id, window_days=window, engine="credit_aggregation",
            )
        evidence_ids = [doc["id"] for doc in evidence]

        crops = [Crop.model_validate(doc) for doc in self.store.query_by_owner(CROPS, farmer_id)]
        if not crops:
            logger.warning(
                "Farmer %s has %d verified records but no registered crops; "
                "no credits generated", farmer_id, len(evidence_ids),
            )
            return []

        confidence = compute_confidence(
            len(evidence_ids),
            base=self.config.confidence_base,
            step=self.config.confidence_step,
            cap=self.config.confidence_cap,
        )
        node = self.node_engine.find_farmer_node(farmer_id)
        period = VerificationPeriod(start_date=window_start, end_date=now)

        credits = []
        for crop in crops:
            amount = compute_credit_amount(crop.practice_type, crop.area)
            credit = CarbonCreditRecord(
                farmer_id=farmer_id,
                cooperative_id=farmer.cooperative_id,
                node_id=node.id if node else None,
                crop_id=crop.id,
                credit_type=credit_type_for(crop.practice_type),
                amount=amount,
                status=CreditStatus.PENDING,
                verification_period=period,
                methodology=self.config.methodology,
                confidence_score=confidence,
                estimated_value=round(amount * self.config.price_per_credit_usd, 2),
                evidence_records=list(evidence_ids),
                created_at=now,
            )
            self.store.insert(CARBON_CREDITS, credit.model_dump())
            record_credit_generated(credit.credit_type.value, credit.amount)
            if self.provenance is not None:
                self.provenance.record(
                    "credit_generation", credit.id, "generate",
                    self.provenance.build_hash(credit),
                    user_id=farmer.user_id,
                )
            credits.append(credit)

        self._rollup(farmer_id)
        logger.info(
            "Generated %d credit(s) for farmer %s: %.3f tCO2e, confidence=%.1f, "
            "evidence=%d (%.3fs)",
            len(credits), farmer_id, sum(c.amount for c in credits),
            confidence, len(evidence_ids), time.monotonic() - start,
        )
        return credits

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    def apply_settlement_event(self, event: SettlementEvent) -> CarbonCreditRecord:
        """Advance a credit one step along its settlement lifecycle.

        Raises:
            NotFoundError: If the credit does not exist.
            InvalidTransitionError: If the requested status is not the
                immediate successor of the current one.
        """
        credit = self.get_credit(event.credit_id)
        current = _SETTLEMENT_ORDER.index(credit.status)
        requested = _SETTLEMENT_ORDER.index(event.new_status)
        if requested != current + 1:
            raise InvalidTransitionError(
                f"Cannot move credit from {credit.status.value} to {event.new_status.value}",
                current_status=credit.status.value,
                requested_status=event.new_status.value,
                engine="credit_aggregation",
            )

        fields: Dict[str, Any] = {"status": event.new_status}
        if event.ledger_tx_ref is not None:
            fields["ledger_tx_ref"] = event.ledger_tx_ref
        if event.new_status == CreditStatus.ISSUED:
            fields["issued_at"] = self.clock()
        elif event.new_status == CreditStatus.TRADED:
            fields["traded_at"] = self.clock()
            if event.actual_value is not None:
                fields["actual_value"] = event.actual_value

        doc = self.store.patch(CARBON_CREDITS, event.credit_id, fields)
        record_settlement_event(event.new_status.value)
        if self.provenance is not None:
            self.provenance.record(
                "credit_settlement", event.credit_id, event.new_status.value,
                self.provenance.build_hash(event),
            )
        logger.info(
            "Credit %s settled: %s -> %s", event.credit_id,
            credit.status.value, event.new_status.value,
        )
        self._rollup(credit.farmer_id)
        return CarbonCreditRecord.model_validate(doc)

    # ------------------------------------------------------------------
    # Derived totals
    # ------------------------------------------------------------------

    def recompute_farmer_totals(self, farmer_id: str) -> Optional[Farmer]:
        """Recompute a farmer's credit totals from its credit set.

        Returns None when the farmer no longer exists.
        """
        if self.store.get(FARMERS, farmer_id) is None:
            return None
        total = verified = pending = 0.0
        for doc in self.store.query_by_owner(CARBON_CREDITS, farmer_id):
            amount = float(doc.get("amount", 0.0))
            status = _value(doc.get("status"))
            total += amount
            if status in VERIFIED_CREDIT_STATUSES:
                verified += amount
            elif status == CreditStatus.PENDING.value:
                pending += amount
        doc = self.store.patch(FARMERS, farmer_id, {
            "total_carbon_credits": round(total, 6),
            "verified_carbon_credits": round(verified, 6),
            "pending_carbon_credits": round(pending, 6),
        })
        return Farmer.model_validate(doc)

    def _rollup(self, farmer_id: str) -> None:
        self.recompute_farmer_totals(farmer_id)
        self.node_engine.recompute_nodes_for_farmer(farmer_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_credit(self, credit_id: str) -> CarbonCreditRecord:
        doc = self.store.get(CARBON_CREDITS, credit_id)
        if doc is None:
            raise NotFoundError(
                "Carbon credit not found", entity_type="carbon_credit",
                entity_id=credit_id, engine="credit_aggregation",
            )
        return CarbonCreditRecord.model_validate(doc)

    def get_farmer_credits(self, farmer_id: str) -> List[CarbonCreditRecord]:
        """Return the farmer's credits, newest first."""
        self.guard.authorize_farmer(farmer_id)
        docs = self.store.query_by_owner(CARBON_CREDITS, farmer_id)
        docs.sort(key=lambda d: d["created_at"], reverse=True)
        return [CarbonCreditRecord.model_validate(doc) for doc in docs]

    def get_carbon_stats(self, farmer_id: str, days: Optional[int] = None) -> CarbonStats:
        """Summarise credits whose verification period began in the last ``days`` days.

        ``total_sequestration`` counts only ``sequestration`` credits;
        agroforestry and soil carbon credits appear in ``total_credits``.
        """
        self.guard.authorize_farmer(farmer_id)
        days = days if days is not None else self.config.credit_window_days
        since = self.clock() - timedelta(days=days)
        credits = [
            CarbonCreditRecord.model_validate(doc)
            for doc in self.store.query_by_owner(CARBON_CREDITS, farmer_id)
            if doc["verification_period"]["start_date"] >= since
        ]
        total = sum(c.amount for c in credits)
        return CarbonStats(
            farmer_id=farmer_id,
            days=days,
            total_sequestration=round(sum(
                c.amount for c in credits
                if c.credit_type == CreditType.SEQUESTRATION
            ), 6),
            methane_reduction=round(sum(
                c.amount for c in credits
                if c.credit_type == CreditType.METHANE_REDUCTION
            ), 6),
            total_credits=round(total, 6),
            estimated_value=round(total * self.config.price_per_credit_usd, 2),
            average_confidence=round(
                sum(c.confidence_score for c in credits) / len(credits), 4,
            ) if credits else 0.0,
            credit_count=len(credits),
        )

    @property
    def credit_count(self) -> int:
        return self.store.count(CARBON_CREDITS)


__all__ = [
    "CarbonCreditEngine",
    "SEQUESTRATION_RATES",
    "DEFAULT_SEQUESTRATION_RATE",
    "sequestration_rate",
    "compute_credit_amount",
    "compute_confidence",
    "credit_type_for",
]
