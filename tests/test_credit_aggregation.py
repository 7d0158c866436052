"""Tests for carbon credit generation, settlement and derived totals.

Covers:
- Pure rate, amount and confidence calculations
- Evidence window selection
- One credit per crop, appended on every generation
- Settlement lifecycle
- Farmer total recomputation
- Carbon statistics

Author: AgriMRV Platform Team
Date: October 2026
Status: Production Ready
"""

import pytest

from agrimrv.credit_aggregation import (
    compute_confidence,
    compute_credit_amount,
    credit_type_for,
    sequestration_rate,
)
from agrimrv.exceptions import InvalidTransitionError, NoEvidenceError, NotFoundError, OwnershipError
from agrimrv.models import (
    CreditStatus,
    CreditType,
    PracticeType,
    SettlementEvent,
    VerificationStatus,
)
from agrimrv.store import VERIFICATIONS

from conftest import OTHER_USER_ID, confident


# ==============================================================================
# Pure calculations
# ==============================================================================

class TestCalculations:
    """Rate table and confidence formula."""

    @pytest.mark.parametrize("practice,rate", [
        (PracticeType.SRI, 2.5),
        (PracticeType.ORGANIC, 1.8),
        (PracticeType.REGENERATIVE, 3.2),
        (PracticeType.AGROFORESTRY, 4.5),
        (PracticeType.INTEGRATED, 1.0),
        ("Biochar", 1.0),
    ])
    def test_sequestration_rates(self, practice, rate):
        assert sequestration_rate(practice) == rate

    def test_amount_is_rate_times_area(self):
        assert compute_credit_amount(PracticeType.SRI, 2.0) == 5.0
        assert compute_credit_amount("Agroforestry", 1.5) == 6.75

    @pytest.mark.parametrize("count,expected", [(1, 65.0), (3, 75.0), (7, 95.0), (50, 95.0)])
    def test_confidence_formula(self, count, expected):
        assert compute_confidence(count) == expected

    def test_credit_type(self):
        assert credit_type_for(PracticeType.AGROFORESTRY) == CreditType.AGROFORESTRY
        assert credit_type_for("SRI") == CreditType.SEQUESTRATION


# ==============================================================================
# Generation
# ==============================================================================

class TestGenerateCredits:
    """Credit generation from verified evidence."""

    def test_three_records_one_sri_crop(
        self, credit_engine, farmer, make_crop, verified_evidence, registry,
    ):
        crop = make_crop(farmer.id, area=2.0)
        evidence_ids = verified_evidence(farmer.id, count=3)

        credits = credit_engine.generate_credits(farmer.id)

        assert len(credits) == 1
        credit = credits[0]
        assert credit.amount == 5.0
        assert credit.confidence_score == 75.0
        assert credit.estimated_value == 75.0
        assert credit.status == CreditStatus.PENDING
        assert credit.methodology == "VM0042"
        assert credit.crop_id == crop.id
        assert credit.cooperative_id == "COOP-MANDYA"
        assert sorted(credit.evidence_records) == sorted(evidence_ids)

        updated = registry.get_farmer(farmer.id)
        assert updated.total_carbon_credits == 5.0
        assert updated.pending_carbon_credits == 5.0
        assert updated.verified_carbon_credits == 0.0

    def test_one_credit_per_crop(self, credit_engine, farmer, make_crop, verified_evidence):
        make_crop(farmer.id, area=2.0, practice_type=PracticeType.SRI)
        make_crop(farmer.id, area=1.0, practice_type=PracticeType.AGROFORESTRY, crop_type="teak")
        verified_evidence(farmer.id, count=1)

        credits = credit_engine.generate_credits(farmer.id)

        assert sorted(c.amount for c in credits) == [4.5, 5.0]
        assert {c.credit_type for c in credits} == {CreditType.SEQUESTRATION, CreditType.AGROFORESTRY}
        assert all(c.confidence_score == 65.0 for c in credits)

    def test_period_covers_window(self, credit_engine, farmer, make_crop, verified_evidence, clock):
        make_crop(farmer.id)
        verified_evidence(farmer.id)

        period = credit_engine.generate_credits(farmer.id)[0].verification_period

        assert period.end_date == clock()
        assert (period.end_date - period.start_date).days == 30

    def test_no_verified_evidence_raises(
        self, credit_engine, farmer, make_crop, verification_engine, evidence_request, analyzer,
    ):
        make_crop(farmer.id)
        analyzer.result = confident(60)
        verification_engine.submit_evidence(evidence_request(farmer.id))
        verification_engine.task_queue.drain(verification_engine.run_analysis)

        with pytest.raises(NoEvidenceError):
            credit_engine.generate_credits(farmer.id)
        assert credit_engine.credit_count == 0

    def test_evidence_outside_window_ignored(
        self, credit_engine, farmer, make_crop, verified_evidence, clock,
    ):
        make_crop(farmer.id)
        verified_evidence(farmer.id)
        clock.advance(days=31)

        with pytest.raises(NoEvidenceError):
            credit_engine.generate_credits(farmer.id)

        assert len(credit_engine.generate_credits(farmer.id, window_days=45)) == 1

    def test_no_crops_yields_nothing(self, credit_engine, farmer, verified_evidence):
        verified_evidence(farmer.id)

        assert credit_engine.generate_credits(farmer.id) == []
        assert credit_engine.credit_count == 0

    def test_generation_appends(self, credit_engine, farmer, make_crop, verified_evidence, registry):
        make_crop(farmer.id)
        verified_evidence(farmer.id, count=3)

        first = credit_engine.generate_credits(farmer.id)
        second = credit_engine.generate_credits(farmer.id)

        assert first[0].id != second[0].id
        assert credit_engine.credit_count == 2
        assert registry.get_farmer(farmer.id).total_carbon_credits == 10.0

    def test_only_verified_status_counts(
        self, credit_engine, farmer, make_crop, verified_evidence, store,
    ):
        make_crop(farmer.id)
        ids = verified_evidence(farmer.id, count=2)
        store.patch(VERIFICATIONS, ids[0], {"status": VerificationStatus.REJECTED})

        credit = credit_engine.generate_credits(farmer.id)[0]

        assert credit.evidence_records == [ids[1]]
        assert credit.confidence_score == 65.0

    def test_requires_ownership(self, credit_engine, farmer, identity):
        with identity.acting_as(OTHER_USER_ID):
            with pytest.raises(OwnershipError):
                credit_engine.generate_credits(farmer.id)

    def test_provenance_recorded(
        self, credit_engine, farmer, make_crop, verified_evidence, provenance,
    ):
        make_crop(farmer.id)
        verified_evidence(farmer.id)

        credit = credit_engine.generate_credits(farmer.id)[0]

        valid, chain = provenance.verify_chain(credit.id)
        assert valid is True
        assert chain[0]["entity_type"] == "credit_generation"


# ==============================================================================
# Settlement
# ==============================================================================

class TestSettlement:
    """Credit status progression driven by settlement events."""

    @pytest.fixture
    def credit(self, credit_engine, farmer, make_crop, verified_evidence):
        make_crop(farmer.id)
        verified_evidence(farmer.id, count=3)
        return credit_engine.generate_credits(farmer.id)[0]

    def test_full_progression(self, credit_engine, credit, clock, registry):
        verified = credit_engine.apply_settlement_event(
            SettlementEvent(credit_id=credit.id, new_status=CreditStatus.VERIFIED),
        )
        assert verified.status == CreditStatus.VERIFIED
        farmer = registry.get_farmer(credit.farmer_id)
        assert farmer.verified_carbon_credits == 5.0
        assert farmer.pending_carbon_credits == 0.0

        clock.advance(days=1)
        issued = credit_engine.apply_settlement_event(SettlementEvent(
            credit_id=credit.id, new_status=CreditStatus.ISSUED, ledger_tx_ref="0xabc",
        ))
        assert issued.issued_at == clock()
        assert issued.ledger_tx_ref == "0xabc"

        traded = credit_engine.apply_settlement_event(SettlementEvent(
            credit_id=credit.id, new_status=CreditStatus.TRADED, actual_value=82.5,
        ))
        assert traded.status == CreditStatus.TRADED
        assert traded.actual_value == 82.5
        assert traded.traded_at == clock()
        assert registry.get_farmer(credit.farmer_id).verified_carbon_credits == 5.0

    def test_skipping_a_step_is_rejected(self, credit_engine, credit):
        with pytest.raises(InvalidTransitionError):
            credit_engine.apply_settlement_event(
                SettlementEvent(credit_id=credit.id, new_status=CreditStatus.ISSUED),
            )

    def test_regression_is_rejected(self, credit_engine, credit):
        credit_engine.apply_settlement_event(
            SettlementEvent(credit_id=credit.id, new_status=CreditStatus.VERIFIED),
        )

        with pytest.raises(InvalidTransitionError) as exc_info:
            credit_engine.apply_settlement_event(
                SettlementEvent(credit_id=credit.id, new_status=CreditStatus.PENDING),
            )
        assert exc_info.value.context == {
            "current_status": "verified", "requested_status": "pending",
        }

    def test_repeating_current_status_is_rejected(self, credit_engine, credit):
        with pytest.raises(InvalidTransitionError):
            credit_engine.apply_settlement_event(
                SettlementEvent(credit_id=credit.id, new_status=CreditStatus.PENDING),
            )

    def test_unknown_credit(self, credit_engine):
        with pytest.raises(NotFoundError):
            credit_engine.apply_settlement_event(
                SettlementEvent(credit_id="CRD-missing", new_status=CreditStatus.VERIFIED),
            )


# ==============================================================================
# Queries
# ==============================================================================

class TestCreditQueries:
    """Credit listing and statistics."""

    def test_farmer_credits_newest_first(
        self, credit_engine, farmer, make_crop, verified_evidence, clock,
    ):
        make_crop(farmer.id)
        verified_evidence(farmer.id)
        first = credit_engine.generate_credits(farmer.id)[0]
        clock.advance(days=1)
        second = credit_engine.generate_credits(farmer.id)[0]

        assert [c.id for c in credit_engine.get_farmer_credits(farmer.id)] == [second.id, first.id]

    def test_carbon_stats(self, credit_engine, farmer, make_crop, verified_evidence, clock):
        make_crop(farmer.id, area=2.0)
        verified_evidence(farmer.id, count=3)
        credit_engine.generate_credits(farmer.id)

        stats = credit_engine.get_carbon_stats(farmer.id)

        assert stats.credit_count == 1
        assert stats.total_sequestration == 5.0
        assert stats.methane_reduction == 0.0
        assert stats.estimated_value == 75.0
        assert stats.average_confidence == 75.0

        clock.advance(days=40)
        assert credit_engine.get_carbon_stats(farmer.id, days=30).credit_count == 0

    def test_only_sequestration_credits_count_as_sequestration(
        self, credit_engine, farmer, make_crop, verified_evidence,
    ):
        make_crop(farmer.id, area=2.0, practice_type=PracticeType.SRI)
        make_crop(farmer.id, area=1.0, practice_type=PracticeType.AGROFORESTRY)
        verified_evidence(farmer.id, count=3)
        credits = credit_engine.generate_credits(farmer.id)
        assert {c.credit_type for c in credits} == {
            CreditType.SEQUESTRATION, CreditType.AGROFORESTRY,
        }

        stats = credit_engine.get_carbon_stats(farmer.id)

        assert stats.total_sequestration == 5.0
        assert stats.total_credits == 9.5
        assert stats.credit_count == 2

    def test_stats_window_uses_verification_period_start(
        self, credit_engine, farmer, make_crop, verified_evidence,
    ):
        make_crop(farmer.id, area=2.0)
        verified_evidence(farmer.id, count=1)
        credit_engine.generate_credits(farmer.id, window_days=30)

        # Created just now, but its period began 30 days ago.
        assert credit_engine.get_carbon_stats(farmer.id, days=10).credit_count == 0
        assert credit_engine.get_carbon_stats(farmer.id, days=30).credit_count == 1

    def test_recompute_missing_farmer_returns_none(self, credit_engine):
        assert credit_engine.recompute_farmer_totals("FRM-gone") is None
