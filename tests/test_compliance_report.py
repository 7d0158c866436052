"""Tests for compliance report generation and compliance statistics."""

from datetime import timedelta

import pytest

from agrimrv.compliance_report import category_percentage
from agrimrv.exceptions import NotFoundError, OwnershipError
from agrimrv.models import (
    AnalysisResult,
    GenerateReportRequest,
    PracticeType,
    VerificationRecord,
    VerificationType,
)

from conftest import OTHER_USER_ID, confident, location


def _report_request(farmer_id, clock, days_back=31, practice=PracticeType.SRI):
    return GenerateReportRequest(
        farmer_id=farmer_id,
        practice_type=practice,
        start_date=clock() - timedelta(days=days_back),
        end_date=clock() + timedelta(days=1),
    )


class TestCategoryPercentage:
    """Per-category percentages."""

    def _record(self, vtype, compliant):
        return VerificationRecord(
            farmer_id="FRM-1",
            practice_type=PracticeType.SRI,
            verification_type=vtype,
            image_id="IMG-1",
            location=location(),
            analysis=AnalysisResult(confidence=90 if compliant else 50, compliance=compliant),
        )

    def test_empty_category_is_zero(self):
        assert category_percentage([], VerificationType.HARVEST) == 0.0

    def test_share_of_compliant_records(self):
        records = [
            self._record(VerificationType.IRRIGATION, True),
            self._record(VerificationType.IRRIGATION, False),
            self._record(VerificationType.IRRIGATION, True),
            self._record(VerificationType.HARVEST, False),
        ]

        assert category_percentage(records, VerificationType.IRRIGATION) == 66.67
        assert category_percentage(records, VerificationType.HARVEST) == 0.0


class TestGenerateReport:
    """Report content."""

    def test_all_compliant_is_eligible(self, report_engine, farmer, verified_evidence, clock):
        verified_evidence(farmer.id, count=3)

        report = report_engine.generate_report(_report_request(farmer.id, clock))

        assert report.verification_count == 3
        assert report.passed_verifications == 3
        assert report.overall_compliance == 100.0
        assert report.certification_eligible is True
        assert report.report_data.crop_stages == 100.0
        assert report.report_data.irrigation_compliance == 0.0
        assert report.carbon_metrics is None
        assert report.id.startswith("RPT-")

    def test_mixed_results_below_certification(
        self, report_engine, farmer, verified_evidence, analyzer, clock,
    ):
        verified_evidence(farmer.id, count=3)
        analyzer.result = confident(50)
        verified_evidence(farmer.id, count=1, verification_type=VerificationType.IRRIGATION)

        report = report_engine.generate_report(_report_request(farmer.id, clock))

        assert report.verification_count == 4
        assert report.passed_verifications == 3
        assert report.overall_compliance == 75.0
        assert report.certification_eligible is False
        assert report.report_data.irrigation_compliance == 0.0

    def test_boundary_80_is_eligible(self, report_engine, farmer, verified_evidence, analyzer, clock):
        verified_evidence(farmer.id, count=4)
        analyzer.result = confident(50)
        verified_evidence(farmer.id, count=1)

        report = report_engine.generate_report(_report_request(farmer.id, clock))

        assert report.overall_compliance == 80.0
        assert report.certification_eligible is True

    def test_eligibility_uses_unrounded_compliance(
        self, report_engine, farmer, verified_evidence, analyzer, clock, config,
    ):
        config.certification_threshold = 66.67
        verified_evidence(farmer.id, count=2)
        analyzer.result = confident(50)
        verified_evidence(farmer.id, count=1)

        report = report_engine.generate_report(_report_request(farmer.id, clock))

        # 2/3 is 66.666..., stored as 66.67 but still short of the threshold.
        assert report.overall_compliance == 66.67
        assert report.certification_eligible is False

    def test_empty_period(self, report_engine, farmer, clock):
        report = report_engine.generate_report(_report_request(farmer.id, clock))

        assert report.verification_count == 0
        assert report.overall_compliance == 0.0
        assert report.certification_eligible is False

    def test_other_practice_excluded(self, report_engine, farmer, verified_evidence, clock):
        verified_evidence(farmer.id, count=2)

        report = report_engine.generate_report(
            _report_request(farmer.id, clock, practice=PracticeType.ORGANIC),
        )

        assert report.verification_count == 0

    def test_carbon_metrics_from_credits(
        self, report_engine, credit_engine, farmer, make_crop, verified_evidence, clock,
    ):
        make_crop(farmer.id, area=2.0)
        verified_evidence(farmer.id, count=3)
        credit_engine.generate_credits(farmer.id)

        report = report_engine.generate_report(_report_request(farmer.id, clock))

        assert report.carbon_metrics.total_sequestration == 5.0
        assert report.carbon_metrics.credits_generated == 1
        assert report.carbon_metrics.estimated_value == 75.0
        assert report.report_data.carbon_sequestration == 5.0

    def test_provenance_hash(self, report_engine, farmer, verified_evidence, clock, provenance):
        verified_evidence(farmer.id)

        report = report_engine.generate_report(_report_request(farmer.id, clock))

        assert len(report.provenance_hash) == 64
        assert provenance.get_chain(report.id)[0]["data_hash"] == report.provenance_hash

    def test_requires_ownership(self, report_engine, farmer, clock, identity):
        with identity.acting_as(OTHER_USER_ID):
            with pytest.raises(OwnershipError):
                report_engine.generate_report(_report_request(farmer.id, clock))


class TestReportQueries:
    """Stored reports and statistics."""

    def test_get_report(self, report_engine, farmer, clock):
        report = report_engine.generate_report(_report_request(farmer.id, clock))

        assert report_engine.get_report(report.id) == report
        with pytest.raises(NotFoundError):
            report_engine.get_report("RPT-missing")

    def test_farmer_reports_newest_first(self, report_engine, farmer, clock):
        first = report_engine.generate_report(_report_request(farmer.id, clock))
        clock.advance(days=1)
        second = report_engine.generate_report(_report_request(farmer.id, clock))

        assert [r.id for r in report_engine.get_farmer_reports(farmer.id)] == [second.id, first.id]

    def test_compliance_stats(
        self, report_engine, farmer, make_farmer, verified_evidence, identity, clock,
    ):
        verified_evidence(farmer.id, count=2)
        report_engine.generate_report(_report_request(farmer.id, clock))
        other = make_farmer(user_id=OTHER_USER_ID, name="Ravi Kumar")
        with identity.acting_as(OTHER_USER_ID):
            report_engine.generate_report(_report_request(other.id, clock))

        stats = report_engine.get_compliance_stats()

        assert stats.total_reports == 2
        assert stats.total_farmers == 2
        assert stats.average_compliance == 50.0
        assert stats.certification_eligible == 1
        assert stats.total_verifications == 2

    def test_compliance_stats_empty(self, report_engine):
        assert report_engine.get_compliance_stats().total_reports == 0
