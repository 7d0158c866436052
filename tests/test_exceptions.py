"""Tests for the AgriMRV Exception Hierarchy.

Covers:
- Base exception functionality and error codes
- Context captured by each caller-facing error
- AnalysisFailure reasons
- Serialization

Author: AgriMRV Platform Team
Date: October 2026
Status: Production Ready
"""

import json
from datetime import datetime

import pytest

from agrimrv.exceptions import (
    AgriMRVException,
    AnalysisFailure,
    ConflictError,
    InvalidTransitionError,
    NoEvidenceError,
    NotFoundError,
    OwnershipError,
)


# ==============================================================================
# Base Exception Tests
# ==============================================================================

class TestAgriMRVException:
    """Tests for base AgriMRVException."""

    def test_create_basic_exception(self):
        """Can create basic exception with message."""
        exc = AgriMRVException("Something went wrong")

        assert exc.message == "Something went wrong"
        assert exc.error_code.startswith("MRV_")
        assert exc.engine is None
        assert exc.context == {}
        assert isinstance(exc.timestamp, datetime)

    def test_explicit_error_code_wins(self):
        exc = AgriMRVException("boom", error_code="MRV_TEST_001", engine="verification")

        assert exc.error_code == "MRV_TEST_001"
        assert exc.engine == "verification"

    def test_str_includes_code_engine_and_message(self):
        exc = NotFoundError("Farmer not found", engine="farm_registry")

        assert str(exc) == "[MRV_NOT_FOUND_ERROR] - Engine: farm_registry - Farmer not found"

    def test_to_json_round_trips_context(self):
        exc = ConflictError("Race lost", engine="node_rollup", context={"attempts": 5})

        parsed = json.loads(exc.to_json())

        assert parsed["error_type"] == "ConflictError"
        assert parsed["error_code"] == "MRV_CONFLICT_ERROR"
        assert parsed["context"] == {"attempts": 5}

    def test_repr_names_class(self):
        assert repr(OwnershipError()).startswith("OwnershipError(message='Not authorized'")


# ==============================================================================
# Caller-facing errors
# ==============================================================================

class TestCallerFacingErrors:
    """Context captured by each error type."""

    def test_ownership_error_context(self):
        exc = OwnershipError(farmer_id="FRM-1", user_id="user-1")

        assert exc.message == "Not authorized"
        assert exc.context == {"farmer_id": "FRM-1", "user_id": "user-1"}

    def test_not_found_error_context(self):
        exc = NotFoundError("Image not found", entity_type="image", entity_id="IMG-1")

        assert exc.context == {"entity_type": "image", "entity_id": "IMG-1"}

    def test_no_evidence_error_default_message(self):
        exc = NoEvidenceError(farmer_id="FRM-1", window_days=30)

        assert "No verified practices" in exc.message
        assert exc.context["window_days"] == 30

    def test_invalid_transition_context(self):
        exc = InvalidTransitionError(
            "Cannot move credit", current_status="issued", requested_status="pending",
        )

        assert exc.context == {"current_status": "issued", "requested_status": "pending"}

    @pytest.mark.parametrize("error_type", [
        OwnershipError, NotFoundError, NoEvidenceError,
        ConflictError, InvalidTransitionError, AnalysisFailure,
    ])
    def test_all_errors_share_base(self, error_type):
        assert issubclass(error_type, AgriMRVException)


# ==============================================================================
# AnalysisFailure
# ==============================================================================

class TestAnalysisFailure:
    """AnalysisFailure carries a machine readable reason."""

    def test_default_reason(self):
        exc = AnalysisFailure("analyzer crashed")

        assert exc.reason == "analyzer_error"
        assert exc.engine == "image_analyzer"
        assert exc.context["reason"] == "analyzer_error"

    def test_custom_reason(self):
        exc = AnalysisFailure("too slow", reason="timeout")

        assert exc.reason == "timeout"
        assert exc.to_dict()["context"]["reason"] == "timeout"
