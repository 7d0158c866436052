# -*- coding: utf-8 -*-
"""Pytest configuration and shared fixtures."""

import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Optional, Union

import pytest

from agrimrv.analyzer import ImageAnalyzer
from agrimrv.compliance_report import ComplianceReportEngine
from agrimrv.config import CarbonMRVConfig, reset_config, set_config
from agrimrv.credit_aggregation import CarbonCreditEngine
from agrimrv.farm_registry import FarmRegistryEngine
from agrimrv.identity import StaticIdentityProvider
from agrimrv.models import (
    AnalyzerOutput,
    CreateCropRequest,
    CreateFarmerRequest,
    GeoLocation,
    PracticeType,
    SubmitEvidenceRequest,
    VerificationType,
)
from agrimrv.node_rollup import MRVNodeEngine
from agrimrv.provenance import ProvenanceTracker
from agrimrv.sensor_data import SensorDataEngine
from agrimrv.store import InMemoryEvidenceStore, InMemoryFileStore
from agrimrv.task_queue import AnalysisTaskQueue
from agrimrv.verification_engine import VerificationEngine


USER_ID = "user-asha"
OTHER_USER_ID = "user-ravi"
START_TIME = datetime(2026, 10, 1, 9, 0, 0, tzinfo=timezone.utc)


# ==============================================================================
# Test doubles
# ==============================================================================

class FixedClock:
    """Controllable UTC clock."""

    def __init__(self, start: datetime = START_TIME):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class ScriptedAnalyzer(ImageAnalyzer):
    """Analyzer returning a fixed output, raising, or sleeping on demand.

    ``result`` may be an AnalyzerOutput, a dict, an exception instance or
    a callable taking the image URL.
    """

    def __init__(self, result: Any = None, delay: float = 0.0):
        self.result = result if result is not None else confident(90)
        self.delay = delay
        self.calls: List[tuple] = []
        self._lock = threading.Lock()

    def analyze(self, image_url, practice_type, verification_type):
        with self._lock:
            self.calls.append((image_url, practice_type, verification_type))
        if self.delay:
            time.sleep(self.delay)
        result = self.result
        if callable(result) and not isinstance(result, type):
            result = result(image_url)
        if isinstance(result, Exception):
            raise result
        return result


class FlakyCASStore(InMemoryEvidenceStore):
    """Store whose first ``failures`` compare-and-swap calls lose the race."""

    def __init__(self, failures: int = 0):
        super().__init__()
        self.failures = failures
        self.cas_calls = 0

    def compare_and_swap(self, collection, doc_id, expected_version, fields):
        self.cas_calls += 1
        if self.failures > 0:
            self.failures -= 1
            # Simulate a concurrent writer bumping the version first.
            self.patch(collection, doc_id, {})
            return False
        return super().compare_and_swap(collection, doc_id, expected_version, fields)


def confident(score: float, narrative: Optional[str] = None) -> AnalyzerOutput:
    """Analyzer output with an explicit confidence."""
    text = narrative or (
        "Crop canopy uniform\nAlternate wetting pattern visible\n"
        f"Confidence: {score:g}"
    )
    return AnalyzerOutput(narrative=text, confidence=score)


def location(lat: float = 12.97, lon: float = 77.59) -> GeoLocation:
    return GeoLocation(latitude=lat, longitude=lon, address="Mandya, Karnataka")


# ==============================================================================
# Configuration
# ==============================================================================

@pytest.fixture(autouse=True)
def _isolated_config():
    """Never leak a singleton config between tests."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def config() -> CarbonMRVConfig:
    cfg = CarbonMRVConfig(
        analyzer_timeout_seconds=1.0,
        worker_count=2,
        node_write_retries=5,
    )
    set_config(cfg)
    return cfg


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


# ==============================================================================
# Collaborators
# ==============================================================================

@pytest.fixture
def store() -> InMemoryEvidenceStore:
    return InMemoryEvidenceStore()


@pytest.fixture
def file_store() -> InMemoryFileStore:
    return InMemoryFileStore(base_url="https://files.test")


@pytest.fixture
def identity() -> StaticIdentityProvider:
    return StaticIdentityProvider(USER_ID)


@pytest.fixture
def provenance() -> ProvenanceTracker:
    return ProvenanceTracker()


@pytest.fixture
def analyzer() -> ScriptedAnalyzer:
    return ScriptedAnalyzer(confident(90))


@pytest.fixture
def task_queue() -> AnalysisTaskQueue:
    return AnalysisTaskQueue(worker_count=1)


# ==============================================================================
# Engines
# ==============================================================================

@pytest.fixture
def node_engine(store, identity, config, provenance, clock) -> MRVNodeEngine:
    return MRVNodeEngine(store, identity, config=config, provenance=provenance, clock=clock)


@pytest.fixture
def registry(store, identity, node_engine, config, provenance, clock) -> FarmRegistryEngine:
    return FarmRegistryEngine(
        store, identity, node_engine=node_engine,
        config=config, provenance=provenance, clock=clock,
    )


@pytest.fixture
def verification_engine(
    store, file_store, identity, analyzer, task_queue, config, provenance, clock,
) -> VerificationEngine:
    engine = VerificationEngine(
        store, file_store, identity, analyzer,
        task_queue=task_queue, config=config, provenance=provenance, clock=clock,
    )
    yield engine
    engine.shutdown()


@pytest.fixture
def credit_engine(store, identity, node_engine, config, provenance, clock) -> CarbonCreditEngine:
    return CarbonCreditEngine(
        store, identity, node_engine=node_engine,
        config=config, provenance=provenance, clock=clock,
    )


@pytest.fixture
def report_engine(store, identity, config, provenance, clock) -> ComplianceReportEngine:
    return ComplianceReportEngine(
        store, identity, config=config, provenance=provenance, clock=clock,
    )


@pytest.fixture
def sensor_engine(store, identity, config, clock) -> SensorDataEngine:
    return SensorDataEngine(store, identity, config=config, clock=clock)


# ==============================================================================
# Domain builders
# ==============================================================================

@pytest.fixture
def make_farmer(registry, identity) -> Callable[..., Any]:
    """Register a farmer profile for ``user_id`` (default: the current user)."""

    def _make(
        user_id: str = USER_ID,
        name: str = "Asha Gowda",
        farm_size: float = 2.0,
        cooperative_id: Optional[str] = "COOP-MANDYA",
    ):
        with identity.acting_as(user_id):
            return registry.create_farmer(CreateFarmerRequest(
                name=name,
                location=location(),
                farm_size=farm_size,
                primary_crops=["rice"],
                cooperative_id=cooperative_id,
            ))

    return _make


@pytest.fixture
def farmer(make_farmer):
    return make_farmer()


@pytest.fixture
def make_crop(registry, clock) -> Callable[..., Any]:
    def _make(
        farmer_id: str,
        area: float = 2.0,
        practice_type: Union[PracticeType, str] = PracticeType.SRI,
        crop_type: str = "rice",
    ):
        return registry.create_crop(CreateCropRequest(
            farmer_id=farmer_id,
            crop_type=crop_type,
            planting_date=clock() - timedelta(days=60),
            expected_harvest_date=clock() + timedelta(days=60),
            area=area,
            practice_type=practice_type,
            location=location(),
        ))

    return _make


@pytest.fixture
def evidence_request(file_store) -> Callable[..., SubmitEvidenceRequest]:
    """Build a submission for a freshly registered image."""

    def _make(
        farmer_id: str,
        verification_type: VerificationType = VerificationType.CROP_STAGE,
        practice_type: PracticeType = PracticeType.SRI,
        image_id: Optional[str] = None,
    ) -> SubmitEvidenceRequest:
        if image_id is None:
            _, image_id = file_store.generate_upload_target()
        return SubmitEvidenceRequest(
            farmer_id=farmer_id,
            practice_type=practice_type,
            verification_type=verification_type,
            image_id=image_id,
            location=location(),
            notes="Transplanted at 25x25 cm spacing",
        )

    return _make


@pytest.fixture
def verified_evidence(verification_engine, evidence_request):
    """Submit and analyze ``count`` records for a farmer; returns their ids."""

    def _make(
        farmer_id: str,
        count: int = 1,
        verification_type: VerificationType = VerificationType.CROP_STAGE,
    ) -> List[str]:
        ids = [
            verification_engine.submit_evidence(
                evidence_request(farmer_id, verification_type),
            )
            for _ in range(count)
        ]
        verification_engine.task_queue.drain(verification_engine.run_analysis)
        return ids

    return _make
