# -*- coding: utf-8 -*-
"""
AgriMRV: Field Evidence Verification and Carbon Credit Aggregation
==================================================================

This package provides measurement, reporting and verification (MRV) for
sustainable agricultural practices. It supports:

- Field evidence submission with asynchronous image analysis
- A confidence and compliance policy over analyzer output, with a
  deterministic fallback when analysis fails
- Carbon credit generation from verified evidence and registered crops
  (VM0042 methodology, per-practice sequestration rates)
- Credit settlement lifecycle (pending, verified, issued, traded)
- Community MRV nodes with compare-and-swap rollups
- Compliance reports with certification eligibility
- Farmer, crop and field sensor registries
- SHA-256 chain-hashed provenance and Prometheus metrics
- FastAPI REST API and AGRIMRV_ env prefixed configuration

Key Components:
    - config: CarbonMRVConfig with AGRIMRV_ env prefix
    - models: Pydantic v2 models, statistics and request models
    - store / identity: collaborator interfaces and in-memory implementations
    - analyzer: vision chat analyzer client and deterministic mock
    - confidence_policy: pure analysis interpretation rules
    - task_queue: analysis task queue and worker pool
    - verification_engine: evidence record state machine
    - credit_aggregation: credit generation and settlement
    - node_rollup: MRV node membership and rollups
    - compliance_report: compliance reports and statistics
    - farm_registry / sensor_data: farmers, crops and sensor readings
    - provenance: SHA-256 chain-hashed audit trails
    - metrics: Prometheus metrics for observability
    - setup: CarbonMRVService facade and REST router

Example:
    >>> from agrimrv import CarbonMRVService
    >>> service = CarbonMRVService()
    >>> service.get_statistics().total_verifications
    0
"""

__version__ = "1.0.0"

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------
from agrimrv.config import (
    CarbonMRVConfig,
    get_config,
    set_config,
    reset_config,
)

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------
from agrimrv.exceptions import (
    AgriMRVException,
    AnalysisFailure,
    ConflictError,
    InvalidTransitionError,
    NoEvidenceError,
    NotFoundError,
    OwnershipError,
)

# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------
from agrimrv.models import (
    # Enumerations
    PracticeType,
    VerificationType,
    VerificationStatus,
    AnalysisOutcome,
    CreditType,
    CreditStatus,
    NodeType,
    CropStatus,
    SensorType,
    # Core data models
    GeoLocation,
    AnalysisResult,
    VerificationRecord,
    AnalyzerOutput,
    PolicyDecision,
    CarbonCreditRecord,
    ComplianceReport,
    MRVNode,
    Farmer,
    Crop,
    SensorReading,
    ServiceStatistics,
    # Request models
    SubmitEvidenceRequest,
    CreateFarmerRequest,
    CreateCropRequest,
    CreateNodeRequest,
    GenerateReportRequest,
    SettlementEvent,
)

# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------
from agrimrv.store import (
    EvidenceStore,
    FileStore,
    InMemoryEvidenceStore,
    InMemoryFileStore,
)
from agrimrv.identity import IdentityProvider, StaticIdentityProvider
from agrimrv.analyzer import ImageAnalyzer, MockImageAnalyzer, VisionChatAnalyzer

# ---------------------------------------------------------------------------
# Engines
# ---------------------------------------------------------------------------
from agrimrv.confidence_policy import evaluate_analysis, fallback_decision
from agrimrv.task_queue import AnalysisTaskQueue
from agrimrv.verification_engine import VerificationEngine
from agrimrv.credit_aggregation import CarbonCreditEngine
from agrimrv.node_rollup import MRVNodeEngine, compute_node_rollup
from agrimrv.compliance_report import ComplianceReportEngine
from agrimrv.farm_registry import FarmRegistryEngine
from agrimrv.sensor_data import SensorDataEngine
from agrimrv.provenance import ProvenanceTracker

# ---------------------------------------------------------------------------
# Service setup facade
# ---------------------------------------------------------------------------
from agrimrv.setup import (
    CarbonMRVService,
    configure_carbon_mrv,
    get_carbon_mrv,
    get_router,
)

__all__ = [
    "__version__",
    # Configuration
    "CarbonMRVConfig",
    "get_config",
    "set_config",
    "reset_config",
    # Exceptions
    "AgriMRVException",
    "AnalysisFailure",
    "ConflictError",
    "InvalidTransitionError",
    "NoEvidenceError",
    "NotFoundError",
    "OwnershipError",
    # Enumerations
    "PracticeType",
    "VerificationType",
    "VerificationStatus",
    "AnalysisOutcome",
    "CreditType",
    "CreditStatus",
    "NodeType",
    "CropStatus",
    "SensorType",
    # Core data models
    "GeoLocation",
    "AnalysisResult",
    "VerificationRecord",
    "AnalyzerOutput",
    "PolicyDecision",
    "CarbonCreditRecord",
    "ComplianceReport",
    "MRVNode",
    "Farmer",
    "Crop",
    "SensorReading",
    "ServiceStatistics",
    # Request models
    "SubmitEvidenceRequest",
    "CreateFarmerRequest",
    "CreateCropRequest",
    "CreateNodeRequest",
    "GenerateReportRequest",
    "SettlementEvent",
    # Collaborators
    "EvidenceStore",
    "FileStore",
    "InMemoryEvidenceStore",
    "InMemoryFileStore",
    "IdentityProvider",
    "StaticIdentityProvider",
    "ImageAnalyzer",
    "MockImageAnalyzer",
    "VisionChatAnalyzer",
    # Engines
    "evaluate_analysis",
    "fallback_decision",
    "AnalysisTaskQueue",
    "VerificationEngine",
    "CarbonCreditEngine",
    "MRVNodeEngine",
    "compute_node_rollup",
    "ComplianceReportEngine",
    "FarmRegistryEngine",
    "SensorDataEngine",
    "ProvenanceTracker",
    # Service
    "CarbonMRVService",
    "configure_carbon_mrv",
    "get_carbon_mrv",
    "get_router",
]
