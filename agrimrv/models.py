# -*- coding: utf-8 -*-
"""
AgriMRV Data Models

Pydantic v2 data models for the field evidence verification and carbon
credit aggregation service. Defines all enumerations, core data models and
request wrappers required for:

- Field evidence submission and automated compliance analysis
- Confidence and compliance policy decisions
- Carbon credit generation and settlement
- Community MRV node membership and rollups
- Compliance reporting and certification eligibility
- Farmer profiles, crops and field sensor readings

Models:
    - Enumerations (10): PracticeType, VerificationType, VerificationStatus,
        AnalysisOutcome, CreditType, CreditStatus, NodeType, CropStatus,
        SensorType, ConnectivityLevel
    - Core data models: GeoLocation, SatelliteData, AnalysisResult,
        VerificationRecord, AnalyzerOutput, PolicyDecision,
        VerificationPeriod, CarbonCreditRecord, ReportData, CarbonMetrics,
        ComplianceReport, NodeEquipment, MRVNode, MemberSnapshot,
        NodeRollup, Farmer, Crop, SensorValue, SensorMetadata,
        SensorReading, UploadTarget
    - Statistics models: CarbonStats, ComplianceStats, CropStats,
        CommunityStats, ServiceStatistics
    - Request models: SubmitEvidenceRequest, CreateFarmerRequest,
        UpdateFarmerRequest, CreateCropRequest, CreateNodeRequest,
        RecordSensorReadingRequest, GenerateReportRequest,
        SettlementEvent

Author: AgriMRV Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    """Return current UTC datetime with microseconds zeroed."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def _new_id(prefix: str) -> str:
    """Generate a short prefixed unique identifier."""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


# =============================================================================
# Enumerations
# =============================================================================


class PracticeType(str, Enum):
    """Sustainable agricultural practices eligible for carbon credits."""

    SRI = "SRI"
    ORGANIC = "Organic"
    REGENERATIVE = "Regenerative"
    AGROFORESTRY = "Agroforestry"
    INTEGRATED = "Integrated"


class VerificationType(str, Enum):
    """Kind of field evidence a verification record documents."""

    CROP_STAGE = "crop_stage"
    FERTILIZER_USE = "fertilizer_use"
    IRRIGATION = "irrigation"
    HARVEST = "harvest"
    PEST_MANAGEMENT = "pest_management"
    SOIL_HEALTH = "soil_health"
    TREE_PLANTING = "tree_planting"
    METHANE_REDUCTION = "methane_reduction"


class VerificationStatus(str, Enum):
    """Lifecycle status of a verification record.

    ``pending_analysis`` is the only non-terminal status; the other three
    are reached exactly when an analysis (or its fallback) is applied.
    """

    PENDING_ANALYSIS = "pending_analysis"
    VERIFIED = "verified"
    PENDING_REVIEW = "pending_review"
    REJECTED = "rejected"


class AnalysisOutcome(str, Enum):
    """Whether the stored analysis came from the analyzer or the fallback."""

    ANALYZED = "analyzed"
    FALLBACK = "fallback"


class CreditType(str, Enum):
    """Carbon credit categories."""

    SEQUESTRATION = "sequestration"
    METHANE_REDUCTION = "methane_reduction"
    SOIL_CARBON = "soil_carbon"
    AGROFORESTRY = "agroforestry"


class CreditStatus(str, Enum):
    """Settlement status of a carbon credit, in progression order."""

    PENDING = "pending"
    VERIFIED = "verified"
    ISSUED = "issued"
    TRADED = "traded"


class NodeType(str, Enum):
    """Scope of a community MRV node."""

    COMMUNITY = "community"
    REGIONAL = "regional"
    DISTRICT = "district"


class CropStatus(str, Enum):
    """Growth status of a registered crop."""

    PLANTED = "planted"
    GROWING = "growing"
    HARVESTED = "harvested"


class SensorType(str, Enum):
    """Field sensor categories."""

    SOIL_MOISTURE = "soil_moisture"
    METHANE = "methane"
    TEMPERATURE = "temperature"
    PH = "ph"
    DRONE = "drone"


class ConnectivityLevel(str, Enum):
    """Network connectivity available to a node's equipment."""

    EXCELLENT = "excellent"
    GOOD = "good"
    LIMITED = "limited"
    OFFLINE = "offline"


# =============================================================================
# Shared value objects
# =============================================================================


class GeoLocation(BaseModel):
    """WGS84 point with an optional human-readable address."""

    latitude: float = Field(..., ge=-90.0, le=90.0, description="Latitude in degrees")
    longitude: float = Field(..., ge=-180.0, le=180.0, description="Longitude in degrees")
    address: Optional[str] = Field(None, description="Optional postal or village address")

    model_config = ConfigDict(from_attributes=True)


class SatelliteData(BaseModel):
    """Satellite-derived metrics attached to a piece of evidence."""

    ndvi: float = Field(default=0.0, ge=-1.0, le=1.0, description="Normalized difference vegetation index")
    soil_moisture: float = Field(default=0.0, ge=0.0, description="Volumetric soil moisture")
    biomass: float = Field(default=0.0, ge=0.0, description="Estimated above-ground biomass")
    acquisition_date: Optional[datetime] = Field(None, description="Scene acquisition time")

    model_config = ConfigDict(from_attributes=True)


# =============================================================================
# Verification
# =============================================================================


class AnalysisResult(BaseModel):
    """Interpreted analysis stored on a verification record.

    Attributes:
        confidence: Confidence score (0-100).
        compliance: Whether the practice was judged compliant.
        findings: Discrete findings, at most five.
        recommendations: Remediation steps, if any.
        carbon_impact: Optional carbon impact estimate from the analyzer.
    """

    confidence: float = Field(default=0.0, ge=0.0, le=100.0, description="Confidence score (0-100)")
    compliance: bool = Field(default=False, description="Compliance determination")
    findings: List[str] = Field(default_factory=list, description="Discrete analysis findings")
    recommendations: Optional[List[str]] = Field(None, description="Remediation recommendations")
    carbon_impact: Optional[float] = Field(None, description="Estimated carbon impact (tCO2e)")

    model_config = ConfigDict(from_attributes=True)


class VerificationRecord(BaseModel):
    """A single piece of field evidence and its analysis.

    Records are created in ``pending_analysis`` with a zeroed analysis and
    move to a terminal status when the analysis task completes. They are
    never physically deleted.
    """

    id: str = Field(default="", description="Unique verification record identifier")
    farmer_id: str = Field(..., description="Owning farmer identifier")
    crop_id: Optional[str] = Field(None, description="Optional crop the evidence refers to")
    practice_type: PracticeType = Field(..., description="Practice being evidenced")
    verification_type: VerificationType = Field(..., description="Kind of evidence")
    image_id: str = Field(..., description="File store reference of the evidence image")
    image_url: Optional[str] = Field(None, description="Resolved image URL (read views only)")
    location: GeoLocation = Field(..., description="Where the evidence was captured")
    timestamp: datetime = Field(default_factory=_utcnow, description="Submission time")
    analysis: AnalysisResult = Field(default_factory=AnalysisResult, description="Analysis payload")
    satellite_data: Optional[SatelliteData] = Field(None, description="Optional satellite metrics")
    status: VerificationStatus = Field(
        default=VerificationStatus.PENDING_ANALYSIS,
        description="Verification lifecycle status",
    )
    analysis_outcome: Optional[AnalysisOutcome] = Field(
        None, description="Source of the stored analysis once applied",
    )
    analyzed_at: Optional[datetime] = Field(None, description="When the analysis was applied")
    notes: str = Field(default="", description="Free-text notes from the farmer")

    model_config = ConfigDict(from_attributes=True)

    def __init__(self, **data: Any) -> None:
        super().__init__(**data)
        if not self.id:
            self.id = _new_id("VER")


class AnalyzerOutput(BaseModel):
    """Raw output returned by an image analyzer.

    Attributes:
        narrative: Free-text analysis, one finding per line.
        confidence: Explicit confidence if the analyzer returned one.
        recommendations: Analyzer supplied recommendations, if any.
        carbon_impact: Analyzer supplied carbon impact estimate, if any.
    """

    narrative: str = Field(default="", description="Free-text analysis narrative")
    confidence: Optional[float] = Field(None, description="Explicit confidence score")
    recommendations: Optional[List[str]] = Field(None, description="Analyzer recommendations")
    carbon_impact: Optional[float] = Field(None, description="Analyzer carbon impact estimate")

    model_config = ConfigDict(from_attributes=True)


class PolicyDecision(BaseModel):
    """Outcome of the confidence and compliance policy."""

    confidence: float = Field(..., ge=0.0, le=100.0, description="Clamped confidence score")
    compliance: bool = Field(..., description="Compliance determination")
    findings: List[str] = Field(default_factory=list, description="Findings, at most five")
    recommendations: List[str] = Field(default_factory=list, description="Recommendations")
    carbon_impact: Optional[float] = Field(None, description="Carbon impact estimate")
    status: VerificationStatus = Field(..., description="Terminal status to apply")

    model_config = ConfigDict(from_attributes=True)

    def to_analysis(self) -> AnalysisResult:
        """Project the decision onto the stored analysis payload."""
        return AnalysisResult(
            confidence=self.confidence,
            compliance=self.compliance,
            findings=list(self.findings),
            recommendations=list(self.recommendations),
            carbon_impact=self.carbon_impact,
        )


class UploadTarget(BaseModel):
    """Upload handle paired with the image reference it will produce."""

    upload_url: str = Field(..., description="Where the client uploads the image")
    image_id: str = Field(..., description="Reference to pass to evidence submission")


# =============================================================================
# Carbon credits
# =============================================================================


class VerificationPeriod(BaseModel):
    """Inclusive time window a credit accounts for."""

    start_date: datetime = Field(..., description="Window start")
    end_date: datetime = Field(..., description="Window end")


class CarbonCreditRecord(BaseModel):
    """A carbon credit derived from verified evidence.

    Attributes:
        id: Unique credit identifier.
        farmer_id: Owning farmer.
        cooperative_id: Farmer's cooperative at generation time.
        node_id: MRV node the farmer belonged to at generation time.
        crop_id: Crop the amount was computed for.
        credit_type: Credit category.
        amount: tCO2e amount (>= 0).
        status: Settlement status.
        verification_period: Evidence window the credit covers.
        methodology: Carbon accounting methodology.
        confidence_score: Confidence derived from the evidence count.
        estimated_value: amount x price per credit.
        actual_value: Realized value once traded.
        ledger_tx_ref: Settlement ledger transaction reference.
        evidence_records: Verification record ids backing the credit.
    """

    id: str = Field(default="", description="Unique credit identifier")
    farmer_id: str = Field(..., description="Owning farmer identifier")
    cooperative_id: Optional[str] = Field(None, description="Cooperative identifier")
    node_id: Optional[str] = Field(None, description="MRV node identifier")
    crop_id: Optional[str] = Field(None, description="Crop the amount was computed for")
    credit_type: CreditType = Field(default=CreditType.SEQUESTRATION, description="Credit category")
    amount: float = Field(default=0.0, ge=0.0, description="Amount in tCO2e")
    status: CreditStatus = Field(default=CreditStatus.PENDING, description="Settlement status")
    verification_period: VerificationPeriod = Field(..., description="Evidence window")
    methodology: str = Field(default="VM0042", description="Accounting methodology")
    confidence_score: float = Field(default=0.0, ge=0.0, le=100.0, description="Credit confidence")
    estimated_value: float = Field(default=0.0, ge=0.0, description="Estimated value in USD")
    actual_value: Optional[float] = Field(None, ge=0.0, description="Realized value in USD")
    ledger_tx_ref: Optional[str] = Field(None, description="Ledger transaction reference")
    issued_at: Optional[datetime] = Field(None, description="Issuance time")
    traded_at: Optional[datetime] = Field(None, description="Trade time")
    evidence_records: List[str] = Field(..., min_length=1, description="Backing record ids")
    created_at: datetime = Field(default_factory=_utcnow, description="Generation time")

    model_config = ConfigDict(from_attributes=True)

    def __init__(self, **data: Any) -> None:
        super().__init__(**data)
        if not self.id:
            self.id = _new_id("CRD")


# =============================================================================
# Compliance reports
# =============================================================================


class ReportData(BaseModel):
    """Per-category compliance percentages of a report."""

    crop_stages: float = Field(default=0.0, ge=0.0, le=100.0, description="Crop stage compliance %")
    fertilizer_compliance: float = Field(default=0.0, ge=0.0, le=100.0, description="Fertilizer compliance %")
    irrigation_compliance: float = Field(default=0.0, ge=0.0, le=100.0, description="Irrigation compliance %")
    harvest_compliance: float = Field(default=0.0, ge=0.0, le=100.0, description="Harvest compliance %")
    carbon_sequestration: Optional[float] = Field(None, description="Sequestration credited in period")
    methane_reduction: Optional[float] = Field(None, description="Methane reduction credited in period")


class CarbonMetrics(BaseModel):
    """Rollup of the credits a farmer generated within a report period."""

    total_sequestration: float = Field(default=0.0, ge=0.0, description="tCO2e sequestered")
    methane_reduction: float = Field(default=0.0, ge=0.0, description="tCO2e methane avoided")
    credits_generated: int = Field(default=0, ge=0, description="Number of credits")
    estimated_value: float = Field(default=0.0, ge=0.0, description="Estimated value in USD")


class ComplianceReport(BaseModel):
    """Immutable compliance report for one farmer, practice and period."""

    id: str = Field(default="", description="Unique report identifier")
    farmer_id: str = Field(..., description="Owning farmer identifier")
    report_period: VerificationPeriod = Field(..., description="Reporting window")
    practice_type: PracticeType = Field(..., description="Practice reported on")
    overall_compliance: float = Field(default=0.0, ge=0.0, le=100.0, description="Overall compliance %")
    verification_count: int = Field(default=0, ge=0, description="Records in the period")
    passed_verifications: int = Field(default=0, ge=0, description="Compliant records")
    certification_eligible: bool = Field(default=False, description="Eligible for certification")
    report_data: ReportData = Field(default_factory=ReportData, description="Category breakdown")
    carbon_metrics: Optional[CarbonMetrics] = Field(None, description="Credit rollup for the period")
    generated_at: datetime = Field(default_factory=_utcnow, description="Generation time")
    provenance_hash: str = Field(default="", description="SHA-256 hash of the report content")

    model_config = ConfigDict(from_attributes=True)

    def __init__(self, **data: Any) -> None:
        super().__init__(**data)
        if not self.id:
            self.id = _new_id("RPT")


# =============================================================================
# MRV nodes
# =============================================================================


class NodeEquipment(BaseModel):
    """Shared monitoring equipment available to a node."""

    sensors: List[str] = Field(
        default_factory=lambda: [SensorType.SOIL_MOISTURE.value, SensorType.TEMPERATURE.value],
        description="Installed sensor types",
    )
    drones: int = Field(default=1, ge=0, description="Drone count")
    weather_stations: int = Field(default=1, ge=0, description="Weather station count")
    connectivity: ConnectivityLevel = Field(default=ConnectivityLevel.GOOD, description="Connectivity")


class MRVNode(BaseModel):
    """Community monitoring node grouping farmers for aggregate reporting.

    Totals and confidence are always the output of a recomputation over
    member snapshots, never hand edited.
    """

    id: str = Field(default="", description="Unique node identifier")
    name: str = Field(..., min_length=1, description="Display name")
    node_type: NodeType = Field(default=NodeType.COMMUNITY, description="Node scope")
    location: GeoLocation = Field(..., description="Node location")
    coordinator_id: str = Field(..., description="User id of the coordinator")
    member_farmers: List[str] = Field(default_factory=list, description="Member farmer ids")
    cooperative_id: Optional[str] = Field(None, description="Cooperative identifier")
    is_active: bool = Field(default=True, description="Whether the node is active")
    total_area: float = Field(default=0.0, ge=0.0, description="Sum of member farm sizes (ha)")
    total_carbon_credits: float = Field(default=0.0, ge=0.0, description="Sum of member credits")
    verified_carbon_credits: float = Field(default=0.0, ge=0.0, description="Sum of verified credits")
    confidence_score: float = Field(default=0.0, ge=0.0, le=100.0, description="Mean member confidence")
    last_updated: datetime = Field(default_factory=_utcnow, description="Last recomputation")
    equipment: NodeEquipment = Field(default_factory=NodeEquipment, description="Node equipment")
    version: int = Field(default=0, ge=0, description="Store version for compare-and-swap")

    model_config = ConfigDict(from_attributes=True)

    def __init__(self, **data: Any) -> None:
        super().__init__(**data)
        if not self.id:
            self.id = _new_id("NODE")


class MemberSnapshot(BaseModel):
    """Point-in-time view of one node member used by the rollup."""

    farmer_id: str = Field(..., description="Member farmer identifier")
    farm_size: float = Field(default=0.0, ge=0.0, description="Farm size (ha)")
    total_credits: float = Field(default=0.0, ge=0.0, description="Sum of credit amounts")
    verified_credits: float = Field(default=0.0, ge=0.0, description="Verified and later credits")
    confidence_score: float = Field(default=0.0, ge=0.0, le=100.0, description="Mean credit confidence")


class NodeRollup(BaseModel):
    """Derived node totals."""

    total_area: float = 0.0
    total_carbon_credits: float = 0.0
    verified_carbon_credits: float = 0.0
    confidence_score: float = 0.0
    member_count: int = 0


# =============================================================================
# Farm registry
# =============================================================================


class Farmer(BaseModel):
    """Farmer profile with credit totals recomputed from the credit set."""

    id: str = Field(default="", description="Unique farmer identifier")
    user_id: str = Field(..., description="Identity provider user id")
    name: str = Field(..., min_length=1, description="Farmer name")
    email: Optional[str] = Field(None, description="Contact email")
    phone: Optional[str] = Field(None, description="Contact phone")
    location: GeoLocation = Field(..., description="Farm location")
    farm_size: float = Field(default=0.0, ge=0.0, description="Farm size (ha)")
    primary_crops: List[str] = Field(default_factory=list, description="Primary crops")
    certifications: List[str] = Field(default_factory=list, description="Held certifications")
    cooperative_id: Optional[str] = Field(None, description="Cooperative identifier")
    carbon_wallet_address: Optional[str] = Field(None, description="Settlement wallet address")
    total_carbon_credits: float = Field(default=0.0, ge=0.0, description="All credits (tCO2e)")
    verified_carbon_credits: float = Field(default=0.0, ge=0.0, description="Verified credits")
    pending_carbon_credits: float = Field(default=0.0, ge=0.0, description="Pending credits")
    created_at: datetime = Field(default_factory=_utcnow, description="Registration time")

    model_config = ConfigDict(from_attributes=True)

    def __init__(self, **data: Any) -> None:
        super().__init__(**data)
        if not self.id:
            self.id = _new_id("FRM")


class Crop(BaseModel):
    """Registered crop plot with an estimated annual sequestration."""

    id: str = Field(default="", description="Unique crop identifier")
    farmer_id: str = Field(..., description="Owning farmer identifier")
    crop_type: str = Field(..., min_length=1, description="Crop type (rice, wheat, trees...)")
    variety: Optional[str] = Field(None, description="Crop variety")
    planting_date: datetime = Field(..., description="Planting date")
    expected_harvest_date: datetime = Field(..., description="Expected harvest date")
    area: float = Field(..., ge=0.0, description="Planted area (ha)")
    practice_type: PracticeType = Field(..., description="Practice applied")
    status: CropStatus = Field(default=CropStatus.PLANTED, description="Growth status")
    location: GeoLocation = Field(..., description="Plot location")
    estimated_carbon_sequestration: float = Field(default=0.0, ge=0.0, description="rate x area")
    tree_count: Optional[int] = Field(None, ge=0, description="Trees planted (agroforestry)")
    tree_species: Optional[List[str]] = Field(None, description="Tree species (agroforestry)")

    model_config = ConfigDict(from_attributes=True)

    def __init__(self, **data: Any) -> None:
        super().__init__(**data)
        if not self.id:
            self.id = _new_id("CRP")


class SensorValue(BaseModel):
    """Single sensor measurement."""

    value: float = Field(..., description="Measured value")
    unit: str = Field(..., description="Measurement unit")
    quality: Optional[str] = Field(None, description="Quality flag")


class SensorMetadata(BaseModel):
    """Sensor health information reported alongside a reading."""

    battery_level: Optional[float] = Field(None, ge=0.0, le=100.0, description="Battery %")
    signal_strength: Optional[float] = Field(None, description="Signal strength")
    calibration_date: Optional[datetime] = Field(None, description="Last calibration")


class SensorReading(BaseModel):
    """Field sensor reading owned by a farmer."""

    id: str = Field(default="", description="Unique reading identifier")
    farmer_id: str = Field(..., description="Owning farmer identifier")
    crop_id: Optional[str] = Field(None, description="Crop the sensor monitors")
    sensor_id: str = Field(..., description="Physical sensor identifier")
    sensor_type: SensorType = Field(..., description="Sensor category")
    location: GeoLocation = Field(..., description="Sensor location")
    timestamp: datetime = Field(default_factory=_utcnow, description="Reading time")
    readings: SensorValue = Field(..., description="Measurement")
    metadata: Optional[SensorMetadata] = Field(None, description="Sensor health")

    model_config = ConfigDict(from_attributes=True)

    def __init__(self, **data: Any) -> None:
        super().__init__(**data)
        if not self.id:
            self.id = _new_id("SNS")


# =============================================================================
# Statistics
# =============================================================================


class CarbonStats(BaseModel):
    """Credit statistics for one farmer over a day window."""

    farmer_id: str
    days: int
    total_sequestration: float = 0.0
    methane_reduction: float = 0.0
    total_credits: float = 0.0
    estimated_value: float = 0.0
    average_confidence: float = 0.0
    credit_count: int = 0


class ComplianceStats(BaseModel):
    """Compliance statistics across all stored reports."""

    total_farmers: int = 0
    average_compliance: float = 0.0
    certification_eligible: int = 0
    total_verifications: int = 0
    total_reports: int = 0


class CropStats(BaseModel):
    """Crop statistics for one farmer."""

    farmer_id: str
    total_crops: int = 0
    total_area: float = 0.0
    total_estimated_sequestration: float = 0.0
    by_practice: Dict[str, int] = Field(default_factory=dict)
    by_status: Dict[str, int] = Field(default_factory=dict)


class CommunityStats(BaseModel):
    """Statistics across all MRV nodes."""

    total_nodes: int = 0
    active_nodes: int = 0
    total_farmers: int = 0
    total_area: float = 0.0
    total_carbon_credits: float = 0.0
    verified_carbon_credits: float = 0.0
    average_confidence: float = 0.0


class ServiceStatistics(BaseModel):
    """Counters exposed by the service facade."""

    total_verifications: int = 0
    pending_analysis: int = 0
    analyses_completed: int = 0
    analysis_fallbacks: int = 0
    total_credits: int = 0
    total_reports: int = 0
    total_nodes: int = 0
    total_farmers: int = 0
    queue_depth: int = 0
    provenance_entries: int = 0


# =============================================================================
# Request models
# =============================================================================


class SubmitEvidenceRequest(BaseModel):
    """Request body for evidence submission."""

    farmer_id: str = Field(..., description="Owning farmer identifier")
    crop_id: Optional[str] = Field(None, description="Optional crop identifier")
    practice_type: PracticeType = Field(..., description="Practice being evidenced")
    verification_type: VerificationType = Field(..., description="Kind of evidence")
    image_id: str = Field(..., min_length=1, description="File store image reference")
    location: GeoLocation = Field(..., description="Capture location")
    notes: str = Field(default="", description="Free-text notes")
    satellite_data: Optional[SatelliteData] = Field(None, description="Satellite metrics")

    model_config = ConfigDict(extra="forbid")


class CreateFarmerRequest(BaseModel):
    """Request body for farmer registration."""

    name: str = Field(..., min_length=1, description="Farmer name")
    email: Optional[str] = Field(None, description="Contact email")
    phone: Optional[str] = Field(None, description="Contact phone")
    location: GeoLocation = Field(..., description="Farm location")
    farm_size: float = Field(..., ge=0.0, description="Farm size (ha)")
    primary_crops: List[str] = Field(default_factory=list, description="Primary crops")
    certifications: List[str] = Field(default_factory=list, description="Certifications")
    cooperative_id: Optional[str] = Field(None, description="Cooperative identifier")
    carbon_wallet_address: Optional[str] = Field(None, description="Wallet address")

    model_config = ConfigDict(extra="forbid")


class UpdateFarmerRequest(BaseModel):
    """Partial update of a farmer profile; unset fields are left alone."""

    name: Optional[str] = Field(None, min_length=1, description="Farmer name")
    email: Optional[str] = Field(None, description="Contact email")
    phone: Optional[str] = Field(None, description="Contact phone")
    location: Optional[GeoLocation] = Field(None, description="Farm location")
    farm_size: Optional[float] = Field(None, ge=0.0, description="Farm size (ha)")
    primary_crops: Optional[List[str]] = Field(None, description="Primary crops")
    certifications: Optional[List[str]] = Field(None, description="Certifications")
    cooperative_id: Optional[str] = Field(None, description="Cooperative identifier")
    carbon_wallet_address: Optional[str] = Field(None, description="Wallet address")

    model_config = ConfigDict(extra="forbid")


class CreateCropRequest(BaseModel):
    """Request body for crop registration."""

    farmer_id: str = Field(..., description="Owning farmer identifier")
    crop_type: str = Field(..., min_length=1, description="Crop type")
    variety: Optional[str] = Field(None, description="Crop variety")
    planting_date: datetime = Field(..., description="Planting date")
    expected_harvest_date: datetime = Field(..., description="Expected harvest date")
    area: float = Field(..., ge=0.0, description="Planted area (ha)")
    practice_type: PracticeType = Field(..., description="Practice applied")
    location: GeoLocation = Field(..., description="Plot location")
    tree_count: Optional[int] = Field(None, ge=0, description="Trees planted")
    tree_species: Optional[List[str]] = Field(None, description="Tree species")

    model_config = ConfigDict(extra="forbid")


class CreateNodeRequest(BaseModel):
    """Request body for MRV node creation."""

    name: str = Field(..., min_length=1, description="Display name")
    node_type: NodeType = Field(default=NodeType.COMMUNITY, description="Node scope")
    location: GeoLocation = Field(..., description="Node location")
    coordinator_id: str = Field(..., description="Coordinator user id")
    cooperative_id: Optional[str] = Field(None, description="Cooperative identifier")

    model_config = ConfigDict(extra="forbid")


class RecordSensorReadingRequest(BaseModel):
    """Request body for a field sensor reading."""

    farmer_id: str = Field(..., description="Owning farmer identifier")
    crop_id: Optional[str] = Field(None, description="Crop identifier")
    sensor_id: str = Field(..., min_length=1, description="Sensor identifier")
    sensor_type: SensorType = Field(..., description="Sensor category")
    location: GeoLocation = Field(..., description="Sensor location")
    readings: SensorValue = Field(..., description="Measurement")
    metadata: Optional[SensorMetadata] = Field(None, description="Sensor health")

    model_config = ConfigDict(extra="forbid")


class GenerateReportRequest(BaseModel):
    """Request body for compliance report generation."""

    farmer_id: str = Field(..., description="Owning farmer identifier")
    practice_type: PracticeType = Field(..., description="Practice to report on")
    start_date: datetime = Field(..., description="Window start")
    end_date: datetime = Field(..., description="Window end")

    model_config = ConfigDict(extra="forbid")


class SettlementEvent(BaseModel):
    """External settlement event advancing a credit's status."""

    credit_id: str = Field(..., description="Credit identifier")
    new_status: CreditStatus = Field(..., description="Requested status")
    actual_value: Optional[float] = Field(None, ge=0.0, description="Realized value (traded)")
    ledger_tx_ref: Optional[str] = Field(None, description="Ledger transaction reference")

    model_config = ConfigDict(extra="forbid")


__all__ = [
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
    "ConnectivityLevel",
    # Core models
    "GeoLocation",
    "SatelliteData",
    "AnalysisResult",
    "VerificationRecord",
    "AnalyzerOutput",
    "PolicyDecision",
    "UploadTarget",
    "VerificationPeriod",
    "CarbonCreditRecord",
    "ReportData",
    "CarbonMetrics",
    "ComplianceReport",
    "NodeEquipment",
    "MRVNode",
    "MemberSnapshot",
    "NodeRollup",
    "Farmer",
    "Crop",
    "SensorValue",
    "SensorMetadata",
    "SensorReading",
    # Statistics
    "CarbonStats",
    "ComplianceStats",
    "CropStats",
    "CommunityStats",
    "ServiceStatistics",
    # Requests
    "SubmitEvidenceRequest",
    "CreateFarmerRequest",
    "UpdateFarmerRequest",
    "CreateCropRequest",
    "CreateNodeRequest",
    "RecordSensorReadingRequest",
    "GenerateReportRequest",
    "SettlementEvent",
]
