# -*- coding: utf-8 -*-
"""
Carbon MRV Service Setup

Provides ``configure_carbon_mrv(app)`` which wires up the carbon
verification SDK (verification engine, analysis task queue, credit
aggregation engine, MRV node engine, compliance report engine, farm
registry, sensor data engine, provenance tracker) and mounts the REST API.

Also exposes ``get_carbon_mrv(app)`` for programmatic access and the
``CarbonMRVService`` facade class.

Usage:
    >>> from fastapi import FastAPI
    >>> from agrimrv.setup import configure_carbon_mrv
    >>> app = FastAPI()
    >>> import asyncio
    >>> service = asyncio.run(configure_carbon_mrv(app))

Author: AgriMRV Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from fastapi import APIRouter, Header, HTTPException, Query

from agrimrv.analyzer import ImageAnalyzer, MockImageAnalyzer, VisionChatAnalyzer
from agrimrv.compliance_report import ComplianceReportEngine
from agrimrv.config import CarbonMRVConfig, get_config
from agrimrv.credit_aggregation import CarbonCreditEngine
from agrimrv.exceptions import (
    AgriMRVException,
    ConflictError,
    InvalidTransitionError,
    NoEvidenceError,
    NotFoundError,
    OwnershipError,
)
from agrimrv.farm_registry import FarmRegistryEngine
from agrimrv.identity import IdentityProvider, StaticIdentityProvider
from agrimrv.metrics import record_processing_error
from agrimrv.models import (
    CarbonCreditRecord,
    CarbonStats,
    CommunityStats,
    ComplianceReport,
    ComplianceStats,
    CreateCropRequest,
    CreateFarmerRequest,
    CreateNodeRequest,
    Crop,
    CropStats,
    CropStatus,
    Farmer,
    GenerateReportRequest,
    MRVNode,
    RecordSensorReadingRequest,
    SatelliteData,
    SensorReading,
    SensorType,
    ServiceStatistics,
    SettlementEvent,
    SubmitEvidenceRequest,
    UpdateFarmerRequest,
    UploadTarget,
    VerificationRecord,
    VerificationStatus,
)
from agrimrv.node_rollup import MRVNodeEngine
from agrimrv.provenance import ProvenanceTracker
from agrimrv.sensor_data import SensorDataEngine
from agrimrv.store import EvidenceStore, FileStore, InMemoryEvidenceStore, InMemoryFileStore
from agrimrv.task_queue import AnalysisTaskQueue
from agrimrv.verification_engine import VerificationEngine

logger = logging.getLogger(__name__)


# ===================================================================
# Thread-safe singleton
# ===================================================================

_singleton_lock = threading.Lock()
_singleton_instance: Optional["CarbonMRVService"] = None


# ===================================================================
# CarbonMRVService facade
# ===================================================================


class CarbonMRVService:
    """Unified facade over the carbon verification SDK.

    Composes the collaborators (evidence store, file store, identity,
    image analyzer) with every engine and exposes the operations the API
    serves.

    Attributes:
        config: CarbonMRVConfig instance.
        provenance: ProvenanceTracker for SHA-256 audit trails.
        task_queue: AnalysisTaskQueue feeding the verification engine.
        verification_engine: VerificationEngine for evidence records.
        node_engine: MRVNodeEngine for node membership and rollups.
        credit_engine: CarbonCreditEngine for credit generation.
        report_engine: ComplianceReportEngine for compliance reports.
        registry: FarmRegistryEngine for farmers and crops.
        sensor_engine: SensorDataEngine for sensor readings.

    Example:
        >>> service = CarbonMRVService()
        >>> service.get_statistics().total_verifications
        0
    """

    def __init__(
        self,
        config: Optional[CarbonMRVConfig] = None,
        store: Optional[EvidenceStore] = None,
        file_store: Optional[FileStore] = None,
        identity: Optional[IdentityProvider] = None,
        analyzer: Optional[ImageAnalyzer] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.config = config or get_config()
        self.store = store or InMemoryEvidenceStore()
        self.file_store = file_store or InMemoryFileStore()
        self.identity = identity or StaticIdentityProvider()
        self.analyzer = analyzer or self._build_analyzer()
        self.provenance = ProvenanceTracker()

        self.task_queue = AnalysisTaskQueue(
            worker_count=self.config.worker_count,
            maxsize=self.config.queue_max_size,
        )
        self.verification_engine = VerificationEngine(
            self.store, self.file_store, self.identity, self.analyzer,
            task_queue=self.task_queue, config=self.config,
            provenance=self.provenance, clock=clock,
        )
        self.node_engine = MRVNodeEngine(
            self.store, self.identity, config=self.config,
            provenance=self.provenance, clock=clock,
        )
        self.credit_engine = CarbonCreditEngine(
            self.store, self.identity, node_engine=self.node_engine,
            config=self.config, provenance=self.provenance, clock=clock,
        )
        self.report_engine = ComplianceReportEngine(
            self.store, self.identity, config=self.config,
            provenance=self.provenance, clock=clock,
        )
        self.registry = FarmRegistryEngine(
            self.store, self.identity, node_engine=self.node_engine,
            config=self.config, provenance=self.provenance, clock=clock,
        )
        self.sensor_engine = SensorDataEngine(
            self.store, self.identity, config=self.config, clock=clock,
        )

        self._started = False
        logger.info("CarbonMRVService facade created")

    def _build_analyzer(self) -> ImageAnalyzer:
        if self.config.use_mock_analyzer:
            logger.info("Using MockImageAnalyzer (use_mock_analyzer=True)")
            return MockImageAnalyzer()
        return VisionChatAnalyzer(config=self.config)

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def generate_upload_target(self) -> UploadTarget:
        return self.verification_engine.generate_upload_target()

    def submit_evidence(self, request: SubmitEvidenceRequest) -> str:
        return self.verification_engine.submit_evidence(request)

    def run_analysis(self, record_id: str) -> VerificationRecord:
        return self.verification_engine.run_analysis(record_id)

    def get_verification(self, record_id: str) -> VerificationRecord:
        return self.verification_engine.get_record(record_id)

    def get_farmer_verifications(self, farmer_id: str) -> List[VerificationRecord]:
        return self.verification_engine.get_farmer_verifications(farmer_id)

    def get_verifications_by_status(self, status: VerificationStatus) -> List[VerificationRecord]:
        return self.verification_engine.get_verifications_by_status(status)

    def process_pending(self) -> int:
        """Run every queued analysis on the calling thread."""
        return self.task_queue.drain(self.verification_engine.run_analysis)

    def requeue_pending(self) -> int:
        return self.verification_engine.requeue_pending()

    # ------------------------------------------------------------------
    # Credits
    # ------------------------------------------------------------------

    def generate_credits(
        self,
        farmer_id: str,
        window_days: Optional[int] = None,
    ) -> List[CarbonCreditRecord]:
        return self.credit_engine.generate_credits(farmer_id, window_days)

    def get_farmer_credits(self, farmer_id: str) -> List[CarbonCreditRecord]:
        return self.credit_engine.get_farmer_credits(farmer_id)

    def get_carbon_stats(self, farmer_id: str, days: Optional[int] = None) -> CarbonStats:
        return self.credit_engine.get_carbon_stats(farmer_id, days)

    def apply_settlement_event(self, event: SettlementEvent) -> CarbonCreditRecord:
        return self.credit_engine.apply_settlement_event(event)

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def generate_report(self, request: GenerateReportRequest) -> ComplianceReport:
        return self.report_engine.generate_report(request)

    def get_farmer_reports(self, farmer_id: str) -> List[ComplianceReport]:
        return self.report_engine.get_farmer_reports(farmer_id)

    def get_compliance_stats(self, practice_type: Optional[str] = None) -> ComplianceStats:
        return self.report_engine.get_compliance_stats(practice_type)

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def create_node(self, request: CreateNodeRequest) -> MRVNode:
        return self.node_engine.create_node(request)

    def join_node(self, node_id: str, farmer_id: str) -> MRVNode:
        return self.node_engine.join_node(node_id, farmer_id)

    def leave_node(self, node_id: str, farmer_id: str) -> MRVNode:
        return self.node_engine.leave_node(node_id, farmer_id)

    def get_node(self, node_id: str) -> MRVNode:
        return self.node_engine.get_node(node_id)

    def get_nearby_nodes(
        self,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        radius_km: Optional[float] = None,
    ) -> List[MRVNode]:
        return self.node_engine.get_nearby_nodes(latitude, longitude, radius_km)

    def get_farmer_node(self, farmer_id: str) -> Optional[MRVNode]:
        return self.node_engine.get_farmer_node(farmer_id)

    def get_community_stats(self) -> CommunityStats:
        return self.node_engine.get_community_stats()

    # ------------------------------------------------------------------
    # Farm registry and sensors
    # ------------------------------------------------------------------

    def create_farmer(self, request: CreateFarmerRequest) -> Farmer:
        return self.registry.create_farmer(request)

    def get_farmer(self, farmer_id: str) -> Farmer:
        return self.registry.get_farmer(farmer_id)

    def get_farmer_profile(self) -> Optional[Farmer]:
        return self.registry.get_farmer_profile()

    def list_farmers(self, cooperative_id: Optional[str] = None) -> List[Farmer]:
        return self.registry.list_farmers(cooperative_id)

    def update_farmer(self, farmer_id: str, request: UpdateFarmerRequest) -> Farmer:
        return self.registry.update_farmer(farmer_id, request)

    def delete_farmer(self, farmer_id: str) -> bool:
        return self.registry.delete_farmer(farmer_id)

    def create_crop(self, request: CreateCropRequest) -> Crop:
        return self.registry.create_crop(request)

    def update_crop_status(self, crop_id: str, status: CropStatus) -> Crop:
        return self.registry.update_crop_status(crop_id, status)

    def get_farmer_crops(self, farmer_id: str) -> List[Crop]:
        return self.registry.get_farmer_crops(farmer_id)

    def get_crop_stats(self, farmer_id: str) -> CropStats:
        return self.registry.get_crop_stats(farmer_id)

    def record_sensor_reading(self, request: RecordSensorReadingRequest) -> SensorReading:
        return self.sensor_engine.record_reading(request)

    def get_sensor_readings(
        self,
        farmer_id: str,
        hours: int = 24,
        sensor_type: Optional[SensorType] = None,
    ) -> List[SensorReading]:
        return self.sensor_engine.get_readings(farmer_id, hours, sensor_type)

    def get_latest_satellite_data(self, farmer_id: str) -> Optional[SatelliteData]:
        return self.sensor_engine.get_latest_satellite_data(farmer_id)

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def get_statistics(self) -> ServiceStatistics:
        return ServiceStatistics(
            total_verifications=self.verification_engine.record_count,
            pending_analysis=self.verification_engine.pending_count,
            analyses_completed=self.verification_engine.analyses_completed,
            analysis_fallbacks=self.verification_engine.fallback_count,
            total_credits=self.credit_engine.credit_count,
            total_reports=self.report_engine.report_count,
            total_nodes=self.node_engine.node_count,
            total_farmers=self.registry.farmer_count,
            queue_depth=self.task_queue.pending_count,
            provenance_entries=self.provenance.entry_count,
        )

    def get_provenance(self) -> ProvenanceTracker:
        return self.provenance

    def get_metrics(self) -> Dict[str, Any]:
        """Return service health and counters as a plain dict."""
        stats = self.get_statistics()
        return {
            "service": "carbon_mrv",
            "started": self._started,
            "workers_running": self.task_queue.is_running,
            "analyzer": type(self.analyzer).__name__,
            **stats.model_dump(),
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def startup(self, start_workers: bool = True) -> None:
        """Start the service and, unless disabled, the analysis workers.

        Safe to call multiple times.
        """
        if self._started:
            logger.debug("CarbonMRVService already started; skipping")
            return

        logger.info("CarbonMRVService starting up...")
        logging.getLogger("agrimrv").setLevel(self.config.log_level.upper())
        if start_workers:
            self.task_queue.start(self.verification_engine.run_analysis)
        self._started = True
        logger.info("CarbonMRVService startup complete")

    def shutdown(self) -> None:
        """Stop the workers and release resources."""
        if not self._started:
            return
        self.task_queue.stop()
        self.verification_engine.shutdown()
        self._started = False
        logger.info("CarbonMRVService shut down")


# ===================================================================
# Thread-safe singleton access
# ===================================================================


def _get_singleton() -> CarbonMRVService:
    global _singleton_instance
    if _singleton_instance is None:
        with _singleton_lock:
            if _singleton_instance is None:
                _singleton_instance = CarbonMRVService()
    return _singleton_instance


# ===================================================================
# FastAPI integration
# ===================================================================


async def configure_carbon_mrv(
    app: Any,
    config: Optional[CarbonMRVConfig] = None,
    service: Optional[CarbonMRVService] = None,
) -> CarbonMRVService:
    """Configure the Carbon MRV Service on a FastAPI application.

    Creates the CarbonMRVService (unless one is given), stores it in
    app.state, mounts the REST API router, and starts the service.

    Args:
        app: FastAPI application instance.
        config: Optional CarbonMRVConfig.
        service: Optional pre-built service (tests inject collaborators).

    Returns:
        CarbonMRVService instance.
    """
    global _singleton_instance

    service = service or CarbonMRVService(config=config)

    with _singleton_lock:
        _singleton_instance = service

    app.state.carbon_mrv_service = service

    app.include_router(get_router(service))
    logger.info("Carbon MRV API router mounted")

    service.startup()

    logger.info("Carbon MRV service configured on app")
    return service


def get_carbon_mrv(app: Any) -> CarbonMRVService:
    """Get the CarbonMRVService instance from app state.

    Raises:
        RuntimeError: If service not configured.
    """
    service = getattr(app.state, "carbon_mrv_service", None)
    if service is None:
        raise RuntimeError(
            "Carbon MRV service not configured. "
            "Call configure_carbon_mrv(app) first."
        )
    return service


# HTTP status per error type; AnalysisFailure never reaches the API.
_ERROR_STATUS = (
    (OwnershipError, 403),
    (NotFoundError, 404),
    (NoEvidenceError, 422),
    (ConflictError, 409),
    (InvalidTransitionError, 409),
)


def _http_status(exc: AgriMRVException) -> int:
    for error_type, status_code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return 500


def get_router(service: Optional[CarbonMRVService] = None) -> APIRouter:
    """Get the carbon MRV API router.

    Creates a FastAPI APIRouter at prefix ``/api/v1/carbon-mrv``. The
    caller's identity is taken from the ``X-User-Id`` header.

    Args:
        service: Service to serve; the singleton is used when None.

    Returns:
        FastAPI APIRouter.
    """
    router = APIRouter(prefix="/api/v1/carbon-mrv", tags=["carbon-mrv"])

    def _svc() -> CarbonMRVService:
        return service or _get_singleton()

    def _call(user_id: Optional[str], fn: Callable[..., Any], *args: Any) -> Any:
        svc = _svc()
        identity = svc.identity
        try:
            if isinstance(identity, StaticIdentityProvider):
                with identity.acting_as(user_id):
                    return fn(*args)
            return fn(*args)
        except AgriMRVException as exc:
            status_code = _http_status(exc)
            if status_code == 500:
                record_processing_error("api", type(exc).__name__)
                logger.error("Unhandled service error: %s", exc, exc_info=True)
            raise HTTPException(status_code=status_code, detail=exc.to_dict())

    # ------------------------------------------------------------------
    # Farmers and crops
    # ------------------------------------------------------------------

    @router.post("/farmers", response_model=Farmer, status_code=201)
    async def post_create_farmer(
        request: CreateFarmerRequest,
        x_user_id: Optional[str] = Header(None),
    ) -> Farmer:
        return _call(x_user_id, _svc().create_farmer, request)

    @router.get("/farmers/me", response_model=Optional[Farmer])
    async def get_my_profile(x_user_id: Optional[str] = Header(None)) -> Optional[Farmer]:
        return _call(x_user_id, _svc().get_farmer_profile)

    @router.get("/farmers", response_model=List[Farmer])
    async def get_list_farmers(cooperative_id: Optional[str] = Query(None)) -> List[Farmer]:
        return _call(None, _svc().list_farmers, cooperative_id)

    @router.get("/farmers/{farmer_id}", response_model=Farmer)
    async def get_farmer_by_id(farmer_id: str) -> Farmer:
        return _call(None, _svc().get_farmer, farmer_id)

    @router.patch("/farmers/{farmer_id}", response_model=Farmer)
    async def patch_update_farmer(
        farmer_id: str,
        request: UpdateFarmerRequest,
        x_user_id: Optional[str] = Header(None),
    ) -> Farmer:
        return _call(x_user_id, _svc().update_farmer, farmer_id, request)

    @router.delete("/farmers/{farmer_id}", status_code=204)
    async def delete_farmer_by_id(
        farmer_id: str,
        x_user_id: Optional[str] = Header(None),
    ) -> None:
        _call(x_user_id, _svc().delete_farmer, farmer_id)

    @router.post("/crops", response_model=Crop, status_code=201)
    async def post_create_crop(
        request: CreateCropRequest,
        x_user_id: Optional[str] = Header(None),
    ) -> Crop:
        return _call(x_user_id, _svc().create_crop, request)

    @router.patch("/crops/{crop_id}/status", response_model=Crop)
    async def patch_crop_status(
        crop_id: str,
        status: CropStatus = Query(...),
        x_user_id: Optional[str] = Header(None),
    ) -> Crop:
        return _call(x_user_id, _svc().update_crop_status, crop_id, status)

    @router.get("/farmers/{farmer_id}/crops", response_model=List[Crop])
    async def get_farmer_crops(
        farmer_id: str,
        x_user_id: Optional[str] = Header(None),
    ) -> List[Crop]:
        return _call(x_user_id, _svc().get_farmer_crops, farmer_id)

    @router.get("/farmers/{farmer_id}/crops/stats", response_model=CropStats)
    async def get_farmer_crop_stats(
        farmer_id: str,
        x_user_id: Optional[str] = Header(None),
    ) -> CropStats:
        return _call(x_user_id, _svc().get_crop_stats, farmer_id)

    # ------------------------------------------------------------------
    # Evidence
    # ------------------------------------------------------------------

    @router.post("/uploads", response_model=UploadTarget, status_code=201)
    async def post_upload_target() -> UploadTarget:
        return _call(None, _svc().generate_upload_target)

    @router.post("/verifications", status_code=202)
    async def post_submit_evidence(
        request: SubmitEvidenceRequest,
        x_user_id: Optional[str] = Header(None),
    ) -> Dict[str, Any]:
        record_id = _call(x_user_id, _svc().submit_evidence, request)
        return {"id": record_id, "status": VerificationStatus.PENDING_ANALYSIS.value}

    @router.get("/verifications", response_model=List[VerificationRecord])
    async def get_verifications_by_status(
        status: VerificationStatus = Query(...),
    ) -> List[VerificationRecord]:
        return _call(None, _svc().get_verifications_by_status, status)

    @router.get("/verifications/{record_id}", response_model=VerificationRecord)
    async def get_verification_by_id(record_id: str) -> VerificationRecord:
        return _call(None, _svc().get_verification, record_id)

    @router.get("/farmers/{farmer_id}/verifications", response_model=List[VerificationRecord])
    async def get_farmer_verifications(
        farmer_id: str,
        x_user_id: Optional[str] = Header(None),
    ) -> List[VerificationRecord]:
        return _call(x_user_id, _svc().get_farmer_verifications, farmer_id)

    # ------------------------------------------------------------------
    # Credits
    # ------------------------------------------------------------------

    @router.post(
        "/farmers/{farmer_id}/credits",
        response_model=List[CarbonCreditRecord],
        status_code=201,
    )
    async def post_generate_credits(
        farmer_id: str,
        window_days: Optional[int] = Query(None, ge=1),
        x_user_id: Optional[str] = Header(None),
    ) -> List[CarbonCreditRecord]:
        return _call(x_user_id, _svc().generate_credits, farmer_id, window_days)

    @router.get("/farmers/{farmer_id}/credits", response_model=List[CarbonCreditRecord])
    async def get_farmer_credits(
        farmer_id: str,
        x_user_id: Optional[str] = Header(None),
    ) -> List[CarbonCreditRecord]:
        return _call(x_user_id, _svc().get_farmer_credits, farmer_id)

    @router.get("/farmers/{farmer_id}/carbon-stats", response_model=CarbonStats)
    async def get_farmer_carbon_stats(
        farmer_id: str,
        days: Optional[int] = Query(None, ge=1),
        x_user_id: Optional[str] = Header(None),
    ) -> CarbonStats:
        return _call(x_user_id, _svc().get_carbon_stats, farmer_id, days)

    @router.post("/credits/settlement", response_model=CarbonCreditRecord)
    async def post_settlement_event(event: SettlementEvent) -> CarbonCreditRecord:
        return _call(None, _svc().apply_settlement_event, event)

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    @router.post("/reports", response_model=ComplianceReport, status_code=201)
    async def post_generate_report(
        request: GenerateReportRequest,
        x_user_id: Optional[str] = Header(None),
    ) -> ComplianceReport:
        return _call(x_user_id, _svc().generate_report, request)

    @router.get("/farmers/{farmer_id}/reports", response_model=List[ComplianceReport])
    async def get_farmer_reports(
        farmer_id: str,
        x_user_id: Optional[str] = Header(None),
    ) -> List[ComplianceReport]:
        return _call(x_user_id, _svc().get_farmer_reports, farmer_id)

    @router.get("/compliance/stats", response_model=ComplianceStats)
    async def get_compliance_stats(
        practice_type: Optional[str] = Query(None),
    ) -> ComplianceStats:
        return _call(None, _svc().get_compliance_stats, practice_type)

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    @router.post("/nodes", response_model=MRVNode, status_code=201)
    async def post_create_node(
        request: CreateNodeRequest,
        x_user_id: Optional[str] = Header(None),
    ) -> MRVNode:
        return _call(x_user_id, _svc().create_node, request)

    @router.get("/nodes", response_model=List[MRVNode])
    async def get_nearby_nodes(
        latitude: Optional[float] = Query(None, ge=-90.0, le=90.0),
        longitude: Optional[float] = Query(None, ge=-180.0, le=180.0),
        radius_km: Optional[float] = Query(None, gt=0.0),
    ) -> List[MRVNode]:
        return _call(None, _svc().get_nearby_nodes, latitude, longitude, radius_km)

    @router.get("/nodes/stats", response_model=CommunityStats)
    async def get_community_stats() -> CommunityStats:
        return _call(None, _svc().get_community_stats)

    @router.get("/nodes/{node_id}", response_model=MRVNode)
    async def get_node_by_id(node_id: str) -> MRVNode:
        return _call(None, _svc().get_node, node_id)

    @router.post("/nodes/{node_id}/members/{farmer_id}", response_model=MRVNode)
    async def post_join_node(
        node_id: str,
        farmer_id: str,
        x_user_id: Optional[str] = Header(None),
    ) -> MRVNode:
        return _call(x_user_id, _svc().join_node, node_id, farmer_id)

    @router.delete("/nodes/{node_id}/members/{farmer_id}", response_model=MRVNode)
    async def delete_leave_node(
        node_id: str,
        farmer_id: str,
        x_user_id: Optional[str] = Header(None),
    ) -> MRVNode:
        return _call(x_user_id, _svc().leave_node, node_id, farmer_id)

    @router.get("/farmers/{farmer_id}/node", response_model=Optional[MRVNode])
    async def get_farmer_node(
        farmer_id: str,
        x_user_id: Optional[str] = Header(None),
    ) -> Optional[MRVNode]:
        return _call(x_user_id, _svc().get_farmer_node, farmer_id)

    # ------------------------------------------------------------------
    # Sensors
    # ------------------------------------------------------------------

    @router.post("/sensors/readings", response_model=SensorReading, status_code=201)
    async def post_sensor_reading(
        request: RecordSensorReadingRequest,
        x_user_id: Optional[str] = Header(None),
    ) -> SensorReading:
        return _call(x_user_id, _svc().record_sensor_reading, request)

    @router.get("/farmers/{farmer_id}/sensors", response_model=List[SensorReading])
    async def get_sensor_readings(
        farmer_id: str,
        hours: int = Query(24, ge=1, le=24 * 365),
        sensor_type: Optional[SensorType] = Query(None),
        x_user_id: Optional[str] = Header(None),
    ) -> List[SensorReading]:
        return _call(x_user_id, _svc().get_sensor_readings, farmer_id, hours, sensor_type)

    @router.get("/farmers/{farmer_id}/satellite", response_model=Optional[SatelliteData])
    async def get_latest_satellite(
        farmer_id: str,
        x_user_id: Optional[str] = Header(None),
    ) -> Optional[SatelliteData]:
        return _call(x_user_id, _svc().get_latest_satellite_data, farmer_id)

    # ------------------------------------------------------------------
    # Service
    # ------------------------------------------------------------------

    @router.get("/health")
    async def get_health_check() -> Dict[str, Any]:
        return _svc().get_metrics()

    @router.get("/statistics", response_model=ServiceStatistics)
    async def get_service_statistics() -> ServiceStatistics:
        return _svc().get_statistics()

    return router


__all__ = [
    "CarbonMRVService",
    "configure_carbon_mrv",
    "get_carbon_mrv",
    "get_router",
]
