# -*- coding: utf-8 -*-
"""
Verification Engine - Field Evidence State Machine

Owns the lifecycle of a verification record:

    submit_evidence      -> record created in ``pending_analysis``,
                            analysis task enqueued, id returned
    run_analysis         -> image URL resolved, analyzer invoked under a
                            timeout, output interpreted by the policy,
                            status + analysis applied in one patch
    analyzer failure     -> fallback decision (``pending_review``,
                            confidence 50, non-compliant)

Re-running the analysis of a record that already reached a terminal status
overwrites its analysis with the new deterministic outcome.

Example:
    >>> engine = VerificationEngine(store, files, identity, MockImageAnalyzer())
    >>> record_id = engine.submit_evidence(request)
    >>> engine.task_queue.drain(engine.run_analysis)
    1

Author: AgriMRV Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FuturesTimeoutError
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Tuple

from pydantic import ValidationError

from agrimrv.analyzer import ImageAnalyzer
from agrimrv.config import get_config
from agrimrv.confidence_policy import evaluate_analysis, fallback_decision
from agrimrv.exceptions import AnalysisFailure, NotFoundError
from agrimrv.identity import IdentityProvider, OwnershipGuard
from agrimrv.metrics import (
    record_analysis,
    record_analysis_fallback,
    record_evidence_submitted,
)
from agrimrv.models import (
    AnalysisOutcome,
    AnalysisResult,
    AnalyzerOutput,
    PolicyDecision,
    SubmitEvidenceRequest,
    UploadTarget,
    VerificationRecord,
    VerificationStatus,
)
from agrimrv.store import VERIFICATIONS, EvidenceStore, FileStore
from agrimrv.task_queue import AnalysisTaskQueue

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    """Return current UTC datetime with microseconds zeroed."""
    return datetime.now(timezone.utc).replace(microsecond=0)


# =============================================================================
# VerificationEngine
# =============================================================================


class VerificationEngine:
    """State machine for field evidence verification records.

    Attributes:
        config: CarbonMRVConfig instance.
        store: EvidenceStore holding verification records.
        file_store: FileStore resolving evidence images.
        analyzer: ImageAnalyzer invoked for each record.
        task_queue: Queue receiving one task per submitted record.
        provenance: Optional ProvenanceTracker for audit entries.
    """

    def __init__(
        self,
        store: EvidenceStore,
        file_store: FileStore,
        identity: IdentityProvider,
        analyzer: ImageAnalyzer,
        task_queue: Optional[AnalysisTaskQueue] = None,
        config: Any = None,
        provenance: Any = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.config = config or get_config()
        self.store = store
        self.file_store = file_store
        self.guard = OwnershipGuard(store, identity)
        self.analyzer = analyzer
        self.task_queue = task_queue or AnalysisTaskQueue(
            worker_count=self.config.worker_count,
            maxsize=self.config.queue_max_size,
        )
        self.provenance = provenance
        self.clock = clock or _utcnow
        self._inflight: set = set()
        self._analyses_completed = 0
        self._fallback_count = 0
        self._stats_lock = threading.Lock()
        logger.info(
            "VerificationEngine initialized: analyzer=%s timeout=%.1fs",
            type(analyzer).__name__, self.config.analyzer_timeout_seconds,
        )

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit_evidence(self, request: SubmitEvidenceRequest) -> str:
        """Create a verification record and schedule its analysis.

        Returns:
            Id of the new record, which is in ``pending_analysis``.

        Raises:
            OwnershipError: If the caller does not own the farmer. No
                record is created in that case.
        """
        self.guard.authorize_farmer(request.farmer_id)

        record = VerificationRecord(
            farmer_id=request.farmer_id,
            crop_id=request.crop_id,
            practice_type=request.practice_type,
            verification_type=request.verification_type,
            image_id=request.image_id,
            location=request.location,
            timestamp=self.clock(),
            analysis=AnalysisResult(),
            satellite_data=request.satellite_data,
            status=VerificationStatus.PENDING_ANALYSIS,
            notes=request.notes,
        )
        record_id = self.store.insert(VERIFICATIONS, record.model_dump())

        if self.provenance is not None:
            self.provenance.record(
                "evidence_submission", record_id, "submit",
                self.provenance.build_hash(record),
                user_id=self.guard.identity.current_user_id() or "system",
            )
        record_evidence_submitted(
            request.practice_type.value, request.verification_type.value,
        )

        self.task_queue.enqueue(record_id)
        logger.info(
            "Evidence %s submitted for farmer %s (%s/%s)",
            record_id, request.farmer_id,
            request.practice_type.value, request.verification_type.value,
        )
        return record_id

    def requeue_pending(self) -> int:
        """Enqueue every record still in ``pending_analysis``.

        Picks up submissions refused by a full queue. Ids already queued
        are skipped.

        Returns:
            Number of records newly enqueued.
        """
        docs = self.store.query_by_status(
            VERIFICATIONS, VerificationStatus.PENDING_ANALYSIS,
        )
        docs.sort(key=lambda d: d["timestamp"])
        queued = sum(1 for doc in docs if self.task_queue.enqueue(doc["id"]))
        if queued:
            logger.info("Requeued %d pending analysis task(s)", queued)
        return queued

    def generate_upload_target(self) -> UploadTarget:
        """Mint an upload handle for a new evidence image."""
        upload_url, image_id = self.file_store.generate_upload_target()
        return UploadTarget(upload_url=upload_url, image_id=image_id)

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def _start_analyzer_call(self, image_url: str, record: VerificationRecord) -> Future:
        """Run one analyzer call on its own daemon thread.

        Each call gets a dedicated thread so a hung call never delays the
        start of another.
        """
        future: Future = Future()
        future.set_running_or_notify_cancel()

        def _run() -> None:
            try:
                future.set_result(self.analyzer.analyze(
                    image_url,
                    record.practice_type.value,
                    record.verification_type.value,
                ))
            except Exception as exc:
                future.set_exception(exc)
            finally:
                with self._stats_lock:
                    self._inflight.discard(thread)

        thread = threading.Thread(
            target=_run, name=f"agrimrv-analyzer-{record.id}", daemon=True,
        )
        with self._stats_lock:
            self._inflight.add(thread)
        thread.start()
        return future

    def _invoke_analyzer(self, image_url: str, record: VerificationRecord) -> AnalyzerOutput:
        """Call the analyzer, waiting at most the configured timeout.

        The timeout starts when the call starts.

        Raises:
            AnalysisFailure: On timeout, analyzer error or unusable output.
        """
        timeout = self.config.analyzer_timeout_seconds
        future = self._start_analyzer_call(image_url, record)
        try:
            output = future.result(timeout=timeout)
        except FuturesTimeoutError:
            raise AnalysisFailure(
                f"Analyzer exceeded {timeout:.1f}s", reason="timeout",
            )
        except AnalysisFailure:
            raise
        except Exception as exc:
            raise AnalysisFailure(
                f"Analyzer raised {type(exc).__name__}: {exc}",
                reason="analyzer_error",
            ) from exc

        if isinstance(output, AnalyzerOutput):
            return output
        try:
            return AnalyzerOutput.model_validate(output)
        except ValidationError as exc:
            raise AnalysisFailure(
                f"Analyzer output could not be parsed: {exc}", reason="malformed",
            ) from exc

    def _decide(
        self,
        image_url: str,
        record: VerificationRecord,
    ) -> Tuple[PolicyDecision, AnalysisOutcome]:
        try:
            output = self._invoke_analyzer(image_url, record)
            decision = evaluate_analysis(
                output,
                compliance_threshold=self.config.compliance_threshold,
                max_findings=self.config.max_findings,
            )
            return decision, AnalysisOutcome.ANALYZED
        except AnalysisFailure as exc:
            logger.warning(
                "Analysis of %s failed (%s); applying fallback: %s",
                record.id, exc.reason, exc.message,
            )
            record_analysis_fallback(exc.reason)
            return (
                fallback_decision(self.config.fallback_confidence),
                AnalysisOutcome.FALLBACK,
            )

    def run_analysis(self, record_id: str) -> VerificationRecord:
        """Analyze a record and move it to its terminal status.

        Analyzer errors, timeouts and malformed output never propagate;
        they resolve into the fallback decision.

        Raises:
            NotFoundError: If the record or its image does not exist.
        """
        start = time.monotonic()
        record = self.get_record(record_id)

        image_url = self.file_store.resolve_url(record.image_id)
        if not image_url:
            raise NotFoundError(
                "Image not found", entity_type="image",
                entity_id=record.image_id, engine="verification",
            )

        if record.status != VerificationStatus.PENDING_ANALYSIS:
            logger.info(
                "Re-running analysis for %s (currently %s)",
                record_id, record.status.value,
            )

        decision, outcome = self._decide(image_url, record)
        updated = self._apply_decision(record_id, decision, outcome)

        elapsed = time.monotonic() - start
        record_analysis(decision.status.value, outcome.value, elapsed)
        if self.provenance is not None:
            self.provenance.record(
                "image_analysis", record_id,
                "analyze" if outcome == AnalysisOutcome.ANALYZED else "fallback",
                self.provenance.build_hash(decision),
            )
        logger.info(
            "Analysis applied to %s: status=%s confidence=%.1f outcome=%s (%.3fs)",
            record_id, decision.status.value, decision.confidence,
            outcome.value, elapsed,
        )
        return updated

    def _apply_decision(
        self,
        record_id: str,
        decision: PolicyDecision,
        outcome: AnalysisOutcome,
    ) -> VerificationRecord:
        """Write status and analysis in a single atomic patch."""
        doc = self.store.patch(VERIFICATIONS, record_id, {
            "analysis": decision.to_analysis().model_dump(),
            "status": decision.status,
            "analysis_outcome": outcome,
            "analyzed_at": self.clock(),
        })
        with self._stats_lock:
            if outcome == AnalysisOutcome.FALLBACK:
                self._fallback_count += 1
            self._analyses_completed += 1
        return VerificationRecord.model_validate(doc)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_record(self, record_id: str) -> VerificationRecord:
        """Return a verification record.

        Raises:
            NotFoundError: If the record does not exist.
        """
        doc = self.store.get(VERIFICATIONS, record_id)
        if doc is None:
            raise NotFoundError(
                "Verification record not found", entity_type="verification",
                entity_id=record_id, engine="verification",
            )
        return VerificationRecord.model_validate(doc)

    def _with_image_url(self, doc: dict) -> VerificationRecord:
        record = VerificationRecord.model_validate(doc)
        record.image_url = self.file_store.resolve_url(record.image_id)
        return record

    def get_farmer_verifications(self, farmer_id: str) -> List[VerificationRecord]:
        """Return the farmer's records, newest first, with image URLs.

        Raises:
            OwnershipError: If the caller does not own the farmer.
        """
        self.guard.authorize_farmer(farmer_id)
        docs = self.store.query_by_owner(VERIFICATIONS, farmer_id)
        docs.sort(key=lambda d: d["timestamp"], reverse=True)
        return [self._with_image_url(doc) for doc in docs]

    def get_verifications_by_status(
        self,
        status: VerificationStatus,
        limit: Optional[int] = None,
    ) -> List[VerificationRecord]:
        """Return the most recent records in a status (default limit 50)."""
        limit = limit or self.config.status_query_limit
        docs = self.store.query_by_status(VERIFICATIONS, VerificationStatus(status))
        docs.sort(key=lambda d: d["timestamp"], reverse=True)
        return [VerificationRecord.model_validate(doc) for doc in docs[:limit]]

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    @property
    def record_count(self) -> int:
        return self.store.count(VERIFICATIONS)

    @property
    def pending_count(self) -> int:
        return self.store.count(VERIFICATIONS, status=VerificationStatus.PENDING_ANALYSIS)

    @property
    def analyses_completed(self) -> int:
        return self._analyses_completed

    @property
    def fallback_count(self) -> int:
        return self._fallback_count

    @property
    def inflight_analyzer_calls(self) -> int:
        """Analyzer calls still running, including ones past their timeout."""
        with self._stats_lock:
            return len(self._inflight)

    def shutdown(self) -> None:
        """Log analyzer calls that are still running.

        Calls run on daemon threads, so abandoned ones never block exit.
        """
        pending = self.inflight_analyzer_calls
        if pending:
            logger.warning(
                "VerificationEngine shutting down with %d analyzer call(s) in flight",
                pending,
            )


__all__ = [
    "VerificationEngine",
]
