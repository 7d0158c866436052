# -*- coding: utf-8 -*-
"""
Evidence and File Store Interfaces

The persistence engine and blob storage are external collaborators. This
module defines the interfaces the engines program against and thread-safe
in-memory implementations used in development and tests.

Documents are plain dicts keyed by ``id``. Every stored document carries a
``version`` counter maintained by the store: each write increments it and
``compare_and_swap`` only applies when the caller's expected version
matches, which is how node rollups serialise concurrent membership changes.

Collections:
    farmers, verifications, carbon_credits, compliance_reports,
    mrv_nodes, crops, sensor_readings

Example:
    >>> store = InMemoryEvidenceStore()
    >>> doc_id = store.insert(FARMERS, {"id": "FRM-1", "name": "Asha"})
    >>> store.patch(FARMERS, doc_id, {"farm_size": 2.0})["version"]
    2

Author: AgriMRV Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import copy
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

from agrimrv.exceptions import NotFoundError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Collection names
# ---------------------------------------------------------------------------

FARMERS = "farmers"
VERIFICATIONS = "verifications"
CARBON_CREDITS = "carbon_credits"
COMPLIANCE_REPORTS = "compliance_reports"
MRV_NODES = "mrv_nodes"
CROPS = "crops"
SENSOR_READINGS = "sensor_readings"

COLLECTIONS = (
    FARMERS,
    VERIFICATIONS,
    CARBON_CREDITS,
    COMPLIANCE_REPORTS,
    MRV_NODES,
    CROPS,
    SENSOR_READINGS,
)

OWNER_FIELD = "farmer_id"


# =============================================================================
# EvidenceStore
# =============================================================================


class EvidenceStore(ABC):
    """Document store holding every MRV entity.

    Single-document writes are atomic. There are no multi-document
    transactions.
    """

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Return a copy of the document, or None."""

    @abstractmethod
    def insert(self, collection: str, document: Dict[str, Any]) -> str:
        """Insert a document and return its id."""

    @abstractmethod
    def patch(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Atomically merge ``fields`` into a document and return the result.

        Raises:
            NotFoundError: If the document does not exist.
        """

    @abstractmethod
    def delete(self, collection: str, doc_id: str) -> bool:
        """Delete a document; returns False when it did not exist."""

    @abstractmethod
    def query(self, collection: str, **equals: Any) -> List[Dict[str, Any]]:
        """Return copies of every document whose fields equal ``equals``."""

    @abstractmethod
    def compare_and_swap(
        self,
        collection: str,
        doc_id: str,
        expected_version: int,
        fields: Dict[str, Any],
    ) -> bool:
        """Apply ``fields`` only if the stored version equals ``expected_version``.

        Raises:
            NotFoundError: If the document does not exist.
        """

    def query_by_owner(self, collection: str, owner_id: str) -> List[Dict[str, Any]]:
        """Return every document owned by a farmer."""
        return self.query(collection, **{OWNER_FIELD: owner_id})

    def query_by_status(self, collection: str, status: str) -> List[Dict[str, Any]]:
        """Return every document in a given status."""
        return self.query(collection, status=status)

    def count(self, collection: str, **equals: Any) -> int:
        return len(self.query(collection, **equals))


class InMemoryEvidenceStore(EvidenceStore):
    """Thread-safe in-memory EvidenceStore.

    Returned documents are deep copies so callers can never mutate stored
    state outside a write.
    """

    def __init__(self) -> None:
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {
            name: {} for name in COLLECTIONS
        }
        self._lock = threading.RLock()
        logger.info("InMemoryEvidenceStore initialized")

    def _bucket(self, collection: str) -> Dict[str, Dict[str, Any]]:
        if collection not in self._collections:
            self._collections[collection] = {}
        return self._collections[collection]

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            doc = self._bucket(collection).get(doc_id)
            return copy.deepcopy(doc) if doc is not None else None

    def insert(self, collection: str, document: Dict[str, Any]) -> str:
        doc = copy.deepcopy(document)
        doc_id = doc.get("id") or uuid.uuid4().hex
        doc["id"] = doc_id
        doc["version"] = 1
        with self._lock:
            self._bucket(collection)[doc_id] = doc
        logger.debug("Inserted %s/%s", collection, doc_id)
        return doc_id

    def patch(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            doc = self._require(collection, doc_id)
            self._apply(doc, fields)
            return copy.deepcopy(doc)

    def delete(self, collection: str, doc_id: str) -> bool:
        with self._lock:
            removed = self._bucket(collection).pop(doc_id, None)
        if removed is not None:
            logger.debug("Deleted %s/%s", collection, doc_id)
        return removed is not None

    def query(self, collection: str, **equals: Any) -> List[Dict[str, Any]]:
        with self._lock:
            return [
                copy.deepcopy(doc)
                for doc in self._bucket(collection).values()
                if all(doc.get(key) == value for key, value in equals.items())
            ]

    def compare_and_swap(
        self,
        collection: str,
        doc_id: str,
        expected_version: int,
        fields: Dict[str, Any],
    ) -> bool:
        with self._lock:
            doc = self._require(collection, doc_id)
            if doc.get("version") != expected_version:
                logger.debug(
                    "CAS rejected for %s/%s: expected v%d, found v%s",
                    collection, doc_id, expected_version, doc.get("version"),
                )
                return False
            self._apply(doc, fields)
            return True

    def _require(self, collection: str, doc_id: str) -> Dict[str, Any]:
        doc = self._bucket(collection).get(doc_id)
        if doc is None:
            raise NotFoundError(
                f"{collection} document not found",
                entity_type=collection,
                entity_id=doc_id,
                engine="evidence_store",
            )
        return doc

    @staticmethod
    def _apply(doc: Dict[str, Any], fields: Dict[str, Any]) -> None:
        for key, value in fields.items():
            if key in ("id", "version"):
                continue
            doc[key] = copy.deepcopy(value)
        doc["version"] = doc.get("version", 0) + 1


# =============================================================================
# FileStore
# =============================================================================


class FileStore(ABC):
    """Blob storage for evidence images."""

    @abstractmethod
    def generate_upload_target(self) -> Tuple[str, str]:
        """Return ``(upload_url, image_id)`` for a new upload."""

    @abstractmethod
    def resolve_url(self, image_id: str) -> Optional[str]:
        """Return a fetchable URL for an image, or None if unknown."""


class InMemoryFileStore(FileStore):
    """FileStore that mints image ids and serves them under a base URL.

    Images become resolvable once an upload target was generated for them
    or they were registered directly with ``register``.
    """

    def __init__(self, base_url: str = "https://files.agrimrv.local") -> None:
        self.base_url = base_url.rstrip("/")
        self._images: Dict[str, str] = {}
        self._lock = threading.Lock()

    def generate_upload_target(self) -> Tuple[str, str]:
        image_id = f"IMG-{uuid.uuid4().hex[:12]}"
        upload_url = f"{self.base_url}/upload/{image_id}"
        self.register(image_id)
        return upload_url, image_id

    def register(self, image_id: str, url: Optional[str] = None) -> str:
        resolved = url or f"{self.base_url}/images/{image_id}"
        with self._lock:
            self._images[image_id] = resolved
        return resolved

    def resolve_url(self, image_id: str) -> Optional[str]:
        with self._lock:
            return self._images.get(image_id)


__all__ = [
    "FARMERS",
    "VERIFICATIONS",
    "CARBON_CREDITS",
    "COMPLIANCE_REPORTS",
    "MRV_NODES",
    "CROPS",
    "SENSOR_READINGS",
    "COLLECTIONS",
    "EvidenceStore",
    "InMemoryEvidenceStore",
    "FileStore",
    "InMemoryFileStore",
]
