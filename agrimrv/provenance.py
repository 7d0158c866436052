# -*- coding: utf-8 -*-
"""
Audit Trail for Evidence, Credits and Nodes

Every state change the service makes (a submission, an applied analysis,
a generated or settled credit, a node recomputation, a report, a registry
edit) is appended to a single SHA-256 hash chain. Each entry hashes its
own payload digest together with the chain hash of the entry before it, so
editing any stored entry breaks verification from that point on.

Entries are plain dicts and are indexed twice: in one global sequence
(the chain itself) and per entity id, for per-record audit views.

Example:
    >>> tracker = ProvenanceTracker()
    >>> chain_hash = tracker.record("evidence_submission", "VER-1", "submit", "ab" * 32)
    >>> tracker.verify_chain("VER-1")[0]
    True

Author: AgriMRV Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Tuple

logger = logging.getLogger(__name__)

Entry = Dict[str, Any]

VALID_OPERATION_TYPES = frozenset({
    "evidence_submission",
    "image_analysis",
    "credit_generation",
    "credit_settlement",
    "node_rollup",
    "compliance_report",
    "farm_registry",
})

_ROOT_HASH = hashlib.sha256(b"agrimrv/audit-trail/v1").hexdigest()

_HASHED_FIELDS = ("sequence", "entity_id", "action", "data_hash", "timestamp", "previous_hash")


def _digest(payload: Any) -> str:
    serialized = json.dumps(payload, sort_keys=True, default=str)
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


class ProvenanceTracker:
    """Append-only SHA-256 audit chain shared by all engines.

    Safe to call from the analysis worker threads.
    """

    def __init__(self) -> None:
        self._entries: List[Entry] = []
        self._by_entity: Dict[str, List[Entry]] = {}
        self._head = _ROOT_HASH
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def record(
        self,
        entity_type: str,
        entity_id: str,
        action: str,
        data_hash: str,
        user_id: str = "system",
    ) -> str:
        """Append an entry and return its chain hash.

        Args:
            entity_type: Operation family, normally one of
                VALID_OPERATION_TYPES.
            entity_id: Record, credit, node, report or farmer id.
            action: Verb such as submit, analyze, fallback, settle, join.
            data_hash: Digest of the data the operation produced.
            user_id: Acting user, "system" for background work.
        """
        if entity_type not in VALID_OPERATION_TYPES:
            logger.warning("Unrecognised audit entity type %r for %s", entity_type, entity_id)

        with self._lock:
            entry: Entry = {
                "sequence": len(self._entries),
                "entity_type": entity_type,
                "entity_id": entity_id,
                "action": action,
                "data_hash": data_hash,
                "user_id": user_id,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "previous_hash": self._head,
            }
            entry["chain_hash"] = self._entry_hash(entry)
            self._entries.append(entry)
            self._by_entity.setdefault(entity_id, []).append(entry)
            self._head = entry["chain_hash"]

        logger.debug("audit %s %s/%s -> %s", action, entity_type, entity_id, entry["chain_hash"][:12])
        return entry["chain_hash"]

    @staticmethod
    def _entry_hash(entry: Entry) -> str:
        return _digest({name: entry.get(name) for name in _HASHED_FIELDS})

    def build_hash(self, data: Any) -> str:
        """Digest a model, dict or list (pydantic models in JSON mode)."""
        if hasattr(data, "model_dump"):
            data = data.model_dump(mode="json")
        return _digest(data)

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verify_chain(self, entity_id: str) -> Tuple[bool, List[Entry]]:
        """Recompute the hashes of one entity's entries.

        Returns:
            ``(valid, entries)`` with entries oldest first.
        """
        entries = self.get_chain(entity_id)
        for entry in entries:
            if entry.get("chain_hash") != self._entry_hash(entry):
                logger.warning(
                    "Audit entry %s for %s failed verification",
                    entry.get("sequence"), entity_id,
                )
                return False, entries
        return True, entries

    def verify_all(self) -> bool:
        """Check every entry hash and every link of the global chain."""
        with self._lock:
            entries = list(self._entries)
        expected_previous = _ROOT_HASH
        for entry in entries:
            if entry.get("previous_hash") != expected_previous:
                return False
            if entry.get("chain_hash") != self._entry_hash(entry):
                return False
            expected_previous = entry["chain_hash"]
        return True

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def get_chain(self, entity_id: str) -> List[Entry]:
        """Entries for one entity, oldest first."""
        with self._lock:
            return list(self._by_entity.get(entity_id, []))

    def get_global_chain(self, limit: int = 100) -> List[Entry]:
        """The latest ``limit`` entries, newest first."""
        with self._lock:
            return self._entries[-limit:][::-1]

    @property
    def entry_count(self) -> int:
        return len(self._entries)

    @property
    def entity_count(self) -> int:
        return len(self._by_entity)

    def export_json(self) -> str:
        """Serialise the whole chain for external audit."""
        with self._lock:
            return json.dumps(self._entries, indent=2, default=str)


__all__ = [
    "ProvenanceTracker",
    "VALID_OPERATION_TYPES",
]
