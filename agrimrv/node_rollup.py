# -*- coding: utf-8 -*-
"""
MRV Node Engine - Community Node Membership and Rollups

Community MRV nodes group farmers for aggregate reporting. A node's totals
are derived data: every membership change, credit change or farmer
removal recomputes them from fresh member snapshots with the pure
``compute_node_rollup`` and writes the result with compare-and-swap on the
node's version. A lost race re-reads and recomputes, up to
``node_write_retries`` attempts.

Rollup:
    total_area              = sum of member farm sizes
    total_carbon_credits    = sum of member credit amounts
    verified_carbon_credits = sum of member credit amounts that are
                              verified, issued or traded
    confidence_score        = mean over members of each member's mean
                              credit confidence (0 for a member without
                              credits, 0 for a node without members)

Author: AgriMRV Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from agrimrv.config import get_config
from agrimrv.exceptions import ConflictError, NotFoundError, OwnershipError
from agrimrv.identity import IdentityProvider, OwnershipGuard
from agrimrv.metrics import record_node_rollup
from agrimrv.models import (
    CommunityStats,
    CreateNodeRequest,
    CreditStatus,
    MemberSnapshot,
    MRVNode,
    NodeEquipment,
    NodeRollup,
)
from agrimrv.store import CARBON_CREDITS, FARMERS, MRV_NODES, EvidenceStore

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

VERIFIED_CREDIT_STATUSES = frozenset({
    CreditStatus.VERIFIED.value,
    CreditStatus.ISSUED.value,
    CreditStatus.TRADED.value,
})

_EARTH_RADIUS_KM = 6371.0088

MembershipChange = Callable[[List[str]], List[str]]


def _utcnow() -> datetime:
    """Return current UTC datetime with microseconds zeroed."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def _haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * _EARTH_RADIUS_KM * math.asin(math.sqrt(a))


# ---------------------------------------------------------------------------
# Pure rollup
# ---------------------------------------------------------------------------


def snapshot_member(farmer: Dict[str, Any], credits: Sequence[Dict[str, Any]]) -> MemberSnapshot:
    """Summarise one member from its farmer document and credit documents."""
    amounts = [float(c.get("amount", 0.0)) for c in credits]
    verified = [
        float(c.get("amount", 0.0)) for c in credits
        if getattr(c.get("status"), "value", c.get("status")) in VERIFIED_CREDIT_STATUSES
    ]
    confidences = [float(c.get("confidence_score", 0.0)) for c in credits]
    return MemberSnapshot(
        farmer_id=farmer["id"],
        farm_size=float(farmer.get("farm_size", 0.0)),
        total_credits=sum(amounts),
        verified_credits=sum(verified),
        confidence_score=sum(confidences) / len(confidences) if confidences else 0.0,
    )


def compute_node_rollup(members: Sequence[MemberSnapshot]) -> NodeRollup:
    """Derive node totals from member snapshots.

    Pure and idempotent: the same snapshots always give the same rollup.
    """
    if not members:
        return NodeRollup()
    return NodeRollup(
        total_area=round(sum(m.farm_size for m in members), 6),
        total_carbon_credits=round(sum(m.total_credits for m in members), 6),
        verified_carbon_credits=round(sum(m.verified_credits for m in members), 6),
        confidence_score=round(
            sum(m.confidence_score for m in members) / len(members), 4,
        ),
        member_count=len(members),
    )


# =============================================================================
# MRVNodeEngine
# =============================================================================


class MRVNodeEngine:
    """Manages MRV node membership and keeps node totals consistent.

    Attributes:
        config: CarbonMRVConfig instance.
        store: EvidenceStore holding nodes, farmers and credits.
        provenance: Optional ProvenanceTracker for audit entries.
    """

    def __init__(
        self,
        store: EvidenceStore,
        identity: IdentityProvider,
        config: Any = None,
        provenance: Any = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.config = config or get_config()
        self.store = store
        self.guard = OwnershipGuard(store, identity)
        self.provenance = provenance
        self.clock = clock or _utcnow
        self._conflict_count = 0
        logger.info(
            "MRVNodeEngine initialized: write_retries=%d",
            self.config.node_write_retries,
        )

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def _member_snapshots(self, member_ids: Sequence[str]) -> List[MemberSnapshot]:
        snapshots = []
        for farmer_id in member_ids:
            farmer = self.store.get(FARMERS, farmer_id)
            if farmer is None:
                logger.debug("Skipping removed member %s in rollup", farmer_id)
                continue
            credits = self.store.query_by_owner(CARBON_CREDITS, farmer_id)
            snapshots.append(snapshot_member(farmer, credits))
        return snapshots

    # ------------------------------------------------------------------
    # Compare-and-swap mutation loop
    # ------------------------------------------------------------------

    def _mutate(
        self,
        node_id: str,
        change: Optional[MembershipChange] = None,
        action: str = "recompute",
    ) -> MRVNode:
        """Apply a membership change and recompute totals atomically.

        Raises:
            NotFoundError: If the node does not exist.
            ConflictError: If every compare-and-swap attempt lost a race,
                or ``change`` rejects the membership change.
        """
        attempts = max(1, self.config.node_write_retries)
        for attempt in range(1, attempts + 1):
            doc = self.store.get(MRV_NODES, node_id)
            if doc is None:
                raise NotFoundError(
                    "MRV node not found", entity_type="mrv_node",
                    entity_id=node_id, engine="node_rollup",
                )
            node = MRVNode.model_validate(doc)
            members = list(node.member_farmers)
            if change is not None:
                members = change(members)

            rollup = compute_node_rollup(self._member_snapshots(members))
            fields = {
                "member_farmers": members,
                "total_area": rollup.total_area,
                "total_carbon_credits": rollup.total_carbon_credits,
                "verified_carbon_credits": rollup.verified_carbon_credits,
                "confidence_score": rollup.confidence_score,
                "last_updated": self.clock(),
            }
            if self.store.compare_and_swap(MRV_NODES, node_id, node.version, fields):
                record_node_rollup("applied")
                if self.provenance is not None:
                    self.provenance.record(
                        "node_rollup", node_id, action,
                        self.provenance.build_hash(rollup),
                    )
                logger.debug(
                    "Node %s %s applied on attempt %d: members=%d credits=%.3f",
                    node_id, action, attempt, rollup.member_count,
                    rollup.total_carbon_credits,
                )
                return MRVNode.model_validate(self.store.get(MRV_NODES, node_id))

            self._conflict_count += 1
            record_node_rollup("conflict")
            logger.debug("Node %s write conflict on attempt %d", node_id, attempt)

        record_node_rollup("exhausted")
        raise ConflictError(
            f"Node {node_id} update lost {attempts} consecutive write races",
            engine="node_rollup",
            context={"node_id": node_id, "attempts": attempts, "action": action},
        )

    # ------------------------------------------------------------------
    # Node lifecycle
    # ------------------------------------------------------------------

    def create_node(self, request: CreateNodeRequest) -> MRVNode:
        """Create a node whose first member is the coordinator's farmer profile.

        Raises:
            OwnershipError: If the coordinator is not the current user.
            NotFoundError: If the coordinator has no farmer profile.
        """
        user_id = self.guard.require_user()
        if request.coordinator_id != user_id:
            raise OwnershipError(
                "Coordinator must be the current user", user_id=user_id,
                engine="node_rollup",
            )
        profiles = self.store.query(FARMERS, user_id=user_id)
        if not profiles:
            raise NotFoundError(
                "Farmer profile required to coordinate a node",
                entity_type="farmer", entity_id=user_id, engine="node_rollup",
            )
        coordinator_farmer = profiles[0]["id"]

        node = MRVNode(
            name=request.name,
            node_type=request.node_type,
            location=request.location,
            coordinator_id=request.coordinator_id,
            cooperative_id=request.cooperative_id,
            member_farmers=[],
            equipment=NodeEquipment(),
            last_updated=self.clock(),
        )
        node_id = self.store.insert(MRV_NODES, node.model_dump(exclude={"version"}))
        logger.info("MRV node %s (%s) created by %s", node_id, request.name, user_id)
        return self._mutate(node_id, lambda members: [coordinator_farmer], action="create")

    def join_node(self, node_id: str, farmer_id: str) -> MRVNode:
        """Add an owned farmer to a node.

        Raises:
            OwnershipError: If the caller does not own the farmer.
            ConflictError: If the farmer is already a member.
        """
        self.guard.authorize_farmer(farmer_id)

        def add(members: List[str]) -> List[str]:
            if farmer_id in members:
                raise ConflictError(
                    "Already a member of this node", engine="node_rollup",
                    context={"node_id": node_id, "farmer_id": farmer_id},
                )
            return members + [farmer_id]

        node = self._mutate(node_id, add, action="join")
        logger.info("Farmer %s joined node %s", farmer_id, node_id)
        return node

    def leave_node(self, node_id: str, farmer_id: str) -> MRVNode:
        """Remove an owned farmer from a node.

        Raises:
            OwnershipError: If the caller does not own the farmer.
            NotFoundError: If the farmer is not a member.
        """
        self.guard.authorize_farmer(farmer_id)

        def remove(members: List[str]) -> List[str]:
            if farmer_id not in members:
                raise NotFoundError(
                    "Farmer is not a member of this node", entity_type="membership",
                    entity_id=farmer_id, engine="node_rollup",
                )
            return [m for m in members if m != farmer_id]

        node = self._mutate(node_id, remove, action="leave")
        logger.info("Farmer %s left node %s", farmer_id, node_id)
        return node

    def handle_farmer_removed(self, farmer_id: str) -> List[MRVNode]:
        """Drop a deleted farmer from every node listing it and recompute."""
        updated = []
        for doc in self._nodes_listing(farmer_id):
            updated.append(self._mutate(
                doc["id"],
                lambda members: [m for m in members if m != farmer_id],
                action="member_removed",
            ))
        if updated:
            logger.info(
                "Farmer %s removed from %d node(s)", farmer_id, len(updated),
            )
        return updated

    def recompute_node(self, node_id: str) -> MRVNode:
        """Recompute a node's totals from current member snapshots."""
        return self._mutate(node_id)

    def recompute_nodes_for_farmer(self, farmer_id: str) -> List[MRVNode]:
        """Recompute every node that lists the farmer."""
        return [self._mutate(doc["id"]) for doc in self._nodes_listing(farmer_id)]

    def _nodes_listing(self, farmer_id: str) -> List[Dict[str, Any]]:
        return [
            doc for doc in self.store.query(MRV_NODES)
            if farmer_id in doc.get("member_farmers", [])
        ]

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_node(self, node_id: str) -> MRVNode:
        doc = self.store.get(MRV_NODES, node_id)
        if doc is None:
            raise NotFoundError(
                "MRV node not found", entity_type="mrv_node",
                entity_id=node_id, engine="node_rollup",
            )
        return MRVNode.model_validate(doc)

    def find_farmer_node(self, farmer_id: str) -> Optional[MRVNode]:
        """Return the first node listing the farmer, if any. No ownership check."""
        docs = self._nodes_listing(farmer_id)
        return MRVNode.model_validate(docs[0]) if docs else None

    def get_farmer_node(self, farmer_id: str) -> Optional[MRVNode]:
        """Return the caller's node membership, if any.

        Raises:
            OwnershipError: If the caller does not own the farmer.
        """
        self.guard.authorize_farmer(farmer_id)
        return self.find_farmer_node(farmer_id)

    def get_nearby_nodes(
        self,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        radius_km: Optional[float] = None,
        limit: int = 20,
    ) -> List[MRVNode]:
        """Return active nodes, nearest first when a position is given."""
        nodes = [
            MRVNode.model_validate(doc)
            for doc in self.store.query(MRV_NODES, is_active=True)
        ]
        if latitude is None or longitude is None:
            nodes.sort(key=lambda n: n.name)
            return nodes[:limit]

        ranked = [
            (_haversine_km(latitude, longitude, n.location.latitude, n.location.longitude), n)
            for n in nodes
        ]
        if radius_km is not None:
            ranked = [(d, n) for d, n in ranked if d <= radius_km]
        ranked.sort(key=lambda pair: pair[0])
        return [n for _, n in ranked[:limit]]

    def get_community_stats(self) -> CommunityStats:
        """Aggregate statistics across every node."""
        nodes = [MRVNode.model_validate(doc) for doc in self.store.query(MRV_NODES)]
        active = [n for n in nodes if n.is_active]
        farmers = {m for n in nodes for m in n.member_farmers}
        return CommunityStats(
            total_nodes=len(nodes),
            active_nodes=len(active),
            total_farmers=len(farmers),
            total_area=round(sum(n.total_area for n in nodes), 6),
            total_carbon_credits=round(sum(n.total_carbon_credits for n in nodes), 6),
            verified_carbon_credits=round(sum(n.verified_carbon_credits for n in nodes), 6),
            average_confidence=round(
                sum(n.confidence_score for n in nodes) / len(nodes), 4,
            ) if nodes else 0.0,
        )

    @property
    def node_count(self) -> int:
        return self.store.count(MRV_NODES)

    @property
    def conflict_count(self) -> int:
        return self._conflict_count


__all__ = [
    "MRVNodeEngine",
    "compute_node_rollup",
    "snapshot_member",
    "VERIFIED_CREDIT_STATUSES",
]
