# -*- coding: utf-8 -*-
"""
Farm Registry Engine

Farmer profiles and registered crops. Crops carry an estimated annual
sequestration computed from the same rate table credit generation uses.
Deleting a farmer removes only the profile; verification records, credits
and reports stay for audit, and every node that listed the farmer is
recomputed without it.

Author: AgriMRV Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional

from agrimrv.config import get_config
from agrimrv.credit_aggregation import compute_credit_amount
from agrimrv.exceptions import ConflictError, NotFoundError
from agrimrv.identity import IdentityProvider, OwnershipGuard
from agrimrv.models import (
    Crop,
    CropStats,
    CropStatus,
    CreateCropRequest,
    CreateFarmerRequest,
    Farmer,
    UpdateFarmerRequest,
)
from agrimrv.node_rollup import MRVNodeEngine
from agrimrv.store import CROPS, FARMERS, EvidenceStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    """Return current UTC datetime with microseconds zeroed."""
    return datetime.now(timezone.utc).replace(microsecond=0)


class FarmRegistryEngine:
    """CRUD for farmers and crops.

    Attributes:
        store: EvidenceStore holding farmers and crops.
        node_engine: MRVNodeEngine notified of farmer removal and farm
            size changes.
    """

    def __init__(
        self,
        store: EvidenceStore,
        identity: IdentityProvider,
        node_engine: Optional[MRVNodeEngine] = None,
        config: Any = None,
        provenance: Any = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.config = config or get_config()
        self.store = store
        self.guard = OwnershipGuard(store, identity)
        self.node_engine = node_engine or MRVNodeEngine(
            store, identity, config=self.config, provenance=provenance, clock=clock,
        )
        self.provenance = provenance
        self.clock = clock or _utcnow
        logger.info("FarmRegistryEngine initialized")

    def _record(self, entity_id: str, action: str, data: Any) -> None:
        if self.provenance is not None:
            self.provenance.record(
                "farm_registry", entity_id, action, self.provenance.build_hash(data),
            )

    # ------------------------------------------------------------------
    # Farmers
    # ------------------------------------------------------------------

    def create_farmer(self, request: CreateFarmerRequest) -> Farmer:
        """Register a farmer profile for the current user.

        Raises:
            OwnershipError: If no user is authenticated.
            ConflictError: If the user already has a profile.
        """
        user_id = self.guard.require_user()
        if self.store.query(FARMERS, user_id=user_id):
            raise ConflictError(
                "Farmer profile already exists for this user",
                engine="farm_registry", context={"user_id": user_id},
            )
        farmer = Farmer(user_id=user_id, created_at=self.clock(), **request.model_dump())
        self.store.insert(FARMERS, farmer.model_dump())
        self._record(farmer.id, "create", farmer)
        logger.info("Farmer %s registered for user %s", farmer.id, user_id)
        return farmer

    def get_farmer(self, farmer_id: str) -> Farmer:
        doc = self.store.get(FARMERS, farmer_id)
        if doc is None:
            raise NotFoundError(
                "Farmer not found", entity_type="farmer",
                entity_id=farmer_id, engine="farm_registry",
            )
        return Farmer.model_validate(doc)

    def get_farmer_profile(self) -> Optional[Farmer]:
        """Return the current user's farmer profile, if any."""
        user_id = self.guard.require_user()
        docs = self.store.query(FARMERS, user_id=user_id)
        return Farmer.model_validate(docs[0]) if docs else None

    def list_farmers(self, cooperative_id: Optional[str] = None) -> List[Farmer]:
        if cooperative_id is None:
            docs = self.store.query(FARMERS)
        else:
            docs = self.store.query(FARMERS, cooperative_id=cooperative_id)
        docs.sort(key=lambda d: d["name"])
        return [Farmer.model_validate(doc) for doc in docs]

    def update_farmer(self, farmer_id: str, request: UpdateFarmerRequest) -> Farmer:
        """Apply a partial profile update.

        A farm size change recomputes the farmer's nodes.

        Raises:
            OwnershipError: If the caller does not own the farmer.
        """
        self.guard.authorize_farmer(farmer_id)
        fields = request.model_dump(exclude_unset=True)
        if not fields:
            return self.get_farmer(farmer_id)
        doc = self.store.patch(FARMERS, farmer_id, fields)
        self._record(farmer_id, "update", fields)
        if "farm_size" in fields:
            self.node_engine.recompute_nodes_for_farmer(farmer_id)
        logger.info("Farmer %s updated: %s", farmer_id, sorted(fields))
        return Farmer.model_validate(doc)

    def delete_farmer(self, farmer_id: str) -> bool:
        """Delete a farmer profile and drop it from every node.

        Raises:
            OwnershipError: If the caller does not own the farmer.
        """
        self.guard.authorize_farmer(farmer_id)
        deleted = self.store.delete(FARMERS, farmer_id)
        self._record(farmer_id, "delete", {"farmer_id": farmer_id})
        nodes = self.node_engine.handle_farmer_removed(farmer_id)
        logger.info(
            "Farmer %s deleted; %d node(s) recomputed", farmer_id, len(nodes),
        )
        return deleted

    # ------------------------------------------------------------------
    # Crops
    # ------------------------------------------------------------------

    def create_crop(self, request: CreateCropRequest) -> Crop:
        """Register a crop with its estimated annual sequestration.

        Raises:
            OwnershipError: If the caller does not own the farmer.
        """
        self.guard.authorize_farmer(request.farmer_id)
        crop = Crop(
            status=CropStatus.PLANTED,
            estimated_carbon_sequestration=compute_credit_amount(
                request.practice_type, request.area,
            ),
            **request.model_dump(),
        )
        self.store.insert(CROPS, crop.model_dump())
        self._record(crop.id, "create", crop)
        logger.info(
            "Crop %s (%s, %.2f ha, %s) registered for farmer %s",
            crop.id, crop.crop_type, crop.area,
            crop.practice_type.value, crop.farmer_id,
        )
        return crop

    def get_crop(self, crop_id: str) -> Crop:
        doc = self.store.get(CROPS, crop_id)
        if doc is None:
            raise NotFoundError(
                "Crop not found", entity_type="crop",
                entity_id=crop_id, engine="farm_registry",
            )
        return Crop.model_validate(doc)

    def update_crop_status(self, crop_id: str, status: CropStatus) -> Crop:
        """Set a crop's growth status.

        Raises:
            NotFoundError: If the crop does not exist.
            OwnershipError: If the caller does not own the crop's farmer.
        """
        crop = self.get_crop(crop_id)
        self.guard.authorize_farmer(crop.farmer_id)
        doc = self.store.patch(CROPS, crop_id, {"status": CropStatus(status)})
        self._record(crop_id, "status", {"status": CropStatus(status).value})
        return Crop.model_validate(doc)

    def get_farmer_crops(self, farmer_id: str) -> List[Crop]:
        self.guard.authorize_farmer(farmer_id)
        docs = self.store.query_by_owner(CROPS, farmer_id)
        docs.sort(key=lambda d: d["planting_date"], reverse=True)
        return [Crop.model_validate(doc) for doc in docs]

    def get_crop_stats(self, farmer_id: str) -> CropStats:
        crops = self.get_farmer_crops(farmer_id)
        return CropStats(
            farmer_id=farmer_id,
            total_crops=len(crops),
            total_area=round(sum(c.area for c in crops), 6),
            total_estimated_sequestration=round(
                sum(c.estimated_carbon_sequestration for c in crops), 6,
            ),
            by_practice=dict(Counter(c.practice_type.value for c in crops)),
            by_status=dict(Counter(c.status.value for c in crops)),
        )

    @property
    def farmer_count(self) -> int:
        return self.store.count(FARMERS)


__all__ = [
    "FarmRegistryEngine",
]
