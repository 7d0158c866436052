# -*- coding: utf-8 -*-
"""
Sensor Data Engine

Records field sensor readings (soil moisture, methane, temperature, pH,
drone) for a farmer and serves them back over a trailing time window.
Also exposes the most recent satellite metrics attached to the farmer's
evidence.

Author: AgriMRV Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Optional

from agrimrv.config import get_config
from agrimrv.identity import IdentityProvider, OwnershipGuard
from agrimrv.models import (
    RecordSensorReadingRequest,
    SatelliteData,
    SensorReading,
    SensorType,
)
from agrimrv.store import SENSOR_READINGS, VERIFICATIONS, EvidenceStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    """Return current UTC datetime with microseconds zeroed."""
    return datetime.now(timezone.utc).replace(microsecond=0)


class SensorDataEngine:
    """Stores and queries field sensor readings."""

    def __init__(
        self,
        store: EvidenceStore,
        identity: IdentityProvider,
        config: Any = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.config = config or get_config()
        self.store = store
        self.guard = OwnershipGuard(store, identity)
        self.clock = clock or _utcnow

    def record_reading(self, request: RecordSensorReadingRequest) -> SensorReading:
        """Persist a sensor reading timestamped with the current time.

        Raises:
            OwnershipError: If the caller does not own the farmer.
        """
        self.guard.authorize_farmer(request.farmer_id)
        reading = SensorReading(timestamp=self.clock(), **request.model_dump())
        self.store.insert(SENSOR_READINGS, reading.model_dump())
        logger.debug(
            "Sensor reading %s: %s=%s%s for farmer %s",
            reading.id, reading.sensor_type.value, reading.readings.value,
            reading.readings.unit, reading.farmer_id,
        )
        return reading

    def get_readings(
        self,
        farmer_id: str,
        hours: int = 24,
        sensor_type: Optional[SensorType] = None,
    ) -> List[SensorReading]:
        """Return readings from the last ``hours`` hours, newest first."""
        self.guard.authorize_farmer(farmer_id)
        since = self.clock() - timedelta(hours=hours)
        docs = [
            doc for doc in self.store.query_by_owner(SENSOR_READINGS, farmer_id)
            if doc["timestamp"] >= since
            and (sensor_type is None or doc["sensor_type"] == SensorType(sensor_type))
        ]
        docs.sort(key=lambda d: d["timestamp"], reverse=True)
        return [SensorReading.model_validate(doc) for doc in docs]

    def get_latest_satellite_data(self, farmer_id: str) -> Optional[SatelliteData]:
        """Return satellite metrics from the farmer's newest evidence carrying them."""
        self.guard.authorize_farmer(farmer_id)
        docs = [
            doc for doc in self.store.query_by_owner(VERIFICATIONS, farmer_id)
            if doc.get("satellite_data")
        ]
        if not docs:
            return None
        latest = max(docs, key=lambda d: d["timestamp"])
        return SatelliteData.model_validate(latest["satellite_data"])


__all__ = [
    "SensorDataEngine",
]
