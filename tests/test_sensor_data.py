"""Tests for the field sensor data engine."""

import pytest

from agrimrv.exceptions import OwnershipError
from agrimrv.models import (
    RecordSensorReadingRequest,
    SatelliteData,
    SensorType,
    SensorValue,
)

from conftest import OTHER_USER_ID, location


def _reading(farmer_id, sensor_type=SensorType.SOIL_MOISTURE, value=31.5, unit="%"):
    return RecordSensorReadingRequest(
        farmer_id=farmer_id,
        sensor_id="SN-001",
        sensor_type=sensor_type,
        location=location(),
        readings=SensorValue(value=value, unit=unit),
    )


class TestSensorReadings:
    """Recording and windowed reads."""

    def test_record_and_read(self, sensor_engine, farmer, clock):
        reading = sensor_engine.record_reading(_reading(farmer.id))

        assert reading.id.startswith("SNS-")
        assert reading.timestamp == clock()
        assert [r.id for r in sensor_engine.get_readings(farmer.id)] == [reading.id]

    def test_window_and_order(self, sensor_engine, farmer, clock):
        old = sensor_engine.record_reading(_reading(farmer.id))
        clock.advance(hours=20)
        mid = sensor_engine.record_reading(_reading(farmer.id))
        clock.advance(hours=10)
        new = sensor_engine.record_reading(_reading(farmer.id))

        assert [r.id for r in sensor_engine.get_readings(farmer.id, hours=24)] == [new.id, mid.id]
        assert [r.id for r in sensor_engine.get_readings(farmer.id, hours=48)] == [new.id, mid.id, old.id]

    def test_filter_by_type(self, sensor_engine, farmer):
        sensor_engine.record_reading(_reading(farmer.id))
        methane = sensor_engine.record_reading(
            _reading(farmer.id, SensorType.METHANE, value=1.8, unit="ppm"),
        )

        readings = sensor_engine.get_readings(farmer.id, sensor_type=SensorType.METHANE)

        assert [r.id for r in readings] == [methane.id]

    def test_requires_ownership(self, sensor_engine, farmer, identity):
        with identity.acting_as(OTHER_USER_ID):
            with pytest.raises(OwnershipError):
                sensor_engine.record_reading(_reading(farmer.id))


class TestSatelliteData:
    """Latest satellite metrics from evidence."""

    def test_none_without_evidence(self, sensor_engine, farmer):
        assert sensor_engine.get_latest_satellite_data(farmer.id) is None

    def test_latest_wins(self, sensor_engine, verification_engine, farmer, evidence_request, clock):
        first = evidence_request(farmer.id)
        first.satellite_data = SatelliteData(ndvi=0.41, soil_moisture=0.22, biomass=3.1)
        verification_engine.submit_evidence(first)
        clock.advance(days=3)
        second = evidence_request(farmer.id)
        second.satellite_data = SatelliteData(ndvi=0.67, soil_moisture=0.3, biomass=4.2)
        verification_engine.submit_evidence(second)

        assert sensor_engine.get_latest_satellite_data(farmer.id).ndvi == 0.67
