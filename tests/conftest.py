from __future__ import annotations

from datetime import datetime
from math import degrees
from typing import Any, Dict, List

import pytest
from mongomock_motor import AsyncMongoMockClient

from medroute.lifecycle.alert_manager import LifecycleEvent
from medroute.matching.geo import EARTH_RADIUS_KM
from medroute.models.hospital import Hospital

HOSPITAL_LAT = 12.9716
HOSPITAL_LNG = 77.5946

# Hours outside and inside the peak windows.
OFF_PEAK = datetime(2024, 5, 14, 13, 0)
PEAK = datetime(2024, 5, 14, 9, 30)


def north_of(lat: float, km: float) -> float:
    """Latitude ``km`` kilometres due north along the meridian."""
    return lat + degrees(km / EARTH_RADIUS_KM)


def hospital_document(
    hospital_id: str = "h1",
    *,
    name: str | None = None,
    lat: float | None = HOSPITAL_LAT,
    lng: float | None = HOSPITAL_LNG,
    beds_total: int = 10,
    beds_occupied: int = 0,
    icu_total: int = 2,
    icu_occupied: int = 0,
    admitted: int = 0,
    inflow: int = 0,
    emergency: bool = True,
    phone: str | None = None,
) -> Dict[str, Any]:
    return {
        "_id": hospital_id,
        "profile": {"name": name or f"Hospital {hospital_id}", "phone": phone},
        "location": {"lat": lat, "lng": lng, "address": f"{hospital_id} Main Road"},
        "capacity": {"bedsTotal": beds_total, "icuTotal": icu_total},
        "stats": {
            "bedsOccupied": beds_occupied,
            "icuOccupied": icu_occupied,
            "admittedCount": admitted,
            "inflowActive": inflow,
        },
        "resources": {"emergencyAvailable": emergency},
    }


@pytest.fixture()
def make_hospital():
    def _make(hospital_id: str = "h1", **kwargs: Any) -> Hospital:
        return Hospital.model_validate(hospital_document(hospital_id, **kwargs))

    return _make


@pytest.fixture()
def mongo():
    return AsyncMongoMockClient()["medroute_test"]


class EventRecorder:
    def __init__(self) -> None:
        self.events: List[LifecycleEvent] = []

    async def __call__(self, event: LifecycleEvent) -> None:
        self.events.append(event)

    def types(self) -> List[str]:
        return [event.type for event in self.events]


@pytest.fixture()
def events() -> EventRecorder:
    return EventRecorder()
