from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import Field, model_validator

from ..database import MongoBaseModel
from ..lifecycle.states import AlertOrigin, AlertStatus
from ..matching.weights import ServiceTier
from .hospital import GeoPoint


class PreAlert(MongoBaseModel):
    id: str = Field(alias="_id")
    hospital_id: str
    alert_id: str
    type: AlertOrigin
    status: AlertStatus | None = None
    service_needed: ServiceTier = ServiceTier.BASIC
    ambulance_type: str | None = None
    driver_id: str | None = None
    driver_name: str | None = None
    driver_phone: str | None = None
    ambulance_number: str | None = None
    contact_number: str | None = None
    hospital_name: str | None = None
    user_location: GeoPoint | None = None
    created_at: datetime | None = None
    accepted_at: datetime | None = None
    arrived_at: datetime | None = None
    declined_at: datetime | None = None


class PreAlertCreate(MongoBaseModel):
    type: AlertOrigin
    service_needed: ServiceTier = ServiceTier.BASIC
    ambulance_type: str | None = None
    driver_id: str | None = None
    driver_name: str | None = None
    driver_phone: str | None = None
    ambulance_number: str | None = None
    contact_number: str | None = None
    user_location: GeoPoint | None = None

    @model_validator(mode="after")
    def _driver_alerts_need_driver(self) -> "PreAlertCreate":
        if self.type is AlertOrigin.DRIVER and not self.driver_id:
            raise ValueError("driver alerts require driverId")
        return self


class AlertView(PreAlert):
    distance_km: float | None = None
    distance_label: str
    eta: str


class AlertBoard(MongoBaseModel):
    active: List[AlertView]
    completed: List[AlertView]
    total: int
    incoming: int
