from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import Field, field_validator

from ..database import MongoBaseModel


class GeoPoint(MongoBaseModel):
    lat: float | None = Field(default=None, ge=-90, le=90)
    lng: float | None = Field(default=None, ge=-180, le=180)


class HospitalLocation(GeoPoint):
    address: str | None = None


class HospitalProfile(MongoBaseModel):
    name: str = "Unknown Hospital"
    phone: str | None = None


class HospitalCapacity(MongoBaseModel):
    beds_total: int = Field(default=0, ge=0)
    icu_total: int = Field(default=0, ge=0)


class HospitalStats(MongoBaseModel):
    beds_occupied: int = Field(default=0, ge=0)
    icu_occupied: int = Field(default=0, ge=0)
    admitted_count: int = Field(default=0, ge=0)
    inflow_active: int = Field(default=0, ge=0)

    @field_validator("beds_occupied", "icu_occupied", "admitted_count", "inflow_active", mode="before")
    @classmethod
    def _floor_at_zero(cls, value):
        # Unclamped counter writes may leave a negative value in the store.
        if isinstance(value, (int, float)) and value < 0:
            return 0
        return value


class HospitalResources(MongoBaseModel):
    emergency_available: bool = False


class Hospital(MongoBaseModel):
    id: str = Field(alias="_id")
    profile: HospitalProfile = Field(default_factory=HospitalProfile)
    location: HospitalLocation = Field(default_factory=HospitalLocation)
    capacity: HospitalCapacity = Field(default_factory=HospitalCapacity)
    stats: HospitalStats = Field(default_factory=HospitalStats)
    resources: HospitalResources = Field(default_factory=HospitalResources)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def beds_available(self) -> int:
        return max(self.capacity.beds_total - self.stats.beds_occupied, 0)

    @property
    def icu_available(self) -> int:
        return max(self.capacity.icu_total - self.stats.icu_occupied, 0)


class HospitalCreate(MongoBaseModel):
    id: str | None = None
    profile: HospitalProfile
    location: HospitalLocation = Field(default_factory=HospitalLocation)
    capacity: HospitalCapacity = Field(default_factory=HospitalCapacity)
    resources: HospitalResources = Field(default_factory=HospitalResources)


class HospitalUpdate(MongoBaseModel):
    profile: HospitalProfile | None = None
    location: HospitalLocation | None = None
    capacity: HospitalCapacity | None = None
    resources: HospitalResources | None = None


class HospitalList(MongoBaseModel):
    hospitals: List[Hospital]
