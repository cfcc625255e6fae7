from __future__ import annotations

from datetime import datetime

from pydantic import Field

from ..database import MongoBaseModel


class DriverLocation(MongoBaseModel):
    id: str = Field(alias="_id")
    lat: float
    lng: float
    updated_at: datetime | None = None


class DriverLocationUpdate(MongoBaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
