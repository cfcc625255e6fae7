from __future__ import annotations

import asyncio
from datetime import datetime

from loguru import logger
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ReturnDocument

from ..models.location import DriverLocation


class LocationFeed:
    """Latest known position per driver, pushed periodically by driver clients."""

    def __init__(self, collection: AsyncIOMotorCollection, timeout_s: float = 3.0) -> None:
        self.collection = collection
        self.timeout_s = timeout_s

    async def publish(self, driver_id: str, lat: float, lng: float) -> DriverLocation:
        document = await self.collection.find_one_and_update(
            {"_id": driver_id},
            {"$set": {"lat": lat, "lng": lng, "updatedAt": datetime.utcnow()}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return DriverLocation.model_validate(document)

    async def latest(self, driver_id: str | None) -> DriverLocation | None:
        """Most recent location, or ``None`` when unknown or the read times out."""
        if not driver_id:
            return None
        try:
            document = await asyncio.wait_for(
                self.collection.find_one({"_id": driver_id}),
                timeout=self.timeout_s,
            )
        except asyncio.TimeoutError:
            logger.warning("Location lookup for driver {} timed out after {}s", driver_id, self.timeout_s)
            return None
        if not document or document.get("lat") is None or document.get("lng") is None:
            return None
        return DriverLocation.model_validate(document)
