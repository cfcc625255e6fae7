from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo.errors import PyMongoError

from ..database import db, settings
from ..lifecycle.alert_manager import EventSink, LifecycleEvent
from ..lifecycle.locations import LocationFeed
from ..live import get_event_sink
from ..models.location import DriverLocation, DriverLocationUpdate
from ..utils.logging import database_unavailable

router = APIRouter(prefix="/drivers", tags=["drivers"])


async def get_location_collection() -> AsyncIOMotorCollection:
    return db.get_collection("driver_locations")


def get_location_feed(
    locations: AsyncIOMotorCollection = Depends(get_location_collection),
) -> LocationFeed:
    return LocationFeed(locations, timeout_s=settings.location_timeout_s)


@router.put("/{driver_id}/location", response_model=DriverLocation)
async def update_location(
    driver_id: str,
    payload: DriverLocationUpdate,
    feed: LocationFeed = Depends(get_location_feed),
    publish: EventSink = Depends(get_event_sink),
) -> DriverLocation:
    try:
        location = await feed.publish(driver_id, payload.lat, payload.lng)
    except PyMongoError as exc:  # pragma: no cover - requires external service
        raise database_unavailable("update_location", exc) from exc
    await publish(LifecycleEvent("driver_location_updated", location.model_dump(by_alias=True, mode="json")))
    return location


@router.get("/{driver_id}/location", response_model=DriverLocation)
async def get_location(
    driver_id: str,
    feed: LocationFeed = Depends(get_location_feed),
) -> DriverLocation:
    location = await feed.latest(driver_id)
    if location is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No known location for driver")
    return location
