from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from loguru import logger
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo.errors import PyMongoError

from ..lifecycle.locations import LocationFeed
from ..matching.recommendation import recommend
from ..matching.weights import ServiceTier
from ..models.recommendation import Recommendation
from ..utils.logging import database_unavailable
from .drivers import get_location_feed
from .hospitals import get_hospital_collection, load_hospitals

router = APIRouter(prefix="/recommendations", tags=["recommendations"])


@router.get("", response_model=Recommendation)
async def get_recommendation(
    tier: ServiceTier = Query(ServiceTier.BASIC, alias="serviceNeeded"),
    lat: float | None = Query(None, ge=-90, le=90),
    lng: float | None = Query(None, ge=-180, le=180),
    driver_id: str | None = Query(None, alias="driverId"),
    hospitals: AsyncIOMotorCollection = Depends(get_hospital_collection),
    feed: LocationFeed = Depends(get_location_feed),
) -> Recommendation:
    """Rank hospitals for a requester; a driver's live position is used when no coordinates are given."""
    if (lat is None or lng is None) and driver_id:
        location = await feed.latest(driver_id)
        if location is not None:
            lat, lng = location.lat, location.lng
        else:
            logger.info("No live location for driver {}; ranking without distance", driver_id)
    try:
        snapshot = await load_hospitals(hospitals)
    except PyMongoError as exc:  # pragma: no cover - requires external service
        raise database_unavailable("get_recommendation", exc) from exc
    return recommend(snapshot, lat, lng, tier)
