from __future__ import annotations

from typing import Awaitable, Callable

from fastapi import APIRouter, Depends, HTTPException, status
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo.errors import PyMongoError

from ..database import db, settings
from ..lifecycle.alert_manager import (
    AlertLifecycleManager,
    AlertNotFound,
    EventSink,
    HospitalNotFound,
    ProximityCheckFailed,
)
from ..lifecycle.counters import CounterStore
from ..lifecycle.locations import LocationFeed
from ..lifecycle.states import InvalidTransition
from ..live import get_event_sink
from ..models.prealert import AlertBoard, PreAlert, PreAlertCreate
from ..utils.logging import database_unavailable
from ..utils.notifications import NotificationService, notification_service
from .drivers import get_location_feed
from .hospitals import get_counter_store, get_hospital_collection

router = APIRouter(prefix="/hospitals/{hospital_id}/prealerts", tags=["prealerts"])


async def get_prealert_collection() -> AsyncIOMotorCollection:
    return db.get_collection("prealerts")


def get_notifier() -> NotificationService | None:
    return notification_service


def get_lifecycle_manager(
    alerts: AsyncIOMotorCollection = Depends(get_prealert_collection),
    hospitals: AsyncIOMotorCollection = Depends(get_hospital_collection),
    feed: LocationFeed = Depends(get_location_feed),
    counters: CounterStore = Depends(get_counter_store),
    publish: EventSink = Depends(get_event_sink),
    notifier: NotificationService | None = Depends(get_notifier),
) -> AlertLifecycleManager:
    return AlertLifecycleManager(alerts, hospitals, feed, counters, event_sink=publish, notifier=notifier)


async def _run(context: str, action: Callable[[], Awaitable[PreAlert]]) -> PreAlert:
    try:
        return await action()
    except (HospitalNotFound, AlertNotFound) as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ProximityCheckFailed as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": str(exc),
                "distanceKm": round(exc.distance_km, 3) if exc.distance_km is not None else None,
                "radiusKm": exc.radius_km,
            },
        ) from exc
    except InvalidTransition as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except PyMongoError as exc:  # pragma: no cover - requires external service
        raise database_unavailable(context, exc) from exc


@router.post("", response_model=PreAlert, status_code=status.HTTP_201_CREATED)
async def create_prealert(
    hospital_id: str,
    payload: PreAlertCreate,
    manager: AlertLifecycleManager = Depends(get_lifecycle_manager),
) -> PreAlert:
    return await _run("create_prealert", lambda: manager.create(hospital_id, payload))


@router.get("", response_model=AlertBoard)
async def get_alert_board(
    hospital_id: str,
    manager: AlertLifecycleManager = Depends(get_lifecycle_manager),
) -> AlertBoard:
    try:
        return await manager.board(hospital_id, speed_kmh=settings.eta_speed_kmh)
    except HospitalNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.post("/{alert_id}/accept", response_model=PreAlert)
async def accept_prealert(
    hospital_id: str,
    alert_id: str,
    manager: AlertLifecycleManager = Depends(get_lifecycle_manager),
) -> PreAlert:
    return await _run("accept_prealert", lambda: manager.accept(hospital_id, alert_id))


@router.post("/{alert_id}/decline", response_model=PreAlert)
async def decline_prealert(
    hospital_id: str,
    alert_id: str,
    manager: AlertLifecycleManager = Depends(get_lifecycle_manager),
) -> PreAlert:
    return await _run("decline_prealert", lambda: manager.decline(hospital_id, alert_id))


@router.post("/{alert_id}/arrive", response_model=PreAlert)
async def mark_prealert_arrived(
    hospital_id: str,
    alert_id: str,
    manager: AlertLifecycleManager = Depends(get_lifecycle_manager),
) -> PreAlert:
    return await _run("mark_prealert_arrived", lambda: manager.mark_arrived(hospital_id, alert_id))
