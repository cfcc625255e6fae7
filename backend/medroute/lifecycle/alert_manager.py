from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from loguru import logger
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo.errors import DuplicateKeyError

from ..matching.geo import distance_label, estimate_eta_minutes, format_eta, haversine_distance_km
from ..models.hospital import Hospital
from ..models.prealert import AlertBoard, AlertView, PreAlert, PreAlertCreate
from ..utils.notifications import NotificationService, SmsNotification
from .counters import CounterPath, CounterStore
from .locations import LocationFeed
from .states import (
    AlertOrigin,
    AlertStatus,
    INITIAL_STATUS,
    InvalidTransition,
    check_transition,
    effective_status,
    is_active,
)

PROXIMITY_RADIUS_KM = 0.5
MAX_TRANSITION_ATTEMPTS = 3
MAX_ID_ATTEMPTS = 50
MAX_RECONCILE_ATTEMPTS = 5


@dataclass
class LifecycleEvent:
    type: str
    payload: Dict[str, Any]


EventSink = Callable[[LifecycleEvent], Awaitable[None]]


class HospitalNotFound(LookupError):
    pass


class AlertNotFound(LookupError):
    pass


class ProximityCheckFailed(Exception):
    """Arrival refused: the driver is not yet within the proximity radius."""

    def __init__(self, alert_id: str, distance_km: Optional[float], radius_km: float = PROXIMITY_RADIUS_KM) -> None:
        self.alert_id = alert_id
        self.distance_km = distance_km
        self.radius_km = radius_km
        if distance_km is None:
            message = "Ambulance location unknown; cannot confirm arrival"
        else:
            message = f"Ambulance is {distance_label(distance_km)} away; arrival needs {radius_km * 1000:.0f} m or less"
        super().__init__(message)


def alert_key(hospital_id: str, alert_id: str) -> str:
    return f"{hospital_id}/{alert_id}"


def _now_ms() -> int:
    return int(time.time() * 1000)


async def _discard_event(event: LifecycleEvent) -> None:
    return None


class AlertLifecycleManager:
    def __init__(
        self,
        alerts: AsyncIOMotorCollection,
        hospitals: AsyncIOMotorCollection,
        locations: LocationFeed,
        counters: CounterStore,
        event_sink: EventSink | None = None,
        notifier: NotificationService | None = None,
    ) -> None:
        self.alerts = alerts
        self.hospitals = hospitals
        self.locations = locations
        self.counters = counters
        self.event_sink = event_sink or _discard_event
        self.notifier = notifier

    async def _hospital(self, hospital_id: str) -> Hospital:
        document = await self.hospitals.find_one({"_id": hospital_id})
        if not document:
            raise HospitalNotFound(f"Hospital {hospital_id} not found")
        return Hospital.model_validate(document)

    async def _alert_document(self, hospital_id: str, alert_id: str) -> Dict[str, Any]:
        document = await self.alerts.find_one({"_id": alert_key(hospital_id, alert_id)})
        if not document:
            raise AlertNotFound(f"Pre-alert {alert_id} not found for hospital {hospital_id}")
        return document

    async def _emit(self, event_type: str, payload: Dict[str, Any]) -> None:
        try:
            await self.event_sink(LifecycleEvent(event_type, payload))
        except Exception as exc:
            logger.warning("Live update {} not delivered: {}", event_type, exc)

    async def create(self, hospital_id: str, payload: PreAlertCreate) -> PreAlert:
        """Register an incoming patient with a hospital.

        The initial status is always written: drivers start ``en_route``, crowd
        reports start ``pending``.
        """
        hospital = await self._hospital(hospital_id)
        body = payload.model_dump(by_alias=True, mode="json")
        if payload.type is AlertOrigin.DRIVER:
            body.pop("userLocation", None)

        alert_id = _now_ms()
        for _ in range(MAX_ID_ATTEMPTS):
            document = {
                **body,
                "_id": alert_key(hospital_id, str(alert_id)),
                "hospitalId": hospital_id,
                "alertId": str(alert_id),
                "hospitalName": hospital.profile.name,
                "status": INITIAL_STATUS[payload.type].value,
                "createdAt": datetime.utcnow(),
            }
            try:
                await self.alerts.insert_one(document)
                break
            except DuplicateKeyError:
                alert_id += 1
        else:
            raise RuntimeError(f"Could not allocate a pre-alert id for hospital {hospital_id}")

        alert = PreAlert.model_validate(document)
        logger.info(
            "Pre-alert {} created for {} ({}, {})",
            alert.alert_id,
            hospital_id,
            alert.type.value,
            alert.status.value,
        )
        await self._emit("prealert_created", alert.model_dump(by_alias=True, mode="json"))
        await self._notify_hospital(hospital, alert)
        await self._mark_alerts_changed(hospital_id)
        await self.reconcile_inflow(hospital_id)
        return alert

    async def _notify_hospital(self, hospital: Hospital, alert: PreAlert) -> None:
        if self.notifier is None:
            return
        if not hospital.profile.phone:
            logger.debug("Hospital {} has no contact phone; skipping pre-alert message", hospital.id)
            return
        if alert.type is AlertOrigin.CROWD:
            body = f"Incoming Pre-Alert: emergency reported nearby ({alert.service_needed.value})"
        else:
            body = f"Incoming Pre-Alert: Ambulance ({alert.ambulance_type or alert.service_needed.value}) is en route"
        await self.notifier.send_sms(SmsNotification(to=hospital.profile.phone, body=body))

    async def accept(self, hospital_id: str, alert_id: str) -> PreAlert:
        return await self._transition(hospital_id, alert_id, AlertStatus.ACCEPTED, "acceptedAt")

    async def decline(self, hospital_id: str, alert_id: str) -> PreAlert:
        return await self._transition(hospital_id, alert_id, AlertStatus.DECLINED, "declinedAt")

    async def mark_arrived(self, hospital_id: str, alert_id: str) -> PreAlert:
        """Complete an alert; driver alerts must be within the proximity radius."""
        document = await self._alert_document(hospital_id, alert_id)
        check_transition(document["type"], document.get("status"), AlertStatus.ARRIVED)
        if AlertOrigin(document["type"]) is AlertOrigin.DRIVER:
            distance_km = await self.driver_distance_km(hospital_id, document.get("driverId"))
            if distance_km is None or distance_km > PROXIMITY_RADIUS_KM:
                logger.info(
                    "Arrival of {} at {} refused, distance {}",
                    alert_id,
                    hospital_id,
                    distance_label(distance_km),
                )
                raise ProximityCheckFailed(alert_id, distance_km)
        return await self._transition(hospital_id, alert_id, AlertStatus.ARRIVED, "arrivedAt")

    async def driver_distance_km(self, hospital_id: str, driver_id: str | None) -> Optional[float]:
        hospital = await self._hospital(hospital_id)
        location = await self.locations.latest(driver_id)
        return haversine_distance_km(location, hospital.location)

    async def _transition(
        self, hospital_id: str, alert_id: str, target: AlertStatus, timestamp_field: str
    ) -> PreAlert:
        key = alert_key(hospital_id, alert_id)
        for _ in range(MAX_TRANSITION_ATTEMPTS):
            document = await self._alert_document(hospital_id, alert_id)
            stored_status = document.get("status")
            previous = check_transition(document["type"], stored_status, target)
            changes = {"status": target.value, timestamp_field: datetime.utcnow()}
            # Conditional on the status we validated, so concurrent staff actions cannot both apply.
            result = await self.alerts.update_one({"_id": key, "status": stored_status}, {"$set": changes})
            if result.matched_count == 1:
                document.update(changes)
                break
        else:
            raise InvalidTransition(
                effective_status(document["type"], document.get("status")),
                target,
                "Alert changed concurrently; reload and retry",
            )

        alert = PreAlert.model_validate(document)
        logger.info("Pre-alert {} at {}: {} -> {}", alert_id, hospital_id, previous.value, target.value)
        await self._emit(
            "prealert_status_changed",
            {
                "hospitalId": hospital_id,
                "alertId": alert_id,
                "previous": previous.value,
                "status": target.value,
            },
        )
        await self._mark_alerts_changed(hospital_id)
        await self.reconcile_inflow(hospital_id)
        return alert

    async def _snapshot(self, hospital_id: str) -> List[Dict[str, Any]]:
        cursor = self.alerts.find({"hospitalId": hospital_id})
        return [document async for document in cursor]

    async def _mark_alerts_changed(self, hospital_id: str) -> None:
        await self.counters.apply_delta(CounterPath.stat(hospital_id, "inflowVersion"), 1)

    async def reconcile_inflow(self, hospital_id: str) -> int:
        """Write ``stats.inflowActive`` from the active alert count of the current snapshot.

        The write is guarded by ``stats.inflowVersion``, which every alert write
        bumps before reconciling. A count taken from a snapshot that an alert
        write has since overtaken is discarded and recounted.
        """
        inflow = CounterPath.stat(hospital_id, "inflowActive")
        version = CounterPath.stat(hospital_id, "inflowVersion")
        for attempt in range(1, MAX_RECONCILE_ATTEMPTS + 1):
            stamp = await self.counters.read_value(version)
            snapshot = await self._snapshot(hospital_id)
            active = sum(1 for document in snapshot if is_active(document["type"], document.get("status")))
            if await self.counters.compare_and_set(inflow, active, version, stamp):
                logger.debug("Inflow for {} reconciled to {}", hospital_id, active)
                await self._emit("inflow_synced", {"hospitalId": hospital_id, "inflowActive": active})
                return active
            logger.debug("Inflow snapshot for {} overtaken (attempt {}/{})", hospital_id, attempt, MAX_RECONCILE_ATTEMPTS)
        # Every miss means a later alert write, whose own reconcile follows.
        logger.warning("Inflow for {} left to a newer reconcile after {} attempts", hospital_id, MAX_RECONCILE_ATTEMPTS)
        return active

    async def board(self, hospital_id: str, speed_kmh: float = 40.0) -> AlertBoard:
        """Active alerts nearest first, completed alerts most recent first."""
        hospital = await self._hospital(hospital_id)
        snapshot = await self._snapshot(hospital_id)

        active: List[AlertView] = []
        completed: List[AlertView] = []
        for document in snapshot:
            origin = AlertOrigin(document["type"])
            if origin is AlertOrigin.CROWD:
                distance_km = haversine_distance_km(document.get("userLocation"), hospital.location)
            else:
                location = await self.locations.latest(document.get("driverId"))
                distance_km = haversine_distance_km(location, hospital.location)
            view = AlertView.model_validate(
                {
                    **document,
                    "distanceKm": round(distance_km, 3) if distance_km is not None else None,
                    "distanceLabel": distance_label(distance_km),
                    "eta": format_eta(estimate_eta_minutes(distance_km, speed_kmh)),
                }
            )
            if is_active(origin, document.get("status")):
                active.append(view)
            else:
                completed.append(view)

        active.sort(key=lambda item: item.distance_km if item.distance_km is not None else float("inf"))
        completed.sort(
            key=lambda item: item.arrived_at or item.declined_at or datetime.min,
            reverse=True,
        )
        return AlertBoard(
            active=active,
            completed=completed,
            total=len(snapshot),
            incoming=len(active),
        )
