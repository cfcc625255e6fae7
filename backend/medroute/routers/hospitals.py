from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from loguru import logger
from motor.motor_asyncio import AsyncIOMotorCollection
from pydantic import ValidationError
from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError, PyMongoError

from ..database import db, settings
from ..lifecycle.admissions import AdmissionConflict, AdmissionService
from ..lifecycle.alert_manager import EventSink, LifecycleEvent
from ..lifecycle.counters import CounterConflictError, CounterStore, CounterTargetMissing, MongoCounterStore
from ..live import get_event_sink
from ..models.admission import Admission, AdmissionCreate, CounterUpdate, DischargeRequest
from ..models.hospital import Hospital, HospitalCreate, HospitalList, HospitalUpdate
from ..schemas.hospital import hospital_document, hospital_update_fields
from ..utils.logging import database_unavailable

router = APIRouter(prefix="/hospitals", tags=["hospitals"])


async def get_hospital_collection() -> AsyncIOMotorCollection:
    return db.get_collection("hospitals")


async def get_admission_collection() -> AsyncIOMotorCollection:
    return db.get_collection("admissions")


def get_counter_store(
    hospitals: AsyncIOMotorCollection = Depends(get_hospital_collection),
) -> CounterStore:
    return MongoCounterStore(hospitals, max_retries=settings.counter_max_retries)


def get_admission_service(
    counters: CounterStore = Depends(get_counter_store),
    admissions: AsyncIOMotorCollection = Depends(get_admission_collection),
) -> AdmissionService:
    return AdmissionService(counters, admissions)


async def load_hospitals(hospitals: AsyncIOMotorCollection) -> Dict[str, Hospital]:
    """Snapshot of every hospital keyed by id, in store order."""
    snapshot: Dict[str, Hospital] = {}
    async for document in hospitals.find({}):
        try:
            hospital = Hospital.model_validate(document)
        except ValidationError as exc:
            logger.warning("Skipping malformed hospital {}: {}", document.get("_id"), exc)
            continue
        snapshot[hospital.id] = hospital
    return snapshot


async def _get_or_404(hospitals: AsyncIOMotorCollection, hospital_id: str) -> Hospital:
    document = await hospitals.find_one({"_id": hospital_id})
    if not document:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Hospital not found")
    return Hospital.model_validate(document)


@router.post("/", response_model=Hospital, status_code=status.HTTP_201_CREATED)
async def create_hospital(
    payload: HospitalCreate,
    hospitals: AsyncIOMotorCollection = Depends(get_hospital_collection),
) -> Hospital:
    document = hospital_document(payload)
    try:
        await hospitals.insert_one(document)
    except DuplicateKeyError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Hospital already registered") from exc
    except PyMongoError as exc:  # pragma: no cover - requires external service
        raise database_unavailable("create_hospital", exc) from exc
    logger.info("Registered hospital {} ({})", document["_id"], payload.profile.name)
    return Hospital.model_validate(document)


@router.get("/", response_model=HospitalList)
async def list_hospitals(
    hospitals: AsyncIOMotorCollection = Depends(get_hospital_collection),
) -> HospitalList:
    snapshot = await load_hospitals(hospitals)
    items: List[Hospital] = list(snapshot.values())
    return HospitalList(hospitals=items)


@router.get("/{hospital_id}", response_model=Hospital)
async def get_hospital(
    hospital_id: str,
    hospitals: AsyncIOMotorCollection = Depends(get_hospital_collection),
) -> Hospital:
    return await _get_or_404(hospitals, hospital_id)


@router.patch("/{hospital_id}", response_model=Hospital)
async def update_hospital(
    hospital_id: str,
    payload: HospitalUpdate,
    hospitals: AsyncIOMotorCollection = Depends(get_hospital_collection),
    publish: EventSink = Depends(get_event_sink),
) -> Hospital:
    fields = hospital_update_fields(payload)
    if not fields:
        return await _get_or_404(hospitals, hospital_id)
    result = await hospitals.update_one(
        {"_id": hospital_id},
        {"$set": {**fields, "updatedAt": datetime.utcnow()}},
    )
    if result.matched_count == 0:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Hospital not found")
    await publish(LifecycleEvent("hospital_updated", {"hospitalId": hospital_id, "fields": sorted(fields)}))
    return await _get_or_404(hospitals, hospital_id)


async def _counter_update(
    hospitals: AsyncIOMotorCollection, hospital_id: str, admission_id: str, bed_type: str, publish: EventSink
) -> CounterUpdate:
    hospital = await _get_or_404(hospitals, hospital_id)
    await publish(
        LifecycleEvent(
            "hospital_stats_changed",
            {"hospitalId": hospital_id, "stats": hospital.stats.model_dump(by_alias=True)},
        )
    )
    return CounterUpdate(
        hospital_id=hospital_id,
        admission_id=admission_id,
        bed_type=bed_type,
        stats=hospital.stats,
    )


@router.post("/{hospital_id}/admissions", response_model=CounterUpdate, status_code=status.HTTP_201_CREATED)
async def admit_patient(
    hospital_id: str,
    payload: AdmissionCreate,
    service: AdmissionService = Depends(get_admission_service),
    hospitals: AsyncIOMotorCollection = Depends(get_hospital_collection),
    publish: EventSink = Depends(get_event_sink),
) -> CounterUpdate:
    try:
        await service.admit(hospital_id, payload)
    except AdmissionConflict as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except CounterTargetMissing as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Hospital not found") from exc
    except CounterConflictError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except PyMongoError as exc:  # pragma: no cover - requires external service
        raise database_unavailable("admit_patient", exc) from exc
    return await _counter_update(hospitals, hospital_id, payload.admission_id, payload.bed_type, publish)


@router.get("/{hospital_id}/admissions", response_model=List[Admission])
async def list_admissions(
    hospital_id: str,
    hospitals: AsyncIOMotorCollection = Depends(get_hospital_collection),
    admissions: AsyncIOMotorCollection = Depends(get_admission_collection),
) -> List[Admission]:
    await _get_or_404(hospitals, hospital_id)
    cursor = admissions.find({"hospitalId": hospital_id}).sort("admittedAt", DESCENDING)
    return [Admission.model_validate(document) async for document in cursor]


@router.post("/{hospital_id}/admissions/{admission_id}/discharge", response_model=CounterUpdate)
async def discharge_patient(
    hospital_id: str,
    admission_id: str,
    payload: Optional[DischargeRequest] = None,
    service: AdmissionService = Depends(get_admission_service),
    hospitals: AsyncIOMotorCollection = Depends(get_hospital_collection),
    publish: EventSink = Depends(get_event_sink),
) -> CounterUpdate:
    try:
        bed_type, _ = await service.discharge(hospital_id, admission_id, payload.bed_type if payload else None)
    except AdmissionConflict as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except CounterTargetMissing as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Hospital not found") from exc
    except CounterConflictError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except PyMongoError as exc:  # pragma: no cover - requires external service
        raise database_unavailable("discharge_patient", exc) from exc
    return await _counter_update(hospitals, hospital_id, admission_id, bed_type, publish)
