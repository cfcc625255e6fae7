from __future__ import annotations

from datetime import datetime
from typing import Any, Dict

from loguru import logger
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from ..models.admission import AdmissionCreate
from .counters import CounterStore

ICU_BED = "ICU"
GENERAL_BED = "General"


class AdmissionConflict(ValueError):
    pass


class AlreadyDischarged(AdmissionConflict):
    pass


def occupancy_field(bed_type: str | None) -> str:
    """Stats field moved by a bed type: ``ICU`` (any case) or the general pool."""
    if str(bed_type or "").strip().upper() == ICU_BED:
        return "stats.icuOccupied"
    return "stats.bedsOccupied"


def admission_key(hospital_id: str, admission_id: str) -> str:
    return f"{hospital_id}/{admission_id}"


class AdmissionService:
    """Admission records plus the hospital counters they move.

    A record is written (or claimed) before its counters change, so each
    admission id moves the counters up once and down at most once.
    """

    def __init__(self, counters: CounterStore, admissions: AsyncIOMotorCollection) -> None:
        self.counters = counters
        self.admissions = admissions

    async def admit(self, hospital_id: str, payload: AdmissionCreate) -> Dict[str, int]:
        """Count an admission against the hospital's stats.

        Capacity is not enforced here; occupancy may exceed the configured total.
        """
        key = admission_key(hospital_id, payload.admission_id)
        document: Dict[str, Any] = {
            **payload.model_dump(by_alias=True),
            "_id": key,
            "hospitalId": hospital_id,
            "status": "pending",
            "admittedAt": datetime.utcnow(),
            "dischargedAt": None,
        }
        try:
            await self.admissions.insert_one(document)
        except DuplicateKeyError as exc:
            raise AdmissionConflict(f"Admission {payload.admission_id} already exists") from exc

        try:
            updated = await self.counters.apply_deltas(
                hospital_id,
                {"stats.admittedCount": 1, occupancy_field(payload.bed_type): 1},
            )
        except Exception:
            await self.admissions.delete_one({"_id": key})
            raise

        await self.admissions.update_one({"_id": key}, {"$set": {"status": "admitted"}})
        logger.info(
            "Admitted {} to {} ({}), counters now {}",
            payload.admission_id,
            hospital_id,
            payload.bed_type,
            updated,
        )
        return updated

    async def discharge(self, hospital_id: str, admission_id: str, bed_type: str | None = None) -> tuple[str, Dict[str, int]]:
        """Release a bed; counters clamp at zero when there was no matching admission."""
        key = admission_key(hospital_id, admission_id)
        record = await self.admissions.find_one_and_update(
            {"_id": key, "status": "admitted"},
            {"$set": {"status": "discharged", "dischargedAt": datetime.utcnow()}},
            return_document=ReturnDocument.BEFORE,
        )
        if record is None:
            existing = await self.admissions.find_one({"_id": key})
            if existing is not None:
                if existing.get("status") == "discharged":
                    raise AlreadyDischarged(f"Admission {admission_id} was already discharged")
                raise AdmissionConflict(f"Admission {admission_id} is still being recorded")
            logger.warning("Discharging {} from {} without an admission record", admission_id, hospital_id)

        resolved_type = bed_type or (record or {}).get("bedType") or GENERAL_BED
        try:
            updated = await self.counters.apply_deltas(
                hospital_id,
                {"stats.admittedCount": -1, occupancy_field(resolved_type): -1},
                clamp_at_zero=True,
            )
        except Exception:
            if record is not None:
                await self.admissions.update_one(
                    {"_id": key},
                    {"$set": {"status": "admitted", "dischargedAt": None}},
                )
            raise
        logger.info("Discharged {} from {} ({}), counters now {}", admission_id, hospital_id, resolved_type, updated)
        return resolved_type, updated
