from __future__ import annotations

from datetime import datetime
from typing import Any, Dict

from bson import ObjectId

from ..models.hospital import HospitalCreate, HospitalStats, HospitalUpdate


def hospital_document(payload: HospitalCreate) -> Dict[str, Any]:
    """Stored form of a newly registered hospital; stats always start at zero."""
    body = payload.model_dump(by_alias=True, exclude={"id"})
    now = datetime.utcnow()
    return {
        "_id": payload.id or str(ObjectId()),
        **body,
        "stats": HospitalStats().model_dump(by_alias=True),
        "createdAt": now,
        "updatedAt": now,
    }


def _flatten(prefix: str, value: Any, into: Dict[str, Any]) -> None:
    if isinstance(value, dict):
        for key, nested in value.items():
            _flatten(f"{prefix}.{key}" if prefix else key, nested, into)
    else:
        into[prefix] = value


def hospital_update_fields(payload: HospitalUpdate) -> Dict[str, Any]:
    """Dotted ``$set`` fields for the sections and keys the caller actually sent."""
    fields: Dict[str, Any] = {}
    _flatten("", payload.model_dump(by_alias=True, exclude_unset=True), fields)
    return fields
