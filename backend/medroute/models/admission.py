from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field

from ..database import MongoBaseModel
from .hospital import HospitalStats

AdmissionStatus = Literal["pending", "admitted", "discharged"]


class AdmissionCreate(MongoBaseModel):
    admission_id: str
    bed_type: str = "General"
    patient_name: str | None = None
    age: int | None = Field(default=None, ge=0, le=150)
    gender: str | None = None
    diagnosis: str | None = None
    notes: str | None = None


class DischargeRequest(MongoBaseModel):
    bed_type: str | None = None


class Admission(MongoBaseModel):
    id: str = Field(alias="_id")
    hospital_id: str
    admission_id: str
    bed_type: str
    status: AdmissionStatus
    patient_name: str | None = None
    age: int | None = None
    gender: str | None = None
    diagnosis: str | None = None
    notes: str | None = None
    admitted_at: datetime | None = None
    discharged_at: datetime | None = None


class CounterUpdate(MongoBaseModel):
    hospital_id: str
    admission_id: str
    bed_type: str
    stats: HospitalStats
