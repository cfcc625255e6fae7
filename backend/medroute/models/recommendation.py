from __future__ import annotations

from typing import List

from pydantic import Field

from ..database import MongoBaseModel


class ScoreBreakdown(MongoBaseModel):
    service_score: float = 0.0
    distance_score: float = 0.0
    inflow_score: float = 0.0
    bed_score: float = 0.0


class ScoreResult(MongoBaseModel):
    id: str
    name: str
    address: str = "Address not set"
    distance: str = "N/A"
    distance_km: float | None = None
    beds: str = "0/0"
    icu_beds: str = "0/0"
    incoming_ambulances: int = 0
    emergency_available: bool = False
    total_score: float
    breakdown: ScoreBreakdown = Field(default_factory=ScoreBreakdown)
    excluded: bool = False
    reason: str | None = None


class Recommendation(MongoBaseModel):
    recommended: ScoreResult | None = None
    alternates: List[ScoreResult] = Field(default_factory=list)
    all_scored: List[ScoreResult] = Field(default_factory=list)
