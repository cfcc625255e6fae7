from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..models.hospital import Hospital
from ..models.recommendation import ScoreBreakdown, ScoreResult
from .geo import format_distance, haversine_distance_km
from .weights import ServiceTier, weights_for

EXCLUDED_SCORE = -1000.0

SERVICE_SHARE = 0.4
FACTOR_SHARE = 0.3


def _serves_tier(hospital: Hospital, tier: ServiceTier) -> bool:
    if tier is ServiceTier.EMERGENCY:
        return hospital.resources.emergency_available
    if tier is ServiceTier.ICU:
        return hospital.capacity.icu_total > 0
    return hospital.capacity.beds_total > 0


def _distance_score(distance_km: Optional[float]) -> float:
    # Linear decay, zero at 20 km.
    if distance_km is None:
        return 0.0
    return max(0.0, 100 - distance_km * 5)


def _inflow_score(inflow_active: int) -> float:
    # Linear decay, zero at 10 concurrent incoming alerts.
    return max(0.0, 100 - inflow_active * 10)


def _bed_score(hospital: Hospital, tier: ServiceTier) -> float:
    if tier is ServiceTier.ICU:
        total, available = hospital.capacity.icu_total, hospital.icu_available
    else:
        total, available = hospital.capacity.beds_total, hospital.beds_available
    if total <= 0:
        return 0.0
    return available / total * 100


def excluded_result(hospital: Hospital, reason: str) -> ScoreResult:
    return ScoreResult(
        id=hospital.id,
        name=hospital.profile.name,
        total_score=EXCLUDED_SCORE,
        excluded=True,
        reason=reason,
    )


def score_hospital(
    hospital: Hospital,
    requester_lat: Optional[float],
    requester_lng: Optional[float],
    service_tier: ServiceTier | str,
    at: Optional[datetime] = None,
) -> ScoreResult:
    """Score one hospital for a requester and service tier.

    Hospitals that cannot serve the tier are returned as excluded with a
    sentinel score far below any valid one. Otherwise the composite is
    ``service*0.4 + (distance*dw + inflow*iw + bed*bw)*0.3`` with the
    time-adjusted tier weights.
    """
    tier = ServiceTier(service_tier)
    if not _serves_tier(hospital, tier):
        return excluded_result(hospital, f"No {tier.value} service available")

    weights = weights_for(tier, at)
    distance_km = haversine_distance_km(
        {"lat": requester_lat, "lng": requester_lng},
        hospital.location,
    )
    incoming = hospital.stats.inflow_active

    service_score = weights.service_score
    distance_score = _distance_score(distance_km)
    inflow_score = _inflow_score(incoming)
    bed_score = _bed_score(hospital, tier)

    total_score = (
        service_score * SERVICE_SHARE
        + distance_score * weights.distance_weight * FACTOR_SHARE
        + inflow_score * weights.inflow_weight * FACTOR_SHARE
        + bed_score * weights.bed_weight * FACTOR_SHARE
    )

    return ScoreResult(
        id=hospital.id,
        name=hospital.profile.name,
        address=hospital.location.address or "Address not set",
        distance=format_distance(distance_km),
        distance_km=round(distance_km, 2) if distance_km is not None else None,
        beds=f"{hospital.beds_available}/{hospital.capacity.beds_total}",
        icu_beds=f"{hospital.icu_available}/{hospital.capacity.icu_total}",
        incoming_ambulances=incoming,
        emergency_available=hospital.resources.emergency_available,
        total_score=round(total_score, 2),
        breakdown=ScoreBreakdown(
            service_score=round(service_score, 1),
            distance_score=round(distance_score, 1),
            inflow_score=round(inflow_score, 1),
            bed_score=round(bed_score, 1),
        ),
    )
