from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Dict, Optional


class ServiceTier(str, Enum):
    BASIC = "Basic"
    ADVANCED = "Advanced"
    ICU = "ICU"
    EMERGENCY = "Emergency"


@dataclass(frozen=True)
class TierWeights:
    service_score: float
    distance_weight: float
    inflow_weight: float
    bed_weight: float


SERVICE_WEIGHTS: Dict[ServiceTier, TierWeights] = {
    ServiceTier.BASIC: TierWeights(service_score=100, distance_weight=0.3, inflow_weight=0.2, bed_weight=0.5),
    ServiceTier.ADVANCED: TierWeights(service_score=100, distance_weight=0.4, inflow_weight=0.3, bed_weight=0.3),
    ServiceTier.ICU: TierWeights(service_score=100, distance_weight=0.2, inflow_weight=0.4, bed_weight=0.4),
    ServiceTier.EMERGENCY: TierWeights(service_score=100, distance_weight=0.1, inflow_weight=0.3, bed_weight=0.6),
}

# Inclusive local-hour windows: 8-10am and 5-7pm.
PEAK_WINDOWS = ((8, 10), (17, 19))

PEAK_DISTANCE_FACTOR = 1.2
PEAK_INFLOW_FACTOR = 1.3
PEAK_BED_FACTOR = 0.8


def is_peak_hour(hour: int) -> bool:
    return any(start <= hour <= end for start, end in PEAK_WINDOWS)


def weights_for(tier: ServiceTier | str, at: Optional[datetime] = None) -> TierWeights:
    """Tier weights adjusted for the time of day.

    During peak hours closer, less congested hospitals are preferred over raw
    bed count. ``at`` defaults to the current local time.
    """
    base = SERVICE_WEIGHTS[ServiceTier(tier)]
    moment = at or datetime.now()
    if not is_peak_hour(moment.hour):
        return base
    return replace(
        base,
        distance_weight=base.distance_weight * PEAK_DISTANCE_FACTOR,
        inflow_weight=base.inflow_weight * PEAK_INFLOW_FACTOR,
        bed_weight=base.bed_weight * PEAK_BED_FACTOR,
    )
