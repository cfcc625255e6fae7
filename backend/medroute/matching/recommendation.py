from __future__ import annotations

from datetime import datetime
from typing import List, Mapping, Optional

from loguru import logger

from ..models.hospital import Hospital
from ..models.recommendation import Recommendation, ScoreResult
from .scoring import excluded_result, score_hospital
from .weights import ServiceTier

ALTERNATE_COUNT = 2


def rank_hospitals(
    hospitals: Mapping[str, Hospital],
    requester_lat: Optional[float],
    requester_lng: Optional[float],
    service_tier: ServiceTier | str,
    at: Optional[datetime] = None,
) -> List[ScoreResult]:
    tier = ServiceTier(service_tier)
    # One clock read per batch so every hospital is weighted alike.
    moment = at or datetime.now()
    scored: List[ScoreResult] = []
    for hospital_id, hospital in hospitals.items():
        try:
            result = score_hospital(hospital, requester_lat, requester_lng, tier, moment)
        except Exception as exc:
            logger.exception("Scoring failed for hospital {}: {}", hospital_id, exc)
            result = excluded_result(hospital, "Scoring failed")
        if not result.excluded:
            scored.append(result)
    # list.sort is stable: equal scores keep input order.
    scored.sort(key=lambda item: item.total_score, reverse=True)
    return scored


def recommend(
    hospitals: Mapping[str, Hospital],
    requester_lat: Optional[float],
    requester_lng: Optional[float],
    service_tier: ServiceTier | str,
    at: Optional[datetime] = None,
) -> Recommendation:
    """Top pick, up to two alternates and the full ranking.

    An empty or fully ineligible set yields ``recommended=None``.
    """
    scored = rank_hospitals(hospitals, requester_lat, requester_lng, service_tier, at)
    if not scored:
        logger.info("No eligible hospital for tier {} among {} candidates", ServiceTier(service_tier).value, len(hospitals))
    return Recommendation(
        recommended=scored[0] if scored else None,
        alternates=scored[1 : 1 + ALTERNATE_COUNT],
        all_scored=scored,
    )
