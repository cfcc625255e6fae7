from __future__ import annotations

from datetime import datetime

import pytest

from medroute.matching.weights import SERVICE_WEIGHTS, ServiceTier, is_peak_hour, weights_for

from conftest import OFF_PEAK, PEAK

BASE_TABLE = {
    "Basic": (0.3, 0.2, 0.5),
    "Advanced": (0.4, 0.3, 0.3),
    "ICU": (0.2, 0.4, 0.4),
    "Emergency": (0.1, 0.3, 0.6),
}


@pytest.mark.parametrize("tier", list(BASE_TABLE))
def test_off_peak_weights_match_base_table(tier):
    weights = weights_for(tier, OFF_PEAK)
    assert weights.service_score == 100
    assert (weights.distance_weight, weights.inflow_weight, weights.bed_weight) == BASE_TABLE[tier]


@pytest.mark.parametrize("tier", list(BASE_TABLE))
def test_peak_weights_favour_distance_and_inflow(tier):
    distance, inflow, bed = BASE_TABLE[tier]
    weights = weights_for(tier, PEAK)
    assert weights.service_score == 100
    assert weights.distance_weight == pytest.approx(distance * 1.2)
    assert weights.inflow_weight == pytest.approx(inflow * 1.3)
    assert weights.bed_weight == pytest.approx(bed * 0.8)


@pytest.mark.parametrize("hour", [8, 9, 10, 17, 18, 19])
def test_peak_windows_are_inclusive(hour):
    assert is_peak_hour(hour)


@pytest.mark.parametrize("hour", [0, 7, 11, 12, 16, 20, 23])
def test_outside_peak_windows(hour):
    assert not is_peak_hour(hour)


def test_late_minutes_of_last_peak_hour_still_count():
    weights = weights_for(ServiceTier.ICU, datetime(2024, 5, 14, 19, 59))
    assert weights.inflow_weight == pytest.approx(0.52)


def test_peak_adjustment_does_not_mutate_base_table():
    weights_for(ServiceTier.BASIC, PEAK)
    assert SERVICE_WEIGHTS[ServiceTier.BASIC].distance_weight == 0.3


def test_unknown_tier_is_rejected():
    with pytest.raises(ValueError):
        weights_for("Critical", OFF_PEAK)
