from __future__ import annotations

import pytest

from medroute.matching import recommendation
from medroute.matching.recommendation import rank_hospitals, recommend
from medroute.matching.weights import ServiceTier

from conftest import HOSPITAL_LAT, HOSPITAL_LNG, OFF_PEAK, north_of


def by_id(*hospitals):
    return {hospital.id: hospital for hospital in hospitals}


def test_lower_inflow_ranks_higher_at_equal_distance(make_hospital):
    busy = make_hospital("busy", inflow=5)
    quiet = make_hospital("quiet", inflow=0)

    result = recommend(by_id(busy, quiet), HOSPITAL_LAT, HOSPITAL_LNG, ServiceTier.BASIC, at=OFF_PEAK)

    assert result.recommended.id == "quiet"
    assert [item.id for item in result.alternates] == ["busy"]
    assert result.recommended.breakdown.inflow_score == 100
    assert result.alternates[0].breakdown.inflow_score == 50
    assert result.recommended.total_score > result.alternates[0].total_score


def test_ranking_is_descending_and_excludes_ineligible(make_hospital):
    hospitals = by_id(
        make_hospital("near", lat=north_of(HOSPITAL_LAT, 1)),
        make_hospital("far", lat=north_of(HOSPITAL_LAT, 12)),
        make_hospital("no-er", emergency=False),
        make_hospital("mid", lat=north_of(HOSPITAL_LAT, 6)),
    )

    result = recommend(hospitals, HOSPITAL_LAT, HOSPITAL_LNG, "Emergency", at=OFF_PEAK)

    assert [item.id for item in result.all_scored] == ["near", "mid", "far"]
    scores = [item.total_score for item in result.all_scored]
    assert scores == sorted(scores, reverse=True)
    assert all(not item.excluded for item in result.all_scored)


def test_alternates_are_capped_at_two(make_hospital):
    hospitals = by_id(*(make_hospital(f"h{i}", lat=north_of(HOSPITAL_LAT, i)) for i in range(5)))

    result = recommend(hospitals, HOSPITAL_LAT, HOSPITAL_LNG, ServiceTier.BASIC, at=OFF_PEAK)

    assert result.recommended.id == "h0"
    assert [item.id for item in result.alternates] == ["h1", "h2"]
    assert len(result.all_scored) == 5


def test_equal_scores_keep_input_order(make_hospital):
    hospitals = by_id(make_hospital("b"), make_hospital("a"), make_hospital("c"))

    ranked = rank_hospitals(hospitals, HOSPITAL_LAT, HOSPITAL_LNG, ServiceTier.BASIC, at=OFF_PEAK)

    assert [item.id for item in ranked] == ["b", "a", "c"]


def test_empty_set_has_no_recommendation():
    result = recommend({}, HOSPITAL_LAT, HOSPITAL_LNG, ServiceTier.BASIC, at=OFF_PEAK)

    assert result.recommended is None
    assert result.alternates == []
    assert result.all_scored == []


def test_all_ineligible_has_no_recommendation(make_hospital):
    hospitals = by_id(make_hospital("a", icu_total=0), make_hospital("b", icu_total=0))

    result = recommend(hospitals, HOSPITAL_LAT, HOSPITAL_LNG, ServiceTier.ICU, at=OFF_PEAK)

    assert result.recommended is None
    assert result.all_scored == []


def test_one_failing_hospital_does_not_abort_the_batch(make_hospital, monkeypatch):
    real_score = recommendation.score_hospital

    def flaky(hospital, *args, **kwargs):
        if hospital.id == "broken":
            raise ZeroDivisionError("bad data")
        return real_score(hospital, *args, **kwargs)

    monkeypatch.setattr(recommendation, "score_hospital", flaky)
    hospitals = by_id(make_hospital("broken"), make_hospital("ok"))

    result = recommend(hospitals, HOSPITAL_LAT, HOSPITAL_LNG, ServiceTier.BASIC, at=OFF_PEAK)

    assert [item.id for item in result.all_scored] == ["ok"]


def test_one_clock_read_per_batch(make_hospital, monkeypatch):
    seen = []
    real_score = recommendation.score_hospital

    def spy(hospital, lat, lng, tier, at=None):
        seen.append(at)
        return real_score(hospital, lat, lng, tier, at)

    monkeypatch.setattr(recommendation, "score_hospital", spy)
    recommend(by_id(make_hospital("a"), make_hospital("b")), HOSPITAL_LAT, HOSPITAL_LNG, ServiceTier.BASIC)

    assert len(seen) == 2
    assert seen[0] is not None
    assert seen[0] == seen[1]


def test_unknown_tier_is_rejected(make_hospital):
    with pytest.raises(ValueError):
        recommend(by_id(make_hospital()), HOSPITAL_LAT, HOSPITAL_LNG, "Critical", at=OFF_PEAK)
