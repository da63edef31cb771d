"""
Tests for the Etsy competition estimate and its route.
"""
import pytest

from app.analysis.competition import (
    CompetitionEstimateError,
    calculate_competition_score,
    calculate_median,
    estimate_competition,
    generate_etsy_queries,
    get_category_coefficient,
    get_decision,
    get_saturation_level,
)


def test_median():
    assert calculate_median([]) == 0
    assert calculate_median([6000, 14000, 10000]) == 10000
    assert calculate_median([4000, 1000, 3000, 2000]) == 2500


@pytest.mark.parametrize(
    "category, expected",
    [
        ("Jewelry", 1.30),
        ("  Digital Products ", 1.40),
        ("Handmade jewelry and charms", 1.30),
        ("decor", 1.10),
        ("Toys", 1.00),
        ("", 1.00),
    ],
)
def test_category_coefficient(category, expected):
    assert get_category_coefficient(category) == expected


def test_competition_score_is_capped():
    assert calculate_competition_score(5000) == 25.0
    assert calculate_competition_score(13000) == 65.0
    assert calculate_competition_score(60000) == 100.0


@pytest.mark.parametrize(
    "score, level, decision",
    [
        (10, "low", "launch"),
        (30, "viable", "launch"),
        (40, "viable", "launch_with_caution"),
        (55, "high", "launch_with_caution"),
        (70, "high", "do_not_launch"),
        (75, "saturated", "do_not_launch"),
    ],
)
def test_saturation_and_decision_breaks(score, level, decision):
    assert get_saturation_level(score) == level
    assert get_decision(score) == decision


def test_generate_queries():
    queries = generate_etsy_queries("Minimalist ceramic mug for coffee lovers", "Mug")
    assert queries == ["mug minimalist", "coffee cup minimalist", "mug coffee", "minimalist mug"]


def test_generate_queries_pads_to_three():
    queries = generate_etsy_queries("Wooden desk organizer", "organizer")
    assert queries == ["organizer wooden", "organizer desk", "organizer"]


def test_estimate_uses_median_and_category():
    estimate = estimate_competition("Jewelry", {"gold ring": 6000, "ring dainty": 14000, "ring stack": 10000})
    assert estimate.base_competition_volume == 10000
    assert estimate.adjusted_competition_volume == 13000
    assert estimate.competition_score == 65.0
    assert estimate.saturation_level == "high"
    assert estimate.decision == "launch_with_caution"
    assert estimate.to_dict()["queriesUsed"] == 3


def test_estimate_ignores_unusable_counts():
    estimate = estimate_competition("Toys", {"a": 2000, "b": 4000, "c": 0, "d": None, "e": float("nan")})
    assert estimate.base_competition_volume == 3000
    assert len(estimate.queries) == 5
    assert len(estimate.valid_queries) == 2


def test_estimate_needs_two_valid_counts():
    with pytest.raises(CompetitionEstimateError):
        estimate_competition("Jewelry", {"a": 1000, "b": 0, "c": None})


# =============================================================================
# HTTP route
# =============================================================================

ESTIMATE_BODY = {"productTitle": "Minimalist ceramic mug", "productType": "mug", "category": "Home Decor"}


def test_route_without_counts_returns_queries(client):
    body = client.post("/api/competition-estimate", json=ESTIMATE_BODY).json()
    assert body["success"] is False
    assert body["needsResultsCounts"] is True
    assert body["queries"][0] == "mug minimalist"


def test_route_with_counts_returns_estimate(client):
    payload = {**ESTIMATE_BODY, "resultsCounts": {"mug minimalist": 8000, "mug coffee": 12000}}
    body = client.post("/api/competition-estimate", json=payload).json()
    assert body["success"] is True
    assert body["estimate"]["adjustedCompetitionVolume"] == 11000
    assert body["estimate"]["competitionScore"] == 55.0
    assert body["estimate"]["saturationLevel"] == "high"


def test_route_with_too_few_counts(client):
    payload = {**ESTIMATE_BODY, "resultsCounts": {"mug minimalist": 8000}}
    response = client.post("/api/competition-estimate", json=payload)
    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "INSUFFICIENT_DATA"


def test_route_requires_product_fields(client):
    assert client.post("/api/competition-estimate", json={"productTitle": "Mug"}).status_code == 422
