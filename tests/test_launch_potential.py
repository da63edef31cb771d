import pytest

from app.analysis.launch_potential import (
    assess_factors,
    calculate_launch_potential_score,
    classify_score,
    is_simple_generic_jewelry,
    tier_for_score,
)


def test_generic_jewelry_is_capped_at_three():
    result = calculate_launch_potential_score(
        competition_score=60,
        niche="jewelry",
        product_title="Gold plated necklace",
        ai_score=8.7,
    )
    assert result.score == 3.0
    assert result.tier == "saturated"
    assert result.classification == "NOT RECOMMENDED"
    assert result.badge == "🔴"


def test_original_jewelry_keeps_ai_score():
    assert not is_simple_generic_jewelry("jewelry", "necklace", "Personalized engraved necklace")
    result = calculate_launch_potential_score(
        competition_score=60,
        niche="jewelry",
        product_title="Personalized engraved necklace",
        ai_score=7.84,
    )
    assert result.score == 7.8
    assert result.tier == "favorable"
    assert result.classification == "STRONG OPPORTUNITY"


def test_missing_ai_score_defaults_to_five():
    result = calculate_launch_potential_score(competition_score=20, niche="garden", product_title="Planter")
    assert result.score == 5.0
    assert result.classification == "HIGH RISK"
    assert result.tier == "competitive"


def test_out_of_range_ai_score_is_ignored():
    result = calculate_launch_potential_score(
        competition_score=20, niche="garden", product_title="Planter", ai_score=14
    )
    assert result.score == 5.0


def test_ai_classification_takes_precedence():
    result = calculate_launch_potential_score(
        competition_score=20,
        niche="garden",
        product_title="Planter",
        ai_score=9.2,
        ai_classification="STRONG OPPORTUNITY",
    )
    assert result.verdict == "STRONG OPPORTUNITY"
    assert result.badge == "🟢"


@pytest.mark.parametrize(
    "score, classification",
    [
        (3.9, "NOT RECOMMENDED"),
        (4.0, "HIGH RISK"),
        (6.0, "MODERATE OPPORTUNITY"),
        (7.5, "STRONG OPPORTUNITY"),
        (8.5, "STRONG OPPORTUNITY"),
        (8.6, "EXCEPTIONAL OPPORTUNITY"),
    ],
)
def test_classification_thresholds(score, classification):
    assert classify_score(score) == classification


def test_tiers():
    assert tier_for_score(3.9) == "saturated"
    assert tier_for_score(7.4) == "competitive"
    assert tier_for_score(7.5) == "favorable"


def test_factor_assessment():
    factors = assess_factors(90, "wedding", "Custom handmade guest book")
    assert factors.competition_density == "high"
    assert factors.niche_saturation == "high"
    assert factors.product_specificity == "high"

    factors = assess_factors(10, "garden", "Planter")
    assert factors.competition_density == "low"
    assert factors.niche_saturation == "low"
    assert factors.product_specificity == "low"


def test_explanation_mentions_key_points():
    result = calculate_launch_potential_score(
        competition_score=10, niche="garden", product_title="Planter", ai_score=8
    )
    assert result.explanation.startswith("Classification: STRONG OPPORTUNITY.")
    assert "limited competition" in result.explanation


def test_ai_score_rounds_half_up():
    result = calculate_launch_potential_score(
        competition_score=20, niche="garden", product_title="Planter", ai_score=7.25
    )
    assert result.score == 7.3
