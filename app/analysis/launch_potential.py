import logging
from dataclasses import dataclass, field, asdict
from typing import Optional, Dict, Any
from app.analysis.time_to_first_sale import round_half_up

logger = logging.getLogger(__name__)

GENERIC_JEWELRY_CAP = 3.0
DEFAULT_SCORE = 5.0

JEWELRY_KEYWORDS = [
    "bracelet", "necklace", "ring", "earring", "earrings", "pendant",
    "charm", "chain", "jewelry", "brooch", "choker", "anklet", "toe ring",
]

# Any of these makes a jewelry item specific enough to escape the cap
ORIGINALITY_KEYWORDS = [
    "personalized", "custom", "engraved", "monogram",
    "medieval", "viking", "celtic", "gothic", "steampunk",
    "themed", "specialized", "vintage", "antique", "handmade", "artisanal",
    "unique", "one of a kind", "limited edition",
    "name", "initial", "letter", "birthstone", "zodiac",
    "religious", "cross", "crucifix", "pet", "animal", "dog", "cat",
    "baby", "newborn", "resin", "epoxy", "wood", "ceramic", "clay",
    "macrame", "crochet", "knit", "leather", "woven",
    "gemstone", "crystal", "handcrafted", "artisan", "designer",
    "statement", "chunky", "oversized", "minimalist gold", "geometric",
]

SATURATED_NICHES = ["jewelry", "fashion", "wedding", "personalized-gifts"]
MEDIUM_NICHES = ["home-decor", "decoration", "art", "illustrations", "baby", "sport", "fitness"]

HIGH_SPECIFICITY_KEYWORDS = ["personalized", "custom", "engraved", "themed", "vintage", "handmade", "unique"]
MEDIUM_SPECIFICITY_KEYWORDS = ["decorative", "gift", "stylish", "modern", "minimalist"]

TIER_BADGES = {"saturated": "🔴", "competitive": "🟡", "favorable": "🟢"}


@dataclass
class LaunchFactors:
    competition_density: str
    niche_saturation: str
    product_specificity: str


@dataclass
class LaunchPotentialResult:
    score: float
    tier: str
    verdict: str
    explanation: str
    score_justification: str
    badge: str
    classification: str
    factors: LaunchFactors
    scoring_breakdown: Optional[Dict[str, Any]] = field(default=None)

    def to_dict(self) -> dict:
        return asdict(self)


def is_simple_generic_jewelry(niche: str, product_type: str, title: str, description: str = "") -> bool:
    niche_lower = (niche or "").lower()
    type_lower = (product_type or "").lower()
    title_lower = (title or "").lower()
    description_lower = (description or "").lower()

    is_jewelry = "jewelry" in niche_lower or any(
        kw in type_lower or kw in title_lower or kw in description_lower for kw in JEWELRY_KEYWORDS
    )
    if not is_jewelry:
        return False

    combined = f"{niche_lower} {type_lower} {title_lower} {description_lower}"
    return not any(kw in combined for kw in ORIGINALITY_KEYWORDS)


def classify_score(score: float) -> str:
    if score < 4:
        return "NOT RECOMMENDED"
    if score < 6:
        return "HIGH RISK"
    if score < 7.5:
        return "MODERATE OPPORTUNITY"
    if score <= 8.5:
        return "STRONG OPPORTUNITY"
    return "EXCEPTIONAL OPPORTUNITY"


def tier_for_score(score: float) -> str:
    if score < 4:
        return "saturated"
    if score < 7.5:
        return "competitive"
    return "favorable"


def assess_factors(competition_score: float, niche: str, title: str, description: str = "") -> LaunchFactors:
    if competition_score < 50:
        competition_density = "low"
    elif competition_score < 85:
        competition_density = "medium"
    else:
        competition_density = "high"

    niche_lower = (niche or "").lower()
    if any(n in niche_lower for n in SATURATED_NICHES):
        niche_saturation = "high"
    elif any(n in niche_lower for n in MEDIUM_NICHES):
        niche_saturation = "medium"
    else:
        niche_saturation = "low"

    combined = f"{title or ''} {description or ''}".lower()
    high_count = sum(1 for kw in HIGH_SPECIFICITY_KEYWORDS if kw in combined)
    medium_count = sum(1 for kw in MEDIUM_SPECIFICITY_KEYWORDS if kw in combined)
    if high_count >= 2:
        product_specificity = "high"
    elif high_count >= 1 or medium_count >= 2:
        product_specificity = "medium"
    else:
        product_specificity = "low"

    return LaunchFactors(competition_density, niche_saturation, product_specificity)


def build_explanation(tier: str, factors: LaunchFactors, classification: str) -> str:
    parts = [f"Classification: {classification}."]
    if tier == "favorable":
        parts.append("Good launch opportunity with favorable market potential.")
    elif tier == "competitive":
        parts.append("Competitive market that calls for a differentiation strategy.")
    else:
        parts.append("Difficult market conditions, launch not recommended.")

    details = []
    if factors.niche_saturation == "low":
        details.append("lightly saturated niche")
    elif factors.niche_saturation == "high":
        details.append("heavily saturated niche")
    if factors.product_specificity == "high":
        details.append("highly specific product")
    elif factors.product_specificity == "low":
        details.append("generic product")
    if factors.competition_density == "low":
        details.append("limited competition")
    elif factors.competition_density == "high":
        details.append("strong competition")
    if details:
        parts.append(f"Key points: {', '.join(details)}.")
    return " ".join(parts)


def calculate_launch_potential_score(
    competition_score: float,
    niche: str,
    product_title: str,
    product_type: str = "",
    product_visual_description: str = "",
    ai_score: Optional[float] = None,
    ai_justification: Optional[str] = None,
    ai_classification: Optional[str] = None,
    ai_scoring_breakdown: Optional[Dict[str, Any]] = None,
) -> LaunchPotentialResult:
    factors = assess_factors(competition_score, niche, product_title, product_visual_description)
    classification = ai_classification
    valid_ai_score = isinstance(ai_score, (int, float)) and not isinstance(ai_score, bool) and 0 <= ai_score <= 10

    if is_simple_generic_jewelry(niche, product_type, product_title, product_visual_description):
        score = min(ai_score if valid_ai_score else GENERIC_JEWELRY_CAP, GENERIC_JEWELRY_CAP)
        classification = "NOT RECOMMENDED"
        justification = (
            f"Score capped at {score:.1f}/10 because the product is simple, non-original jewelry. "
            "Generic jewelry on Etsy is extremely saturated; personalization, a unique design "
            "or rare materials are needed to score higher."
        )
        logger.info(f"Generic jewelry detected, score capped at {score}")
    elif valid_ai_score:
        score = round_half_up(ai_score * 10) / 10
        justification = ai_justification or f"Score of {score}/10 assigned by the multi-criteria AI analysis."
    else:
        score = DEFAULT_SCORE
        justification = "Default score, AI analysis not available."
        classification = "HIGH RISK"

    score = max(0.0, min(10.0, score))
    if not classification:
        classification = classify_score(score)

    tier = tier_for_score(score)
    return LaunchPotentialResult(
        score=score,
        tier=tier,
        verdict=classification,
        explanation=build_explanation(tier, factors, classification),
        score_justification=justification,
        badge=TIER_BADGES[tier],
        classification=classification,
        factors=factors,
        scoring_breakdown=ai_scoring_breakdown,
    )
