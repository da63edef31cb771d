"""
Competition estimate for a product on Etsy.

The estimate is built from the number of Etsy search results for a handful of
keyword variations. The median result count is weighted by a category
coefficient and mapped onto a 0-100 competition score.
"""
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

CATEGORY_COEFFICIENTS: Dict[str, float] = {
    "Jewelry": 1.30,
    "Apparel": 1.25,
    "Home Decor": 1.10,
    "Digital Products": 1.40,
    "Pet Supplies": 0.90,
    "Furniture": 0.80,
    "Office / Organization": 0.95,
    "Wedding": 1.20,
    "default": 1.00,
}

# Adjusted volume at which the score reaches 100
MAX_COMPETITION_VOLUME = 20000
MIN_VALID_QUERIES = 2
MAX_QUERIES = 5

STOP_WORDS = {"gift", "decor", "best", "unique", "trending", "new", "hot", "sale", "free", "shipping"}

SYNONYMS = {
    "mug": ["coffee cup", "tea cup", "ceramic mug"],
    "bracelet": ["wristband", "bangle", "cuff"],
    "necklace": ["pendant", "chain"],
    "poster": ["print", "art print", "wall art"],
    "pillow": ["cushion", "throw pillow"],
    "bag": ["tote bag", "handbag", "purse"],
    "t-shirt": ["shirt", "tee"],
}

USAGE_TERMS = {
    "mug": "coffee",
    "bracelet": "jewelry",
    "necklace": "jewelry",
    "poster": "wall decor",
    "pillow": "home decor",
    "bag": "accessories",
}

STYLE_TERMS = ("minimalist", "vintage", "modern", "rustic", "bohemian")

EXPLANATION = (
    "Competition is estimated based on Etsy search result volumes across {count} keyword variations "
    "and adjusted using category benchmarks. Values are approximate and intended to support decision-making."
)


class CompetitionEstimateError(ValueError):
    pass


@dataclass
class QueryResult:
    keyword: str
    results_count: int
    valid: bool

    def to_dict(self) -> dict:
        return {"keyword": self.keyword, "resultsCount": self.results_count, "valid": self.valid}


@dataclass
class CompetitionEstimate:
    queries: List[QueryResult]
    base_competition_volume: int
    adjusted_competition_volume: int
    competition_score: float
    saturation_level: str
    category: str
    category_coefficient: float
    decision: str
    explanation: str
    market: str = "EN"
    valid_queries: List[QueryResult] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "queries": [q.to_dict() for q in self.queries],
            "validQueries": [q.to_dict() for q in self.valid_queries],
            "baseCompetitionVolume": self.base_competition_volume,
            "adjustedCompetitionVolume": self.adjusted_competition_volume,
            "competitionScore": self.competition_score,
            "saturationLevel": self.saturation_level,
            "category": self.category,
            "categoryCoefficient": self.category_coefficient,
            "queriesUsed": len(self.valid_queries),
            "decision": self.decision,
            "explanation": self.explanation,
            "market": self.market,
        }


def _round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def generate_etsy_queries(product_title: str, product_type: str) -> List[str]:
    """Three to five search queries so a single keyword does not skew the estimate."""
    product_type = product_type.lower().strip()
    title = product_title.lower()
    title_words = [
        word for word in re.sub(r"[^\w\s]", " ", title).split()
        if len(word) > 2 and word not in STOP_WORDS
    ][:4]

    queries: List[str] = []
    if title_words:
        main_query = f"{product_type} {title_words[0]}".strip()
        if len(main_query) > 3:
            queries.append(main_query)

    if product_type in SYNONYMS:
        first_word = title_words[0] if title_words else ""
        alt_query = f"{SYNONYMS[product_type][0]} {first_word}".strip()
        if len(alt_query) > 3 and (not queries or alt_query != queries[0]):
            queries.append(alt_query)

    if product_type in USAGE_TERMS:
        usage_query = f"{product_type} {USAGE_TERMS[product_type]}".strip()
        if len(usage_query) > 3 and usage_query not in queries:
            queries.append(usage_query)

    for style in STYLE_TERMS:
        if style in title:
            style_query = f"{style} {product_type}".strip()
            if len(style_query) > 3 and style_query not in queries:
                queries.append(style_query)
                break

    while len(queries) < 3 and title_words:
        remaining = [w for w in title_words if not any(w in q for q in queries)]
        if remaining:
            queries.append(f"{product_type} {remaining[0]}".strip())
        else:
            queries.append(product_type)
            break

    return queries[:MAX_QUERIES]


def calculate_median(numbers: List[float]) -> float:
    if not numbers:
        return 0
    ordered = sorted(numbers)
    mid = len(ordered) // 2
    if len(ordered) % 2 == 0:
        return (ordered[mid - 1] + ordered[mid]) / 2
    return ordered[mid]


def get_category_coefficient(category: str) -> float:
    """Exact category name first, then the first partial match either way round."""
    normalized = (category or "").strip()
    if normalized in CATEGORY_COEFFICIENTS:
        return CATEGORY_COEFFICIENTS[normalized]
    lowered = normalized.lower()
    if lowered:
        for key, value in CATEGORY_COEFFICIENTS.items():
            if key.lower() in lowered or lowered in key.lower():
                return value
    return CATEGORY_COEFFICIENTS["default"]


def calculate_competition_score(adjusted_volume: float) -> float:
    score = min(adjusted_volume / MAX_COMPETITION_VOLUME * 100, 100)
    return _round_half_up(score, 1)


def get_saturation_level(score: float) -> str:
    if score < 30:
        return "low"
    if score < 55:
        return "viable"
    if score < 75:
        return "high"
    return "saturated"


def get_decision(score: float) -> str:
    if score < 40:
        return "launch"
    if score < 70:
        return "launch_with_caution"
    return "do_not_launch"


def _count(value) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return None
    return int(value)


def estimate_competition(
    category: str,
    results_counts: Dict[str, Optional[float]],
    market: str = "EN",
) -> CompetitionEstimate:
    """
    Score competition from Etsy result counts keyed by search query.

    The counts come from the caller (the browser extension reads them off the
    Etsy search page). Counts that are missing or not positive are kept in the
    report but ignored; at least two usable counts are required.
    """
    queries = []
    for keyword, raw in results_counts.items():
        count = _count(raw)
        queries.append(QueryResult(keyword=keyword, results_count=count or 0, valid=count is not None and count > 0))
    valid = [q for q in queries if q.valid]
    if len(valid) < MIN_VALID_QUERIES:
        raise CompetitionEstimateError(
            f"Not enough valid queries ({len(valid)}/{MIN_VALID_QUERIES} minimum required)"
        )

    base_volume = calculate_median([q.results_count for q in valid])
    coefficient = get_category_coefficient(category)
    adjusted_volume = int(_round_half_up(base_volume * coefficient))
    score = calculate_competition_score(adjusted_volume)
    estimate = CompetitionEstimate(
        queries=queries,
        valid_queries=valid,
        base_competition_volume=int(_round_half_up(base_volume)),
        adjusted_competition_volume=adjusted_volume,
        competition_score=score,
        saturation_level=get_saturation_level(score),
        category=category,
        category_coefficient=coefficient,
        decision=get_decision(score),
        explanation=EXPLANATION.format(count=len(valid)),
        market=market,
    )
    logger.info(
        f"Competition estimate for {category}: score {score} ({estimate.saturation_level}, {estimate.decision}) "
        f"from {len(valid)} queries"
    )
    return estimate
