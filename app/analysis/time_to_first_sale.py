"""
Time-to-first-sale estimate.

Derived only from the launch potential score (0-10):

- 0 to 3: about 20 days (saturated market)
- 4 to 7: about 10 days (competitive market)
- 8 to 10: 5 days down to 1 day (favorable market)

Etsy Ads shorten every figure to 60% of the organic estimate.
"""
import math
from dataclasses import dataclass, asdict

ADS_FACTOR = 0.6

DAYS_AT_8 = 5
DAYS_AT_10 = 1

_BASE_EXPLANATION = (
    "This estimate is based on the product's launch potential score and reflects "
    "typical Etsy market behavior without paid advertising."
)

ADS_EXPLANATION = (
    "This estimate includes the impact of Etsy Ads, which typically accelerate first "
    "sale by increasing product visibility. Actual results may vary based on ad budget "
    "and optimization."
)


@dataclass(frozen=True)
class TimeToFirstSaleEstimate:
    min: int
    max: int
    expected: int
    range: str
    explanation: str

    def to_dict(self) -> dict:
        return asdict(self)


def round_half_up(value: float) -> int:
    # Python's round() goes to the even neighbour on .5; day counts round up
    return int(math.floor(value + 0.5))


def format_day_range(min_days: int, max_days: int) -> str:
    if min_days == max_days:
        return f"{min_days} {'day' if min_days == 1 else 'days'}"
    return f"{min_days}-{max_days} days"


def estimate_time_to_first_sale_from_score(score: float) -> TimeToFirstSaleEstimate:
    clamped = max(0.0, min(10.0, float(score)))

    if clamped <= 3:
        return TimeToFirstSaleEstimate(
            min=18,
            max=25,
            expected=20,
            range="20 days",
            explanation=f"{_BASE_EXPLANATION} Market conditions indicate high saturation.",
        )

    if clamped <= 7:
        return TimeToFirstSaleEstimate(
            min=8,
            max=12,
            expected=10,
            range="10 days",
            explanation=(
                f"{_BASE_EXPLANATION} Competitive market conditions require strategic positioning."
            ),
        )

    # Linear from 5 days at 8.0 down to 1 day at 10.0; scores in (7, 8) clamp to 5
    interpolated = DAYS_AT_8 - ((clamped - 8) / (10 - 8)) * (DAYS_AT_8 - DAYS_AT_10)
    expected = max(1, min(5, round_half_up(interpolated)))
    min_days = max(1, expected - 1)
    max_days = min(5, expected + 1)
    return TimeToFirstSaleEstimate(
        min=min_days,
        max=max_days,
        expected=expected,
        range=format_day_range(min_days, max_days),
        explanation=f"{_BASE_EXPLANATION} Favorable market conditions suggest quick visibility.",
    )


def estimate_time_to_first_sale_with_ads(without_ads: TimeToFirstSaleEstimate) -> TimeToFirstSaleEstimate:
    min_days = max(1, round_half_up(without_ads.min * ADS_FACTOR))
    max_days = max(1, round_half_up(without_ads.max * ADS_FACTOR))
    expected = max(1, round_half_up(without_ads.expected * ADS_FACTOR))
    return TimeToFirstSaleEstimate(
        min=min_days,
        max=max_days,
        expected=expected,
        range=format_day_range(min_days, max_days),
        explanation=ADS_EXPLANATION,
    )
