from dataclasses import dataclass, field
from typing import Optional
from app.config import settings

FREE_PLAN_ID = "FREE"
SMART_PLAN_ID = "SMART"     # 15 analyses/month
PRO_PLAN_ID = "PRO"         # 30 analyses/month
SCALE_PLAN_ID = "SCALE"     # 100 analyses/month

PAID_PLAN_IDS = (SMART_PLAN_ID, PRO_PLAN_ID, SCALE_PLAN_ID)

UNLIMITED_QUOTA = -1

# Statuses that still grant access to the paid quota
ACTIVE_STATUSES = ("active", "canceling")

@dataclass(frozen=True)
class PlanSpec:
    name: str
    monthly_quota: int
    price: float
    currency: str = "EUR"
    features: frozenset = field(default_factory=frozenset)


_SMART_FEATURES = frozenset({
    "competition_analysis", "basic_simulation", "basic_product_sheet", "history",
})
_PRO_FEATURES = _SMART_FEATURES | {
    "full_simulation", "full_product_sheet", "advanced_marketing", "tiktok_ideas", "ad_prompt",
}
_SCALE_FEATURES = _PRO_FEATURES | {
    "advanced_simulation", "extended_market", "advanced_history", "beta_features",
}

PLANS: dict[str, PlanSpec] = {
    FREE_PLAN_ID: PlanSpec(name="Free", monthly_quota=0, price=0.0),
    SMART_PLAN_ID: PlanSpec(name="Etsmart Smart", monthly_quota=15, price=19.99, features=_SMART_FEATURES),
    PRO_PLAN_ID: PlanSpec(name="Etsmart Pro", monthly_quota=30, price=29.99, features=_PRO_FEATURES),
    SCALE_PLAN_ID: PlanSpec(name="Etsmart Scale", monthly_quota=100, price=49.99, features=_SCALE_FEATURES),
}

PLAN_QUOTAS: dict[str, int] = {plan_id: spec.monthly_quota for plan_id, spec in PLANS.items()}

_UPGRADE_PATH = {
    FREE_PLAN_ID: SMART_PLAN_ID,
    SMART_PLAN_ID: PRO_PLAN_ID,
    PRO_PLAN_ID: SCALE_PLAN_ID,
}


def normalize_plan_id(value) -> Optional[str]:
    """Accept 'smart' as well as 'SMART'; anything unknown maps to None."""
    if not isinstance(value, str):
        return None
    candidate = value.strip().upper()
    return candidate if candidate in PLANS else None


def is_unlimited_quota(quota) -> bool:
    return quota == UNLIMITED_QUOTA


def is_unlimited_plan(plan_id) -> bool:
    spec = PLANS.get(plan_id)
    return spec is not None and is_unlimited_quota(spec.monthly_quota)


def get_upgrade_suggestion(plan_id) -> Optional[str]:
    return _UPGRADE_PATH.get(plan_id)


def stripe_price_ids() -> dict[str, Optional[str]]:
    return {
        SMART_PLAN_ID: settings.stripe_price_smart,
        PRO_PLAN_ID: settings.stripe_price_pro,
        SCALE_PLAN_ID: settings.stripe_price_scale,
    }


def get_stripe_price_id(plan_id) -> Optional[str]:
    return stripe_price_ids().get(plan_id)


def plan_for_price_id(price_id) -> Optional[str]:
    if not price_id:
        return None
    for plan_id, plan_price_id in stripe_price_ids().items():
        if plan_price_id and plan_price_id == price_id:
            return plan_id
    return None


def has_feature(plan_id, feature_id: str) -> bool:
    spec = PLANS.get(plan_id)
    if spec is None:
        return False
    return feature_id in spec.features
