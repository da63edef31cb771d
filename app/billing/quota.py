import logging
import math
import sys
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Session
from app.config import settings
from app.models.user import User
from app.billing.plans import PLAN_QUOTAS, FREE_PLAN_ID, UNLIMITED_QUOTA, ACTIVE_STATUSES, is_unlimited_plan, is_unlimited_quota, get_upgrade_suggestion
from app.billing.resets import apply_period_reset
from app.billing.assigns import get_subscription_record
from app.billing.sync import fetch_active_snapshot, apply_snapshot
from app.billing.timeutils import now_utc, ensure_utc
from app.services.stripe_service import stripe_service

logger = logging.getLogger(__name__)

UNLIMITED_REMAINING = sys.maxsize

_stripe_lookup_pool = ThreadPoolExecutor(max_workers=4, thread_name_prefix="stripe-lookup")

@dataclass
class QuotaInfo:
    plan: str
    status: str
    used: float
    quota: int
    remaining: float
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    requires_upgrade: Optional[str] = None

    @property
    def has_access(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def to_dict(self) -> dict:
        return {
            "plan": self.plan,
            "status": self.status,
            "used": self.used,
            "quota": self.quota,
            "remaining": self.remaining,
            "periodStart": self.period_start.isoformat() if self.period_start else None,
            "periodEnd": self.period_end.isoformat() if self.period_end else None,
            "requiresUpgrade": self.requires_upgrade,
        }

@dataclass
class DeductionResult:
    success: bool
    used: float
    quota: int
    remaining: float
    error: Optional[str] = None


def inactive_quota() -> QuotaInfo:
    return QuotaInfo(plan=FREE_PLAN_ID, status="inactive", used=0, quota=0, remaining=0)


def _used(user: User) -> float:
    try:
        return float(user.analysis_used_this_month or 0)
    except (TypeError, ValueError):
        return 0.0


def effective_quota(user: User) -> int:
    if user.analysis_quota is not None:
        return user.analysis_quota
    return PLAN_QUOTAS.get(user.subscription_plan, 0)


def _is_unlimited(user: User, quota: int) -> bool:
    return is_unlimited_plan(user.subscription_plan) or is_unlimited_quota(quota)


def is_valid_amount(amount) -> bool:
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        return False
    return math.isfinite(amount) and amount > 0


def increment_analysis_count(db: Session, user_id: str, amount: float = 0.5) -> DeductionResult:
    """Add `amount` credits to the user's usage counter if the quota allows it."""
    if not is_valid_amount(amount):
        logger.error(f"Deduction refused: invalid amount {amount!r} for user {user_id}")
        return DeductionResult(success=False, used=0, quota=0, remaining=0, error="Amount must be a positive number")

    user = db.query(User).filter(User.id == user_id).with_for_update().first()
    if user is None:
        logger.error(f"Deduction refused: user {user_id} not found")
        return DeductionResult(success=False, used=0, quota=0, remaining=0, error="User not found")

    used = _used(user)
    quota = effective_quota(user)

    if user.subscription_status not in ACTIVE_STATUSES:
        db.rollback()
        return DeductionResult(
            success=False,
            used=used,
            quota=quota,
            remaining=0,
            error=f"Subscription is not active (status: {user.subscription_status})",
        )

    current = now_utc()
    if apply_period_reset(user, current):
        logger.info(f"Billing period of user {user_id} expired, usage reset")
        used = 0.0

    unlimited = _is_unlimited(user, quota)
    if not unlimited and used + amount > quota:
        # Persist a period reset even when the deduction itself is refused
        db.commit()
        return DeductionResult(
            success=False,
            used=used,
            quota=quota,
            remaining=max(0, quota - used),
            error="Quota exceeded",
        )

    new_used = used + amount
    user.analysis_used_this_month = new_used
    record = get_subscription_record(db, user.id)
    if record is not None:
        record.analyses_used_current_month = new_used
        record.current_period_start = user.current_period_start
        record.current_period_end = user.current_period_end
    try:
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to store usage for user {user_id}: {e}")
        return DeductionResult(
            success=False,
            used=used,
            quota=quota,
            remaining=max(0, quota - used),
            error="Database update failed",
        )

    logger.info(f"Usage of user {user_id}: {used} -> {new_used} (quota {quota})")
    if unlimited:
        return DeductionResult(success=True, used=new_used, quota=UNLIMITED_QUOTA, remaining=UNLIMITED_REMAINING)
    return DeductionResult(success=True, used=new_used, quota=quota, remaining=max(0, quota - new_used))


def _quota_from_user(user: User) -> QuotaInfo:
    quota = effective_quota(user)
    used = _used(user)
    unlimited = _is_unlimited(user, quota)
    requires_upgrade = None
    if not unlimited and used >= quota:
        requires_upgrade = get_upgrade_suggestion(user.subscription_plan)
    return QuotaInfo(
        plan=user.subscription_plan,
        status=user.subscription_status,
        used=used,
        quota=UNLIMITED_QUOTA if unlimited else quota,
        remaining=UNLIMITED_REMAINING if unlimited else max(0, quota - used),
        period_start=ensure_utc(user.current_period_start),
        period_end=ensure_utc(user.current_period_end),
        requires_upgrade=requires_upgrade,
    )


def _lookup_snapshot(email: str):
    future = _stripe_lookup_pool.submit(fetch_active_snapshot, email)
    try:
        return future.result(timeout=settings.stripe_lookup_timeout_seconds)
    except FuturesTimeout:
        logger.warning(f"Stripe lookup for {email} timed out")
    except Exception as e:
        logger.error(f"Stripe lookup for {email} failed: {e}")
    return None


def get_user_quota_info(db: Session, user_id: str) -> QuotaInfo:
    """Database first; Stripe only when the database has no active subscription."""
    user = db.query(User).filter(User.id == user_id).first()
    if user is not None and user.subscription_status in ACTIVE_STATUSES:
        return _quota_from_user(user)

    email = user.email if user is not None else None
    if user is None or not email or not stripe_service.configured:
        return inactive_quota()

    logger.info(f"Database has no active subscription for {email}, checking Stripe")
    snapshot = _lookup_snapshot(email)
    if snapshot is None or snapshot.status not in ACTIVE_STATUSES:
        return inactive_quota()

    used = _used(user)
    try:
        apply_snapshot(db, user, snapshot, reset_usage=False)
    except Exception as e:
        db.rollback()
        logger.error(f"Database update failed after Stripe lookup for user {user_id}: {e}")

    return QuotaInfo(
        plan=snapshot.plan,
        status=snapshot.status,
        used=used,
        quota=snapshot.quota,
        remaining=max(0, snapshot.quota - used),
        period_start=snapshot.period_start,
        period_end=snapshot.period_end,
    )
