from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Session
from app.billing.plans import PLAN_QUOTAS, FREE_PLAN_ID
from app.billing.timeutils import now_utc
from app.models.user import User
from app.models.subscription import Subscription

def activate_plan(
    user: User,
    plan_id: str,
    customer_id: Optional[str],
    subscription_id: Optional[str],
    period_start: datetime,
    period_end: datetime,
    status: str = "active",
    reset_usage: bool = True,
):
    user.subscription_plan = plan_id
    user.subscription_status = status
    user.analysis_quota = PLAN_QUOTAS.get(plan_id, 0)
    user.current_period_start = period_start
    user.current_period_end = period_end
    if customer_id:
        user.stripe_customer_id = customer_id
    if subscription_id:
        user.stripe_subscription_id = subscription_id
    if reset_usage:
        user.analysis_used_this_month = 0.0


def change_plan(user: User, plan_id: str):
    """Upgrade in place: new quota, current usage kept."""
    user.subscription_plan = plan_id
    user.analysis_quota = PLAN_QUOTAS.get(plan_id, 0)


def revert_to_free(user: User, status: str = "canceled"):
    user.subscription_plan = FREE_PLAN_ID
    user.subscription_status = status
    user.analysis_quota = PLAN_QUOTAS[FREE_PLAN_ID]


def mark_canceling(user: User, record: Optional[Subscription]):
    user.subscription_status = "canceling"
    if record is not None:
        record.status = "canceling"
        record.cancel_at_period_end = True
        record.canceled_at = now_utc()


def get_subscription_record(db: Session, user_id: str) -> Optional[Subscription]:
    return db.query(Subscription).filter(Subscription.user_id == user_id).first()


def upsert_subscription_record(db: Session, user: User, price_id: Optional[str] = None) -> Subscription:
    """Mirror the user's billing fields onto the subscriptions row (keyed on user_id)."""
    record = get_subscription_record(db, user.id)
    if record is None:
        record = Subscription(user_id=user.id)
        db.add(record)
    record.plan_id = user.subscription_plan
    record.status = user.subscription_status
    record.stripe_customer_id = user.stripe_customer_id
    record.stripe_subscription_id = user.stripe_subscription_id
    if price_id:
        record.stripe_price_id = price_id
    record.current_period_start = user.current_period_start
    record.current_period_end = user.current_period_end
    record.month_reset_date = user.current_period_end
    record.analyses_used_current_month = user.analysis_used_this_month or 0.0
    if user.subscription_status == "active":
        record.cancel_at_period_end = False
        record.canceled_at = None
    elif user.subscription_status == "canceling":
        record.cancel_at_period_end = True
    return record
