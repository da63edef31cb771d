"""
Stripe -> database reconciliation.

Fetching (network only) and applying (database only) are kept apart so the
fetch half can run under a timeout in a worker thread without touching the
request's Session.
"""
import logging
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Session
from app.config import settings
from app.models.user import User
from app.billing.errors import PlanResolutionError, NoActiveSubscription
from app.billing.plans import PLAN_QUOTAS, plan_for_price_id, normalize_plan_id
from app.billing.assigns import activate_plan, upsert_subscription_record
from app.billing.timeutils import now_utc, stripe_period
from app.services.stripe_service import stripe_service, stripe_field, stripe_id

logger = logging.getLogger(__name__)

@dataclass
class StripeSnapshot:
    plan: str
    status: str
    customer_id: Optional[str]
    subscription_id: Optional[str]
    price_id: Optional[str]
    period_start: datetime
    period_end: datetime
    quota: int

    def to_dict(self) -> dict:
        data = asdict(self)
        data["period_start"] = self.period_start.isoformat()
        data["period_end"] = self.period_end.isoformat()
        return data


def map_stripe_status(status: Optional[str], cancel_at_period_end: bool = False) -> str:
    if status in ("active", "trialing"):
        return "canceling" if cancel_at_period_end else "active"
    if status == "past_due":
        return "past_due"
    if status == "canceled":
        return "canceled"
    return "inactive"


def subscription_price_id(subscription) -> Optional[str]:
    items = stripe_field(stripe_field(subscription, "items"), "data")
    if not items:
        return None
    return stripe_id(stripe_field(items[0], "price"))


def snapshot_from_subscription(subscription, customer_id: Optional[str], fallback_plan: Optional[str] = None) -> StripeSnapshot:
    price_id = subscription_price_id(subscription)
    plan = plan_for_price_id(price_id) or normalize_plan_id(fallback_plan)
    if plan is None:
        raise PlanResolutionError(f"Could not determine plan from price ID: {price_id}")
    period_start, period_end = stripe_period(subscription, now_utc(), settings.billing_period_days)
    return StripeSnapshot(
        plan=plan,
        status=map_stripe_status(
            stripe_field(subscription, "status"),
            bool(stripe_field(subscription, "cancel_at_period_end", False)),
        ),
        customer_id=customer_id or stripe_id(stripe_field(subscription, "customer")),
        subscription_id=stripe_field(subscription, "id"),
        price_id=price_id,
        period_start=period_start,
        period_end=period_end,
        quota=PLAN_QUOTAS[plan],
    )


def fetch_active_snapshot(email: str) -> Optional[StripeSnapshot]:
    """Customer by email -> first active subscription. No database access."""
    customer = stripe_service.find_customer_by_email(email)
    if customer is None:
        logger.info(f"No Stripe customer found for email: {email}")
        return None
    customer_id = stripe_field(customer, "id")
    subscriptions = stripe_service.list_active_subscriptions(customer_id)
    if not subscriptions:
        logger.info(f"No active subscriptions for customer: {customer_id}")
        return None
    snapshot = snapshot_from_subscription(subscriptions[0], customer_id)
    logger.info(f"Stripe reports active {snapshot.plan} subscription for {email}")
    return snapshot


def apply_snapshot(db: Session, user: User, snapshot: StripeSnapshot, reset_usage: bool):
    activate_plan(
        user,
        snapshot.plan,
        snapshot.customer_id,
        snapshot.subscription_id,
        snapshot.period_start,
        snapshot.period_end,
        status=snapshot.status,
        reset_usage=reset_usage,
    )
    upsert_subscription_record(db, user, price_id=snapshot.price_id)
    db.commit()


def sync_subscription_from_stripe(db: Session, user: User, reset_usage: bool = False) -> Optional[StripeSnapshot]:
    """Pull the user's active subscription from Stripe and write it to both tables.

    Stripe is the source of truth: a failing database write is logged and the
    snapshot is still returned.
    """
    if not user.email:
        return None
    snapshot = fetch_active_snapshot(user.email)
    if snapshot is None:
        return None
    try:
        apply_snapshot(db, user, snapshot, reset_usage)
    except Exception as e:
        db.rollback()
        logger.error(f"Database update failed after Stripe sync for user {user.id}: {e}")
    return snapshot


def sync_checkout_session(db: Session, user: User, session_id: str) -> StripeSnapshot:
    """Activate the plan bought in a checkout session, ahead of the webhook."""
    session = stripe_service.retrieve_checkout_session(session_id)
    metadata = stripe_field(session, "metadata", {})
    session_user_id = stripe_field(metadata, "user_id")
    if session_user_id and session_user_id != user.id:
        logger.warning(f"Checkout session {session_id} user_id mismatch: {session_user_id} vs {user.id}")

    subscription = stripe_field(session, "subscription")
    if isinstance(subscription, str):
        subscription = stripe_service.retrieve_subscription(subscription)
    if subscription is None:
        raise NoActiveSubscription("No subscription found in session")

    customer_id = stripe_id(stripe_field(session, "customer"))
    snapshot = snapshot_from_subscription(subscription, customer_id, fallback_plan=stripe_field(metadata, "plan_id"))
    # A completed checkout means the user paid, whatever the subscription status lags at
    snapshot.status = "active"
    apply_snapshot(db, user, snapshot, reset_usage=True)
    logger.info(f"Activated {snapshot.plan} for user {user.id} from checkout session {session_id}")
    return snapshot
