"""
Stripe webhook dispatch.

Every handler acknowledges the event once it has been logged: an unknown user
or plan is not something a Stripe retry would fix.
"""
import logging
from typing import Optional
from sqlalchemy.orm import Session
from app.config import settings
from app.models.user import User
from app.billing.errors import PlanResolutionError
from app.billing.plans import PLAN_QUOTAS, normalize_plan_id
from app.billing.assigns import activate_plan, revert_to_free, upsert_subscription_record, get_subscription_record
from app.billing.sync import snapshot_from_subscription, subscription_price_id
from app.billing.timeutils import now_utc, add_days
from app.services.stripe_service import stripe_service, stripe_field, stripe_id

logger = logging.getLogger(__name__)


def _user_by_email(db: Session, email: Optional[str]) -> Optional[User]:
    if not email:
        return None
    return db.query(User).filter(User.email == email).first()


def _user_by_customer(db: Session, customer_id: Optional[str]) -> Optional[User]:
    if not customer_id:
        return None
    return db.query(User).filter(User.stripe_customer_id == customer_id).first()


def _customer_email(customer_id: Optional[str]) -> Optional[str]:
    if not customer_id or not stripe_service.configured:
        return None
    customer = stripe_service.retrieve_customer(customer_id)
    return stripe_field(customer, "email")


def handle_checkout_completed(db: Session, session) -> str:
    metadata = stripe_field(session, "metadata", {})
    customer_id = stripe_id(stripe_field(session, "customer"))
    subscription = stripe_field(session, "subscription")
    subscription_id = stripe_id(subscription)
    if isinstance(subscription, str):
        subscription = stripe_service.retrieve_subscription(subscription) if stripe_service.configured else None

    plan = normalize_plan_id(stripe_field(metadata, "plan_id"))
    if plan is None and subscription is not None:
        try:
            plan = snapshot_from_subscription(subscription, customer_id).plan
        except PlanResolutionError as e:
            logger.error(f"Checkout {stripe_field(session, 'id')}: {e}")
    if plan is None:
        return "ignored: plan could not be determined"

    user = None
    user_id = stripe_field(metadata, "user_id")
    if user_id:
        user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        email = stripe_field(session, "customer_email") or stripe_field(
            stripe_field(session, "customer_details"), "email"
        )
        user = _user_by_email(db, email)
    if user is None:
        logger.warning(f"Checkout {stripe_field(session, 'id')}: no matching user")
        return "ignored: user not found"

    current = now_utc()
    activate_plan(
        user,
        plan,
        customer_id,
        subscription_id,
        current,
        add_days(current, settings.billing_period_days),
        status="active",
        reset_usage=True,
    )
    upsert_subscription_record(db, user, price_id=subscription_price_id(subscription) if subscription is not None else None)
    db.commit()
    logger.info(f"Checkout completed: user {user.id} activated on {plan}")
    return f"activated {plan} for {user.id}"


def handle_subscription_changed(db: Session, subscription) -> str:
    customer_id = stripe_id(stripe_field(subscription, "customer"))
    user = _user_by_email(db, _customer_email(customer_id)) or _user_by_customer(db, customer_id)
    if user is None:
        logger.warning(f"Subscription {stripe_field(subscription, 'id')}: no user for customer {customer_id}")
        return "ignored: user not found"
    try:
        snapshot = snapshot_from_subscription(subscription, customer_id, fallback_plan=user.subscription_plan)
    except PlanResolutionError as e:
        logger.error(f"Subscription {stripe_field(subscription, 'id')}: {e}")
        return "ignored: plan could not be determined"

    activate_plan(
        user,
        snapshot.plan,
        snapshot.customer_id,
        snapshot.subscription_id,
        snapshot.period_start,
        snapshot.period_end,
        status=snapshot.status,
        reset_usage=False,
    )
    upsert_subscription_record(db, user, price_id=snapshot.price_id)
    db.commit()
    logger.info(f"Subscription updated: user {user.id} on {snapshot.plan} ({snapshot.status})")
    return f"updated {user.id} to {snapshot.plan} ({snapshot.status})"


def handle_subscription_deleted(db: Session, subscription) -> str:
    customer_id = stripe_id(stripe_field(subscription, "customer"))
    user = _user_by_customer(db, customer_id)
    if user is None:
        logger.warning(f"Subscription deleted for unknown customer {customer_id}")
        return "ignored: user not found"
    revert_to_free(user, status="canceled")
    user.stripe_subscription_id = None
    record = get_subscription_record(db, user.id)
    if record is not None:
        record.plan_id = user.subscription_plan
        record.status = "canceled"
        record.canceled_at = now_utc()
        record.stripe_subscription_id = None
    db.commit()
    logger.info(f"Subscription deleted: user {user.id} reverted to FREE")
    return f"canceled {user.id}"


def handle_invoice_paid(db: Session, invoice) -> str:
    customer_id = stripe_id(stripe_field(invoice, "customer"))
    user = _user_by_customer(db, customer_id)
    if user is None:
        logger.warning(f"Invoice paid for unknown customer {customer_id}")
        return "ignored: user not found"
    current = now_utc()
    user.analysis_used_this_month = 0.0
    user.subscription_status = "active"
    user.analysis_quota = PLAN_QUOTAS.get(user.subscription_plan, 0)
    user.current_period_start = current
    user.current_period_end = add_days(current, settings.billing_period_days)
    upsert_subscription_record(db, user)
    db.commit()
    logger.info(f"Invoice paid: usage of user {user.id} reset for a new period")
    return f"renewed {user.id}"


HANDLERS = {
    "checkout.session.completed": handle_checkout_completed,
    "customer.subscription.created": handle_subscription_changed,
    "customer.subscription.updated": handle_subscription_changed,
    "customer.subscription.deleted": handle_subscription_deleted,
    "invoice.paid": handle_invoice_paid,
}


def handle_stripe_event(db: Session, event) -> str:
    event_type = stripe_field(event, "type")
    handler = HANDLERS.get(event_type)
    if handler is None:
        logger.info(f"Unhandled Stripe event type: {event_type}")
        return f"ignored: {event_type}"
    data_object = stripe_field(stripe_field(event, "data"), "object")
    return handler(db, data_object)
