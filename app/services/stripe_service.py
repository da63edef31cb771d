# app/services/stripe_service.py

import logging
from typing import Optional, Dict, Any, List
import stripe
from app.config import settings
from app.billing.errors import StripeNotConfigured

logger = logging.getLogger(__name__)


def stripe_field(obj, name, default=None):
    """Read a field from a StripeObject, a plain dict or an attribute-style fake."""
    if obj is None:
        return default
    try:
        value = obj.get(name)
    except AttributeError:
        value = getattr(obj, name, None)
    return default if value is None else value


def stripe_id(value) -> Optional[str]:
    """Expandable fields come back either as an id string or as an object."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return stripe_field(value, "id")


class StripeService:
    def __init__(self):
        self.secret_key = settings.stripe_secret_key
        if self.secret_key:
            stripe.api_key = self.secret_key
        else:
            logger.warning("STRIPE_SECRET_KEY is not set. Stripe functionality will be unavailable.")

    @property
    def configured(self) -> bool:
        return bool(self.secret_key)

    def _require(self):
        if not self.configured:
            raise StripeNotConfigured()

    def find_customer_by_email(self, email: str):
        self._require()
        customers = stripe.Customer.list(email=email, limit=1)
        return customers.data[0] if customers.data else None

    def list_active_subscriptions(self, customer_id: str, limit: int = 1) -> List[Any]:
        self._require()
        subscriptions = stripe.Subscription.list(customer=customer_id, status="active", limit=limit)
        return list(subscriptions.data)

    def retrieve_subscription(self, subscription_id: str):
        self._require()
        return stripe.Subscription.retrieve(subscription_id)

    def retrieve_customer(self, customer_id: str):
        self._require()
        return stripe.Customer.retrieve(customer_id)

    def create_checkout_session(
        self,
        price_id: str,
        metadata: Dict[str, str],
        success_url: str,
        cancel_url: str,
        customer_id: Optional[str] = None,
        customer_email: Optional[str] = None,
    ):
        self._require()
        params: Dict[str, Any] = {
            "mode": "subscription",
            "payment_method_types": ["card"],
            "line_items": [{"price": price_id, "quantity": 1}],
            "metadata": metadata,
            "success_url": success_url,
            "cancel_url": cancel_url,
            "allow_promotion_codes": True,
            "billing_address_collection": "auto",
        }
        if customer_id:
            params["customer"] = customer_id
        elif customer_email:
            params["customer_email"] = customer_email
        return stripe.checkout.Session.create(**params)

    def retrieve_checkout_session(self, session_id: str):
        self._require()
        return stripe.checkout.Session.retrieve(
            session_id,
            expand=["subscription", "subscription.items.data.price"],
        )

    def update_subscription(self, subscription_id: str, item_id: str, new_price_id: str):
        """Move a subscription to a new price, letting Stripe prorate the unused time."""
        self._require()
        return stripe.Subscription.modify(
            subscription_id,
            items=[{"id": item_id, "price": new_price_id}],
            proration_behavior="create_prorations",
            payment_behavior="pending_if_incomplete",
        )

    def schedule_cancellation(self, subscription_id: str):
        self._require()
        return stripe.Subscription.modify(subscription_id, cancel_at_period_end=True)

    def list_monthly_prices(self) -> List[Dict[str, Any]]:
        self._require()
        prices = stripe.Price.list(limit=100, active=True, expand=["data.product"])
        monthly = []
        for price in prices.data:
            recurring = stripe_field(price, "recurring")
            if stripe_field(recurring, "interval") != "month":
                continue
            if stripe_field(recurring, "interval_count", 1) != 1:
                continue
            product = stripe_field(price, "product")
            unit_amount = stripe_field(price, "unit_amount")
            monthly.append({
                "id": stripe_field(price, "id"),
                "amount": unit_amount / 100 if unit_amount else 0,
                "currency": stripe_field(price, "currency"),
                "productId": stripe_id(product),
                "productName": stripe_field(product, "name", "Unknown") if not isinstance(product, str) else "Unknown",
            })
        return monthly

    def construct_event(self, payload: bytes, signature: str):
        if not settings.stripe_webhook_secret:
            raise StripeNotConfigured("Webhook secret not configured")
        return stripe.Webhook.construct_event(payload, signature, settings.stripe_webhook_secret)


# Global Stripe instance
stripe_service = StripeService()
