from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple
from app.services.stripe_service import stripe_field

DEFAULT_PERIOD_DAYS = 30

def now_utc():
    return datetime.now(timezone.utc)

def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything we store is UTC
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)

def add_days(dt: datetime, days: int) -> datetime:
    return dt + timedelta(days=days)

def from_unix_timestamp(value) -> Optional[datetime]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if value <= 0:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)

def stripe_period(subscription, current_utc: datetime, period_days: int = DEFAULT_PERIOD_DAYS) -> Tuple[datetime, datetime]:
    """Billing period of a Stripe subscription, falling back to now / now + period_days."""
    raw_start = stripe_field(subscription, "current_period_start")
    raw_end = stripe_field(subscription, "current_period_end")
    # Newer API versions moved the period onto the subscription items
    if raw_start is None or raw_end is None:
        items = stripe_field(stripe_field(subscription, "items"), "data")
        if items:
            raw_start = raw_start if raw_start is not None else stripe_field(items[0], "current_period_start")
            raw_end = raw_end if raw_end is not None else stripe_field(items[0], "current_period_end")
    start = from_unix_timestamp(raw_start) or current_utc
    end = from_unix_timestamp(raw_end) or add_days(current_utc, period_days)
    return start, end
