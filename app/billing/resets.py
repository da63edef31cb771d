import logging
from dataclasses import dataclass
from datetime import datetime
from sqlalchemy.orm import Session
from app.config import settings
from app.models.user import User
from app.billing.assigns import get_subscription_record
from app.billing.timeutils import now_utc, add_days, ensure_utc

logger = logging.getLogger(__name__)

# Statuses the nightly reset leaves alone
SKIPPED_STATUSES = ("inactive", "canceled")

@dataclass
class ResetReport:
    reset: int = 0
    errors: int = 0

def is_period_expired(user: User, current_utc: datetime) -> bool:
    period_end = ensure_utc(user.current_period_end)
    return period_end is not None and period_end < current_utc

def apply_period_reset(user: User, current_utc: datetime, period_days: int = None) -> bool:
    if not is_period_expired(user, current_utc):
        return False
    days = period_days or settings.billing_period_days
    user.analysis_used_this_month = 0.0
    user.current_period_start = current_utc
    user.current_period_end = add_days(current_utc, days)
    return True

def reset_monthly_quotas(db: Session, current_utc: datetime = None) -> ResetReport:
    """Zero the usage counter of every billable user whose period has ended."""
    current = current_utc or now_utc()
    report = ResetReport()
    users = (
        db.query(User)
        .filter(User.subscription_status.notin_(SKIPPED_STATUSES))
        .filter(User.current_period_end.isnot(None))
        .all()
    )
    for user in users:
        if not is_period_expired(user, current):
            continue
        try:
            apply_period_reset(user, current)
            record = get_subscription_record(db, user.id)
            if record is not None:
                record.analyses_used_current_month = 0.0
                record.current_period_start = user.current_period_start
                record.current_period_end = user.current_period_end
                record.month_reset_date = user.current_period_end
            db.commit()
            report.reset += 1
        except Exception as e:
            db.rollback()
            logger.error(f"Error resetting quota for user {user.id}: {e}")
            report.errors += 1
    logger.info(f"Quota reset finished: {report.reset} reset, {report.errors} errors")
    return report
