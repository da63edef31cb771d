# app/billing/enforce.py
from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session
from app.database import get_db
from app.auth.security import get_current_user
from app.models.user import User
from app.billing.plans import is_unlimited_quota
from app.billing.quota import QuotaInfo, get_user_quota_info

def require_active_subscription(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> QuotaInfo:
    quota_info = get_user_quota_info(db, current_user.id)
    if not quota_info.has_access:
        raise HTTPException(
            status_code=403,
            detail={
                "error": "SUBSCRIPTION_REQUIRED",
                "message": "An active subscription is required. Please choose a plan.",
            },
        )
    if quota_info.quota == 0:
        raise HTTPException(
            status_code=403,
            detail={
                "error": "SUBSCRIPTION_REQUIRED",
                "message": "Your plan does not include any analyses.",
            },
        )
    return quota_info


def require_remaining_quota(cost: float):
    """Dependency factory: 403 QUOTA_EXCEEDED unless `cost` credits are left."""

    def dependency(quota_info: QuotaInfo = Depends(require_active_subscription)) -> QuotaInfo:
        if is_unlimited_quota(quota_info.quota):
            return quota_info
        if quota_info.remaining < cost:
            raise HTTPException(
                status_code=403,
                detail={
                    "error": "QUOTA_EXCEEDED",
                    "message": (
                        f"Insufficient quota. You need {cost} credit(s) but only have "
                        f"{quota_info.remaining} remaining."
                    ),
                    "used": quota_info.used,
                    "quota": quota_info.quota,
                    "requires_upgrade": quota_info.requires_upgrade,
                },
            )
        return quota_info

    return dependency
