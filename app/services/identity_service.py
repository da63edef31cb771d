# app/services/identity_service.py

import logging
import httpx
from app.config import settings

logger = logging.getLogger(__name__)


def delete_auth_user(user_id: str) -> bool:
    """Remove the user from the identity provider through its admin API."""
    if not settings.supabase_url or not settings.supabase_service_role_key:
        logger.warning("Identity provider admin credentials missing, auth user not deleted")
        return False

    url = f"{settings.supabase_url.rstrip('/')}/auth/v1/admin/users/{user_id}"
    headers = {
        "apikey": settings.supabase_service_role_key,
        "Authorization": f"Bearer {settings.supabase_service_role_key}",
    }
    try:
        with httpx.Client(timeout=10.0) as client:
            response = client.delete(url, headers=headers)
    except httpx.HTTPError as e:
        logger.error(f"Failed to delete auth user {user_id}: {e}")
        return False

    if response.status_code >= 400:
        logger.error(f"Failed to delete auth user {user_id}: {response.status_code} {response.text[:200]}")
        return False
    logger.info(f"Deleted auth user {user_id}")
    return True
