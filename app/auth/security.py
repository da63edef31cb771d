import hmac
import logging
from typing import Optional
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from jose.exceptions import ExpiredSignatureError
from sqlalchemy.orm import Session
from app.config import settings
from app.database import get_db
from app.models.user import User
from app.billing.plans import FREE_PLAN_ID, PLAN_QUOTAS

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": "UNAUTHORIZED", "message": detail},
        headers={"WWW-Authenticate": "Bearer"},
    )

def decode_access_token(token: str) -> dict:
    """Verify an identity-provider access token and return its claims"""
    try:
        payload = jwt.decode(
            token,
            settings.supabase_jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
        )
    except ExpiredSignatureError:
        raise _unauthorized("Token expired")
    except JWTError:
        raise _unauthorized("Could not validate credentials")

    if not payload.get("sub"):
        raise _unauthorized("Invalid token payload")
    return payload

def get_current_user(
    db: Session = Depends(get_db),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> User:
    """Get the authenticated user, creating the row on first sight"""
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise _unauthorized("Missing bearer token")

    payload = decode_access_token(credentials.credentials)
    user_id = payload["sub"]
    email = payload.get("email")

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        # Signed up through the identity provider, first request here
        user = User(
            id=user_id,
            email=email,
            subscription_plan=FREE_PLAN_ID,
            subscription_status="inactive",
            analysis_used_this_month=0.0,
            analysis_quota=PLAN_QUOTAS[FREE_PLAN_ID],
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info(f"Created user row for {user_id}")
    elif email and user.email != email:
        user.email = email
        db.commit()

    return user

def verify_cron_secret(request: Request):
    """Cron callers pass the secret as a bearer token or a `token` query parameter"""
    if not settings.cron_secret:
        logger.error("CRON_SECRET is not configured, refusing cron call")
        raise HTTPException(status_code=500, detail="Cron secret not configured")

    auth_header = request.headers.get("authorization", "")
    provided = None
    if auth_header.lower().startswith("bearer "):
        provided = auth_header[7:].strip()
    if not provided:
        provided = request.query_params.get("token")

    if not provided or not hmac.compare_digest(provided.encode(), settings.cron_secret.encode()):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
