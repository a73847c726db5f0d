import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .config import TOKEN_COOKIE_NAME
from .database import get_db
from .models import User
from .security_utils import verify_jwt_token

logger = logging.getLogger(__name__)

# Tokens may arrive as a cookie, so a missing header is not an error by itself
security = HTTPBearer(auto_error=False)


def extract_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    """Return the session token from the cookie, falling back to the Authorization header"""
    token = request.cookies.get(TOKEN_COOKIE_NAME)
    if token:
        return token
    if credentials and credentials.scheme.lower() == "bearer":
        return credentials.credentials
    return None


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    token = extract_token(request, credentials)
    if not token:
        raise HTTPException(status_code=401, detail="No token provided")

    payload = verify_jwt_token(token)
    if not payload or "id" not in payload:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    user = db.query(User).filter(User.id == payload["id"]).first()
    if not user:
        logger.warning(f"⚠️ Token references missing user id={payload['id']}")
        raise HTTPException(status_code=401, detail="User not found")

    return user


async def require_staff(current_user: User = Depends(get_current_user)) -> User:
    """Allow admins and co-admins"""
    if not current_user.is_staff:
        raise HTTPException(status_code=403, detail="Admin or co-admin role required")
    return current_user


async def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_admin:
        raise HTTPException(status_code=403, detail="Admin role required")
    return current_user


async def reject_co_admin(current_user: User = Depends(get_current_user)) -> User:
    """Co-admins manage the calendar but cannot book visits themselves"""
    if current_user.is_co_admin:
        raise HTTPException(status_code=403, detail="Co-admins cannot book appointments")
    return current_user
