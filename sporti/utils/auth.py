"""
Authentication utilities - JWT decoding and role checks

Identity itself (member login, OTP) lives outside this service; tokens are
issued upstream and only carry {sub, role, email}.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional, Dict
from jose import JWTError, jwt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sporti.config.settings import settings
from sporti.utils.exceptions import AuthenticationError, AuthorizationError

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"
MEMBER_ROLE = "member"

# Booking creation is open to non-members, so the bearer is optional
security = HTTPBearer(auto_error=False)


def create_access_token(data: Dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token"""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Dict:
    """Decode and verify a JWT token"""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.warning("JWT verification failed: %s", e)
        raise AuthenticationError("Could not validate credentials")


def is_admin(actor: Optional[Dict]) -> bool:
    return bool(actor) and actor.get("role") == ADMIN_ROLE


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[Dict]:
    """Actor for the request, or None for a non-member"""
    if credentials is None:
        return None
    payload = decode_access_token(credentials.credentials)
    if not payload.get("sub"):
        raise AuthenticationError("Invalid authentication credentials")
    payload.setdefault("role", MEMBER_ROLE)
    return payload


async def get_current_user(current_user: Optional[Dict] = Depends(get_optional_user)) -> Dict:
    """Dependency to require an authenticated member or admin"""
    if current_user is None:
        raise AuthenticationError()
    return current_user


async def require_admin(current_user: Dict = Depends(get_current_user)) -> Dict:
    """Dependency to require admin access"""
    if not is_admin(current_user):
        raise AuthorizationError("Only administrators can perform this action")
    return current_user
