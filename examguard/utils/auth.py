"""
JWT Authentication Utilities
"""
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..config import settings

security = HTTPBearer(auto_error=False)


def decode_access_token(token: str) -> dict:
    """
    Decode and validate an access token.

    Raises:
        HTTPException(401): expired, malformed or wrong token type
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired")
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=f"Invalid token: {str(e)}")

    if payload.get("type") != "access":
        raise HTTPException(status_code=401, detail="Invalid token type")

    user_id = payload.get("user_id")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token payload")

    return {
        **payload,
        "user_id": str(user_id),
        "role": payload.get("role"),
    }


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security)
) -> dict:
    """
    Get current user from JWT token.
    Returns a dict with user_id, role and the rest of the token payload.
    """
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return decode_access_token(credentials.credentials)


def is_admin(user: dict) -> bool:
    return user.get("role") == "admin"


async def require_admin(user: dict = Depends(get_current_user)) -> dict:
    """Dependency for admin-only endpoints"""
    if not is_admin(user):
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
