"""
JWT token utilities for authentication.

Tokens are issued elsewhere; this service only verifies them. `create_access_token`
exists for tests and operator tooling.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from ledger_backend.app.core.config import settings
from ledger_backend.app.models.enums import UserRole


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: Data payload to encode in the token (should include: sub, role)
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string

    Example payload:
        {
            "sub": "accountant1",
            "user_id": 7,
            "role": "ACCOUNTANT",
            "exp": 1234567890
        }
    """
    to_encode = data.copy()

    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def create_actor_token(username: str, role: UserRole, user_id: Optional[int] = None) -> str:
    return create_access_token({"sub": username, "user_id": user_id, "role": role.value})


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode and validate a JWT access token.

    Returns:
        Decoded token payload if valid (includes: sub, role, exp), None otherwise
    """
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
