"""
Bearer-token authentication.

`get_current_user` is the single entry point every protected route goes
through, either directly or via the role guards in `guards.py`.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from ledger_backend.app.core.jwt import decode_access_token

# Rejects requests without an Authorization header before decoding
security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> dict:
    """
    Decode the bearer token and return its claims.

    The `sub` claim names the actor; journal and document rows record it as
    `created_by` / `posted_by`. Any decoding failure or a token without a
    subject is a 401.
    """
    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return payload
