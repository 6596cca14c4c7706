"""
Role guards for the ledger API.

    ADMIN       everything, including chart-of-accounts maintenance
    ACCOUNTANT  journals, documents, parties
    AUDITOR     read-only

Tokens carry the role as a string claim; anything that does not parse to a
known role is refused with 403.
"""

import logging
from typing import Iterable, Optional
from fastapi import Depends, HTTPException, status
from ledger_backend.app.models.enums import UserRole, WRITE_ROLES, READ_ROLES
from ledger_backend.app.core.dependencies import get_current_user

logger = logging.getLogger(__name__)


def token_role(current_user: dict) -> Optional[UserRole]:
    try:
        return UserRole(current_user.get("role"))
    except ValueError:
        return None


def require_role(allowed_roles: Iterable[UserRole]):
    """
    Build a dependency that admits only the given roles.

    Usage:
        require_admin = require_role([UserRole.ADMIN])

        @router.delete("/accounts/{code}")
        async def delete_account(code: str, current_user: dict = Depends(require_admin)):
            ...
    """
    allowed = frozenset(allowed_roles)
    required = ", ".join(sorted(role.value for role in allowed))

    async def role_checker(current_user: dict = Depends(get_current_user)) -> dict:
        role = token_role(current_user)
        if role is None:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Token carries no valid role"
            )

        if role not in allowed:
            logger.warning("Denied %s (%s); requires %s", current_user.get("sub"), role.value, required)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {required}"
            )

        return current_user

    return role_checker


require_writer = require_role(WRITE_ROLES)
require_reader = require_role(READ_ROLES)
require_admin = require_role([UserRole.ADMIN])
