"""
User roles enumeration.

Defines the role types carried in access tokens.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        ADMIN: Full access, including chart-of-accounts maintenance
        ACCOUNTANT: Records and posts journals and documents
        AUDITOR: Read-only access to ledgers and reports
    """
    ADMIN = "ADMIN"
    ACCOUNTANT = "ACCOUNTANT"
    AUDITOR = "AUDITOR"


WRITE_ROLES = [UserRole.ADMIN, UserRole.ACCOUNTANT]
READ_ROLES = [UserRole.ADMIN, UserRole.ACCOUNTANT, UserRole.AUDITOR]
