"""
Audit logging service for tracking changes to the books.

Provides centralized logging for compliance and investigation.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from ledger_backend.app.models.audit_log import AuditLog


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    # Chart of accounts
    ACCOUNT_CREATED = "ACCOUNT_CREATED"
    ACCOUNT_UPDATED = "ACCOUNT_UPDATED"
    ACCOUNT_DELETED = "ACCOUNT_DELETED"

    # Journal lifecycle
    JOURNAL_CREATED = "JOURNAL_CREATED"
    JOURNAL_UPDATED = "JOURNAL_UPDATED"
    JOURNAL_DELETED = "JOURNAL_DELETED"
    JOURNAL_POSTED = "JOURNAL_POSTED"
    JOURNAL_REVERSED = "JOURNAL_REVERSED"

    # Trade documents
    DOCUMENT_CREATED = "DOCUMENT_CREATED"
    DOCUMENT_UPDATED = "DOCUMENT_UPDATED"
    DOCUMENT_CANCELLED = "DOCUMENT_CANCELLED"
    DOCUMENT_PAID = "DOCUMENT_PAID"

    # Party sub-ledger
    PARTY_CREATED = "PARTY_CREATED"
    PARTY_UPDATED = "PARTY_UPDATED"
    PARTY_DELETED = "PARTY_DELETED"
    PARTY_TRANSACTION_RECORDED = "PARTY_TRANSACTION_RECORDED"
    PARTY_TRANSACTION_PAID = "PARTY_TRANSACTION_PAID"


async def log_event(
    db: AsyncSession,
    action: str,
    actor_id: Optional[int] = None,
    actor_username: Optional[str] = None,
    target_type: Optional[str] = None,
    target_id: Optional[Any] = None,
    metadata: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None
) -> AuditLog:
    """
    Log a ledger-changing event to the audit log.

    Called after the business transaction has committed, so a failed write
    never leaves an audit row behind.

    Args:
        db: Database session
        action: Action being performed (use AuditAction constants)
        actor_id: ID of user performing the action
        actor_username: Username of actor
        target_type: Kind of record acted upon (journal_entry, account, ...)
        target_id: Identifier of that record
        metadata: Additional context as JSON
        ip_address: IP address of the request

    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        actor_username=actor_username,
        action=action,
        target_type=target_type,
        target_id=str(target_id) if target_id is not None else None,
        meta_data=metadata,
        ip_address=ip_address
    )

    db.add(audit_log)
    await db.commit()
    await db.refresh(audit_log)

    return audit_log


async def log_user_action(
    db: AsyncSession,
    current_user: dict,
    action: str,
    target_type: str,
    target_id: Any,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Log an action performed by the authenticated user from a token payload.
    """
    return await log_event(
        db=db,
        action=action,
        actor_id=current_user.get("user_id"),
        actor_username=current_user.get("sub"),
        target_type=target_type,
        target_id=target_id,
        metadata=metadata
    )


async def get_audit_trail(
    db: AsyncSession,
    target_type: Optional[str] = None,
    target_id: Optional[Any] = None,
    action: Optional[str] = None,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve audit trail with optional filtering, most recent first.
    """
    query = select(AuditLog).order_by(desc(AuditLog.timestamp), desc(AuditLog.id))

    if target_type:
        query = query.where(AuditLog.target_type == target_type)

    if target_id is not None:
        query = query.where(AuditLog.target_id == str(target_id))

    if action:
        query = query.where(AuditLog.action == action)

    query = query.limit(limit)

    result = await db.execute(query)
    return result.scalars().all()
