"""
Audit Log Database Model.

Tracks who changed the books: account maintenance, journal lifecycle,
document workflow and settlements.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from ledger_backend.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model for tracking ledger-changing actions.

    Events logged:
    - ACCOUNT_CREATED / ACCOUNT_UPDATED / ACCOUNT_DEACTIVATED / ACCOUNT_DELETED
    - JOURNAL_CREATED / JOURNAL_UPDATED / JOURNAL_DELETED / JOURNAL_POSTED / JOURNAL_REVERSED
    - DOCUMENT_CREATED / DOCUMENT_UPDATED / DOCUMENT_CANCELLED / DOCUMENT_PAID
    - PARTY_CREATED / PARTY_TRANSACTION_RECORDED / PARTY_TRANSACTION_PAID
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for system actions)
    actor_id = Column(Integer, index=True, nullable=True)
    actor_username = Column(String(100), nullable=True)

    # What action was performed
    action = Column(String(100), nullable=False, index=True)

    # What it was performed on
    target_type = Column(String(50), nullable=True, index=True)
    target_id = Column(String(50), nullable=True, index=True)

    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    ip_address = Column(String(50), nullable=True)

    # Timestamp
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_username}, target={self.target_type}:{self.target_id})>"
