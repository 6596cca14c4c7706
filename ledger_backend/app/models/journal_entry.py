"""
Journal entry database models.

A journal entry is the single unit of financial truth. Lines are immutable
once the parent is POSTED.
"""

from sqlalchemy import (
    Column, Integer, String, Date, DateTime, Enum, ForeignKey, Numeric, Text,
    CheckConstraint, UniqueConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ledger_backend.app.db.session import Base
from ledger_backend.app.models.ledger_enums import JournalStatus


class JournalEntry(Base):
    """
    Journal Entry model.

    Lifecycle: DRAFT -> POSTED (terminal). Only DRAFT entries may be edited or
    deleted; a posted entry is corrected by a reversing entry.
    """
    __tablename__ = "journal_entries"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    journal_number = Column(String(50), unique=True, nullable=False, index=True)
    entry_date = Column(Date, nullable=False, index=True)
    description = Column(Text, nullable=False)
    company_name = Column(String(255), nullable=True)  # Counterparty label

    # Source document (purchase, sale, return, settlement, reversal)
    reference_type = Column(String(50), nullable=True, index=True)
    reference_id = Column(String(50), nullable=True, index=True)
    reversal_of_id = Column(Integer, ForeignKey('journal_entries.id'), nullable=True, unique=True)

    total_debit = Column(Numeric(18, 2), nullable=False)
    total_credit = Column(Numeric(18, 2), nullable=False)

    status = Column(Enum(JournalStatus), default=JournalStatus.DRAFT, nullable=False, index=True)

    created_by = Column(String(100), nullable=False)
    posted_by = Column(String(100), nullable=True)
    posted_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    lines = relationship(
        "JournalLine",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="JournalLine.line_number",
    )

    def __repr__(self):
        return f"<JournalEntry(id={self.id}, number='{self.journal_number}', status='{self.status.value}')>"


class JournalLine(Base):
    """Journal line: exactly one of debit_amount / credit_amount is non-zero."""
    __tablename__ = "journal_lines"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    journal_entry_id = Column(Integer, ForeignKey('journal_entries.id', ondelete="CASCADE"), nullable=False, index=True)
    account_id = Column(Integer, ForeignKey('accounts.id'), nullable=False, index=True)
    account_code = Column(String(20), nullable=False)
    line_number = Column(Integer, nullable=False)
    description = Column(String(255), nullable=True)

    debit_amount = Column(Numeric(18, 2), default=0, nullable=False)
    credit_amount = Column(Numeric(18, 2), default=0, nullable=False)

    __table_args__ = (
        UniqueConstraint('journal_entry_id', 'line_number', name='uq_journal_line_number'),
        CheckConstraint('debit_amount >= 0 AND credit_amount >= 0', name='ck_journal_line_non_negative'),
        CheckConstraint(
            '(debit_amount > 0 AND credit_amount = 0) OR (debit_amount = 0 AND credit_amount > 0)',
            name='ck_journal_line_one_side'
        ),
    )

    def __repr__(self):
        return f"<JournalLine(entry={self.journal_entry_id}, account='{self.account_code}', dr={self.debit_amount}, cr={self.credit_amount})>"


class JournalSequence(Base):
    """
    Period-scoped journal numbering.

    One row per (prefix, period); last_number only ever grows.
    """
    __tablename__ = "journal_sequences"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    prefix = Column(String(10), nullable=False)
    period = Column(String(7), nullable=False)  # YYYY-MM, or YYYY for document numbers
    last_number = Column(Integer, default=0, nullable=False)
    padding_digits = Column(Integer, default=4, nullable=False)

    __table_args__ = (
        UniqueConstraint('prefix', 'period', name='uq_journal_sequence_scope'),
    )

    def __repr__(self):
        return f"<JournalSequence(prefix='{self.prefix}', period='{self.period}', last={self.last_number})>"
