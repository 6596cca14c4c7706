"""
Ledger Entry database model.

Derived projection of posted journal lines. Rows are only ever inserted;
the one column that moves afterwards is running_balance, shifted when an
earlier-dated line is posted.
"""

from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey, Numeric, Index
from sqlalchemy.sql import func
from ledger_backend.app.db.session import Base


class LedgerEntry(Base):
    """
    Ledger Entry model.

    One row per posted journal line. running_balance is the cumulative
    signed (debit - credit) sum for the account ordered by (entry_date, id).
    Rows are written only by the ledger projector; apart from running_balance
    they never change once inserted.
    """
    __tablename__ = "ledger_entries"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Linkage
    account_id = Column(Integer, ForeignKey('accounts.id'), nullable=False)
    account_code = Column(String(20), nullable=False, index=True)
    journal_entry_id = Column(Integer, ForeignKey('journal_entries.id'), nullable=False, index=True)
    journal_line_id = Column(Integer, ForeignKey('journal_lines.id'), unique=True, nullable=False)
    journal_number = Column(String(50), nullable=False)

    entry_date = Column(Date, nullable=False)
    description = Column(String(255), nullable=True)

    # Financials
    debit_amount = Column(Numeric(18, 2), default=0, nullable=False)
    credit_amount = Column(Numeric(18, 2), default=0, nullable=False)
    running_balance = Column(Numeric(18, 2), nullable=False)

    # Timestamps (Immutable - no updated_at)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index('ix_ledger_entries_account_order', 'account_id', 'entry_date', 'id'),
    )

    def __repr__(self):
        return f"<LedgerEntry(id={self.id}, account='{self.account_code}', balance={self.running_balance})>"
