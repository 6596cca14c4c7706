"""
Party sub-ledger database models.

Debtor/creditor balances per external party, kept independently of the
chart of accounts.
"""

from sqlalchemy import (
    Column, Integer, String, Boolean, Date, DateTime, Enum, ForeignKey, Numeric, Text,
    UniqueConstraint
)
from sqlalchemy.sql import func
from ledger_backend.app.db.session import Base
from ledger_backend.app.models.ledger_enums import BalanceSide
from ledger_backend.app.models.party_enums import PartyType, PartyReferenceType, PartyTransactionStatus


class Party(Base):
    """
    Party model.

    current_balance is a cache, signed debit-positive:
    opening balance (signed) + sum(debit - credit) over the transaction stream.
    """
    __tablename__ = "parties"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    party_name = Column(String(255), nullable=False, index=True)
    party_type = Column(Enum(PartyType), nullable=False, index=True)

    # Contact
    contact_number = Column(String(20), nullable=True)
    email = Column(String(255), nullable=True)
    address = Column(Text, nullable=True)
    pan_number = Column(String(9), nullable=True)

    # Balances
    opening_balance = Column(Numeric(18, 2), default=0, nullable=False)
    opening_balance_type = Column(Enum(BalanceSide), default=BalanceSide.DEBIT, nullable=False)
    current_balance = Column(Numeric(18, 2), default=0, nullable=False)
    credit_limit = Column(Numeric(18, 2), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    version = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint('party_name', 'party_type', name='uq_party_name_type'),
    )
    __mapper_args__ = {"version_id_col": version}

    @property
    def signed_opening_balance(self):
        if self.opening_balance_type == BalanceSide.CREDIT:
            return -self.opening_balance
        return self.opening_balance

    def __repr__(self):
        return f"<Party(id={self.id}, name='{self.party_name}', type='{self.party_type.value}', balance={self.current_balance})>"


class PartyTransaction(Base):
    """
    Party Transaction model.

    Append-only. Amount columns never change; corrections are new
    adjustment rows. Only the settlement stamps move when marked paid.
    """
    __tablename__ = "party_transactions"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    party_id = Column(Integer, ForeignKey('parties.id'), nullable=False, index=True)
    transaction_date = Column(Date, nullable=False, index=True)
    description = Column(String(255), nullable=False)

    reference_type = Column(Enum(PartyReferenceType), nullable=False)
    reference_id = Column(String(50), nullable=True)
    journal_entry_id = Column(Integer, ForeignKey('journal_entries.id'), nullable=True)

    debit_amount = Column(Numeric(18, 2), default=0, nullable=False)
    credit_amount = Column(Numeric(18, 2), default=0, nullable=False)
    balance = Column(Numeric(18, 2), nullable=False)  # Party balance after this row

    # Settlement
    status = Column(Enum(PartyTransactionStatus), default=PartyTransactionStatus.PENDING, nullable=False, index=True)
    payment_date = Column(Date, nullable=True)
    payment_method = Column(String(50), nullable=True)
    payment_reference = Column(String(100), nullable=True)
    settled_by_id = Column(Integer, ForeignKey('party_transactions.id'), nullable=True)

    created_by = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    @property
    def net_amount(self):
        return self.debit_amount - self.credit_amount

    def __repr__(self):
        return f"<PartyTransaction(id={self.id}, party={self.party_id}, dr={self.debit_amount}, cr={self.credit_amount}, status='{self.status.value}')>"
