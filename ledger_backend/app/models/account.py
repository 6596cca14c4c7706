"""
Account database models.

Chart-of-accounts registry plus the per-account balance cache maintained
by the ledger projector.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, ForeignKey, Numeric, Text
from sqlalchemy.sql import func
from ledger_backend.app.db.session import Base
from ledger_backend.app.models.ledger_enums import AccountType


class Account(Base):
    """
    Account model.

    The code is the stable identifier used by journal lines and reports and
    never changes after creation. Accounts referenced by any journal line are
    deactivated, never deleted.
    """
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    code = Column(String(20), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    account_type = Column(Enum(AccountType), nullable=False, index=True)
    sub_type = Column(String(50), nullable=True)  # current_asset, fixed_asset, current_liability, ...
    description = Column(Text, nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    @property
    def normal_balance(self):
        return self.account_type.normal_balance

    def __repr__(self):
        return f"<Account(code='{self.code}', name='{self.name}', type='{self.account_type.value}')>"


class AccountBalance(Base):
    """
    Account balance cache.

    One row per account. Written only by the ledger projector while posting,
    under a row lock and an optimistic version check; the ledger entries stay
    the source of truth.
    """
    __tablename__ = "account_balances"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    account_id = Column(Integer, ForeignKey('accounts.id'), unique=True, nullable=False)

    total_debit = Column(Numeric(18, 2), default=0, nullable=False)
    total_credit = Column(Numeric(18, 2), default=0, nullable=False)
    balance = Column(Numeric(18, 2), default=0, nullable=False)  # Signed, debit positive
    entry_count = Column(Integer, default=0, nullable=False)

    version = Column(Integer, nullable=False)
    last_posted_at = Column(DateTime(timezone=True), nullable=True)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<AccountBalance(account_id={self.account_id}, balance={self.balance}, version={self.version})>"
