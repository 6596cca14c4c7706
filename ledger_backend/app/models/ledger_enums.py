"""
Ledger enumerations.
"""

import enum


class AccountType(str, enum.Enum):
    """Top-level account classification."""
    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"

    @property
    def normal_balance(self) -> "BalanceSide":
        if self in (AccountType.ASSET, AccountType.EXPENSE):
            return BalanceSide.DEBIT
        return BalanceSide.CREDIT


class BalanceSide(str, enum.Enum):
    """Side a balance is reported on."""
    DEBIT = "debit"
    CREDIT = "credit"


class JournalStatus(str, enum.Enum):
    """Journal entry lifecycle."""
    DRAFT = "DRAFT"  # Editable, never projected to the ledger
    POSTED = "POSTED"  # Terminal, projected to the ledger
