"""
Ledger projection schemas.
"""

from pydantic import BaseModel
from datetime import date
from decimal import Decimal
from typing import Optional, List, Dict
from ledger_backend.app.models.ledger_enums import BalanceSide


class LedgerLineResponse(BaseModel):
    id: int
    entry_date: date
    journal_entry_id: int
    journal_number: str
    description: Optional[str] = None
    debit_amount: Decimal
    credit_amount: Decimal
    balance: Decimal
    running_balance: Decimal

    class Config:
        from_attributes = True


class AccountLedgerResponse(BaseModel):
    """Replayed ledger of one account. Balances are signed, debit positive."""
    account_code: str
    account_name: str
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    opening_balance: Decimal
    closing_balance: Decimal
    total_debit: Decimal
    total_credit: Decimal
    entries: List[LedgerLineResponse]

    class Config:
        from_attributes = True


class AccountBalanceResponse(BaseModel):
    account_code: str
    as_of: Optional[date] = None
    amount: Decimal
    side: BalanceSide
    total_debit: Decimal
    total_credit: Decimal

    class Config:
        from_attributes = True


class LedgerVerificationResponse(BaseModel):
    account_code: str
    is_consistent: bool
    replayed_balance: Decimal
    cached_balance: Decimal
    entry_count: int
    mismatches: List[Dict[str, str]]

    class Config:
        from_attributes = True
