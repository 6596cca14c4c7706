"""
Ledger API Endpoints.

Read-only views over the per-account projection of posted journal lines.
"""

from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from ledger_backend.app.db.session import get_db
from ledger_backend.app.core.guards import require_reader
from ledger_backend.app.domain.ledger.ledger_projector import LedgerProjector
from ledger_backend.app.schemas.ledger import (
    AccountBalanceResponse,
    AccountLedgerResponse,
    LedgerVerificationResponse,
)

router = APIRouter(prefix="/ledger", tags=["Ledger"])


@router.get("/{account_code}", response_model=AccountLedgerResponse)
async def get_account_ledger(
    account_code: str,
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    current_user: dict = Depends(require_reader),
    db: AsyncSession = Depends(get_db)
):
    """
    Account ledger in (entry date, posting order).

    `balance` is replayed from the opening balance; `running_balance` is the
    value stored when the line was posted. They agree unless the ledger has
    drifted.
    """
    ledger = await LedgerProjector(db).get_account_ledger(account_code, from_date, to_date)
    return AccountLedgerResponse.model_validate(ledger)


@router.get("/{account_code}/balance", response_model=AccountBalanceResponse)
async def get_account_balance(
    account_code: str,
    as_of: Optional[date] = Query(None, description="Inclusive; defaults to all postings"),
    current_user: dict = Depends(require_reader),
    db: AsyncSession = Depends(get_db)
):
    balance = await LedgerProjector(db).get_account_balance(account_code, as_of)
    return AccountBalanceResponse.model_validate(balance)


@router.get("/{account_code}/verify", response_model=LedgerVerificationResponse)
async def verify_account_ledger(
    account_code: str,
    current_user: dict = Depends(require_reader),
    db: AsyncSession = Depends(get_db)
):
    verification = await LedgerProjector(db).verify_account(account_code)
    return LedgerVerificationResponse.model_validate(verification)
