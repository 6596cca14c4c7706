"""
Financial Report API Endpoints.

Out-of-balance results are returned with is_balanced = false, never as an
error, so that an integrity problem stays visible to the reader.
"""

from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from ledger_backend.app.db.session import get_db
from ledger_backend.app.core.exceptions import ValidationError
from ledger_backend.app.core.guards import require_reader
from ledger_backend.app.domain.reporting.reporting_service import ReportingService
from ledger_backend.app.schemas.report import (
    BalanceSheetResponse,
    ProfitAndLossResponse,
    TrialBalanceResponse,
    VatSummaryResponse,
)

router = APIRouter(prefix="/reports", tags=["Reports"])


def _check_window(from_date: Optional[date], to_date: Optional[date]) -> None:
    if from_date and to_date and from_date > to_date:
        raise ValidationError(
            "from_date must not be after to_date",
            error_code="ERR_VALIDATION_DATE_RANGE",
            details={"from_date": str(from_date), "to_date": str(to_date)}
        )


@router.get("/trial-balance", response_model=TrialBalanceResponse)
async def get_trial_balance(
    as_of: Optional[date] = Query(None, description="Inclusive; defaults to all postings"),
    include_zero_balances: bool = Query(False),
    current_user: dict = Depends(require_reader),
    db: AsyncSession = Depends(get_db)
):
    report = await ReportingService(db).trial_balance(as_of, include_zero_balances)
    return TrialBalanceResponse.model_validate(report)


@router.get("/balance-sheet", response_model=BalanceSheetResponse)
async def get_balance_sheet(
    as_of: Optional[date] = Query(None, description="Defaults to today"),
    compare_to: Optional[date] = Query(None, description="Defaults to one year before as_of"),
    current_user: dict = Depends(require_reader),
    db: AsyncSession = Depends(get_db)
):
    sheet = await ReportingService(db).balance_sheet(as_of or date.today(), compare_to)
    return BalanceSheetResponse.model_validate(sheet)


@router.get("/profit-and-loss", response_model=ProfitAndLossResponse)
async def get_profit_and_loss(
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    current_user: dict = Depends(require_reader),
    db: AsyncSession = Depends(get_db)
):
    _check_window(from_date, to_date)
    report = await ReportingService(db).profit_and_loss(from_date, to_date)
    return ProfitAndLossResponse.model_validate(report)


@router.get("/vat-summary", response_model=VatSummaryResponse)
async def get_vat_summary(
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    current_user: dict = Depends(require_reader),
    db: AsyncSession = Depends(get_db)
):
    _check_window(from_date, to_date)
    summary = await ReportingService(db).vat_summary(from_date, to_date)
    return VatSummaryResponse.model_validate(summary)
