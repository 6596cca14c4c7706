"""
Financial report schemas.
"""

from pydantic import BaseModel
from datetime import date
from decimal import Decimal
from typing import Optional, List
from ledger_backend.app.models.ledger_enums import AccountType


class TrialBalanceLineResponse(BaseModel):
    account_code: str
    account_name: str
    account_type: AccountType
    debit_balance: Decimal
    credit_balance: Decimal

    class Config:
        from_attributes = True


class TrialBalanceResponse(BaseModel):
    as_of: Optional[date] = None
    accounts: List[TrialBalanceLineResponse]
    total_debits: Decimal
    total_credits: Decimal
    difference: Decimal
    is_balanced: bool

    class Config:
        from_attributes = True


class StatementItemResponse(BaseModel):
    account_code: Optional[str] = None
    account_name: str
    amount: Decimal
    previous_amount: Decimal
    percent_change: Optional[Decimal] = None

    class Config:
        from_attributes = True


class StatementSectionResponse(BaseModel):
    items: List[StatementItemResponse]
    total: Decimal
    previous_total: Decimal

    class Config:
        from_attributes = True


class BalanceSheetResponse(BaseModel):
    as_of: date
    compare_to: date
    current_assets: StatementSectionResponse
    fixed_assets: StatementSectionResponse
    current_liabilities: StatementSectionResponse
    long_term_liabilities: StatementSectionResponse
    equity: StatementSectionResponse
    total_assets: Decimal
    total_liabilities: Decimal
    total_equity: Decimal
    total_liabilities_and_equity: Decimal
    is_balanced: bool
    difference: Decimal
    working_capital: Decimal
    current_ratio: Optional[Decimal] = None
    debt_to_equity_ratio: Optional[Decimal] = None

    class Config:
        from_attributes = True


class ProfitAndLossResponse(BaseModel):
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    revenue: StatementSectionResponse
    cost_of_sales: StatementSectionResponse
    expenses: StatementSectionResponse
    gross_profit: Decimal
    net_income: Decimal

    class Config:
        from_attributes = True


class VatSummaryResponse(BaseModel):
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    purchases_taxable: Decimal
    purchase_returns_taxable: Decimal
    sales_taxable: Decimal
    sales_returns_taxable: Decimal
    input_vat: Decimal
    output_vat: Decimal
    net_vat_payable: Decimal
    ledger_input_vat: Decimal
    ledger_output_vat: Decimal
    is_reconciled: bool

    class Config:
        from_attributes = True
