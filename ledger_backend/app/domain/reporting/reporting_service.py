"""
Reporting Service (Domain Logic).

Read-only financial statements derived from the ledger projection. Each
report reads its balances with one grouped query, so whatever postings it
includes are internally balanced. An unbalanced result is returned as
data (is_balanced = False) and logged; it is never raised.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_backend.app.core.config import settings
from ledger_backend.app.domain.ledger.ledger_projector import LedgerProjector
from ledger_backend.app.domain.ledger.money import TWOPLACES, ZERO, money, percent_change
from ledger_backend.app.models.account import Account
from ledger_backend.app.models.document_enums import DocumentStatus, DocumentType
from ledger_backend.app.models.ledger_enums import AccountType, BalanceSide
from ledger_backend.app.models.trade_document import TradeDocument

logger = logging.getLogger(__name__)

FIXED_ASSET_SUBTYPES = {"fixed_asset", "non_current_asset", "long_term_investment", "intangible_asset"}
LONG_TERM_LIABILITY_SUBTYPES = {"long_term_liability", "non_current_liability"}
COST_OF_SALES_SUBTYPES = {"cost_of_sales", "cost_of_goods_sold"}


# Trial balance

@dataclass
class TrialBalanceLine:
    account_code: str
    account_name: str
    account_type: AccountType
    debit_balance: Decimal
    credit_balance: Decimal


@dataclass
class TrialBalance:
    as_of: Optional[date]
    accounts: List[TrialBalanceLine] = field(default_factory=list)
    total_debits: Decimal = ZERO
    total_credits: Decimal = ZERO

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits

    @property
    def difference(self) -> Decimal:
        return self.total_debits - self.total_credits


# Balance sheet

@dataclass
class StatementItem:
    account_code: Optional[str]
    account_name: str
    amount: Decimal
    previous_amount: Decimal = ZERO

    @property
    def percent_change(self) -> Optional[Decimal]:
        return percent_change(self.amount, self.previous_amount)


@dataclass
class StatementSection:
    items: List[StatementItem] = field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return sum((item.amount for item in self.items), ZERO)

    @property
    def previous_total(self) -> Decimal:
        return sum((item.previous_amount for item in self.items), ZERO)


@dataclass
class BalanceSheet:
    as_of: date
    compare_to: date
    current_assets: StatementSection = field(default_factory=StatementSection)
    fixed_assets: StatementSection = field(default_factory=StatementSection)
    current_liabilities: StatementSection = field(default_factory=StatementSection)
    long_term_liabilities: StatementSection = field(default_factory=StatementSection)
    equity: StatementSection = field(default_factory=StatementSection)

    @property
    def total_assets(self) -> Decimal:
        return self.current_assets.total + self.fixed_assets.total

    @property
    def total_liabilities(self) -> Decimal:
        return self.current_liabilities.total + self.long_term_liabilities.total

    @property
    def total_equity(self) -> Decimal:
        return self.equity.total

    @property
    def total_liabilities_and_equity(self) -> Decimal:
        return self.total_liabilities + self.total_equity

    @property
    def is_balanced(self) -> bool:
        return self.total_assets == self.total_liabilities_and_equity

    @property
    def difference(self) -> Decimal:
        return self.total_assets - self.total_liabilities_and_equity

    @property
    def working_capital(self) -> Decimal:
        return self.current_assets.total - self.current_liabilities.total

    @property
    def current_ratio(self) -> Optional[Decimal]:
        return _ratio(self.current_assets.total, self.current_liabilities.total)

    @property
    def debt_to_equity_ratio(self) -> Optional[Decimal]:
        return _ratio(self.total_liabilities, self.total_equity)


# Profit and loss

@dataclass
class ProfitAndLoss:
    from_date: Optional[date]
    to_date: Optional[date]
    revenue: StatementSection = field(default_factory=StatementSection)
    cost_of_sales: StatementSection = field(default_factory=StatementSection)
    expenses: StatementSection = field(default_factory=StatementSection)

    @property
    def gross_profit(self) -> Decimal:
        return self.revenue.total - self.cost_of_sales.total

    @property
    def net_income(self) -> Decimal:
        return self.gross_profit - self.expenses.total


# VAT

@dataclass
class VatSummary:
    from_date: Optional[date]
    to_date: Optional[date]
    purchases_taxable: Decimal = ZERO
    purchase_returns_taxable: Decimal = ZERO
    sales_taxable: Decimal = ZERO
    sales_returns_taxable: Decimal = ZERO
    input_vat: Decimal = ZERO
    output_vat: Decimal = ZERO
    ledger_input_vat: Decimal = ZERO
    ledger_output_vat: Decimal = ZERO

    @property
    def net_vat_payable(self) -> Decimal:
        return self.output_vat - self.input_vat

    @property
    def is_reconciled(self) -> bool:
        return self.input_vat == self.ledger_input_vat and self.output_vat == self.ledger_output_vat


def _ratio(numerator: Decimal, denominator: Decimal) -> Optional[Decimal]:
    if denominator == ZERO:
        return None
    return (numerator / denominator).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def one_year_earlier(as_of: date) -> date:
    try:
        return as_of.replace(year=as_of.year - 1)
    except ValueError:
        # 29 February
        return as_of.replace(year=as_of.year - 1, day=28)


class ReportingService:
    """Trial balance, balance sheet, profit and loss and VAT summary."""

    def __init__(self, db: AsyncSession, projector: Optional[LedgerProjector] = None):
        self.db = db
        self.projector = projector or LedgerProjector(db)

    async def _accounts(self) -> List[Account]:
        result = await self.db.execute(select(Account).order_by(Account.code))
        return result.scalars().all()

    async def trial_balance(self, as_of: Optional[date] = None, include_zero_balances: bool = False) -> TrialBalance:
        """
        Every account's balance at as_of on its natural side.

        Accounts without postings are omitted unless include_zero_balances.
        """
        accounts = await self._accounts()
        totals = await self.projector.balances_as_of(as_of)

        report = TrialBalance(as_of=as_of)
        for account in accounts:
            if account.id not in totals and not include_zero_balances:
                continue
            debit, credit = totals.get(account.id, (ZERO, ZERO))
            net = debit - credit
            line = TrialBalanceLine(
                account_code=account.code,
                account_name=account.name,
                account_type=account.account_type,
                debit_balance=net if net > ZERO else ZERO,
                credit_balance=-net if net < ZERO else ZERO,
            )
            report.accounts.append(line)
            report.total_debits += line.debit_balance
            report.total_credits += line.credit_balance

        if not report.is_balanced:
            logger.warning(
                "Trial balance as of %s is out of balance: debits=%s credits=%s",
                as_of, report.total_debits, report.total_credits
            )
        return report

    @staticmethod
    def _natural_amount(account: Account, totals: Dict[int, Tuple[Decimal, Decimal]]) -> Decimal:
        debit, credit = totals.get(account.id, (ZERO, ZERO))
        if account.account_type.normal_balance == BalanceSide.DEBIT:
            return debit - credit
        return credit - debit

    async def balance_sheet(self, as_of: date, compare_to: Optional[date] = None) -> BalanceSheet:
        """
        Classified assets, liabilities and equity with a prior-period column.

        Revenue and expense activity to date is carried into equity as
        current earnings, so the sheet balances without closing entries.
        """
        compare_to = compare_to or one_year_earlier(as_of)
        accounts = await self._accounts()
        current = await self.projector.balances_as_of(as_of)
        previous = await self.projector.balances_as_of(compare_to)

        sheet = BalanceSheet(as_of=as_of, compare_to=compare_to)
        earnings = ZERO
        previous_earnings = ZERO

        for account in accounts:
            if account.id not in current and account.id not in previous:
                continue
            amount = self._natural_amount(account, current)
            previous_amount = self._natural_amount(account, previous)
            sub_type = (account.sub_type or "").lower()

            if account.account_type in (AccountType.REVENUE, AccountType.EXPENSE):
                sign = 1 if account.account_type == AccountType.REVENUE else -1
                earnings += sign * amount
                previous_earnings += sign * previous_amount
                continue

            item = StatementItem(
                account_code=account.code,
                account_name=account.name,
                amount=amount,
                previous_amount=previous_amount,
            )
            if account.account_type == AccountType.ASSET:
                section = sheet.fixed_assets if sub_type in FIXED_ASSET_SUBTYPES else sheet.current_assets
            elif account.account_type == AccountType.LIABILITY:
                section = sheet.long_term_liabilities if sub_type in LONG_TERM_LIABILITY_SUBTYPES \
                    else sheet.current_liabilities
            else:
                section = sheet.equity
            section.items.append(item)

        if earnings != ZERO or previous_earnings != ZERO:
            sheet.equity.items.append(StatementItem(
                account_code=None,
                account_name="Current Earnings",
                amount=earnings,
                previous_amount=previous_earnings,
            ))

        if not sheet.is_balanced:
            logger.warning(
                "Balance sheet as of %s is out of balance: assets=%s liabilities+equity=%s",
                as_of, sheet.total_assets, sheet.total_liabilities_and_equity
            )
        return sheet

    async def profit_and_loss(self, from_date: Optional[date] = None, to_date: Optional[date] = None) -> ProfitAndLoss:
        accounts = await self._accounts()
        totals = await self.projector.balances_as_of(to_date, from_date=from_date)

        # Prior-period column: same length window immediately before from_date
        previous: Dict[int, Tuple[Decimal, Decimal]] = {}
        if from_date and to_date:
            span = (to_date - from_date).days + 1
            previous = await self.projector.balances_as_of(
                from_date - timedelta(days=1), from_date=from_date - timedelta(days=span)
            )

        report = ProfitAndLoss(from_date=from_date, to_date=to_date)
        for account in accounts:
            if account.account_type not in (AccountType.REVENUE, AccountType.EXPENSE):
                continue
            if account.id not in totals and account.id not in previous:
                continue
            item = StatementItem(
                account_code=account.code,
                account_name=account.name,
                amount=self._natural_amount(account, totals),
                previous_amount=self._natural_amount(account, previous),
            )
            if account.account_type == AccountType.REVENUE:
                report.revenue.items.append(item)
            elif (account.sub_type or "").lower() in COST_OF_SALES_SUBTYPES:
                report.cost_of_sales.items.append(item)
            else:
                report.expenses.items.append(item)
        return report

    async def vat_summary(self, from_date: Optional[date] = None, to_date: Optional[date] = None) -> VatSummary:
        """
        VAT from trade documents in the window, net of returns, next to the
        movement on the VAT ledger accounts over the same window.
        """
        query = select(
            TradeDocument.document_type,
            func.coalesce(func.sum(TradeDocument.taxable_amount), 0),
            func.coalesce(func.sum(TradeDocument.vat_amount), 0),
        ).where(TradeDocument.status != DocumentStatus.CANCELLED).group_by(TradeDocument.document_type)
        if from_date:
            query = query.where(TradeDocument.document_date >= from_date)
        if to_date:
            query = query.where(TradeDocument.document_date <= to_date)

        by_type = {
            document_type: (money(taxable), money(vat))
            for document_type, taxable, vat in (await self.db.execute(query)).all()
        }
        empty = (ZERO, ZERO)
        purchases = by_type.get(DocumentType.PURCHASE, empty)
        purchase_returns = by_type.get(DocumentType.PURCHASE_RETURN, empty)
        sales = by_type.get(DocumentType.SALE, empty)
        sales_returns = by_type.get(DocumentType.SALES_RETURN, empty)

        summary = VatSummary(
            from_date=from_date,
            to_date=to_date,
            purchases_taxable=purchases[0],
            purchase_returns_taxable=purchase_returns[0],
            sales_taxable=sales[0],
            sales_returns_taxable=sales_returns[0],
            input_vat=purchases[1] - purchase_returns[1],
            output_vat=sales[1] - sales_returns[1],
        )

        codes = (settings.vat_input_account_code, settings.vat_output_account_code)
        result = await self.db.execute(select(Account).where(Account.code.in_(codes)))
        vat_accounts = {account.code: account for account in result.scalars().all()}
        movement = await self.projector.balances_as_of(to_date, from_date=from_date)

        if settings.vat_input_account_code in vat_accounts:
            debit, credit = movement.get(vat_accounts[settings.vat_input_account_code].id, empty)
            summary.ledger_input_vat = debit - credit
        if settings.vat_output_account_code in vat_accounts:
            debit, credit = movement.get(vat_accounts[settings.vat_output_account_code].id, empty)
            summary.ledger_output_vat = credit - debit

        if not summary.is_reconciled:
            logger.warning(
                "VAT documents and ledger disagree for %s..%s: input %s/%s output %s/%s",
                from_date, to_date, summary.input_vat, summary.ledger_input_vat,
                summary.output_vat, summary.ledger_output_vat
            )
        return summary
