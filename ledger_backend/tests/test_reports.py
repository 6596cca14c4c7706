"""
Financial statements built from the ledger.
"""

from datetime import date
from decimal import Decimal

from ledger_backend.app.domain.documents.transaction_generator import TransactionGenerator
from ledger_backend.app.domain.ledger.journal_engine import JournalEngine
from ledger_backend.app.domain.ledger.money import percent_change
from ledger_backend.app.domain.reporting.reporting_service import ReportingService, one_year_earlier
from ledger_backend.app.models.document_enums import DocumentType
from ledger_backend.tests.helpers import document_draft, entry_draft, post_entry


async def seed_year(db):
    """Capital, a loan, some equipment, a sale for cash, rent and cost of sales."""
    await post_entry(db, date(2024, 1, 2), ("1010", "50000", "0"), ("3000", "0", "50000"), description="Capital")
    await post_entry(db, date(2024, 1, 5), ("1010", "20000", "0"), ("2500", "0", "20000"), description="Loan")
    await post_entry(db, date(2024, 2, 1), ("1500", "15000", "0"), ("1010", "0", "15000"), description="Equipment")
    await post_entry(db, date(2024, 3, 1), ("1000", "8000", "0"), ("4000", "0", "8000"), description="Cash sale")
    await post_entry(db, date(2024, 3, 1), ("5000", "3000", "0"), ("1200", "0", "3000"), description="COGS")
    await post_entry(db, date(2024, 3, 31), ("6000", "1200", "0"), ("1000", "0", "1200"), description="Rent")


async def test_trial_balance_balances(db_session, chart):
    await seed_year(db_session)

    report = await ReportingService(db_session).trial_balance()

    assert report.is_balanced
    assert report.total_debits == Decimal("81000.00")
    lines = {line.account_code: line for line in report.accounts}
    assert lines["1010"].debit_balance == Decimal("55000.00")
    assert lines["1200"].credit_balance == Decimal("3000.00")
    assert "1100" not in lines


async def test_trial_balance_ignores_drafts(db_session, chart):
    await post_entry(db_session, date(2024, 1, 2), ("1000", "100", "0"), ("3000", "0", "100"))
    await JournalEngine(db_session).create(
        entry_draft(date(2024, 1, 3), ("6000", "999", "0"), ("1000", "0", "999")), "tester"
    )
    await db_session.commit()

    report = await ReportingService(db_session).trial_balance()

    assert report.total_debits == Decimal("100.00")
    assert [line.account_code for line in report.accounts] == ["1000", "3000"]


async def test_trial_balance_can_list_every_account(db_session, chart):
    report = await ReportingService(db_session).trial_balance(include_zero_balances=True)
    assert len(report.accounts) == 14
    assert report.is_balanced


async def test_trial_balance_as_of(db_session, chart):
    await seed_year(db_session)

    report = await ReportingService(db_session).trial_balance(as_of=date(2024, 1, 31))

    assert {line.account_code for line in report.accounts} == {"1010", "2500", "3000"}
    assert report.total_credits == Decimal("70000.00")


async def test_balance_sheet_carries_current_earnings(db_session, chart):
    await seed_year(db_session)

    sheet = await ReportingService(db_session).balance_sheet(as_of=date(2024, 12, 31))

    assert sheet.compare_to == date(2023, 12, 31)
    assert sheet.is_balanced
    assert sheet.fixed_assets.total == Decimal("15000.00")
    assert sheet.long_term_liabilities.total == Decimal("20000.00")

    earnings = [item for item in sheet.equity.items if item.account_code is None]
    assert earnings[0].amount == Decimal("3800.00")
    assert sheet.total_equity == Decimal("53800.00")
    assert sheet.total_assets == Decimal("73800.00")


async def test_balance_sheet_comparison_column(db_session, chart):
    await seed_year(db_session)

    sheet = await ReportingService(db_session).balance_sheet(as_of=date(2024, 3, 31), compare_to=date(2024, 1, 31))

    bank = next(item for item in sheet.current_assets.items if item.account_code == "1010")
    assert bank.amount == Decimal("55000.00")
    assert bank.previous_amount == Decimal("70000.00")
    assert bank.percent_change == Decimal("-21.43")

    equipment = next(item for item in sheet.fixed_assets.items if item.account_code == "1500")
    assert equipment.percent_change is None


def test_percent_change_without_previous():
    assert percent_change(Decimal("10"), Decimal("0")) is None
    assert percent_change(Decimal("150"), Decimal("100")) == Decimal("50.00")
    assert percent_change(Decimal("-50"), Decimal("-100")) == Decimal("50.00")


def test_one_year_earlier_leap_day():
    assert one_year_earlier(date(2024, 2, 29)) == date(2023, 2, 28)


async def test_profit_and_loss_window(db_session, chart):
    await seed_year(db_session)

    report = await ReportingService(db_session).profit_and_loss(date(2024, 3, 1), date(2024, 3, 31))

    assert report.revenue.total == Decimal("8000.00")
    assert report.cost_of_sales.total == Decimal("3000.00")
    assert report.gross_profit == Decimal("5000.00")
    assert report.expenses.total == Decimal("1200.00")
    assert report.net_income == Decimal("3800.00")

    february = await ReportingService(db_session).profit_and_loss(date(2024, 2, 1), date(2024, 2, 29))
    assert february.net_income == Decimal("0.00")


async def test_vat_summary_reconciles_with_ledger(db_session, customer, supplier):
    generator = TransactionGenerator(db_session)
    await generator.create_document(DocumentType.PURCHASE, document_draft(supplier.id, date(2024, 5, 2)), "tester")
    sale = await generator.create_document(
        DocumentType.SALE, document_draft(customer.id, date(2024, 5, 3), unit_price="80000"), "tester"
    )
    await generator.create_document(
        DocumentType.SALES_RETURN,
        document_draft(customer.id, date(2024, 5, 4), unit_price="10000", original_document_id=sale.id),
        "tester",
    )
    cancelled = await generator.create_document(
        DocumentType.SALE, document_draft(customer.id, date(2024, 5, 5), unit_price="1000"), "tester"
    )
    await generator.cancel_document(cancelled.id, DocumentType.SALE, "tester")
    await db_session.commit()

    summary = await ReportingService(db_session).vat_summary(date(2024, 5, 1), date(2024, 5, 31))

    assert summary.input_vat == Decimal("7150.00")
    assert summary.output_vat == Decimal("9100.00")
    assert summary.net_vat_payable == Decimal("1950.00")
    assert summary.sales_returns_taxable == Decimal("10000.00")
    assert summary.is_reconciled
