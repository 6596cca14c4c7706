"""
Chart of accounts maintenance.
"""

from datetime import date

import pytest

from ledger_backend.app.core.exceptions import (
    DuplicateResourceError,
    NotFoundError,
    ResourceInUseError,
    ValidationError,
)
from ledger_backend.app.models.ledger_enums import AccountType, BalanceSide
from ledger_backend.app.services.chart_of_accounts import DEFAULT_CHART, ChartOfAccountsService
from ledger_backend.tests.helpers import post_entry


async def test_seed_is_idempotent(db_session):
    service = ChartOfAccountsService(db_session)

    assert await service.seed_default_chart() == len(DEFAULT_CHART)
    assert await service.seed_default_chart() == 0

    cash = await service.get_account("1000")
    assert cash.account_type == AccountType.ASSET
    assert cash.account_type.normal_balance == BalanceSide.DEBIT
    assert (await service.get_account("2100")).account_type.normal_balance == BalanceSide.CREDIT


async def test_duplicate_code_rejected(db_session, chart):
    with pytest.raises(DuplicateResourceError):
        await ChartOfAccountsService(db_session).create_account("1000", "Petty Cash", AccountType.ASSET)


async def test_list_filters(db_session, chart):
    service = ChartOfAccountsService(db_session)
    await service.update_account("1500", is_active=False)

    expenses = await service.list_accounts(account_type=AccountType.EXPENSE)
    assert [a.code for a in expenses] == ["5000", "6000"]

    found = await service.list_accounts(search="vat")
    assert [a.code for a in found] == ["1300", "2100"]

    chart = await service.chart()
    assert "1500" not in [a.code for a in chart]


async def test_referenced_account_keeps_type_and_cannot_be_deleted(db_session, chart):
    service = ChartOfAccountsService(db_session)
    await post_entry(db_session, date(2024, 1, 1), ("6000", "10", "0"), ("1000", "0", "10"))

    with pytest.raises(ValidationError) as exc:
        await service.update_account("6000", account_type=AccountType.ASSET)
    assert exc.value.error_code == "ERR_VALIDATION_ACCOUNT_TYPE"

    with pytest.raises(ResourceInUseError):
        await service.delete_account("6000")

    renamed = await service.update_account("6000", name="General Expenses")
    assert renamed.name == "General Expenses"


async def test_unused_account_can_be_deleted(db_session, chart):
    service = ChartOfAccountsService(db_session)
    await service.create_account("6100", "Travel", AccountType.EXPENSE, "operating_expense")
    await db_session.commit()

    await service.delete_account("6100")
    await db_session.commit()

    with pytest.raises(NotFoundError):
        await service.get_account("6100")
