"""
Ledger projection: running balances, replay equivalence and balance queries.
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from ledger_backend.app.core.exceptions import NotFoundError
from ledger_backend.app.domain.ledger.ledger_projector import LedgerProjector
from ledger_backend.app.models.account import Account, AccountBalance
from ledger_backend.app.models.ledger_enums import BalanceSide
from ledger_backend.tests.helpers import post_entry


async def cached_balance(db, code):
    account = (await db.execute(select(Account).where(Account.code == code))).scalar_one()
    cache = (await db.execute(
        select(AccountBalance).where(AccountBalance.account_id == account.id)
        .execution_options(populate_existing=True)
    )).scalar_one()
    return cache


async def test_running_balance_accumulates(db_session, chart):
    await post_entry(db_session, date(2024, 1, 1), ("1000", "1000", "0"), ("3000", "0", "1000"))
    await post_entry(db_session, date(2024, 1, 5), ("6000", "300", "0"), ("1000", "0", "300"))
    await post_entry(db_session, date(2024, 1, 9), ("1000", "50", "0"), ("4000", "0", "50"))

    ledger = await LedgerProjector(db_session).get_account_ledger("1000")

    assert [line.running_balance for line in ledger.entries] == [
        Decimal("1000.00"), Decimal("700.00"), Decimal("750.00")
    ]
    assert [line.balance for line in ledger.entries] == [line.running_balance for line in ledger.entries]
    assert ledger.closing_balance == Decimal("750.00")
    assert ledger.total_debit == Decimal("1050.00")
    assert ledger.total_credit == Decimal("300.00")


async def test_backdated_posting_shifts_later_rows(db_session, chart):
    await post_entry(db_session, date(2024, 2, 1), ("1000", "100", "0"), ("3000", "0", "100"))
    await post_entry(db_session, date(2024, 2, 20), ("1000", "100", "0"), ("3000", "0", "100"))
    # Posted last, dated between the two
    await post_entry(db_session, date(2024, 2, 10), ("6000", "30", "0"), ("1000", "0", "30"))

    projector = LedgerProjector(db_session)
    ledger = await projector.get_account_ledger("1000")

    assert [line.entry_date for line in ledger.entries] == [date(2024, 2, 1), date(2024, 2, 10), date(2024, 2, 20)]
    assert [line.balance for line in ledger.entries] == [Decimal("100.00"), Decimal("70.00"), Decimal("170.00")]

    verification = await projector.verify_account("1000")
    assert verification.is_consistent
    assert verification.mismatches == []


async def test_cache_equals_replay(db_session, chart):
    for day in range(1, 6):
        await post_entry(db_session, date(2024, 5, day), ("1100", f"{day}00.10", "0"), ("4000", "0", f"{day}00.10"))
    await post_entry(db_session, date(2024, 5, 3), ("1000", "150.30", "0"), ("1100", "0", "150.30"))

    projector = LedgerProjector(db_session)
    ledger = await projector.get_account_ledger("1100")
    cache = await cached_balance(db_session, "1100")

    assert cache.balance == ledger.closing_balance == Decimal("1350.20")
    assert cache.entry_count == 6
    assert cache.total_debit == Decimal("1500.50")
    assert cache.total_credit == Decimal("150.30")


async def test_ledger_window_carries_opening_balance(db_session, chart):
    await post_entry(db_session, date(2024, 1, 15), ("1000", "400", "0"), ("3000", "0", "400"))
    await post_entry(db_session, date(2024, 2, 15), ("1000", "100", "0"), ("4000", "0", "100"))
    await post_entry(db_session, date(2024, 3, 15), ("6000", "20", "0"), ("1000", "0", "20"))

    ledger = await LedgerProjector(db_session).get_account_ledger(
        "1000", from_date=date(2024, 2, 1), to_date=date(2024, 2, 29)
    )

    assert ledger.opening_balance == Decimal("400.00")
    assert len(ledger.entries) == 1
    assert ledger.closing_balance == Decimal("500.00")


async def test_balance_as_of_reports_side(db_session, chart):
    await post_entry(db_session, date(2024, 4, 1), ("1000", "900", "0"), ("2500", "0", "900"))
    await post_entry(db_session, date(2024, 4, 30), ("2500", "100", "0"), ("1000", "0", "100"))
    projector = LedgerProjector(db_session)

    loan = await projector.get_account_balance("2500")
    assert loan.amount == Decimal("800.00")
    assert loan.side == BalanceSide.CREDIT

    early = await projector.get_account_balance("2500", as_of=date(2024, 4, 15))
    assert early.amount == Decimal("900.00")

    untouched = await projector.get_account_balance("1500")
    assert untouched.amount == Decimal("0.00")
    assert untouched.side == BalanceSide.DEBIT


async def test_same_account_twice_in_one_entry(db_session, chart):
    await post_entry(
        db_session, date(2024, 6, 1),
        ("1000", "70", "0"), ("1000", "30", "0"), ("3000", "0", "100"),
    )

    projector = LedgerProjector(db_session)
    ledger = await projector.get_account_ledger("1000")

    assert [line.running_balance for line in ledger.entries] == [Decimal("70.00"), Decimal("100.00")]
    assert (await projector.verify_account("1000")).is_consistent


async def test_unknown_account_ledger(db_session, chart):
    with pytest.raises(NotFoundError):
        await LedgerProjector(db_session).get_account_ledger("0000")
