"""
Party sub-ledger: balance snapshots, settlement and aging.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from ledger_backend.app.core.exceptions import (
    AlreadyPaidError,
    DuplicateResourceError,
    PartyNotFoundError,
    ResourceInUseError,
)
from ledger_backend.app.domain.party.aging import bucket_for
from ledger_backend.app.domain.party.party_ledger import (
    PartyLedgerService,
    PartyTransactionDraft,
    PaymentDetails,
)
from ledger_backend.app.models.ledger_enums import BalanceSide
from ledger_backend.app.models.party_enums import PartyReferenceType, PartyTransactionStatus, PartyType

AS_OF = date(2024, 12, 31)


def invoice(on: date, amount: str) -> PartyTransactionDraft:
    return PartyTransactionDraft(
        transaction_date=on,
        description=f"Invoice {on}",
        reference_type=PartyReferenceType.INVOICE,
        debit_amount=Decimal(amount),
    )


def purchase(on: date, amount: str) -> PartyTransactionDraft:
    return PartyTransactionDraft(
        transaction_date=on,
        description=f"Bill {on}",
        reference_type=PartyReferenceType.PURCHASE,
        credit_amount=Decimal(amount),
    )


@pytest.mark.parametrize("days,bucket", [
    (0, "current"), (30, "current"), (31, "days_31_60"),
    (60, "days_31_60"), (61, "days_61_90"),
    (90, "days_61_90"), (91, "days_91_180"),
    (180, "days_91_180"), (181, "over_180"), (400, "over_180"),
])
def test_bucket_boundaries(days, bucket):
    assert bucket_for(days) == bucket


async def test_balance_snapshot_accumulates(db_session, customer):
    service = PartyLedgerService(db_session)

    first = await service.record_transaction(customer.id, invoice(date(2024, 1, 1), "1000"))
    second = await service.record_transaction(customer.id, invoice(date(2024, 1, 2), "250.50"))
    await db_session.commit()

    assert first.balance == Decimal("1000.00")
    assert second.balance == Decimal("1250.50")
    party = await service.get_party(customer.id)
    assert party.current_balance == Decimal("1250.50")


async def test_opening_balance_seeds_current_balance(db_session, chart):
    service = PartyLedgerService(db_session)
    party = await service.create_party(
        "Kathmandu Steel", PartyType.SUPPLIER,
        opening_balance=Decimal("5000"), opening_balance_type=BalanceSide.CREDIT,
    )
    await service.record_transaction(party.id, purchase(date(2024, 1, 1), "1000"))
    await db_session.commit()

    assert party.current_balance == Decimal("-6000.00")
    check = await service.recompute_balance(party.id)
    assert check["difference"] == Decimal("0.00")


async def test_unknown_party(db_session, chart):
    with pytest.raises(PartyNotFoundError):
        await PartyLedgerService(db_session).record_transaction(404, invoice(date(2024, 1, 1), "1"))


async def test_duplicate_party_name_per_type(db_session, customer):
    service = PartyLedgerService(db_session)
    with pytest.raises(DuplicateResourceError):
        await service.create_party("Himal Traders", PartyType.CUSTOMER)

    # The same name may exist once as a supplier
    supplier = await service.create_party("Himal Traders", PartyType.SUPPLIER)
    assert supplier.id != customer.id


async def test_mark_paid_settles_once(db_session, customer):
    service = PartyLedgerService(db_session)
    transaction = await service.record_transaction(customer.id, invoice(date(2024, 3, 1), "800"))
    await db_session.commit()

    payment = PaymentDetails(payment_date=date(2024, 3, 20), payment_method="cash", payment_reference="RC-1")
    paid = await service.mark_transaction_paid(transaction.id, payment, actor="tester")
    await db_session.commit()

    assert paid.status == PartyTransactionStatus.PAID
    assert paid.payment_date == date(2024, 3, 20)
    assert paid.settled_by_id is not None

    settlement = await service.get_transaction(paid.settled_by_id)
    assert settlement.reference_type == PartyReferenceType.PAYMENT
    assert settlement.credit_amount == Decimal("800.00")
    assert settlement.balance == Decimal("0.00")

    with pytest.raises(AlreadyPaidError):
        await service.mark_transaction_paid(transaction.id, payment, actor="tester")

    party, items, total = await service.get_transactions(customer.id)
    assert total == 2
    assert party.current_balance == Decimal("0.00")


async def test_aging_partitions_open_transactions(db_session, customer):
    service = PartyLedgerService(db_session)
    for days, amount in [(30, "10"), (31, "20"), (60, "30"), (61, "40"), (90, "50"),
                         (91, "60"), (180, "70"), (181, "80")]:
        await service.record_transaction(customer.id, invoice(AS_OF - timedelta(days=days), amount))
    await db_session.commit()

    report = await service.compute_aging(AS_OF)

    assert report.total_parties == 1
    buckets = report.parties[0].buckets
    assert buckets.current == Decimal("10.00")
    assert buckets.days_31_60 == Decimal("50.00")
    assert buckets.days_61_90 == Decimal("90.00")
    assert buckets.days_91_180 == Decimal("130.00")
    assert buckets.over_180 == Decimal("80.00")
    assert report.total_outstanding == Decimal("360.00")
    assert report.parties[0].open_transactions == 8


async def test_aging_excludes_paid_and_future(db_session, customer):
    service = PartyLedgerService(db_session)
    paid = await service.record_transaction(customer.id, invoice(date(2024, 12, 1), "100"))
    await service.record_transaction(customer.id, invoice(date(2024, 12, 10), "40"))
    await service.record_transaction(customer.id, invoice(date(2025, 1, 5), "999"))
    await db_session.commit()

    await service.mark_transaction_paid(
        paid.id, PaymentDetails(payment_date=date(2024, 12, 5), payment_method="cash"), actor="tester"
    )
    await db_session.commit()

    report = await service.compute_aging(AS_OF)
    assert report.total_outstanding == Decimal("40.00")
    assert report.totals.current == Decimal("40.00")


async def test_supplier_aging_uses_credit_side(db_session, supplier):
    service = PartyLedgerService(db_session)
    await service.record_transaction(supplier.id, purchase(AS_OF - timedelta(days=45), "1130"))
    await db_session.commit()

    report = await service.compute_aging(AS_OF, party_type=PartyType.SUPPLIER)

    assert report.totals.days_31_60 == Decimal("1130.00")
    assert report.total_outstanding == Decimal("1130.00")


async def test_debtors_creditors_summary(db_session, customer, supplier):
    service = PartyLedgerService(db_session)
    await service.record_transaction(customer.id, invoice(date(2024, 1, 1), "500"))
    await service.record_transaction(supplier.id, purchase(date(2024, 1, 1), "300"))
    await db_session.commit()

    summary = await service.debtors_creditors_summary()

    assert [p.party_name for p in summary.debtors] == ["Himal Traders"]
    assert [p.party_name for p in summary.creditors] == ["Everest Supplies"]
    assert summary.total_debtors == Decimal("500.00")
    assert summary.total_creditors == Decimal("300.00")
    assert summary.net_position == Decimal("200.00")


async def test_party_with_transactions_cannot_be_deleted(db_session, customer):
    service = PartyLedgerService(db_session)
    await service.record_transaction(customer.id, invoice(date(2024, 1, 1), "1"))
    await db_session.commit()

    with pytest.raises(ResourceInUseError):
        await service.delete_party(customer.id)
