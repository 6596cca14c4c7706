"""
Purchase, sales and return documents through the journal engine.
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select, func

from ledger_backend.app.core.exceptions import AlreadyPaidError, InvalidDocumentError, LockedDocumentError
from ledger_backend.app.domain.documents.posting_rules import compute_amounts
from ledger_backend.app.domain.documents.transaction_generator import DocumentPayment, TransactionGenerator
from ledger_backend.app.domain.ledger.journal_engine import JournalEngine
from ledger_backend.app.domain.ledger.ledger_projector import LedgerProjector
from ledger_backend.app.domain.party.party_ledger import PartyLedgerService
from ledger_backend.app.models.document_enums import DocumentStatus, DocumentType, PaymentMethod
from ledger_backend.app.models.journal_entry import JournalEntry
from ledger_backend.app.models.ledger_enums import JournalStatus
from ledger_backend.app.models.party_enums import PartyTransactionStatus
from ledger_backend.tests.helpers import document_draft

APRIL = date(2024, 4, 10)


def legs(entry):
    return [(line.account_code, line.debit_amount, line.credit_amount) for line in entry.lines]


async def balance(db, code):
    view = await LedgerProjector(db).get_account_balance(code)
    return view.total_debit - view.total_credit


def test_vat_is_rounded_to_cents():
    amounts = compute_amounts([(Decimal("3"), Decimal("33.33"))], vat_rate=Decimal("13"))
    assert amounts.taxable_amount == Decimal("99.99")
    assert amounts.vat_amount == Decimal("13.00")
    assert amounts.total_amount == Decimal("112.99")


def test_discount_cannot_exceed_subtotal():
    with pytest.raises(InvalidDocumentError):
        compute_amounts([(Decimal("1"), Decimal("100"))], discount_amount=Decimal("100.01"))


def test_subtotal_is_rounded_once_after_summing():
    amounts = compute_amounts(
        [(Decimal("0.5"), Decimal("0.01")), (Decimal("0.5"), Decimal("0.01"))], vat_rate=Decimal("0")
    )
    assert amounts.subtotal == Decimal("0.01")
    assert amounts.taxable_amount == Decimal("0.01")

    amounts = compute_amounts(
        [(Decimal("1.333"), Decimal("10.00")), (Decimal("2.333"), Decimal("10.00"))], vat_rate=Decimal("13")
    )
    assert amounts.taxable_amount == Decimal("36.66")
    assert amounts.vat_amount == Decimal("4.77")


async def test_purchase_posts_inventory_vat_and_payable(db_session, supplier):
    generator = TransactionGenerator(db_session)

    document = await generator.create_document(DocumentType.PURCHASE, document_draft(supplier.id, APRIL), "tester")
    await db_session.commit()

    assert document.document_number == "PO-2024-0001"
    assert document.status == DocumentStatus.PENDING
    assert document.vat_amount == Decimal("7150.00")
    assert document.total_amount == Decimal("62150.00")

    journal = await JournalEngine(db_session).get(document.journal_entry_id)
    assert journal.status == JournalStatus.POSTED
    assert journal.company_name == "Everest Supplies"
    assert legs(journal) == [
        ("1200", Decimal("55000.00"), Decimal("0.00")),
        ("1300", Decimal("7150.00"), Decimal("0.00")),
        ("2000", Decimal("0.00"), Decimal("62150.00")),
    ]

    party = await PartyLedgerService(db_session).get_party(supplier.id)
    assert party.current_balance == Decimal("-62150.00")


async def test_sale_posts_receivable_sales_and_vat(db_session, customer):
    generator = TransactionGenerator(db_session)
    draft = document_draft(customer.id, APRIL, quantity="2", unit_price="500", discount_amount=Decimal("100"))

    document = await generator.create_document(DocumentType.SALE, draft, "tester")
    await db_session.commit()

    assert document.document_number == "SI-2024-0001"
    assert document.taxable_amount == Decimal("900.00")
    journal = await JournalEngine(db_session).get(document.journal_entry_id)
    assert legs(journal) == [
        ("1100", Decimal("1017.00"), Decimal("0.00")),
        ("4000", Decimal("0.00"), Decimal("900.00")),
        ("2100", Decimal("0.00"), Decimal("117.00")),
    ]


async def test_zero_rated_document_has_no_vat_line(db_session, supplier):
    generator = TransactionGenerator(db_session)
    draft = document_draft(supplier.id, APRIL, vat_rate=Decimal("0"))

    document = await generator.create_document(DocumentType.PURCHASE, draft, "tester")

    journal = await JournalEngine(db_session).get(document.journal_entry_id)
    assert [code for code, _, _ in legs(journal)] == ["1200", "2000"]


async def test_party_kind_must_match_document(db_session, customer):
    with pytest.raises(InvalidDocumentError):
        await TransactionGenerator(db_session).create_document(
            DocumentType.PURCHASE, document_draft(customer.id, APRIL), "tester"
        )


async def test_mark_paid_settles_once(db_session, supplier):
    generator = TransactionGenerator(db_session)
    document = await generator.create_document(DocumentType.PURCHASE, document_draft(supplier.id, APRIL), "tester")
    await db_session.commit()

    payment = DocumentPayment(payment_date=date(2024, 4, 30), payment_method=PaymentMethod.CASH)
    paid = await generator.mark_paid(document.id, DocumentType.PURCHASE, payment, "tester")
    await db_session.commit()

    assert paid.status == DocumentStatus.PAID
    settlement = await JournalEngine(db_session).get(paid.settlement_journal_entry_id)
    assert legs(settlement) == [
        ("2000", Decimal("62150.00"), Decimal("0.00")),
        ("1000", Decimal("0.00"), Decimal("62150.00")),
    ]

    with pytest.raises(AlreadyPaidError):
        await generator.mark_paid(document.id, DocumentType.PURCHASE, payment, "tester")

    settlements = await db_session.scalar(
        select(func.count(JournalEntry.id)).where(JournalEntry.reference_type == "PURCHASE_PAYMENT")
    )
    assert settlements == 1
    assert await balance(db_session, "2000") == Decimal("0.00")

    party_transaction = await PartyLedgerService(db_session).get_transaction(paid.party_transaction_id)
    assert party_transaction.status == PartyTransactionStatus.PAID
    assert (await PartyLedgerService(db_session).get_party(supplier.id)).current_balance == Decimal("0.00")


async def test_credit_cannot_settle(db_session, customer):
    generator = TransactionGenerator(db_session)
    document = await generator.create_document(DocumentType.SALE, document_draft(customer.id, APRIL), "tester")

    with pytest.raises(InvalidDocumentError):
        await generator.mark_paid(document.id, DocumentType.SALE, DocumentPayment(payment_date=APRIL), "tester")


async def test_update_reverses_and_reposts(db_session, supplier):
    generator = TransactionGenerator(db_session)
    document = await generator.create_document(DocumentType.PURCHASE, document_draft(supplier.id, APRIL), "tester")
    await db_session.commit()
    first_journal = document.journal_entry_id

    updated = await generator.update_document(
        document.id, DocumentType.PURCHASE, document_draft(supplier.id, APRIL, quantity="2"), "tester"
    )
    await db_session.commit()

    assert updated.document_number == "PO-2024-0001"
    assert updated.total_amount == Decimal("124300.00")
    assert updated.journal_entry_id != first_journal

    reversal = await db_session.scalar(select(JournalEntry).where(JournalEntry.reversal_of_id == first_journal))
    assert reversal is not None

    assert await balance(db_session, "1200") == Decimal("110000.00")
    assert await balance(db_session, "2000") == Decimal("-124300.00")
    party = await PartyLedgerService(db_session).get_party(supplier.id)
    assert party.current_balance == Decimal("-124300.00")


async def test_cancel_nets_to_zero_and_locks(db_session, supplier):
    generator = TransactionGenerator(db_session)
    document = await generator.create_document(DocumentType.PURCHASE, document_draft(supplier.id, APRIL), "tester")
    await db_session.commit()

    cancelled = await generator.cancel_document(document.id, DocumentType.PURCHASE, "tester")
    await db_session.commit()

    assert cancelled.status == DocumentStatus.CANCELLED
    reversal = await db_session.scalar(
        select(JournalEntry).where(JournalEntry.reversal_of_id == document.journal_entry_id)
    )
    assert reversal.entry_date == APRIL
    for code in ("1200", "1300", "2000"):
        assert await balance(db_session, code) == Decimal("0.00")
    assert (await PartyLedgerService(db_session).get_party(supplier.id)).current_balance == Decimal("0.00")

    with pytest.raises(LockedDocumentError):
        await generator.mark_paid(
            document.id, DocumentType.PURCHASE,
            DocumentPayment(payment_date=APRIL, payment_method=PaymentMethod.CASH), "tester"
        )
    with pytest.raises(LockedDocumentError):
        await generator.update_document(
            document.id, DocumentType.PURCHASE, document_draft(supplier.id, APRIL), "tester"
        )


async def test_sales_return_mirrors_sale_within_limit(db_session, customer):
    generator = TransactionGenerator(db_session)
    sale = await generator.create_document(DocumentType.SALE, document_draft(customer.id, APRIL), "tester")
    await db_session.commit()

    returned = await generator.create_document(
        DocumentType.SALES_RETURN,
        document_draft(customer.id, date(2024, 4, 12), unit_price="10000", original_document_id=sale.id),
        "tester",
    )
    await db_session.commit()

    assert returned.document_number == "SR-2024-0001"
    journal = await JournalEngine(db_session).get(returned.journal_entry_id)
    assert legs(journal) == [
        ("1100", Decimal("0.00"), Decimal("11300.00")),
        ("4000", Decimal("10000.00"), Decimal("0.00")),
        ("2100", Decimal("1300.00"), Decimal("0.00")),
    ]
    assert (await PartyLedgerService(db_session).get_party(customer.id)).current_balance == Decimal("50850.00")

    with pytest.raises(InvalidDocumentError):
        await generator.create_document(
            DocumentType.SALES_RETURN,
            document_draft(customer.id, date(2024, 4, 13), original_document_id=sale.id),
            "tester",
        )


async def test_return_must_match_original(db_session, customer, supplier):
    generator = TransactionGenerator(db_session)
    purchase = await generator.create_document(DocumentType.PURCHASE, document_draft(supplier.id, APRIL), "tester")
    await db_session.commit()

    # A sales return cannot point at a purchase
    with pytest.raises(InvalidDocumentError):
        await generator.create_document(
            DocumentType.SALES_RETURN,
            document_draft(customer.id, APRIL, unit_price="10", original_document_id=purchase.id),
            "tester",
        )

    other = await PartyLedgerService(db_session).create_party("Annapurna Wholesale", supplier.party_type)
    with pytest.raises(InvalidDocumentError):
        await generator.create_document(
            DocumentType.PURCHASE_RETURN,
            document_draft(other.id, APRIL, unit_price="10", original_document_id=purchase.id),
            "tester",
        )
