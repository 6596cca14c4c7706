"""
Concurrency Tests.

Two sessions race on the same journal entry or document. Whichever loses
may fail with a domain error or a database lock error depending on the
backend; what matters is that exactly one effect reaches the books.
"""

import asyncio
from datetime import date

import pytest
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from ledger_backend.app.db.session import Base, transaction_scope
from ledger_backend.app.domain.documents.transaction_generator import DocumentPayment, TransactionGenerator
from ledger_backend.app.domain.ledger.journal_engine import JournalEngine
from ledger_backend.app.domain.ledger.ledger_projector import LedgerProjector
from ledger_backend.app.domain.party.party_ledger import PartyLedgerService
from ledger_backend.app.models.document_enums import DocumentType, PaymentMethod
from ledger_backend.app.models.journal_entry import JournalEntry
from ledger_backend.app.models.ledger_entry import LedgerEntry
from ledger_backend.app.models.party_enums import PartyType
from ledger_backend.app.services.chart_of_accounts import ChartOfAccountsService
from ledger_backend.tests.helpers import document_draft, entry_draft


@pytest.fixture
async def file_sessions(tmp_path):
    """Separate connections to one file database, so the two sides really interleave."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    async with factory() as db:
        await ChartOfAccountsService(db).seed_default_chart()
        await db.commit()

    yield factory
    await engine.dispose()


async def test_concurrent_post_projects_once(file_sessions):
    async with file_sessions() as db:
        entry = await JournalEngine(db).create(
            entry_draft(date(2024, 3, 1), ("1000", "250.00", "0"), ("3000", "0", "250.00")), "setup"
        )
        await db.commit()
        entry_id = entry.id

    async def post(actor):
        async with file_sessions() as db:
            async with transaction_scope(db):
                return await JournalEngine(db).post(entry_id, actor)

    results = await asyncio.gather(post("first"), post("second"), return_exceptions=True)

    posted = [r for r in results if not isinstance(r, BaseException)]
    assert len(posted) == 1

    async with file_sessions() as db:
        rows = await db.scalar(select(func.count(LedgerEntry.id)).where(LedgerEntry.journal_entry_id == entry_id))
        assert rows == 2
        verification = await LedgerProjector(db).verify_account("1000")
        assert verification.is_consistent
        assert verification.replayed_balance == posted[0].total_debit


async def test_concurrent_mark_paid_settles_once(file_sessions):
    async with file_sessions() as db:
        supplier = await PartyLedgerService(db).create_party("Everest Supplies", PartyType.SUPPLIER)
        document = await TransactionGenerator(db).create_document(
            DocumentType.PURCHASE, document_draft(supplier.id, date(2024, 4, 10)), "setup"
        )
        await db.commit()
        document_id = document.id

    payment = DocumentPayment(payment_date=date(2024, 4, 30), payment_method=PaymentMethod.CASH)

    async def settle(actor):
        async with file_sessions() as db:
            async with transaction_scope(db):
                return await TransactionGenerator(db).mark_paid(document_id, DocumentType.PURCHASE, payment, actor)

    results = await asyncio.gather(settle("first"), settle("second"), return_exceptions=True)

    assert len([r for r in results if not isinstance(r, BaseException)]) == 1

    async with file_sessions() as db:
        settlements = await db.scalar(
            select(func.count(JournalEntry.id)).where(JournalEntry.reference_type == "PURCHASE_PAYMENT")
        )
        assert settlements == 1
        for code in ("1000", "2000"):
            assert (await LedgerProjector(db).verify_account(code)).is_consistent
