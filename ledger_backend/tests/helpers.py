"""
Shared builders for ledger tests.
"""

from datetime import date
from decimal import Decimal

from ledger_backend.app.domain.documents.transaction_generator import DocumentDraft, DocumentLineDraft
from ledger_backend.app.domain.ledger.journal_engine import JournalEngine, JournalEntryDraft, JournalLineDraft


def entry_draft(entry_date: date, *legs, description: str = "Test entry") -> JournalEntryDraft:
    """legs: (account_code, debit, credit) tuples."""
    return JournalEntryDraft(
        entry_date=entry_date,
        description=description,
        lines=[
            JournalLineDraft(account_code=code, debit_amount=Decimal(debit), credit_amount=Decimal(credit))
            for code, debit, credit in legs
        ],
    )


async def post_entry(db, entry_date: date, *legs, description: str = "Test entry"):
    entry = await JournalEngine(db).create_and_post(entry_draft(entry_date, *legs, description=description), "tester")
    await db.commit()
    return entry


def document_draft(party_id: int, document_date: date, quantity="1", unit_price="55000", **kwargs) -> DocumentDraft:
    return DocumentDraft(
        party_id=party_id,
        document_date=document_date,
        lines=[DocumentLineDraft(description="Goods", quantity=Decimal(quantity), unit_price=Decimal(unit_price))],
        **kwargs
    )


def journal_payload(entry_date: str, *legs, description: str = "API entry") -> dict:
    return {
        "entry_date": entry_date,
        "description": description,
        "lines": [
            {"account_code": code, "debit_amount": debit, "credit_amount": credit}
            for code, debit, credit in legs
        ],
    }
