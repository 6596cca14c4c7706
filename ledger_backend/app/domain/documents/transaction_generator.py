"""
Transaction Generators (Domain Logic).

Purchase entries, sales entries and their returns. Each document computes
its VAT, goes through the journal engine's validated create + post path and
records the matching party transaction. The document is stamped with the
ids of everything it produced, in the same transaction.

Flow (create):
1. Validate party and, for returns, the original document
2. Compute subtotal / taxable / VAT / total
3. Persist the document (PENDING)
4. Create and post the journal entry
5. Record the party transaction
6. Stamp journal and party transaction ids on the document

Any failure propagates and the caller's transaction rolls everything back.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import select, update, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_backend.app.core.exceptions import (
    AlreadyPaidError,
    ConcurrentPostingError,
    InvalidDocumentError,
    LockedDocumentError,
    NotFoundError,
)
from ledger_backend.app.domain.documents.posting_rules import (
    DOCUMENT_LABELS,
    DOCUMENT_PREFIXES,
    ORIGINAL_TYPES,
    PARTY_TYPES,
    DocumentAmounts,
    compute_amounts,
    document_postings,
    line_amount,
    party_posting,
    settlement_postings,
)
from ledger_backend.app.domain.ledger.journal_engine import JournalEngine, JournalEntryDraft
from ledger_backend.app.domain.ledger.money import ZERO, money
from ledger_backend.app.domain.ledger.numbering import next_document_number
from ledger_backend.app.domain.party.party_ledger import (
    PartyLedgerService,
    PartyTransactionDraft,
    PaymentDetails,
)
from ledger_backend.app.models.document_enums import DocumentStatus, DocumentType, PaymentMethod
from ledger_backend.app.models.party import Party
from ledger_backend.app.models.party_enums import PartyTransactionStatus
from ledger_backend.app.models.trade_document import TradeDocument, TradeDocumentLine

logger = logging.getLogger(__name__)


@dataclass
class DocumentLineDraft:
    description: str
    quantity: Decimal
    unit_price: Decimal


@dataclass
class DocumentDraft:
    party_id: int
    document_date: date
    lines: List[DocumentLineDraft]
    discount_amount: Decimal = ZERO
    vat_rate: Optional[Decimal] = None
    payment_method: PaymentMethod = PaymentMethod.CREDIT
    bill_number: Optional[str] = None
    due_date: Optional[date] = None
    notes: Optional[str] = None
    original_document_id: Optional[int] = None


@dataclass
class DocumentPayment:
    payment_date: date
    payment_method: Optional[PaymentMethod] = None
    payment_reference: Optional[str] = None


class TransactionGenerator:
    """Turns trade documents into posted journal entries and party transactions."""

    def __init__(
        self,
        db: AsyncSession,
        engine: Optional[JournalEngine] = None,
        party_ledger: Optional[PartyLedgerService] = None,
    ):
        self.db = db
        self.engine = engine or JournalEngine(db)
        self.party_ledger = party_ledger or PartyLedgerService(db)

    # Reads

    async def get_document(self, document_id: int, document_type: Optional[DocumentType] = None) -> TradeDocument:
        query = select(TradeDocument).where(TradeDocument.id == document_id)
        if document_type:
            query = query.where(TradeDocument.document_type == document_type)
        result = await self.db.execute(query)
        document = result.scalar_one_or_none()
        if not document:
            label = DOCUMENT_LABELS[document_type] if document_type else "Document"
            raise NotFoundError(label, document_id)
        return document

    async def list_documents(
        self,
        document_type: Optional[DocumentType] = None,
        status: Optional[DocumentStatus] = None,
        party_id: Optional[int] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[TradeDocument], int]:
        query = select(TradeDocument)
        if document_type:
            query = query.where(TradeDocument.document_type == document_type)
        if status:
            query = query.where(TradeDocument.status == status)
        if party_id:
            query = query.where(TradeDocument.party_id == party_id)
        if from_date:
            query = query.where(TradeDocument.document_date >= from_date)
        if to_date:
            query = query.where(TradeDocument.document_date <= to_date)
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(
                TradeDocument.document_number.ilike(pattern),
                TradeDocument.bill_number.ilike(pattern),
            ))

        total = await self.db.scalar(select(func.count()).select_from(query.subquery()))
        query = query.order_by(TradeDocument.document_date.desc(), TradeDocument.id.desc())
        query = query.offset((page - 1) * page_size).limit(page_size)
        result = await self.db.execute(query)
        return result.scalars().all(), total

    # Validation helpers

    async def _resolve_party(self, document_type: DocumentType, party_id: int) -> Party:
        party = await self.party_ledger.get_party(party_id)
        expected = PARTY_TYPES[document_type]
        if party.party_type != expected:
            raise InvalidDocumentError(
                f"{DOCUMENT_LABELS[document_type]} requires a {expected.value}, "
                f"but party {party.party_name} is a {party.party_type.value}",
                {"party_id": party_id, "party_type": party.party_type.value}
            )
        if not party.is_active:
            raise InvalidDocumentError(f"Party {party.party_name} is inactive", {"party_id": party_id})
        return party

    async def _check_original(
        self,
        document_type: DocumentType,
        draft: DocumentDraft,
        amounts: DocumentAmounts,
        exclude_id: Optional[int] = None,
    ) -> None:
        """A return must point at a live document of the matching kind, and not exceed what is left of it."""
        expected = ORIGINAL_TYPES.get(document_type)
        if expected is None:
            if draft.original_document_id:
                raise InvalidDocumentError("Only returns reference an original document")
            return
        if not draft.original_document_id:
            return

        original = await self.db.get(TradeDocument, draft.original_document_id)
        if not original or original.document_type != expected:
            raise InvalidDocumentError(
                f"Original {DOCUMENT_LABELS[expected].lower()} {draft.original_document_id} not found",
                {"original_document_id": draft.original_document_id}
            )
        if original.party_id != draft.party_id:
            raise InvalidDocumentError("Return party differs from the original document's party")
        if original.status == DocumentStatus.CANCELLED:
            raise InvalidDocumentError(f"Original document {original.document_number} is cancelled")

        query = select(func.coalesce(func.sum(TradeDocument.total_amount), 0)).where(
            TradeDocument.original_document_id == original.id,
            TradeDocument.status != DocumentStatus.CANCELLED,
        )
        if exclude_id:
            query = query.where(TradeDocument.id != exclude_id)
        already_returned = money(await self.db.scalar(query))

        if already_returned + amounts.total_amount > money(original.total_amount):
            raise InvalidDocumentError(
                f"Return exceeds the remaining amount of {original.document_number}",
                {
                    "original_total": str(money(original.total_amount)),
                    "already_returned": str(already_returned),
                    "requested": str(amounts.total_amount),
                }
            )

    def _ensure_pending(self, document: TradeDocument) -> None:
        if document.status != DocumentStatus.PENDING:
            raise LockedDocumentError(document.document_number, document.status.value)

    # Posting helpers

    def _apply(self, document: TradeDocument, draft: DocumentDraft, amounts: DocumentAmounts) -> None:
        document.document_date = draft.document_date
        document.bill_number = draft.bill_number
        document.due_date = draft.due_date
        document.notes = draft.notes
        document.payment_method = draft.payment_method
        document.original_document_id = draft.original_document_id
        document.subtotal = amounts.subtotal
        document.discount_amount = amounts.discount_amount
        document.taxable_amount = amounts.taxable_amount
        document.vat_rate = amounts.vat_rate
        document.vat_amount = amounts.vat_amount
        document.total_amount = amounts.total_amount
        document.lines = [
            TradeDocumentLine(
                description=line.description,
                quantity=Decimal(line.quantity),
                unit_price=money(line.unit_price),
                amount=line_amount(line.quantity, line.unit_price),
            )
            for line in draft.lines
        ]

    async def _post_document(self, document: TradeDocument, party: Party, amounts: DocumentAmounts, actor: str) -> None:
        label = DOCUMENT_LABELS[document.document_type]

        journal = await self.engine.create_and_post(
            JournalEntryDraft(
                entry_date=document.document_date,
                description=f"{label} {document.document_number} - {party.party_name}",
                company_name=party.party_name,
                reference_type=document.document_type.value,
                reference_id=str(document.id),
                lines=document_postings(document.document_type, amounts),
            ),
            actor,
        )

        debit, credit, reference_type = party_posting(document.document_type, amounts.total_amount)
        party_transaction = await self.party_ledger.record_transaction(
            party.id,
            PartyTransactionDraft(
                transaction_date=document.document_date,
                description=f"{label} {document.document_number}",
                reference_type=reference_type,
                reference_id=document.document_number,
                debit_amount=debit,
                credit_amount=credit,
                journal_entry_id=journal.id,
            ),
            actor=actor,
        )

        document.journal_entry_id = journal.id
        document.party_transaction_id = party_transaction.id
        await self.db.flush()

    async def _unwind(self, document: TradeDocument, actor: str, reason: str, on_date: date) -> None:
        """Reverse the document's journal and close its party transaction with an adjustment."""
        reversal = await self.engine.reverse(
            document.journal_entry_id,
            actor,
            description=f"{reason} {document.document_number}",
        )
        party_transaction = await self.party_ledger.get_transaction(document.party_transaction_id)
        if party_transaction.status == PartyTransactionStatus.PENDING:
            await self.party_ledger.void_transaction(
                party_transaction.id,
                void_date=on_date,
                actor=actor,
                journal_entry_id=reversal.id,
            )

    # Operations

    async def create_document(self, document_type: DocumentType, draft: DocumentDraft, actor: str) -> TradeDocument:
        party = await self._resolve_party(document_type, draft.party_id)
        amounts = compute_amounts(
            ((line.quantity, line.unit_price) for line in draft.lines),
            discount_amount=draft.discount_amount,
            vat_rate=draft.vat_rate,
        )
        await self._check_original(document_type, draft, amounts)

        document_number = await next_document_number(
            self.db, DOCUMENT_PREFIXES[document_type], draft.document_date
        )
        document = TradeDocument(
            document_type=document_type,
            document_number=document_number,
            party_id=party.id,
            status=DocumentStatus.PENDING,
            created_by=actor,
        )
        self._apply(document, draft, amounts)
        self.db.add(document)
        await self.db.flush()

        await self._post_document(document, party, amounts, actor)
        await self.db.refresh(document)

        logger.info(
            "Created %s %s: taxable=%s vat=%s total=%s",
            document_type.value, document.document_number,
            amounts.taxable_amount, amounts.vat_amount, amounts.total_amount
        )
        return document

    async def update_document(
        self,
        document_id: int,
        document_type: DocumentType,
        draft: DocumentDraft,
        actor: str,
    ) -> TradeDocument:
        """
        Amend a PENDING document.

        Posted journals are immutable, so the old entry is reversed and a new
        one posted; the document keeps its number and points at the new entry.
        """
        document = await self.get_document(document_id, document_type)
        self._ensure_pending(document)

        if draft.party_id != document.party_id:
            raise InvalidDocumentError("The party of an existing document cannot be changed; cancel it instead")

        party = await self._resolve_party(document_type, draft.party_id)
        amounts = compute_amounts(
            ((line.quantity, line.unit_price) for line in draft.lines),
            discount_amount=draft.discount_amount,
            vat_rate=draft.vat_rate,
        )
        await self._check_original(document_type, draft, amounts, exclude_id=document.id)

        await self._unwind(document, actor, "Amendment of", draft.document_date)

        document.lines.clear()
        await self.db.flush()
        self._apply(document, draft, amounts)
        await self._post_document(document, party, amounts, actor)
        await self.db.refresh(document)

        logger.info("Amended %s %s by %s", document_type.value, document.document_number, actor)
        return document

    async def cancel_document(self, document_id: int, document_type: DocumentType, actor: str) -> TradeDocument:
        document = await self.get_document(document_id, document_type)
        self._ensure_pending(document)

        result = await self.db.execute(
            update(TradeDocument)
            .where(TradeDocument.id == document.id, TradeDocument.status == DocumentStatus.PENDING)
            .values(status=DocumentStatus.CANCELLED, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self.db.refresh(document)
            raise LockedDocumentError(document.document_number, document.status.value)

        await self._unwind(document, actor, "Cancellation of", datetime.now(timezone.utc).date())
        await self.db.refresh(document)

        logger.info("Cancelled %s %s by %s", document_type.value, document.document_number, actor)
        return document

    async def mark_paid(
        self,
        document_id: int,
        document_type: DocumentType,
        payment: DocumentPayment,
        actor: str,
    ) -> TradeDocument:
        """
        Post the settlement journal and settle the party transaction.

        A second call fails with AlreadyPaidError; exactly one settlement
        entry can ever be linked to a document.
        """
        document = await self.get_document(document_id, document_type)
        if document.status == DocumentStatus.PAID:
            raise AlreadyPaidError(DOCUMENT_LABELS[document_type], document.document_number)
        if document.status == DocumentStatus.CANCELLED:
            raise LockedDocumentError(document.document_number, document.status.value)

        method = payment.payment_method or document.payment_method
        lines = settlement_postings(document_type, money(document.total_amount), method)

        paid_at = datetime.now(timezone.utc)
        result = await self.db.execute(
            update(TradeDocument)
            .where(TradeDocument.id == document.id, TradeDocument.status == DocumentStatus.PENDING)
            .values(
                status=DocumentStatus.PAID,
                paid_at=paid_at,
                payment_method=method,
                payment_reference=payment.payment_reference,
                updated_at=func.now(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self.db.refresh(document)
            if document.status == DocumentStatus.PAID:
                raise AlreadyPaidError(DOCUMENT_LABELS[document_type], document.document_number)
            raise LockedDocumentError(document.document_number, document.status.value)

        party = await self.party_ledger.get_party(document.party_id)
        settlement = await self.engine.create_and_post(
            JournalEntryDraft(
                entry_date=payment.payment_date,
                description=f"Payment for {DOCUMENT_LABELS[document_type].lower()} {document.document_number}",
                company_name=party.party_name,
                reference_type=f"{document_type.value}_PAYMENT",
                reference_id=str(document.id),
                lines=lines,
            ),
            actor,
        )

        try:
            await self.db.execute(
                update(TradeDocument)
                .where(TradeDocument.id == document.id, TradeDocument.settlement_journal_entry_id.is_(None))
                .values(settlement_journal_entry_id=settlement.id)
                .execution_options(synchronize_session=False)
            )
        except IntegrityError:
            raise ConcurrentPostingError("trade_documents", [document.id])

        party_transaction = await self.party_ledger.get_transaction(document.party_transaction_id)
        if party_transaction.status == PartyTransactionStatus.PENDING:
            await self.party_ledger.mark_transaction_paid(
                party_transaction.id,
                PaymentDetails(
                    payment_date=payment.payment_date,
                    payment_method=method.value,
                    payment_reference=payment.payment_reference,
                    journal_entry_id=settlement.id,
                ),
                actor=actor,
            )

        await self.db.refresh(document)
        logger.info(
            "Settled %s %s with %s (%s)",
            document_type.value, document.document_number, settlement.journal_number, method.value
        )
        return document
