"""
Party Sub-Ledger (Domain Logic).

Debtor and creditor balances per customer/supplier, with an append-only
transaction stream as the source of truth and current_balance as a cache:

    current_balance == signed opening balance + sum(debit - credit)

Party rows are locked and version-checked whenever the cache moves.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from ledger_backend.app.core.exceptions import (
    AlreadyPaidError,
    ConcurrentPostingError,
    DuplicateResourceError,
    NotFoundError,
    PartyNotFoundError,
    ResourceInUseError,
    ValidationError,
)
from ledger_backend.app.domain.ledger.money import ZERO, money
from ledger_backend.app.domain.party.aging import (
    AgingReport,
    PartyAging,
    bucket_for,
    days_outstanding,
    open_amount,
)
from ledger_backend.app.models.ledger_enums import BalanceSide
from ledger_backend.app.models.party import Party, PartyTransaction
from ledger_backend.app.models.party_enums import PartyReferenceType, PartyTransactionStatus, PartyType
from ledger_backend.app.models.trade_document import TradeDocument

logger = logging.getLogger(__name__)

UPDATABLE_PARTY_FIELDS = (
    "party_name", "contact_number", "email", "address", "pan_number",
    "credit_limit", "is_active", "opening_balance", "opening_balance_type",
)


@dataclass
class PartyTransactionDraft:
    transaction_date: date
    description: str
    reference_type: PartyReferenceType
    debit_amount: Decimal = ZERO
    credit_amount: Decimal = ZERO
    reference_id: Optional[str] = None
    journal_entry_id: Optional[int] = None


@dataclass
class PaymentDetails:
    payment_date: date
    payment_method: str
    payment_reference: Optional[str] = None
    journal_entry_id: Optional[int] = None


@dataclass
class PartyBalanceSummary:
    party_type: Optional[PartyType]
    debtors: List[Party] = field(default_factory=list)
    creditors: List[Party] = field(default_factory=list)

    @property
    def total_debtors(self) -> Decimal:
        return sum((money(p.current_balance) for p in self.debtors), ZERO)

    @property
    def total_creditors(self) -> Decimal:
        return sum((-money(p.current_balance) for p in self.creditors), ZERO)

    @property
    def net_position(self) -> Decimal:
        return self.total_debtors - self.total_creditors


class PartyLedgerService:
    """Customer and supplier sub-ledgers."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # Parties

    async def get_party(self, party_id: int) -> Party:
        party = await self.db.get(Party, party_id)
        if not party:
            raise PartyNotFoundError(party_id)
        return party

    async def _lock_party(self, party_id: int) -> Party:
        result = await self.db.execute(
            select(Party).where(Party.id == party_id).with_for_update()
            .execution_options(populate_existing=True)
        )
        party = result.scalar_one_or_none()
        if not party:
            raise PartyNotFoundError(party_id)
        return party

    async def _flush_party(self, party: Party) -> None:
        try:
            await self.db.flush()
        except StaleDataError:
            logger.warning("Concurrent balance update on party %s", party.id)
            raise ConcurrentPostingError("parties", [party.id])

    async def _ensure_unique_name(self, party_name: str, party_type: PartyType, exclude_id: Optional[int] = None):
        query = select(Party.id).where(Party.party_name == party_name, Party.party_type == party_type)
        if exclude_id:
            query = query.where(Party.id != exclude_id)
        if await self.db.scalar(query):
            raise DuplicateResourceError("Party", {"party_name": party_name, "party_type": party_type.value})

    async def create_party(
        self,
        party_name: str,
        party_type: PartyType,
        opening_balance: Decimal = ZERO,
        opening_balance_type: BalanceSide = BalanceSide.DEBIT,
        contact_number: Optional[str] = None,
        email: Optional[str] = None,
        address: Optional[str] = None,
        pan_number: Optional[str] = None,
        credit_limit: Optional[Decimal] = None,
    ) -> Party:
        await self._ensure_unique_name(party_name, party_type)

        party = Party(
            party_name=party_name,
            party_type=party_type,
            opening_balance=money(opening_balance),
            opening_balance_type=opening_balance_type,
            contact_number=contact_number,
            email=email,
            address=address,
            pan_number=pan_number,
            credit_limit=money(credit_limit) if credit_limit is not None else None,
            is_active=True,
        )
        party.current_balance = party.signed_opening_balance

        self.db.add(party)
        try:
            await self.db.flush()
        except IntegrityError:
            raise DuplicateResourceError("Party", {"party_name": party_name, "party_type": party_type.value})
        await self.db.refresh(party)

        logger.info("Created %s party %s", party_type.value, party_name)
        return party

    async def update_party(self, party_id: int, **changes) -> Party:
        party = await self._lock_party(party_id)

        if changes.get("party_name") and changes["party_name"] != party.party_name:
            await self._ensure_unique_name(changes["party_name"], party.party_type, exclude_id=party.id)

        for key in UPDATABLE_PARTY_FIELDS:
            if key in changes and changes[key] is not None:
                setattr(party, key, changes[key])

        if "opening_balance" in changes or "opening_balance_type" in changes:
            party.opening_balance = money(party.opening_balance)
            party.current_balance = await self._replay_balance(party)

        await self._flush_party(party)
        await self.db.refresh(party)
        return party

    async def delete_party(self, party_id: int) -> None:
        party = await self.get_party(party_id)

        transactions = await self.db.scalar(
            select(func.count(PartyTransaction.id)).where(PartyTransaction.party_id == party_id)
        )
        documents = await self.db.scalar(
            select(func.count(TradeDocument.id)).where(TradeDocument.party_id == party_id)
        )
        if transactions or documents:
            raise ResourceInUseError("Party", party_id, transactions + documents)

        await self.db.delete(party)
        await self.db.flush()

    async def list_parties(
        self,
        party_type: Optional[PartyType] = None,
        search: Optional[str] = None,
        has_outstanding: Optional[bool] = None,
        is_active: Optional[bool] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[Party], int]:
        query = select(Party)
        if party_type:
            query = query.where(Party.party_type == party_type)
        if search:
            query = query.where(Party.party_name.ilike(f"%{search}%"))
        if has_outstanding is True:
            query = query.where(Party.current_balance != 0)
        elif has_outstanding is False:
            query = query.where(Party.current_balance == 0)
        if is_active is not None:
            query = query.where(Party.is_active == is_active)

        total = await self.db.scalar(select(func.count()).select_from(query.subquery()))
        query = query.order_by(Party.party_name).offset((page - 1) * page_size).limit(page_size)
        result = await self.db.execute(query)
        return result.scalars().all(), total

    # Transaction stream

    async def record_transaction(
        self,
        party_id: int,
        draft: PartyTransactionDraft,
        actor: Optional[str] = None,
        status: PartyTransactionStatus = PartyTransactionStatus.PENDING,
    ) -> PartyTransaction:
        """Append to the party's stream and move the cached balance by debit - credit."""
        debit = money(draft.debit_amount)
        credit = money(draft.credit_amount)
        if debit < ZERO or credit < ZERO:
            raise ValidationError("Party transaction amounts cannot be negative",
                                  details={"debit_amount": str(debit), "credit_amount": str(credit)})
        if debit == ZERO and credit == ZERO:
            raise ValidationError("Party transaction needs a debit or a credit amount")

        party = await self._lock_party(party_id)

        balance = money(party.current_balance) + debit - credit
        transaction = PartyTransaction(
            party_id=party.id,
            transaction_date=draft.transaction_date,
            description=draft.description,
            reference_type=draft.reference_type,
            reference_id=draft.reference_id,
            journal_entry_id=draft.journal_entry_id,
            debit_amount=debit,
            credit_amount=credit,
            balance=balance,
            status=status,
            created_by=actor,
        )
        party.current_balance = balance
        self.db.add(transaction)
        await self._flush_party(party)
        await self.db.refresh(transaction)

        logger.info(
            "Recorded %s on party %s: dr=%s cr=%s balance=%s",
            draft.reference_type.value, party.id, debit, credit, balance
        )
        return transaction

    async def get_transaction(self, transaction_id: int) -> PartyTransaction:
        transaction = await self.db.get(PartyTransaction, transaction_id)
        if not transaction:
            raise NotFoundError("Party transaction", transaction_id)
        return transaction

    async def get_transactions(
        self,
        party_id: int,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        status: Optional[PartyTransactionStatus] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Tuple[Party, List[PartyTransaction], int]:
        party = await self.get_party(party_id)

        query = select(PartyTransaction).where(PartyTransaction.party_id == party_id)
        if from_date:
            query = query.where(PartyTransaction.transaction_date >= from_date)
        if to_date:
            query = query.where(PartyTransaction.transaction_date <= to_date)
        if status:
            query = query.where(PartyTransaction.status == status)

        total = await self.db.scalar(select(func.count()).select_from(query.subquery()))
        query = query.order_by(PartyTransaction.id).offset((page - 1) * page_size).limit(page_size)
        result = await self.db.execute(query)
        return party, result.scalars().all(), total

    async def mark_transaction_paid(
        self,
        transaction_id: int,
        payment: PaymentDetails,
        actor: Optional[str] = None,
    ) -> PartyTransaction:
        """
        Settle an open transaction.

        Stamps the payment on the original row and appends an opposite-side
        payment row, so the cached balance drops by the settled amount and
        still equals a replay of the stream.
        """
        transaction = await self._close_transaction(
            transaction_id,
            reference_type=PartyReferenceType.PAYMENT,
            closing_date=payment.payment_date,
            description_prefix="Settlement of",
            actor=actor,
            journal_entry_id=payment.journal_entry_id,
            payment_method=payment.payment_method,
            payment_reference=payment.payment_reference,
        )
        logger.info("Party transaction %s settled by %s", transaction_id, transaction.settled_by_id)
        return transaction

    async def void_transaction(
        self,
        transaction_id: int,
        void_date: date,
        actor: Optional[str] = None,
        journal_entry_id: Optional[int] = None,
    ) -> PartyTransaction:
        """
        Close an open transaction with an offsetting adjustment.

        Used when the source document is amended or cancelled; the original
        row stays in the stream untouched apart from its status.
        """
        transaction = await self._close_transaction(
            transaction_id,
            reference_type=PartyReferenceType.ADJUSTMENT,
            closing_date=void_date,
            description_prefix="Adjustment reversing",
            actor=actor,
            journal_entry_id=journal_entry_id,
        )
        logger.info("Party transaction %s voided by %s", transaction_id, transaction.settled_by_id)
        return transaction

    async def _close_transaction(
        self,
        transaction_id: int,
        reference_type: PartyReferenceType,
        closing_date: date,
        description_prefix: str,
        actor: Optional[str] = None,
        journal_entry_id: Optional[int] = None,
        payment_method: Optional[str] = None,
        payment_reference: Optional[str] = None,
    ) -> PartyTransaction:
        transaction = await self.get_transaction(transaction_id)
        if transaction.status == PartyTransactionStatus.PAID:
            raise AlreadyPaidError("Party transaction", transaction_id)

        result = await self.db.execute(
            update(PartyTransaction)
            .where(
                PartyTransaction.id == transaction_id,
                PartyTransaction.status == PartyTransactionStatus.PENDING,
            )
            .values(
                status=PartyTransactionStatus.PAID,
                payment_date=closing_date,
                payment_method=payment_method,
                payment_reference=payment_reference,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise AlreadyPaidError("Party transaction", transaction_id)

        offset = await self.record_transaction(
            transaction.party_id,
            PartyTransactionDraft(
                transaction_date=closing_date,
                description=f"{description_prefix} {transaction.description}"[:255],
                reference_type=reference_type,
                reference_id=str(transaction.id),
                debit_amount=money(transaction.credit_amount),
                credit_amount=money(transaction.debit_amount),
                journal_entry_id=journal_entry_id,
            ),
            actor=actor,
            status=PartyTransactionStatus.PAID,
        )
        offset.payment_date = closing_date
        offset.payment_method = payment_method
        offset.payment_reference = payment_reference

        await self.db.execute(
            update(PartyTransaction)
            .where(PartyTransaction.id == transaction_id)
            .values(settled_by_id=offset.id)
            .execution_options(synchronize_session=False)
        )
        await self.db.flush()
        await self.db.refresh(transaction)
        return transaction

    async def _replay_balance(self, party: Party) -> Decimal:
        net = await self.db.scalar(
            select(func.coalesce(func.sum(PartyTransaction.debit_amount - PartyTransaction.credit_amount), 0))
            .where(PartyTransaction.party_id == party.id)
        )
        return money(party.signed_opening_balance) + money(net)

    async def recompute_balance(self, party_id: int) -> Dict[str, Decimal]:
        """Replay the stream and report it next to the cache. Drift is returned, not raised."""
        party = await self.get_party(party_id)
        replayed = await self._replay_balance(party)
        cached = money(party.current_balance)
        if replayed != cached:
            logger.warning("Party %s balance drift: cached=%s replayed=%s", party_id, cached, replayed)
        return {"replayed_balance": replayed, "cached_balance": cached, "difference": cached - replayed}

    # Derived views

    async def compute_aging(self, as_of: date, party_type: Optional[PartyType] = None) -> AgingReport:
        """
        Bucket every open transaction dated on or before as_of.

        Transactions dated after as_of are not yet outstanding and are left out.
        """
        query = (
            select(PartyTransaction, Party)
            .join(Party, Party.id == PartyTransaction.party_id)
            .where(
                PartyTransaction.status == PartyTransactionStatus.PENDING,
                PartyTransaction.transaction_date <= as_of,
            )
            .order_by(Party.party_name, PartyTransaction.id)
        )
        if party_type:
            query = query.where(Party.party_type == party_type)

        result = await self.db.execute(query)

        report = AgingReport(as_of=as_of, party_type=party_type)
        rows: Dict[int, PartyAging] = {}
        for transaction, party in result.all():
            row = rows.get(party.id)
            if row is None:
                row = PartyAging(party_id=party.id, party_name=party.party_name, party_type=party.party_type)
                rows[party.id] = row
                report.parties.append(row)

            bucket = bucket_for(days_outstanding(as_of, transaction.transaction_date))
            amount = open_amount(transaction.debit_amount, transaction.credit_amount, party.party_type)
            row.buckets.add(bucket, amount)
            row.open_transactions += 1
            report.totals.add(bucket, amount)

        return report

    async def debtors_creditors_summary(self, party_type: Optional[PartyType] = None) -> PartyBalanceSummary:
        query = select(Party).where(Party.current_balance != 0).order_by(Party.party_name)
        if party_type:
            query = query.where(Party.party_type == party_type)
        result = await self.db.execute(query)

        summary = PartyBalanceSummary(party_type=party_type)
        for party in result.scalars().all():
            if money(party.current_balance) > ZERO:
                summary.debtors.append(party)
            else:
                summary.creditors.append(party)
        return summary
