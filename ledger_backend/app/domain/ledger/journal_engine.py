"""
Journal Engine (Domain Logic).

Single writer of financial truth. Validates and persists balanced journal
entries and enforces the DRAFT -> POSTED lifecycle.

Methods flush but never commit; the caller's transaction scope decides.
Validation runs before the first write, so a rejected draft persists nothing.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select, update, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_backend.app.core.config import settings
from ledger_backend.app.core.exceptions import (
    AlreadyPostedError,
    AlreadyReversedError,
    DegenerateLineError,
    ImmutableEntryError,
    InsufficientLinesError,
    NotFoundError,
    UnbalancedEntryError,
    UnknownAccountError,
    ValidationError,
)
from ledger_backend.app.domain.ledger.ledger_projector import LedgerProjector
from ledger_backend.app.domain.ledger.money import ZERO, money
from ledger_backend.app.domain.ledger.numbering import next_journal_number
from ledger_backend.app.models.account import Account
from ledger_backend.app.models.journal_entry import JournalEntry, JournalLine
from ledger_backend.app.models.ledger_enums import JournalStatus

logger = logging.getLogger(__name__)


@dataclass
class JournalLineDraft:
    account_code: str
    debit_amount: Decimal = ZERO
    credit_amount: Decimal = ZERO
    description: Optional[str] = None


@dataclass
class JournalEntryDraft:
    entry_date: date
    description: str
    lines: List[JournalLineDraft]
    company_name: Optional[str] = None
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    reversal_of_id: Optional[int] = None


@dataclass
class ValidationResult:
    total_debit: Decimal
    total_credit: Decimal
    errors: List[ValidationError] = field(default_factory=list)
    accounts: Dict[str, Account] = field(default_factory=dict, repr=False)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def difference(self) -> Decimal:
        return self.total_debit - self.total_credit

    def raise_for_errors(self):
        """Raise the most fundamental problem first."""
        if self.errors:
            raise self.errors[0]


class JournalEngine:
    """Creates, edits, posts and reverses journal entries."""

    def __init__(self, db: AsyncSession, projector: Optional[LedgerProjector] = None):
        self.db = db
        self.projector = projector or LedgerProjector(db)
        self.tolerance = settings.balance_tolerance

    def _is_balanced(self, total_debit: Decimal, total_credit: Decimal) -> bool:
        # Amounts are cent-quantized, so any difference of a full cent is rejected
        return abs(total_debit - total_credit) < self.tolerance

    async def _load_accounts(self, codes) -> Dict[str, Account]:
        if not codes:
            return {}
        result = await self.db.execute(select(Account).where(Account.code.in_(codes)))
        return {account.code: account for account in result.scalars().all()}

    async def validate(self, draft: JournalEntryDraft) -> ValidationResult:
        """
        Check a draft without writing anything.

        Order of checks: line count, line shape, account existence, balance.
        Balance is only judged when every line is well formed.
        """
        errors: List[ValidationError] = []

        if len(draft.lines) < 2:
            errors.append(InsufficientLinesError(len(draft.lines)))

        total_debit = ZERO
        total_credit = ZERO
        degenerate = False
        for number, line in enumerate(draft.lines, start=1):
            debit = money(line.debit_amount)
            credit = money(line.credit_amount)

            if debit < ZERO or credit < ZERO:
                errors.append(DegenerateLineError(number, "amounts cannot be negative"))
                degenerate = True
            elif debit > ZERO and credit > ZERO:
                errors.append(DegenerateLineError(number, "line has both a debit and a credit amount"))
                degenerate = True
            elif debit == ZERO and credit == ZERO:
                errors.append(DegenerateLineError(number, "line has neither a debit nor a credit amount"))
                degenerate = True
            else:
                total_debit += debit
                total_credit += credit

        accounts = await self._load_accounts({line.account_code for line in draft.lines})
        for number, line in enumerate(draft.lines, start=1):
            account = accounts.get(line.account_code)
            if account is None:
                errors.append(UnknownAccountError(line.account_code, number))
            elif not account.is_active:
                errors.append(UnknownAccountError(line.account_code, number, inactive=True))

        if not degenerate and draft.lines and not self._is_balanced(total_debit, total_credit):
            errors.append(UnbalancedEntryError(total_debit, total_credit))

        return ValidationResult(
            total_debit=total_debit,
            total_credit=total_credit,
            errors=errors,
            accounts=accounts,
        )

    def _build_lines(self, draft: JournalEntryDraft, accounts: Dict[str, Account]) -> List[JournalLine]:
        return [
            JournalLine(
                account_id=accounts[line.account_code].id,
                account_code=line.account_code,
                line_number=number,
                description=line.description,
                debit_amount=money(line.debit_amount),
                credit_amount=money(line.credit_amount),
            )
            for number, line in enumerate(draft.lines, start=1)
        ]

    async def get(self, entry_id: int) -> JournalEntry:
        result = await self.db.execute(select(JournalEntry).where(JournalEntry.id == entry_id))
        entry = result.scalar_one_or_none()
        if not entry:
            raise NotFoundError("Journal entry", entry_id)
        return entry

    async def list_entries(
        self,
        status: Optional[JournalStatus] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        search: Optional[str] = None,
        reference_type: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[JournalEntry], int]:
        query = select(JournalEntry)

        if status:
            query = query.where(JournalEntry.status == status)
        if from_date:
            query = query.where(JournalEntry.entry_date >= from_date)
        if to_date:
            query = query.where(JournalEntry.entry_date <= to_date)
        if reference_type:
            query = query.where(JournalEntry.reference_type == reference_type)
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(
                JournalEntry.journal_number.ilike(pattern),
                JournalEntry.description.ilike(pattern),
                JournalEntry.company_name.ilike(pattern),
            ))

        total = await self.db.scalar(select(func.count()).select_from(query.subquery()))

        query = query.order_by(JournalEntry.entry_date.desc(), JournalEntry.id.desc())
        query = query.offset((page - 1) * page_size).limit(page_size)
        result = await self.db.execute(query)

        return result.scalars().all(), total

    async def create(self, draft: JournalEntryDraft, created_by: str) -> JournalEntry:
        """Validate and persist as DRAFT with a fresh period-scoped journal number."""
        result = await self.validate(draft)
        result.raise_for_errors()

        journal_number = await next_journal_number(self.db, draft.entry_date)

        entry = JournalEntry(
            journal_number=journal_number,
            entry_date=draft.entry_date,
            description=draft.description,
            company_name=draft.company_name,
            reference_type=draft.reference_type,
            reference_id=draft.reference_id,
            reversal_of_id=draft.reversal_of_id,
            total_debit=result.total_debit,
            total_credit=result.total_credit,
            status=JournalStatus.DRAFT,
            created_by=created_by,
        )
        entry.lines = self._build_lines(draft, result.accounts)

        self.db.add(entry)
        await self.db.flush()
        await self.db.refresh(entry)

        logger.info("Created journal entry %s (%s) by %s", entry.journal_number, entry.total_debit, created_by)
        return entry

    async def _claim_draft(self, entry: JournalEntry, **values) -> None:
        """
        Compare-and-set on status = DRAFT.

        The UPDATE takes the row lock, so a concurrent post or edit of the same
        entry waits here and then sees the committed status.
        """
        values.setdefault("updated_at", func.now())
        result = await self.db.execute(
            update(JournalEntry)
            .where(JournalEntry.id == entry.id, JournalEntry.status == JournalStatus.DRAFT)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self.db.refresh(entry)
            if "status" in values:
                raise AlreadyPostedError(entry.id, entry.journal_number)
            raise ImmutableEntryError(entry.id, entry.journal_number)

    async def post(self, entry_id: int, posted_by: str) -> JournalEntry:
        """
        DRAFT -> POSTED, then project every line, in one transaction.

        Double posting is rejected with AlreadyPostedError; it is never
        absorbed, since it would double the financial impact.
        """
        entry = await self.get(entry_id)
        if entry.status == JournalStatus.POSTED:
            raise AlreadyPostedError(entry.id, entry.journal_number)

        await self._claim_draft(
            entry,
            status=JournalStatus.POSTED,
            posted_by=posted_by,
            posted_at=datetime.now(timezone.utc),
        )
        # Lines as committed at the moment the status flipped
        await self.db.refresh(entry)

        total_debit = sum((money(line.debit_amount) for line in entry.lines), ZERO)
        total_credit = sum((money(line.credit_amount) for line in entry.lines), ZERO)
        if len(entry.lines) < 2:
            raise InsufficientLinesError(len(entry.lines))
        if not self._is_balanced(total_debit, total_credit) \
                or total_debit != money(entry.total_debit) or total_credit != money(entry.total_credit):
            raise UnbalancedEntryError(total_debit, total_credit)

        await self.projector.project(entry)

        logger.info("Posted journal entry %s by %s", entry.journal_number, posted_by)
        return entry

    async def create_and_post(self, draft: JournalEntryDraft, actor: str) -> JournalEntry:
        """Path used by automatic journals; never leaves a DRAFT behind on success."""
        entry = await self.create(draft, created_by=actor)
        return await self.post(entry.id, posted_by=actor)

    async def update(self, entry_id: int, draft: JournalEntryDraft, updated_by: str) -> JournalEntry:
        """Replace header fields and all lines of a DRAFT entry."""
        entry = await self.get(entry_id)
        if entry.status == JournalStatus.POSTED:
            raise ImmutableEntryError(entry.id, entry.journal_number)

        result = await self.validate(draft)
        result.raise_for_errors()

        await self._claim_draft(entry)

        entry.entry_date = draft.entry_date
        entry.description = draft.description
        entry.company_name = draft.company_name
        entry.reference_type = draft.reference_type
        entry.reference_id = draft.reference_id
        entry.total_debit = result.total_debit
        entry.total_credit = result.total_credit

        # Old lines go first so line numbers can be reused
        entry.lines.clear()
        await self.db.flush()
        entry.lines.extend(self._build_lines(draft, result.accounts))
        await self.db.flush()
        await self.db.refresh(entry)

        logger.info("Updated draft journal entry %s by %s", entry.journal_number, updated_by)
        return entry

    async def delete(self, entry_id: int, deleted_by: str) -> None:
        entry = await self.get(entry_id)
        if entry.status == JournalStatus.POSTED:
            raise ImmutableEntryError(entry.id, entry.journal_number)

        await self._claim_draft(entry)
        await self.db.delete(entry)
        await self.db.flush()

        logger.info("Deleted draft journal entry %s by %s", entry.journal_number, deleted_by)

    async def reverse(
        self,
        entry_id: int,
        reversed_by: str,
        reversal_date: Optional[date] = None,
        description: Optional[str] = None,
    ) -> JournalEntry:
        """
        Post a mirror entry with debit and credit swapped.

        This is the only way to undo a posted entry. Each entry can be
        reversed once.
        """
        original = await self.get(entry_id)
        if original.status != JournalStatus.POSTED:
            raise ValidationError(
                f"Journal entry {original.journal_number} is a draft; delete it instead of reversing",
                error_code="ERR_VALIDATION_NOT_POSTED",
                details={"id": original.id, "status": original.status.value}
            )

        existing = await self.db.scalar(
            select(JournalEntry.id).where(JournalEntry.reversal_of_id == original.id)
        )
        if existing:
            raise AlreadyReversedError(original.id, existing)

        draft = JournalEntryDraft(
            entry_date=reversal_date or original.entry_date,
            description=description or f"Reversal of {original.journal_number}: {original.description}",
            company_name=original.company_name,
            reference_type=original.reference_type,
            reference_id=original.reference_id,
            reversal_of_id=original.id,
            lines=[
                JournalLineDraft(
                    account_code=line.account_code,
                    debit_amount=money(line.credit_amount),
                    credit_amount=money(line.debit_amount),
                    description=line.description,
                )
                for line in original.lines
            ],
        )
        reversal = await self.create_and_post(draft, reversed_by)

        logger.info("Reversed journal entry %s with %s", original.journal_number, reversal.journal_number)
        return reversal
