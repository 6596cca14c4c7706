"""
Ledger Projector (Domain Logic).

Derives per-account ledgers and running balances from posted journal lines.

The only write path is project(), called by the journal engine inside the
posting transaction. Everything else is a read that replays ledger entries
in (entry_date, id) order, which must agree with the incrementally stored
running_balance column at every row.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from ledger_backend.app.core.exceptions import ConcurrentPostingError, NotFoundError, ValidationError
from ledger_backend.app.domain.ledger.money import ZERO, money, split_balance
from ledger_backend.app.models.account import Account, AccountBalance
from ledger_backend.app.models.journal_entry import JournalEntry, JournalLine
from ledger_backend.app.models.ledger_entry import LedgerEntry
from ledger_backend.app.models.ledger_enums import BalanceSide, JournalStatus

logger = logging.getLogger(__name__)


@dataclass
class LedgerLine:
    id: int
    entry_date: date
    journal_entry_id: int
    journal_number: str
    description: Optional[str]
    debit_amount: Decimal
    credit_amount: Decimal
    balance: Decimal  # Replayed
    running_balance: Decimal  # As stored at posting time


@dataclass
class AccountLedger:
    account_code: str
    account_name: str
    from_date: Optional[date]
    to_date: Optional[date]
    opening_balance: Decimal
    closing_balance: Decimal
    total_debit: Decimal
    total_credit: Decimal
    entries: List[LedgerLine] = field(default_factory=list)


@dataclass
class AccountBalanceView:
    account_code: str
    as_of: Optional[date]
    amount: Decimal
    side: BalanceSide
    total_debit: Decimal
    total_credit: Decimal


@dataclass
class LedgerVerification:
    """Replay vs stored state for one account. Mismatches are data, not errors."""
    account_code: str
    replayed_balance: Decimal
    cached_balance: Decimal
    entry_count: int
    mismatches: List[Dict[str, str]] = field(default_factory=list)

    @property
    def is_consistent(self) -> bool:
        return not self.mismatches and self.replayed_balance == self.cached_balance


class LedgerProjector:
    """Projects posted journal entries onto per-account ledgers."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def project(self, entry: JournalEntry) -> List[LedgerEntry]:
        """
        Append one ledger entry per journal line and update balance caches.

        Balance rows are locked in account order before any write so that two
        postings touching the same accounts serialize instead of interleaving.
        An entry dated before existing ones shifts the running balance of the
        later rows by its delta, keeping the stored column equal to a replay.
        """
        if entry.status != JournalStatus.POSTED:
            raise ValidationError(
                f"Journal entry {entry.journal_number} is not posted",
                error_code="ERR_VALIDATION_NOT_POSTED",
                details={"id": entry.id, "status": entry.status.value}
            )

        account_ids = sorted({line.account_id for line in entry.lines})
        balances = await self._lock_balances(account_ids)

        projected = []
        for line in entry.lines:
            projected.append(await self._append(entry, line))

            cache = balances[line.account_id]
            cache.total_debit = money(cache.total_debit) + money(line.debit_amount)
            cache.total_credit = money(cache.total_credit) + money(line.credit_amount)
            cache.balance = money(cache.balance) + money(line.debit_amount) - money(line.credit_amount)
            cache.entry_count += 1
            cache.last_posted_at = entry.posted_at or datetime.now(timezone.utc)

        try:
            await self.db.flush()
        except (StaleDataError, IntegrityError):
            codes = sorted({line.account_code for line in entry.lines})
            logger.warning("Concurrent posting detected for %s on accounts %s", entry.journal_number, codes)
            raise ConcurrentPostingError("account_balances", codes)

        logger.info(
            "Projected %s: %d ledger entries across %d accounts",
            entry.journal_number, len(projected), len(account_ids)
        )
        return projected

    async def _lock_balances(self, account_ids: List[int]) -> Dict[int, AccountBalance]:
        result = await self.db.execute(
            select(AccountBalance)
            .where(AccountBalance.account_id.in_(account_ids))
            .order_by(AccountBalance.account_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        balances = {row.account_id: row for row in result.scalars().all()}

        for account_id in account_ids:
            if account_id not in balances:
                cache = AccountBalance(
                    account_id=account_id,
                    total_debit=ZERO,
                    total_credit=ZERO,
                    balance=ZERO,
                    entry_count=0,
                )
                self.db.add(cache)
                balances[account_id] = cache

        return balances

    async def _append(self, entry: JournalEntry, line: JournalLine) -> LedgerEntry:
        debit = money(line.debit_amount)
        credit = money(line.credit_amount)
        delta = debit - credit

        previous = await self.db.scalar(
            select(LedgerEntry.running_balance)
            .where(
                LedgerEntry.account_id == line.account_id,
                LedgerEntry.entry_date <= entry.entry_date,
            )
            .order_by(LedgerEntry.entry_date.desc(), LedgerEntry.id.desc())
            .limit(1)
        )

        # Backdated posting: rows after this date move by the same delta
        if delta != ZERO:
            await self.db.execute(
                update(LedgerEntry)
                .where(
                    LedgerEntry.account_id == line.account_id,
                    LedgerEntry.entry_date > entry.entry_date,
                )
                .values(running_balance=LedgerEntry.running_balance + delta)
                .execution_options(synchronize_session="fetch")
            )

        ledger_entry = LedgerEntry(
            account_id=line.account_id,
            account_code=line.account_code,
            journal_entry_id=entry.id,
            journal_line_id=line.id,
            journal_number=entry.journal_number,
            entry_date=entry.entry_date,
            description=line.description or entry.description[:255],
            debit_amount=debit,
            credit_amount=credit,
            running_balance=money(previous) + delta,
        )
        self.db.add(ledger_entry)
        # The next line may hit the same account and must see this row
        await self.db.flush()
        return ledger_entry

    async def _get_account(self, account_code: str) -> Account:
        result = await self.db.execute(select(Account).where(Account.code == account_code))
        account = result.scalar_one_or_none()
        if not account:
            raise NotFoundError("Account", account_code)
        return account

    async def _sum_before(self, account_id: int, before: date) -> Tuple[Decimal, Decimal]:
        result = await self.db.execute(
            select(
                func.coalesce(func.sum(LedgerEntry.debit_amount), 0),
                func.coalesce(func.sum(LedgerEntry.credit_amount), 0),
            ).where(LedgerEntry.account_id == account_id, LedgerEntry.entry_date < before)
        )
        debit, credit = result.one()
        return money(debit), money(credit)

    async def get_account_ledger(
        self,
        account_code: str,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
    ) -> AccountLedger:
        """
        Replay an account's ledger in (entry_date, id) order.

        The accumulator starts from zero, or from the replayed balance of
        everything before from_date when a window is requested.
        """
        account = await self._get_account(account_code)

        opening = ZERO
        if from_date:
            debit_before, credit_before = await self._sum_before(account.id, from_date)
            opening = debit_before - credit_before

        query = select(LedgerEntry).where(LedgerEntry.account_id == account.id)
        if from_date:
            query = query.where(LedgerEntry.entry_date >= from_date)
        if to_date:
            query = query.where(LedgerEntry.entry_date <= to_date)
        query = query.order_by(LedgerEntry.entry_date, LedgerEntry.id)

        result = await self.db.execute(query)

        balance = opening
        total_debit = ZERO
        total_credit = ZERO
        lines = []
        for row in result.scalars().all():
            debit = money(row.debit_amount)
            credit = money(row.credit_amount)
            balance += debit - credit
            total_debit += debit
            total_credit += credit
            lines.append(LedgerLine(
                id=row.id,
                entry_date=row.entry_date,
                journal_entry_id=row.journal_entry_id,
                journal_number=row.journal_number,
                description=row.description,
                debit_amount=debit,
                credit_amount=credit,
                balance=balance,
                running_balance=money(row.running_balance),
            ))

        return AccountLedger(
            account_code=account.code,
            account_name=account.name,
            from_date=from_date,
            to_date=to_date,
            opening_balance=opening,
            closing_balance=balance,
            total_debit=total_debit,
            total_credit=total_credit,
            entries=lines,
        )

    async def get_account_balance(self, account_code: str, as_of: Optional[date] = None) -> AccountBalanceView:
        """Aggregate debit - credit up to and including as_of, reported unsigned with a side."""
        account = await self._get_account(account_code)

        query = select(
            func.coalesce(func.sum(LedgerEntry.debit_amount), 0),
            func.coalesce(func.sum(LedgerEntry.credit_amount), 0),
        ).where(LedgerEntry.account_id == account.id)
        if as_of:
            query = query.where(LedgerEntry.entry_date <= as_of)

        debit, credit = (await self.db.execute(query)).one()
        amount, side = split_balance(money(debit) - money(credit))

        return AccountBalanceView(
            account_code=account.code,
            as_of=as_of,
            amount=amount,
            side=side,
            total_debit=money(debit),
            total_credit=money(credit),
        )

    async def balances_as_of(
        self,
        as_of: Optional[date] = None,
        from_date: Optional[date] = None,
    ) -> Dict[int, Tuple[Decimal, Decimal]]:
        """
        Debit and credit totals per account id, optionally windowed.

        Runs as one grouped SELECT so every account in the result comes from
        the same snapshot.
        """
        query = select(
            LedgerEntry.account_id,
            func.coalesce(func.sum(LedgerEntry.debit_amount), 0),
            func.coalesce(func.sum(LedgerEntry.credit_amount), 0),
        ).group_by(LedgerEntry.account_id)
        if as_of:
            query = query.where(LedgerEntry.entry_date <= as_of)
        if from_date:
            query = query.where(LedgerEntry.entry_date >= from_date)

        result = await self.db.execute(query)
        return {
            account_id: (money(debit), money(credit))
            for account_id, debit, credit in result.all()
        }

    async def verify_account(self, account_code: str) -> LedgerVerification:
        """Compare a full replay against stored running balances and the balance cache."""
        ledger = await self.get_account_ledger(account_code)
        account = await self._get_account(account_code)

        cache = await self.db.scalar(select(AccountBalance).where(AccountBalance.account_id == account.id))
        cached = money(cache.balance) if cache else ZERO

        mismatches = [
            {
                "ledger_entry_id": str(line.id),
                "stored": str(line.running_balance),
                "replayed": str(line.balance),
            }
            for line in ledger.entries
            if line.running_balance != line.balance
        ]

        verification = LedgerVerification(
            account_code=account_code,
            replayed_balance=ledger.closing_balance,
            cached_balance=cached,
            entry_count=len(ledger.entries),
            mismatches=mismatches,
        )
        if not verification.is_consistent:
            logger.warning(
                "Ledger drift on account %s: replayed=%s cached=%s mismatches=%d",
                account_code, verification.replayed_balance, cached, len(mismatches)
            )
        return verification
