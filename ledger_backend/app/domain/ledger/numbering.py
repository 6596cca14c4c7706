"""
Document and journal numbering.

Numbers come from a per-(prefix, period) counter row read under a row lock,
so they are unique and monotonic within their period.
"""

from datetime import date
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_backend.app.core.config import settings
from ledger_backend.app.core.exceptions import ConcurrentPostingError
from ledger_backend.app.models.journal_entry import JournalSequence


async def next_number(db: AsyncSession, prefix: str, period: str, padding_digits: int = 4) -> str:
    result = await db.execute(
        select(JournalSequence)
        .where(JournalSequence.prefix == prefix, JournalSequence.period == period)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    sequence = result.scalar_one_or_none()

    if sequence is None:
        sequence = JournalSequence(prefix=prefix, period=period, last_number=0, padding_digits=padding_digits)
        db.add(sequence)

    sequence.last_number += 1

    try:
        await db.flush()
    except IntegrityError:
        # Another transaction opened the same period first
        raise ConcurrentPostingError("journal_sequences", [prefix, period])

    return f"{prefix}-{period}-{sequence.last_number:0{sequence.padding_digits}d}"


async def next_journal_number(db: AsyncSession, entry_date: date) -> str:
    """e.g. JE-2024-03-0001, restarting every month."""
    return await next_number(db, settings.journal_number_prefix, entry_date.strftime("%Y-%m"))


async def next_document_number(db: AsyncSession, prefix: str, document_date: date) -> str:
    """e.g. PO-2024-0001, restarting every year."""
    return await next_number(db, prefix, document_date.strftime("%Y"))
