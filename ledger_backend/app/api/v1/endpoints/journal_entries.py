"""
Journal Entry API Endpoints.

Draft journal entries can be edited and deleted; posting makes them
immutable and projects them onto the ledger. Posted entries are undone only
by reversal.
"""

from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from ledger_backend.app.db.session import get_db, transaction_scope
from ledger_backend.app.core.guards import require_reader, require_writer
from ledger_backend.app.domain.ledger.journal_engine import JournalEngine
from ledger_backend.app.models.ledger_enums import JournalStatus
from ledger_backend.app.schemas.journal import (
    JournalEntryCreate,
    JournalEntryListResponse,
    JournalEntryResponse,
    JournalReverseRequest,
    JournalValidationResponse,
    ValidationIssue,
)
from ledger_backend.app.services.audit import log_user_action, AuditAction

router = APIRouter(prefix="/journal-entries", tags=["Journal Entries"])


@router.post("", response_model=JournalEntryResponse, status_code=status.HTTP_201_CREATED)
async def create_journal_entry(
    entry_data: JournalEntryCreate,
    current_user: dict = Depends(require_writer),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a DRAFT journal entry.

    The entry must have at least two well-formed lines on active accounts and
    total debits must equal total credits; otherwise nothing is stored.
    """
    async with transaction_scope(db):
        entry = await JournalEngine(db).create(entry_data.to_draft(), created_by=current_user["sub"])

    await log_user_action(
        db, current_user, AuditAction.JOURNAL_CREATED, "journal_entry", entry.id,
        {"journal_number": entry.journal_number, "total_debit": str(entry.total_debit)}
    )
    return JournalEntryResponse.model_validate(entry)


@router.post("/validate", response_model=JournalValidationResponse)
async def validate_journal_entry(
    entry_data: JournalEntryCreate,
    current_user: dict = Depends(require_reader),
    db: AsyncSession = Depends(get_db)
):
    """Dry-run validation. Returns every problem found; persists nothing."""
    result = await JournalEngine(db).validate(entry_data.to_draft())
    return JournalValidationResponse(
        is_valid=result.is_valid,
        total_debit=result.total_debit,
        total_credit=result.total_credit,
        difference=result.difference,
        errors=[
            ValidationIssue(error_code=error.error_code, message=error.message, details=error.details)
            for error in result.errors
        ]
    )


@router.get("", response_model=JournalEntryListResponse)
async def list_journal_entries(
    status_filter: Optional[JournalStatus] = Query(None, alias="status"),
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    search: Optional[str] = Query(None, description="Journal number, description or company"),
    reference_type: Optional[str] = Query(None),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Items per page"),
    current_user: dict = Depends(require_reader),
    db: AsyncSession = Depends(get_db)
):
    entries, total = await JournalEngine(db).list_entries(
        status=status_filter,
        from_date=from_date,
        to_date=to_date,
        search=search,
        reference_type=reference_type,
        page=page,
        page_size=page_size,
    )
    return JournalEntryListResponse(
        entries=[JournalEntryResponse.model_validate(entry) for entry in entries],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/{entry_id}", response_model=JournalEntryResponse)
async def get_journal_entry(
    entry_id: int,
    current_user: dict = Depends(require_reader),
    db: AsyncSession = Depends(get_db)
):
    entry = await JournalEngine(db).get(entry_id)
    return JournalEntryResponse.model_validate(entry)


@router.put("/{entry_id}", response_model=JournalEntryResponse)
async def update_journal_entry(
    entry_id: int,
    entry_data: JournalEntryCreate,
    current_user: dict = Depends(require_writer),
    db: AsyncSession = Depends(get_db)
):
    """Replace a DRAFT entry. Posted entries answer 409."""
    async with transaction_scope(db):
        entry = await JournalEngine(db).update(entry_id, entry_data.to_draft(), updated_by=current_user["sub"])

    await log_user_action(
        db, current_user, AuditAction.JOURNAL_UPDATED, "journal_entry", entry.id,
        {"journal_number": entry.journal_number, "total_debit": str(entry.total_debit)}
    )
    return JournalEntryResponse.model_validate(entry)


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_journal_entry(
    entry_id: int,
    current_user: dict = Depends(require_writer),
    db: AsyncSession = Depends(get_db)
):
    async with transaction_scope(db):
        await JournalEngine(db).delete(entry_id, deleted_by=current_user["sub"])

    await log_user_action(db, current_user, AuditAction.JOURNAL_DELETED, "journal_entry", entry_id)


@router.post("/{entry_id}/post", response_model=JournalEntryResponse)
async def post_journal_entry(
    entry_id: int,
    current_user: dict = Depends(require_writer),
    db: AsyncSession = Depends(get_db)
):
    """
    Post a DRAFT entry.

    Status change and ledger projection commit together. Posting twice
    answers 409 ERR_ALREADY_POSTED.
    """
    async with transaction_scope(db):
        entry = await JournalEngine(db).post(entry_id, posted_by=current_user["sub"])

    await log_user_action(
        db, current_user, AuditAction.JOURNAL_POSTED, "journal_entry", entry.id,
        {"journal_number": entry.journal_number, "total_debit": str(entry.total_debit)}
    )
    return JournalEntryResponse.model_validate(entry)


@router.post("/{entry_id}/reverse", response_model=JournalEntryResponse, status_code=status.HTTP_201_CREATED)
async def reverse_journal_entry(
    entry_id: int,
    reverse_data: Optional[JournalReverseRequest] = None,
    current_user: dict = Depends(require_writer),
    db: AsyncSession = Depends(get_db)
):
    """Post a mirror entry for a POSTED entry. Returns the reversal."""
    reverse_data = reverse_data or JournalReverseRequest()
    async with transaction_scope(db):
        reversal = await JournalEngine(db).reverse(
            entry_id,
            reversed_by=current_user["sub"],
            reversal_date=reverse_data.reversal_date,
            description=reverse_data.description,
        )

    await log_user_action(
        db, current_user, AuditAction.JOURNAL_REVERSED, "journal_entry", entry_id,
        {"reversal_id": reversal.id, "reversal_number": reversal.journal_number}
    )
    return JournalEntryResponse.model_validate(reversal)
