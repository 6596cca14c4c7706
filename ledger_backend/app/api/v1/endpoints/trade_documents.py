"""
Trade Document API Endpoints.

Purchase entries, sales entries, purchase returns and sales returns share
one workflow and differ only in posting rules, so their routers are built
from a single factory.

Every write posts journals and party transactions in the same database
transaction as the document itself.
"""

from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from ledger_backend.app.db.session import get_db, transaction_scope
from ledger_backend.app.core.guards import require_reader, require_writer
from ledger_backend.app.domain.documents.transaction_generator import TransactionGenerator
from ledger_backend.app.models.document_enums import DocumentStatus, DocumentType
from ledger_backend.app.schemas.trade_document import (
    DocumentCreate,
    DocumentListResponse,
    DocumentResponse,
    MarkPaidRequest,
)
from ledger_backend.app.services.audit import log_user_action, AuditAction


def build_document_router(document_type: DocumentType, prefix: str, tag: str) -> APIRouter:
    router = APIRouter(prefix=prefix, tags=[tag])
    target_type = document_type.value.lower()

    @router.post("", response_model=DocumentResponse, status_code=status.HTTP_201_CREATED)
    async def create_document(
        document_data: DocumentCreate,
        current_user: dict = Depends(require_writer),
        db: AsyncSession = Depends(get_db)
    ):
        async with transaction_scope(db):
            document = await TransactionGenerator(db).create_document(
                document_type, document_data.to_draft(), actor=current_user["sub"]
            )

        await log_user_action(
            db, current_user, AuditAction.DOCUMENT_CREATED, target_type, document.id,
            {
                "document_number": document.document_number,
                "total_amount": str(document.total_amount),
                "journal_entry_id": document.journal_entry_id,
            }
        )
        return DocumentResponse.model_validate(document)

    @router.get("", response_model=DocumentListResponse)
    async def list_documents(
        status_filter: Optional[DocumentStatus] = Query(None, alias="status"),
        party_id: Optional[int] = Query(None),
        from_date: Optional[date] = Query(None),
        to_date: Optional[date] = Query(None),
        search: Optional[str] = Query(None, description="Document or bill number"),
        page: int = Query(1, ge=1, description="Page number"),
        page_size: int = Query(20, ge=1, le=100, description="Items per page"),
        current_user: dict = Depends(require_reader),
        db: AsyncSession = Depends(get_db)
    ):
        documents, total = await TransactionGenerator(db).list_documents(
            document_type=document_type,
            status=status_filter,
            party_id=party_id,
            from_date=from_date,
            to_date=to_date,
            search=search,
            page=page,
            page_size=page_size,
        )
        return DocumentListResponse(
            documents=[DocumentResponse.model_validate(document) for document in documents],
            total=total,
            page=page,
            page_size=page_size
        )

    @router.get("/{document_id}", response_model=DocumentResponse)
    async def get_document(
        document_id: int,
        current_user: dict = Depends(require_reader),
        db: AsyncSession = Depends(get_db)
    ):
        document = await TransactionGenerator(db).get_document(document_id, document_type)
        return DocumentResponse.model_validate(document)

    @router.put("/{document_id}", response_model=DocumentResponse)
    async def update_document(
        document_id: int,
        document_data: DocumentCreate,
        current_user: dict = Depends(require_writer),
        db: AsyncSession = Depends(get_db)
    ):
        """Amend a PENDING document: the old journal is reversed and a new one posted."""
        async with transaction_scope(db):
            document = await TransactionGenerator(db).update_document(
                document_id, document_type, document_data.to_draft(), actor=current_user["sub"]
            )

        await log_user_action(
            db, current_user, AuditAction.DOCUMENT_UPDATED, target_type, document.id,
            {
                "document_number": document.document_number,
                "total_amount": str(document.total_amount),
                "journal_entry_id": document.journal_entry_id,
            }
        )
        return DocumentResponse.model_validate(document)

    @router.delete("/{document_id}", response_model=DocumentResponse)
    async def cancel_document(
        document_id: int,
        current_user: dict = Depends(require_writer),
        db: AsyncSession = Depends(get_db)
    ):
        """
        Cancel a PENDING document.

        Posted journals are never deleted: the document is marked CANCELLED and
        its journal is reversed.
        """
        async with transaction_scope(db):
            document = await TransactionGenerator(db).cancel_document(
                document_id, document_type, actor=current_user["sub"]
            )

        await log_user_action(
            db, current_user, AuditAction.DOCUMENT_CANCELLED, target_type, document.id,
            {"document_number": document.document_number}
        )
        return DocumentResponse.model_validate(document)

    @router.post("/{document_id}/mark-paid", response_model=DocumentResponse)
    async def mark_document_paid(
        document_id: int,
        payment_data: MarkPaidRequest,
        current_user: dict = Depends(require_writer),
        db: AsyncSession = Depends(get_db)
    ):
        """Post the settlement journal. A second call answers 409 ERR_ALREADY_PAID."""
        async with transaction_scope(db):
            document = await TransactionGenerator(db).mark_paid(
                document_id, document_type, payment_data.to_payment(), actor=current_user["sub"]
            )

        await log_user_action(
            db, current_user, AuditAction.DOCUMENT_PAID, target_type, document.id,
            {
                "document_number": document.document_number,
                "payment_method": document.payment_method.value,
                "settlement_journal_entry_id": document.settlement_journal_entry_id,
            }
        )
        return DocumentResponse.model_validate(document)

    return router


purchase_router = build_document_router(DocumentType.PURCHASE, "/purchase-entries", "Purchase Entries")
sales_router = build_document_router(DocumentType.SALE, "/sales-entries", "Sales Entries")
purchase_return_router = build_document_router(DocumentType.PURCHASE_RETURN, "/purchase-returns", "Purchase Returns")
sales_return_router = build_document_router(DocumentType.SALES_RETURN, "/sales-returns", "Sales Returns")
