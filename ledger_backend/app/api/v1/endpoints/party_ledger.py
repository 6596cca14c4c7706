"""
Party Ledger API Endpoints.

Customer and supplier maintenance, their transaction streams, aging and
debtor/creditor summaries.
"""

from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from ledger_backend.app.db.session import get_db, transaction_scope
from ledger_backend.app.core.guards import require_reader, require_writer
from ledger_backend.app.domain.party.party_ledger import PartyLedgerService, PaymentDetails
from ledger_backend.app.models.party_enums import PartyTransactionStatus, PartyType
from ledger_backend.app.schemas.party import (
    AgingReportResponse,
    PartyBalanceCheckResponse,
    PartyBalanceSummaryResponse,
    PartyCreate,
    PartyListResponse,
    PartyResponse,
    PartyTransactionCreate,
    PartyTransactionListResponse,
    PartyTransactionResponse,
    PartyUpdate,
    TransactionPaymentRequest,
)
from ledger_backend.app.services.audit import log_user_action, AuditAction

router = APIRouter(prefix="/party-ledger", tags=["Party Ledger"])


# Parties

@router.post("/parties", response_model=PartyResponse, status_code=status.HTTP_201_CREATED)
async def create_party(
    party_data: PartyCreate,
    current_user: dict = Depends(require_writer),
    db: AsyncSession = Depends(get_db)
):
    async with transaction_scope(db):
        party = await PartyLedgerService(db).create_party(**party_data.model_dump())

    await log_user_action(
        db, current_user, AuditAction.PARTY_CREATED, "party", party.id,
        {"party_name": party.party_name, "party_type": party.party_type.value}
    )
    return PartyResponse.model_validate(party)


@router.get("/parties", response_model=PartyListResponse)
async def list_parties(
    party_type: Optional[PartyType] = Query(None),
    search: Optional[str] = Query(None),
    has_outstanding: Optional[bool] = Query(None),
    is_active: Optional[bool] = Query(None),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Items per page"),
    current_user: dict = Depends(require_reader),
    db: AsyncSession = Depends(get_db)
):
    parties, total = await PartyLedgerService(db).list_parties(
        party_type=party_type,
        search=search,
        has_outstanding=has_outstanding,
        is_active=is_active,
        page=page,
        page_size=page_size,
    )
    return PartyListResponse(
        parties=[PartyResponse.model_validate(party) for party in parties],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/parties/{party_id}", response_model=PartyResponse)
async def get_party(
    party_id: int,
    current_user: dict = Depends(require_reader),
    db: AsyncSession = Depends(get_db)
):
    party = await PartyLedgerService(db).get_party(party_id)
    return PartyResponse.model_validate(party)


@router.put("/parties/{party_id}", response_model=PartyResponse)
async def update_party(
    party_id: int,
    party_data: PartyUpdate,
    current_user: dict = Depends(require_writer),
    db: AsyncSession = Depends(get_db)
):
    changes = party_data.model_dump(exclude_unset=True)
    async with transaction_scope(db):
        party = await PartyLedgerService(db).update_party(party_id, **changes)

    await log_user_action(
        db, current_user, AuditAction.PARTY_UPDATED, "party", party.id,
        {"fields": sorted(changes)}
    )
    return PartyResponse.model_validate(party)


@router.delete("/parties/{party_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_party(
    party_id: int,
    current_user: dict = Depends(require_writer),
    db: AsyncSession = Depends(get_db)
):
    """Only parties without transactions or documents can be deleted."""
    async with transaction_scope(db):
        await PartyLedgerService(db).delete_party(party_id)

    await log_user_action(db, current_user, AuditAction.PARTY_DELETED, "party", party_id)


@router.get("/parties/{party_id}/balance-check", response_model=PartyBalanceCheckResponse)
async def check_party_balance(
    party_id: int,
    current_user: dict = Depends(require_reader),
    db: AsyncSession = Depends(get_db)
):
    """Replay the party's stream and compare it with the cached balance."""
    result = await PartyLedgerService(db).recompute_balance(party_id)
    return PartyBalanceCheckResponse(
        party_id=party_id,
        is_consistent=result["difference"] == 0,
        **result
    )


# Transactions

@router.post("/{party_id}/transactions", response_model=PartyTransactionResponse, status_code=status.HTTP_201_CREATED)
async def record_party_transaction(
    party_id: int,
    transaction_data: PartyTransactionCreate,
    current_user: dict = Depends(require_writer),
    db: AsyncSession = Depends(get_db)
):
    async with transaction_scope(db):
        transaction = await PartyLedgerService(db).record_transaction(
            party_id, transaction_data.to_draft(), actor=current_user["sub"]
        )

    await log_user_action(
        db, current_user, AuditAction.PARTY_TRANSACTION_RECORDED, "party_transaction", transaction.id,
        {
            "party_id": party_id,
            "debit_amount": str(transaction.debit_amount),
            "credit_amount": str(transaction.credit_amount),
        }
    )
    return PartyTransactionResponse.model_validate(transaction)


@router.get("/{party_id}/transactions", response_model=PartyTransactionListResponse)
async def list_party_transactions(
    party_id: int,
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    status_filter: Optional[PartyTransactionStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=200, description="Items per page"),
    current_user: dict = Depends(require_reader),
    db: AsyncSession = Depends(get_db)
):
    party, transactions, total = await PartyLedgerService(db).get_transactions(
        party_id,
        from_date=from_date,
        to_date=to_date,
        status=status_filter,
        page=page,
        page_size=page_size,
    )
    return PartyTransactionListResponse(
        party=PartyResponse.model_validate(party),
        transactions=[PartyTransactionResponse.model_validate(t) for t in transactions],
        total=total,
        page=page,
        page_size=page_size
    )


@router.post("/transactions/{transaction_id}/mark-paid", response_model=PartyTransactionResponse)
async def mark_party_transaction_paid(
    transaction_id: int,
    payment_data: TransactionPaymentRequest,
    current_user: dict = Depends(require_writer),
    db: AsyncSession = Depends(get_db)
):
    """Settle an open transaction. A second call answers 409 ERR_ALREADY_PAID."""
    async with transaction_scope(db):
        transaction = await PartyLedgerService(db).mark_transaction_paid(
            transaction_id,
            PaymentDetails(
                payment_date=payment_data.payment_date,
                payment_method=payment_data.payment_method,
                payment_reference=payment_data.payment_reference,
            ),
            actor=current_user["sub"],
        )

    await log_user_action(
        db, current_user, AuditAction.PARTY_TRANSACTION_PAID, "party_transaction", transaction.id,
        {"party_id": transaction.party_id, "settled_by_id": transaction.settled_by_id}
    )
    return PartyTransactionResponse.model_validate(transaction)


# Derived views

@router.get("/aging", response_model=AgingReportResponse)
async def get_aging_report(
    as_of: Optional[date] = Query(None, description="Defaults to today"),
    party_type: Optional[PartyType] = Query(None),
    current_user: dict = Depends(require_reader),
    db: AsyncSession = Depends(get_db)
):
    """Open balances bucketed into current, 31-60, 61-90, 91-180 and over 180 days."""
    report = await PartyLedgerService(db).compute_aging(as_of or date.today(), party_type)
    return AgingReportResponse.model_validate(report)


@router.get("/summary", response_model=PartyBalanceSummaryResponse)
async def get_debtors_creditors_summary(
    party_type: Optional[PartyType] = Query(None),
    current_user: dict = Depends(require_reader),
    db: AsyncSession = Depends(get_db)
):
    summary = await PartyLedgerService(db).debtors_creditors_summary(party_type)
    return PartyBalanceSummaryResponse.model_validate(summary)
