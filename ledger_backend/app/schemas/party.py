"""
Party sub-ledger Pydantic schemas.

`current_balance` and transaction `balance` are signed: positive means the
party owes us (debtor), negative means we owe the party (creditor).
"""

from pydantic import BaseModel, EmailStr, Field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List
from ledger_backend.app.domain.party.party_ledger import PartyTransactionDraft
from ledger_backend.app.models.ledger_enums import BalanceSide
from ledger_backend.app.models.party_enums import PartyReferenceType, PartyTransactionStatus, PartyType


class PartyCreate(BaseModel):
    """
    Schema for registering a customer or supplier.

    Used by POST /party-ledger/parties endpoint.
    """
    party_name: str = Field(..., min_length=1, max_length=255)
    party_type: PartyType
    contact_number: Optional[str] = Field(None, max_length=20)
    email: Optional[EmailStr] = None
    address: Optional[str] = None
    pan_number: Optional[str] = Field(None, pattern=r"^[0-9]{9}$", description="9-digit PAN")
    opening_balance: Decimal = Field(Decimal("0"), ge=0, max_digits=18, decimal_places=2)
    opening_balance_type: BalanceSide = BalanceSide.DEBIT
    credit_limit: Optional[Decimal] = Field(None, ge=0, max_digits=18, decimal_places=2)


class PartyUpdate(BaseModel):
    party_name: Optional[str] = Field(None, min_length=1, max_length=255)
    contact_number: Optional[str] = Field(None, max_length=20)
    email: Optional[EmailStr] = None
    address: Optional[str] = None
    pan_number: Optional[str] = Field(None, pattern=r"^[0-9]{9}$")
    opening_balance: Optional[Decimal] = Field(None, ge=0, max_digits=18, decimal_places=2)
    opening_balance_type: Optional[BalanceSide] = None
    credit_limit: Optional[Decimal] = Field(None, ge=0, max_digits=18, decimal_places=2)
    is_active: Optional[bool] = None


class PartyResponse(BaseModel):
    id: int
    party_name: str
    party_type: PartyType
    contact_number: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    pan_number: Optional[str] = None
    opening_balance: Decimal
    opening_balance_type: BalanceSide
    current_balance: Decimal
    credit_limit: Optional[Decimal] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PartyListResponse(BaseModel):
    parties: List[PartyResponse]
    total: int
    page: int
    page_size: int


class PartyTransactionCreate(BaseModel):
    """Manual entry on a party's stream (e.g. an opening adjustment or an off-document payment)."""
    transaction_date: date
    description: str = Field(..., min_length=1, max_length=255)
    reference_type: PartyReferenceType
    reference_id: Optional[str] = Field(None, max_length=50)
    debit_amount: Decimal = Field(Decimal("0"), ge=0, max_digits=18, decimal_places=2)
    credit_amount: Decimal = Field(Decimal("0"), ge=0, max_digits=18, decimal_places=2)
    journal_entry_id: Optional[int] = None

    def to_draft(self) -> PartyTransactionDraft:
        return PartyTransactionDraft(
            transaction_date=self.transaction_date,
            description=self.description,
            reference_type=self.reference_type,
            reference_id=self.reference_id,
            debit_amount=self.debit_amount,
            credit_amount=self.credit_amount,
            journal_entry_id=self.journal_entry_id,
        )


class PartyTransactionResponse(BaseModel):
    id: int
    party_id: int
    transaction_date: date
    description: str
    reference_type: PartyReferenceType
    reference_id: Optional[str] = None
    journal_entry_id: Optional[int] = None
    debit_amount: Decimal
    credit_amount: Decimal
    balance: Decimal
    status: PartyTransactionStatus
    payment_date: Optional[date] = None
    payment_method: Optional[str] = None
    payment_reference: Optional[str] = None
    settled_by_id: Optional[int] = None
    created_by: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class PartyTransactionListResponse(BaseModel):
    party: PartyResponse
    transactions: List[PartyTransactionResponse]
    total: int
    page: int
    page_size: int


class TransactionPaymentRequest(BaseModel):
    payment_date: date
    payment_method: str = Field(..., max_length=50)
    payment_reference: Optional[str] = Field(None, max_length=100)


class AgingBucketsResponse(BaseModel):
    current: Decimal
    days_31_60: Decimal
    days_61_90: Decimal
    days_91_180: Decimal
    over_180: Decimal
    total: Decimal

    class Config:
        from_attributes = True


class PartyAgingResponse(BaseModel):
    party_id: int
    party_name: str
    party_type: PartyType
    buckets: AgingBucketsResponse
    open_transactions: int
    total: Decimal

    class Config:
        from_attributes = True


class AgingReportResponse(BaseModel):
    as_of: date
    party_type: Optional[PartyType] = None
    parties: List[PartyAgingResponse]
    totals: AgingBucketsResponse
    total_parties: int
    total_outstanding: Decimal

    class Config:
        from_attributes = True


class PartyBalanceSummaryResponse(BaseModel):
    party_type: Optional[PartyType] = None
    debtors: List[PartyResponse]
    creditors: List[PartyResponse]
    total_debtors: Decimal
    total_creditors: Decimal
    net_position: Decimal

    class Config:
        from_attributes = True


class PartyBalanceCheckResponse(BaseModel):
    party_id: int
    replayed_balance: Decimal
    cached_balance: Decimal
    difference: Decimal
    is_consistent: bool
