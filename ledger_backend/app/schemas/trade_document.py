"""
Trade document schemas (purchase entries, sales entries and their returns).
"""

from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List
from ledger_backend.app.domain.documents.transaction_generator import (
    DocumentDraft,
    DocumentLineDraft,
    DocumentPayment,
)
from ledger_backend.app.models.document_enums import DocumentStatus, DocumentType, PaymentMethod


class DocumentLineIn(BaseModel):
    description: str = Field(..., min_length=1, max_length=255)
    quantity: Decimal = Field(..., max_digits=18, decimal_places=3)
    unit_price: Decimal = Field(..., max_digits=18, decimal_places=2)


class DocumentCreate(BaseModel):
    """
    Schema for creating or amending a trade document.

    VAT defaults to the configured rate when vat_rate is omitted.
    """
    party_id: int
    document_date: date
    lines: List[DocumentLineIn]
    discount_amount: Decimal = Field(Decimal("0"), max_digits=18, decimal_places=2)
    vat_rate: Optional[Decimal] = Field(None, max_digits=5, decimal_places=2)
    payment_method: PaymentMethod = PaymentMethod.CREDIT
    bill_number: Optional[str] = Field(None, max_length=100)
    due_date: Optional[date] = None
    notes: Optional[str] = None
    original_document_id: Optional[int] = Field(None, description="Returns only: the purchase or sale being returned")

    def to_draft(self) -> DocumentDraft:
        return DocumentDraft(
            party_id=self.party_id,
            document_date=self.document_date,
            lines=[
                DocumentLineDraft(description=line.description, quantity=line.quantity, unit_price=line.unit_price)
                for line in self.lines
            ],
            discount_amount=self.discount_amount,
            vat_rate=self.vat_rate,
            payment_method=self.payment_method,
            bill_number=self.bill_number,
            due_date=self.due_date,
            notes=self.notes,
            original_document_id=self.original_document_id,
        )


class MarkPaidRequest(BaseModel):
    payment_date: date
    payment_method: Optional[PaymentMethod] = Field(None, description="Defaults to the document's payment method")
    payment_reference: Optional[str] = Field(None, max_length=100)

    def to_payment(self) -> DocumentPayment:
        return DocumentPayment(
            payment_date=self.payment_date,
            payment_method=self.payment_method,
            payment_reference=self.payment_reference,
        )


class DocumentLineResponse(BaseModel):
    id: int
    description: str
    quantity: Decimal
    unit_price: Decimal
    amount: Decimal

    class Config:
        from_attributes = True


class DocumentResponse(BaseModel):
    id: int
    document_type: DocumentType
    document_number: str
    document_date: date
    bill_number: Optional[str] = None
    party_id: int
    original_document_id: Optional[int] = None
    subtotal: Decimal
    discount_amount: Decimal
    taxable_amount: Decimal
    vat_rate: Decimal
    vat_amount: Decimal
    total_amount: Decimal
    payment_method: PaymentMethod
    status: DocumentStatus
    due_date: Optional[date] = None
    notes: Optional[str] = None
    journal_entry_id: Optional[int] = None
    settlement_journal_entry_id: Optional[int] = None
    party_transaction_id: Optional[int] = None
    paid_at: Optional[datetime] = None
    payment_reference: Optional[str] = None
    created_by: str
    created_at: datetime
    updated_at: datetime
    lines: List[DocumentLineResponse]

    class Config:
        from_attributes = True


class DocumentListResponse(BaseModel):
    documents: List[DocumentResponse]
    total: int
    page: int
    page_size: int
