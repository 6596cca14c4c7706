"""
Journal Entry Pydantic schemas.

Amounts are Decimal with two places and serialize as strings. Line shape and
balance are checked by the journal engine, not here, so that a bad entry is
reported with its accounting error code rather than a generic 422.
"""

from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List, Any, Dict
from ledger_backend.app.domain.ledger.journal_engine import JournalEntryDraft, JournalLineDraft
from ledger_backend.app.models.ledger_enums import JournalStatus


class JournalLineIn(BaseModel):
    account_code: str = Field(..., max_length=20)
    debit_amount: Decimal = Field(Decimal("0"), max_digits=18, decimal_places=2)
    credit_amount: Decimal = Field(Decimal("0"), max_digits=18, decimal_places=2)
    description: Optional[str] = Field(None, max_length=255)


class JournalEntryCreate(BaseModel):
    """
    Schema for creating or replacing a draft journal entry.

    Used by POST /journal-entries, POST /journal-entries/validate and
    PUT /journal-entries/{id}.
    """
    entry_date: date
    description: str = Field(..., min_length=1)
    company_name: Optional[str] = Field(None, max_length=255)
    reference_type: Optional[str] = Field(None, max_length=50)
    reference_id: Optional[str] = Field(None, max_length=50)
    lines: List[JournalLineIn]

    def to_draft(self) -> JournalEntryDraft:
        return JournalEntryDraft(
            entry_date=self.entry_date,
            description=self.description,
            company_name=self.company_name,
            reference_type=self.reference_type,
            reference_id=self.reference_id,
            lines=[
                JournalLineDraft(
                    account_code=line.account_code,
                    debit_amount=line.debit_amount,
                    credit_amount=line.credit_amount,
                    description=line.description,
                )
                for line in self.lines
            ],
        )


class JournalReverseRequest(BaseModel):
    reversal_date: Optional[date] = Field(None, description="Defaults to the original entry date")
    description: Optional[str] = None


class JournalLineResponse(BaseModel):
    id: int
    line_number: int
    account_code: str
    description: Optional[str] = None
    debit_amount: Decimal
    credit_amount: Decimal

    class Config:
        from_attributes = True


class JournalEntryResponse(BaseModel):
    """Schema for journal entry response."""
    id: int
    journal_number: str
    entry_date: date
    description: str
    company_name: Optional[str] = None
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    reversal_of_id: Optional[int] = None
    total_debit: Decimal
    total_credit: Decimal
    status: JournalStatus
    created_by: str
    posted_by: Optional[str] = None
    posted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    lines: List[JournalLineResponse]

    class Config:
        from_attributes = True


class JournalEntryListResponse(BaseModel):
    entries: List[JournalEntryResponse]
    total: int
    page: int
    page_size: int


class ValidationIssue(BaseModel):
    error_code: str
    message: str
    details: Dict[str, Any] = {}


class JournalValidationResponse(BaseModel):
    """Result of POST /journal-entries/validate. Nothing is persisted."""
    is_valid: bool
    total_debit: Decimal
    total_credit: Decimal
    difference: Decimal
    errors: List[ValidationIssue]
