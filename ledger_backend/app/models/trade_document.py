"""
Trade document database models.

Purchases, sales and their returns share one table; document_type decides
the posting rule. Each document links the journal entries it produced.
"""

from sqlalchemy import (
    Column, Integer, String, Date, DateTime, Enum, ForeignKey, Numeric, Text
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ledger_backend.app.db.session import Base
from ledger_backend.app.models.document_enums import DocumentType, DocumentStatus, PaymentMethod


class TradeDocument(Base):
    """
    Trade Document model.

    Creation posts exactly one journal entry (journal_entry_id); marking paid
    posts exactly one settlement entry (settlement_journal_entry_id).
    Workflow: PENDING -> PAID, or PENDING -> CANCELLED. Both end states are locked.
    """
    __tablename__ = "trade_documents"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    document_type = Column(Enum(DocumentType), nullable=False, index=True)
    document_number = Column(String(50), unique=True, nullable=False, index=True)
    document_date = Column(Date, nullable=False, index=True)
    bill_number = Column(String(100), nullable=True)  # Supplier bill / customer invoice reference

    party_id = Column(Integer, ForeignKey('parties.id'), nullable=False, index=True)
    original_document_id = Column(Integer, ForeignKey('trade_documents.id'), nullable=True)

    # Financials
    subtotal = Column(Numeric(18, 2), nullable=False)
    discount_amount = Column(Numeric(18, 2), default=0, nullable=False)
    taxable_amount = Column(Numeric(18, 2), nullable=False)
    vat_rate = Column(Numeric(5, 2), nullable=False)
    vat_amount = Column(Numeric(18, 2), nullable=False)
    total_amount = Column(Numeric(18, 2), nullable=False)

    payment_method = Column(Enum(PaymentMethod), default=PaymentMethod.CREDIT, nullable=False)
    status = Column(Enum(DocumentStatus), default=DocumentStatus.PENDING, nullable=False, index=True)
    due_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)

    # Financial impact
    journal_entry_id = Column(Integer, ForeignKey('journal_entries.id'), nullable=True)
    settlement_journal_entry_id = Column(Integer, ForeignKey('journal_entries.id'), nullable=True, unique=True)
    party_transaction_id = Column(Integer, ForeignKey('party_transactions.id'), nullable=True)

    paid_at = Column(DateTime(timezone=True), nullable=True)
    payment_reference = Column(String(100), nullable=True)

    created_by = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    lines = relationship(
        "TradeDocumentLine",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="TradeDocumentLine.id",
    )

    def __repr__(self):
        return f"<TradeDocument(number='{self.document_number}', type='{self.document_type.value}', total={self.total_amount}, status='{self.status.value}')>"


class TradeDocumentLine(Base):
    """Item line of a trade document."""
    __tablename__ = "trade_document_lines"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    document_id = Column(Integer, ForeignKey('trade_documents.id', ondelete="CASCADE"), nullable=False, index=True)

    description = Column(String(255), nullable=False)
    quantity = Column(Numeric(18, 3), nullable=False)
    unit_price = Column(Numeric(18, 2), nullable=False)
    amount = Column(Numeric(18, 2), nullable=False)

    def __repr__(self):
        return f"<TradeDocumentLine(document={self.document_id}, qty={self.quantity}, price={self.unit_price})>"
