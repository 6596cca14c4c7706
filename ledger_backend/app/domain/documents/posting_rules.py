"""
Posting rules for trade documents.

Maps each document kind to its accounting effect. This module only builds
line drafts; persistence and the debit == credit check belong to the
journal engine.

    Purchase         Dr Inventory (taxable)   Dr VAT Input (vat)     Cr Payable (total)
    Sale             Dr Receivable (total)    Cr Sales (taxable)     Cr VAT Output (vat)
    Purchase return  mirror of Purchase
    Sales return     mirror of Sale

    Purchase paid         Dr Payable      Cr Cash/Bank
    Sale paid             Dr Cash/Bank    Cr Receivable
    Purchase return paid  Dr Cash/Bank    Cr Payable
    Sales return paid     Dr Receivable   Cr Cash/Bank
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Tuple

from ledger_backend.app.core.config import settings
from ledger_backend.app.core.exceptions import InvalidDocumentError
from ledger_backend.app.domain.ledger.journal_engine import JournalLineDraft
from ledger_backend.app.domain.ledger.money import ZERO, money
from ledger_backend.app.models.document_enums import DocumentType, PaymentMethod
from ledger_backend.app.models.party_enums import PartyReferenceType, PartyType

DOCUMENT_PREFIXES = {
    DocumentType.PURCHASE: "PO",
    DocumentType.SALE: "SI",
    DocumentType.PURCHASE_RETURN: "PR",
    DocumentType.SALES_RETURN: "SR",
}

DOCUMENT_LABELS = {
    DocumentType.PURCHASE: "Purchase entry",
    DocumentType.SALE: "Sales entry",
    DocumentType.PURCHASE_RETURN: "Purchase return",
    DocumentType.SALES_RETURN: "Sales return",
}

PARTY_TYPES = {
    DocumentType.PURCHASE: PartyType.SUPPLIER,
    DocumentType.PURCHASE_RETURN: PartyType.SUPPLIER,
    DocumentType.SALE: PartyType.CUSTOMER,
    DocumentType.SALES_RETURN: PartyType.CUSTOMER,
}

# Document kind a return must point back to
ORIGINAL_TYPES = {
    DocumentType.PURCHASE_RETURN: DocumentType.PURCHASE,
    DocumentType.SALES_RETURN: DocumentType.SALE,
}

RETURN_TYPES = tuple(ORIGINAL_TYPES)


@dataclass(frozen=True)
class DocumentAmounts:
    subtotal: Decimal
    discount_amount: Decimal
    taxable_amount: Decimal
    vat_rate: Decimal
    vat_amount: Decimal
    total_amount: Decimal


def line_amount(quantity: Decimal, unit_price: Decimal) -> Decimal:
    return money(Decimal(quantity) * Decimal(unit_price))


def compute_amounts(
    lines: Iterable[Tuple[Decimal, Decimal]],
    discount_amount: Decimal = ZERO,
    vat_rate: Decimal = None,
) -> DocumentAmounts:
    """
    taxable = round(sum(quantity * unit_price), 2) - discount
    vat     = round(taxable * rate / 100, 2)
    total   = taxable + vat
    """
    rate = Decimal(settings.vat_rate if vat_rate is None else vat_rate)
    if rate < 0 or rate > 100:
        raise InvalidDocumentError("VAT rate must be between 0 and 100", {"vat_rate": str(rate)})

    lines = list(lines)
    if not lines:
        raise InvalidDocumentError("Document must have at least one item")

    for number, (quantity, unit_price) in enumerate(lines, start=1):
        if Decimal(quantity) <= 0:
            raise InvalidDocumentError(f"Item {number}: quantity must be positive", {"item": number})
        if Decimal(unit_price) < 0:
            raise InvalidDocumentError(f"Item {number}: unit price cannot be negative", {"item": number})

    subtotal = money(sum((Decimal(q) * Decimal(p) for q, p in lines), ZERO))
    discount = money(discount_amount)
    if discount < ZERO or discount > subtotal:
        raise InvalidDocumentError(
            "Discount must be between zero and the subtotal",
            {"subtotal": str(subtotal), "discount_amount": str(discount)}
        )

    taxable = subtotal - discount
    if taxable <= ZERO:
        raise InvalidDocumentError("Taxable amount must be positive", {"taxable_amount": str(taxable)})

    vat = money(taxable * rate / 100)
    return DocumentAmounts(
        subtotal=subtotal,
        discount_amount=discount,
        taxable_amount=taxable,
        vat_rate=rate,
        vat_amount=vat,
        total_amount=taxable + vat,
    )


def _debit(code: str, amount: Decimal, description: str = None) -> JournalLineDraft:
    return JournalLineDraft(account_code=code, debit_amount=amount, credit_amount=ZERO, description=description)


def _credit(code: str, amount: Decimal, description: str = None) -> JournalLineDraft:
    return JournalLineDraft(account_code=code, debit_amount=ZERO, credit_amount=amount, description=description)


def _mirror(lines: List[JournalLineDraft]) -> List[JournalLineDraft]:
    return [
        JournalLineDraft(
            account_code=line.account_code,
            debit_amount=line.credit_amount,
            credit_amount=line.debit_amount,
            description=line.description,
        )
        for line in lines
    ]


def _without_zero_lines(lines: List[JournalLineDraft]) -> List[JournalLineDraft]:
    # A zero-rated document has no VAT leg
    return [line for line in lines if line.debit_amount != ZERO or line.credit_amount != ZERO]


def document_postings(document_type: DocumentType, amounts: DocumentAmounts) -> List[JournalLineDraft]:
    if document_type in (DocumentType.PURCHASE, DocumentType.PURCHASE_RETURN):
        lines = [
            _debit(settings.inventory_account_code, amounts.taxable_amount, "Inventory"),
            _debit(settings.vat_input_account_code, amounts.vat_amount, "VAT input"),
            _credit(settings.payable_account_code, amounts.total_amount, "Accounts payable"),
        ]
    else:
        lines = [
            _debit(settings.receivable_account_code, amounts.total_amount, "Accounts receivable"),
            _credit(settings.sales_account_code, amounts.taxable_amount, "Sales revenue"),
            _credit(settings.vat_output_account_code, amounts.vat_amount, "VAT output"),
        ]

    if document_type in RETURN_TYPES:
        lines = _mirror(lines)
    return _without_zero_lines(lines)


def settlement_account_code(payment_method: PaymentMethod) -> str:
    if payment_method == PaymentMethod.CASH:
        return settings.cash_account_code
    if payment_method in (PaymentMethod.BANK_TRANSFER, PaymentMethod.CHEQUE):
        return settings.bank_account_code
    raise InvalidDocumentError(
        "A settlement needs a cash, bank transfer or cheque payment method",
        {"payment_method": payment_method.value}
    )


def settlement_postings(
    document_type: DocumentType,
    total_amount: Decimal,
    payment_method: PaymentMethod,
) -> List[JournalLineDraft]:
    funds = settlement_account_code(payment_method)

    if document_type in (DocumentType.PURCHASE, DocumentType.PURCHASE_RETURN):
        lines = [
            _debit(settings.payable_account_code, total_amount, "Accounts payable"),
            _credit(funds, total_amount, "Payment"),
        ]
    else:
        lines = [
            _debit(funds, total_amount, "Receipt"),
            _credit(settings.receivable_account_code, total_amount, "Accounts receivable"),
        ]

    if document_type in RETURN_TYPES:
        lines = _mirror(lines)
    return lines


def party_posting(document_type: DocumentType, total_amount: Decimal) -> Tuple[Decimal, Decimal, PartyReferenceType]:
    """(debit, credit, reference type) on the party sub-ledger; debit means the party owes us more."""
    if document_type == DocumentType.PURCHASE:
        return ZERO, total_amount, PartyReferenceType.PURCHASE
    if document_type == DocumentType.SALE:
        return total_amount, ZERO, PartyReferenceType.INVOICE
    if document_type == DocumentType.PURCHASE_RETURN:
        return total_amount, ZERO, PartyReferenceType.ADJUSTMENT
    if document_type == DocumentType.SALES_RETURN:
        return ZERO, total_amount, PartyReferenceType.ADJUSTMENT
    raise ValueError(f"Unhandled document type {document_type}")
