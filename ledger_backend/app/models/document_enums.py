"""
Trade document enumerations.
"""

import enum


class DocumentType(str, enum.Enum):
    """Document kinds handled by the transaction generators."""
    PURCHASE = "PURCHASE"
    SALE = "SALE"
    PURCHASE_RETURN = "PURCHASE_RETURN"
    SALES_RETURN = "SALES_RETURN"


class DocumentStatus(str, enum.Enum):
    PENDING = "PENDING"  # Journal posted, not settled
    PAID = "PAID"  # Settlement journal posted, locked
    CANCELLED = "CANCELLED"  # Reversed, locked


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    CHEQUE = "cheque"
    CREDIT = "credit"  # On account; not valid for settlement
