"""
Party sub-ledger enumerations.
"""

import enum


class PartyType(str, enum.Enum):
    CUSTOMER = "customer"  # Debtor
    SUPPLIER = "supplier"  # Creditor


class PartyReferenceType(str, enum.Enum):
    """What produced a party transaction."""
    INVOICE = "invoice"
    PAYMENT = "payment"
    PURCHASE = "purchase"
    ADJUSTMENT = "adjustment"


class PartyTransactionStatus(str, enum.Enum):
    PENDING = "PENDING"  # Open, counted in aging
    PAID = "PAID"  # Settled
