"""
Receivable / payable aging.

Buckets by whole days elapsed since the transaction date:

    current      0 - 30
    days_31_60  31 - 60
    days_61_90  61 - 90
    days_91_180 91 - 180
    over_180    181+

A boundary day belongs to the lower bucket (day 30 is current, day 31 is
not). Each open transaction lands in exactly one bucket.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional

from ledger_backend.app.domain.ledger.money import ZERO, money
from ledger_backend.app.models.party_enums import PartyType

# (bucket name, inclusive upper bound in days)
AGING_BUCKETS = (
    ("current", 30),
    ("days_31_60", 60),
    ("days_61_90", 90),
    ("days_91_180", 180),
    ("over_180", None),
)


def bucket_for(days: int) -> str:
    for name, upper in AGING_BUCKETS:
        if upper is None or days <= upper:
            return name
    raise AssertionError("unreachable")


def days_outstanding(as_of: date, transaction_date: date) -> int:
    return (as_of - transaction_date).days


def open_amount(debit_amount: Decimal, credit_amount: Decimal, party_type: PartyType) -> Decimal:
    """
    Amount outstanding on a transaction, on the party's natural side.

    Customers owe us debits, we owe suppliers credits; a return against
    either therefore ages as a negative amount.
    """
    net = money(debit_amount) - money(credit_amount)
    if party_type == PartyType.SUPPLIER:
        return -net
    return net


@dataclass
class AgingBuckets:
    current: Decimal = ZERO
    days_31_60: Decimal = ZERO
    days_61_90: Decimal = ZERO
    days_91_180: Decimal = ZERO
    over_180: Decimal = ZERO

    def add(self, bucket: str, amount: Decimal) -> None:
        setattr(self, bucket, getattr(self, bucket) + amount)

    @property
    def total(self) -> Decimal:
        return sum((getattr(self, name) for name, _ in AGING_BUCKETS), ZERO)


@dataclass
class PartyAging:
    party_id: int
    party_name: str
    party_type: PartyType
    buckets: AgingBuckets = field(default_factory=AgingBuckets)
    open_transactions: int = 0

    @property
    def total(self) -> Decimal:
        return self.buckets.total


@dataclass
class AgingReport:
    as_of: date
    party_type: Optional[PartyType]
    parties: List[PartyAging] = field(default_factory=list)
    totals: AgingBuckets = field(default_factory=AgingBuckets)

    @property
    def total_parties(self) -> int:
        return len(self.parties)

    @property
    def total_outstanding(self) -> Decimal:
        return self.totals.total
