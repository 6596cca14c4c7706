"""
Chart of Accounts service.

Registry of ledger accounts. Codes are immutable; accounts referenced by any
journal line can only be deactivated.
"""

import logging
from typing import List, Optional

from sqlalchemy import select, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_backend.app.core.exceptions import (
    DuplicateResourceError,
    NotFoundError,
    ResourceInUseError,
    ValidationError,
)
from ledger_backend.app.domain.ledger.money import ZERO
from ledger_backend.app.models.account import Account, AccountBalance
from ledger_backend.app.models.journal_entry import JournalLine
from ledger_backend.app.models.ledger_enums import AccountType

logger = logging.getLogger(__name__)

# Seeded on first start; codes match the posting account settings
DEFAULT_CHART = [
    ("1000", "Cash", AccountType.ASSET, "current_asset"),
    ("1010", "Bank", AccountType.ASSET, "current_asset"),
    ("1100", "Accounts Receivable", AccountType.ASSET, "current_asset"),
    ("1200", "Inventory", AccountType.ASSET, "current_asset"),
    ("1300", "VAT Input", AccountType.ASSET, "current_asset"),
    ("1500", "Property, Plant and Equipment", AccountType.ASSET, "fixed_asset"),
    ("2000", "Accounts Payable", AccountType.LIABILITY, "current_liability"),
    ("2100", "VAT Output", AccountType.LIABILITY, "current_liability"),
    ("2500", "Long-term Loans", AccountType.LIABILITY, "long_term_liability"),
    ("3000", "Owner's Capital", AccountType.EQUITY, "owner_equity"),
    ("3100", "Retained Earnings", AccountType.EQUITY, "retained_earnings"),
    ("4000", "Sales Revenue", AccountType.REVENUE, "operating_revenue"),
    ("5000", "Cost of Goods Sold", AccountType.EXPENSE, "cost_of_sales"),
    ("6000", "Operating Expenses", AccountType.EXPENSE, "operating_expense"),
]


class ChartOfAccountsService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_account(self, code: str) -> Account:
        result = await self.db.execute(select(Account).where(Account.code == code))
        account = result.scalar_one_or_none()
        if not account:
            raise NotFoundError("Account", code)
        return account

    async def list_accounts(
        self,
        account_type: Optional[AccountType] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
    ) -> List[Account]:
        query = select(Account)
        if account_type:
            query = query.where(Account.account_type == account_type)
        if is_active is not None:
            query = query.where(Account.is_active == is_active)
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(Account.code.ilike(pattern), Account.name.ilike(pattern)))
        result = await self.db.execute(query.order_by(Account.code))
        return result.scalars().all()

    async def chart(self) -> List[Account]:
        """Active accounts in code order, as shown to the journal entry form."""
        return await self.list_accounts(is_active=True)

    async def create_account(
        self,
        code: str,
        name: str,
        account_type: AccountType,
        sub_type: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Account:
        existing = await self.db.scalar(select(Account.id).where(Account.code == code))
        if existing:
            raise DuplicateResourceError("Account", {"code": code})

        account = Account(
            code=code,
            name=name,
            account_type=account_type,
            sub_type=sub_type,
            description=description,
            is_active=True,
        )
        self.db.add(account)
        try:
            await self.db.flush()
        except IntegrityError:
            raise DuplicateResourceError("Account", {"code": code})

        self.db.add(AccountBalance(
            account_id=account.id,
            total_debit=ZERO,
            total_credit=ZERO,
            balance=ZERO,
            entry_count=0,
        ))
        await self.db.flush()
        await self.db.refresh(account)

        logger.info("Created account %s %s (%s)", code, name, account_type.value)
        return account

    async def _reference_count(self, account: Account) -> int:
        return await self.db.scalar(
            select(func.count(JournalLine.id)).where(JournalLine.account_id == account.id)
        )

    async def update_account(
        self,
        code: str,
        name: Optional[str] = None,
        account_type: Optional[AccountType] = None,
        sub_type: Optional[str] = None,
        description: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> Account:
        """The code never changes; the type only while nothing references the account."""
        account = await self.get_account(code)

        if account_type and account_type != account.account_type:
            references = await self._reference_count(account)
            if references:
                raise ValidationError(
                    f"Account {code} is referenced by {references} journal lines; its type cannot change",
                    error_code="ERR_VALIDATION_ACCOUNT_TYPE",
                    details={"code": code, "references": references}
                )
            account.account_type = account_type

        if name is not None:
            account.name = name
        if sub_type is not None:
            account.sub_type = sub_type
        if description is not None:
            account.description = description
        if is_active is not None:
            account.is_active = is_active

        await self.db.flush()
        await self.db.refresh(account)
        return account

    async def delete_account(self, code: str) -> None:
        account = await self.get_account(code)

        references = await self._reference_count(account)
        if references:
            raise ResourceInUseError("Account", code, references)

        cache = await self.db.scalar(select(AccountBalance).where(AccountBalance.account_id == account.id))
        if cache:
            # Flushed first; the cache row holds the foreign key to the account
            await self.db.delete(cache)
            await self.db.flush()
        await self.db.delete(account)
        await self.db.flush()

        logger.info("Deleted account %s", code)

    async def seed_default_chart(self) -> int:
        """Create any missing default accounts. Returns how many were created."""
        result = await self.db.execute(select(Account.code))
        existing = set(result.scalars().all())

        created = 0
        for code, name, account_type, sub_type in DEFAULT_CHART:
            if code in existing:
                continue
            await self.create_account(code, name, account_type, sub_type)
            created += 1

        if created:
            logger.info("Seeded %d default accounts", created)
        return created
