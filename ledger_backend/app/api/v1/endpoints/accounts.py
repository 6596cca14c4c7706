"""
Chart of Accounts API Endpoints.

Anyone with read access can browse the chart; only admins maintain it.
"""

from itertools import groupby
from typing import Optional
from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from ledger_backend.app.db.session import get_db, transaction_scope
from ledger_backend.app.core.guards import require_admin, require_reader
from ledger_backend.app.models.ledger_enums import AccountType
from ledger_backend.app.schemas.account import (
    AccountCreate,
    AccountListResponse,
    AccountResponse,
    AccountUpdate,
    ChartOfAccountsResponse,
    ChartSection,
)
from ledger_backend.app.services.audit import log_user_action, AuditAction
from ledger_backend.app.services.chart_of_accounts import ChartOfAccountsService

router = APIRouter(prefix="/accounts", tags=["Chart of Accounts"])


# Statement order
TYPE_ORDER = [AccountType.ASSET, AccountType.LIABILITY, AccountType.EQUITY, AccountType.REVENUE, AccountType.EXPENSE]


@router.get("", response_model=AccountListResponse)
async def list_accounts(
    account_type: Optional[AccountType] = Query(None),
    is_active: Optional[bool] = Query(None),
    search: Optional[str] = Query(None, description="Code or name"),
    current_user: dict = Depends(require_reader),
    db: AsyncSession = Depends(get_db)
):
    accounts = await ChartOfAccountsService(db).list_accounts(account_type, is_active, search)
    return AccountListResponse(
        accounts=[AccountResponse.model_validate(account) for account in accounts],
        total=len(accounts)
    )


@router.get("/chart", response_model=ChartOfAccountsResponse)
async def get_chart_of_accounts(
    current_user: dict = Depends(require_reader),
    db: AsyncSession = Depends(get_db)
):
    """Active accounts grouped by type, for account pickers."""
    accounts = await ChartOfAccountsService(db).chart()
    ordered = sorted(accounts, key=lambda a: (TYPE_ORDER.index(a.account_type), a.code))

    sections = [
        ChartSection(
            account_type=account_type,
            accounts=[AccountResponse.model_validate(account) for account in group]
        )
        for account_type, group in groupby(ordered, key=lambda a: a.account_type)
    ]
    return ChartOfAccountsResponse(sections=sections, total=len(accounts))


@router.post("", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
async def create_account(
    account_data: AccountCreate,
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    async with transaction_scope(db):
        account = await ChartOfAccountsService(db).create_account(
            code=account_data.code,
            name=account_data.name,
            account_type=account_data.account_type,
            sub_type=account_data.sub_type,
            description=account_data.description,
        )

    await log_user_action(
        db, current_user, AuditAction.ACCOUNT_CREATED, "account", account.code,
        {"name": account.name, "account_type": account.account_type.value}
    )
    return AccountResponse.model_validate(account)


@router.get("/{code}", response_model=AccountResponse)
async def get_account(
    code: str,
    current_user: dict = Depends(require_reader),
    db: AsyncSession = Depends(get_db)
):
    account = await ChartOfAccountsService(db).get_account(code)
    return AccountResponse.model_validate(account)


@router.put("/{code}", response_model=AccountResponse)
async def update_account(
    code: str,
    account_data: AccountUpdate,
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Rename, reclassify an unused account, or (de)activate. Codes never change."""
    changes = account_data.model_dump(exclude_unset=True)
    async with transaction_scope(db):
        account = await ChartOfAccountsService(db).update_account(code, **changes)

    await log_user_action(
        db, current_user, AuditAction.ACCOUNT_UPDATED, "account", account.code,
        {key: (value.value if hasattr(value, "value") else value) for key, value in changes.items()}
    )
    return AccountResponse.model_validate(account)


@router.delete("/{code}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_account(
    code: str,
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Delete an account no journal line references; otherwise 409 ERR_IN_USE."""
    async with transaction_scope(db):
        await ChartOfAccountsService(db).delete_account(code)

    await log_user_action(db, current_user, AuditAction.ACCOUNT_DELETED, "account", code)
