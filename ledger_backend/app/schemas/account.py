"""
Chart of Accounts Pydantic schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List
from ledger_backend.app.models.ledger_enums import AccountType, BalanceSide


class AccountCreate(BaseModel):
    """
    Schema for creating a ledger account.

    Used by POST /accounts endpoint.
    """
    code: str = Field(..., min_length=3, max_length=20, pattern=r"^[A-Z0-9-]+$", description="Unique account code")
    name: str = Field(..., min_length=1, max_length=255)
    account_type: AccountType
    sub_type: Optional[str] = Field(None, max_length=50, description="e.g. current_asset, fixed_asset, long_term_liability")
    description: Optional[str] = None


class AccountUpdate(BaseModel):
    """Schema for updating an account. The code is immutable."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    account_type: Optional[AccountType] = None
    sub_type: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = None
    is_active: Optional[bool] = None


class AccountResponse(BaseModel):
    """Schema for account response."""
    id: int
    code: str
    name: str
    account_type: AccountType
    sub_type: Optional[str] = None
    description: Optional[str] = None
    normal_balance: BalanceSide
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class AccountListResponse(BaseModel):
    accounts: List[AccountResponse]
    total: int


class ChartSection(BaseModel):
    """Active accounts of one type, in code order."""
    account_type: AccountType
    accounts: List[AccountResponse]


class ChartOfAccountsResponse(BaseModel):
    sections: List[ChartSection]
    total: int
