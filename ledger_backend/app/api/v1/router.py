"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from ledger_backend.app.api.v1.endpoints import (
    accounts, journal_entries, ledger,
    trade_documents, party_ledger, reports
)

router = APIRouter()

# Chart of accounts
router.include_router(accounts.router)

# Journal engine and ledger projection
router.include_router(journal_entries.router)
router.include_router(ledger.router)

# Purchase / sales documents and returns
router.include_router(trade_documents.purchase_router)
router.include_router(trade_documents.sales_router)
router.include_router(trade_documents.purchase_return_router)
router.include_router(trade_documents.sales_return_router)

# Customer and supplier sub-ledgers
router.include_router(party_ledger.router)

# Financial statements
router.include_router(reports.router)
