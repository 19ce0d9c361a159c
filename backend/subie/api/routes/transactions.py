"""
Transaction API Routes

Billing history of the authenticated user.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Query, status

from subie.api.dependencies import LedgerDep
from subie.domain.transactions import SpendingSummary, Transaction, TransactionCreate


router = APIRouter()


@router.get("/transactions", response_model=List[Transaction])
async def list_transactions(
    ledger: LedgerDep,
    limit: int = Query(50, ge=1, le=500),
):
    """Newest transactions first."""
    return await ledger.list(limit=limit)


@router.post(
    "/transactions",
    response_model=Transaction,
    status_code=status.HTTP_201_CREATED,
)
async def create_transaction(payload: TransactionCreate, ledger: LedgerDep):
    return await ledger.create(payload)


@router.get("/transactions/summary", response_model=SpendingSummary)
async def get_spending_summary(
    ledger: LedgerDep,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
):
    """Totals over subscription payments in an optional date range."""
    return await ledger.spending_summary(start=start, end=end)
