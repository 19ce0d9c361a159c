"""
Subscription API Routes

Tracked subscriptions of the authenticated user.
Every mutation answers with the refreshed collection.
"""

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Query, status
from pydantic import BaseModel

from subie.api.dependencies import LedgerDep, StoreDep
from subie.domain.subscription import (
    SpendingAnalytics,
    Subscription,
    SubscriptionCategory,
    SubscriptionCreate,
    SubscriptionUpdate,
)
from subie.domain.transactions import Transaction


logger = logging.getLogger(__name__)

router = APIRouter()


class RecordPaymentRequest(BaseModel):
    """Payment date; defaults to today."""
    paid_on: Optional[date] = None


# =============================================================================
# Collection Endpoints
# =============================================================================

@router.get("/subscriptions", response_model=List[Subscription])
async def list_subscriptions(store: StoreDep):
    """List the caller's subscriptions ordered by next payment date."""
    return await store.list()


@router.post(
    "/subscriptions",
    response_model=List[Subscription],
    status_code=status.HTTP_201_CREATED,
)
async def create_subscription(payload: SubscriptionCreate, store: StoreDep):
    await store.create(payload)
    return store.subscriptions


@router.get("/subscriptions/upcoming", response_model=List[Subscription])
async def list_upcoming(
    store: StoreDep,
    days: Optional[int] = Query(None, ge=0, le=366),
):
    """Active subscriptions due within the window (default 30 days)."""
    return await store.upcoming(days=days)


@router.get("/subscriptions/reminders", response_model=List[Subscription])
async def list_due_reminders(store: StoreDep):
    """Active subscriptions whose reminder window includes today."""
    return await store.due_reminders()


@router.get("/subscriptions/analytics", response_model=SpendingAnalytics)
async def get_spending_analytics(store: StoreDep):
    return await store.spending_analytics()


# =============================================================================
# Item Endpoints
# =============================================================================

@router.patch("/subscriptions/{subscription_id}", response_model=List[Subscription])
async def update_subscription(
    subscription_id: str,
    payload: SubscriptionUpdate,
    store: StoreDep,
):
    await store.update(subscription_id, payload)
    return store.subscriptions


@router.delete("/subscriptions/{subscription_id}", response_model=List[Subscription])
async def delete_subscription(subscription_id: str, store: StoreDep):
    """Delete a subscription. Deleting twice is not an error."""
    await store.delete(subscription_id)
    return store.subscriptions


@router.post("/subscriptions/{subscription_id}/payments", response_model=List[Subscription])
async def record_payment(
    subscription_id: str,
    payload: RecordPaymentRequest,
    store: StoreDep,
):
    """Mark the current charge paid and move the schedule forward one cycle."""
    await store.record_payment(subscription_id, payload.paid_on)
    return store.subscriptions


@router.get("/subscriptions/{subscription_id}/transactions", response_model=List[Transaction])
async def list_subscription_transactions(subscription_id: str, ledger: LedgerDep):
    return await ledger.list_for_subscription(subscription_id)


# =============================================================================
# Lookups
# =============================================================================

@router.get("/categories", response_model=List[SubscriptionCategory])
async def list_categories(store: StoreDep):
    return await store.list_categories()
