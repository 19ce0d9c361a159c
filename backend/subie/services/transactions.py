"""
Transaction Ledger

Billing history of the session's identity.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from subie.domain.transactions import (
    SpendingSummary,
    Transaction,
    TransactionCreate,
    summarize_payments,
)
from subie.infrastructure.db.repositories import TransactionRepository
from subie.infrastructure.exceptions import AccessDeniedError
from subie.services.session import SessionContext
from subie.services.subscription_store import parse_fields


logger = logging.getLogger(__name__)


class TransactionLedger:
    """Owner-scoped reads and writes of the transactions table."""

    def __init__(self, repository: TransactionRepository, context: SessionContext):
        self._repository = repository
        self._context = context

    async def list(self, limit: int = 50) -> List[Transaction]:
        """Newest first."""
        user_id = self._context.user_id
        if user_id is None:
            return []
        return await self._repository.list_for_user(user_id, limit=limit)

    async def list_for_subscription(self, subscription_id: str) -> List[Transaction]:
        user_id = self._context.user_id
        if user_id is None:
            return []
        return await self._repository.list_for_subscription(user_id, subscription_id)

    async def create(
        self,
        fields: Union[TransactionCreate, Dict[str, Any]],
    ) -> Transaction:
        user_id = self._context.user_id
        if user_id is None:
            raise AccessDeniedError("User not authenticated", required="authenticated")
        data = parse_fields(TransactionCreate, fields)
        return await self._repository.create_for_user(user_id, data)

    async def spending_summary(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> SpendingSummary:
        """
        Totals over subscription payments created between `start` and `end`.

        Only completed payments count towards `total_spent`.
        """
        user_id = self._context.user_id
        if user_id is None:
            return SpendingSummary()
        payments = await self._repository.list_payments(user_id, start=start, end=end)
        return summarize_payments(payments)
