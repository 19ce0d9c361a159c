"""
Transaction Repository

Billing history persistence, scoped to the owning user.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Union
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from subie.domain.transactions import (
    Transaction,
    TransactionCreate,
    TransactionStatus,
    TransactionType,
)
from subie.infrastructure.db.models.subscription import SubscriptionModel
from subie.infrastructure.db.models.transaction import TransactionModel
from subie.infrastructure.db.repositories.base_repository import (
    BaseRepository,
    to_uuid,
)
from subie.infrastructure.exceptions import ValidationError


logger = logging.getLogger(__name__)


class TransactionRepository(BaseRepository[TransactionModel]):
    """
    Repository for the transactions table.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(TransactionModel, session)

    async def list_for_user(
        self,
        user_id: Union[str, UUID],
        limit: int = 50,
    ) -> List[Transaction]:
        """Newest transactions first."""
        stmt = (
            select(TransactionModel)
            .where(TransactionModel.user_id == to_uuid(user_id))
            .order_by(TransactionModel.created_at.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [self._to_domain(model) for model in result.scalars().all()]

    async def list_for_subscription(
        self,
        user_id: Union[str, UUID],
        subscription_id: Union[str, UUID],
    ) -> List[Transaction]:
        sub_uuid = to_uuid(subscription_id)
        if sub_uuid is None:
            return []
        stmt = (
            select(TransactionModel)
            .where(
                TransactionModel.user_id == to_uuid(user_id),
                TransactionModel.subscription_id == sub_uuid,
            )
            .order_by(TransactionModel.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return [self._to_domain(model) for model in result.scalars().all()]

    async def list_payments(
        self,
        user_id: Union[str, UUID],
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Transaction]:
        """Subscription payments within an optional created_at range."""
        stmt = select(TransactionModel).where(
            TransactionModel.user_id == to_uuid(user_id),
            TransactionModel.transaction_type == TransactionType.SUBSCRIPTION_PAYMENT.value,
        )
        if start is not None:
            stmt = stmt.where(TransactionModel.created_at >= start)
        if end is not None:
            stmt = stmt.where(TransactionModel.created_at <= end)

        result = await self.session.execute(stmt)
        return [self._to_domain(model) for model in result.scalars().all()]

    async def create_for_user(
        self,
        user_id: Union[str, UUID],
        data: TransactionCreate,
    ) -> Transaction:
        """
        Record a transaction for the user.

        Raises:
            ValidationError: subscription_id does not belong to the user
        """
        user_uuid = to_uuid(user_id)
        subscription_uuid = None
        if data.subscription_id is not None:
            subscription_uuid = to_uuid(data.subscription_id)
            owned = (
                await self.session.execute(
                    select(SubscriptionModel.id).where(
                        SubscriptionModel.id == subscription_uuid,
                        SubscriptionModel.user_id == user_uuid,
                    )
                )
            ).scalar_one_or_none() if subscription_uuid else None
            if owned is None:
                raise ValidationError(
                    f"Unknown subscription {data.subscription_id}",
                    fields=["subscription_id"],
                )

        model = TransactionModel(
            user_id=user_uuid,
            subscription_id=subscription_uuid,
            amount=data.amount,
            currency=data.currency.upper(),
            status=data.status.value,
            transaction_type=data.transaction_type.value,
            external_transaction_id=data.external_transaction_id,
            provider=data.provider,
            description=data.description,
            processed_at=data.processed_at,
        )
        await self.add(model)

        logger.info(f"Recorded {data.transaction_type.value} transaction {model.id} for user {user_uuid}")
        return self._to_domain(model)

    async def exists_external(self, provider: str, external_transaction_id: str) -> bool:
        stmt = select(TransactionModel.id).where(
            TransactionModel.provider == provider,
            TransactionModel.external_transaction_id == external_transaction_id,
        )
        result = await self.session.execute(stmt)
        return result.first() is not None

    async def completed_revenue(self) -> Decimal:
        """Sum of completed subscription payments across all users."""
        stmt = select(func.coalesce(func.sum(TransactionModel.amount), 0)).where(
            TransactionModel.status == TransactionStatus.COMPLETED.value,
            TransactionModel.transaction_type == TransactionType.SUBSCRIPTION_PAYMENT.value,
        )
        result = await self.session.execute(stmt)
        return Decimal(str(result.scalar_one()))

    def _to_domain(self, model: TransactionModel) -> Transaction:
        return Transaction(
            id=str(model.id),
            user_id=str(model.user_id),
            subscription_id=str(model.subscription_id) if model.subscription_id else None,
            amount=Decimal(model.amount),
            currency=model.currency,
            status=TransactionStatus(model.status),
            transaction_type=TransactionType(model.transaction_type),
            external_transaction_id=model.external_transaction_id,
            provider=model.provider,
            description=model.description,
            processed_at=model.processed_at,
            created_at=model.created_at,
        )
