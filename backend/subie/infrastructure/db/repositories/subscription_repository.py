"""
Subscription Repository

Data access layer for tracked subscriptions.
Every query is scoped to the owning user; a row that belongs to someone
else is indistinguishable from a row that does not exist.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional, Union
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from subie.domain.subscription import (
    BillingCycle,
    Subscription,
    SubscriptionCategory,
    SubscriptionCreate,
    SubscriptionStatus,
    SubscriptionUpdate,
    schedule_error,
)
from subie.infrastructure.db.models.subscription import (
    SubscriptionCategoryModel,
    SubscriptionModel,
)
from subie.infrastructure.db.repositories.base_repository import (
    BaseRepository,
    to_uuid,
)
from subie.infrastructure.exceptions import ValidationError


logger = logging.getLogger(__name__)


class SubscriptionRepository(BaseRepository[SubscriptionModel]):
    """
    Repository for subscription CRUD with domain model mapping.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(SubscriptionModel, session)

    # =========================================================================
    # Query Methods
    # =========================================================================

    def _owned_query(self, user_id: UUID):
        return (
            select(SubscriptionModel, SubscriptionCategoryModel)
            .outerjoin(
                SubscriptionCategoryModel,
                SubscriptionModel.category_id == SubscriptionCategoryModel.id,
            )
            .where(SubscriptionModel.user_id == user_id)
        )

    async def list_for_user(
        self,
        user_id: Union[str, UUID],
        status: Optional[SubscriptionStatus] = None,
        due_on_or_before: Optional[date] = None,
    ) -> List[Subscription]:
        """
        Get all subscriptions owned by a user.

        Ordered by next_payment_date ascending, then created_at and id so
        the order is stable.
        """
        user_uuid = to_uuid(user_id)
        if user_uuid is None:
            return []

        stmt = self._owned_query(user_uuid)
        if status is not None:
            stmt = stmt.where(SubscriptionModel.status == status.value)
        if due_on_or_before is not None:
            stmt = stmt.where(SubscriptionModel.next_payment_date <= due_on_or_before)
        stmt = stmt.order_by(
            SubscriptionModel.next_payment_date.asc(),
            SubscriptionModel.created_at.asc(),
            SubscriptionModel.id.asc(),
        )

        result = await self.session.execute(stmt)
        return [self._to_domain(sub, category) for sub, category in result.all()]

    async def get_for_user(
        self,
        user_id: Union[str, UUID],
        subscription_id: Union[str, UUID],
    ) -> Optional[Subscription]:
        """Get one subscription if it exists and belongs to the user."""
        user_uuid = to_uuid(user_id)
        sub_uuid = to_uuid(subscription_id)
        if user_uuid is None or sub_uuid is None:
            return None

        stmt = self._owned_query(user_uuid).where(SubscriptionModel.id == sub_uuid)
        result = await self.session.execute(stmt)
        row = result.first()
        if row is None:
            return None
        return self._to_domain(row[0], row[1])

    async def list_all_active(self) -> List[Subscription]:
        """Active subscriptions across all users (admin statistics)."""
        stmt = select(SubscriptionModel).where(
            SubscriptionModel.status == SubscriptionStatus.ACTIVE.value
        )
        result = await self.session.execute(stmt)
        return [self._to_domain(model) for model in result.scalars().all()]

    async def count_by_status(self) -> dict[str, int]:
        return await self.count_by(SubscriptionModel.status)

    # =========================================================================
    # Command Methods
    # =========================================================================

    async def create_for_user(
        self,
        user_id: Union[str, UUID],
        data: SubscriptionCreate,
    ) -> Subscription:
        """
        Insert one subscription owned by the user.

        Raises:
            ValidationError: unknown category or inconsistent schedule
        """
        user_uuid = to_uuid(user_id)
        if user_uuid is None:
            raise ValidationError("Invalid user id", fields=["user_id"])

        problem = schedule_error(data.billing_cycle, data.next_payment_date, data.last_payment_date)
        if problem:
            raise ValidationError(problem, fields=["next_payment_date"])

        category = await self._resolve_category(data.category_id)

        model = SubscriptionModel(
            user_id=user_uuid,
            category_id=category.id if category else None,
            name=data.name,
            description=data.description,
            amount=data.amount,
            currency=data.currency.upper(),
            billing_cycle=data.billing_cycle.value,
            next_payment_date=data.next_payment_date,
            last_payment_date=data.last_payment_date,
            status=data.status.value,
            auto_renew=data.auto_renew,
            website_url=data.website_url,
            logo_url=data.logo_url,
            notes=data.notes,
            reminder_days=data.reminder_days,
        )
        await self.add(model)

        logger.info(f"Created subscription {model.id} for user {user_uuid}")
        return self._to_domain(model, category)

    async def update_for_user(
        self,
        user_id: Union[str, UUID],
        subscription_id: Union[str, UUID],
        data: SubscriptionUpdate,
    ) -> Optional[Subscription]:
        """
        Patch one owned subscription.

        Returns:
            Updated subscription, or None when not found / not owned
        """
        user_uuid = to_uuid(user_id)
        sub_uuid = to_uuid(subscription_id)
        if user_uuid is None or sub_uuid is None:
            return None

        stmt = select(SubscriptionModel).where(
            SubscriptionModel.id == sub_uuid,
            SubscriptionModel.user_id == user_uuid,
        )
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        if model is None:
            return None

        update_data = data.model_dump(exclude_unset=True)

        if "category_id" in update_data:
            category = await self._resolve_category(update_data["category_id"])
            update_data["category_id"] = category.id if category else None

        billing_cycle = update_data.get("billing_cycle", BillingCycle(model.billing_cycle))
        problem = schedule_error(
            BillingCycle(billing_cycle),
            update_data.get("next_payment_date", model.next_payment_date),
            update_data.get("last_payment_date", model.last_payment_date),
        )
        if problem:
            raise ValidationError(problem, fields=["next_payment_date"])

        for field, value in update_data.items():
            if hasattr(value, "value"):
                value = value.value
            if field == "currency" and value:
                value = value.upper()
            setattr(model, field, value)

        self.session.add(model)
        await self.session.flush()
        await self.session.refresh(model)

        logger.info(f"Updated subscription {sub_uuid} for user {user_uuid}")
        return await self.get_for_user(user_uuid, sub_uuid)

    async def delete_for_user(
        self,
        user_id: Union[str, UUID],
        subscription_id: Union[str, UUID],
    ) -> bool:
        """
        Delete one owned subscription.

        Returns:
            True if a row was removed, False if there was nothing to remove
        """
        user_uuid = to_uuid(user_id)
        sub_uuid = to_uuid(subscription_id)
        if user_uuid is None or sub_uuid is None:
            return False

        stmt = delete(SubscriptionModel).where(
            SubscriptionModel.id == sub_uuid,
            SubscriptionModel.user_id == user_uuid,
        )
        result = await self.session.execute(stmt)
        await self.session.flush()

        deleted = (result.rowcount or 0) > 0
        if deleted:
            logger.info(f"Deleted subscription {sub_uuid} for user {user_uuid}")
        return deleted

    async def total_for_user(self, user_id: Union[str, UUID]) -> int:
        user_uuid = to_uuid(user_id)
        stmt = select(func.count()).select_from(SubscriptionModel).where(
            SubscriptionModel.user_id == user_uuid
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    # =========================================================================
    # Mapping Methods
    # =========================================================================

    async def _resolve_category(
        self,
        category_id: Optional[str],
    ) -> Optional[SubscriptionCategoryModel]:
        if category_id is None:
            return None
        category_uuid = to_uuid(category_id)
        category = (
            await self.session.get(SubscriptionCategoryModel, category_uuid)
            if category_uuid else None
        )
        if category is None:
            raise ValidationError(f"Unknown category {category_id}", fields=["category_id"])
        return category

    def _to_domain(
        self,
        model: SubscriptionModel,
        category: Optional[SubscriptionCategoryModel] = None,
    ) -> Subscription:
        """Convert database model to domain entity."""
        return Subscription(
            id=str(model.id),
            user_id=str(model.user_id),
            category_id=str(model.category_id) if model.category_id else None,
            category=category_to_domain(category) if category else None,
            name=model.name,
            description=model.description,
            amount=Decimal(model.amount),
            currency=model.currency,
            billing_cycle=BillingCycle(model.billing_cycle),
            next_payment_date=model.next_payment_date,
            last_payment_date=model.last_payment_date,
            status=SubscriptionStatus(model.status),
            auto_renew=model.auto_renew,
            website_url=model.website_url,
            logo_url=model.logo_url,
            notes=model.notes,
            reminder_days=model.reminder_days,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )


def category_to_domain(model: SubscriptionCategoryModel) -> SubscriptionCategory:
    return SubscriptionCategory(
        id=str(model.id),
        name=model.name,
        description=model.description,
        icon=model.icon,
        color=model.color,
        created_at=model.created_at,
    )
