"""
Subscription Category Repository
"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from subie.domain.subscription import SubscriptionCategory
from subie.infrastructure.db.models.subscription import SubscriptionCategoryModel
from subie.infrastructure.db.repositories.base_repository import BaseRepository
from subie.infrastructure.db.repositories.subscription_repository import (
    category_to_domain,
)


class CategoryRepository(BaseRepository[SubscriptionCategoryModel]):
    """
    Read access to the category lookup table, plus idempotent seeding.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(SubscriptionCategoryModel, session)

    async def list_all(self) -> List[SubscriptionCategory]:
        """All categories ordered by name."""
        stmt = select(SubscriptionCategoryModel).order_by(SubscriptionCategoryModel.name)
        result = await self.session.execute(stmt)
        return [category_to_domain(model) for model in result.scalars().all()]

    async def get_by_name(self, name: str) -> Optional[SubscriptionCategory]:
        stmt = select(SubscriptionCategoryModel).where(SubscriptionCategoryModel.name == name)
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        return category_to_domain(model) if model else None

    async def get_or_create(self, category: SubscriptionCategory) -> tuple[SubscriptionCategory, bool]:
        """
        Get a category by name or create it.

        Returns:
            Tuple of (category, was_created)
        """
        existing = await self.get_by_name(category.name)
        if existing:
            return existing, False

        model = SubscriptionCategoryModel(
            name=category.name,
            description=category.description,
            icon=category.icon,
            color=category.color,
        )
        await self.add(model)
        return category_to_domain(model), True
