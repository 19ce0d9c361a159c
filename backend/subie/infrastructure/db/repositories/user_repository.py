"""
User Repository

Data access for user accounts: profile edits, plan sync from the
entitlement provider, role management and admin aggregates.
"""

import logging
from datetime import datetime
from typing import List, Optional, Union
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from subie.domain.entitlements import PlanTier
from subie.domain.users import AuthUser, User, UserProfileUpdate, UserRole
from subie.infrastructure.db.models.base import utcnow
from subie.infrastructure.db.models.user import UserModel
from subie.infrastructure.db.repositories.base_repository import (
    BaseRepository,
    to_uuid,
)
from subie.infrastructure.exceptions import NotFoundError, ValidationError


logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[UserModel]):
    """
    Repository for the users table.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(UserModel, session)

    async def get_user(self, user_id: Union[str, UUID]) -> Optional[User]:
        model = await self.get_by_id(user_id)
        return self._to_domain(model) if model else None

    async def get_or_create(self, identity: AuthUser) -> tuple[User, bool]:
        """
        Get the user row for an identity, creating it on first access.

        Returns:
            Tuple of (User, was_created)
        """
        existing = await self.get_by_id(identity.id)
        if existing:
            return self._to_domain(existing), False

        user_uuid = to_uuid(identity.id)
        if user_uuid is None:
            raise ValidationError("Invalid user id", fields=["id"])
        if not identity.email:
            raise ValidationError("Email is required to create a user", fields=["email"])

        model = UserModel(
            id=user_uuid,
            email=identity.email,
            first_name=identity.first_name,
            last_name=identity.last_name,
            role=UserRole.USER.value,
        )
        await self.add(model)
        logger.info(f"Created user record {user_uuid}")
        return self._to_domain(model), True

    async def update_profile(
        self,
        user_id: Union[str, UUID],
        data: UserProfileUpdate,
    ) -> User:
        model = await self._require(user_id)

        for field, value in data.model_dump(exclude_unset=True).items():
            if field == "currency" and value:
                value = value.upper()
            setattr(model, field, value)
        model.updated_at = utcnow()

        await self.session.flush()
        await self.session.refresh(model)
        return self._to_domain(model)

    async def update_plan(
        self,
        user_id: Union[str, UUID],
        plan: PlanTier,
        expires_at: Optional[datetime],
    ) -> Optional[User]:
        """
        Write the derived plan back to the user row.

        Returns:
            Updated user or None if the row does not exist
        """
        model = await self.get_by_id(user_id)
        if model is None:
            return None

        model.subscription_plan = plan.value
        model.plan_expires_at = expires_at
        model.updated_at = utcnow()

        await self.session.flush()
        await self.session.refresh(model)
        logger.info(f"Synced plan {plan.value} for user {user_id}")
        return self._to_domain(model)

    async def update_role(self, user_id: Union[str, UUID], role: UserRole) -> User:
        model = await self._require(user_id)
        model.role = role.value
        model.updated_at = utcnow()

        await self.session.flush()
        await self.session.refresh(model)
        logger.info(f"Changed role of user {user_id} to {role.value}")
        return self._to_domain(model)

    async def list_users(
        self,
        skip: int = 0,
        limit: int = 50,
        role: Optional[UserRole] = None,
        plan: Optional[PlanTier] = None,
    ) -> List[User]:
        stmt = select(UserModel)
        if role is not None:
            stmt = stmt.where(UserModel.role == role.value)
        if plan is not None:
            stmt = stmt.where(UserModel.subscription_plan == plan.value)
        stmt = stmt.order_by(UserModel.created_at.desc()).offset(skip).limit(limit)

        result = await self.session.execute(stmt)
        return [self._to_domain(model) for model in result.scalars().all()]

    async def count_by_plan(self) -> dict[str, int]:
        return await self.count_by(UserModel.subscription_plan)

    async def count_by_role(self) -> dict[str, int]:
        return await self.count_by(UserModel.role)

    async def _require(self, user_id: Union[str, UUID]) -> UserModel:
        model = await self.get_by_id(user_id)
        if model is None:
            raise NotFoundError(f"User {user_id} not found", operation="get", table="users")
        return model

    def _to_domain(self, model: UserModel) -> User:
        """Convert database model to domain entity."""
        return User(
            id=str(model.id),
            email=model.email,
            phone=model.phone,
            first_name=model.first_name,
            last_name=model.last_name,
            avatar_url=model.avatar_url,
            email_verified=model.email_verified,
            phone_verified=model.phone_verified,
            subscription_plan=PlanTier(model.subscription_plan),
            plan_expires_at=model.plan_expires_at,
            sms_credits=model.sms_credits,
            whatsapp_credits=model.whatsapp_credits,
            timezone=model.timezone,
            currency=model.currency,
            role=UserRole(model.role),
            created_at=model.created_at,
            updated_at=model.updated_at,
        )
