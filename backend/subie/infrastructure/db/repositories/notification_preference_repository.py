"""
Notification Preference Repository
"""

from typing import Union
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from subie.domain.users import NotificationPreferences
from subie.infrastructure.db.models.base import utcnow
from subie.infrastructure.db.models.notification_preference import (
    NotificationPreferenceModel,
)
from subie.infrastructure.db.repositories.base_repository import (
    BaseRepository,
    to_uuid,
)


class NotificationPreferenceRepository(BaseRepository[NotificationPreferenceModel]):
    """
    Read and upsert a user's reminder delivery preferences.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(NotificationPreferenceModel, session)

    async def get_for_user(self, user_id: Union[str, UUID]) -> NotificationPreferences:
        """Stored preferences, or the defaults when none were saved."""
        model = await self.get_by_id(user_id)
        if model is None:
            return NotificationPreferences()
        return NotificationPreferences.model_validate(model)

    async def upsert(
        self,
        user_id: Union[str, UUID],
        preferences: NotificationPreferences,
    ) -> NotificationPreferences:
        model = await self.get_by_id(user_id)
        if model is None:
            model = NotificationPreferenceModel(user_id=to_uuid(user_id))
            self.session.add(model)

        for field, value in preferences.model_dump().items():
            setattr(model, field, value)
        model.updated_at = utcnow()

        await self.session.flush()
        await self.session.refresh(model)
        return NotificationPreferences.model_validate(model)
