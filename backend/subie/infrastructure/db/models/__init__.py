"""
SQLModel ORM Models for Subie

Exports all database models for Alembic autogenerate and application use.
Import models here to register them with SQLModel.metadata.
"""

from subie.infrastructure.db.models.base import (
    BaseModel,
    TimestampMixin,
    UUIDMixin,
)
from subie.infrastructure.db.models.user import UserModel
from subie.infrastructure.db.models.subscription import (
    SubscriptionModel,
    SubscriptionCategoryModel,
)
from subie.infrastructure.db.models.transaction import TransactionModel
from subie.infrastructure.db.models.notification_preference import (
    NotificationPreferenceModel,
)


__all__ = [
    # Base
    "BaseModel",
    "TimestampMixin",
    "UUIDMixin",
    # Tables
    "UserModel",
    "SubscriptionModel",
    "SubscriptionCategoryModel",
    "TransactionModel",
    "NotificationPreferenceModel",
]
