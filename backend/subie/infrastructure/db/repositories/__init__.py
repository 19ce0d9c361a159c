"""
Repository Layer for Subie

Exports all repository classes for dependency injection.
"""

from subie.infrastructure.db.repositories.base_repository import (
    BaseRepository,
    to_uuid,
)
from subie.infrastructure.db.repositories.subscription_repository import (
    SubscriptionRepository,
)
from subie.infrastructure.db.repositories.category_repository import (
    CategoryRepository,
)
from subie.infrastructure.db.repositories.user_repository import (
    UserRepository,
)
from subie.infrastructure.db.repositories.transaction_repository import (
    TransactionRepository,
)
from subie.infrastructure.db.repositories.notification_preference_repository import (
    NotificationPreferenceRepository,
)


__all__ = [
    # Base
    "BaseRepository",
    "to_uuid",
    # Repositories
    "SubscriptionRepository",
    "CategoryRepository",
    "UserRepository",
    "TransactionRepository",
    "NotificationPreferenceRepository",
]
