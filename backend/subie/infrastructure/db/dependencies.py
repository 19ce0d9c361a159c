"""
Dependency Injection Providers for Subie

Provides FastAPI dependencies for database sessions and repositories.
"""

from typing import Annotated, AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from subie.infrastructure.db.database import get_session
from subie.infrastructure.db.repositories import (
    CategoryRepository,
    NotificationPreferenceRepository,
    SubscriptionRepository,
    TransactionRepository,
    UserRepository,
)


# Type alias for session dependency
SessionDep = Annotated[AsyncSession, Depends(get_session)]


async def get_subscription_repository(
    session: SessionDep,
) -> AsyncGenerator[SubscriptionRepository, None]:
    """
    Dependency provider for SubscriptionRepository.

    Usage:
        @router.get("/subscriptions")
        async def list_subscriptions(
            repo: SubscriptionRepository = Depends(get_subscription_repository)
        ):
            ...
    """
    yield SubscriptionRepository(session)


async def get_category_repository(
    session: SessionDep,
) -> AsyncGenerator[CategoryRepository, None]:
    yield CategoryRepository(session)


async def get_user_repository(
    session: SessionDep,
) -> AsyncGenerator[UserRepository, None]:
    yield UserRepository(session)


async def get_transaction_repository(
    session: SessionDep,
) -> AsyncGenerator[TransactionRepository, None]:
    yield TransactionRepository(session)


async def get_notification_preference_repository(
    session: SessionDep,
) -> AsyncGenerator[NotificationPreferenceRepository, None]:
    yield NotificationPreferenceRepository(session)


# Type aliases for repository dependencies
SubscriptionRepoDep = Annotated[
    SubscriptionRepository,
    Depends(get_subscription_repository)
]
CategoryRepoDep = Annotated[
    CategoryRepository,
    Depends(get_category_repository)
]
UserRepoDep = Annotated[
    UserRepository,
    Depends(get_user_repository)
]
TransactionRepoDep = Annotated[
    TransactionRepository,
    Depends(get_transaction_repository)
]
NotificationPreferenceRepoDep = Annotated[
    NotificationPreferenceRepository,
    Depends(get_notification_preference_repository)
]
