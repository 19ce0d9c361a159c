"""
Database Infrastructure Package for Subie

Exports database utilities, models, and repositories.
"""

from subie.infrastructure.db.database import (
    DatabaseManager,
    get_db_manager,
    get_session,
    get_session_context,
    init_db,
    close_db,
)

from subie.infrastructure.db.dependencies import (
    SessionDep,
    get_subscription_repository,
    get_category_repository,
    get_user_repository,
    get_transaction_repository,
    get_notification_preference_repository,
    SubscriptionRepoDep,
    CategoryRepoDep,
    UserRepoDep,
    TransactionRepoDep,
    NotificationPreferenceRepoDep,
)


__all__ = [
    # Database management
    "DatabaseManager",
    "get_db_manager",
    "get_session",
    "get_session_context",
    "init_db",
    "close_db",
    # Dependencies
    "SessionDep",
    "get_subscription_repository",
    "get_category_repository",
    "get_user_repository",
    "get_transaction_repository",
    "get_notification_preference_repository",
    "SubscriptionRepoDep",
    "CategoryRepoDep",
    "UserRepoDep",
    "TransactionRepoDep",
    "NotificationPreferenceRepoDep",
]
