# API Routes Module
from subie.api.routes import (
    admin,
    entitlements,
    profiles,
    subscriptions,
    transactions,
)

__all__ = [
    "admin",
    "entitlements",
    "profiles",
    "subscriptions",
    "transactions",
]
