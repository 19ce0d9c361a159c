"""
Admin Routes

User management and aggregate statistics.
Reading requires admin or moderator; changing roles requires admin.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Query

from subie.api.dependencies import AdminUser, ElevatedUser
from subie.domain.entitlements import PlanTier
from subie.domain.users import AdminStats, RoleUpdateRequest, User, UserRole
from subie.infrastructure.db.dependencies import (
    SubscriptionRepoDep,
    TransactionRepoDep,
    UserRepoDep,
)
from subie.infrastructure.exceptions import ValidationError
from subie.services.admin import build_admin_stats

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/stats", response_model=AdminStats)
async def get_stats(
    _: ElevatedUser,
    users: UserRepoDep,
    subscriptions: SubscriptionRepoDep,
    transactions: TransactionRepoDep,
):
    return await build_admin_stats(users, subscriptions, transactions)


@router.get("/users", response_model=List[User])
async def list_users(
    _: ElevatedUser,
    users: UserRepoDep,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    role: Optional[UserRole] = None,
    plan: Optional[PlanTier] = None,
):
    """List users, newest first, optionally filtered by role or plan."""
    return await users.list_users(skip=skip, limit=limit, role=role, plan=plan)


@router.patch("/users/{user_id}/role", response_model=User)
async def update_user_role(
    user_id: str,
    payload: RoleUpdateRequest,
    admin: AdminUser,
    users: UserRepoDep,
):
    """Change a user's role. Admins cannot change their own role."""
    if user_id == admin.id:
        raise ValidationError("You cannot change your own role", fields=["user_id"])

    updated = await users.update_role(user_id, payload.role)
    logger.info(f"Admin {admin.id} set role of {user_id} to {payload.role.value}")
    return updated
