"""
Profile Routes

The authenticated user's own account and reminder preferences.
"""

from fastapi import APIRouter

from subie.api.dependencies import (
    CurrentUser,
    NotificationPreferenceRepoDep,
)
from subie.infrastructure.db.dependencies import UserRepoDep
from subie.domain.users import NotificationPreferences, User, UserProfileUpdate
from subie.infrastructure.exceptions import NotFoundError


router = APIRouter()


@router.get("/profiles/me", response_model=User)
async def get_my_profile(user: CurrentUser, users: UserRepoDep):
    """
    Get the current user's profile.

    The row is created on the first authenticated request.
    """
    profile = await users.get_user(user.id)
    if profile is None:
        raise NotFoundError(f"No profile found for user {user.id}", table="users")
    return profile


@router.patch("/profiles/me", response_model=User)
async def update_my_profile(
    payload: UserProfileUpdate,
    user: CurrentUser,
    users: UserRepoDep,
):
    return await users.update_profile(user.id, payload)


@router.get("/profiles/me/notifications", response_model=NotificationPreferences)
async def get_my_notification_preferences(
    user: CurrentUser,
    preferences: NotificationPreferenceRepoDep,
):
    return await preferences.get_for_user(user.id)


@router.put("/profiles/me/notifications", response_model=NotificationPreferences)
async def replace_my_notification_preferences(
    payload: NotificationPreferences,
    user: CurrentUser,
    preferences: NotificationPreferenceRepoDep,
):
    return await preferences.upsert(user.id, payload)
