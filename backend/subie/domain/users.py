"""
User Domain Models

Roles, the authenticated identity and profile DTOs.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from subie.domain.entitlements import PlanTier


class UserRole(str, Enum):
    """Account role."""
    USER = "user"
    ADMIN = "admin"
    MODERATOR = "moderator"


class AuthUser(BaseModel):
    """The identity a session acts on behalf of."""
    id: str
    email: Optional[str] = None
    role: UserRole = UserRole.USER
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_moderator(self) -> bool:
        return self.role == UserRole.MODERATOR

    @property
    def has_elevated_access(self) -> bool:
        """Admins and moderators may enter the admin area."""
        return self.is_admin or self.is_moderator

    @property
    def full_name(self) -> Optional[str]:
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) if parts else None


class User(BaseModel):
    """User account record."""
    id: str
    email: str
    phone: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar_url: Optional[str] = None
    email_verified: bool = False
    phone_verified: bool = False
    subscription_plan: PlanTier = PlanTier.FREE
    plan_expires_at: Optional[datetime] = None
    sms_credits: int = 0
    whatsapp_credits: int = 0
    timezone: str = "UTC"
    currency: str = "USD"
    role: UserRole = UserRole.USER
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    def to_auth_user(self) -> AuthUser:
        return AuthUser(
            id=self.id,
            email=self.email,
            role=self.role,
            first_name=self.first_name,
            last_name=self.last_name,
        )


class UserProfileUpdate(BaseModel):
    """Profile fields a user may edit on their own account."""
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=32)
    avatar_url: Optional[str] = None
    timezone: Optional[str] = Field(default=None, max_length=64)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)

    model_config = ConfigDict(extra="forbid")


class NotificationPreferences(BaseModel):
    """Per-user reminder delivery channels."""
    email_enabled: bool = True
    sms_enabled: bool = False
    whatsapp_enabled: bool = False
    push_enabled: bool = True
    reminder_days_default: int = Field(default=3, ge=0, le=365)

    model_config = ConfigDict(from_attributes=True)


class RoleUpdateRequest(BaseModel):
    role: UserRole


class AdminStats(BaseModel):
    """Aggregate statistics for the admin dashboard."""
    users_total: int
    users_by_plan: dict[str, int]
    users_by_role: dict[str, int]
    subscriptions_total: int
    subscriptions_by_status: dict[str, int]
    tracked_monthly_spend: float
    completed_revenue: float
