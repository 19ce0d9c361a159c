"""
User Database Model

SQLModel table for user accounts. The primary key equals the auth
provider's user id.
"""

from datetime import datetime
from typing import Optional

from sqlmodel import Field

from subie.infrastructure.db.models.base import BaseModel


class UserModel(BaseModel, table=True):
    """
    Maps to the 'users' table.

    Rows are never hard-deleted; plan fields are written by the
    configured entitlement provider only.
    """

    __tablename__ = "users"

    email: str = Field(index=True, unique=True, max_length=320)
    phone: Optional[str] = Field(default=None, max_length=32)
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    avatar_url: Optional[str] = Field(default=None)
    email_verified: bool = Field(default=False)
    phone_verified: bool = Field(default=False)

    # App plan (derived from the entitlement provider)
    subscription_plan: str = Field(default="free", max_length=20, index=True)
    plan_expires_at: Optional[datetime] = Field(default=None)

    # Messaging credits
    sms_credits: int = Field(default=0)
    whatsapp_credits: int = Field(default=0)

    # Preferences
    timezone: str = Field(default="UTC", max_length=64)
    currency: str = Field(default="USD", max_length=3)

    role: str = Field(default="user", max_length=20, index=True)
