"""
Notification Preference Database Model
"""

from datetime import datetime
from uuid import UUID

from sqlmodel import Field, SQLModel

from subie.infrastructure.db.models.base import utcnow


class NotificationPreferenceModel(SQLModel, table=True):
    """
    One row per user, keyed by user_id.
    """

    __tablename__ = "notification_preferences"

    user_id: UUID = Field(foreign_key="users.id", primary_key=True)
    email_enabled: bool = Field(default=True)
    sms_enabled: bool = Field(default=False)
    whatsapp_enabled: bool = Field(default=False)
    push_enabled: bool = Field(default=True)
    reminder_days_default: int = Field(default=3)
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column_kwargs={"onupdate": utcnow},
    )
