"""
Subscription Database Models

SQLModel tables for tracked subscriptions and their categories.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel

from subie.infrastructure.db.models.base import BaseModel, utcnow


class SubscriptionCategoryModel(SQLModel, table=True):
    """
    Maps to the 'subscription_categories' lookup table.
    """

    __tablename__ = "subscription_categories"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str = Field(unique=True, max_length=100)
    description: Optional[str] = Field(default=None)
    icon: Optional[str] = Field(default=None, max_length=50)
    color: Optional[str] = Field(default=None, max_length=20)
    created_at: datetime = Field(default_factory=utcnow)


class SubscriptionModel(BaseModel, table=True):
    """
    Maps to the 'subscriptions' table.

    Every row belongs to exactly one user; queries always filter on
    user_id.
    """

    __tablename__ = "subscriptions"

    user_id: UUID = Field(foreign_key="users.id", index=True, nullable=False)
    category_id: Optional[UUID] = Field(
        default=None,
        foreign_key="subscription_categories.id",
        index=True,
    )

    name: str = Field(max_length=200)
    description: Optional[str] = Field(default=None)
    amount: Decimal = Field(max_digits=12, decimal_places=2)
    currency: str = Field(default="USD", max_length=3)

    # Schedule
    billing_cycle: str = Field(max_length=20)
    next_payment_date: date = Field(index=True)
    last_payment_date: Optional[date] = Field(default=None)

    status: str = Field(default="active", max_length=20, index=True)
    auto_renew: bool = Field(default=True)
    reminder_days: int = Field(default=3)

    website_url: Optional[str] = Field(default=None)
    logo_url: Optional[str] = Field(default=None)
    notes: Optional[str] = Field(default=None)
