"""
Transaction Database Model
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel

from subie.infrastructure.db.models.base import utcnow


class TransactionModel(SQLModel, table=True):
    """
    Maps to the 'transactions' table (billing history).
    """

    __tablename__ = "transactions"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(foreign_key="users.id", index=True, nullable=False)
    subscription_id: Optional[UUID] = Field(
        default=None,
        foreign_key="subscriptions.id",
        index=True,
    )

    amount: Decimal = Field(max_digits=12, decimal_places=2)
    currency: str = Field(default="USD", max_length=3)
    status: str = Field(max_length=20)
    transaction_type: str = Field(max_length=30)

    external_transaction_id: Optional[str] = Field(default=None, index=True)
    provider: Optional[str] = Field(default=None, max_length=50)
    description: Optional[str] = Field(default=None)
    processed_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow, index=True)
