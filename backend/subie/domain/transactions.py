"""
Transaction Domain Models

Billing history entries and their summaries.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class TransactionType(str, Enum):
    SUBSCRIPTION_PAYMENT = "subscription_payment"
    REFUND = "refund"
    ADJUSTMENT = "adjustment"


class Transaction(BaseModel):
    """One entry of a user's billing history."""
    id: Optional[str] = None
    user_id: str
    subscription_id: Optional[str] = None
    amount: Decimal
    currency: str = "USD"
    status: TransactionStatus
    transaction_type: TransactionType
    external_transaction_id: Optional[str] = None
    provider: Optional[str] = None
    description: Optional[str] = None
    processed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class TransactionCreate(BaseModel):
    """Fields accepted when recording a transaction."""
    amount: Decimal = Field(..., max_digits=12, decimal_places=2)
    status: TransactionStatus
    transaction_type: TransactionType
    subscription_id: Optional[str] = None
    currency: str = Field(default="USD", min_length=3, max_length=3)
    external_transaction_id: Optional[str] = None
    provider: Optional[str] = None
    description: Optional[str] = None
    processed_at: Optional[datetime] = None


class SpendingSummary(BaseModel):
    """Totals over subscription payments in a date range."""
    total_spent: float = 0.0
    successful_payments: int = 0
    failed_payments: int = 0
    total_transactions: int = 0


def summarize_payments(transactions: list[Transaction]) -> SpendingSummary:
    """Completed payments add to the total; failed ones are only counted."""
    total = Decimal("0")
    summary = SpendingSummary()
    for tx in transactions:
        if tx.status == TransactionStatus.COMPLETED:
            total += tx.amount
            summary.successful_payments += 1
        elif tx.status == TransactionStatus.FAILED:
            summary.failed_payments += 1
        summary.total_transactions += 1
    summary.total_spent = round(float(total), 2)
    return summary
