"""
Subscription Domain Models

Domain models for tracked recurring payments.
Enums, DTOs, and domain entities for the subscription bounded context,
plus the billing-cycle arithmetic the rest of the system relies on.
"""

import calendar
from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class BillingCycle(str, Enum):
    """Recurrence period of a tracked subscription."""
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMI_ANNUAL = "semi_annual"
    ANNUAL = "annual"


class SubscriptionStatus(str, Enum):
    """Tracked subscription lifecycle status."""
    ACTIVE = "active"
    PAUSED = "paused"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


# =============================================================================
# Domain Entities
# =============================================================================

class SubscriptionCategory(BaseModel):
    """Lookup entity used to group subscriptions."""
    id: Optional[str] = None
    name: str
    description: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class Subscription(BaseModel):
    """A recurring payment tracked by a user."""
    id: Optional[str] = None
    user_id: str
    category_id: Optional[str] = None
    category: Optional[SubscriptionCategory] = None
    name: str
    description: Optional[str] = None
    amount: Decimal
    currency: str = "USD"
    billing_cycle: BillingCycle
    next_payment_date: date
    last_payment_date: Optional[date] = None
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    auto_renew: bool = True
    website_url: Optional[str] = None
    logo_url: Optional[str] = None
    notes: Optional[str] = None
    reminder_days: int = 3
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# =============================================================================
# Request/Response DTOs
# =============================================================================

REQUIRED_FIELDS = ("name", "amount", "billing_cycle", "next_payment_date")

# Columns a patch may leave out but never clear
NON_NULLABLE_FIELDS = REQUIRED_FIELDS + ("currency", "status", "auto_renew", "reminder_days")


class SubscriptionCreate(BaseModel):
    """Fields accepted when registering a new subscription."""
    name: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    billing_cycle: BillingCycle
    next_payment_date: date
    category_id: Optional[str] = None
    description: Optional[str] = None
    currency: str = Field(default="USD", min_length=3, max_length=3)
    last_payment_date: Optional[date] = None
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    auto_renew: bool = True
    website_url: Optional[str] = None
    logo_url: Optional[str] = None
    notes: Optional[str] = None
    reminder_days: int = Field(default=3, ge=0, le=365)


class SubscriptionUpdate(BaseModel):
    """Partial patch. Only fields that are explicitly set are applied."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    amount: Optional[Decimal] = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    billing_cycle: Optional[BillingCycle] = None
    next_payment_date: Optional[date] = None
    category_id: Optional[str] = None
    description: Optional[str] = None
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    last_payment_date: Optional[date] = None
    status: Optional[SubscriptionStatus] = None
    auto_renew: Optional[bool] = None
    website_url: Optional[str] = None
    logo_url: Optional[str] = None
    notes: Optional[str] = None
    reminder_days: Optional[int] = Field(default=None, ge=0, le=365)

    model_config = ConfigDict(extra="forbid")

    @field_validator(*NON_NULLABLE_FIELDS)
    @classmethod
    def reject_null(cls, value):
        """Omitting a field leaves it unchanged; sending null is not allowed."""
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class CategorySpending(BaseModel):
    """Monthly spend attributed to one category."""
    category: str
    amount: float
    color: str
    count: int
    percentage: int


class SpendingAnalytics(BaseModel):
    """Monthly-normalized spend over active subscriptions."""
    total_monthly: float
    active_count: int
    category_breakdown: list[CategorySpending]


# =============================================================================
# Billing Cycle Logic
# =============================================================================

# Multipliers converting one charge into its monthly equivalent
MONTHLY_FACTORS = {
    BillingCycle.WEEKLY: Decimal("4.33"),
    BillingCycle.MONTHLY: Decimal("1"),
    BillingCycle.QUARTERLY: Decimal("1") / Decimal("3"),
    BillingCycle.SEMI_ANNUAL: Decimal("1") / Decimal("6"),
    BillingCycle.ANNUAL: Decimal("1") / Decimal("12"),
}

CYCLE_MONTHS = {
    BillingCycle.MONTHLY: 1,
    BillingCycle.QUARTERLY: 3,
    BillingCycle.SEMI_ANNUAL: 6,
    BillingCycle.ANNUAL: 12,
}

UNCATEGORIZED_NAME = "Other"
UNCATEGORIZED_COLOR = "#6B7280"


def add_months(value: date, months: int) -> date:
    """Shift a date by whole months, clamping to the end of shorter months."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def advance_payment_date(value: date, cycle: BillingCycle) -> date:
    """Return the payment date one billing cycle after `value`."""
    if cycle == BillingCycle.WEEKLY:
        return value + timedelta(weeks=1)
    return add_months(value, CYCLE_MONTHS[cycle])


def schedule_error(
    billing_cycle: BillingCycle,
    next_payment_date: date,
    last_payment_date: Optional[date],
) -> Optional[str]:
    """
    Check that the next payment date is consistent with the cycle.

    Returns a message describing the problem, or None when consistent.
    """
    if last_payment_date is None:
        return None
    if next_payment_date <= last_payment_date:
        return "next_payment_date must be after last_payment_date"
    latest = advance_payment_date(last_payment_date, billing_cycle)
    if next_payment_date > latest:
        return (
            f"next_payment_date must be on or before {latest.isoformat()} "
            f"for a {billing_cycle.value} billing cycle"
        )
    return None


def monthly_amount(amount: Decimal, cycle: BillingCycle) -> Decimal:
    """Convert a charge into its monthly equivalent."""
    return Decimal(amount) * MONTHLY_FACTORS[cycle]


def is_reminder_due(subscription: Subscription, today: date) -> bool:
    """True while `today` falls inside the subscription's reminder window."""
    if subscription.status != SubscriptionStatus.ACTIVE:
        return False
    window_start = subscription.next_payment_date - timedelta(days=subscription.reminder_days)
    return window_start <= today <= subscription.next_payment_date


def compute_spending_analytics(subscriptions: list[Subscription]) -> SpendingAnalytics:
    """Aggregate monthly spend per category over active subscriptions."""
    active = [s for s in subscriptions if s.status == SubscriptionStatus.ACTIVE]

    total = Decimal("0")
    buckets: dict[str, dict] = {}
    for sub in active:
        monthly = monthly_amount(sub.amount, sub.billing_cycle)
        total += monthly

        name = sub.category.name if sub.category else UNCATEGORIZED_NAME
        color = (sub.category.color if sub.category else None) or UNCATEGORIZED_COLOR
        bucket = buckets.setdefault(name, {"amount": Decimal("0"), "color": color, "count": 0})
        bucket["amount"] += monthly
        bucket["count"] += 1

    breakdown = [
        CategorySpending(
            category=name,
            amount=round(float(bucket["amount"]), 2),
            color=bucket["color"],
            count=bucket["count"],
            percentage=round(float(bucket["amount"] / total * 100)) if total else 0,
        )
        for name, bucket in buckets.items()
    ]

    return SpendingAnalytics(
        total_monthly=round(float(total), 2),
        active_count=len(active),
        category_breakdown=breakdown,
    )


# Categories every fresh database starts with
DEFAULT_CATEGORIES = (
    SubscriptionCategory(name="Entertainment", description="Streaming services, gaming, media", icon="tv", color="#8B5CF6"),
    SubscriptionCategory(name="Software", description="Productivity tools, development, business", icon="zap", color="#3B82F6"),
    SubscriptionCategory(name="Music", description="Music streaming and audio services", icon="music", color="#10B981"),
    SubscriptionCategory(name="News & Media", description="News, magazines, publications", icon="newspaper", color="#F59E0B"),
    SubscriptionCategory(name="Fitness & Health", description="Gym, wellness, health apps", icon="heart", color="#EF4444"),
)
