"""
Admin Statistics

Aggregates shown on the administration dashboard.
"""

from decimal import Decimal

from subie.domain.subscription import monthly_amount
from subie.domain.users import AdminStats
from subie.infrastructure.db.repositories import (
    SubscriptionRepository,
    TransactionRepository,
    UserRepository,
)


async def build_admin_stats(
    users: UserRepository,
    subscriptions: SubscriptionRepository,
    transactions: TransactionRepository,
) -> AdminStats:
    """
    Collect user, subscription and revenue aggregates across all users.

    `tracked_monthly_spend` is the monthly-normalized total of every
    active subscription; `completed_revenue` sums completed subscription
    payments.
    """
    active = await subscriptions.list_all_active()
    tracked = sum(
        (monthly_amount(sub.amount, sub.billing_cycle) for sub in active),
        Decimal("0"),
    )
    revenue = await transactions.completed_revenue()

    return AdminStats(
        users_total=await users.count(),
        users_by_plan=await users.count_by_plan(),
        users_by_role=await users.count_by_role(),
        subscriptions_total=await subscriptions.count(),
        subscriptions_by_status=await subscriptions.count_by_status(),
        tracked_monthly_spend=round(float(tracked), 2),
        completed_revenue=round(float(revenue), 2),
    )
