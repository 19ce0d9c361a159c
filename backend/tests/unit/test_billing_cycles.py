"""
Unit tests for billing-cycle arithmetic and spending analytics.
"""

from datetime import date
from decimal import Decimal

import pytest

from subie.domain.entitlements import EntitlementSnapshot, PlanTier, derive_plan
from subie.domain.subscription import (
    BillingCycle,
    Subscription,
    SubscriptionCategory,
    SubscriptionStatus,
    add_months,
    advance_payment_date,
    compute_spending_analytics,
    is_reminder_due,
    monthly_amount,
    schedule_error,
)


def make_subscription(**overrides) -> Subscription:
    fields = {
        "id": "sub-1",
        "user_id": "user-1",
        "name": "Netflix",
        "amount": Decimal("15.99"),
        "billing_cycle": BillingCycle.MONTHLY,
        "next_payment_date": date(2026, 3, 10),
    }
    fields.update(overrides)
    return Subscription(**fields)


class TestDateArithmetic:

    def test_add_months_clamps_to_month_end(self):
        assert add_months(date(2026, 1, 31), 1) == date(2026, 2, 28)
        assert add_months(date(2028, 1, 31), 1) == date(2028, 2, 29)

    def test_add_months_rolls_over_year(self):
        assert add_months(date(2026, 11, 15), 3) == date(2027, 2, 15)

    @pytest.mark.parametrize(
        "cycle,expected",
        [
            (BillingCycle.WEEKLY, date(2026, 1, 22)),
            (BillingCycle.MONTHLY, date(2026, 2, 15)),
            (BillingCycle.QUARTERLY, date(2026, 4, 15)),
            (BillingCycle.SEMI_ANNUAL, date(2026, 7, 15)),
            (BillingCycle.ANNUAL, date(2027, 1, 15)),
        ],
    )
    def test_advance_payment_date(self, cycle, expected):
        assert advance_payment_date(date(2026, 1, 15), cycle) == expected


class TestScheduleValidation:

    def test_no_last_payment_is_always_consistent(self):
        assert schedule_error(BillingCycle.MONTHLY, date(2030, 1, 1), None) is None

    def test_next_must_follow_last(self):
        problem = schedule_error(BillingCycle.MONTHLY, date(2026, 1, 1), date(2026, 1, 1))
        assert "after last_payment_date" in problem

    def test_next_cannot_skip_a_cycle(self):
        problem = schedule_error(BillingCycle.MONTHLY, date(2026, 3, 1), date(2026, 1, 1))
        assert "2026-02-01" in problem

    def test_exactly_one_cycle_is_consistent(self):
        assert schedule_error(BillingCycle.ANNUAL, date(2027, 1, 1), date(2026, 1, 1)) is None


class TestReminders:

    def test_due_inside_window(self):
        sub = make_subscription(next_payment_date=date(2026, 3, 10), reminder_days=3)
        assert is_reminder_due(sub, date(2026, 3, 7))
        assert is_reminder_due(sub, date(2026, 3, 10))

    def test_not_due_outside_window(self):
        sub = make_subscription(next_payment_date=date(2026, 3, 10), reminder_days=3)
        assert not is_reminder_due(sub, date(2026, 3, 6))
        assert not is_reminder_due(sub, date(2026, 3, 11))

    def test_inactive_never_due(self):
        sub = make_subscription(status=SubscriptionStatus.PAUSED)
        assert not is_reminder_due(sub, date(2026, 3, 10))


class TestSpendingAnalytics:

    def test_monthly_equivalents(self):
        assert monthly_amount(Decimal("10"), BillingCycle.WEEKLY) == Decimal("43.30")
        assert monthly_amount(Decimal("120"), BillingCycle.ANNUAL) == Decimal("10")
        assert round(monthly_amount(Decimal("30"), BillingCycle.QUARTERLY), 2) == Decimal("10.00")

    def test_breakdown_by_category_with_other_bucket(self):
        music = SubscriptionCategory(id="cat-1", name="Music", color="#10B981")
        subs = [
            make_subscription(id="a", amount=Decimal("10"), category=music),
            make_subscription(id="b", amount=Decimal("120"), billing_cycle=BillingCycle.ANNUAL),
            make_subscription(id="c", amount=Decimal("99"), status=SubscriptionStatus.CANCELLED),
        ]

        analytics = compute_spending_analytics(subs)

        assert analytics.total_monthly == 20.0
        assert analytics.active_count == 2
        by_name = {c.category: c for c in analytics.category_breakdown}
        assert by_name["Music"].percentage == 50
        assert by_name["Music"].color == "#10B981"
        assert by_name["Other"].color == "#6B7280"
        assert by_name["Other"].amount == 10.0

    def test_empty_collection(self):
        analytics = compute_spending_analytics([])
        assert analytics.total_monthly == 0
        assert analytics.active_count == 0
        assert analytics.category_breakdown == []


class TestPlanPrecedence:

    def test_premium_dominates_standard(self):
        assert derive_plan({"standard", "premium"}) == PlanTier.PREMIUM

    def test_standard_alone(self):
        assert derive_plan({"standard"}) == PlanTier.STANDARD

    def test_unknown_entitlements_are_free(self):
        assert derive_plan({"beta_access"}) == PlanTier.FREE
        assert derive_plan(set()) == PlanTier.FREE

    def test_snapshot_expiry_follows_plan_entitlement(self):
        from datetime import datetime, timezone

        early = datetime(2026, 5, 1, tzinfo=timezone.utc)
        late = datetime(2026, 9, 1, tzinfo=timezone.utc)
        snapshot = EntitlementSnapshot.from_entitlements(
            {"standard": late, "premium": early, "lifetime_bonus": None}
        )
        assert snapshot.plan == PlanTier.PREMIUM
        assert snapshot.active is True
        assert snapshot.expires_at == early

    def test_lifetime_plan_has_no_expiry(self):
        from datetime import datetime, timezone

        snapshot = EntitlementSnapshot.from_entitlements(
            {"premium": None, "standard": datetime(2026, 9, 1, tzinfo=timezone.utc)}
        )
        assert snapshot.plan == PlanTier.PREMIUM
        assert snapshot.expires_at is None

    def test_non_plan_entitlements_take_latest_expiry(self):
        from datetime import datetime, timezone

        late = datetime(2026, 9, 1, tzinfo=timezone.utc)
        snapshot = EntitlementSnapshot.from_entitlements(
            {"founder": datetime(2026, 5, 1, tzinfo=timezone.utc), "beta": late}
        )
        assert snapshot.plan == PlanTier.FREE
        assert snapshot.expires_at == late
