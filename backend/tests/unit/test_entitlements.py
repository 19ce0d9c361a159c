"""
Unit tests for the entitlement providers.

Provider clients and repositories are mocked; no network or database.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from subie.config.settings import get_settings
from subie.domain.entitlements import (
    Package,
    PlanBillingCycle,
    PlanTier,
    ProviderState,
)
from subie.domain.users import AuthUser, User
from subie.infrastructure.exceptions import (
    ConfigurationError,
    ProviderError,
    ProviderNotInitializedError,
    TransientProviderError,
    ValidationError,
)
from subie.services.entitlements import (
    DisabledEntitlementProvider,
    FlutterwaveEntitlementProvider,
    RevenueCatEntitlementProvider,
    build_entitlement_provider,
)
from subie.services.session import SessionContext


NOW = datetime.now(timezone.utc)
MONTHLY = Package(identifier="$rc_monthly", product_id="subie_premium_monthly", offering_id="default")


@pytest.fixture
def revenuecat_client():
    client = MagicMock()
    client.api_key = "rc_test_key"
    client.get_offerings = AsyncMock(return_value=[MONTHLY])
    client.get_customer_info = AsyncMock(return_value={})
    client.purchase = AsyncMock(return_value={"premium": NOW + timedelta(days=30)})
    return client


@pytest.fixture
def users():
    repository = MagicMock()
    repository.update_plan = AsyncMock()
    repository.get_user = AsyncMock(return_value=None)
    return repository


@pytest.fixture
def transactions():
    repository = MagicMock()
    repository.exists_external = AsyncMock(return_value=False)
    repository.create_for_user = AsyncMock()
    return repository


@pytest.fixture
def context(auth_user) -> SessionContext:
    return SessionContext(auth_user)


# =============================================================================
# Shared State Machine
# =============================================================================

class TestDisabledProvider:

    async def test_no_provider_is_disabled_and_free(self, context):
        provider = DisabledEntitlementProvider(context)
        await context.init()

        status = provider.status()
        assert status.state == ProviderState.DISABLED
        assert status.plan == PlanTier.FREE
        assert status.has_active_subscription is False

    async def test_missing_credentials_disable_without_raising(self, context):
        provider = RevenueCatEntitlementProvider(context, client=None)
        await provider.initialize()

        assert provider.state == ProviderState.DISABLED
        assert isinstance(provider.error, ConfigurationError)
        assert provider.error.details["missing_keys"] == ["revenuecat_api_key"]

    async def test_refresh_is_a_no_op_when_disabled(self, context):
        provider = RevenueCatEntitlementProvider(context, client=None)
        await provider.initialize()

        status = await provider.refresh()

        assert status.state == ProviderState.DISABLED


# =============================================================================
# RevenueCat
# =============================================================================

class TestRevenueCatProvider:

    async def test_initialize_loads_offerings_and_snapshot(self, context, revenuecat_client, mock_user_id):
        later = NOW + timedelta(days=365)
        revenuecat_client.get_customer_info.return_value = {
            "standard": NOW + timedelta(days=10),
            "premium": later,
        }
        provider = RevenueCatEntitlementProvider(context, revenuecat_client)

        await context.init()

        revenuecat_client.configure.assert_called_once_with(mock_user_id)
        assert provider.state == ProviderState.READY
        assert provider.offerings == [MONTHLY]
        assert provider.plan == PlanTier.PREMIUM
        assert provider.has_active_subscription is True
        assert provider.snapshot.expires_at == later
        assert provider.has_entitlement("standard")

    async def test_initialize_failure_leaves_failed_state(self, context, revenuecat_client):
        revenuecat_client.get_customer_info.side_effect = TransientProviderError("Could not reach RevenueCat")
        provider = RevenueCatEntitlementProvider(context, revenuecat_client)

        await provider.initialize()

        assert provider.state == ProviderState.FAILED
        assert provider.status().error == "Could not reach RevenueCat"
        assert provider.plan == PlanTier.FREE

    async def test_refresh_retries_failed_initialization(self, context, revenuecat_client):
        revenuecat_client.get_customer_info.side_effect = [
            TransientProviderError("Could not reach RevenueCat"),
            {"standard": None},
        ]
        provider = RevenueCatEntitlementProvider(context, revenuecat_client)
        await provider.initialize()

        status = await provider.refresh()

        assert status.state == ProviderState.READY
        assert status.plan == PlanTier.STANDARD
        assert status.error is None

    async def test_refresh_failure_is_silent(self, context, revenuecat_client):
        revenuecat_client.get_customer_info.return_value = {"premium": None}
        provider = RevenueCatEntitlementProvider(context, revenuecat_client)
        await provider.initialize()
        revenuecat_client.get_customer_info.side_effect = RuntimeError("boom")

        status = await provider.refresh()

        assert status.state == ProviderState.READY
        assert status.plan == PlanTier.PREMIUM
        assert status.error == "boom"
        assert provider.notifications == []

    async def test_purchase_before_ready(self, context, revenuecat_client):
        revenuecat_client.get_offerings.side_effect = RuntimeError("offline")
        provider = RevenueCatEntitlementProvider(context, revenuecat_client)
        await provider.initialize()

        with pytest.raises(ProviderNotInitializedError, match="RevenueCat not initialized"):
            await provider.purchase("$rc_monthly", "receipt")

        notification = provider.notifications[-1]
        assert notification.title == "Purchase Failed"
        assert notification.description == "RevenueCat not initialized"
        assert notification.destructive is True
        revenuecat_client.purchase.assert_not_awaited()

    async def test_purchase_syncs_plan(self, context, revenuecat_client, users, mock_user_id):
        seen = []
        provider = RevenueCatEntitlementProvider(
            context, revenuecat_client, users=users, notifier=seen.append
        )
        await provider.initialize()

        snapshot = await provider.purchase("$rc_monthly", "receipt-token")

        revenuecat_client.purchase.assert_awaited_once_with(MONTHLY, "receipt-token")
        assert snapshot.plan == PlanTier.PREMIUM
        users.update_plan.assert_awaited_once_with(mock_user_id, PlanTier.PREMIUM, snapshot.expires_at)
        assert [n.title for n in seen] == ["Purchase Successful!"]

    async def test_purchase_unknown_package(self, context, revenuecat_client):
        provider = RevenueCatEntitlementProvider(context, revenuecat_client)
        await provider.initialize()

        with pytest.raises(ValidationError):
            await provider.purchase("$rc_lifetime", "receipt")

        assert provider.notifications[-1].title == "Purchase Failed"

    async def test_restore(self, context, revenuecat_client, users):
        provider = RevenueCatEntitlementProvider(context, revenuecat_client, users=users)
        await provider.initialize()
        revenuecat_client.get_customer_info.return_value = {"standard": None}

        snapshot = await provider.restore()

        assert snapshot.plan == PlanTier.STANDARD
        assert provider.notifications[-1].title == "Purchases Restored"
        users.update_plan.assert_awaited_once()

    async def test_plan_sync_failure_does_not_fail_purchase(self, context, revenuecat_client, users):
        from subie.infrastructure.exceptions import NotFoundError

        users.update_plan.side_effect = NotFoundError("User not found")
        provider = RevenueCatEntitlementProvider(context, revenuecat_client, users=users)
        await provider.initialize()

        snapshot = await provider.purchase("$rc_monthly", "receipt")

        assert snapshot.plan == PlanTier.PREMIUM

    async def test_identity_change_resets_and_reinitializes(self, context, revenuecat_client, other_user_id):
        revenuecat_client.get_customer_info.return_value = {"premium": None}
        provider = RevenueCatEntitlementProvider(context, revenuecat_client)
        await context.init()
        assert provider.plan == PlanTier.PREMIUM

        revenuecat_client.get_customer_info.return_value = {}
        await context.set_identity(AuthUser(id=other_user_id, email="bob@example.com"))

        revenuecat_client.configure.assert_called_with(other_user_id)
        assert provider.state == ProviderState.READY
        assert provider.plan == PlanTier.FREE
        assert revenuecat_client.get_offerings.await_count == 2

    async def test_identity_change_during_initialize_wins(self, context, revenuecat_client, other_user_id):
        calls = []

        async def customer_info():
            calls.append(len(calls))
            if len(calls) == 1:
                await context.set_identity(AuthUser(id=other_user_id, email="bob@example.com"))
                return {"premium": None}
            return {}

        revenuecat_client.get_customer_info.side_effect = customer_info
        provider = RevenueCatEntitlementProvider(context, revenuecat_client)

        await context.init()

        assert len(calls) == 2
        assert provider.state == ProviderState.READY
        assert provider.plan == PlanTier.FREE

    async def test_identity_change_during_refresh_wins(self, context, revenuecat_client, other_user_id):
        provider = RevenueCatEntitlementProvider(context, revenuecat_client)
        await context.init()

        async def customer_info():
            revenuecat_client.get_customer_info.side_effect = None
            revenuecat_client.get_customer_info.return_value = {}
            await context.set_identity(AuthUser(id=other_user_id, email="bob@example.com"))
            return {"premium": None}

        revenuecat_client.get_customer_info.side_effect = customer_info

        status = await provider.refresh()

        assert status.plan == PlanTier.FREE
        assert provider.state == ProviderState.READY

    async def test_dispose_stops_listening(self, context, revenuecat_client, other_user_id):
        provider = RevenueCatEntitlementProvider(context, revenuecat_client)
        await context.init()
        provider.dispose()

        await context.set_identity(AuthUser(id=other_user_id))

        assert revenuecat_client.configure.call_count == 1


# =============================================================================
# Flutterwave
# =============================================================================

def account(user_id: str, plan: PlanTier, expires_at) -> User:
    return User(
        id=user_id,
        email="ada@example.com",
        subscription_plan=plan,
        plan_expires_at=expires_at,
    )


@pytest.fixture
def flutterwave_client():
    client = MagicMock()
    client.public_key = "FLWPUBK_TEST"
    client.secret_key = "FLWSECK_TEST"
    client.create_payment = AsyncMock(return_value="https://checkout.flutterwave.com/pay/abc")
    client.verify_transaction = AsyncMock(
        return_value={"status": "successful", "amount": 19.99, "currency": "USD"}
    )
    return client


@pytest.fixture
def flutterwave(context, flutterwave_client, users, transactions):
    return FlutterwaveEntitlementProvider(context, flutterwave_client, users, transactions)


class TestFlutterwaveProvider:

    async def test_missing_keys_disable(self, context, users, transactions):
        provider = FlutterwaveEntitlementProvider(context, None, users, transactions)
        await provider.initialize()

        assert provider.state == ProviderState.DISABLED
        assert provider.error.details["missing_keys"] == [
            "flutterwave_public_key",
            "flutterwave_secret_key",
        ]

    async def test_status_from_user_row(self, flutterwave, users, auth_user, mock_user_id):
        users.get_user.return_value = account(mock_user_id, PlanTier.STANDARD, NOW + timedelta(days=5))

        snapshot = await flutterwave.get_subscription_status(auth_user)

        assert snapshot.active is True
        assert snapshot.plan == PlanTier.STANDARD

    async def test_expired_plan_is_free(self, flutterwave, users, auth_user, mock_user_id):
        users.get_user.return_value = account(mock_user_id, PlanTier.PREMIUM, NOW - timedelta(days=1))

        snapshot = await flutterwave.get_subscription_status(auth_user)

        assert snapshot.active is False
        assert snapshot.plan == PlanTier.FREE

    async def test_naive_expiry_is_utc(self, flutterwave, users, auth_user, mock_user_id):
        expires = datetime(2030, 1, 1, 12, 0)
        users.get_user.return_value = account(mock_user_id, PlanTier.PREMIUM, expires)

        snapshot = await flutterwave.get_subscription_status(
            auth_user, now=datetime(2030, 1, 1, 11, 0, tzinfo=timezone.utc)
        )

        assert snapshot.active is True
        assert snapshot.expires_at.tzinfo == timezone.utc

    async def test_process_payment_returns_link(self, flutterwave, flutterwave_client):
        await flutterwave.initialize()

        link = await flutterwave.process_payment(PlanTier.PREMIUM, PlanBillingCycle.MONTHLY)

        assert link == "https://checkout.flutterwave.com/pay/abc"
        kwargs = flutterwave_client.create_payment.await_args.kwargs
        assert kwargs["tx_ref"].startswith("subie_premium_monthly_")
        assert kwargs["amount"] == 19.99
        assert kwargs["name"] == "Ada Lovelace"
        assert flutterwave.notifications[-1].title == "Payment Initiated"

    async def test_process_payment_requires_name(
        self, flutterwave_client, users, transactions, mock_user_id
    ):
        context = SessionContext(AuthUser(id=mock_user_id, email="ada@example.com"))
        provider = FlutterwaveEntitlementProvider(context, flutterwave_client, users, transactions)
        await provider.initialize()

        with pytest.raises(ValidationError, match="User information not available"):
            await provider.process_payment(PlanTier.STANDARD, PlanBillingCycle.ANNUAL)

        flutterwave_client.create_payment.assert_not_awaited()
        assert provider.notifications[-1].destructive is True

    async def test_free_plan_cannot_be_bought(self, flutterwave):
        await flutterwave.initialize()
        with pytest.raises(ValidationError):
            await flutterwave.process_payment(PlanTier.FREE, PlanBillingCycle.MONTHLY)

    async def test_verify_payment_extends_plan(
        self, flutterwave, users, transactions, mock_user_id
    ):
        await flutterwave.initialize()
        users.get_user.return_value = account(mock_user_id, PlanTier.PREMIUM, NOW + timedelta(days=30))

        snapshot = await flutterwave.verify_payment("4975363", PlanTier.PREMIUM, PlanBillingCycle.MONTHLY)

        user_id, plan, expires_at = users.update_plan.await_args.args
        assert user_id == mock_user_id
        assert plan == PlanTier.PREMIUM
        assert timedelta(days=27) < expires_at - datetime.now(timezone.utc) <= timedelta(days=31)

        created = transactions.create_for_user.await_args.args[1]
        assert created.amount == Decimal("19.99")
        assert created.external_transaction_id == "4975363"
        assert created.provider == "flutterwave"

        assert snapshot.plan == PlanTier.PREMIUM
        assert flutterwave.notifications[-1].title == "Payment Successful!"

    async def test_verify_payment_is_idempotent(self, flutterwave, flutterwave_client, users, transactions):
        await flutterwave.initialize()
        transactions.exists_external.return_value = True

        await flutterwave.verify_payment("4975363", PlanTier.PREMIUM, PlanBillingCycle.MONTHLY)

        flutterwave_client.verify_transaction.assert_not_awaited()
        users.update_plan.assert_not_awaited()

    async def test_verify_unsuccessful_payment(self, flutterwave, flutterwave_client, users):
        await flutterwave.initialize()
        flutterwave_client.verify_transaction.return_value = {
            "status": "failed", "amount": 19.99, "currency": "USD",
        }

        with pytest.raises(ProviderError, match="Payment was not successful"):
            await flutterwave.verify_payment("1", PlanTier.PREMIUM, PlanBillingCycle.MONTHLY)

        users.update_plan.assert_not_awaited()
        assert flutterwave.notifications[-1].title == "Payment Failed"

    async def test_verify_underpaid(self, flutterwave, flutterwave_client, users):
        await flutterwave.initialize()
        flutterwave_client.verify_transaction.return_value = {
            "status": "successful", "amount": 9.99, "currency": "USD",
        }

        with pytest.raises(ProviderError, match="does not match"):
            await flutterwave.verify_payment("2", PlanTier.PREMIUM, PlanBillingCycle.MONTHLY)

        users.update_plan.assert_not_awaited()


# =============================================================================
# Factory
# =============================================================================

class TestBuildEntitlementProvider:

    def test_none(self, context):
        settings = get_settings().model_copy(update={"entitlement_provider": "none"})
        provider = build_entitlement_provider(context, MagicMock(), settings=settings)
        assert isinstance(provider, DisabledEntitlementProvider)

    def test_revenuecat_without_key_has_no_client(self, context):
        settings = get_settings().model_copy(
            update={"entitlement_provider": "revenuecat", "revenuecat_api_key": None}
        )
        provider = build_entitlement_provider(context, MagicMock(), settings=settings)
        assert isinstance(provider, RevenueCatEntitlementProvider)
        assert provider._missing_credentials() == ["revenuecat_api_key"]

    def test_flutterwave(self, context):
        settings = get_settings().model_copy(
            update={
                "entitlement_provider": "flutterwave",
                "flutterwave_public_key": "FLWPUBK_TEST",
                "flutterwave_secret_key": "FLWSECK_TEST",
            }
        )
        provider = build_entitlement_provider(context, MagicMock(), settings=settings)
        assert isinstance(provider, FlutterwaveEntitlementProvider)
        assert provider._missing_credentials() == []
