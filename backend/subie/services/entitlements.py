"""
Entitlement Service

Per-session reconciliation of the app plan against the configured billing
provider.

Each provider runs the same state machine:

    UNINITIALIZED -> INITIALIZING -> READY | FAILED
    UNINITIALIZED -> DISABLED            (no usable credential)

A change of identity on the session context is a full reset followed by a
new initialization cycle. Exactly one provider is built per deployment
(settings.entitlement_provider) and only that provider writes the plan
back to the user row.
"""

import logging
import time
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, List, Optional

import httpx
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from subie.config.settings import Settings, get_settings
from subie.domain.entitlements import (
    PLAN_PRICES,
    EntitlementSnapshot,
    EntitlementStatusResponse,
    Package,
    PlanBillingCycle,
    PlanTier,
    ProviderState,
)
from subie.domain.subscription import add_months
from subie.domain.transactions import (
    TransactionCreate,
    TransactionStatus,
    TransactionType,
)
from subie.domain.users import AuthUser
from subie.infrastructure.db.repositories import (
    TransactionRepository,
    UserRepository,
)
from subie.infrastructure.exceptions import (
    ConfigurationError,
    ProviderError,
    ProviderNotInitializedError,
    SubieError,
    ValidationError,
)
from subie.infrastructure.payments import FlutterwaveClient, RevenueCatClient
from subie.services.session import SessionContext


logger = logging.getLogger(__name__)


class Notification(BaseModel):
    """User-facing notice raised by a purchase action."""
    title: str
    description: str
    destructive: bool = False


Notifier = Callable[[Notification], None]


class EntitlementProvider:
    """
    Base state machine shared by all entitlement providers.

    Subclasses implement `_missing_credentials`, `_configure` and
    `_fetch_snapshot`.
    """

    name = "none"
    display_name = "Entitlements"

    def __init__(
        self,
        context: SessionContext,
        notifier: Optional[Notifier] = None,
    ):
        self._context = context
        self._notifier = notifier
        self._unsubscribe: Optional[Callable[[], None]] = context.on_identity_change(
            self.on_identity_change
        )

        self.state = ProviderState.UNINITIALIZED
        self.snapshot = EntitlementSnapshot.free()
        self.error: Optional[SubieError] = None
        self.notifications: List[Notification] = []

        # Bumped on every reset; results from an older generation are dropped
        self._generation = 0

    # =========================================================================
    # Derived State
    # =========================================================================

    @property
    def identity(self) -> Optional[AuthUser]:
        return self._context.identity

    @property
    def is_ready(self) -> bool:
        return self.state == ProviderState.READY

    @property
    def has_active_subscription(self) -> bool:
        return self.snapshot.active

    @property
    def plan(self) -> PlanTier:
        return self.snapshot.plan

    def status(self) -> EntitlementStatusResponse:
        return EntitlementStatusResponse(
            provider=self.name,
            state=self.state,
            plan=self.plan,
            has_active_subscription=self.has_active_subscription,
            expires_at=self.snapshot.expires_at,
            entitlements=sorted(self.snapshot.entitlements),
            error=self.error.message if self.error else None,
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def initialize(self) -> None:
        """
        Configure the provider and load the first snapshot.

        Never raises: a missing credential disables the provider, any other
        failure leaves it FAILED with `error` set.
        """
        missing = self._missing_credentials()
        if missing:
            self.state = ProviderState.DISABLED
            self.error = ConfigurationError(
                f"{self.display_name} is not configured",
                missing_keys=missing,
            )
            logger.warning(
                f"{self.display_name} disabled, missing credentials: {', '.join(missing)}"
            )
            return

        generation = self._generation
        self.state = ProviderState.INITIALIZING
        self.error = None
        try:
            await self._configure(self.identity)
            snapshot = await self._fetch_snapshot()
        except Exception as e:
            if self._is_stale(generation):
                return
            self.state = ProviderState.FAILED
            self.error = self._as_provider_error(e, "initialize")
            logger.error(f"Failed to initialize {self.display_name}: {e}")
            return

        if self._is_stale(generation):
            logger.info(f"Dropping {self.display_name} result for a previous identity")
            return
        self.snapshot = snapshot
        self.state = ProviderState.READY
        logger.info(f"{self.display_name} ready, plan={self.plan.value}")

    async def refresh(self) -> EntitlementStatusResponse:
        """
        Passive reconciliation. Failures are logged, never raised.

        A FAILED provider retries its initialization.
        """
        if self.state == ProviderState.DISABLED:
            return self.status()
        if self.state in (ProviderState.UNINITIALIZED, ProviderState.FAILED):
            await self.initialize()
            return self.status()

        generation = self._generation
        try:
            snapshot = await self._fetch_snapshot()
        except Exception as e:
            if not self._is_stale(generation):
                self.error = self._as_provider_error(e, "refresh")
            logger.error(f"Failed to refresh {self.display_name}: {e}")
            return self.status()

        if not self._is_stale(generation):
            self.snapshot = snapshot
            self.error = None
        return self.status()

    async def restore(self) -> EntitlementSnapshot:
        """Reload entitlements from the provider and sync the user's plan."""

        async def action() -> EntitlementSnapshot:
            self._require_ready()
            self.snapshot = await self._fetch_snapshot()
            await self._sync_plan()
            return self.snapshot

        return await self._run_action(
            action,
            success=Notification(
                title="Purchases Restored",
                description="Your subscription status has been updated.",
            ),
            failure_title="Restore Failed",
        )

    async def on_identity_change(self, identity: Optional[AuthUser]) -> None:
        """Discard everything known about the previous identity and start over."""
        self._reset()
        await self.initialize()

    def dispose(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    # =========================================================================
    # Hooks
    # =========================================================================

    def _missing_credentials(self) -> List[str]:
        return ["entitlement_provider"]

    async def _configure(self, identity: Optional[AuthUser]) -> None:
        return None

    async def _fetch_snapshot(self) -> EntitlementSnapshot:
        return EntitlementSnapshot.free()

    async def _sync_plan(self) -> None:
        return None

    def _reset(self) -> None:
        self._generation += 1
        self.state = ProviderState.UNINITIALIZED
        self.snapshot = EntitlementSnapshot.free()
        self.error = None

    # =========================================================================
    # Helpers
    # =========================================================================

    def _is_stale(self, generation: int) -> bool:
        return generation != self._generation

    def _require_ready(self) -> None:
        if self.state != ProviderState.READY:
            raise ProviderNotInitializedError(
                f"{self.display_name} not initialized",
                provider=self.name,
            )

    def _notify(self, notification: Notification) -> None:
        self.notifications.append(notification)
        if self._notifier is not None:
            self._notifier(notification)

    async def _run_action(self, action, success: Notification, failure_title: str):
        """Run a user-initiated action, notify the outcome and re-raise failures."""
        try:
            result = await action()
        except Exception as e:
            logger.error(f"{self.display_name} {failure_title.lower()}: {e}")
            message = e.message if isinstance(e, SubieError) else str(e)
            self._notify(
                Notification(
                    title=failure_title,
                    description=message or "An unexpected error occurred.",
                    destructive=True,
                )
            )
            raise
        self._notify(success)
        return result

    def _as_provider_error(self, error: Exception, operation: str) -> SubieError:
        if isinstance(error, SubieError):
            return error
        return ProviderError(str(error), provider=self.name, operation=operation, original_error=error)


class DisabledEntitlementProvider(EntitlementProvider):
    """Used when the deployment has no billing provider; everyone is free."""


class RevenueCatEntitlementProvider(EntitlementProvider):
    """
    Store-style entitlements backed by RevenueCat.

    Offerings are loaded once per initialization; customer info is
    reloaded on every refresh.
    """

    name = "revenuecat"
    display_name = "RevenueCat"

    def __init__(
        self,
        context: SessionContext,
        client: Optional[RevenueCatClient],
        users: Optional[UserRepository] = None,
        notifier: Optional[Notifier] = None,
    ):
        super().__init__(context, notifier)
        self._client = client
        self._users = users
        self.offerings: List[Package] = []

    def _missing_credentials(self) -> List[str]:
        if self._client is None or not self._client.api_key:
            return ["revenuecat_api_key"]
        return []

    async def _configure(self, identity: Optional[AuthUser]) -> None:
        generation = self._generation
        self._client.configure(identity.id if identity else None)
        offerings = await self._client.get_offerings()
        if not self._is_stale(generation):
            self.offerings = offerings

    async def _fetch_snapshot(self) -> EntitlementSnapshot:
        entitlements = await self._client.get_customer_info()
        return EntitlementSnapshot.from_entitlements(entitlements)

    def _reset(self) -> None:
        super()._reset()
        self.offerings = []

    async def _sync_plan(self) -> None:
        """Write plan and latest expiration to the user row."""
        if self._users is None or self.identity is None:
            return
        try:
            await self._users.update_plan(
                self.identity.id,
                self.snapshot.plan,
                self.snapshot.expires_at,
            )
        except SubieError as e:
            logger.error(f"Failed to sync RevenueCat plan for {self.identity.id}: {e}")

    # =========================================================================
    # Purchases
    # =========================================================================

    def get_package(self, identifier: str) -> Optional[Package]:
        return next((pkg for pkg in self.offerings if pkg.identifier == identifier), None)

    def has_entitlement(self, entitlement_id: str) -> bool:
        return entitlement_id in self.snapshot.entitlements

    async def purchase(self, package_identifier: str, receipt_token: str) -> EntitlementSnapshot:
        """
        Purchase a package with a store receipt.

        Raises:
            ProviderNotInitializedError: provider is not READY
            ValidationError: unknown package
        """

        async def action() -> EntitlementSnapshot:
            self._require_ready()
            package = self.get_package(package_identifier)
            if package is None:
                raise ValidationError(
                    f"Unknown package {package_identifier}",
                    fields=["package_identifier"],
                )
            entitlements = await self._client.purchase(package, receipt_token)
            self.snapshot = EntitlementSnapshot.from_entitlements(entitlements)
            await self._sync_plan()
            return self.snapshot

        return await self._run_action(
            action,
            success=Notification(
                title="Purchase Successful!",
                description="Your subscription has been activated.",
            ),
            failure_title="Purchase Failed",
        )


class FlutterwaveEntitlementProvider(EntitlementProvider):
    """
    Card-style entitlements backed by Flutterwave.

    Flutterwave keeps no entitlement state of its own: the user row is the
    record, extended after each verified payment.
    """

    name = "flutterwave"
    display_name = "Flutterwave"

    def __init__(
        self,
        context: SessionContext,
        client: Optional[FlutterwaveClient],
        users: UserRepository,
        transactions: TransactionRepository,
        currency: str = "USD",
        notifier: Optional[Notifier] = None,
    ):
        super().__init__(context, notifier)
        self._client = client
        self._users = users
        self._transactions = transactions
        self._currency = currency

    def _missing_credentials(self) -> List[str]:
        missing = []
        if self._client is None or not self._client.public_key:
            missing.append("flutterwave_public_key")
        if self._client is None or not self._client.secret_key:
            missing.append("flutterwave_secret_key")
        return missing

    async def _fetch_snapshot(self) -> EntitlementSnapshot:
        if self.identity is None:
            return EntitlementSnapshot.free()
        return await self.get_subscription_status(self.identity)

    async def get_subscription_status(
        self,
        identity: AuthUser,
        now: Optional[datetime] = None,
    ) -> EntitlementSnapshot:
        """
        Read the plan from the user row.

        Active means a paid plan whose expiration is in the future.
        """
        user = await self._users.get_user(identity.id)
        if user is None:
            return EntitlementSnapshot.free()

        now = now or datetime.now(timezone.utc)
        expires_at = user.plan_expires_at
        if expires_at is not None and expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)

        active = (
            user.subscription_plan != PlanTier.FREE
            and expires_at is not None
            and expires_at > now
        )
        return EntitlementSnapshot(
            plan=user.subscription_plan if active else PlanTier.FREE,
            active=active,
            expires_at=expires_at,
            entitlements=frozenset({user.subscription_plan.value}) if active else frozenset(),
        )

    # =========================================================================
    # Payments
    # =========================================================================

    async def process_payment(
        self,
        plan: PlanTier,
        cycle: PlanBillingCycle,
    ) -> str:
        """
        Start a hosted card payment for a plan.

        Returns:
            Checkout link

        Raises:
            ProviderNotInitializedError: provider is not READY
            ValidationError: unpaid plan, or the identity lacks email/name
        """

        async def action() -> str:
            self._require_ready()
            identity = self.identity
            if identity is None or not identity.email or not identity.full_name:
                raise ValidationError("User information not available", fields=["email", "name"])

            price = self._price(plan, cycle)
            tx_ref = f"subie_{plan.value}_{cycle.value}_{int(time.time() * 1000)}"
            return await self._client.create_payment(
                tx_ref=tx_ref,
                amount=price.amount,
                currency=self._currency,
                email=identity.email,
                name=identity.full_name,
                description=price.description,
            )

        return await self._run_action(
            action,
            success=Notification(
                title="Payment Initiated",
                description="Please complete the payment process.",
            ),
            failure_title="Payment Failed",
        )

    async def verify_payment(
        self,
        transaction_id: str,
        plan: PlanTier,
        cycle: PlanBillingCycle,
    ) -> EntitlementSnapshot:
        """
        Verify a completed checkout and extend the plan.

        Monthly payments extend the plan by one month from now, annual
        payments by one year. A transaction already recorded is not
        applied twice.
        """

        async def action() -> EntitlementSnapshot:
            self._require_ready()
            identity = self.identity
            if identity is None:
                raise ValidationError("User information not available", fields=["user"])

            price = self._price(plan, cycle)
            if await self._transactions.exists_external(self.name, str(transaction_id)):
                logger.info(f"Flutterwave transaction {transaction_id} already applied")
                self.snapshot = await self._fetch_snapshot()
                return self.snapshot

            data = await self._client.verify_transaction(str(transaction_id))
            if data.get("status") != "successful":
                raise ProviderError(
                    "Payment was not successful",
                    provider=self.name,
                    operation="verify_payment",
                )
            paid_amount = float(data.get("amount") or 0)
            if paid_amount < price.amount or data.get("currency") != self._currency:
                raise ProviderError(
                    "Payment amount does not match the selected plan",
                    provider=self.name,
                    operation="verify_payment",
                )

            now = datetime.now(timezone.utc)
            months = 1 if cycle == PlanBillingCycle.MONTHLY else 12
            expires_at = add_months(now, months)

            await self._users.update_plan(identity.id, plan, expires_at)
            await self._transactions.create_for_user(
                identity.id,
                TransactionCreate(
                    amount=Decimal(str(paid_amount)),
                    currency=self._currency,
                    status=TransactionStatus.COMPLETED,
                    transaction_type=TransactionType.SUBSCRIPTION_PAYMENT,
                    external_transaction_id=str(transaction_id),
                    provider=self.name,
                    description=f"{plan.value} plan - {cycle.value} billing",
                    processed_at=now,
                ),
            )
            self.snapshot = await self._fetch_snapshot()
            return self.snapshot

        return await self._run_action(
            action,
            success=Notification(
                title="Payment Successful!",
                description="Your subscription has been activated.",
            ),
            failure_title="Payment Failed",
        )

    def _price(self, plan: PlanTier, cycle: PlanBillingCycle):
        prices = PLAN_PRICES.get(plan)
        if prices is None:
            raise ValidationError(f"Plan {plan.value} cannot be purchased", fields=["plan"])
        return prices[cycle]


# =============================================================================
# Factory
# =============================================================================

def build_entitlement_provider(
    context: SessionContext,
    session: AsyncSession,
    settings: Optional[Settings] = None,
    notifier: Optional[Notifier] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> EntitlementProvider:
    """
    Build the one provider named by settings.entitlement_provider.

    The provider subscribes to the context; call `context.init()` to run
    its first initialization.
    """
    settings = settings or get_settings()
    users = UserRepository(session)

    if settings.entitlement_provider == "revenuecat":
        client = None
        if settings.revenuecat_api_key:
            client = RevenueCatClient(
                api_key=settings.revenuecat_api_key,
                base_url=settings.revenuecat_api_url,
                platform=settings.revenuecat_platform,
                timeout=settings.provider_timeout_seconds,
                transport=transport,
            )
        return RevenueCatEntitlementProvider(context, client, users=users, notifier=notifier)

    if settings.entitlement_provider == "flutterwave":
        client = FlutterwaveClient(
            public_key=settings.flutterwave_public_key,
            secret_key=settings.flutterwave_secret_key,
            base_url=settings.flutterwave_api_url,
            redirect_url=settings.flutterwave_redirect_url,
            timeout=settings.provider_timeout_seconds,
            transport=transport,
        )
        return FlutterwaveEntitlementProvider(
            context,
            client,
            users=users,
            transactions=TransactionRepository(session),
            currency=settings.flutterwave_currency,
            notifier=notifier,
        )

    return DisabledEntitlementProvider(context, notifier)
