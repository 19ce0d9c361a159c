"""
Entitlement API Routes

The caller's app plan as reported by the deployment's billing provider,
plus the purchase flows of each provider.
"""

import logging
from typing import List, Optional, Type, TypeVar

from fastapi import APIRouter
from pydantic import BaseModel, Field

from subie.api.dependencies import EntitlementProviderDep
from subie.domain.entitlements import (
    EntitlementStatusResponse,
    Package,
    PlanBillingCycle,
    PlanTier,
)
from subie.infrastructure.exceptions import ConfigurationError
from subie.services.entitlements import (
    EntitlementProvider,
    FlutterwaveEntitlementProvider,
    Notification,
    RevenueCatEntitlementProvider,
)


logger = logging.getLogger(__name__)

router = APIRouter()

ProviderT = TypeVar("ProviderT", bound=EntitlementProvider)


# ============================================================================
# Request/Response Models
# ============================================================================

class PurchaseRequest(BaseModel):
    """Store purchase: package plus the receipt proving payment."""
    package_identifier: str = Field(..., min_length=1)
    receipt_token: str = Field(..., min_length=1)


class CheckoutRequest(BaseModel):
    plan: PlanTier
    cycle: PlanBillingCycle = PlanBillingCycle.MONTHLY


class VerifyPaymentRequest(BaseModel):
    transaction_id: str = Field(..., min_length=1)
    plan: PlanTier
    cycle: PlanBillingCycle = PlanBillingCycle.MONTHLY


class EntitlementActionResponse(BaseModel):
    status: EntitlementStatusResponse
    notification: Optional[Notification] = None


class CheckoutResponse(BaseModel):
    link: str
    notification: Optional[Notification] = None


def _require_provider(provider: EntitlementProvider, kind: Type[ProviderT]) -> ProviderT:
    if not isinstance(provider, kind):
        raise ConfigurationError(
            f"This operation needs {kind.display_name}, "
            f"but the configured provider is {provider.name}"
        )
    return provider


def _last_notification(provider: EntitlementProvider) -> Optional[Notification]:
    return provider.notifications[-1] if provider.notifications else None


# ============================================================================
# Status
# ============================================================================

@router.get("/entitlements", response_model=EntitlementStatusResponse)
async def get_entitlements(provider: EntitlementProviderDep):
    """Current plan and provider state for the caller."""
    return provider.status()


@router.post("/entitlements/refresh", response_model=EntitlementStatusResponse)
async def refresh_entitlements(provider: EntitlementProviderDep):
    """Reconcile with the provider. Failures show up in `error`, not as HTTP errors."""
    return await provider.refresh()


@router.post("/entitlements/restore", response_model=EntitlementActionResponse)
async def restore_purchases(provider: EntitlementProviderDep):
    await provider.restore()
    return EntitlementActionResponse(
        status=provider.status(),
        notification=_last_notification(provider),
    )


# ============================================================================
# Store Purchases (RevenueCat)
# ============================================================================

@router.get("/entitlements/offerings", response_model=List[Package])
async def list_offerings(provider: EntitlementProviderDep):
    """Purchasable packages; empty for providers without offerings."""
    if isinstance(provider, RevenueCatEntitlementProvider):
        return provider.offerings
    return []


@router.post("/entitlements/purchase", response_model=EntitlementActionResponse)
async def purchase_package(payload: PurchaseRequest, provider: EntitlementProviderDep):
    store = _require_provider(provider, RevenueCatEntitlementProvider)
    await store.purchase(payload.package_identifier, payload.receipt_token)
    return EntitlementActionResponse(
        status=store.status(),
        notification=_last_notification(store),
    )


# ============================================================================
# Card Payments (Flutterwave)
# ============================================================================

@router.post("/entitlements/checkout", response_model=CheckoutResponse)
async def start_checkout(payload: CheckoutRequest, provider: EntitlementProviderDep):
    """Create a hosted payment link for a paid plan."""
    card = _require_provider(provider, FlutterwaveEntitlementProvider)
    link = await card.process_payment(payload.plan, payload.cycle)
    return CheckoutResponse(link=link, notification=_last_notification(card))


@router.post("/entitlements/verify", response_model=EntitlementActionResponse)
async def verify_payment(payload: VerifyPaymentRequest, provider: EntitlementProviderDep):
    """Verify a completed checkout and extend the caller's plan."""
    card = _require_provider(provider, FlutterwaveEntitlementProvider)
    await card.verify_payment(payload.transaction_id, payload.plan, payload.cycle)
    return EntitlementActionResponse(
        status=card.status(),
        notification=_last_notification(card),
    )
