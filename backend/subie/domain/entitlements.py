"""
Entitlement Domain Models

Plan tiers, the provider-neutral entitlement snapshot and the precedence
rule that maps a set of active entitlements onto a plan.
"""

from datetime import datetime
from enum import Enum
from typing import Iterable, Optional
from pydantic import BaseModel, Field


class PlanTier(str, Enum):
    """Three-level service plan of the app itself."""
    FREE = "free"
    STANDARD = "standard"
    PREMIUM = "premium"


class PlanBillingCycle(str, Enum):
    """Billing cycles offered for the app's own plans."""
    MONTHLY = "monthly"
    ANNUAL = "annual"


class ProviderState(str, Enum):
    """Lifecycle of an entitlement provider within one session."""
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"
    DISABLED = "disabled"


# Highest tier first
PLAN_PRECEDENCE = (PlanTier.PREMIUM, PlanTier.STANDARD)


def derive_plan(entitlements: Iterable[str]) -> PlanTier:
    """Premium dominates standard, anything else is free."""
    active = set(entitlements)
    for tier in PLAN_PRECEDENCE:
        if tier.value in active:
            return tier
    return PlanTier.FREE


class EntitlementSnapshot(BaseModel):
    """Normalized view of one provider's answer for one identity."""
    plan: PlanTier = PlanTier.FREE
    active: bool = False
    expires_at: Optional[datetime] = None
    entitlements: frozenset[str] = Field(default_factory=frozenset)

    @classmethod
    def from_entitlements(
        cls,
        entitlements: dict[str, Optional[datetime]],
    ) -> "EntitlementSnapshot":
        """
        Build a snapshot from active entitlement ids and their expirations.

        `expires_at` is the expiration of the entitlement that decides the
        plan, None when that grant is lifetime. Without a plan entitlement
        it is the latest expiration among active entitlements.
        """
        plan = derive_plan(entitlements.keys())
        if plan != PlanTier.FREE:
            expires_at = entitlements[plan.value]
        else:
            expirations = [value for value in entitlements.values() if value is not None]
            expires_at = max(expirations) if expirations else None
        return cls(
            plan=plan,
            active=len(entitlements) > 0,
            expires_at=expires_at,
            entitlements=frozenset(entitlements.keys()),
        )

    @classmethod
    def free(cls) -> "EntitlementSnapshot":
        return cls()


class Package(BaseModel):
    """A purchasable package offered by a store-style provider."""
    identifier: str
    product_id: str
    offering_id: Optional[str] = None
    title: Optional[str] = None


class PlanPrice(BaseModel):
    amount: float
    description: str


# Card-billing price list (USD)
PLAN_PRICES = {
    PlanTier.STANDARD: {
        PlanBillingCycle.MONTHLY: PlanPrice(amount=9.99, description="Standard Monthly Plan"),
        PlanBillingCycle.ANNUAL: PlanPrice(amount=99.99, description="Standard Annual Plan"),
    },
    PlanTier.PREMIUM: {
        PlanBillingCycle.MONTHLY: PlanPrice(amount=19.99, description="Premium Monthly Plan"),
        PlanBillingCycle.ANNUAL: PlanPrice(amount=199.99, description="Premium Annual Plan"),
    },
}


class EntitlementStatusResponse(BaseModel):
    """Response DTO for the caller's entitlement state."""
    provider: str
    state: ProviderState
    plan: PlanTier
    has_active_subscription: bool
    expires_at: Optional[datetime] = None
    entitlements: list[str] = Field(default_factory=list)
    error: Optional[str] = None
