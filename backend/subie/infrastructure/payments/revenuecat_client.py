"""
RevenueCat REST Client

Store-style billing through the RevenueCat REST API (v1).
Fetches offerings and the subscriber's active entitlements, and posts
purchase receipts.

API Docs: https://www.revenuecat.com/docs/api-v1
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

import httpx

from subie.domain.entitlements import Package
from subie.infrastructure.exceptions import (
    ProviderError,
    ProviderNotInitializedError,
    TransientProviderError,
)


logger = logging.getLogger(__name__)


def anonymous_app_user_id() -> str:
    """Generate an id in RevenueCat's anonymous user format."""
    return f"$RCAnonymousID:{uuid4().hex}"


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def active_entitlements(
    subscriber: Dict[str, Any],
    now: Optional[datetime] = None,
) -> Dict[str, Optional[datetime]]:
    """
    Extract active entitlements from a subscriber payload.

    An entitlement is active when it has no expiration (lifetime) or its
    expiration is in the future.

    Returns:
        Mapping of entitlement id to expiration (None for lifetime)
    """
    now = now or datetime.now(timezone.utc)
    active: Dict[str, Optional[datetime]] = {}
    for entitlement_id, entitlement in (subscriber.get("entitlements") or {}).items():
        expires_at = parse_timestamp(entitlement.get("expires_date"))
        if expires_at is None or expires_at > now:
            active[entitlement_id] = expires_at
    return active


class RevenueCatClient:
    """
    Thin adapter over the RevenueCat REST API.

    `configure()` binds the client to one app user; every other call acts
    on that user.
    """

    PROVIDER = "revenuecat"

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.revenuecat.com/v1",
        platform: str = "stripe",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.platform = platform
        self.timeout = timeout
        self._transport = transport
        self._app_user_id: Optional[str] = None

    @property
    def app_user_id(self) -> Optional[str]:
        return self._app_user_id

    def configure(self, app_user_id: Optional[str]) -> str:
        """Bind the client to a user, falling back to an anonymous id."""
        self._app_user_id = app_user_id or anonymous_app_user_id()
        logger.info(f"RevenueCat configured for {self._app_user_id}")
        return self._app_user_id

    # =========================================================================
    # API Operations
    # =========================================================================

    async def get_offerings(self) -> List[Package]:
        """
        Get purchasable packages.

        Packages from the current offering come first, followed by those of
        every other offering; duplicates (same identifier) are dropped.
        """
        payload = await self._request(
            "GET", f"/subscribers/{self._require_user()}/offerings"
        )

        offerings = payload.get("offerings") or []
        current_id = payload.get("current_offering_id")
        ordered = sorted(offerings, key=lambda o: o.get("identifier") != current_id)

        packages: List[Package] = []
        seen: set[str] = set()
        for offering in ordered:
            for pkg in offering.get("packages") or []:
                identifier = pkg.get("identifier")
                if not identifier or identifier in seen:
                    continue
                seen.add(identifier)
                packages.append(
                    Package(
                        identifier=identifier,
                        product_id=pkg.get("platform_product_identifier") or identifier,
                        offering_id=offering.get("identifier"),
                        title=offering.get("description"),
                    )
                )
        return packages

    async def get_customer_info(self) -> Dict[str, Optional[datetime]]:
        """Get the user's active entitlements."""
        payload = await self._request("GET", f"/subscribers/{self._require_user()}")
        return active_entitlements(payload.get("subscriber") or {})

    async def purchase(
        self,
        package: Package,
        receipt_token: str,
    ) -> Dict[str, Optional[datetime]]:
        """
        Post a purchase receipt for a package.

        Args:
            package: Package being purchased
            receipt_token: Store receipt / fetch token proving the purchase

        Returns:
            Active entitlements after the purchase
        """
        payload = await self._request(
            "POST",
            "/receipts",
            json={
                "app_user_id": self._require_user(),
                "fetch_token": receipt_token,
                "product_id": package.product_id,
            },
        )
        return active_entitlements(payload.get("subscriber") or {})

    # =========================================================================
    # Transport
    # =========================================================================

    def _require_user(self) -> str:
        if not self._app_user_id:
            raise ProviderNotInitializedError("RevenueCat not initialized", provider=self.PROVIDER)
        return self._app_user_id

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "X-Platform": self.platform,
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(method, path, headers=headers, **kwargs)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            logger.error(f"RevenueCat {method} {path} failed: {status_code}")
            if status_code >= 500:
                raise TransientProviderError(
                    f"RevenueCat is unavailable ({status_code})",
                    provider=self.PROVIDER,
                    operation=path,
                    original_error=e,
                )
            raise ProviderError(
                f"RevenueCat rejected the request ({status_code})",
                provider=self.PROVIDER,
                operation=path,
                original_error=e,
            )
        except httpx.HTTPError as e:
            logger.error(f"RevenueCat {method} {path} transport error: {e}")
            raise TransientProviderError(
                "Could not reach RevenueCat",
                provider=self.PROVIDER,
                operation=path,
                original_error=e,
            )
