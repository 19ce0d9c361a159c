"""
Flutterwave REST Client

Card-style billing through the Flutterwave v3 API: hosted payment links
and server-side transaction verification.

API Docs: https://developer.flutterwave.com/reference
"""

import logging
from typing import Any, Dict, Optional

import httpx

from subie.infrastructure.exceptions import ProviderError, TransientProviderError


logger = logging.getLogger(__name__)


class FlutterwaveClient:
    """
    Adapter over the Flutterwave v3 API.
    """

    PROVIDER = "flutterwave"
    PAYMENT_OPTIONS = "card,mobilemoney,ussd"
    LOGO_URL = "https://subie.app/logo.png"

    def __init__(
        self,
        public_key: Optional[str],
        secret_key: Optional[str],
        base_url: str = "https://api.flutterwave.com/v3",
        redirect_url: str = "http://localhost:3000/billing",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.public_key = public_key
        self.secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.redirect_url = redirect_url
        self.timeout = timeout
        self._transport = transport

    async def create_payment(
        self,
        tx_ref: str,
        amount: float,
        currency: str,
        email: str,
        name: str,
        description: str,
    ) -> str:
        """
        Create a hosted payment.

        Returns:
            Checkout link the customer must be sent to
        """
        payload = await self._request(
            "POST",
            "/payments",
            json={
                "tx_ref": tx_ref,
                "amount": amount,
                "currency": currency,
                "redirect_url": self.redirect_url,
                "payment_options": self.PAYMENT_OPTIONS,
                "customer": {"email": email, "name": name},
                "customizations": {
                    "title": "Subie Subscription",
                    "description": description,
                    "logo": self.LOGO_URL,
                },
            },
        )

        link = (payload.get("data") or {}).get("link")
        if not link:
            raise ProviderError(
                "Flutterwave did not return a payment link",
                provider=self.PROVIDER,
                operation="/payments",
            )
        return link

    async def verify_transaction(self, transaction_id: str) -> Dict[str, Any]:
        """
        Verify a transaction by its Flutterwave id.

        Returns:
            The transaction `data` object (status, amount, currency, tx_ref...)
        """
        payload = await self._request("GET", f"/transactions/{transaction_id}/verify")
        return payload.get("data") or {}

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self.secret_key}",
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
                payload = response.json()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            logger.error(f"Flutterwave {method} {path} failed: {status_code}")
            if status_code >= 500:
                raise TransientProviderError(
                    f"Flutterwave is unavailable ({status_code})",
                    provider=self.PROVIDER,
                    operation=path,
                    original_error=e,
                )
            raise ProviderError(
                f"Flutterwave rejected the request ({status_code})",
                provider=self.PROVIDER,
                operation=path,
                original_error=e,
            )
        except httpx.HTTPError as e:
            logger.error(f"Flutterwave {method} {path} transport error: {e}")
            raise TransientProviderError(
                "Could not reach Flutterwave",
                provider=self.PROVIDER,
                operation=path,
                original_error=e,
            )

        if payload.get("status") != "success":
            raise ProviderError(
                payload.get("message") or "Flutterwave request failed",
                provider=self.PROVIDER,
                operation=path,
            )
        return payload
