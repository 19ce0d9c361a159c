"""
Unit tests for the RevenueCat and Flutterwave REST clients.

HTTP is served by httpx.MockTransport.
"""

import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from subie.domain.entitlements import Package
from subie.infrastructure.exceptions import (
    ProviderError,
    ProviderNotInitializedError,
    TransientProviderError,
)
from subie.infrastructure.payments import FlutterwaveClient, RevenueCatClient
from subie.infrastructure.payments.revenuecat_client import (
    active_entitlements,
    anonymous_app_user_id,
)


def iso(value: datetime) -> str:
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


def transport_for(handler) -> httpx.MockTransport:
    return httpx.MockTransport(handler)


# =============================================================================
# RevenueCat
# =============================================================================

class TestActiveEntitlements:

    def test_future_and_lifetime_are_active(self):
        now = datetime(2026, 6, 1, tzinfo=timezone.utc)
        subscriber = {
            "entitlements": {
                "premium": {"expires_date": "2026-07-01T00:00:00Z"},
                "standard": {"expires_date": "2026-05-01T00:00:00Z"},
                "founder": {"expires_date": None},
            }
        }

        active = active_entitlements(subscriber, now=now)

        assert set(active) == {"premium", "founder"}
        assert active["premium"] == datetime(2026, 7, 1, tzinfo=timezone.utc)
        assert active["founder"] is None

    def test_no_entitlements(self):
        assert active_entitlements({}) == {}

    def test_anonymous_id_format(self):
        assert anonymous_app_user_id().startswith("$RCAnonymousID:")


class TestRevenueCatClient:

    async def test_requires_configure(self):
        client = RevenueCatClient(api_key="rc_key")
        with pytest.raises(ProviderNotInitializedError):
            await client.get_customer_info()

    def test_configure_without_user_is_anonymous(self):
        client = RevenueCatClient(api_key="rc_key")
        assert client.configure(None).startswith("$RCAnonymousID:")

    async def test_offerings_current_first_and_deduplicated(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/v1/subscribers/user-1/offerings"
            assert request.headers["Authorization"] == "Bearer rc_key"
            return httpx.Response(200, json={
                "current_offering_id": "default",
                "offerings": [
                    {"identifier": "promo", "packages": [
                        {"identifier": "$rc_annual", "platform_product_identifier": "annual_promo"},
                        {"identifier": "$rc_monthly", "platform_product_identifier": "monthly_promo"},
                    ]},
                    {"identifier": "default", "packages": [
                        {"identifier": "$rc_monthly", "platform_product_identifier": "monthly"},
                    ]},
                ],
            })

        client = RevenueCatClient(api_key="rc_key", transport=transport_for(handler))
        client.configure("user-1")

        packages = await client.get_offerings()

        assert [(p.identifier, p.product_id) for p in packages] == [
            ("$rc_monthly", "monthly"),
            ("$rc_annual", "annual_promo"),
        ]

    async def test_customer_info(self):
        expires = datetime.now(timezone.utc).replace(microsecond=0) + timedelta(days=3)

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={
                "subscriber": {"entitlements": {"standard": {"expires_date": iso(expires)}}}
            })

        client = RevenueCatClient(api_key="rc_key", transport=transport_for(handler))
        client.configure("user-1")

        assert await client.get_customer_info() == {"standard": expires}

    async def test_purchase_posts_receipt(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["path"] = request.url.path
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "subscriber": {"entitlements": {"premium": {"expires_date": None}}}
            })

        client = RevenueCatClient(api_key="rc_key", transport=transport_for(handler))
        client.configure("user-1")

        result = await client.purchase(
            Package(identifier="$rc_monthly", product_id="premium_monthly"), "tok_123"
        )

        assert captured["path"] == "/v1/receipts"
        assert captured["body"] == {
            "app_user_id": "user-1",
            "fetch_token": "tok_123",
            "product_id": "premium_monthly",
        }
        assert result == {"premium": None}

    @pytest.mark.parametrize(
        "status_code, error_type",
        [(503, TransientProviderError), (401, ProviderError)],
    )
    async def test_http_errors(self, status_code, error_type):
        client = RevenueCatClient(
            api_key="rc_key",
            transport=transport_for(lambda request: httpx.Response(status_code, json={})),
        )
        client.configure("user-1")

        with pytest.raises(error_type) as exc_info:
            await client.get_customer_info()

        assert exc_info.value.details["provider"] == "revenuecat"

    async def test_network_error_is_transient(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = RevenueCatClient(api_key="rc_key", transport=transport_for(handler))
        client.configure("user-1")

        with pytest.raises(TransientProviderError, match="Could not reach RevenueCat"):
            await client.get_customer_info()


# =============================================================================
# Flutterwave
# =============================================================================

class TestFlutterwaveClient:

    async def test_create_payment(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["path"] = request.url.path
            captured["auth"] = request.headers["Authorization"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "status": "success",
                "data": {"link": "https://checkout.flutterwave.com/pay/xyz"},
            })

        client = FlutterwaveClient(
            public_key="FLWPUBK_TEST",
            secret_key="FLWSECK_TEST",
            redirect_url="http://localhost:3000/billing",
            transport=transport_for(handler),
        )

        link = await client.create_payment(
            tx_ref="subie_standard_monthly_1",
            amount=9.99,
            currency="USD",
            email="ada@example.com",
            name="Ada Lovelace",
            description="Standard Monthly Plan",
        )

        assert link == "https://checkout.flutterwave.com/pay/xyz"
        assert captured["path"] == "/v3/payments"
        assert captured["auth"] == "Bearer FLWSECK_TEST"
        assert captured["body"]["customer"] == {"email": "ada@example.com", "name": "Ada Lovelace"}
        assert captured["body"]["redirect_url"] == "http://localhost:3000/billing"

    async def test_missing_link(self):
        client = FlutterwaveClient(
            public_key="pk",
            secret_key="sk",
            transport=transport_for(lambda r: httpx.Response(200, json={"status": "success", "data": {}})),
        )
        with pytest.raises(ProviderError, match="payment link"):
            await client.create_payment("ref", 9.99, "USD", "a@b.c", "A B", "Plan")

    async def test_verify_transaction(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/v3/transactions/4975363/verify"
            return httpx.Response(200, json={
                "status": "success",
                "data": {"status": "successful", "amount": 19.99, "currency": "USD"},
            })

        client = FlutterwaveClient("pk", "sk", transport=transport_for(handler))

        data = await client.verify_transaction("4975363")

        assert data["status"] == "successful"

    async def test_error_payload(self):
        client = FlutterwaveClient(
            "pk",
            "sk",
            transport=transport_for(lambda r: httpx.Response(
                200, json={"status": "error", "message": "Invalid transaction id"}
            )),
        )
        with pytest.raises(ProviderError, match="Invalid transaction id"):
            await client.verify_transaction("bad")

    async def test_server_error_is_transient(self):
        client = FlutterwaveClient(
            "pk", "sk", transport=transport_for(lambda r: httpx.Response(502, text="bad gateway"))
        )
        with pytest.raises(TransientProviderError):
            await client.verify_transaction("1")
