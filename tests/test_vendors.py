import asyncio
import json
from decimal import Decimal

import httpx
import pytest

from storefront.config import RazorpaySettings, ShiprocketSettings
from storefront.errors import Code, Errors
from storefront.vendors import (
    ManifestItem,
    RazorpayClient,
    ShipmentRequest,
    ShiprocketClient,
    VendorError,
    guarded,
)

RAZORPAY = RazorpaySettings(key_id="rzp_test_key", key_secret="secret")
SHIPROCKET = ShiprocketSettings(email="ops@example.com", password="pw")


def booking_request(pincode: str = "560001") -> ShipmentRequest:
    return ShipmentRequest(
        order_number="ORD-1-ABCDE",
        order_date="2026-10-19",
        customer_name="Asha Rao",
        phone="9876543210",
        address="12 MG Road",
        city="Bengaluru",
        state="Karnataka",
        pincode=pincode,
        country="India",
        email=None,
        items=(ManifestItem("Crystal Trophy", "TR-01", 1, Decimal("2500.00"), "7013"),),
        sub_total=Decimal("2500.00"),
        weight_kg=0.8,
    )


class TestRazorpayClient:
    async def test_create_order(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            body = json.loads(request.content)
            return httpx.Response(200, json={"id": "order_A", **body, "status": "created"})

        client = RazorpayClient(RAZORPAY, transport=httpx.MockTransport(handler))
        try:
            order = await client.create_order(250000, "INR", "ORD-1", {"order_id": "o1"})
        finally:
            await client.aclose()

        assert order.id == "order_A"
        assert order.amount == 250000
        assert seen[0].url.path == "/v1/orders"
        assert seen[0].headers["authorization"].startswith("Basic ")
        assert json.loads(seen[0].content)["payment_capture"] == 1

    async def test_error_description_is_surfaced(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                400, json={"error": {"code": "BAD_REQUEST_ERROR", "description": "amount too small"}}
            )

        client = RazorpayClient(RAZORPAY, transport=httpx.MockTransport(handler))
        try:
            with pytest.raises(VendorError) as caught:
                await client.fetch_payment("pay_1")
        finally:
            await client.aclose()

        assert caught.value.message == "amount too small"
        assert caught.value.status == 400

    async def test_refund_paths(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/v1/payments/pay_1/refund"
            return httpx.Response(200, json={"id": "rfnd_1", "payment_id": "pay_1", "amount": 5000, "status": "processed"})

        client = RazorpayClient(RAZORPAY, transport=httpx.MockTransport(handler))
        try:
            refund = await client.refund("pay_1", 5000, {})
        finally:
            await client.aclose()

        assert (refund.id, refund.amount, refund.status) == ("rfnd_1", 5000, "processed")

    async def test_unconfigured(self):
        client = RazorpayClient(RazorpaySettings(), transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        try:
            with pytest.raises(VendorError, match="not configured"):
                await client.fetch_payment("pay_1")
        finally:
            await client.aclose()


class TestShiprocketClient:
    @staticmethod
    def handler(calls: list[str], *, expire_first: bool = False):
        tokens = iter(["tok-1", "tok-2", "tok-3"])
        rejected: set[str] = set()

        def handle(request: httpx.Request) -> httpx.Response:
            path = request.url.path.removeprefix("/v1/external")
            calls.append(path)
            if path == "/auth/login":
                return httpx.Response(200, json={"token": next(tokens)})
            token = request.headers.get("authorization", "")
            if expire_first and token == "Bearer tok-1" and token not in rejected:
                rejected.add(token)
                return httpx.Response(401, json={"message": "Token expired"})
            if path == "/settings/company/pickup":
                return httpx.Response(200, json={"data": {"shipping_address": [{"pickup_location": "Warehouse"}]}})
            if path == "/orders/create/adhoc":
                payload = json.loads(request.content)
                assert payload["pickup_location"] == "Warehouse"
                assert payload["billing_pincode"] == "560001"
                return httpx.Response(
                    200,
                    json={"order_id": 77, "shipment_id": 88, "awb_code": "AWB77", "courier_name": "Delhivery"},
                )
            if path == "/courier/track/awb/AWB77":
                return httpx.Response(
                    200,
                    json={
                        "tracking_data": {
                            "track_status": "Delivered",
                            "shipment_track": [{"delivered_date": "2026-10-18 10:30:00"}],
                            "shipment_track_activities": [{"activity": "Delivered", "location": "Bengaluru"}],
                        }
                    },
                )
            return httpx.Response(404, json={"message": "not found"})

        return handle

    async def test_books_with_cached_token(self):
        calls: list[str] = []
        client = ShiprocketClient(SHIPROCKET, transport=httpx.MockTransport(self.handler(calls)))
        try:
            booking = await client.create_shipment(booking_request())
            info = await client.track("AWB77")
        finally:
            await client.aclose()

        assert booking.aggregator_order_id == "77"
        assert booking.shipment_id == "88"
        assert booking.awb == "AWB77"
        assert info.status == "Delivered"
        assert info.delivered_date == "2026-10-18 10:30:00"
        assert info.history[0]["location"] == "Bengaluru"
        assert calls.count("/auth/login") == 1

    async def test_refreshes_token_on_401(self):
        calls: list[str] = []
        client = ShiprocketClient(
            SHIPROCKET, transport=httpx.MockTransport(self.handler(calls, expire_first=True))
        )
        try:
            info = await client.track("AWB77")
        finally:
            await client.aclose()

        assert info.status == "Delivered"
        assert calls.count("/auth/login") == 2

    async def test_rejects_bad_pincode_before_calling(self):
        calls: list[str] = []
        client = ShiprocketClient(SHIPROCKET, transport=httpx.MockTransport(self.handler(calls)))
        try:
            with pytest.raises(VendorError, match="Invalid pincode"):
                await client.create_shipment(booking_request("5600"))
        finally:
            await client.aclose()

        assert calls == []

    async def test_invalid_credentials(self):
        client = ShiprocketClient(
            SHIPROCKET, transport=httpx.MockTransport(lambda r: httpx.Response(401, json={}))
        )
        try:
            with pytest.raises(VendorError, match="Invalid Shiprocket credentials"):
                await client.authenticate()
        finally:
            await client.aclose()


class TestGuarded:
    async def test_success(self):
        async def call() -> int:
            return 7

        result = await guarded(call, seconds=1, on_error=Errors.gateway, operation="test")

        assert result.unwrap() == 7

    async def test_vendor_error_is_typed(self):
        async def call() -> int:
            raise VendorError("card network down", 502)

        error = (await guarded(call, seconds=1, on_error=Errors.gateway, operation="test")).unwrap_err()

        assert error.code == Code.PAYMENT_GATEWAY_ERROR
        assert "card network down" in error.message

    async def test_timeout(self):
        async def call() -> int:
            await asyncio.sleep(5)
            return 1

        error = (
            await guarded(call, seconds=0.05, on_error=Errors.shipping_provider, operation="test")
        ).unwrap_err()

        assert error.code == Code.SHIPPING_PROVIDER_ERROR
        assert "timed out" in error.message.lower()
