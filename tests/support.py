"""Vendor fakes and builders shared by the test modules."""

import json
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from storefront.orders import (
    Buyer,
    CheckoutItem,
    CheckoutRequest,
    Order,
    ShippingDetails,
)
from storefront.signatures import payment_message, sign
from storefront.vendors import (
    GatewayOrder,
    GatewayPayment,
    GatewayRefund,
    ShipmentBooking,
    ShipmentRequest,
    TrackingInfo,
    VendorError,
)

KEY_SECRET = "test_key_secret"
WEBHOOK_SECRET = "test_webhook_secret"
SHIPPING_SECRET = "test_shipping_secret"

U1 = Buyer(user_id="u1")


# ═══════════════════════════════════════════════════════════════════════════════
# Vendor Fakes
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass
class FakeGateway:
    payment_status: str = "captured"
    payment_method: str = "upi"
    fail_with: str | None = None
    orders: list[GatewayOrder] = field(default_factory=list)
    captures: list[tuple[str, int]] = field(default_factory=list)
    refunds: list[tuple[str, int]] = field(default_factory=list)
    fetches: int = 0

    async def create_order(
        self, amount: int, currency: str, receipt: str, notes: Mapping[str, str]
    ) -> GatewayOrder:
        if self.fail_with:
            raise VendorError(self.fail_with, 502)
        order = GatewayOrder(
            id=f"order_{len(self.orders) + 1:04d}", amount=amount, currency=currency, receipt=receipt
        )
        self.orders.append(order)
        return order

    async def fetch_payment(self, payment_id: str) -> GatewayPayment:
        self.fetches += 1
        if self.fail_with:
            raise VendorError(self.fail_with, 502)
        return GatewayPayment(
            id=payment_id,
            order_id="order_0001",
            status=self.payment_status,
            amount=250000,
            method=self.payment_method,
            captured=self.payment_status == "captured",
        )

    async def capture(self, payment_id: str, amount: int, currency: str) -> GatewayPayment:
        self.captures.append((payment_id, amount))
        return GatewayPayment(payment_id, "order_0001", "captured", amount, captured=True)

    async def refund(self, payment_id: str, amount: int, notes: Mapping[str, str]) -> GatewayRefund:
        if self.fail_with:
            raise VendorError(self.fail_with, 502)
        self.refunds.append((payment_id, amount))
        return GatewayRefund(f"rfnd_{len(self.refunds)}", payment_id, amount, "processed")


@dataclass
class FakeAggregator:
    awb: str | None = "AWB1001"
    tracking_status: str = "In Transit"
    fail_create: str | None = None
    fail_auth: str | None = None
    during_create: Callable[[], Awaitable[None]] | None = None
    bookings: list[ShipmentRequest] = field(default_factory=list)
    cancelled: list[str] = field(default_factory=list)

    async def authenticate(self) -> None:
        if self.fail_auth:
            raise VendorError(self.fail_auth, 401)

    async def create_shipment(self, request: ShipmentRequest) -> ShipmentBooking:
        if self.fail_create:
            raise VendorError(self.fail_create, 422)
        self.bookings.append(request)
        if self.during_create is not None:
            await self.during_create()
        return ShipmentBooking(
            aggregator_order_id=f"SR{len(self.bookings)}",
            shipment_id=f"SH{len(self.bookings)}",
            awb=self.awb,
            courier_name="Delhivery",
            etd="2026-10-25",
        )

    async def track(self, awb: str) -> TrackingInfo:
        return TrackingInfo(
            awb=awb,
            status=self.tracking_status,
            courier_name="Delhivery",
            etd="2026-10-25",
            history=({"status": self.tracking_status, "location": "Mumbai"},),
        )

    async def cancel(self, awb: str) -> None:
        self.cancelled.append(awb)


@dataclass
class FakeNotifier:
    paid: list[str] = field(default_factory=list)
    delivered: list[str] = field(default_factory=list)
    fail: bool = False

    async def payment_confirmed(self, order: Order) -> None:
        if self.fail:
            raise RuntimeError("mail server down")
        self.paid.append(order.id)

    async def order_delivered(self, order: Order) -> None:
        if self.fail:
            raise RuntimeError("mail server down")
        self.delivered.append(order.id)


# ═══════════════════════════════════════════════════════════════════════════════
# Builders
# ═══════════════════════════════════════════════════════════════════════════════


SHIPPING = ShippingDetails(
    name="Asha Rao",
    phone="9876543210",
    address="12 MG Road",
    city="Bengaluru",
    state="Karnataka",
    pincode="560001",
    email="asha@example.com",
)


def checkout(
    *items: tuple[str, str, int, str],
    total: str,
    buyer: Buyer = U1,
) -> CheckoutRequest:
    """checkout(("trophy", "Large", 1, "2500.00"), total="2500.00")"""
    return CheckoutRequest(
        items=tuple(CheckoutItem(p, size, qty, Decimal(price)) for p, size, qty, price in items),
        client_total=Decimal(total),
        shipping=SHIPPING,
        buyer=buyer,
    )


def payment_signature(gateway_order_id: str, payment_id: str) -> str:
    return sign(KEY_SECRET, payment_message(gateway_order_id, payment_id))


def razorpay_event(
    event: str,
    *,
    payment: Mapping[str, Any] | None = None,
    order: Mapping[str, Any] | None = None,
    dispute: Mapping[str, Any] | None = None,
) -> tuple[bytes, str]:
    """A webhook body and its valid signature."""
    payload: dict[str, Any] = {}
    if payment is not None:
        payload["payment"] = {"entity": dict(payment)}
    if order is not None:
        payload["order"] = {"entity": dict(order)}
    if dispute is not None:
        payload["dispute"] = {"entity": dict(dispute)}
    body = json.dumps({"event": event, "payload": payload}).encode()
    return body, sign(WEBHOOK_SECRET, body)


def shiprocket_event(awb: str, status: str, **extra: Any) -> tuple[bytes, str]:
    body = json.dumps({"awb": awb, "current_status": status, **extra}).encode()
    return body, sign(SHIPPING_SECRET, body)
