"""
Vendor seams — what the core needs from the payment gateway, the shipping
aggregator and the notifier.

Amounts crossing the gateway seam are integer paise; everything else in
the core is rupees.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from storefront._types import Money
from storefront.orders import Order


class VendorError(Exception):
    """A vendor call failed (transport, non-2xx, or malformed reply)."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


# ═══════════════════════════════════════════════════════════════════════════════
# Payment Gateway
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class GatewayOrder:
    id: str
    amount: int
    currency: str
    receipt: str
    status: str = "created"


@dataclass(frozen=True, slots=True)
class GatewayPayment:
    id: str
    order_id: str | None
    status: str
    amount: int
    method: str | None = None
    captured: bool = False


@dataclass(frozen=True, slots=True)
class GatewayRefund:
    id: str
    payment_id: str
    amount: int
    status: str


class PaymentGateway(Protocol):
    async def create_order(
        self, amount: int, currency: str, receipt: str, notes: Mapping[str, str]
    ) -> GatewayOrder: ...

    async def fetch_payment(self, payment_id: str) -> GatewayPayment: ...

    async def capture(self, payment_id: str, amount: int, currency: str) -> GatewayPayment: ...

    async def refund(
        self, payment_id: str, amount: int, notes: Mapping[str, str]
    ) -> GatewayRefund: ...


# ═══════════════════════════════════════════════════════════════════════════════
# Shipping Aggregator
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class ManifestItem:
    name: str
    sku: str
    units: int
    selling_price: Money
    hsn: str | None = None


@dataclass(frozen=True, slots=True)
class ShipmentRequest:
    """Flattened order as the aggregator wants it."""

    order_number: str
    order_date: str
    customer_name: str
    phone: str
    address: str
    city: str
    state: str
    pincode: str
    country: str
    email: str | None
    items: tuple[ManifestItem, ...]
    sub_total: Money
    weight_kg: float
    length_cm: float = 10
    breadth_cm: float = 10
    height_cm: float = 10
    payment_method: str = "Prepaid"


@dataclass(frozen=True, slots=True)
class ShipmentBooking:
    aggregator_order_id: str
    shipment_id: str
    awb: str | None
    courier_name: str | None = None
    courier_id: str | None = None
    etd: str | None = None


@dataclass(frozen=True, slots=True)
class TrackingInfo:
    awb: str
    status: str
    courier_name: str | None = None
    etd: str | None = None
    delivered_date: str | None = None
    history: tuple[Mapping[str, Any], ...] = field(default=())


class ShippingAggregator(Protocol):
    async def authenticate(self) -> None: ...

    async def create_shipment(self, request: ShipmentRequest) -> ShipmentBooking: ...

    async def track(self, awb: str) -> TrackingInfo: ...

    async def cancel(self, awb: str) -> None: ...


# ═══════════════════════════════════════════════════════════════════════════════
# Notifier
# ═══════════════════════════════════════════════════════════════════════════════


class Notifier(Protocol):
    async def payment_confirmed(self, order: Order) -> None: ...

    async def order_delivered(self, order: Order) -> None: ...


__all__ = (
    "VendorError",
    "GatewayOrder",
    "GatewayPayment",
    "GatewayRefund",
    "PaymentGateway",
    "ManifestItem",
    "ShipmentRequest",
    "ShipmentBooking",
    "TrackingInfo",
    "ShippingAggregator",
    "Notifier",
)
