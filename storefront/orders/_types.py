"""
Order domain — statuses, frozen item snapshots, the persisted order.

Status strings are persisted as-is and must round-trip exactly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from typing import Any

from storefront._types import Money, money


class OrderStatus(StrEnum):
    NEW = "new"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(StrEnum):
    PENDING = "pending"
    AUTHORIZED = "authorized"
    COMPLETED = "completed"
    FAILED = "failed"
    DISPUTED = "disputed"


class ShipmentStatus(StrEnum):
    CREATED = "created"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    LOST = "lost"
    DAMAGED = "damaged"


# ═══════════════════════════════════════════════════════════════════════════════
# Checkout Input
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CheckoutItem:
    product_id: str
    variant_size: str
    quantity: int
    price: Money


@dataclass(frozen=True, slots=True)
class CouponInfo:
    discount_amount: Money
    code: str | None = None


@dataclass(frozen=True, slots=True)
class ShippingDetails:
    name: str
    phone: str
    address: str
    city: str
    state: str
    pincode: str
    email: str | None = None
    country: str = "India"


@dataclass(frozen=True, slots=True)
class Buyer:
    user_id: str | None = None
    is_admin: bool = False
    guest_token: str | None = None


@dataclass(frozen=True, slots=True)
class CheckoutRequest:
    items: tuple[CheckoutItem, ...]
    client_total: Money
    shipping: ShippingDetails
    buyer: Buyer = Buyer()
    coupon: CouponInfo | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Order
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class OrderItem:
    """Frozen copy of the catalog at order time; never re-derived."""

    product_id: str
    variant_id: str
    product_name: str
    variant_size: str
    price: Money
    quantity: int
    sku: str | None = None
    weight_grams: int | None = None
    hsn_code: str | None = None

    @property
    def subtotal(self) -> Money:
        return money(self.price * self.quantity)

    def to_json(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "product_name": self.product_name,
            "variant_size": self.variant_size,
            "price": str(self.price),
            "quantity": self.quantity,
            "sku": self.sku,
            "weight_grams": self.weight_grams,
            "hsn_code": self.hsn_code,
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> OrderItem:
        return cls(
            product_id=data["product_id"],
            variant_id=data["variant_id"],
            product_name=data["product_name"],
            variant_size=data["variant_size"],
            price=money(data["price"]),
            quantity=int(data["quantity"]),
            sku=data.get("sku"),
            weight_grams=data.get("weight_grams"),
            hsn_code=data.get("hsn_code"),
        )


@dataclass(frozen=True, slots=True)
class Refund:
    id: str
    order_id: str
    gateway_refund_id: str
    amount: Money
    status: str
    reason: str | None
    created_at: datetime


@dataclass(frozen=True, slots=True)
class Order:
    id: str
    order_number: str
    user_id: str | None
    items: tuple[OrderItem, ...]
    subtotal: Money
    total_amount: Money
    shipping: ShippingDetails
    status: OrderStatus = OrderStatus.NEW
    payment_status: PaymentStatus = PaymentStatus.PENDING
    coupon_code: str | None = None
    coupon_discount: Money = Decimal("0.00")
    guest_token: str | None = None

    gateway_order_id: str | None = None
    gateway_payment_id: str | None = None
    payment_method: str | None = None
    payment_verification: dict[str, Any] | None = None
    payment_failure_reason: str | None = None
    dispute_reason: str | None = None
    refund_required: bool = False

    shipment_status: ShipmentStatus | None = None
    awb_code: str | None = None
    courier_name: str | None = None
    tracking_url: str | None = None
    aggregator_order_id: str | None = None
    aggregator_shipment_id: str | None = None
    estimated_delivery: str | None = None
    last_tracking: dict[str, Any] | None = None

    created_at: datetime | None = None
    updated_at: datetime | None = None
    payment_initiated_at: datetime | None = None
    paid_at: datetime | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None

    refunds: tuple[Refund, ...] = field(default=())

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.COMPLETED

    @property
    def refunded_amount(self) -> Money:
        return money(sum((r.amount for r in self.refunds), Decimal("0")))

    def visible_to(self, buyer: Buyer) -> bool:
        if buyer.is_admin:
            return True
        if self.user_id is not None:
            return self.user_id == buyer.user_id
        # guest orders belong to the token that placed them
        return self.guest_token is not None and self.guest_token == buyer.guest_token


__all__ = (
    "OrderStatus",
    "PaymentStatus",
    "ShipmentStatus",
    "CheckoutItem",
    "CouponInfo",
    "ShippingDetails",
    "Buyer",
    "CheckoutRequest",
    "OrderItem",
    "Refund",
    "Order",
)
