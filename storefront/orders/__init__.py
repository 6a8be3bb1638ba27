"""
Orders — checkout validation, persisted snapshots and status lifecycle.

    result = await service.create(CheckoutRequest(items, client_total, shipping, buyer))
    match result:
        case Ok(order): ...
        case Error(e): e.code  # TOTAL_MISMATCH, PRICE_MISMATCH, ...
"""

from storefront.orders._types import (
    OrderStatus,
    PaymentStatus,
    ShipmentStatus,
    CheckoutItem,
    CouponInfo,
    ShippingDetails,
    Buyer,
    CheckoutRequest,
    OrderItem,
    Refund,
    Order,
)
from storefront.orders._repo import OrderRepo, next_order_number, new_order_id
from storefront.orders._checkout import create_order
from storefront.orders._lifecycle import (
    CANCELLABLE,
    TERMINAL,
    can_transition,
    OrderPage,
    OrderService,
)

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
    "OrderRepo",
    "next_order_number",
    "new_order_id",
    "create_order",
    "CANCELLABLE",
    "TERMINAL",
    "can_transition",
    "OrderPage",
    "OrderService",
)
