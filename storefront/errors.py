"""
Errors — typed, enumerable failure values.

Every service operation returns Result[T, ShopError]. Graph nodes raise
ShopFailure, which the graph runner turns back into Error(ShopError).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum, StrEnum, auto
from typing import Any


class ErrorKind(Enum):
    VALIDATION = auto()
    NOT_FOUND = auto()
    FORBIDDEN = auto()
    SECURITY = auto()
    VENDOR = auto()
    CONFLICT = auto()
    INTERNAL = auto()

    @property
    def http_status(self) -> int:
        return _STATUS[self]


_STATUS = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.SECURITY: 400,
    ErrorKind.VENDOR: 502,
    ErrorKind.CONFLICT: 400,
    ErrorKind.INTERNAL: 500,
}


class Code(StrEnum):
    # generic
    VALIDATION_ERROR = "VALIDATION_ERROR"
    FORBIDDEN = "FORBIDDEN"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    # order validation
    EMPTY_ORDER = "EMPTY_ORDER"
    PRODUCT_UNAVAILABLE = "PRODUCT_UNAVAILABLE"
    VARIANT_UNAVAILABLE = "VARIANT_UNAVAILABLE"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
    PRICE_MISMATCH = "PRICE_MISMATCH"
    INVALID_DISCOUNT = "INVALID_DISCOUNT"
    TOTAL_MISMATCH = "TOTAL_MISMATCH"
    # order lifecycle
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    CANNOT_CANCEL_ORDER = "CANNOT_CANCEL_ORDER"
    INVALID_STATUS = "INVALID_STATUS"
    INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"
    # payments
    AMOUNT_MISMATCH = "AMOUNT_MISMATCH"
    ALREADY_PAID = "ALREADY_PAID"
    ORDER_CANCELLED = "ORDER_CANCELLED"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    INVALID_WEBHOOK_SIGNATURE = "INVALID_WEBHOOK_SIGNATURE"
    GATEWAY_ORDER_MISMATCH = "GATEWAY_ORDER_MISMATCH"
    PAYMENT_GATEWAY_ERROR = "PAYMENT_GATEWAY_ERROR"
    PAYMENT_NOT_COMPLETED = "PAYMENT_NOT_COMPLETED"
    PAYMENT_ID_MISSING = "PAYMENT_ID_MISSING"
    INVALID_REFUND_AMOUNT = "INVALID_REFUND_AMOUNT"
    REFUND_NOT_FOUND = "REFUND_NOT_FOUND"
    # coupons
    COUPON_NOT_FOUND = "COUPON_NOT_FOUND"
    USAGE_LIMIT_REACHED = "USAGE_LIMIT_REACHED"
    ALREADY_USED = "ALREADY_USED"
    NOT_APPLICABLE = "NOT_APPLICABLE"
    INVALID_COUPON = "INVALID_COUPON"
    DUPLICATE_APPLICATION = "DUPLICATE_APPLICATION"
    COUPON_EXISTS = "COUPON_EXISTS"
    INVALID_COUPON_DATA = "INVALID_COUPON_DATA"
    COUPON_IN_USE = "COUPON_IN_USE"
    # shipping
    ORDER_NOT_PAID = "ORDER_NOT_PAID"
    SHIPMENT_EXISTS = "SHIPMENT_EXISTS"
    SHIPMENT_NOT_FOUND = "SHIPMENT_NOT_FOUND"
    NO_SHIPMENT = "NO_SHIPMENT"
    SHIPPING_PROVIDER_ERROR = "SHIPPING_PROVIDER_ERROR"
    # cart
    MISSING_REQUIRED_FIELDS = "MISSING_REQUIRED_FIELDS"
    INVALID_QUANTITY = "INVALID_QUANTITY"
    PRODUCT_NOT_FOUND = "PRODUCT_NOT_FOUND"
    VARIANT_NOT_FOUND = "VARIANT_NOT_FOUND"
    CART_ITEM_NOT_FOUND = "CART_ITEM_NOT_FOUND"


_KIND: dict[Code, ErrorKind] = {
    Code.FORBIDDEN: ErrorKind.FORBIDDEN,
    Code.INTERNAL_ERROR: ErrorKind.INTERNAL,
    Code.ORDER_NOT_FOUND: ErrorKind.NOT_FOUND,
    Code.COUPON_NOT_FOUND: ErrorKind.NOT_FOUND,
    Code.REFUND_NOT_FOUND: ErrorKind.NOT_FOUND,
    Code.SHIPMENT_NOT_FOUND: ErrorKind.NOT_FOUND,
    Code.PRODUCT_NOT_FOUND: ErrorKind.NOT_FOUND,
    Code.VARIANT_NOT_FOUND: ErrorKind.NOT_FOUND,
    Code.CART_ITEM_NOT_FOUND: ErrorKind.NOT_FOUND,
    Code.INVALID_SIGNATURE: ErrorKind.SECURITY,
    Code.INVALID_WEBHOOK_SIGNATURE: ErrorKind.SECURITY,
    Code.GATEWAY_ORDER_MISMATCH: ErrorKind.SECURITY,
    Code.PAYMENT_GATEWAY_ERROR: ErrorKind.VENDOR,
    Code.SHIPPING_PROVIDER_ERROR: ErrorKind.VENDOR,
    Code.DUPLICATE_APPLICATION: ErrorKind.CONFLICT,
    Code.SHIPMENT_EXISTS: ErrorKind.CONFLICT,
    Code.ALREADY_USED: ErrorKind.CONFLICT,
    Code.ALREADY_PAID: ErrorKind.CONFLICT,
    Code.COUPON_EXISTS: ErrorKind.CONFLICT,
}


# ═══════════════════════════════════════════════════════════════════════════════
# Error Value
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class ShopError:
    code: Code
    message: str
    details: Mapping[str, Any] | None = None

    @property
    def kind(self) -> ErrorKind:
        return _KIND.get(self.code, ErrorKind.VALIDATION)

    @property
    def http_status(self) -> int:
        return self.kind.http_status


class ShopFailure(Exception):
    """Carries a ShopError out of code that cannot return a Result."""

    def __init__(self, error: ShopError) -> None:
        super().__init__(f"{error.code}: {error.message}")
        self.error = error


# ═══════════════════════════════════════════════════════════════════════════════
# Factories
# ═══════════════════════════════════════════════════════════════════════════════


class Errors:
    # orders

    @staticmethod
    def empty_order() -> ShopError:
        return ShopError(Code.EMPTY_ORDER, "Order must contain at least one item")

    @staticmethod
    def product_unavailable(product_id: str) -> ShopError:
        return ShopError(
            Code.PRODUCT_UNAVAILABLE,
            f"Product {product_id} is not available",
            {"product_id": product_id},
        )

    @staticmethod
    def variant_unavailable(product_id: str, size: str) -> ShopError:
        return ShopError(
            Code.VARIANT_UNAVAILABLE,
            f"Size {size} is not available for product {product_id}",
            {"product_id": product_id, "size": size},
        )

    @staticmethod
    def insufficient_stock(name: str, size: str, available: int | None = None) -> ShopError:
        if available is None:
            return ShopError(Code.INSUFFICIENT_STOCK, f"Insufficient stock for {name} ({size})")
        return ShopError(
            Code.INSUFFICIENT_STOCK,
            f"Insufficient stock for {name} ({size}). Available: {available}",
            {"available": available},
        )

    @staticmethod
    def price_mismatch(name: str, expected: object, submitted: object) -> ShopError:
        return ShopError(
            Code.PRICE_MISMATCH,
            f"Price changed for {name}. Current price: {expected}",
            {"current_price": str(expected), "submitted_price": str(submitted)},
        )

    @staticmethod
    def invalid_discount(msg: str = "Discount exceeds order amount") -> ShopError:
        return ShopError(Code.INVALID_DISCOUNT, msg)

    @staticmethod
    def total_mismatch(expected: object, submitted: object) -> ShopError:
        return ShopError(
            Code.TOTAL_MISMATCH,
            f"Order total mismatch. Expected: {expected}, received: {submitted}",
            {"expected": str(expected), "received": str(submitted)},
        )

    @staticmethod
    def order_not_found(ref: str = "") -> ShopError:
        return ShopError(Code.ORDER_NOT_FOUND, f"Order not found{': ' + ref if ref else ''}")

    @staticmethod
    def cannot_cancel(status: str) -> ShopError:
        return ShopError(
            Code.CANNOT_CANCEL_ORDER,
            f"Order cannot be cancelled in status '{status}'",
        )

    @staticmethod
    def invalid_status(status: str) -> ShopError:
        return ShopError(Code.INVALID_STATUS, f"Invalid order status: {status}")

    @staticmethod
    def invalid_transition(src: str, dst: str) -> ShopError:
        return ShopError(
            Code.INVALID_STATUS_TRANSITION,
            f"Cannot move order from '{src}' to '{dst}'",
        )

    @staticmethod
    def forbidden(msg: str = "Not allowed to access this resource") -> ShopError:
        return ShopError(Code.FORBIDDEN, msg)

    # payments

    @staticmethod
    def amount_mismatch(expected: object, received: object) -> ShopError:
        return ShopError(
            Code.AMOUNT_MISMATCH,
            "Payment amount does not match order total",
            {"expected": str(expected), "received": str(received)},
        )

    @staticmethod
    def already_paid() -> ShopError:
        return ShopError(Code.ALREADY_PAID, "Order has already been paid")

    @staticmethod
    def order_cancelled() -> ShopError:
        return ShopError(Code.ORDER_CANCELLED, "Order has been cancelled")

    @staticmethod
    def invalid_amount(msg: str) -> ShopError:
        return ShopError(Code.INVALID_AMOUNT, msg)

    @staticmethod
    def invalid_signature() -> ShopError:
        return ShopError(Code.INVALID_SIGNATURE, "Payment signature verification failed")

    @staticmethod
    def invalid_webhook_signature() -> ShopError:
        return ShopError(Code.INVALID_WEBHOOK_SIGNATURE, "Invalid webhook signature")

    @staticmethod
    def gateway_order_mismatch() -> ShopError:
        return ShopError(
            Code.GATEWAY_ORDER_MISMATCH,
            "Gateway order id does not belong to this order",
        )

    @staticmethod
    def gateway(msg: str) -> ShopError:
        return ShopError(Code.PAYMENT_GATEWAY_ERROR, f"Payment gateway error: {msg}")

    @staticmethod
    def payment_not_completed() -> ShopError:
        return ShopError(Code.PAYMENT_NOT_COMPLETED, "Payment is not completed for this order")

    @staticmethod
    def payment_id_missing() -> ShopError:
        return ShopError(Code.PAYMENT_ID_MISSING, "No payment id recorded for this order")

    @staticmethod
    def invalid_refund_amount(refundable: object) -> ShopError:
        return ShopError(
            Code.INVALID_REFUND_AMOUNT,
            f"Refund amount must be greater than 0 and at most {refundable}",
            {"refundable": str(refundable)},
        )

    @staticmethod
    def refund_not_found(refund_id: str) -> ShopError:
        return ShopError(Code.REFUND_NOT_FOUND, f"Refund not found: {refund_id}")

    # coupons

    @staticmethod
    def coupon_not_found() -> ShopError:
        return ShopError(Code.COUPON_NOT_FOUND, "Invalid or expired coupon code")

    @staticmethod
    def usage_limit_reached() -> ShopError:
        return ShopError(Code.USAGE_LIMIT_REACHED, "Coupon usage limit has been reached")

    @staticmethod
    def already_used() -> ShopError:
        return ShopError(Code.ALREADY_USED, "You have already used this coupon")

    @staticmethod
    def not_applicable(min_order_amount: object | None) -> ShopError:
        if min_order_amount is not None:
            return ShopError(
                Code.NOT_APPLICABLE,
                f"Minimum order amount of ₹{min_order_amount} required for this coupon",
                {"min_order_amount": str(min_order_amount)},
            )
        return ShopError(Code.NOT_APPLICABLE, "Coupon is not applicable to this order")

    @staticmethod
    def invalid_coupon() -> ShopError:
        return ShopError(Code.INVALID_COUPON, "Coupon is no longer active")

    @staticmethod
    def duplicate_application() -> ShopError:
        return ShopError(
            Code.DUPLICATE_APPLICATION,
            "Coupon has already been applied to this order",
        )

    @staticmethod
    def coupon_exists(code: str) -> ShopError:
        return ShopError(Code.COUPON_EXISTS, f"Coupon code {code} already exists")

    @staticmethod
    def invalid_coupon_data(msg: str) -> ShopError:
        return ShopError(Code.INVALID_COUPON_DATA, msg)

    @staticmethod
    def coupon_in_use() -> ShopError:
        return ShopError(
            Code.COUPON_IN_USE,
            "Coupon has been used and cannot be deleted; deactivate it instead",
        )

    # shipping

    @staticmethod
    def order_not_paid() -> ShopError:
        return ShopError(Code.ORDER_NOT_PAID, "Order must be paid before shipping")

    @staticmethod
    def shipment_exists(awb: str) -> ShopError:
        return ShopError(
            Code.SHIPMENT_EXISTS,
            "Shipment already created for this order",
            {"awb": awb},
        )

    @staticmethod
    def shipment_not_found() -> ShopError:
        return ShopError(Code.SHIPMENT_NOT_FOUND, "No shipment found for this order")

    @staticmethod
    def no_shipment() -> ShopError:
        return ShopError(Code.NO_SHIPMENT, "Order has no shipment")

    @staticmethod
    def shipping_provider(msg: str) -> ShopError:
        return ShopError(Code.SHIPPING_PROVIDER_ERROR, f"Shipping provider error: {msg}")

    # cart

    @staticmethod
    def missing_fields(msg: str = "Product and variant are required") -> ShopError:
        return ShopError(Code.MISSING_REQUIRED_FIELDS, msg)

    @staticmethod
    def invalid_quantity() -> ShopError:
        return ShopError(Code.INVALID_QUANTITY, "Quantity must be greater than 0")

    @staticmethod
    def product_not_found() -> ShopError:
        return ShopError(Code.PRODUCT_NOT_FOUND, "Product not found")

    @staticmethod
    def variant_not_found() -> ShopError:
        return ShopError(Code.VARIANT_NOT_FOUND, "Product variant not found")

    @staticmethod
    def cart_item_not_found() -> ShopError:
        return ShopError(Code.CART_ITEM_NOT_FOUND, "Item not found in cart")

    # generic

    @staticmethod
    def validation(msg: str, details: Mapping[str, Any] | None = None) -> ShopError:
        return ShopError(Code.VALIDATION_ERROR, msg, details)

    @staticmethod
    def internal(msg: str = "Internal server error") -> ShopError:
        return ShopError(Code.INTERNAL_ERROR, msg)


__all__ = ("ErrorKind", "Code", "ShopError", "ShopFailure", "Errors")
