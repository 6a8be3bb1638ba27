"""
Coupon domain — coupon, usage record, quote, and the discount arithmetic.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import StrEnum

from kungfu import Error, Ok, Result

from storefront._types import Money, money
from storefront.errors import Errors, ShopError

CODE_PATTERN = re.compile(r"^[A-Z0-9]{3,20}$")


class DiscountType(StrEnum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


@dataclass(frozen=True, slots=True)
class CouponDraft:
    """Admin-supplied coupon fields, before persistence."""

    code: str
    discount_type: DiscountType
    discount_value: Money
    description: str | None = None
    min_order_amount: Money | None = None
    max_discount_amount: Money | None = None
    usage_limit: int | None = None
    is_active: bool = True
    starts_at: datetime | None = None
    expires_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class Coupon:
    id: str
    code: str
    discount_type: DiscountType
    discount_value: Money
    description: str | None
    min_order_amount: Money | None
    max_discount_amount: Money | None
    usage_limit: int | None
    times_used: int
    is_active: bool
    starts_at: datetime | None
    expires_at: datetime | None
    created_by: str | None = None
    created_at: datetime | None = None

    def in_window(self, now: datetime) -> bool:
        if self.starts_at is not None and now < self.starts_at:
            return False
        if self.expires_at is not None and now > self.expires_at:
            return False
        return True

    def usable(self, now: datetime) -> bool:
        return self.is_active and self.in_window(now)

    @property
    def exhausted(self) -> bool:
        return self.usage_limit is not None and self.times_used >= self.usage_limit


@dataclass(frozen=True, slots=True)
class CouponUsage:
    id: str
    coupon_id: str
    user_id: str | None
    order_id: str
    discount_amount: Money
    order_amount: Money
    used_at: datetime


@dataclass(frozen=True, slots=True)
class CouponQuote:
    coupon: Coupon
    discount_amount: Money
    final_amount: Money


# ═══════════════════════════════════════════════════════════════════════════════
# Arithmetic
# ═══════════════════════════════════════════════════════════════════════════════


def compute_discount(coupon: Coupon, order_amount: Money) -> Money:
    """
    Discount for an order amount; 0 when below the minimum.

    Percentage discounts round to whole rupees before the cap.
    """
    amount = money(order_amount)
    if coupon.min_order_amount is not None and amount < coupon.min_order_amount:
        return money(0)

    if coupon.discount_type == DiscountType.PERCENTAGE:
        raw = (amount * coupon.discount_value / 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        discount = money(raw)
        if coupon.max_discount_amount is not None:
            discount = min(discount, money(coupon.max_discount_amount))
    else:
        discount = min(money(coupon.discount_value), amount)

    return max(discount, money(0))


def check_draft(draft: CouponDraft) -> Result[CouponDraft, ShopError]:
    code = draft.code.strip().upper()
    if not CODE_PATTERN.match(code):
        return Error(
            Errors.invalid_coupon_data("Coupon code must be 3-20 uppercase letters or digits")
        )
    value = money(draft.discount_value)
    if draft.discount_type == DiscountType.PERCENTAGE and not (0 < value <= 100):
        return Error(Errors.invalid_coupon_data("Percentage discount must be between 0 and 100"))
    if draft.discount_type == DiscountType.FIXED and value <= 0:
        return Error(Errors.invalid_coupon_data("Fixed discount must be greater than 0"))
    if draft.min_order_amount is not None and draft.min_order_amount < 0:
        return Error(Errors.invalid_coupon_data("Minimum order amount cannot be negative"))
    if draft.max_discount_amount is not None and draft.max_discount_amount <= 0:
        return Error(Errors.invalid_coupon_data("Maximum discount must be greater than 0"))
    if draft.usage_limit is not None and draft.usage_limit < 1:
        return Error(Errors.invalid_coupon_data("Usage limit must be at least 1"))
    if (
        draft.starts_at is not None
        and draft.expires_at is not None
        and draft.starts_at >= draft.expires_at
    ):
        return Error(Errors.invalid_coupon_data("Coupon must start before it expires"))

    return Ok(
        CouponDraft(
            code=code,
            discount_type=draft.discount_type,
            discount_value=value,
            description=draft.description,
            min_order_amount=money(draft.min_order_amount) if draft.min_order_amount is not None else None,
            max_discount_amount=(
                money(draft.max_discount_amount) if draft.max_discount_amount is not None else None
            ),
            usage_limit=draft.usage_limit,
            is_active=draft.is_active,
            starts_at=draft.starts_at,
            expires_at=draft.expires_at,
        )
    )


__all__ = (
    "CODE_PATTERN",
    "DiscountType",
    "CouponDraft",
    "Coupon",
    "CouponUsage",
    "CouponQuote",
    "compute_discount",
    "check_draft",
)
