"""
Coupons — eligibility, discount math and usage bookkeeping.

    quote = await engine.validate("SAVE10", money(2400), user_id="u1")
    usage = await engine.apply(coupon.id, order.id, order.subtotal, discount, "u1")
"""

from storefront.coupons._types import (
    CODE_PATTERN,
    DiscountType,
    CouponDraft,
    Coupon,
    CouponUsage,
    CouponQuote,
    compute_discount,
    check_draft,
)
from storefront.coupons._engine import CouponEngine
from storefront.coupons._admin import CouponAdmin

__all__ = (
    "CODE_PATTERN",
    "DiscountType",
    "CouponDraft",
    "Coupon",
    "CouponUsage",
    "CouponQuote",
    "compute_discount",
    "check_draft",
    "CouponEngine",
    "CouponAdmin",
)
