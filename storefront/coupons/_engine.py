"""
Coupon engine — eligibility checks and usage recording.

validate() never writes. apply() records one usage and bumps the counter
in one transaction; the unique constraints on coupon_usages decide races.
"""

from __future__ import annotations

import uuid

from kungfu import Error, Ok, Result
from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError

from storefront._types import Money, money, utcnow
from storefront.coupons._types import (
    Coupon,
    CouponQuote,
    CouponUsage,
    DiscountType,
    compute_discount,
)
from storefront.db import CouponTable, CouponUsageTable, OrderTable, SessionFactory
from storefront.errors import Errors, ShopError
from storefront.log import get_logger

log = get_logger(__name__)


def to_coupon(row: CouponTable) -> Coupon:
    return Coupon(
        id=row.id,
        code=row.code,
        discount_type=DiscountType(row.discount_type),
        discount_value=money(row.discount_value),
        description=row.description,
        min_order_amount=money(row.min_order_amount) if row.min_order_amount is not None else None,
        max_discount_amount=(
            money(row.max_discount_amount) if row.max_discount_amount is not None else None
        ),
        usage_limit=row.usage_limit,
        times_used=row.times_used,
        is_active=row.is_active,
        starts_at=row.starts_at,
        expires_at=row.expires_at,
        created_by=row.created_by,
        created_at=row.created_at,
    )


def to_usage(row: CouponUsageTable) -> CouponUsage:
    return CouponUsage(
        id=row.id,
        coupon_id=row.coupon_id,
        user_id=row.user_id,
        order_id=row.order_id,
        discount_amount=money(row.discount_amount),
        order_amount=money(row.order_amount),
        used_at=row.used_at,
    )


class CouponEngine:
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session = session_factory

    async def validate(
        self, code: str, order_amount: Money, user_id: str | None = None
    ) -> Result[CouponQuote, ShopError]:
        async with self._session() as session:
            row = (
                await session.execute(
                    select(CouponTable).where(CouponTable.code == code.strip().upper())
                )
            ).scalar_one_or_none()
            if row is None:
                return Error(Errors.coupon_not_found())
            coupon = to_coupon(row)

            if not coupon.usable(utcnow()):
                return Error(Errors.coupon_not_found())
            if coupon.exhausted:
                return Error(Errors.usage_limit_reached())

            if user_id is not None:
                used = (
                    await session.execute(
                        select(CouponUsageTable.id).where(
                            CouponUsageTable.coupon_id == coupon.id,
                            CouponUsageTable.user_id == user_id,
                        )
                    )
                ).first()
                if used is not None:
                    return Error(Errors.already_used())

        amount = money(order_amount)
        discount = compute_discount(coupon, amount)
        if discount <= 0:
            return Error(Errors.not_applicable(coupon.min_order_amount))

        return Ok(CouponQuote(coupon, discount, money(amount - discount)))

    async def apply(
        self,
        coupon_id: str,
        order_id: str,
        order_amount: Money,
        discount_amount: Money,
        user_id: str | None,
    ) -> Result[CouponUsage, ShopError]:
        """Record one use by a signed-in buyer on their own order."""
        if user_id is None:
            return Error(Errors.forbidden("Sign in to use a coupon"))
        discount = money(discount_amount)
        amount = money(order_amount)
        if discount < 0 or discount > amount:
            return Error(Errors.invalid_discount())

        async with self._session() as session:
            row = await session.get(CouponTable, coupon_id)
            if row is None or not row.is_active:
                return Error(Errors.invalid_coupon())
            order = await session.get(OrderTable, order_id)
            if order is None:
                return Error(Errors.order_not_found(order_id))
            if order.user_id != user_id:
                return Error(Errors.forbidden())

            usage = CouponUsageTable(
                id=uuid.uuid4().hex,
                coupon_id=coupon_id,
                user_id=user_id,
                order_id=order_id,
                discount_amount=discount,
                order_amount=amount,
                used_at=utcnow(),
            )
            session.add(usage)
            try:
                await session.flush()
            except IntegrityError:
                await session.rollback()
                same_order = (
                    await session.execute(
                        select(CouponUsageTable.id).where(
                            CouponUsageTable.coupon_id == coupon_id,
                            CouponUsageTable.order_id == order_id,
                        )
                    )
                ).first()
                log.info(
                    "coupon_apply_rejected",
                    coupon_id=coupon_id,
                    order_id=order_id,
                    duplicate_order=same_order is not None,
                )
                return Error(
                    Errors.duplicate_application() if same_order is not None else Errors.already_used()
                )

            bumped = await session.execute(
                update(CouponTable)
                .where(
                    CouponTable.id == coupon_id,
                    or_(
                        CouponTable.usage_limit.is_(None),
                        CouponTable.times_used < CouponTable.usage_limit,
                    ),
                )
                .values(times_used=CouponTable.times_used + 1, updated_at=utcnow())
            )
            if bumped.rowcount != 1:  # type: ignore[attr-defined]
                await session.rollback()
                return Error(Errors.usage_limit_reached())

            await session.commit()
            log.info("coupon_applied", coupon_id=coupon_id, order_id=order_id, discount=str(discount))
            return Ok(to_usage(usage))


__all__ = ("CouponEngine", "to_coupon", "to_usage")
