"""
Coupon administration — create/update/delete/list and usage history.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import asdict, replace
from typing import Any

from kungfu import Error, Ok, Result
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from storefront._types import utcnow
from storefront.coupons._engine import to_coupon, to_usage
from storefront.coupons._types import Coupon, CouponDraft, CouponUsage, check_draft
from storefront.db import CouponTable, CouponUsageTable, SessionFactory
from storefront.errors import Errors, ShopError
from storefront.log import get_logger

log = get_logger(__name__)

EDITABLE = frozenset(CouponDraft.__dataclass_fields__)


def _draft_of(coupon: Coupon) -> CouponDraft:
    return CouponDraft(
        code=coupon.code,
        discount_type=coupon.discount_type,
        discount_value=coupon.discount_value,
        description=coupon.description,
        min_order_amount=coupon.min_order_amount,
        max_discount_amount=coupon.max_discount_amount,
        usage_limit=coupon.usage_limit,
        is_active=coupon.is_active,
        starts_at=coupon.starts_at,
        expires_at=coupon.expires_at,
    )


def _columns(draft: CouponDraft) -> dict[str, Any]:
    values = asdict(draft)
    values["discount_type"] = draft.discount_type.value
    return values


class CouponAdmin:
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session = session_factory

    async def create(
        self, draft: CouponDraft, created_by: str | None = None
    ) -> Result[Coupon, ShopError]:
        match check_draft(draft):
            case Error(e):
                return Error(e)
            case Ok(clean):
                pass

        now = utcnow()
        row = CouponTable(
            id=uuid.uuid4().hex,
            times_used=0,
            created_by=created_by,
            created_at=now,
            updated_at=now,
            **_columns(clean),
        )
        async with self._session() as session:
            session.add(row)
            try:
                await session.commit()
            except IntegrityError:
                return Error(Errors.coupon_exists(clean.code))
        log.info("coupon_created", code=clean.code, created_by=created_by)
        return Ok(to_coupon(row))

    async def get(self, coupon_id: str) -> Result[Coupon, ShopError]:
        async with self._session() as session:
            row = await session.get(CouponTable, coupon_id)
            if row is None:
                return Error(Errors.coupon_not_found())
            return Ok(to_coupon(row))

    async def update(
        self, coupon_id: str, changes: Mapping[str, Any]
    ) -> Result[Coupon, ShopError]:
        unknown = set(changes) - EDITABLE
        if unknown:
            return Error(Errors.invalid_coupon_data(f"Unknown fields: {', '.join(sorted(unknown))}"))

        async with self._session() as session:
            row = await session.get(CouponTable, coupon_id)
            if row is None:
                return Error(Errors.coupon_not_found())

            match check_draft(replace(_draft_of(to_coupon(row)), **changes)):
                case Error(e):
                    return Error(e)
                case Ok(clean):
                    pass

            for column, value in _columns(clean).items():
                setattr(row, column, value)
            row.updated_at = utcnow()
            try:
                await session.commit()
            except IntegrityError:
                return Error(Errors.coupon_exists(clean.code))
            return Ok(to_coupon(row))

    async def delete(self, coupon_id: str) -> Result[None, ShopError]:
        async with self._session() as session:
            row = await session.get(CouponTable, coupon_id)
            if row is None:
                return Error(Errors.coupon_not_found())
            if row.times_used > 0:
                return Error(Errors.coupon_in_use())
            await session.delete(row)
            await session.commit()
        log.info("coupon_deleted", coupon_id=coupon_id)
        return Ok(None)

    async def list(
        self, *, active: bool | None = None, page: int = 1, limit: int = 20
    ) -> tuple[list[Coupon], int]:
        conditions = [] if active is None else [CouponTable.is_active.is_(active)]
        async with self._session() as session:
            total = (
                await session.execute(select(func.count()).select_from(CouponTable).where(*conditions))
            ).scalar_one()
            rows = (
                await session.execute(
                    select(CouponTable)
                    .where(*conditions)
                    .order_by(CouponTable.created_at.desc())
                    .offset((page - 1) * limit)
                    .limit(limit)
                )
            ).scalars()
            return [to_coupon(row) for row in rows], total

    async def usage_history(self, coupon_id: str) -> Result[list[CouponUsage], ShopError]:
        async with self._session() as session:
            if await session.get(CouponTable, coupon_id) is None:
                return Error(Errors.coupon_not_found())
            rows = (
                await session.execute(
                    select(CouponUsageTable)
                    .where(CouponUsageTable.coupon_id == coupon_id)
                    .order_by(CouponUsageTable.used_at.desc())
                )
            ).scalars()
            return Ok([to_usage(row) for row in rows])


__all__ = ("CouponAdmin",)
