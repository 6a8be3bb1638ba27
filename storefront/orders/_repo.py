"""
Order repository — row <-> domain mapping, conditional status writes.
"""

from __future__ import annotations

import itertools
import secrets
import time
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import replace
from enum import Enum
from typing import Any

from kungfu import Error, Ok, Result
from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError

from storefront._types import money, utcnow
from storefront.catalog import reserve_stock
from storefront.db import OrderTable, RefundTable, SessionFactory
from storefront.errors import Errors, ShopError
from storefront.log import get_logger
from storefront.orders._types import (
    Order,
    OrderItem,
    OrderStatus,
    PaymentStatus,
    Refund,
    ShipmentStatus,
    ShippingDetails,
)

log = get_logger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Order Numbers
# ═══════════════════════════════════════════════════════════════════════════════

_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
_SUFFIX_SPACE = 36**5
_suffixes = itertools.count(secrets.randbelow(_SUFFIX_SPACE))


def next_order_number() -> str:
    """
    ORD-<epoch ms>-<5 base36 chars>.

    The suffix walks a per-process sequence from a random start, so numbers
    minted in the same millisecond by one process never repeat.
    """
    n = next(_suffixes) % _SUFFIX_SPACE
    suffix = ""
    for _ in range(5):
        n, r = divmod(n, 36)
        suffix = _ALPHABET[r] + suffix
    return f"ORD-{int(time.time() * 1000)}-{suffix}"


def new_order_id() -> str:
    return uuid.uuid4().hex


# ═══════════════════════════════════════════════════════════════════════════════
# Mapping
# ═══════════════════════════════════════════════════════════════════════════════


def _refund(row: RefundTable) -> Refund:
    return Refund(
        id=row.id,
        order_id=row.order_id,
        gateway_refund_id=row.gateway_refund_id,
        amount=money(row.amount),
        status=row.status,
        reason=row.reason,
        created_at=row.created_at,
    )


def _order(row: OrderTable, refunds: Sequence[Refund] = ()) -> Order:
    return Order(
        id=row.id,
        order_number=row.order_number,
        user_id=row.user_id,
        guest_token=row.guest_token,
        items=tuple(OrderItem.from_json(item) for item in row.items),
        subtotal=money(row.subtotal),
        total_amount=money(row.total_amount),
        shipping=ShippingDetails(
            name=row.shipping_name,
            phone=row.shipping_phone,
            address=row.shipping_address,
            city=row.shipping_city,
            state=row.shipping_state,
            pincode=row.shipping_pincode,
            email=row.shipping_email,
            country=row.shipping_country,
        ),
        status=OrderStatus(row.status),
        payment_status=PaymentStatus(row.payment_status),
        coupon_code=row.coupon_code,
        coupon_discount=money(row.coupon_discount),
        gateway_order_id=row.gateway_order_id,
        gateway_payment_id=row.gateway_payment_id,
        payment_method=row.payment_method,
        payment_verification=row.payment_verification,
        payment_failure_reason=row.payment_failure_reason,
        dispute_reason=row.dispute_reason,
        refund_required=row.refund_required,
        shipment_status=ShipmentStatus(row.shipment_status) if row.shipment_status else None,
        awb_code=row.awb_code,
        courier_name=row.courier_name,
        tracking_url=row.tracking_url,
        aggregator_order_id=row.aggregator_order_id,
        aggregator_shipment_id=row.aggregator_shipment_id,
        estimated_delivery=row.estimated_delivery,
        last_tracking=row.last_tracking,
        created_at=row.created_at,
        updated_at=row.updated_at,
        payment_initiated_at=row.payment_initiated_at,
        paid_at=row.paid_at,
        shipped_at=row.shipped_at,
        delivered_at=row.delivered_at,
        cancelled_at=row.cancelled_at,
        refunds=tuple(refunds),
    )


def _row(order: Order) -> OrderTable:
    s = order.shipping
    return OrderTable(
        id=order.id,
        order_number=order.order_number,
        user_id=order.user_id,
        guest_token=order.guest_token,
        items=[item.to_json() for item in order.items],
        subtotal=order.subtotal,
        coupon_code=order.coupon_code,
        coupon_discount=order.coupon_discount,
        total_amount=order.total_amount,
        shipping_name=s.name,
        shipping_email=s.email,
        shipping_phone=s.phone,
        shipping_address=s.address,
        shipping_city=s.city,
        shipping_state=s.state,
        shipping_pincode=s.pincode,
        shipping_country=s.country,
        status=order.status.value,
        payment_status=order.payment_status.value,
        created_at=order.created_at or utcnow(),
        updated_at=order.updated_at or utcnow(),
    )


def _values(changes: Mapping[str, Any]) -> dict[str, Any]:
    """Enum members are stored by value."""
    return {k: (v.value if isinstance(v, Enum) else v) for k, v in changes.items()}


# ═══════════════════════════════════════════════════════════════════════════════
# Repository
# ═══════════════════════════════════════════════════════════════════════════════


class OrderRepo:
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session = session_factory

    async def insert(self, order: Order) -> Result[Order, ShopError]:
        """
        Persist a new order and take its stock in one transaction.

        A lost stock race rolls everything back. An order-number collision
        is retried with a fresh number.
        """
        for _ in range(3):
            async with self._session() as session:
                for item in order.items:
                    if not await reserve_stock(session, item.variant_id, item.quantity):
                        await session.rollback()
                        return Error(Errors.insufficient_stock(item.product_name, item.variant_size))
                session.add(_row(order))
                try:
                    await session.commit()
                except IntegrityError:
                    await session.rollback()
                    log.warning("order_number_collision", order_number=order.order_number)
                    order = replace(order, order_number=next_order_number())
                    continue
            return Ok(order)
        return Error(Errors.internal("Could not allocate a unique order number"))

    async def get(self, order_id: str) -> Order | None:
        return await self._one(OrderTable.id == order_id)

    async def by_number(self, order_number: str) -> Order | None:
        return await self._one(OrderTable.order_number == order_number)

    async def by_awb(self, awb: str) -> Order | None:
        return await self._one(OrderTable.awb_code == awb)

    async def by_gateway(
        self, payment_id: str | None = None, gateway_order_id: str | None = None
    ) -> Order | None:
        """Payment id first, then gateway order id."""
        if payment_id:
            if found := await self._one(OrderTable.gateway_payment_id == payment_id):
                return found
        if gateway_order_id:
            return await self._one(OrderTable.gateway_order_id == gateway_order_id)
        return None

    async def _one(self, condition: Any) -> Order | None:
        async with self._session() as session:
            row = (await session.execute(select(OrderTable).where(condition))).scalars().first()
            if row is None:
                return None
            refunds = (
                await session.execute(
                    select(RefundTable)
                    .where(RefundTable.order_id == row.id)
                    .order_by(RefundTable.created_at)
                )
            ).scalars()
            return _order(row, [_refund(r) for r in refunds])

    async def update(self, order_id: str, **changes: Any) -> Order | None:
        """Unconditional write of the given columns."""
        async with self._session() as session:
            await session.execute(
                update(OrderTable)
                .where(OrderTable.id == order_id)
                .values(**_values(changes), updated_at=utcnow())
            )
            await session.commit()
        return await self.get(order_id)

    async def compare_and_set(
        self, order_id: str, expected: Mapping[str, Any], **changes: Any
    ) -> bool:
        """
        Write only if every column in `expected` still holds its value.

        Returns False when another writer got there first.
        """
        conditions = [OrderTable.id == order_id]
        for column, value in _values(expected).items():
            attr = getattr(OrderTable, column)
            conditions.append(attr.is_(None) if value is None else attr == value)
        async with self._session() as session:
            result = await session.execute(
                update(OrderTable).where(*conditions).values(**_values(changes), updated_at=utcnow())
            )
            await session.commit()
            return result.rowcount == 1  # type: ignore[attr-defined]

    async def reinstate(self, order: Order) -> bool:
        """
        Cancelled back to confirmed, taking the stock again in the same
        transaction. Nothing is written when an item is short or the order
        is no longer cancelled.
        """
        async with self._session() as session:
            for item in order.items:
                if not await reserve_stock(session, item.variant_id, item.quantity):
                    await session.rollback()
                    return False
            result = await session.execute(
                update(OrderTable)
                .where(OrderTable.id == order.id, OrderTable.status == OrderStatus.CANCELLED.value)
                .values(status=OrderStatus.CONFIRMED.value, cancelled_at=None, updated_at=utcnow())
            )
            if result.rowcount != 1:  # type: ignore[attr-defined]
                await session.rollback()
                return False
            await session.commit()
            return True

    async def find(
        self,
        *,
        user_id: str | None = None,
        status: OrderStatus | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Order], int]:
        conditions: list[Any] = []
        if user_id is not None:
            conditions.append(OrderTable.user_id == user_id)
        if status is not None:
            conditions.append(OrderTable.status == status.value)
        if search:
            pattern = f"%{search}%"
            conditions.append(
                or_(
                    OrderTable.order_number.ilike(pattern),
                    OrderTable.shipping_name.ilike(pattern),
                    OrderTable.shipping_email.ilike(pattern),
                    OrderTable.shipping_phone.ilike(pattern),
                )
            )
        async with self._session() as session:
            total = (
                await session.execute(select(func.count()).select_from(OrderTable).where(*conditions))
            ).scalar_one()
            rows = (
                await session.execute(
                    select(OrderTable)
                    .where(*conditions)
                    .order_by(OrderTable.created_at.desc())
                    .offset((page - 1) * limit)
                    .limit(limit)
                )
            ).scalars()
            return [_order(row) for row in rows], total

    async def add_refund(self, refund: Refund) -> None:
        async with self._session() as session:
            session.add(
                RefundTable(
                    id=refund.id,
                    order_id=refund.order_id,
                    gateway_refund_id=refund.gateway_refund_id,
                    amount=refund.amount,
                    status=refund.status,
                    reason=refund.reason,
                    created_at=refund.created_at,
                )
            )
            await session.commit()


__all__ = ("OrderRepo", "next_order_number", "new_order_id")
