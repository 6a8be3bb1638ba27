"""
Order lifecycle — status transitions, cancellation, queries.

    new → confirmed → processing → shipped → delivered
      ╲        ╲           ╲
       └────────┴───────────┴──► cancelled
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from kungfu import Error, Ok, Result

from storefront._types import Money, utcnow
from storefront.cart import CartOwner, CartService
from storefront.catalog import Catalog
from storefront.coupons import CouponEngine
from storefront.errors import Errors, ShopError
from storefront.log import get_logger
from storefront.orders._checkout import create_order
from storefront.orders._repo import OrderRepo
from storefront.orders._types import (
    Buyer,
    CheckoutItem,
    CheckoutRequest,
    CouponInfo,
    Order,
    OrderStatus,
    PaymentStatus,
    ShippingDetails,
)

log = get_logger(__name__)

FORWARD = (
    OrderStatus.NEW,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
)
CANCELLABLE = frozenset({OrderStatus.NEW, OrderStatus.CONFIRMED, OrderStatus.PROCESSING})
TERMINAL = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})


def can_transition(src: OrderStatus, dst: OrderStatus) -> bool:
    if src in TERMINAL:
        return False
    if dst == OrderStatus.CANCELLED:
        return src in CANCELLABLE
    return FORWARD.index(dst) > FORWARD.index(src)


@dataclass(frozen=True, slots=True)
class OrderPage:
    orders: list[Order]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0


class OrderService:
    def __init__(
        self,
        orders: OrderRepo,
        catalog: Catalog,
        coupons: CouponEngine,
        carts: CartService,
    ) -> None:
        self._orders = orders
        self._catalog = catalog
        self._coupons = coupons
        self._carts = carts

    @property
    def repo(self) -> OrderRepo:
        return self._orders

    async def create(self, request: CheckoutRequest) -> Result[Order, ShopError]:
        return await create_order(request, self._catalog, self._coupons, self._orders)

    async def create_from_cart(
        self,
        owner: CartOwner,
        client_total: Money,
        shipping: ShippingDetails,
        buyer: Buyer,
        coupon: CouponInfo | None = None,
    ) -> Result[Order, ShopError]:
        """Checkout the owner's cart; the cart is cleared only on success."""
        cart = await self._carts.get(owner)
        request = CheckoutRequest(
            items=tuple(
                CheckoutItem(
                    product_id=line.product_id,
                    variant_size=line.variant_size,
                    quantity=line.quantity,
                    price=line.price,
                )
                for line in cart.lines
            ),
            client_total=client_total,
            shipping=shipping,
            buyer=buyer,
            coupon=coupon,
        )
        result = await self.create(request)
        if isinstance(result, Ok):
            await self._carts.clear(owner)
        return result

    async def get(self, order_id: str, requester: Buyer) -> Result[Order, ShopError]:
        order = await self._orders.get(order_id)
        if order is None:
            return Error(Errors.order_not_found(order_id))
        if not order.visible_to(requester):
            return Error(Errors.forbidden())
        return Ok(order)

    async def list_for(
        self, user_id: str, *, status: OrderStatus | None = None, page: int = 1, limit: int = 10
    ) -> OrderPage:
        orders, total = await self._orders.find(user_id=user_id, status=status, page=page, limit=limit)
        return OrderPage(orders, total, page, limit)

    async def list_all(
        self,
        *,
        status: OrderStatus | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> OrderPage:
        orders, total = await self._orders.find(status=status, search=search, page=page, limit=limit)
        return OrderPage(orders, total, page, limit)

    async def cancel(self, order_id: str, requester: Buyer) -> Result[Order, ShopError]:
        """
        Cancel before shipping and put the items back in stock.

        The write is conditional on the status read, so a concurrent
        ship/deliver cannot be overwritten.
        """
        for _ in range(3):
            match await self.get(order_id, requester):
                case Error(e):
                    return Error(e)
                case Ok(order):
                    pass

            if order.status not in CANCELLABLE:
                return Error(Errors.cannot_cancel(order.status.value))

            if await self._orders.compare_and_set(
                order.id,
                {"status": order.status},
                status=OrderStatus.CANCELLED,
                cancelled_at=utcnow(),
            ):
                await self._catalog.restock((i.variant_id, i.quantity) for i in order.items)
                if order.payment_status == PaymentStatus.COMPLETED:
                    log.warning(
                        "paid_order_cancelled",
                        order_id=order.id,
                        order_number=order.order_number,
                        amount=str(order.total_amount),
                    )
                log.info("order_cancelled", order_id=order.id, previous=order.status.value)
                return Ok(
                    await self._orders.get(order.id) or replace(order, status=OrderStatus.CANCELLED)
                )

        return Error(Errors.cannot_cancel("changed concurrently"))

    async def recover_paid(self, order_id: str) -> Order | None:
        """
        Settle a cancelled order whose payment completed after all.

        The stock is taken again and the order confirmed. When it cannot be,
        the order stays cancelled and is flagged for a refund.
        """
        order = await self._orders.get(order_id)
        if order is None or order.status != OrderStatus.CANCELLED or not order.is_paid:
            return order

        if await self._orders.reinstate(order):
            log.warning("paid_order_reinstated", order_id=order.id, order_number=order.order_number)
        else:
            await self._orders.update(order.id, refund_required=True)
            log.warning(
                "paid_order_needs_refund",
                order_id=order.id,
                order_number=order.order_number,
                amount=str(order.total_amount),
            )
        return await self._orders.get(order.id)

    async def update_status(self, order_id: str, status: str) -> Result[Order, ShopError]:
        """Admin move along the forward path, or a legal cancellation."""
        try:
            target = OrderStatus(status)
        except ValueError:
            return Error(Errors.invalid_status(status))

        if target == OrderStatus.CANCELLED:
            return await self.cancel(order_id, Buyer(is_admin=True))

        order = await self._orders.get(order_id)
        if order is None:
            return Error(Errors.order_not_found(order_id))
        if order.status == target:
            return Ok(order)
        if not can_transition(order.status, target):
            return Error(Errors.invalid_transition(order.status.value, target.value))

        changes: dict[str, object] = {"status": target}
        if target == OrderStatus.SHIPPED and order.shipped_at is None:
            changes["shipped_at"] = utcnow()
        if target == OrderStatus.DELIVERED and order.delivered_at is None:
            changes["delivered_at"] = utcnow()

        if not await self._orders.compare_and_set(order.id, {"status": order.status}, **changes):
            return Error(Errors.invalid_transition(order.status.value, target.value))

        log.info("order_status_updated", order_id=order.id, src=order.status.value, dst=target.value)
        updated = await self._orders.get(order.id)
        return Ok(updated) if updated is not None else Error(Errors.order_not_found(order_id))


__all__ = (
    "FORWARD",
    "CANCELLABLE",
    "TERMINAL",
    "can_transition",
    "OrderPage",
    "OrderService",
)
