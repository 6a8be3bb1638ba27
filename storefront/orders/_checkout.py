"""
Checkout graph — turns a checkout request into a persisted, price-verified order.

    CheckoutRequest (injected)
         │
         ▼
    CheckoutNode ──► PricedItemsNode ──► DiscountNode ──► TotalsNode
         │                 │                  │               │
         └─────────────────┴──────────────────┴───────────────┴──► PersistedOrderNode

Every node raises ShopFailure on a domain failure; nothing is written
unless all nodes upstream of PersistedOrderNode succeed.

Note: no 'from __future__ import annotations' here, nodnod reads the
__compose__ hints at runtime.
"""

from decimal import Decimal

import combinators as C
from kungfu import Error, LazyCoroResult, Ok, Result

from storefront import graph as G
from storefront._types import Money, close_enough, money, utcnow
from storefront.catalog import Catalog
from storefront.coupons import CouponEngine
from storefront.errors import Errors, ShopError, ShopFailure
from storefront.log import get_logger
from storefront.orders._repo import OrderRepo, new_order_id, next_order_number
from storefront.orders._types import CheckoutItem, CheckoutRequest, Order, OrderItem

log = get_logger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Entry Node
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class CheckoutNode:
    """Wraps CheckoutRequest; rejects an empty item list."""

    def __init__(self, request: CheckoutRequest) -> None:
        self.request = request

    @classmethod
    def __compose__(cls, request: CheckoutRequest) -> "CheckoutNode":
        if not request.items:
            raise ShopFailure(Errors.empty_order())
        return cls(request)


# ═══════════════════════════════════════════════════════════════════════════════
# Item Validation
# ═══════════════════════════════════════════════════════════════════════════════


def price_item(catalog: Catalog, item: CheckoutItem) -> LazyCoroResult[OrderItem, ShopError]:
    """Check one item against the live catalog and freeze its snapshot."""

    async def check() -> Result[OrderItem, ShopError]:
        product = await catalog.product(item.product_id)
        if product is None or not product.is_active:
            return Error(Errors.product_unavailable(item.product_id))

        variant = await catalog.variant_by_size(item.product_id, item.variant_size)
        if variant is None or not variant.is_available:
            return Error(Errors.variant_unavailable(item.product_id, item.variant_size))

        if variant.stock_quantity < item.quantity:
            return Error(
                Errors.insufficient_stock(product.name, variant.size, variant.stock_quantity)
            )

        # no silent repricing
        if money(item.price) != variant.price:
            return Error(Errors.price_mismatch(product.name, variant.price, item.price))

        return Ok(
            OrderItem(
                product_id=product.id,
                variant_id=variant.id,
                product_name=product.name,
                variant_size=variant.size,
                price=variant.price,
                quantity=item.quantity,
                sku=product.sku,
                weight_grams=product.weight_grams,
                hsn_code=product.hsn_code,
            )
        )

    return LazyCoroResult(check)


@G.node
class PricedItemsNode:
    """
    Validates items in submission order; the first failing item wins.

    Sequential on purpose: the reported error is always the first bad item.
    """

    def __init__(self, items: list[OrderItem], subtotal: Money) -> None:
        self.items = items
        self.subtotal = subtotal

    @classmethod
    async def __compose__(cls, checkout: CheckoutNode, catalog: Catalog) -> "PricedItemsNode":
        for item in checkout.request.items:
            if item.quantity <= 0:
                raise ShopFailure(Errors.validation("Quantity must be greater than 0"))

        result = await C.traverse(
            list(checkout.request.items),
            lambda item: price_item(catalog, item),
        )()

        match result:
            case Ok(items):
                subtotal = money(sum((i.subtotal for i in items), Decimal("0")))
                return cls(items, subtotal)
            case Error(e):
                raise ShopFailure(e)


# ═══════════════════════════════════════════════════════════════════════════════
# Discount & Totals
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class DiscountNode:
    """Client-declared coupon discount, re-checked against the engine when a code is given."""

    def __init__(self, amount: Money, code: str | None) -> None:
        self.amount = amount
        self.code = code

    @classmethod
    async def __compose__(
        cls, checkout: CheckoutNode, items: PricedItemsNode, coupons: CouponEngine
    ) -> "DiscountNode":
        info = checkout.request.coupon
        if info is None:
            return cls(money(0), None)

        discount = money(info.discount_amount)
        if discount < 0 or discount > items.subtotal:
            raise ShopFailure(Errors.invalid_discount())

        if info.code is None:
            return cls(discount, None)

        match await coupons.validate(info.code, items.subtotal, checkout.request.buyer.user_id):
            case Ok(quote):
                if not close_enough(quote.discount_amount, discount):
                    raise ShopFailure(
                        Errors.invalid_discount(
                            f"Coupon discount should be {quote.discount_amount}, got {discount}"
                        )
                    )
                return cls(discount, quote.coupon.code)
            case Error(e):
                raise ShopFailure(e)


@G.node
class TotalsNode:
    """expected = subtotal - discount, must match the client's total within 0.01."""

    def __init__(self, total: Money) -> None:
        self.total = total

    @classmethod
    def __compose__(
        cls, checkout: CheckoutNode, items: PricedItemsNode, discount: DiscountNode
    ) -> "TotalsNode":
        expected = money(items.subtotal - discount.amount)
        if not close_enough(expected, checkout.request.client_total):
            raise ShopFailure(Errors.total_mismatch(expected, checkout.request.client_total))
        return cls(expected)


# ═══════════════════════════════════════════════════════════════════════════════
# Persist
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class PersistedOrderNode:
    """Terminal node: writes the order snapshot and takes stock."""

    def __init__(self, order: Order) -> None:
        self.order = order

    @classmethod
    async def __compose__(
        cls,
        checkout: CheckoutNode,
        items: PricedItemsNode,
        discount: DiscountNode,
        totals: TotalsNode,
        orders: OrderRepo,
    ) -> "PersistedOrderNode":
        request = checkout.request
        now = utcnow()
        order = Order(
            id=new_order_id(),
            order_number=next_order_number(),
            user_id=request.buyer.user_id,
            guest_token=None if request.buyer.user_id else request.buyer.guest_token,
            items=tuple(items.items),
            subtotal=items.subtotal,
            total_amount=totals.total,
            shipping=request.shipping,
            coupon_code=discount.code,
            coupon_discount=discount.amount,
            created_at=now,
            updated_at=now,
        )

        match await orders.insert(order):
            case Ok(saved):
                log.info(
                    "order_created",
                    order_id=saved.id,
                    order_number=saved.order_number,
                    total=str(saved.total_amount),
                    items=len(saved.items),
                )
                return cls(saved)
            case Error(e):
                raise ShopFailure(e)


async def create_order(
    request: CheckoutRequest,
    catalog: Catalog,
    coupons: CouponEngine,
    orders: OrderRepo,
) -> Result[Order, ShopError]:
    """Run the checkout graph."""
    result = await (
        G.run(PersistedOrderNode)
        .inject_as(CheckoutRequest, request)
        .inject_as(Catalog, catalog)
        .inject_as(CouponEngine, coupons)
        .inject_as(OrderRepo, orders)
        .result()
    )
    match result:
        case Ok(node):
            return Ok(node.order)
        case Error(e):
            log.info("order_rejected", code=e.code.value, reason=e.message)
            return Error(e)


__all__ = (
    "CheckoutNode",
    "PricedItemsNode",
    "DiscountNode",
    "TotalsNode",
    "PersistedOrderNode",
    "price_item",
    "create_order",
)
