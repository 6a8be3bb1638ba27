"""Order checkout, reads, cancellation and admin status changes."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from storefront.errors import Errors
from storefront.http._context import (
    AdminDep,
    BuyerDep,
    ContainerDep,
    OwnerDep,
    ShopperDep,
    UserDep,
    owner_headers,
)
from storefront.http._envelope import fail, ok, respond
from storefront.http._models import (
    CartCheckoutIn,
    CreateOrderIn,
    OrderCreatedOut,
    OrderOut,
    OrderPageOut,
    OrderStatusIn,
)
from storefront.orders import OrderStatus

router = APIRouter(prefix="/orders", tags=["orders"])


def _status_filter(status: str | None) -> OrderStatus | None:
    if status in (None, "", "all"):
        return None
    return OrderStatus(status)


@router.post("")
async def create_order(
    body: CreateOrderIn, buyer: ShopperDep, owner: OwnerDep, c: ContainerDep
) -> JSONResponse:
    result = await c.orders.create(body.to_domain(buyer))
    return respond(
        result,
        lambda order: {"order": OrderCreatedOut.from_domain(order).model_dump(mode="json")},
        message="Order created successfully",
        status=201,
        headers=owner_headers(owner),
    )


@router.post("/from-cart")
async def create_order_from_cart(
    body: CartCheckoutIn, buyer: ShopperDep, owner: OwnerDep, c: ContainerDep
) -> JSONResponse:
    result = await c.orders.create_from_cart(
        owner,
        body.total_amount,
        body.shipping_details.to_domain(),
        buyer,
        body.coupon_info.to_domain() if body.coupon_info else None,
    )
    return respond(
        result,
        lambda order: {"order": OrderCreatedOut.from_domain(order).model_dump(mode="json")},
        message="Order created successfully",
        status=201,
        headers=owner_headers(owner),
    )


@router.get("")
async def list_orders(
    buyer: UserDep,
    c: ContainerDep,
    status: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> JSONResponse:
    try:
        wanted = _status_filter(status)
    except ValueError:
        return fail(Errors.invalid_status(status or ""))
    if buyer.user_id is None:
        return fail(Errors.forbidden("Authentication required"))
    listing = await c.orders.list_for(buyer.user_id, status=wanted, page=max(page, 1), limit=max(limit, 1))
    return ok(OrderPageOut.from_domain(listing))


@router.get("/admin/all")
async def list_all_orders(
    _: AdminDep,
    c: ContainerDep,
    status: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> JSONResponse:
    try:
        wanted = _status_filter(status)
    except ValueError:
        return fail(Errors.invalid_status(status or ""))
    listing = await c.orders.list_all(
        status=wanted, search=search or None, page=max(page, 1), limit=max(limit, 1)
    )
    return ok(OrderPageOut.from_domain(listing))


@router.put("/admin/{order_id}/status")
async def update_order_status(
    order_id: str, body: OrderStatusIn, _: AdminDep, c: ContainerDep
) -> JSONResponse:
    result = await c.orders.update_status(order_id, body.status)
    return respond(result, OrderOut.from_domain, message="Order status updated")


@router.get("/{order_id}")
async def get_order(order_id: str, buyer: BuyerDep, c: ContainerDep) -> JSONResponse:
    return respond(await c.orders.get(order_id, buyer), OrderOut.from_domain)


@router.put("/{order_id}/cancel")
async def cancel_order(order_id: str, buyer: BuyerDep, c: ContainerDep) -> JSONResponse:
    result = await c.orders.cancel(order_id, buyer)
    return respond(result, OrderOut.from_domain, message="Order cancelled successfully")
