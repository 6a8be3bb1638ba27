"""Cart for signed-in buyers and token-keyed guests."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from storefront.http._context import ContainerDep, OwnerDep, owner_headers
from storefront.http._envelope import ok, respond
from storefront.http._models import CartAddIn, CartOut, CartUpdateIn, CartValidationOut

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("")
async def get_cart(owner: OwnerDep, c: ContainerDep) -> JSONResponse:
    return ok(CartOut.from_domain(await c.carts.get(owner)), headers=owner_headers(owner))


@router.post("/add")
async def add_to_cart(body: CartAddIn, owner: OwnerDep, c: ContainerDep) -> JSONResponse:
    result = await c.carts.add_item(owner, body.product_id, body.variant_id, body.quantity)
    return respond(result, CartOut.from_domain, message="Item added to cart", headers=owner_headers(owner))


@router.put("/update")
async def update_cart(body: CartUpdateIn, owner: OwnerDep, c: ContainerDep) -> JSONResponse:
    result = await c.carts.update_item(owner, body.item_id, body.quantity)
    return respond(result, CartOut.from_domain, message="Cart updated", headers=owner_headers(owner))


@router.delete("/remove/{item_id}")
async def remove_from_cart(item_id: str, owner: OwnerDep, c: ContainerDep) -> JSONResponse:
    result = await c.carts.remove_item(owner, item_id)
    return respond(result, CartOut.from_domain, message="Item removed from cart", headers=owner_headers(owner))


@router.post("/clear")
async def clear_cart(owner: OwnerDep, c: ContainerDep) -> JSONResponse:
    cart = await c.carts.clear(owner)
    return ok(CartOut.from_domain(cart), message="Cart cleared", headers=owner_headers(owner))


@router.get("/validate")
async def validate_cart(owner: OwnerDep, c: ContainerDep) -> JSONResponse:
    validation = await c.carts.validate(owner)
    return ok(CartValidationOut.from_domain(validation), headers=owner_headers(owner))
