"""
Request context — the container, caller identity and request ids.

Identity comes from the upstream auth gateway as headers:

    X-User-Id       authenticated buyer
    X-User-Role     "admin" for administrators
    X-Cart-Token    guest key, issued on the first guest cart write or checkout;
                    it also unlocks the guest's own orders
"""

from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable
from dataclasses import replace
from typing import Annotated

import structlog
from fastapi import Depends, Header, Request, Response

from storefront.cart import CartOwner, new_guest_token
from storefront.container import Container
from storefront.errors import Errors, ShopFailure
from storefront.orders import Buyer

CART_TOKEN_HEADER = "X-Cart-Token"
REQUEST_ID_HEADER = "X-Request-Id"


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_buyer(
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_role: Annotated[str | None, Header()] = None,
    x_cart_token: Annotated[str | None, Header()] = None,
) -> Buyer:
    return Buyer(
        user_id=x_user_id or None,
        is_admin=(x_user_role or "").lower() == "admin",
        guest_token=None if x_user_id else (x_cart_token or None),
    )


def require_user(buyer: Annotated[Buyer, Depends(get_buyer)]) -> Buyer:
    if buyer.user_id is None and not buyer.is_admin:
        raise ShopFailure(Errors.forbidden("Authentication required"))
    return buyer


def require_admin(buyer: Annotated[Buyer, Depends(get_buyer)]) -> Buyer:
    if not buyer.is_admin:
        raise ShopFailure(Errors.forbidden())
    return buyer


def get_cart_owner(buyer: Annotated[Buyer, Depends(get_buyer)]) -> CartOwner:
    """A guest without a token gets a fresh one; it is echoed back by the route."""
    if buyer.user_id:
        return CartOwner(user_id=buyer.user_id)
    return CartOwner(guest_token=buyer.guest_token or new_guest_token())


def get_shopper(
    buyer: Annotated[Buyer, Depends(get_buyer)],
    owner: Annotated[CartOwner, Depends(get_cart_owner)],
) -> Buyer:
    """The buyer placing an order; a guest carries the same token as their cart."""
    if buyer.user_id:
        return buyer
    return replace(buyer, guest_token=owner.guest_token)


ContainerDep = Annotated[Container, Depends(get_container)]
BuyerDep = Annotated[Buyer, Depends(get_buyer)]
UserDep = Annotated[Buyer, Depends(require_user)]
AdminDep = Annotated[Buyer, Depends(require_admin)]
OwnerDep = Annotated[CartOwner, Depends(get_cart_owner)]
ShopperDep = Annotated[Buyer, Depends(get_shopper)]


def owner_headers(owner: CartOwner) -> dict[str, str]:
    return {CART_TOKEN_HEADER: owner.guest_token} if owner.is_guest and owner.guest_token else {}


async def request_id_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """Bind a request id into every log line emitted while serving the request."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        request_id=request_id, method=request.method, path=request.url.path
    )
    try:
        response = await call_next(request)
    finally:
        structlog.contextvars.clear_contextvars()
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


__all__ = (
    "CART_TOKEN_HEADER",
    "REQUEST_ID_HEADER",
    "get_container",
    "get_buyer",
    "require_user",
    "require_admin",
    "get_cart_owner",
    "get_shopper",
    "ContainerDep",
    "BuyerDep",
    "UserDep",
    "AdminDep",
    "OwnerDep",
    "ShopperDep",
    "owner_headers",
    "request_id_middleware",
)
