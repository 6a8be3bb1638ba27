"""
Cart service — loads/saves the aggregate and checks lines against the catalog.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass

from kungfu import Error, Ok, Result

from storefront._types import utcnow
from storefront.cart._aggregate import Cart, CartLine, new_line_id
from storefront.catalog import Catalog
from storefront.db import CartTable, SessionFactory
from storefront.errors import Errors, ShopError
from storefront.log import get_logger

log = get_logger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Owner Identity
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CartOwner:
    """Authenticated user id or a server-issued guest token."""

    user_id: str | None = None
    guest_token: str | None = None

    @property
    def key(self) -> str:
        if self.user_id:
            return f"user:{self.user_id}"
        if self.guest_token:
            return f"guest:{self.guest_token}"
        raise ValueError("cart owner needs a user id or a guest token")

    @property
    def is_guest(self) -> bool:
        return not self.user_id


def new_guest_token() -> str:
    return secrets.token_urlsafe(24)


@dataclass(frozen=True, slots=True)
class CartValidation:
    cart: Cart
    removed: tuple[CartLine, ...]
    repriced: tuple[CartLine, ...]


# ═══════════════════════════════════════════════════════════════════════════════
# Service
# ═══════════════════════════════════════════════════════════════════════════════


class CartService:
    def __init__(self, session_factory: SessionFactory, catalog: Catalog) -> None:
        self._session = session_factory
        self._catalog = catalog

    async def get(self, owner: CartOwner) -> Cart:
        async with self._session() as session:
            row = await session.get(CartTable, owner.key)
            if row is None:
                return Cart(owner_key=owner.key)
            return Cart(
                owner_key=row.owner_key,
                lines=tuple(CartLine.from_json(item) for item in row.items),
                created_at=row.created_at,
                updated_at=row.updated_at,
            )

    async def _save(self, owner: CartOwner, cart: Cart) -> Cart:
        async with self._session() as session:
            row = await session.get(CartTable, owner.key)
            if cart.is_empty and owner.is_guest:
                # empty guest carts are not kept
                if row is not None:
                    await session.delete(row)
                    await session.commit()
                return cart
            if row is None:
                row = CartTable(owner_key=owner.key, created_at=cart.created_at)
                session.add(row)
            row.items = [line.to_json() for line in cart.lines]
            row.total_items = cart.total_items
            row.total_amount = cart.total_amount
            row.updated_at = utcnow()
            await session.commit()
        return cart

    async def add_item(
        self,
        owner: CartOwner,
        product_id: str | None,
        variant_id: str | None,
        quantity: int,
    ) -> Result[Cart, ShopError]:
        if not product_id or not variant_id:
            return Error(Errors.missing_fields())
        if quantity <= 0:
            return Error(Errors.invalid_quantity())

        product = await self._catalog.product(product_id)
        if product is None:
            return Error(Errors.product_not_found())
        if not product.is_active:
            return Error(Errors.product_unavailable(product_id))

        variant = await self._catalog.variant(variant_id)
        if variant is None or variant.product_id != product_id:
            return Error(Errors.variant_not_found())
        if not variant.is_available:
            return Error(Errors.variant_unavailable(product_id, variant.size))

        cart = (await self.get(owner)).add(
            CartLine(
                id=new_line_id(),
                product_id=product.id,
                variant_id=variant.id,
                product_name=product.name,
                variant_size=variant.size,
                price=variant.price,
                quantity=quantity,
                image=product.image,
            )
        )
        log.info("cart_item_added", owner=owner.key, variant_id=variant_id, quantity=quantity)
        return Ok(await self._save(owner, cart))

    async def update_item(
        self, owner: CartOwner, line_id: str, quantity: int
    ) -> Result[Cart, ShopError]:
        match (await self.get(owner)).update(line_id, quantity):
            case Ok(cart):
                return Ok(await self._save(owner, cart))
            case Error(e):
                return Error(e)

    async def remove_item(self, owner: CartOwner, line_id: str) -> Result[Cart, ShopError]:
        match (await self.get(owner)).remove(line_id):
            case Ok(cart):
                return Ok(await self._save(owner, cart))
            case Error(e):
                return Error(e)

    async def clear(self, owner: CartOwner) -> Cart:
        return await self._save(owner, (await self.get(owner)).clear())

    async def validate(self, owner: CartOwner) -> CartValidation:
        """
        Drop lines whose product/variant is gone and refresh snapshots.

        Prices are refreshed here so the client sees current prices
        before checkout, where a stale price is rejected.
        """
        cart = await self.get(owner)
        products = await self._catalog.products(line.product_id for line in cart.lines)
        variants = await self._catalog.variants(line.variant_id for line in cart.lines)

        kept: list[CartLine] = []
        removed: list[CartLine] = []
        repriced: list[CartLine] = []
        for line in cart.lines:
            product = products.get(line.product_id)
            variant = variants.get(line.variant_id)
            if product is None or not product.is_active or variant is None or not variant.is_available:
                removed.append(line)
                continue
            fresh = CartLine(
                id=line.id,
                product_id=line.product_id,
                variant_id=line.variant_id,
                product_name=product.name,
                variant_size=variant.size,
                price=variant.price,
                quantity=line.quantity,
                image=product.image,
            )
            if fresh.price != line.price:
                repriced.append(fresh)
            kept.append(fresh)

        if kept != list(cart.lines):
            cart = await self._save(owner, Cart(cart.owner_key, tuple(kept), cart.created_at))
        if removed:
            log.info("cart_lines_removed", owner=owner.key, count=len(removed))
        return CartValidation(cart, tuple(removed), tuple(repriced))


__all__ = ("CartOwner", "CartService", "CartValidation", "new_guest_token")
