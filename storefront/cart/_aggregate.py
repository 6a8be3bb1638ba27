"""
Cart aggregate — pure, immutable, totals always derived from lines.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from typing import Any

from kungfu import Error, Ok, Result

from storefront._types import Money, money, utcnow
from storefront.errors import Errors, ShopError


@dataclass(frozen=True, slots=True)
class CartLine:
    id: str
    product_id: str
    variant_id: str
    product_name: str
    variant_size: str
    price: Money
    quantity: int
    image: str | None = None

    @property
    def subtotal(self) -> Money:
        return money(self.price * self.quantity)

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "product_name": self.product_name,
            "variant_size": self.variant_size,
            "price": str(self.price),
            "quantity": self.quantity,
            "image": self.image,
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> CartLine:
        return cls(
            id=data["id"],
            product_id=data["product_id"],
            variant_id=data["variant_id"],
            product_name=data["product_name"],
            variant_size=data["variant_size"],
            price=money(data["price"]),
            quantity=int(data["quantity"]),
            image=data.get("image"),
        )


def new_line_id() -> str:
    return uuid.uuid4().hex[:16]


@dataclass(frozen=True, slots=True)
class Cart:
    """
    Cart for one owner key.

    Lines with the same (product, variant) are merged on add.
    """

    owner_key: str
    lines: tuple[CartLine, ...] = ()
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def total_items(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def total_amount(self) -> Money:
        return money(sum((line.subtotal for line in self.lines), Decimal("0")))

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def line(self, line_id: str) -> CartLine | None:
        return next((line for line in self.lines if line.id == line_id), None)

    def _with(self, lines: tuple[CartLine, ...]) -> Cart:
        return replace(self, lines=lines, updated_at=utcnow())

    def add(self, line: CartLine) -> Cart:
        for existing in self.lines:
            if (existing.product_id, existing.variant_id) == (line.product_id, line.variant_id):
                merged = replace(
                    existing,
                    quantity=existing.quantity + line.quantity,
                    product_name=line.product_name,
                    variant_size=line.variant_size,
                    price=line.price,
                )
                return self._with(
                    tuple(merged if other.id == existing.id else other for other in self.lines)
                )
        return self._with((*self.lines, line))

    def update(self, line_id: str, quantity: int) -> Result[Cart, ShopError]:
        """Set a line's quantity; zero or less removes it."""
        if self.line(line_id) is None:
            return Error(Errors.cart_item_not_found())
        if quantity <= 0:
            return self.remove(line_id)
        return Ok(
            self._with(
                tuple(
                    replace(other, quantity=quantity) if other.id == line_id else other
                    for other in self.lines
                )
            )
        )

    def remove(self, line_id: str) -> Result[Cart, ShopError]:
        if self.line(line_id) is None:
            return Error(Errors.cart_item_not_found())
        return Ok(self._with(tuple(other for other in self.lines if other.id != line_id)))

    def clear(self) -> Cart:
        return self._with(())


__all__ = ("CartLine", "Cart", "new_line_id")
