"""
Catalog — read access to products/variants plus atomic stock adjustments.

The catalog is owned elsewhere; the core only reads it and moves stock.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from storefront._types import Money, money
from storefront.db import ProductTable, SessionFactory, VariantTable


@dataclass(frozen=True, slots=True)
class Product:
    id: str
    name: str
    sku: str | None = None
    is_active: bool = True
    weight_grams: int | None = None
    hsn_code: str | None = None
    image: str | None = None


@dataclass(frozen=True, slots=True)
class Variant:
    id: str
    product_id: str
    size: str
    price: Money
    stock_quantity: int
    is_available: bool = True


def _product(row: ProductTable) -> Product:
    return Product(
        id=row.id,
        name=row.name,
        sku=row.sku,
        is_active=row.is_active,
        weight_grams=row.weight_grams,
        hsn_code=row.hsn_code,
        image=row.image,
    )


def _variant(row: VariantTable) -> Variant:
    return Variant(
        id=row.id,
        product_id=row.product_id,
        size=row.size,
        price=money(row.price),
        stock_quantity=row.stock_quantity,
        is_available=row.is_available,
    )


class Catalog:
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session = session_factory

    async def product(self, product_id: str) -> Product | None:
        async with self._session() as session:
            row = await session.get(ProductTable, product_id)
            return _product(row) if row else None

    async def variant(self, variant_id: str) -> Variant | None:
        async with self._session() as session:
            row = await session.get(VariantTable, variant_id)
            return _variant(row) if row else None

    async def variant_by_size(self, product_id: str, size: str) -> Variant | None:
        async with self._session() as session:
            row = (
                await session.execute(
                    select(VariantTable).where(
                        VariantTable.product_id == product_id,
                        VariantTable.size == size,
                    )
                )
            ).scalar_one_or_none()
            return _variant(row) if row else None

    async def products(self, ids: Iterable[str]) -> dict[str, Product]:
        wanted = set(ids)
        if not wanted:
            return {}
        async with self._session() as session:
            rows = (
                await session.execute(select(ProductTable).where(ProductTable.id.in_(wanted)))
            ).scalars()
            return {row.id: _product(row) for row in rows}

    async def variants(self, ids: Iterable[str]) -> dict[str, Variant]:
        wanted = set(ids)
        if not wanted:
            return {}
        async with self._session() as session:
            rows = (
                await session.execute(select(VariantTable).where(VariantTable.id.in_(wanted)))
            ).scalars()
            return {row.id: _variant(row) for row in rows}

    async def add(self, product: Product, variants: Sequence[Variant]) -> None:
        """Upsert a product and its variants (used by seeding and tests)."""
        async with self._session() as session:
            await session.merge(
                ProductTable(
                    id=product.id,
                    name=product.name,
                    sku=product.sku,
                    is_active=product.is_active,
                    weight_grams=product.weight_grams,
                    hsn_code=product.hsn_code,
                    image=product.image,
                )
            )
            for v in variants:
                await session.merge(
                    VariantTable(
                        id=v.id,
                        product_id=product.id,
                        size=v.size,
                        price=money(v.price),
                        stock_quantity=v.stock_quantity,
                        is_available=v.is_available,
                    )
                )
            await session.commit()

    async def restock(self, lines: Iterable[tuple[str, int]]) -> None:
        async with self._session() as session:
            for variant_id, quantity in lines:
                await session.execute(
                    update(VariantTable)
                    .where(VariantTable.id == variant_id)
                    .values(stock_quantity=VariantTable.stock_quantity + quantity)
                )
            await session.commit()


async def reserve_stock(session: AsyncSession, variant_id: str, quantity: int) -> bool:
    """Decrement with a floor check inside the caller's transaction."""
    result = await session.execute(
        update(VariantTable)
        .where(
            VariantTable.id == variant_id,
            VariantTable.is_available.is_(True),
            VariantTable.stock_quantity >= quantity,
        )
        .values(stock_quantity=VariantTable.stock_quantity - quantity)
    )
    return result.rowcount == 1  # type: ignore[attr-defined]


__all__ = ("Product", "Variant", "Catalog", "reserve_stock")
