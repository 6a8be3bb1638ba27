"""
Database layer — SQLAlchemy async models and session factory.

Amounts are stored as NUMERIC(12, 2) rupees, timestamps as naive UTC.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.pool import StaticPool

from storefront._types import utcnow

type SessionFactory = async_sessionmaker[AsyncSession]

Amount = Numeric(12, 2, asdecimal=True)


# ═══════════════════════════════════════════════════════════════════════════════
# Base
# ═══════════════════════════════════════════════════════════════════════════════


class Base(DeclarativeBase):
    pass


# ═══════════════════════════════════════════════════════════════════════════════
# Catalog (read by the core, stock adjusted at checkout)
# ═══════════════════════════════════════════════════════════════════════════════


class ProductTable(Base):
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    sku: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    weight_grams: Mapped[int | None] = mapped_column(Integer, nullable=True)
    hsn_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    image: Mapped[str | None] = mapped_column(Text, nullable=True)


class VariantTable(Base):
    __tablename__ = "product_variants"
    __table_args__ = (UniqueConstraint("product_id", "size", name="uq_variant_product_size"),)

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    product_id: Mapped[str] = mapped_column(
        ForeignKey("products.id"), nullable=False, index=True
    )
    size: Mapped[str] = mapped_column(String(50), nullable=False)
    price: Mapped[Decimal] = mapped_column(Amount, nullable=False)
    stock_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


# ═══════════════════════════════════════════════════════════════════════════════
# Carts — one document per owner key
# ═══════════════════════════════════════════════════════════════════════════════


class CartTable(Base):
    __tablename__ = "carts"

    owner_key: Mapped[str] = mapped_column(String(100), primary_key=True)
    items: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    total_items: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_amount: Mapped[Decimal] = mapped_column(Amount, nullable=False, default=Decimal("0"))
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════


class OrderTable(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    order_number: Mapped[str] = mapped_column(String(40), unique=True, nullable=False)
    user_id: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    guest_token: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Frozen item snapshots
    items: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)

    subtotal: Mapped[Decimal] = mapped_column(Amount, nullable=False)
    coupon_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    coupon_discount: Mapped[Decimal] = mapped_column(Amount, nullable=False, default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(Amount, nullable=False)

    # Flattened shipping
    shipping_name: Mapped[str] = mapped_column(String(200), nullable=False)
    shipping_email: Mapped[str | None] = mapped_column(String(200), nullable=True)
    shipping_phone: Mapped[str] = mapped_column(String(20), nullable=False)
    shipping_address: Mapped[str] = mapped_column(Text, nullable=False)
    shipping_city: Mapped[str] = mapped_column(String(100), nullable=False)
    shipping_state: Mapped[str] = mapped_column(String(100), nullable=False)
    shipping_pincode: Mapped[str] = mapped_column(String(10), nullable=False)
    shipping_country: Mapped[str] = mapped_column(String(60), nullable=False, default="India")

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="new", index=True)
    payment_status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")

    # Payment reconciliation
    gateway_order_id: Mapped[str | None] = mapped_column(String(60), nullable=True, index=True)
    gateway_payment_id: Mapped[str | None] = mapped_column(String(60), nullable=True, index=True)
    payment_method: Mapped[str | None] = mapped_column(String(40), nullable=True)
    payment_verification: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    payment_failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    dispute_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    refund_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Shipment reconciliation
    shipment_status: Mapped[str | None] = mapped_column(String(30), nullable=True)
    awb_code: Mapped[str | None] = mapped_column(String(60), nullable=True, index=True)
    courier_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    tracking_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    aggregator_order_id: Mapped[str | None] = mapped_column(String(60), nullable=True)
    aggregator_shipment_id: Mapped[str | None] = mapped_column(String(60), nullable=True)
    estimated_delivery: Mapped[str | None] = mapped_column(String(60), nullable=True)
    last_tracking: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    # Milestones
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    payment_initiated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    shipped_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class RefundTable(Base):
    __tablename__ = "refunds"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    order_id: Mapped[str] = mapped_column(ForeignKey("orders.id"), nullable=False, index=True)
    gateway_refund_id: Mapped[str] = mapped_column(String(60), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Amount, nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)


# ═══════════════════════════════════════════════════════════════════════════════
# Coupons
# ═══════════════════════════════════════════════════════════════════════════════


class CouponTable(Base):
    __tablename__ = "coupons"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    discount_type: Mapped[str] = mapped_column(String(12), nullable=False)
    discount_value: Mapped[Decimal] = mapped_column(Amount, nullable=False)
    min_order_amount: Mapped[Decimal | None] = mapped_column(Amount, nullable=True)
    max_discount_amount: Mapped[Decimal | None] = mapped_column(Amount, nullable=True)
    usage_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
    times_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    starts_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(50), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)


class CouponUsageTable(Base):
    __tablename__ = "coupon_usages"
    __table_args__ = (
        UniqueConstraint("coupon_id", "order_id", name="uq_usage_coupon_order"),
        UniqueConstraint("coupon_id", "user_id", name="uq_usage_coupon_user"),
        Index("ix_usage_coupon_used_at", "coupon_id", "used_at"),
    )

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    coupon_id: Mapped[str] = mapped_column(ForeignKey("coupons.id"), nullable=False)
    user_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    order_id: Mapped[str] = mapped_column(ForeignKey("orders.id"), nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(Amount, nullable=False)
    order_amount: Mapped[Decimal] = mapped_column(Amount, nullable=False)
    used_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)


# ═══════════════════════════════════════════════════════════════════════════════
# Webhook Ledger
# ═══════════════════════════════════════════════════════════════════════════════


class ProcessedEventTable(Base):
    __tablename__ = "processed_events"

    key: Mapped[str] = mapped_column(String(200), primary_key=True)
    source: Mapped[str] = mapped_column(String(30), nullable=False)
    event: Mapped[str] = mapped_column(String(80), nullable=False)
    state: Mapped[str] = mapped_column(String(20), nullable=False)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


# ═══════════════════════════════════════════════════════════════════════════════
# Database Setup
# ═══════════════════════════════════════════════════════════════════════════════


async def create_database(
    url: str = "sqlite+aiosqlite:///:memory:",
) -> tuple[SessionFactory, AsyncEngine]:
    """Create tables and return (session_factory, engine)."""
    if url.endswith(":memory:"):
        # One shared connection, otherwise every session sees an empty database.
        engine = create_async_engine(url, echo=False, poolclass=StaticPool)
    else:
        engine = create_async_engine(url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    return async_sessionmaker(engine, expire_on_commit=False), engine


__all__ = (
    "Base",
    "SessionFactory",
    "ProductTable",
    "VariantTable",
    "CartTable",
    "OrderTable",
    "RefundTable",
    "CouponTable",
    "CouponUsageTable",
    "ProcessedEventTable",
    "create_database",
)
