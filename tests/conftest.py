from collections.abc import AsyncIterator
from dataclasses import replace
from decimal import Decimal
from pathlib import Path

import pytest

from storefront import Container
from storefront.catalog import Product, Variant
from storefront.config import RazorpaySettings, Settings, ShiprocketSettings
from storefront.orders import Order
from support import (
    KEY_SECRET,
    SHIPPING_SECRET,
    U1,
    WEBHOOK_SECRET,
    FakeAggregator,
    FakeGateway,
    FakeNotifier,
    checkout,
)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        razorpay=RazorpaySettings(
            key_id="rzp_test_key", key_secret=KEY_SECRET, webhook_secret=WEBHOOK_SECRET
        ),
        shiprocket=ShiprocketSettings(
            email="ops@example.com", password="pw", webhook_secret=SHIPPING_SECRET
        ),
        vendor_timeout=2.0,
    )


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def aggregator() -> FakeAggregator:
    return FakeAggregator()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
async def container(
    settings: Settings, gateway: FakeGateway, aggregator: FakeAggregator, notifier: FakeNotifier
) -> AsyncIterator[Container]:
    c = await Container.build(settings, gateway=gateway, aggregator=aggregator, notifier=notifier)
    await seed(c)
    try:
        yield c
    finally:
        await c.aclose()


@pytest.fixture
async def shared_container(
    settings: Settings,
    gateway: FakeGateway,
    aggregator: FakeAggregator,
    notifier: FakeNotifier,
    tmp_path: Path,
) -> AsyncIterator[Container]:
    """Backed by a database file, so every session gets its own connection."""
    on_disk = replace(settings, database_url=f"sqlite+aiosqlite:///{tmp_path / 'shop.db'}")
    c = await Container.build(on_disk, gateway=gateway, aggregator=aggregator, notifier=notifier)
    await seed(c)
    try:
        yield c
    finally:
        await c.aclose()


async def seed(c: Container) -> None:
    await c.catalog.add(
        Product(id="trophy", name="Crystal Trophy", sku="TR-01", weight_grams=800, hsn_code="7013"),
        [
            Variant(id="trophy-s", product_id="trophy", size="Small", price=Decimal("1200.00"), stock_quantity=10),
            Variant(id="trophy-l", product_id="trophy", size="Large", price=Decimal("2500.00"), stock_quantity=2),
        ],
    )
    await c.catalog.add(
        Product(id="medal", name="Gold Medal"),
        [Variant(id="medal-std", product_id="medal", size="Standard", price=Decimal("300.00"), stock_quantity=50)],
    )
    await c.catalog.add(
        Product(id="retired", name="Old Plaque", is_active=False),
        [Variant(id="retired-std", product_id="retired", size="Standard", price=Decimal("99.00"), stock_quantity=5)],
    )


@pytest.fixture
async def order(container: Container) -> Order:
    """A new order for u1: one Large trophy, total 2500.00."""
    result = await container.orders.create(checkout(("trophy", "Large", 1, "2500.00"), total="2500.00"))
    return result.unwrap()


@pytest.fixture
async def initiated(container: Container, order: Order) -> Order:
    """The same order after its gateway order was created."""
    (await container.payments.create_payment_order(order.id, Decimal("2500.00"), U1)).unwrap()
    found = await container.orders.repo.get(order.id)
    assert found is not None
    return found
