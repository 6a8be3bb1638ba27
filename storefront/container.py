"""
Container — builds every service once and owns their resources.

    container = await Container.build(Settings.from_env())
    app = create_app(container)
    ...
    await container.aclose()

Vendor implementations can be swapped for fakes:

    await Container.build(settings, gateway=FakeGateway(), aggregator=FakeAggregator())
"""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncEngine

from storefront.cart import CartService
from storefront.catalog import Catalog
from storefront.config import Settings
from storefront.coupons import CouponAdmin, CouponEngine
from storefront.db import SessionFactory, create_database
from storefront.dispatch import Dispatcher
from storefront.log import get_logger
from storefront.orders import OrderRepo, OrderService
from storefront.payments import EventLedger, PaymentService
from storefront.shipping import ShipmentService
from storefront.vendors import (
    LogNotifier,
    Notifier,
    PaymentGateway,
    RazorpayClient,
    ShippingAggregator,
    ShiprocketClient,
)

log = get_logger(__name__)


@dataclass(slots=True)
class Container:
    settings: Settings
    session_factory: SessionFactory
    engine: AsyncEngine
    dispatcher: Dispatcher
    catalog: Catalog
    carts: CartService
    coupons: CouponEngine
    coupon_admin: CouponAdmin
    orders: OrderService
    shipments: ShipmentService
    payments: PaymentService
    _owned: list[RazorpayClient | ShiprocketClient] = field(default_factory=list)

    @classmethod
    async def build(
        cls,
        settings: Settings,
        *,
        gateway: PaymentGateway | None = None,
        aggregator: ShippingAggregator | None = None,
        notifier: Notifier | None = None,
    ) -> Container:
        session_factory, engine = await create_database(settings.database_url)

        owned: list[RazorpayClient | ShiprocketClient] = []
        if gateway is None:
            razorpay = RazorpayClient(settings.razorpay, timeout=settings.vendor_timeout)
            owned.append(razorpay)
            gateway = razorpay
        if aggregator is None:
            shiprocket = ShiprocketClient(settings.shiprocket, timeout=settings.vendor_timeout)
            owned.append(shiprocket)
            aggregator = shiprocket
        notifier = notifier or LogNotifier()

        dispatcher = Dispatcher()
        catalog = Catalog(session_factory)
        carts = CartService(session_factory, catalog)
        coupons = CouponEngine(session_factory)
        repo = OrderRepo(session_factory)
        orders = OrderService(repo, catalog, coupons, carts)
        shipments = ShipmentService(
            repo,
            aggregator,
            dispatcher,
            notifier,
            webhook_secret=settings.shiprocket.webhook_secret,
            timeout=settings.vendor_timeout,
        )
        payments = PaymentService(
            repo,
            orders,
            gateway,
            shipments,
            EventLedger(session_factory),
            dispatcher,
            notifier,
            settings,
        )

        log.info(
            "container_ready",
            razorpay_configured=settings.razorpay.configured,
            shiprocket_configured=settings.shiprocket.configured,
        )
        return cls(
            settings=settings,
            session_factory=session_factory,
            engine=engine,
            dispatcher=dispatcher,
            catalog=catalog,
            carts=carts,
            coupons=coupons,
            coupon_admin=CouponAdmin(session_factory),
            orders=orders,
            shipments=shipments,
            payments=payments,
            _owned=owned,
        )

    async def aclose(self) -> None:
        """Finish background work, then release clients and the engine."""
        await self.dispatcher.drain()
        for client in self._owned:
            await client.aclose()
        await self.engine.dispose()


__all__ = ("Container",)
