"""
Notifier that records customer notifications on the log.

Mail delivery is outside this service; the audit line carries what the
mail worker needs.
"""

from __future__ import annotations

from storefront.log import get_logger
from storefront.orders import Order

log = get_logger(__name__)


class LogNotifier:
    async def payment_confirmed(self, order: Order) -> None:
        log.info(
            "notify_payment_confirmed",
            order_id=order.id,
            order_number=order.order_number,
            email=order.shipping.email,
            amount=str(order.total_amount),
        )

    async def order_delivered(self, order: Order) -> None:
        log.info(
            "notify_order_delivered",
            order_id=order.id,
            order_number=order.order_number,
            email=order.shipping.email,
            awb=order.awb_code,
        )


__all__ = ("LogNotifier",)
