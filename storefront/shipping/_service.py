"""
Shipment reconciliation — booking, tracking, cancellation and the
aggregator webhook.

Every shipment status write goes through the monotonic guard and is
conditional on the status that was read.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from combinators import lift as L
from kungfu import Error, LazyCoroResult, Ok, Result

from storefront._types import Move, as_naive_utc, utcnow
from storefront.dispatch import Dispatcher
from storefront.errors import Errors, ShopError, ShopFailure
from storefront.log import SecurityEvent, get_logger, security_event
from storefront.orders import (
    Order,
    OrderRepo,
    OrderStatus,
    ShipmentStatus,
    can_transition,
)
from storefront.shipping import _saga as S
from storefront.shipping._state import decide, map_status
from storefront.signatures import verify
from storefront.vendors import (
    ManifestItem,
    Notifier,
    ShipmentBooking,
    ShipmentRequest,
    ShippingAggregator,
    TrackingInfo,
    guarded,
)

log = get_logger(__name__)

DEFAULT_ITEM_WEIGHT_GRAMS = 500
ORDER_NUMBER_PREFIXES = ("ORD-", "MTA-")


def tracking_url(awb: str) -> str:
    return f"https://shiprocket.in/tracking/{awb}"


# ═══════════════════════════════════════════════════════════════════════════════
# Views
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class ShipmentSnapshot:
    awb: str | None
    status: ShipmentStatus | None
    courier_name: str | None
    tracking_url: str | None
    estimated_delivery: str | None

    @classmethod
    def of(cls, order: Order) -> ShipmentSnapshot:
        return cls(
            awb=order.awb_code,
            status=order.shipment_status,
            courier_name=order.courier_name,
            tracking_url=order.tracking_url,
            estimated_delivery=order.estimated_delivery,
        )


@dataclass(frozen=True, slots=True)
class TrackingView:
    awb: str
    status: ShipmentStatus | None
    raw_status: str
    delivered: bool
    courier_name: str | None
    tracking_url: str | None
    estimated_delivery: str | None
    order_number: str
    history: tuple[Mapping[str, Any], ...] = field(default=())


@dataclass(frozen=True, slots=True)
class ShippingLabel:
    order_number: str
    awb: str
    label_url: str


@dataclass(frozen=True, slots=True)
class ShippingWebhookReceipt:
    message: str
    order_id: str | None
    processed_at: datetime


@dataclass(frozen=True, slots=True)
class ServiceStatus:
    service: str
    operational: bool
    message: str


def manifest(order: Order) -> ShipmentRequest:
    """Flatten an order into the aggregator's booking request."""
    grams = sum((i.weight_grams or DEFAULT_ITEM_WEIGHT_GRAMS) * i.quantity for i in order.items)
    s = order.shipping
    return ShipmentRequest(
        order_number=order.order_number,
        order_date=utcnow().date().isoformat(),
        customer_name=s.name,
        phone=s.phone,
        address=s.address,
        city=s.city,
        state=s.state,
        pincode=s.pincode,
        country=s.country,
        email=s.email,
        items=tuple(
            ManifestItem(
                name=i.product_name,
                sku=i.sku or i.product_id,
                units=i.quantity,
                selling_price=i.price,
                hsn=i.hsn_code,
            )
            for i in order.items
        ),
        sub_total=order.total_amount,
        weight_kg=grams / 1000,
    )


def _delivered_at(raw: object) -> datetime:
    if isinstance(raw, str) and raw:
        try:
            return as_naive_utc(datetime.fromisoformat(raw)) or utcnow()
        except ValueError:
            pass
    return utcnow()


# ═══════════════════════════════════════════════════════════════════════════════
# Service
# ═══════════════════════════════════════════════════════════════════════════════


class ShipmentService:
    def __init__(
        self,
        orders: OrderRepo,
        aggregator: ShippingAggregator,
        dispatcher: Dispatcher,
        notifier: Notifier,
        *,
        webhook_secret: str | None = None,
        timeout: float = 15.0,
    ) -> None:
        self._orders = orders
        self._aggregator = aggregator
        self._dispatcher = dispatcher
        self._notifier = notifier
        self._webhook_secret = webhook_secret
        self._timeout = timeout

    # ───────────────────────────────────────────────────────────────────────────
    # Booking
    # ───────────────────────────────────────────────────────────────────────────

    async def create_shipment(self, order_id: str) -> Result[Order, ShopError]:
        """
        Book the shipment once per paid order.

        If the booking cannot be recorded after the aggregator accepted it,
        the booking is cancelled at the aggregator.
        """
        order = await self._orders.get(order_id)
        if order is None:
            return Error(Errors.order_not_found(order_id))
        if not order.is_paid:
            return Error(Errors.order_not_paid())
        if order.status == OrderStatus.CANCELLED:
            return Error(Errors.order_cancelled())
        if order.awb_code or order.aggregator_order_id:
            return Error(Errors.shipment_exists(order.awb_code or order.aggregator_order_id or ""))

        request = manifest(order)
        book = S.step(
            guarded(
                lambda: self._aggregator.create_shipment(request),
                seconds=self._timeout,
                on_error=Errors.shipping_provider,
                operation="shiprocket.create_shipment",
            ),
            compensate=self._cancel_booking,
            name="book",
        )
        result = await S.run(book.then(lambda booking: S.step(self._record(order, booking), name="record")))

        match result:
            case Ok(saved):
                log.info(
                    "shipment_created",
                    order_id=saved.id,
                    order_number=saved.order_number,
                    awb=saved.awb_code,
                    courier=saved.courier_name,
                )
                return Ok(saved)
            case Error(e):
                return Error(e)

    async def _cancel_booking(self, booking: ShipmentBooking) -> None:
        if booking.awb is None:
            log.error("shipment_compensation_impossible", aggregator_order_id=booking.aggregator_order_id)
            return
        await self._aggregator.cancel(booking.awb)
        log.warning("shipment_booking_cancelled", awb=booking.awb)

    def _record(self, order: Order, booking: ShipmentBooking) -> LazyCoroResult[Order, ShopError]:
        async def write() -> Order:
            now = utcnow()
            changes: dict[str, Any] = {
                "aggregator_order_id": booking.aggregator_order_id,
                "aggregator_shipment_id": booking.shipment_id,
                "awb_code": booking.awb,
                "courier_name": booking.courier_name,
                "tracking_url": tracking_url(booking.awb) if booking.awb else None,
                "estimated_delivery": booking.etd,
                "shipment_status": ShipmentStatus.CREATED,
                "shipped_at": now,
            }
            if can_transition(order.status, OrderStatus.SHIPPED):
                changes["status"] = OrderStatus.SHIPPED

            written = await self._orders.compare_and_set(
                order.id,
                {"awb_code": None, "aggregator_order_id": None, "status": order.status},
                **changes,
            )
            if not written:
                raise ShopFailure(Errors.shipment_exists(booking.awb or booking.aggregator_order_id))
            saved = await self._orders.get(order.id)
            if saved is None:
                raise ShopFailure(Errors.order_not_found(order.id))
            return saved

        return L.catching_async(
            write,
            on_error=lambda e: (
                e.error if isinstance(e, ShopFailure) else Errors.internal(f"Could not record shipment: {e}")
            ),
        )

    # ───────────────────────────────────────────────────────────────────────────
    # Status
    # ───────────────────────────────────────────────────────────────────────────

    async def advance(
        self,
        order: Order,
        target: ShipmentStatus,
        *,
        source: str,
        delivered_at: datetime | None = None,
        snapshot: dict[str, Any] | None = None,
    ) -> tuple[Order, Move]:
        """Apply `target` through the monotonic guard, retrying on a lost race."""
        for _ in range(3):
            move = decide(order.shipment_status, target)
            if move is not Move.APPLY:
                if move is Move.REJECT:
                    log.warning(
                        "shipment_transition_ignored",
                        order_id=order.id,
                        current=order.shipment_status.value if order.shipment_status else None,
                        target=target.value,
                        source=source,
                    )
                if snapshot is not None:
                    order = await self._orders.update(order.id, last_tracking=snapshot) or order
                return order, move

            changes: dict[str, Any] = {"shipment_status": target}
            if snapshot is not None:
                changes["last_tracking"] = snapshot
            if target == ShipmentStatus.DELIVERED:
                changes["delivered_at"] = delivered_at or utcnow()
                if can_transition(order.status, OrderStatus.DELIVERED):
                    changes["status"] = OrderStatus.DELIVERED

            if await self._orders.compare_and_set(
                order.id, {"shipment_status": order.shipment_status}, **changes
            ):
                log.info(
                    "shipment_transitioned",
                    order_id=order.id,
                    src=order.shipment_status.value if order.shipment_status else None,
                    dst=target.value,
                    source=source,
                )
                updated = await self._orders.get(order.id) or order
                if target == ShipmentStatus.DELIVERED:
                    self._dispatcher.dispatch(
                        "notify_order_delivered", lambda: self._notifier.order_delivered(updated)
                    )
                return updated, Move.APPLY

            fresh = await self._orders.get(order.id)
            if fresh is None:
                break
            order = fresh

        return order, Move.REJECT

    async def _resolve(self, identifier: str) -> Order | None:
        if identifier.startswith(ORDER_NUMBER_PREFIXES):
            if found := await self._orders.by_number(identifier):
                return found
        if found := await self._orders.get(identifier):
            return found
        return await self._orders.by_awb(identifier)

    async def track(self, identifier: str) -> Result[TrackingView, ShopError]:
        """Poll the aggregator and fold the result into the order."""
        order = await self._resolve(identifier)
        if order is None:
            return Error(Errors.order_not_found(identifier))
        if not order.awb_code:
            return Error(Errors.shipment_not_found())
        awb = order.awb_code

        match await guarded(
            lambda: self._aggregator.track(awb),
            seconds=self._timeout,
            on_error=Errors.shipping_provider,
            operation="shiprocket.track",
        ):
            case Error(e):
                return Error(e)
            case Ok(info):
                pass

        mapped = map_status(info.status)
        order, _ = await self.advance(
            order,
            mapped,
            source="tracking_poll",
            delivered_at=_delivered_at(info.delivered_date) if mapped == ShipmentStatus.DELIVERED else None,
            snapshot=_snapshot(info),
        )
        return Ok(
            TrackingView(
                awb=awb,
                status=order.shipment_status,
                raw_status=info.status,
                delivered=order.shipment_status == ShipmentStatus.DELIVERED,
                courier_name=info.courier_name or order.courier_name,
                tracking_url=order.tracking_url or tracking_url(awb),
                estimated_delivery=info.etd or order.estimated_delivery,
                order_number=order.order_number,
                history=info.history,
            )
        )

    # ───────────────────────────────────────────────────────────────────────────
    # Admin
    # ───────────────────────────────────────────────────────────────────────────

    async def cancel_shipment(self, order_id: str) -> Result[Order, ShopError]:
        """Cancel at the aggregator; the order status is left alone."""
        order = await self._orders.get(order_id)
        if order is None:
            return Error(Errors.order_not_found(order_id))
        if not order.awb_code:
            return Error(Errors.no_shipment())
        if order.shipment_status == ShipmentStatus.CANCELLED:
            return Ok(order)
        if decide(order.shipment_status, ShipmentStatus.CANCELLED) is Move.REJECT:
            return Error(
                Errors.invalid_transition(
                    order.shipment_status.value if order.shipment_status else "none",
                    ShipmentStatus.CANCELLED.value,
                )
            )

        awb = order.awb_code
        match await guarded(
            lambda: self._aggregator.cancel(awb),
            seconds=self._timeout,
            on_error=Errors.shipping_provider,
            operation="shiprocket.cancel",
        ):
            case Error(e):
                return Error(e)
            case Ok(_):
                pass

        order, _ = await self.advance(order, ShipmentStatus.CANCELLED, source="admin_cancel")
        log.info("shipment_cancelled", order_id=order.id, awb=awb)
        return Ok(order)

    async def label(self, order_id: str) -> Result[ShippingLabel, ShopError]:
        order = await self._orders.get(order_id)
        if order is None:
            return Error(Errors.order_not_found(order_id))
        if not order.awb_code:
            return Error(Errors.no_shipment())
        return Ok(ShippingLabel(order.order_number, order.awb_code, tracking_url(order.awb_code)))

    async def service_status(self) -> ServiceStatus:
        match await guarded(
            self._aggregator.authenticate,
            seconds=self._timeout,
            on_error=Errors.shipping_provider,
            operation="shiprocket.authenticate",
        ):
            case Ok(_):
                return ServiceStatus("Shiprocket", True, "Shiprocket service is operational")
            case Error(e):
                return ServiceStatus("Shiprocket", False, e.message)

    # ───────────────────────────────────────────────────────────────────────────
    # Webhook
    # ───────────────────────────────────────────────────────────────────────────

    async def handle_webhook(
        self, body: bytes, signature: str | None
    ) -> Result[ShippingWebhookReceipt, ShopError]:
        if self._webhook_secret is not None and not verify(self._webhook_secret, body, signature):
            security_event(
                SecurityEvent.SHIPPING_WEBHOOK_SIGNATURE_INVALID,
                signature_present=signature is not None,
            )
            return Error(Errors.invalid_webhook_signature())

        try:
            payload = json.loads(body or b"{}")
        except ValueError:
            return Error(Errors.validation("Malformed webhook payload"))
        if not isinstance(payload, dict):
            return Error(Errors.validation("Malformed webhook payload"))

        awb = payload.get("awb")
        raw = payload.get("current_status") or payload.get("track_status")
        if not awb or raw is None:
            log.info("shipping_webhook_incomplete", awb=awb)
            return Ok(ShippingWebhookReceipt("Nothing to update", None, utcnow()))

        order = await self._orders.by_awb(str(awb))
        if order is None:
            log.info("shipping_webhook_unknown_awb", awb=awb)
            return Ok(ShippingWebhookReceipt("Order not found for AWB", None, utcnow()))

        mapped = map_status(raw)
        order, move = await self.advance(
            order,
            mapped,
            source="shiprocket_webhook",
            delivered_at=_delivered_at(payload.get("delivered_date"))
            if mapped == ShipmentStatus.DELIVERED
            else None,
        )
        message = "Webhook processed" if move is Move.APPLY else "No status change"
        return Ok(ShippingWebhookReceipt(message, order.id, utcnow()))


def _snapshot(info: TrackingInfo) -> dict[str, Any]:
    return {
        "status": info.status,
        "courier_name": info.courier_name,
        "etd": info.etd,
        "delivered_date": info.delivered_date,
        "history": [dict(h) for h in info.history],
        "fetched_at": utcnow().isoformat(),
    }


__all__ = (
    "DEFAULT_ITEM_WEIGHT_GRAMS",
    "tracking_url",
    "ShipmentSnapshot",
    "TrackingView",
    "ShippingLabel",
    "ShippingWebhookReceipt",
    "ServiceStatus",
    "manifest",
    "ShipmentService",
)
