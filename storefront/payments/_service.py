"""
Payment reconciliation — gateway orders, synchronous verification,
webhooks and refunds.

    create_payment_order ──► (buyer pays at the gateway) ──► verify_payment
                                                                 │
    gateway webhook ──► signature ──► ledger claim ──► reconcile ┘
                                                         │
                                              payment state machine

Both verification paths end in the same compare-and-set transition, so
whichever arrives second is a no-op.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from datetime import datetime

from kungfu import Error, Ok, Result

from storefront._types import Money, close_enough, money, to_minor, utcnow
from storefront.config import Settings
from storefront.dispatch import Dispatcher
from storefront.errors import Errors, ShopError
from storefront.log import SecurityEvent, get_logger, security_event
from storefront.orders import (
    Buyer,
    Order,
    OrderRepo,
    OrderService,
    OrderStatus,
    PaymentStatus,
    Refund,
)
from storefront.payments._ledger import EventLedger
from storefront.payments._state import transition
from storefront.payments._webhook import Outcome, PaymentEvent, Reconciler, reconcile
from storefront.shipping import ServiceStatus, ShipmentService, ShipmentSnapshot
from storefront.signatures import body_digest, payment_message, verify
from storefront.vendors import Notifier, PaymentGateway, guarded

log = get_logger(__name__)

MINIMUM_AMOUNT = money("1.00")


# ═══════════════════════════════════════════════════════════════════════════════
# Views
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class PaymentOrder:
    """What the checkout widget needs to open the gateway."""

    gateway_order_id: str
    amount: int
    currency: str
    key_id: str
    name: str
    description: str
    prefill: dict[str, str]
    theme_color: str
    order_id: str
    order_number: str


@dataclass(frozen=True, slots=True)
class VerifiedPayment:
    order: Order
    shipping: ShipmentSnapshot


@dataclass(frozen=True, slots=True)
class PaymentSummary:
    order_id: str
    order_number: str
    payment_status: PaymentStatus
    gateway_order_id: str | None
    gateway_payment_id: str | None
    payment_method: str | None
    total_amount: Money
    paid_at: datetime | None


@dataclass(frozen=True, slots=True)
class WebhookReceipt:
    event: str
    processed_at: datetime
    outcome: Outcome | None = None
    duplicate: bool = False


# ═══════════════════════════════════════════════════════════════════════════════
# Service
# ═══════════════════════════════════════════════════════════════════════════════


class PaymentService:
    def __init__(
        self,
        orders: OrderRepo,
        lifecycle: OrderService,
        gateway: PaymentGateway,
        shipments: ShipmentService,
        ledger: EventLedger,
        dispatcher: Dispatcher,
        notifier: Notifier,
        settings: Settings,
    ) -> None:
        self._orders = orders
        self._gateway = gateway
        self._shipments = shipments
        self._ledger = ledger
        self._settings = settings
        self._timeout = settings.vendor_timeout
        self._reconciler = Reconciler(
            orders=orders,
            lifecycle=lifecycle,
            gateway=gateway,
            dispatcher=dispatcher,
            notifier=notifier,
            timeout=settings.vendor_timeout,
        )

    # ───────────────────────────────────────────────────────────────────────────
    # Checkout
    # ───────────────────────────────────────────────────────────────────────────

    async def create_payment_order(
        self, order_id: str, amount: Money, requester: Buyer
    ) -> Result[PaymentOrder, ShopError]:
        order = await self._orders.get(order_id)
        if order is None:
            return Error(Errors.order_not_found(order_id))
        if not order.visible_to(requester):
            return Error(Errors.forbidden())
        if order.status == OrderStatus.CANCELLED:
            return Error(Errors.order_cancelled())
        if order.payment_status == PaymentStatus.COMPLETED:
            return Error(Errors.already_paid())
        if not close_enough(amount, order.total_amount):
            return Error(Errors.amount_mismatch(order.total_amount, amount))
        if amount < MINIMUM_AMOUNT:
            return Error(Errors.invalid_amount("Amount must be at least ₹1"))

        currency = self._settings.currency
        created = await guarded(
            lambda: self._gateway.create_order(
                to_minor(order.total_amount),
                currency,
                order.order_number,
                {
                    "order_id": order.id,
                    "order_number": order.order_number,
                    "customer_name": order.shipping.name,
                },
            ),
            seconds=self._timeout,
            on_error=Errors.gateway,
            operation="razorpay.create_order",
        )
        match created:
            case Error(e):
                return Error(e)
            case Ok(gateway_order):
                pass

        await self._orders.update(
            order.id, gateway_order_id=gateway_order.id, payment_initiated_at=utcnow()
        )
        log.info(
            "payment_order_created",
            order_id=order.id,
            order_number=order.order_number,
            gateway_order_id=gateway_order.id,
            amount=gateway_order.amount,
        )

        prefill = {"name": order.shipping.name, "contact": order.shipping.phone}
        if order.shipping.email:
            prefill["email"] = order.shipping.email
        return Ok(
            PaymentOrder(
                gateway_order_id=gateway_order.id,
                amount=gateway_order.amount,
                currency=gateway_order.currency,
                key_id=self._settings.razorpay.key_id,
                name=self._settings.store_name,
                description=f"Order {order.order_number}",
                prefill=prefill,
                theme_color=self._settings.theme_color,
                order_id=order.id,
                order_number=order.order_number,
            )
        )

    async def verify_payment(
        self, order_id: str, gateway_order_id: str, payment_id: str, signature: str
    ) -> Result[VerifiedPayment, ShopError]:
        """
        Confirm a checkout from the signature the gateway handed the buyer.

        Shipment booking and capture run afterwards; their failures are
        logged and never undo the payment.
        """
        if not verify(
            self._settings.razorpay.key_secret,
            payment_message(gateway_order_id, payment_id),
            signature,
        ):
            security_event(
                SecurityEvent.PAYMENT_SIGNATURE_INVALID,
                order_id=order_id,
                gateway_order_id=gateway_order_id,
                payment_id=payment_id,
            )
            return Error(Errors.invalid_signature())

        order = await self._orders.get(order_id)
        if order is None:
            return Error(Errors.order_not_found(order_id))
        if order.gateway_order_id != gateway_order_id:
            security_event(
                SecurityEvent.GATEWAY_ORDER_MISMATCH,
                order_id=order.id,
                recorded=order.gateway_order_id,
                signed=gateway_order_id,
            )
            return Error(Errors.gateway_order_mismatch())

        now = utcnow()
        result = await transition(
            self._orders,
            order,
            PaymentStatus.COMPLETED,
            source="verify",
            changes=lambda current: {
                **({"status": OrderStatus.CONFIRMED} if current.status == OrderStatus.NEW else {}),
                "gateway_payment_id": payment_id,
                "payment_verification": {
                    "verified": True,
                    "channel": "checkout",
                    "verified_at": now.isoformat(),
                    "signature_valid": True,
                },
                "paid_at": now,
            },
        )
        order = result.order
        if result.applied:
            order = await self._reconciler.settle_paid(order)
            await self._capture_if_authorized(order, payment_id)

        if not order.awb_code and order.is_paid and order.status != OrderStatus.CANCELLED:
            match await self._shipments.create_shipment(order.id):
                case Ok(shipped):
                    order = shipped
                case Error(e):
                    log.warning(
                        "post_payment_shipment_failed",
                        order_id=order.id,
                        code=e.code.value,
                        reason=e.message,
                    )

        return Ok(VerifiedPayment(order, ShipmentSnapshot.of(order)))

    async def _capture_if_authorized(self, order: Order, payment_id: str) -> None:
        fetched = await guarded(
            lambda: self._gateway.fetch_payment(payment_id),
            seconds=self._timeout,
            on_error=Errors.gateway,
            operation="razorpay.fetch_payment",
        )
        match fetched:
            case Error(_):
                return
            case Ok(payment) if payment.status != "authorized":
                return
            case Ok(payment):
                pass

        captured = await guarded(
            lambda: self._gateway.capture(payment_id, payment.amount, self._settings.currency),
            seconds=self._timeout,
            on_error=Errors.gateway,
            operation="razorpay.capture",
        )
        match captured:
            case Ok(_):
                log.info("payment_captured", order_id=order.id, payment_id=payment_id)
            case Error(e):
                log.warning("payment_capture_failed", order_id=order.id, reason=e.message)

    # ───────────────────────────────────────────────────────────────────────────
    # Queries
    # ───────────────────────────────────────────────────────────────────────────

    async def payment_status(self, order_id: str, requester: Buyer) -> Result[PaymentSummary, ShopError]:
        order = await self._orders.get(order_id)
        if order is None:
            return Error(Errors.order_not_found(order_id))
        if not order.visible_to(requester):
            return Error(Errors.forbidden())
        return Ok(
            PaymentSummary(
                order_id=order.id,
                order_number=order.order_number,
                payment_status=order.payment_status,
                gateway_order_id=order.gateway_order_id,
                gateway_payment_id=order.gateway_payment_id,
                payment_method=order.payment_method,
                total_amount=order.total_amount,
                paid_at=order.paid_at,
            )
        )

    def service_status(self) -> ServiceStatus:
        if self._settings.razorpay.configured:
            return ServiceStatus("Razorpay", True, "Razorpay service is configured")
        return ServiceStatus("Razorpay", False, "Razorpay credentials are not configured")

    # ───────────────────────────────────────────────────────────────────────────
    # Refunds
    # ───────────────────────────────────────────────────────────────────────────

    async def create_refund(
        self, order_id: str, amount: Money | None = None, reason: str | None = None
    ) -> Result[Refund, ShopError]:
        """Refund part or all of what is left; the payment status stays as it is."""
        order = await self._orders.get(order_id)
        if order is None:
            return Error(Errors.order_not_found(order_id))
        if order.payment_status != PaymentStatus.COMPLETED:
            return Error(Errors.payment_not_completed())
        if not order.gateway_payment_id:
            return Error(Errors.payment_id_missing())

        refundable = money(order.total_amount - order.refunded_amount)
        amount = refundable if amount is None else money(amount)
        if amount <= 0 or amount > refundable:
            return Error(Errors.invalid_refund_amount(refundable))

        payment_id = order.gateway_payment_id
        notes = {"order_id": order.id, "order_number": order.order_number}
        if reason:
            notes["reason"] = reason

        match await guarded(
            lambda: self._gateway.refund(payment_id, to_minor(amount), notes),
            seconds=self._timeout,
            on_error=Errors.gateway,
            operation="razorpay.refund",
        ):
            case Error(e):
                return Error(e)
            case Ok(gateway_refund):
                pass

        refund = Refund(
            id=uuid.uuid4().hex,
            order_id=order.id,
            gateway_refund_id=gateway_refund.id,
            amount=amount,
            status=gateway_refund.status,
            reason=reason,
            created_at=utcnow(),
        )
        await self._orders.add_refund(refund)
        log.info(
            "refund_created",
            order_id=order.id,
            refund_id=refund.id,
            gateway_refund_id=refund.gateway_refund_id,
            amount=str(amount),
        )
        return Ok(refund)

    async def get_refund(self, order_id: str, refund_id: str) -> Result[Refund, ShopError]:
        order = await self._orders.get(order_id)
        if order is None:
            return Error(Errors.order_not_found(order_id))
        for refund in order.refunds:
            if refund_id in (refund.id, refund.gateway_refund_id):
                return Ok(refund)
        return Error(Errors.refund_not_found(refund_id))

    # ───────────────────────────────────────────────────────────────────────────
    # Webhook
    # ───────────────────────────────────────────────────────────────────────────

    async def handle_webhook(
        self, body: bytes, signature: str | None, event_id: str | None = None
    ) -> Result[WebhookReceipt, ShopError]:
        """
        Process one gateway delivery.

        Only a bad signature is an error. Everything after that is logged
        and acknowledged so the gateway stops redelivering.
        """
        if not verify(self._settings.razorpay.webhook_secret, body, signature):
            security_event(
                SecurityEvent.PAYMENT_WEBHOOK_SIGNATURE_INVALID,
                signature_present=signature is not None,
                secret_configured=self._settings.razorpay.webhook_secret is not None,
            )
            return Error(Errors.invalid_webhook_signature())

        try:
            payload = json.loads(body)
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            log.warning("payment_webhook_malformed")
            return Ok(WebhookReceipt("unknown", utcnow(), Outcome("ignored", "malformed payload")))

        event = PaymentEvent.parse(payload)
        key = f"razorpay:{event_id or body_digest(body)}"

        ledgered = True
        match await self._ledger.claim(key, "razorpay", event.name):
            case Ok(False):
                log.info("payment_webhook_duplicate", webhook_event=event.name, key=key)
                return Ok(WebhookReceipt(event.name, utcnow(), duplicate=True))
            case Ok(True):
                pass
            case Error(e):
                # transitions are compare-and-set, so processing unledgered is still safe
                ledgered = False
                log.error("payment_webhook_ledger_unavailable", key=key, reason=e.message)

        outcome = await self._reconcile(event)
        if ledgered:
            if outcome.status == "error":
                await self._ledger.fail(key, outcome.detail)
            else:
                await self._ledger.complete(key)

        log.info(
            "payment_webhook_processed",
            webhook_event=event.name,
            outcome=outcome.status,
            detail=outcome.detail,
            order_id=outcome.order_id,
        )
        return Ok(WebhookReceipt(event.name, utcnow(), outcome))

    async def _reconcile(self, event: PaymentEvent) -> Outcome:
        try:
            return await reconcile(event, self._reconciler)
        except Exception as e:
            log.exception("payment_webhook_failed", webhook_event=event.name)
            return Outcome("error", str(e) or type(e).__name__)


__all__ = (
    "MINIMUM_AMOUNT",
    "PaymentOrder",
    "VerifiedPayment",
    "PaymentSummary",
    "WebhookReceipt",
    "PaymentService",
)
