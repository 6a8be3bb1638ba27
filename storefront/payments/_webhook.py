"""
Payment webhook graph — routes a verified gateway event to its transition.

Architecture:
    PaymentEvent (injected)      Reconciler (injected)
         │
         ▼
    EventNode ──► TargetNode ──► CrossCheckNode
         │             │               │
         └─────────────┴───────────────┴──► EventOutcome (@polymorphic)
                                                  │
                                                  ▼
                                           WebhookResultNode

Cases are tried in order; a case that does not apply raises NodeError and
the next one is tried. Failures inside a handler are logged and reported
as an "error" outcome, they never escape the webhook.

Note: no 'from __future__ import annotations' here, nodnod reads the
__compose__ hints at runtime.
"""

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from kungfu import Error, Ok

from storefront import graph as G
from storefront._types import Move, utcnow
from storefront.dispatch import Dispatcher
from storefront.errors import Errors
from storefront.log import get_logger
from storefront.orders import Buyer, Order, OrderRepo, OrderService, OrderStatus, PaymentStatus
from storefront.payments._state import Transition, transition
from storefront.vendors import Notifier, PaymentGateway, guarded

log = get_logger(__name__)

HANDLED = frozenset(
    {
        "payment.captured",
        "payment.authorized",
        "payment.failed",
        "order.paid",
        "payment.dispute.created",
    }
)


# ═══════════════════════════════════════════════════════════════════════════════
# Inputs
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class PaymentEvent:
    name: str
    payment: Mapping[str, Any] = field(default_factory=dict)
    order: Mapping[str, Any] = field(default_factory=dict)
    dispute: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def parse(cls, body: Mapping[str, Any]) -> "PaymentEvent":
        payload = body.get("payload") or {}

        def entity(name: str) -> Mapping[str, Any]:
            return (payload.get(name) or {}).get("entity") or {}

        return cls(
            name=str(body.get("event") or "unknown"),
            payment=entity("payment"),
            order=entity("order"),
            dispute=entity("dispute"),
        )

    @property
    def payment_id(self) -> str | None:
        return self.payment.get("id") or self.dispute.get("payment_id")

    @property
    def gateway_order_id(self) -> str | None:
        return self.payment.get("order_id") or self.order.get("id")


@dataclass(frozen=True, slots=True)
class Reconciler:
    """What the handlers act on."""

    orders: OrderRepo
    lifecycle: OrderService
    gateway: PaymentGateway
    dispatcher: Dispatcher
    notifier: Notifier
    timeout: float = 15.0

    def notify_paid(self, order: Order) -> None:
        self.dispatcher.dispatch(
            "notify_payment_confirmed", lambda: self.notifier.payment_confirmed(order)
        )

    async def settle_paid(self, order: Order) -> Order:
        """
        Follow-up of a transition into completed. An order the failure path
        already cancelled is taken back or flagged for a refund.
        """
        if order.status == OrderStatus.CANCELLED:
            order = await self.lifecycle.recover_paid(order.id) or order
        if not order.refund_required:
            self.notify_paid(order)
        return order


@dataclass(frozen=True, slots=True)
class Outcome:
    status: str
    detail: str
    order_id: str | None = None

    @classmethod
    def of(cls, result: Transition, detail: str) -> "Outcome":
        status = {Move.APPLY: "applied", Move.SAME: "unchanged", Move.REJECT: "ignored"}[result.move]
        return cls(status, detail, result.order.id)


def _paid_at(payment: Mapping[str, Any]) -> datetime:
    created = payment.get("created_at")
    if isinstance(created, int | float):
        return datetime.fromtimestamp(created, UTC).replace(tzinfo=None)
    return utcnow()


def _present(**values: Any) -> dict[str, Any]:
    """Only the fields the event actually carries; never blank out what we know."""
    return {k: v for k, v in values.items() if v is not None}


def _confirm_if_new(order: Order) -> dict[str, Any]:
    return {"status": OrderStatus.CONFIRMED} if order.status == OrderStatus.NEW else {}


async def _paid(ctx: Reconciler, result: Transition, detail: str) -> Outcome:
    if not result.applied:
        return Outcome.of(result, detail)
    settled = await ctx.settle_paid(result.order)
    if settled.refund_required:
        return Outcome("applied", f"{detail}; order cancelled, refund required", settled.id)
    return Outcome.of(result, detail)


async def _safely(name: str, order: Order, handler: Callable[[], Awaitable[Outcome]]) -> Outcome:
    try:
        return await handler()
    except Exception as e:
        log.exception("payment_webhook_handler_failed", webhook_event=name, order_id=order.id)
        return Outcome("error", str(e) or type(e).__name__, order.id)


# ═══════════════════════════════════════════════════════════════════════════════
# Nodes
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class EventNode:
    def __init__(self, event: PaymentEvent) -> None:
        self.event = event

    @classmethod
    def __compose__(cls, event: PaymentEvent) -> "EventNode":
        return cls(event)


@G.node
class TargetNode:
    """The order the event is about: payment id first, then gateway order id."""

    def __init__(self, event: PaymentEvent, order: Order | None) -> None:
        self.event = event
        self.order = order

    @classmethod
    async def __compose__(cls, node: EventNode, ctx: Reconciler) -> "TargetNode":
        event = node.event
        order = await ctx.orders.by_gateway(event.payment_id, event.gateway_order_id)
        return cls(event, order)


@G.node
class CrossCheckNode:
    """Re-reads the payment from the gateway; the result is stored as verification metadata."""

    def __init__(self, metadata: dict[str, Any] | None) -> None:
        self.metadata = metadata

    @classmethod
    async def __compose__(cls, node: EventNode, ctx: Reconciler) -> "CrossCheckNode":
        payment_id = node.event.payment.get("id")
        if not payment_id:
            return cls(None)

        fetched = await guarded(
            lambda: ctx.gateway.fetch_payment(payment_id),
            seconds=ctx.timeout,
            on_error=Errors.gateway,
            operation="razorpay.fetch_payment",
        )
        checked_at = utcnow().isoformat()
        match fetched:
            case Ok(payment):
                return cls(
                    {
                        "verified": True,
                        "channel": "webhook",
                        "verified_at": checked_at,
                        "payment_status": payment.status,
                        "payment_method": payment.method,
                        "captured": payment.captured,
                    }
                )
            case Error(e):
                return cls(
                    {
                        "verified": False,
                        "channel": "webhook",
                        "verified_at": checked_at,
                        "error": e.message,
                    }
                )


@G.polymorphic[Outcome]
class EventOutcome:
    @G.case
    def unhandled(cls, node: EventNode) -> Outcome:
        if node.event.name in HANDLED:
            raise G.NodeError("handled event")
        log.info("payment_webhook_unhandled", webhook_event=node.event.name)
        return Outcome("ignored", f"unhandled event {node.event.name}")

    @G.case
    def no_order(cls, target: TargetNode) -> Outcome:
        if target.order is not None:
            raise G.NodeError("order found")
        log.info(
            "payment_webhook_order_unknown",
            webhook_event=target.event.name,
            payment_id=target.event.payment_id,
            gateway_order_id=target.event.gateway_order_id,
        )
        return Outcome("ignored", "order not found")

    @G.case
    async def captured(
        cls, target: TargetNode, check: CrossCheckNode, ctx: Reconciler
    ) -> Outcome:
        event, order = target.event, target.order
        if event.name != "payment.captured" or order is None:
            raise G.NodeError("not payment.captured")

        async def handle() -> Outcome:
            result = await transition(
                ctx.orders,
                order,
                PaymentStatus.COMPLETED,
                source=event.name,
                changes=lambda current: {
                    **_confirm_if_new(current),
                    **_present(
                        gateway_payment_id=event.payment.get("id"),
                        payment_method=event.payment.get("method"),
                        payment_verification=check.metadata,
                    ),
                    "paid_at": _paid_at(event.payment),
                },
            )
            return await _paid(ctx, result, "payment captured")

        return await _safely(event.name, order, handle)

    @G.case
    async def authorized(cls, target: TargetNode, ctx: Reconciler) -> Outcome:
        event, order = target.event, target.order
        if event.name != "payment.authorized" or order is None:
            raise G.NodeError("not payment.authorized")

        async def handle() -> Outcome:
            result = await transition(
                ctx.orders,
                order,
                PaymentStatus.AUTHORIZED,
                source=event.name,
                changes=lambda _: _present(
                    gateway_payment_id=event.payment.get("id"),
                    payment_method=event.payment.get("method"),
                ),
            )
            return Outcome.of(result, "payment authorized")

        return await _safely(event.name, order, handle)

    @G.case
    async def failed(cls, target: TargetNode, ctx: Reconciler) -> Outcome:
        event, order = target.event, target.order
        if event.name != "payment.failed" or order is None:
            raise G.NodeError("not payment.failed")

        async def handle() -> Outcome:
            reason = event.payment.get("error_description") or "Payment failed"
            result = await transition(
                ctx.orders,
                order,
                PaymentStatus.FAILED,
                source=event.name,
                changes=lambda _: {
                    **_present(gateway_payment_id=event.payment.get("id")),
                    "payment_failure_reason": reason,
                },
            )
            if result.applied and result.order.status == OrderStatus.NEW:
                match await ctx.lifecycle.cancel(result.order.id, Buyer(is_admin=True)):
                    case Error(e):
                        log.warning("failed_payment_cancel_skipped", order_id=order.id, code=e.code.value)
                    case Ok(_):
                        pass
            return Outcome.of(result, reason)

        return await _safely(event.name, order, handle)

    @G.case
    async def order_paid(cls, target: TargetNode, ctx: Reconciler) -> Outcome:
        event, order = target.event, target.order
        if event.name != "order.paid" or order is None:
            raise G.NodeError("not order.paid")

        async def handle() -> Outcome:
            if order.payment_status == PaymentStatus.COMPLETED:
                return Outcome("unchanged", "already paid", order.id)
            result = await transition(
                ctx.orders,
                order,
                PaymentStatus.COMPLETED,
                source=event.name,
                changes=lambda current: {**_confirm_if_new(current), "paid_at": utcnow()},
            )
            return await _paid(ctx, result, "order paid")

        return await _safely(event.name, order, handle)

    @G.case
    async def dispute(cls, target: TargetNode, ctx: Reconciler) -> Outcome:
        event, order = target.event, target.order
        if event.name != "payment.dispute.created" or order is None:
            raise G.NodeError("not payment.dispute.created")

        async def handle() -> Outcome:
            reason = (
                event.dispute.get("reason_description")
                or event.payment.get("dispute_reason")
                or "Payment disputed"
            )
            result = await transition(
                ctx.orders,
                order,
                PaymentStatus.DISPUTED,
                source=event.name,
                changes=lambda _: {"dispute_reason": reason},
            )
            if result.applied:
                log.warning("payment_disputed", order_id=order.id, order_number=order.order_number, reason=reason)
            return Outcome.of(result, reason)

        return await _safely(event.name, order, handle)


@G.node
class WebhookResultNode:
    def __init__(self, outcome: Outcome) -> None:
        self.outcome = outcome

    @classmethod
    def __compose__(cls, outcome: EventOutcome) -> "WebhookResultNode":
        return cls(outcome.value)


async def reconcile(event: PaymentEvent, ctx: Reconciler) -> Outcome:
    node = await G.run(WebhookResultNode).inject(event).inject_as(Reconciler, ctx)
    return node.outcome


__all__ = (
    "HANDLED",
    "PaymentEvent",
    "Reconciler",
    "Outcome",
    "EventNode",
    "TargetNode",
    "CrossCheckNode",
    "EventOutcome",
    "WebhookResultNode",
    "reconcile",
)
