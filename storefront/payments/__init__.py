"""
Payments — gateway checkout, verification, webhook reconciliation and refunds.

    match await payments.verify_payment(order_id, gateway_order_id, payment_id, signature):
        case Ok(verified): verified.order.payment_status  # completed
        case Error(e): e.code  # INVALID_SIGNATURE, GATEWAY_ORDER_MISMATCH, ...
"""

from storefront.payments._state import ALLOWED, decide, Transition, transition
from storefront.payments._ledger import EventState, EventLedger
from storefront.payments._webhook import (
    HANDLED,
    PaymentEvent,
    Reconciler,
    Outcome,
    reconcile,
)
from storefront.payments._service import (
    MINIMUM_AMOUNT,
    PaymentOrder,
    VerifiedPayment,
    PaymentSummary,
    WebhookReceipt,
    PaymentService,
)

__all__ = (
    "ALLOWED",
    "decide",
    "Transition",
    "transition",
    "EventState",
    "EventLedger",
    "HANDLED",
    "PaymentEvent",
    "Reconciler",
    "Outcome",
    "reconcile",
    "MINIMUM_AMOUNT",
    "PaymentOrder",
    "VerifiedPayment",
    "PaymentSummary",
    "WebhookReceipt",
    "PaymentService",
)
