"""
Payment state machine — a strict partial order over payment statuses.

    pending ──► authorized ──► completed ──► disputed
       │            │              ▲
       └────────────┴──► failed ───┘   (a retried payment may still succeed)

Same-state is a no-op. Anything else not drawn is rejected: logged and
ignored, never written.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from storefront._types import Move
from storefront.log import get_logger
from storefront.orders import Order, OrderRepo, PaymentStatus

log = get_logger(__name__)

ALLOWED: Mapping[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset(
        {PaymentStatus.AUTHORIZED, PaymentStatus.COMPLETED, PaymentStatus.FAILED}
    ),
    PaymentStatus.AUTHORIZED: frozenset({PaymentStatus.COMPLETED, PaymentStatus.FAILED}),
    PaymentStatus.FAILED: frozenset({PaymentStatus.AUTHORIZED, PaymentStatus.COMPLETED}),
    PaymentStatus.COMPLETED: frozenset({PaymentStatus.DISPUTED}),
    PaymentStatus.DISPUTED: frozenset(),
}


def decide(current: PaymentStatus, target: PaymentStatus) -> Move:
    if current == target:
        return Move.SAME
    if target in ALLOWED[current]:
        return Move.APPLY
    return Move.REJECT


@dataclass(frozen=True, slots=True)
class Transition:
    order: Order
    move: Move

    @property
    def applied(self) -> bool:
        return self.move is Move.APPLY


async def transition(
    orders: OrderRepo,
    order: Order,
    target: PaymentStatus,
    *,
    source: str,
    changes: Callable[[Order], Mapping[str, Any]] = lambda _: {},
) -> Transition:
    """
    Move `order` to `target` if the partial order allows it.

    `changes` is evaluated against the freshest read and written together
    with the status, conditional on the payment status not having moved.
    """
    for _ in range(3):
        move = decide(order.payment_status, target)
        if move is Move.REJECT:
            log.warning(
                "payment_transition_ignored",
                order_id=order.id,
                current=order.payment_status.value,
                target=target.value,
                source=source,
            )
        if move is not Move.APPLY:
            return Transition(order, move)

        if await orders.compare_and_set(
            order.id,
            {"payment_status": order.payment_status},
            payment_status=target,
            **changes(order),
        ):
            log.info(
                "payment_transitioned",
                order_id=order.id,
                src=order.payment_status.value,
                dst=target.value,
                source=source,
            )
            updated = await orders.get(order.id)
            return Transition(updated or order, Move.APPLY)

        fresh = await orders.get(order.id)
        if fresh is None:
            break
        order = fresh

    return Transition(order, Move.REJECT)


__all__ = ("ALLOWED", "decide", "Transition", "transition")
