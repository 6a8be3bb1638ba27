"""
Shipment state machine — monotonic progress, terminal states are final.

    created ──► in_transit ──► out_for_delivery ──► delivered
       │             │                 │
       └─────────────┴─────────────────┴──► cancelled | lost | damaged
"""

from __future__ import annotations

import re

from storefront._types import Move
from storefront.orders import ShipmentStatus

PROGRESS = (
    ShipmentStatus.CREATED,
    ShipmentStatus.IN_TRANSIT,
    ShipmentStatus.OUT_FOR_DELIVERY,
    ShipmentStatus.DELIVERED,
)
EXCEPTIONS = frozenset({ShipmentStatus.CANCELLED, ShipmentStatus.LOST, ShipmentStatus.DAMAGED})
TERMINAL = EXCEPTIONS | {ShipmentStatus.DELIVERED}

STATUS_MAP: dict[str, ShipmentStatus] = {
    "created": ShipmentStatus.CREATED,
    "picked_up": ShipmentStatus.IN_TRANSIT,
    "in_transit": ShipmentStatus.IN_TRANSIT,
    "out_for_delivery": ShipmentStatus.OUT_FOR_DELIVERY,
    "delivered": ShipmentStatus.DELIVERED,
    "undelivered": ShipmentStatus.IN_TRANSIT,
    "cancelled": ShipmentStatus.CANCELLED,
    "lost": ShipmentStatus.LOST,
    "damaged": ShipmentStatus.DAMAGED,
}

_SEPARATORS = re.compile(r"[\s\-]+")


def map_status(raw: object) -> ShipmentStatus:
    """Aggregator vocabulary → ours. Unknown statuses count as in transit."""
    key = _SEPARATORS.sub("_", str(raw).strip().lower())
    return STATUS_MAP.get(key, ShipmentStatus.IN_TRANSIT)


def decide(current: ShipmentStatus | None, target: ShipmentStatus) -> Move:
    if current is None:
        return Move.APPLY
    if current == target:
        return Move.SAME
    if current in TERMINAL:
        return Move.REJECT
    if target in EXCEPTIONS:
        return Move.APPLY
    return Move.APPLY if PROGRESS.index(target) > PROGRESS.index(current) else Move.REJECT


__all__ = ("PROGRESS", "EXCEPTIONS", "TERMINAL", "STATUS_MAP", "map_status", "decide")
