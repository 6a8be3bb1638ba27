"""
Core types for storefront.

Re-exports from kungfu/combinators + money and clock helpers.
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Never

# Re-export from kungfu
from kungfu import Result, Ok, Error, Option, Some, Nothing, LazyCoroResult

# Re-export from combinators
from combinators import LCR, NoError

# ═══════════════════════════════════════════════════════════════════════════════
# Lazy Computation Aliases
# ═══════════════════════════════════════════════════════════════════════════════

type Lazy[T, E] = LazyCoroResult[T, E]
"""Lazy async computation that may fail."""

type Pure[T] = Lazy[T, Never]
"""Lazy computation that cannot fail."""

# ═══════════════════════════════════════════════════════════════════════════════
# Money
# ═══════════════════════════════════════════════════════════════════════════════

type Money = Decimal
"""Major-unit amount (rupees), always quantized to 0.01."""

CENT = Decimal("0.01")
TOLERANCE = Decimal("0.01")


def money(value: object) -> Money:
    """Normalize int/float/str/Decimal to a 2-place Decimal."""
    if isinstance(value, float):
        value = repr(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)  # type: ignore[arg-type]


def to_minor(amount: Money) -> int:
    """Rupees → paise. Only used at the gateway boundary."""
    return int((money(amount) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def from_minor(amount: int) -> Money:
    """Paise → rupees."""
    return money(Decimal(amount) / 100)


def close_enough(a: Money, b: Money) -> bool:
    return abs(money(a) - money(b)) <= TOLERANCE


# ═══════════════════════════════════════════════════════════════════════════════
# Clock
# ═══════════════════════════════════════════════════════════════════════════════


def utcnow() -> datetime:
    """Naive UTC timestamp (the store keeps naive UTC datetimes)."""
    return datetime.now(UTC).replace(tzinfo=None)


def as_naive_utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


# ═══════════════════════════════════════════════════════════════════════════════
# Transitions
# ═══════════════════════════════════════════════════════════════════════════════


class Move(Enum):
    """Verdict of a state-machine guard."""

    APPLY = "apply"
    SAME = "same"
    REJECT = "reject"


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    # Re-exports from kungfu
    "Result",
    "Ok",
    "Error",
    "Option",
    "Some",
    "Nothing",
    "LazyCoroResult",
    # Re-exports from combinators
    "LCR",
    "NoError",
    # Type aliases
    "Lazy",
    "Pure",
    # Money
    "Money",
    "CENT",
    "TOLERANCE",
    "money",
    "to_minor",
    "from_minor",
    "close_enough",
    # Clock
    "utcnow",
    "as_naive_utc",
    # Transitions
    "Move",
)
