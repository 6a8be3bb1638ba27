"""
Compensated steps for the shipment booking.

    booked = step(book_at_aggregator, compensate=cancel_booking)
    result = await run(booked.then(lambda booking: step(persist(booking))))

If a later step fails, compensators of the steps that succeeded run in
reverse; a failing compensator is logged and the original error is kept.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from kungfu import Error, LazyCoroResult, Ok, Result

from storefront.errors import ShopError
from storefront.log import get_logger

log = get_logger(__name__)

type Compensator[T] = Callable[[T], Awaitable[None]]
type RecordedCompensator = tuple[object, Compensator[object]]


@dataclass(frozen=True, slots=True)
class Step[T]:
    """An action plus the way to undo it."""

    action: LazyCoroResult[T, ShopError]
    compensate: Compensator[T] | None = None
    name: str = "step"

    def then[U](self, f: Callable[[T], Step[U]]) -> Then[T, U]:
        return Then(self, f)


@dataclass(frozen=True, slots=True)
class Then[T, U]:
    inner: Step[T]
    f: Callable[[T], Step[U]]


def step[T](
    action: LazyCoroResult[T, ShopError],
    compensate: Compensator[T] | None = None,
    *,
    name: str = "step",
) -> Step[T]:
    return Step(action=action, compensate=compensate, name=name)


async def _run_step[T](s: Step[T], compensators: list[RecordedCompensator]) -> Result[T, ShopError]:
    result = await s.action
    match result:
        case Ok(value):
            if s.compensate is not None:
                compensators.append((value, s.compensate))  # type: ignore[arg-type]
            return Ok(value)
        case Error(e):
            return Error(e)


async def _compensate(compensators: list[RecordedCompensator]) -> int:
    """Run in reverse; returns how many failed."""
    failed = 0
    for value, undo in reversed(compensators):
        try:
            await undo(value)
        except Exception:
            failed += 1
            log.exception("saga_compensation_failed")
    return failed


async def run[T, U](chain: Then[T, U]) -> Result[U, ShopError]:
    compensators: list[RecordedCompensator] = []

    match await _run_step(chain.inner, compensators):
        case Error(e):
            return Error(e)
        case Ok(value):
            pass

    following = chain.f(value)
    match await _run_step(following, compensators):
        case Ok(final):
            return Ok(final)
        case Error(e):
            log.warning(
                "saga_rolling_back",
                failed_step=following.name,
                code=e.code.value,
                compensators=len(compensators),
            )
            failed = await _compensate(compensators)
            if failed:
                log.error("saga_rollback_incomplete", failed=failed)
            return Error(e)


__all__ = ("Step", "Then", "step", "run")
