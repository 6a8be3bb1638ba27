"""
Processed-event ledger — at-most-once handling of redelivered webhooks.

    claim(key)     ─► Ok(True)   first delivery, or a previous attempt failed
                   ─► Ok(False)  already processing or completed
    complete(key) / fail(key, error)

The claim is an INSERT on the primary key, so two concurrent deliveries
cannot both win.
"""

from __future__ import annotations

from enum import StrEnum

from kungfu import Error, Ok, Result
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from storefront._types import utcnow
from storefront.db import ProcessedEventTable, SessionFactory
from storefront.errors import Errors, ShopError


class EventState(StrEnum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class EventLedger:
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session = session_factory

    async def claim(self, key: str, source: str, event: str) -> Result[bool, ShopError]:
        try:
            async with self._session() as session:
                session.add(
                    ProcessedEventTable(
                        key=key,
                        source=source,
                        event=event,
                        state=EventState.PROCESSING.value,
                        created_at=utcnow(),
                    )
                )
                try:
                    await session.commit()
                    return Ok(True)
                except IntegrityError:
                    await session.rollback()

                # retry a failed attempt; the state check keeps it single-winner
                result = await session.execute(
                    update(ProcessedEventTable)
                    .where(
                        ProcessedEventTable.key == key,
                        ProcessedEventTable.state == EventState.FAILED.value,
                    )
                    .values(state=EventState.PROCESSING.value, error=None)
                )
                await session.commit()
                return Ok(result.rowcount == 1)  # type: ignore[attr-defined]
        except SQLAlchemyError as e:
            return Error(Errors.internal(f"Event ledger unavailable: {e}"))

    async def complete(self, key: str) -> Result[None, ShopError]:
        return await self._finish(key, EventState.COMPLETED, None)

    async def fail(self, key: str, error: str) -> Result[None, ShopError]:
        return await self._finish(key, EventState.FAILED, error)

    async def _finish(self, key: str, state: EventState, error: str | None) -> Result[None, ShopError]:
        try:
            async with self._session() as session:
                await session.execute(
                    update(ProcessedEventTable)
                    .where(ProcessedEventTable.key == key)
                    .values(state=state.value, error=error, completed_at=utcnow())
                )
                await session.commit()
                return Ok(None)
        except SQLAlchemyError as e:
            return Error(Errors.internal(f"Event ledger unavailable: {e}"))

    async def state(self, key: str) -> EventState | None:
        async with self._session() as session:
            row = await session.get(ProcessedEventTable, key)
            return EventState(row.state) if row is not None else None


__all__ = ("EventState", "EventLedger")
