"""
Graph — fluent runner over nodnod.

    from storefront import graph as G

    @G.node
    class ValidatedItemsNode:
        @classmethod
        async def __compose__(cls, checkout: CheckoutNode, catalog: Catalog) -> "ValidatedItemsNode":
            ...

    result = await G.run(PersistedOrderNode).inject(request).inject(catalog).result()

Domain failures are raised inside nodes as ShopFailure and come back
as Error(ShopError) from .result().
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, cast

from kungfu import Error, Ok, Result
from nodnod import EventLoopAgent, Node, NodeError, Scope, Value, case, polymorphic
from nodnod import scalar_node as node

from storefront.errors import ShopError, ShopFailure


@dataclass(slots=True, frozen=True)
class Run[T]:
    """
    Fluent runner for a target node.

    Dependencies are discovered from the target; injections are keyed
    by their runtime type unless given explicitly via inject_as().
    """

    _target: type[T]
    _injections: tuple[tuple[type[Any], Any], ...] = ()

    def inject(self, value: object) -> Run[T]:
        return Run(self._target, (*self._injections, (type(value), value)))

    def inject_as[V](self, typ: type[V], value: V) -> Run[T]:
        """
        Inject under an explicit type.

            .inject_as(PaymentGateway, fake_gateway)
        """
        return Run(self._target, (*self._injections, (typ, value)))

    def given(self, *values: object) -> Run[T]:
        run: Run[T] = self
        for v in values:
            run = run.inject(v)
        return run

    def __await__(self) -> Any:
        return self._execute().__await__()

    async def _execute(self) -> T:
        agent = EventLoopAgent.build({cast(type[Node[Any, Any]], self._target)})

        async with Scope(detail="run") as scope:
            for typ, value in self._injections:
                scope.push(Value(typ, value))

            await agent.run(scope, {})

            found = scope.get(self._target)
            if found is None:
                raise KeyError(f"{self._target.__name__} not found in scope")
            return cast(T, found.value)

    async def result(self) -> Result[T, ShopError]:
        """Execute, folding ShopFailure raised by any node into Error."""
        try:
            return Ok(await self)
        except ShopFailure as failure:
            return Error(failure.error)


def run[T](target: type[T]) -> Run[T]:
    return Run(target)


async def compose[T](target: type[T], *inputs: object) -> T:
    """One-shot composition."""
    return await run(target).given(*inputs)


__all__ = ("node", "polymorphic", "case", "NodeError", "Run", "run", "compose")
