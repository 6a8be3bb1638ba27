"""
Guarded vendor calls — exceptions and timeouts become typed errors.

    booking = await guarded(
        lambda: aggregator.create_shipment(request),
        seconds=settings.vendor_timeout,
        on_error=Errors.shipping_provider,
        operation="shiprocket.create_shipment",
    )
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from combinators import TimeoutError as VendorTimeout
from combinators import flow, lift as L
from kungfu import LazyCoroResult

from storefront.errors import ShopError
from storefront.log import get_logger
from storefront.vendors._protocols import VendorError

log = get_logger(__name__)


def describe(exc: Exception) -> str:
    match exc:
        case VendorError(message=message):
            return message
        case VendorTimeout(seconds=seconds):
            return f"timed out after {seconds}s"
        case _:
            return str(exc) or type(exc).__name__


def guarded[T](
    call: Callable[[], Awaitable[T]],
    *,
    seconds: float,
    on_error: Callable[[str], ShopError],
    operation: str,
) -> LazyCoroResult[T, ShopError]:
    """Lazy vendor call bounded by `seconds`; failures are logged and typed."""

    def to_error(exc: Exception) -> ShopError:
        reason = describe(exc)
        log.warning("vendor_call_failed", operation=operation, reason=reason)
        return on_error(reason)

    return (
        flow(L.catching_async(call, on_error=lambda e: e))
        .timeout(seconds=seconds)
        .compile()
        .map_err(to_error)
    )


__all__ = ("VendorTimeout", "describe", "guarded")
