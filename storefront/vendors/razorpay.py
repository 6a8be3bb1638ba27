"""
Razorpay REST client (orders, payments, refunds).

Amounts are paise on the wire. Non-2xx replies raise VendorError with
Razorpay's error description.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import httpx

from storefront.config import RazorpaySettings
from storefront.log import get_logger
from storefront.vendors._protocols import (
    GatewayOrder,
    GatewayPayment,
    GatewayRefund,
    VendorError,
)

log = get_logger(__name__)


def _payment(data: Mapping[str, Any]) -> GatewayPayment:
    return GatewayPayment(
        id=data["id"],
        order_id=data.get("order_id"),
        status=data.get("status", "created"),
        amount=int(data.get("amount", 0)),
        method=data.get("method"),
        captured=bool(data.get("captured", False)),
    )


class RazorpayClient:
    def __init__(
        self,
        settings: RazorpaySettings,
        *,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._http = httpx.AsyncClient(
            base_url=settings.base_url,
            auth=(settings.key_id, settings.key_secret),
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, json: Any = None) -> dict[str, Any]:
        if not self._settings.configured:
            raise VendorError("Razorpay credentials are not configured")
        try:
            response = await self._http.request(method, path, json=json)
        except httpx.HTTPError as e:
            raise VendorError(f"Razorpay unreachable: {e}") from e

        if response.is_error:
            try:
                error = response.json().get("error", {})
            except ValueError:
                error = {}
            message = error.get("description") or error.get("reason") or response.reason_phrase
            log.warning(
                "razorpay_error",
                path=path,
                status=response.status_code,
                code=error.get("code"),
                message=message,
            )
            raise VendorError(message, response.status_code)

        return response.json()

    async def create_order(
        self, amount: int, currency: str, receipt: str, notes: Mapping[str, str]
    ) -> GatewayOrder:
        data = await self._request(
            "POST",
            "/orders",
            {
                "amount": amount,
                "currency": currency,
                "receipt": receipt,
                "notes": dict(notes),
                "payment_capture": 1,
            },
        )
        return GatewayOrder(
            id=data["id"],
            amount=int(data["amount"]),
            currency=data.get("currency", currency),
            receipt=data.get("receipt", receipt),
            status=data.get("status", "created"),
        )

    async def fetch_payment(self, payment_id: str) -> GatewayPayment:
        return _payment(await self._request("GET", f"/payments/{payment_id}"))

    async def capture(self, payment_id: str, amount: int, currency: str) -> GatewayPayment:
        return _payment(
            await self._request(
                "POST",
                f"/payments/{payment_id}/capture",
                {"amount": amount, "currency": currency},
            )
        )

    async def refund(
        self, payment_id: str, amount: int, notes: Mapping[str, str]
    ) -> GatewayRefund:
        data = await self._request(
            "POST",
            f"/payments/{payment_id}/refund",
            {"amount": amount, "speed": "normal", "notes": dict(notes)},
        )
        return GatewayRefund(
            id=data["id"],
            payment_id=data.get("payment_id", payment_id),
            amount=int(data.get("amount", amount)),
            status=data.get("status", "pending"),
        )


__all__ = ("RazorpayClient",)
