"""
Shiprocket REST client.

The login token is cached for the configured TTL (10 days) and refreshed
on expiry or on a 401.
"""

from __future__ import annotations

import re
import time
from collections.abc import Mapping
from typing import Any

import httpx

from storefront.config import ShiprocketSettings
from storefront.log import get_logger
from storefront.vendors._protocols import (
    ShipmentBooking,
    ShipmentRequest,
    TrackingInfo,
    VendorError,
)

log = get_logger(__name__)

PINCODE = re.compile(r"^\d{6}$")


def _message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.reason_phrase
    if isinstance(data, Mapping):
        if errors := data.get("errors"):
            return f"{data.get('message', 'Validation failed')}: {errors}"
        return str(data.get("message") or response.reason_phrase)
    return response.reason_phrase


def _payload(request: ShipmentRequest, pickup_location: str) -> dict[str, Any]:
    party = {
        "customer_name": request.customer_name,
        "last_name": "",
        "address": request.address,
        "city": request.city,
        "pincode": request.pincode,
        "state": request.state,
        "country": request.country,
        "email": request.email or "",
        "phone": request.phone,
    }
    return {
        "order_id": request.order_number,
        "order_date": request.order_date,
        "pickup_location": pickup_location,
        **{f"billing_{k}": v for k, v in party.items()},
        "shipping_is_billing": True,
        **{f"shipping_{k}": v for k, v in party.items()},
        "order_items": [
            {
                "name": item.name,
                "sku": item.sku,
                "units": item.units,
                "selling_price": float(item.selling_price),
                "discount": 0,
                "tax": 0,
                "hsn": item.hsn or 0,
            }
            for item in request.items
        ],
        "payment_method": request.payment_method,
        "sub_total": float(request.sub_total),
        "length": request.length_cm,
        "breadth": request.breadth_cm,
        "height": request.height_cm,
        "weight": request.weight_kg,
    }


class ShiprocketClient:
    def __init__(
        self,
        settings: ShiprocketSettings,
        *,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._http = httpx.AsyncClient(
            base_url=settings.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )
        self._token: str | None = None
        self._token_expires = 0.0

    async def aclose(self) -> None:
        await self._http.aclose()

    # ───────────────────────────────────────────────────────────────────────────
    # Auth
    # ───────────────────────────────────────────────────────────────────────────

    async def authenticate(self) -> None:
        if not self._settings.configured:
            raise VendorError("Shiprocket credentials are not configured")
        try:
            response = await self._http.post(
                "/auth/login",
                json={"email": self._settings.email, "password": self._settings.password},
            )
        except httpx.HTTPError as e:
            raise VendorError(f"Shiprocket unreachable: {e}") from e

        match response.status_code:
            case 401:
                raise VendorError("Invalid Shiprocket credentials", 401)
            case 403:
                raise VendorError(f"Shiprocket access forbidden: {_message(response)}", 403)
            case 429:
                raise VendorError("Too many requests to Shiprocket", 429)
            case status if status >= 400:
                raise VendorError(f"Shiprocket authentication failed: {_message(response)}", status)

        token = response.json().get("token")
        if not token:
            raise VendorError("Shiprocket login returned no token")
        self._token = token
        self._token_expires = time.monotonic() + self._settings.token_ttl.total_seconds()
        log.info("shiprocket_authenticated")

    async def _headers(self) -> dict[str, str]:
        if self._token is None or time.monotonic() >= self._token_expires:
            await self.authenticate()
        return {"Authorization": f"Bearer {self._token}"}

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        for attempt in range(2):
            try:
                response = await self._http.request(
                    method, path, headers=await self._headers(), **kwargs
                )
            except httpx.HTTPError as e:
                raise VendorError(f"Shiprocket unreachable: {e}") from e

            if response.status_code == 401 and attempt == 0:
                self._token = None
                continue
            if response.is_error:
                message = _message(response)
                log.warning("shiprocket_error", path=path, status=response.status_code, message=message)
                raise VendorError(message, response.status_code)
            return response.json()
        raise VendorError("Shiprocket rejected the refreshed token", 401)

    # ───────────────────────────────────────────────────────────────────────────
    # Operations
    # ───────────────────────────────────────────────────────────────────────────

    async def pickup_location(self) -> str:
        """First configured pickup location, else the default."""
        try:
            data = await self._request("GET", "/settings/company/pickup")
        except VendorError as e:
            log.warning("pickup_lookup_failed", reason=e.message)
            return self._settings.default_pickup_location
        addresses = (data.get("data") or {}).get("shipping_address") or []
        if not addresses:
            return self._settings.default_pickup_location
        first = addresses[0]
        return (
            first.get("pickup_location")
            or first.get("company_name")
            or self._settings.default_pickup_location
        )

    async def create_shipment(self, request: ShipmentRequest) -> ShipmentBooking:
        if not PINCODE.match(request.pincode):
            raise VendorError(f"Invalid pincode format: {request.pincode}. Must be 6 digits.")

        payload = _payload(request, await self.pickup_location())
        data = await self._request("POST", "/orders/create/adhoc", json=payload)
        if not data.get("order_id"):
            raise VendorError("Invalid response from Shiprocket shipment creation")

        return ShipmentBooking(
            aggregator_order_id=str(data["order_id"]),
            shipment_id=str(data.get("shipment_id", "")),
            awb=data.get("awb_code") or None,
            courier_name=data.get("courier_name") or None,
            courier_id=str(data["courier_company_id"]) if data.get("courier_company_id") else None,
            etd=data.get("etd"),
        )

    async def track(self, awb: str) -> TrackingInfo:
        data = await self._request("GET", f"/courier/track/awb/{awb}")
        tracking = data.get("tracking_data")
        if not tracking:
            raise VendorError("Invalid response from Shiprocket tracking")

        activities = tracking.get("shipment_track_activities") or tracking.get("shipment_track") or []
        delivered = next(
            (t.get("delivered_date") for t in tracking.get("shipment_track") or [] if t.get("delivered_date")),
            None,
        )
        return TrackingInfo(
            awb=awb,
            status=str(tracking.get("track_status") or tracking.get("current_status") or "unknown"),
            courier_name=tracking.get("courier_name"),
            etd=tracking.get("etd"),
            delivered_date=delivered,
            history=tuple(activities),
        )

    async def cancel(self, awb: str) -> None:
        await self._request("POST", "/orders/cancel", json={"awbs": [awb]})


__all__ = ("ShiprocketClient", "PINCODE")
