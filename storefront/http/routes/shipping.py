"""Shipment booking, tracking, the aggregator webhook and admin actions."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Header, Request
from fastapi.responses import JSONResponse

from storefront.http._context import AdminDep, ContainerDep
from storefront.http._envelope import ok, respond
from storefront.http._models import (
    LabelOut,
    OrderOut,
    ServiceStatusOut,
    ShipmentIn,
    ShippingWebhookOut,
    TrackingOut,
)

router = APIRouter(prefix="/shipping", tags=["shipping"])


@router.post("/create-shipment")
async def create_shipment(body: ShipmentIn, _: AdminDep, c: ContainerDep) -> JSONResponse:
    result = await c.shipments.create_shipment(body.order_id)
    return respond(result, OrderOut.from_domain, message="Shipment created successfully")


@router.get("/track/{identifier}")
async def track_shipment(identifier: str, c: ContainerDep) -> JSONResponse:
    return respond(await c.shipments.track(identifier), TrackingOut.from_domain)


@router.post("/webhook")
async def shipping_webhook(
    request: Request,
    c: ContainerDep,
    x_shiprocket_signature: Annotated[str | None, Header()] = None,
) -> JSONResponse:
    result = await c.shipments.handle_webhook(await request.body(), x_shiprocket_signature)
    return respond(result, ShippingWebhookOut.from_domain)


@router.post("/cancel-shipment")
async def cancel_shipment(body: ShipmentIn, _: AdminDep, c: ContainerDep) -> JSONResponse:
    result = await c.shipments.cancel_shipment(body.order_id)
    return respond(result, OrderOut.from_domain, message="Shipment cancelled successfully")


@router.post("/generate-label")
async def generate_label(body: ShipmentIn, _: AdminDep, c: ContainerDep) -> JSONResponse:
    return respond(await c.shipments.label(body.order_id), LabelOut.from_domain)


@router.get("/status")
async def shipping_service_status(c: ContainerDep) -> JSONResponse:
    return ok(ServiceStatusOut.from_domain(await c.shipments.service_status()))
