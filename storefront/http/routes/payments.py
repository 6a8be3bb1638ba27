"""Gateway checkout, verification, webhook, status and refunds."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Header, Request
from fastapi.responses import JSONResponse

from storefront.http._context import AdminDep, BuyerDep, ContainerDep
from storefront.http._envelope import ok, respond
from storefront.http._models import (
    PaymentOrderIn,
    PaymentOrderOut,
    PaymentSummaryOut,
    RefundIn,
    RefundOut,
    ServiceStatusOut,
    VerifiedPaymentOut,
    VerifyPaymentIn,
    WebhookReceiptOut,
)

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/create-order")
async def create_payment_order(body: PaymentOrderIn, buyer: BuyerDep, c: ContainerDep) -> JSONResponse:
    result = await c.payments.create_payment_order(body.order_id, body.amount, buyer)
    return respond(result, PaymentOrderOut.from_domain, message="Payment order created")


@router.post("/verify")
async def verify_payment(body: VerifyPaymentIn, c: ContainerDep) -> JSONResponse:
    result = await c.payments.verify_payment(
        body.order_id, body.razorpay_order_id, body.razorpay_payment_id, body.razorpay_signature
    )
    return respond(result, VerifiedPaymentOut.from_domain, message="Payment verified successfully")


@router.post("/webhook")
async def payment_webhook(
    request: Request,
    c: ContainerDep,
    x_razorpay_signature: Annotated[str | None, Header()] = None,
    x_razorpay_event_id: Annotated[str | None, Header()] = None,
) -> JSONResponse:
    body = await request.body()
    result = await c.payments.handle_webhook(body, x_razorpay_signature, x_razorpay_event_id)
    return respond(result, WebhookReceiptOut.from_domain)


@router.get("/status")
async def payment_service_status(c: ContainerDep) -> JSONResponse:
    return ok(ServiceStatusOut.from_domain(c.payments.service_status()))


@router.get("/order/{order_id}/status")
async def order_payment_status(order_id: str, buyer: BuyerDep, c: ContainerDep) -> JSONResponse:
    return respond(await c.payments.payment_status(order_id, buyer), PaymentSummaryOut.from_domain)


@router.post("/refund")
async def create_refund(body: RefundIn, _: AdminDep, c: ContainerDep) -> JSONResponse:
    result = await c.payments.create_refund(body.order_id, body.amount, body.reason)
    return respond(result, RefundOut.from_domain, message="Refund initiated")


@router.get("/order/{order_id}/refund/{refund_id}")
async def get_refund(order_id: str, refund_id: str, _: AdminDep, c: ContainerDep) -> JSONResponse:
    return respond(await c.payments.get_refund(order_id, refund_id), RefundOut.from_domain)
