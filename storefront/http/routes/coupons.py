"""Coupon validation and application, plus coupon administration."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from storefront.http._context import AdminDep, BuyerDep, ContainerDep, UserDep
from storefront.http._envelope import ok, respond
from storefront.http._models import (
    CouponApplyIn,
    CouponIn,
    CouponOut,
    CouponPatchIn,
    CouponQuoteOut,
    CouponUsageOut,
    CouponValidateIn,
)

router = APIRouter(prefix="/coupons", tags=["coupons"])


@router.post("/validate")
async def validate_coupon(body: CouponValidateIn, buyer: BuyerDep, c: ContainerDep) -> JSONResponse:
    result = await c.coupons.validate(body.code, body.order_amount, buyer.user_id)
    return respond(result, CouponQuoteOut.from_domain, message="Coupon is valid")


@router.post("/apply")
async def apply_coupon(body: CouponApplyIn, buyer: UserDep, c: ContainerDep) -> JSONResponse:
    result = await c.coupons.apply(
        body.coupon_id, body.order_id, body.order_amount, body.discount_amount, buyer.user_id
    )
    return respond(result, CouponUsageOut.from_domain, message="Coupon applied successfully")


@router.get("/admin")
async def list_coupons(
    _: AdminDep, c: ContainerDep, active: bool | None = None, page: int = 1, limit: int = 20
) -> JSONResponse:
    coupons, total = await c.coupon_admin.list(active=active, page=max(page, 1), limit=max(limit, 1))
    return ok({"coupons": [CouponOut.from_domain(x).model_dump(mode="json") for x in coupons], "total": total})


@router.post("/admin")
async def create_coupon(body: CouponIn, admin: AdminDep, c: ContainerDep) -> JSONResponse:
    result = await c.coupon_admin.create(body.to_domain(), created_by=admin.user_id)
    return respond(result, CouponOut.from_domain, message="Coupon created", status=201)


@router.get("/admin/{coupon_id}")
async def get_coupon(coupon_id: str, _: AdminDep, c: ContainerDep) -> JSONResponse:
    return respond(await c.coupon_admin.get(coupon_id), CouponOut.from_domain)


@router.put("/admin/{coupon_id}")
async def update_coupon(coupon_id: str, body: CouponPatchIn, _: AdminDep, c: ContainerDep) -> JSONResponse:
    result = await c.coupon_admin.update(coupon_id, body.to_domain())
    return respond(result, CouponOut.from_domain, message="Coupon updated")


@router.delete("/admin/{coupon_id}")
async def delete_coupon(coupon_id: str, _: AdminDep, c: ContainerDep) -> JSONResponse:
    return respond(await c.coupon_admin.delete(coupon_id), lambda _: None, message="Coupon deleted")


@router.get("/admin/{coupon_id}/usage")
async def coupon_usage(coupon_id: str, _: AdminDep, c: ContainerDep) -> JSONResponse:
    result = await c.coupon_admin.usage_history(coupon_id)
    return respond(
        result, lambda usages: {"usages": [CouponUsageOut.from_domain(u).model_dump(mode="json") for u in usages]}
    )
