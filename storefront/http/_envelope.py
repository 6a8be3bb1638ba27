"""
Response envelope and error rendering.

    {"success": true, "message": "...", "data": {...}}
    {"success": false, "error": {"message": "...", "code": "...", "details": {...}}}
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from kungfu import Error, Ok, Result
from pydantic import BaseModel

from storefront.errors import Errors, ShopError, ShopFailure
from storefront.log import get_logger

log = get_logger(__name__)


def ok(
    data: BaseModel | Mapping[str, Any] | None = None,
    *,
    message: str | None = None,
    status: int = 200,
    headers: Mapping[str, str] | None = None,
) -> JSONResponse:
    body: dict[str, Any] = {"success": True}
    if message is not None:
        body["message"] = message
    body["data"] = data.model_dump(mode="json") if isinstance(data, BaseModel) else data
    return JSONResponse(body, status_code=status, headers=dict(headers or {}))


def fail(error: ShopError) -> JSONResponse:
    payload: dict[str, Any] = {"message": error.message, "code": error.code.value}
    if error.details:
        payload["details"] = dict(error.details)
    return JSONResponse({"success": False, "error": payload}, status_code=error.http_status)


def respond[T](
    result: Result[T, ShopError],
    render: Callable[[T], BaseModel | Mapping[str, Any] | None],
    *,
    message: str | None = None,
    status: int = 200,
    headers: Mapping[str, str] | None = None,
) -> JSONResponse:
    match result:
        case Ok(value):
            return ok(render(value), message=message, status=status, headers=headers)
        case Error(e):
            return fail(e)


# ═══════════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ═══════════════════════════════════════════════════════════════════════════════


async def _shop_failure(request: Request, exc: ShopFailure) -> JSONResponse:
    return fail(exc.error)


async def _invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = [
        {"field": ".".join(str(p) for p in err["loc"] if p != "body"), "message": err["msg"]}
        for err in exc.errors()
    ]
    return fail(Errors.validation("Invalid request", {"fields": fields}))


async def _unexpected(request: Request, exc: Exception) -> JSONResponse:
    log.exception("unhandled_error", path=request.url.path, method=request.method)
    return fail(Errors.internal())


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ShopFailure, _shop_failure)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _invalid_request)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unexpected)


__all__ = ("ok", "fail", "respond", "install_error_handlers")
