"""
Application factory.

    app = create_app()                 # builds the container from the environment on startup
    app = create_app(container)        # tests: container built and closed by the caller
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from storefront.config import Settings
from storefront.container import Container
from storefront.http._context import ContainerDep, request_id_middleware
from storefront.http._envelope import install_error_handlers, ok
from storefront.http.routes import ROUTERS
from storefront.log import configure_logging, get_logger

log = get_logger(__name__)


def create_app(container: Container | None = None, settings: Settings | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if container is not None:
            yield
            return
        config = settings or Settings.from_env()
        configure_logging(config.log_level, config.log_format)
        built = await Container.build(config)
        app.state.container = built
        log.info("app_started")
        try:
            yield
        finally:
            await built.aclose()
            log.info("app_stopped")

    app = FastAPI(title="storefront", lifespan=lifespan)
    if container is not None:
        app.state.container = container

    app.middleware("http")(request_id_middleware)
    install_error_handlers(app)
    for router in ROUTERS:
        app.include_router(router)

    @app.get("/health")
    async def health(c: ContainerDep) -> JSONResponse:
        return ok(
            {
                "status": "ok",
                "razorpay_configured": c.settings.razorpay.configured,
                "shiprocket_configured": c.settings.shiprocket.configured,
                "background_tasks": c.dispatcher.pending,
            }
        )

    return app


__all__ = ("create_app",)
