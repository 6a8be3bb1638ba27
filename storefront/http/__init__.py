"""
HTTP surface — FastAPI app over the services in the container.

Every response uses the envelope in _envelope; service errors keep their
codes and map to status codes by kind.
"""

from storefront.http._app import create_app
from storefront.http._envelope import ok, fail, respond

__all__ = ("create_app", "ok", "fail", "respond")
