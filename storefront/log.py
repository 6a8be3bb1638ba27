"""
Logging — structlog setup, module loggers and the security-audit channel.
"""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import Any

import structlog


def configure_logging(level: str = "INFO", fmt: str = "json") -> None:
    """Configure structlog once at startup."""
    renderer: Any = (
        structlog.processors.JSONRenderer()
        if fmt == "json"
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelNamesMapping().get(level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> Any:
    return structlog.get_logger(logger_name=name)


# ═══════════════════════════════════════════════════════════════════════════════
# Security Audit
# ═══════════════════════════════════════════════════════════════════════════════


class SecurityEvent(StrEnum):
    PAYMENT_SIGNATURE_INVALID = "payment_signature_invalid"
    PAYMENT_WEBHOOK_SIGNATURE_INVALID = "payment_webhook_signature_invalid"
    SHIPPING_WEBHOOK_SIGNATURE_INVALID = "shipping_webhook_signature_invalid"
    GATEWAY_ORDER_MISMATCH = "gateway_order_mismatch"


_security = structlog.get_logger(logger_name="storefront.security")


def security_event(event: SecurityEvent, **fields: Any) -> None:
    """Emit on the security channel, kept apart from ordinary errors."""
    _security.warning(str(event), security=True, **fields)


__all__ = ("configure_logging", "get_logger", "SecurityEvent", "security_event")
