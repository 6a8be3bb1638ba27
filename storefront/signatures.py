"""
HMAC-SHA256 signatures for payment verification and vendor webhooks.

All comparisons are constant-time. A missing secret or signature never
verifies.
"""

from __future__ import annotations

import hashlib
import hmac


def sign(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def verify(secret: str | None, message: bytes, signature: str | None) -> bool:
    if not secret or not signature:
        return False
    return hmac.compare_digest(sign(secret, message).encode(), signature.strip().encode())


def payment_message(gateway_order_id: str, payment_id: str) -> bytes:
    """What the gateway signs on checkout completion: "<order_id>|<payment_id>"."""
    return f"{gateway_order_id}|{payment_id}".encode()


def body_digest(body: bytes) -> str:
    return hashlib.sha256(body).hexdigest()


__all__ = ("sign", "verify", "payment_message", "body_digest")
