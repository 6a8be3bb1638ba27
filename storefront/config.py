"""
Configuration — frozen settings loaded from the environment.

    settings = Settings.from_env()
    settings.razorpay.key_id
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import timedelta


class ConfigError(Exception):
    """Invalid configuration value."""


# ═══════════════════════════════════════════════════════════════════════════════
# Vendor Settings
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class RazorpaySettings:
    key_id: str = ""
    key_secret: str = ""
    webhook_secret: str | None = None
    base_url: str = "https://api.razorpay.com/v1"

    @property
    def configured(self) -> bool:
        return bool(self.key_id and self.key_secret)


@dataclass(frozen=True, slots=True)
class ShiprocketSettings:
    email: str = ""
    password: str = ""
    webhook_secret: str | None = None
    base_url: str = "https://apiv2.shiprocket.in/v1/external"
    token_ttl: timedelta = timedelta(days=10)
    default_pickup_location: str = "Primary"

    @property
    def configured(self) -> bool:
        return bool(self.email and self.password)


# ═══════════════════════════════════════════════════════════════════════════════
# Settings
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Settings:
    """
    Application settings.

    Note: secrets are optional so the app can boot without vendors;
    the vendor clients fail their calls when credentials are missing.
    """

    database_url: str = "sqlite+aiosqlite:///:memory:"
    log_level: str = "INFO"
    log_format: str = "json"
    store_name: str = "My Trade Award"
    theme_color: str = "#F37254"
    currency: str = "INR"
    vendor_timeout: float = 15.0
    razorpay: RazorpaySettings = field(default_factory=RazorpaySettings)
    shiprocket: ShiprocketSettings = field(default_factory=ShiprocketSettings)

    def __post_init__(self) -> None:
        if self.razorpay.key_id and not self.razorpay.key_id.startswith("rzp_"):
            raise ConfigError("RAZORPAY_KEY_ID must start with 'rzp_'")
        if self.log_format not in ("json", "console"):
            raise ConfigError(f"LOG_FORMAT must be 'json' or 'console', got {self.log_format!r}")
        if self.vendor_timeout <= 0:
            raise ConfigError("VENDOR_TIMEOUT_SECONDS must be positive")

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if env is None else env

        try:
            timeout = float(env.get("VENDOR_TIMEOUT_SECONDS", "15"))
        except ValueError as e:
            raise ConfigError(f"VENDOR_TIMEOUT_SECONDS: {e}") from e

        return cls(
            database_url=env.get("DATABASE_URL", "sqlite+aiosqlite:///:memory:"),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
            log_format=env.get("LOG_FORMAT", "json").lower(),
            store_name=env.get("STORE_NAME", "My Trade Award"),
            theme_color=env.get("THEME_COLOR", "#F37254"),
            vendor_timeout=timeout,
            razorpay=RazorpaySettings(
                key_id=env.get("RAZORPAY_KEY_ID", ""),
                key_secret=env.get("RAZORPAY_KEY_SECRET", ""),
                webhook_secret=env.get("RAZORPAY_WEBHOOK_SECRET") or None,
            ),
            shiprocket=ShiprocketSettings(
                email=env.get("SHIPROCKET_EMAIL", ""),
                password=env.get("SHIPROCKET_PASSWORD", ""),
                webhook_secret=env.get("SHIPROCKET_WEBHOOK_SECRET") or None,
                base_url=env.get(
                    "SHIPROCKET_BASE_URL", "https://apiv2.shiprocket.in/v1/external"
                ),
            ),
        )


__all__ = ("ConfigError", "RazorpaySettings", "ShiprocketSettings", "Settings")
