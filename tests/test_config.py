from datetime import timedelta

import pytest

from storefront.config import ConfigError, Settings


class TestSettingsFromEnv:
    def test_defaults(self):
        settings = Settings.from_env({})

        assert settings.database_url == "sqlite+aiosqlite:///:memory:"
        assert settings.currency == "INR"
        assert settings.vendor_timeout == 15.0
        assert not settings.razorpay.configured
        assert not settings.shiprocket.configured
        assert settings.shiprocket.token_ttl == timedelta(days=10)

    def test_reads_vendor_credentials(self):
        settings = Settings.from_env(
            {
                "RAZORPAY_KEY_ID": "rzp_live_abc",
                "RAZORPAY_KEY_SECRET": "s3cret",
                "RAZORPAY_WEBHOOK_SECRET": "whsec",
                "SHIPROCKET_EMAIL": "ops@example.com",
                "SHIPROCKET_PASSWORD": "pw",
                "SHIPROCKET_WEBHOOK_SECRET": "",
                "LOG_LEVEL": "debug",
                "VENDOR_TIMEOUT_SECONDS": "4.5",
            }
        )

        assert settings.razorpay.configured
        assert settings.razorpay.webhook_secret == "whsec"
        assert settings.shiprocket.configured
        assert settings.shiprocket.webhook_secret is None
        assert settings.log_level == "DEBUG"
        assert settings.vendor_timeout == 4.5

    @pytest.mark.parametrize(
        "env",
        [
            {"RAZORPAY_KEY_ID": "pk_test_abc"},
            {"LOG_FORMAT": "xml"},
            {"VENDOR_TIMEOUT_SECONDS": "soon"},
            {"VENDOR_TIMEOUT_SECONDS": "0"},
        ],
    )
    def test_rejected(self, env):
        with pytest.raises(ConfigError):
            Settings.from_env(env)
