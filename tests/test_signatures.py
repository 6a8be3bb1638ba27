from structlog.testing import capture_logs

from storefront.log import SecurityEvent, get_logger, security_event
from storefront.signatures import body_digest, payment_message, sign, verify


class TestSignatures:
    def test_round_trip(self):
        signature = sign("secret", b'{"event":"order.paid"}')

        assert verify("secret", b'{"event":"order.paid"}', signature)
        assert verify("secret", b'{"event":"order.paid"}', f" {signature}\n")

    def test_tampered_body(self):
        signature = sign("secret", b'{"amount":100}')

        assert not verify("secret", b'{"amount":1}', signature)

    def test_missing_secret_or_signature(self):
        signature = sign("secret", b"x")

        assert not verify(None, b"x", signature)
        assert not verify("", b"x", signature)
        assert not verify("secret", b"x", None)
        assert not verify("secret", b"x", "")

    def test_payment_message(self):
        assert payment_message("order_1", "pay_1") == b"order_1|pay_1"

    def test_body_digest_is_stable(self):
        assert body_digest(b"abc") == body_digest(b"abc")
        assert body_digest(b"abc") != body_digest(b"abd")


class TestSecurityChannel:
    def test_event_is_flagged(self):
        with capture_logs() as logs:
            security_event(SecurityEvent.PAYMENT_SIGNATURE_INVALID, order_id="o1")

        [entry] = logs
        assert entry["event"] == "payment_signature_invalid"
        assert entry["log_level"] == "warning"
        assert entry["security"] is True
        assert entry["order_id"] == "o1"
        assert entry["logger_name"] == "storefront.security"

    def test_module_logger_carries_its_name(self):
        with capture_logs() as logs:
            get_logger("storefront.orders").info("order_created", order_id="o1")

        [entry] = logs
        assert entry["logger_name"] == "storefront.orders"
        assert entry["order_id"] == "o1"
