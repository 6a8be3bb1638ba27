from collections.abc import AsyncIterator

import httpx
import pytest

from storefront import Container
from storefront.http import create_app
from storefront.orders import Order, OrderStatus, PaymentStatus
from support import razorpay_event, shiprocket_event

BUYER = {"X-User-Id": "u1"}
ADMIN = {"X-User-Id": "admin-1", "X-User-Role": "admin"}

CHECKOUT_BODY = {
    "items": [{"productId": "trophy", "size": "Large", "quantity": 1, "price": "2500.00"}],
    "totalAmount": "2500.00",
    "shippingDetails": {
        "name": "Asha Rao",
        "phone": "9876543210",
        "address": "12 MG Road",
        "city": "Bengaluru",
        "state": "Karnataka",
        "pincode": "560001",
    },
}


@pytest.fixture
async def api(container: Container) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=create_app(container))
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


class TestEnvelope:
    async def test_health(self, api: httpx.AsyncClient):
        response = await api.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["status"] == "ok"
        assert body["data"]["razorpay_configured"] is True
        assert "x-request-id" in response.headers

    async def test_request_id_is_echoed(self, api: httpx.AsyncClient):
        response = await api.get("/health", headers={"X-Request-Id": "req-42"})

        assert response.headers["x-request-id"] == "req-42"

    async def test_invalid_body(self, api: httpx.AsyncClient):
        response = await api.post("/orders", json={"items": []}, headers=BUYER)

        assert response.status_code == 400
        error = response.json()["error"]
        assert response.json()["success"] is False
        assert error["code"] == "VALIDATION_ERROR"
        assert error["details"]["fields"]

    async def test_raised_failure_is_enveloped(self, api: httpx.AsyncClient):
        response = await api.get("/orders")

        assert response.status_code == 403
        assert response.json() == {
            "success": False,
            "error": {"message": "Authentication required", "code": "FORBIDDEN"},
        }

    async def test_domain_error(self, api: httpx.AsyncClient):
        response = await api.get("/orders/nope", headers=BUYER)

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "ORDER_NOT_FOUND"


class TestOrderRoutes:
    async def test_create_and_read(self, api: httpx.AsyncClient):
        created = await api.post("/orders", json=CHECKOUT_BODY, headers=BUYER)

        assert created.status_code == 201
        body = created.json()
        assert body["message"] == "Order created successfully"
        order = body["data"]["order"]
        assert order["total_amount"] == 2500.0
        assert order["status"] == "new"
        assert order["payment_status"] == "pending"

        fetched = await api.get(f"/orders/{order['id']}", headers=BUYER)
        assert fetched.status_code == 200
        assert fetched.json()["data"]["order_number"] == order["order_number"]

    async def test_guest_checkout_issues_a_token(self, api: httpx.AsyncClient):
        created = await api.post("/orders", json=CHECKOUT_BODY)

        assert created.status_code == 201
        token = created.headers["x-cart-token"]
        order_id = created.json()["data"]["order"]["id"]

        mine = await api.get(f"/orders/{order_id}", headers={"X-Cart-Token": token})
        anonymous = await api.get(f"/orders/{order_id}")
        other_guest = await api.get(f"/orders/{order_id}", headers={"X-Cart-Token": "someone-else"})
        cancel = await api.put(f"/orders/{order_id}/cancel", headers={"X-Cart-Token": "someone-else"})
        pay = await api.post(
            "/payments/create-order",
            json={"orderId": order_id, "amount": "2500.00"},
            headers={"X-Cart-Token": token},
        )

        assert mine.status_code == 200
        assert anonymous.status_code == 403
        assert other_guest.status_code == 403
        assert cancel.status_code == 403
        assert pay.json()["data"]["id"] == "order_0001"

    async def test_signed_in_checkout_has_no_token(self, api: httpx.AsyncClient):
        created = await api.post("/orders", json=CHECKOUT_BODY, headers=BUYER)

        assert "x-cart-token" not in created.headers

    async def test_total_mismatch(self, api: httpx.AsyncClient):
        response = await api.post("/orders", json={**CHECKOUT_BODY, "totalAmount": "2400.00"}, headers=BUYER)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "TOTAL_MISMATCH"

    async def test_stranger_is_forbidden(self, api: httpx.AsyncClient, order: Order):
        response = await api.get(f"/orders/{order.id}", headers={"X-User-Id": "u2"})

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "FORBIDDEN"

    async def test_listing_requires_a_user(self, api: httpx.AsyncClient, order: Order):
        anonymous = await api.get("/orders")
        mine = await api.get("/orders", headers=BUYER)

        assert anonymous.status_code == 403
        assert mine.json()["data"]["total"] == 1
        assert mine.json()["data"]["orders"][0]["id"] == order.id

    async def test_admin_routes(self, api: httpx.AsyncClient, order: Order):
        denied = await api.put(f"/orders/admin/{order.id}/status", json={"status": "confirmed"}, headers=BUYER)
        updated = await api.put(f"/orders/admin/{order.id}/status", json={"status": "confirmed"}, headers=ADMIN)
        listing = await api.get("/orders/admin/all", params={"search": "Asha"}, headers=ADMIN)

        assert denied.status_code == 403
        assert updated.json()["data"]["status"] == "confirmed"
        assert listing.json()["data"]["total"] == 1

    async def test_unknown_status_filter(self, api: httpx.AsyncClient):
        response = await api.get("/orders", params={"status": "teleported"}, headers=BUYER)

        assert response.json()["error"]["code"] == "INVALID_STATUS"

    async def test_cancel(self, api: httpx.AsyncClient, container: Container, order: Order):
        response = await api.put(f"/orders/{order.id}/cancel", headers=BUYER)

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "cancelled"
        assert (await container.catalog.variant("trophy-l")).stock_quantity == 2


class TestCartRoutes:
    async def test_guest_token_round_trip(self, api: httpx.AsyncClient):
        added = await api.post("/cart/add", json={"productId": "medal", "variantId": "medal-std", "quantity": 2})

        token = added.headers["x-cart-token"]
        assert added.json()["data"]["total_items"] == 2

        cart = await api.get("/cart", headers={"X-Cart-Token": token})
        assert cart.json()["data"]["total_amount"] == 600.0
        assert cart.headers["x-cart-token"] == token

    async def test_signed_in_cart_has_no_token(self, api: httpx.AsyncClient):
        added = await api.post(
            "/cart/add", json={"productId": "medal", "variantId": "medal-std"}, headers=BUYER
        )

        assert added.status_code == 200
        assert "x-cart-token" not in added.headers

    async def test_rejection(self, api: httpx.AsyncClient):
        response = await api.post(
            "/cart/add", json={"productId": "retired", "variantId": "retired-std"}, headers=BUYER
        )

        assert response.status_code == 400
        assert response.json()["success"] is False


class TestPaymentRoutes:
    async def test_create_payment_order(self, api: httpx.AsyncClient, order: Order):
        response = await api.post(
            "/payments/create-order", json={"orderId": order.id, "amount": "2500.00"}, headers=BUYER
        )

        data = response.json()["data"]
        assert data["id"] == "order_0001"
        assert data["amount"] == 250000
        assert data["key"] == "rzp_test_key"

    async def test_create_for_another_buyers_order(self, api: httpx.AsyncClient, order: Order):
        anonymous = await api.post("/payments/create-order", json={"orderId": order.id, "amount": "2500.00"})
        stranger = await api.post(
            "/payments/create-order", json={"orderId": order.id, "amount": "2500.00"}, headers={"X-User-Id": "u2"}
        )

        assert anonymous.status_code == 403
        assert stranger.status_code == 403
        assert stranger.json()["error"]["code"] == "FORBIDDEN"

    async def test_webhook(self, api: httpx.AsyncClient, container: Container, initiated: Order):
        body, signature = razorpay_event("payment.captured", payment={"id": "pay_9", "order_id": "order_0001"})

        response = await api.post(
            "/payments/webhook",
            content=body,
            headers={"X-Razorpay-Signature": signature, "Content-Type": "application/json"},
        )

        assert response.status_code == 200
        assert response.json()["data"]["event"] == "payment.captured"
        stored = await container.orders.repo.get(initiated.id)
        assert stored.payment_status == PaymentStatus.COMPLETED

    async def test_webhook_bad_signature(self, api: httpx.AsyncClient, initiated: Order):
        body, _ = razorpay_event("payment.captured", payment={"id": "pay_9", "order_id": "order_0001"})

        response = await api.post("/payments/webhook", content=body, headers={"X-Razorpay-Signature": "forged"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_WEBHOOK_SIGNATURE"

    async def test_service_status(self, api: httpx.AsyncClient):
        data = (await api.get("/payments/status")).json()["data"]

        assert data["service"] == "Razorpay"
        assert data["status"] == "operational"

    async def test_refund_is_admin_only(self, api: httpx.AsyncClient, order: Order):
        response = await api.post("/payments/refund", json={"orderId": order.id}, headers=BUYER)

        assert response.status_code == 403


class TestShippingRoutes:
    @pytest.fixture
    async def shipped(self, container: Container, order: Order) -> Order:
        await container.orders.repo.update(
            order.id, payment_status=PaymentStatus.COMPLETED, status=OrderStatus.CONFIRMED
        )
        return (await container.shipments.create_shipment(order.id)).unwrap()

    async def test_track(self, api: httpx.AsyncClient, shipped: Order):
        response = await api.get("/shipping/track/AWB1001")

        data = response.json()["data"]
        assert data["awb_code"] == "AWB1001"
        assert data["status"] == "in_transit"
        assert data["order_number"] == shipped.order_number

    async def test_webhook(self, api: httpx.AsyncClient, shipped: Order):
        body, signature = shiprocket_event("AWB1001", "Delivered")

        response = await api.post(
            "/shipping/webhook", content=body, headers={"X-Shiprocket-Signature": signature}
        )

        data = response.json()["data"]
        assert data["message"] == "Webhook processed"
        assert data["order_id"] == shipped.id

    async def test_admin_actions(self, api: httpx.AsyncClient, shipped: Order):
        denied = await api.post("/shipping/generate-label", json={"orderId": shipped.id}, headers=BUYER)
        label = await api.post("/shipping/generate-label", json={"orderId": shipped.id}, headers=ADMIN)

        assert denied.status_code == 403
        assert label.json()["data"]["awb_code"] == "AWB1001"


class TestCouponRoutes:
    async def test_create_and_validate(self, api: httpx.AsyncClient):
        created = await api.post(
            "/coupons/admin",
            json={"code": "save10", "discount_type": "percentage", "discount_value": "10"},
            headers=ADMIN,
        )
        quote = await api.post("/coupons/validate", json={"code": "SAVE10", "orderAmount": "1000"}, headers=BUYER)

        assert created.status_code == 201
        assert created.json()["data"]["code"] == "SAVE10"
        assert quote.json()["data"]["discount_amount"] == 100.0
        assert quote.json()["data"]["final_amount"] == 900.0

    async def test_apply_requires_a_user(self, api: httpx.AsyncClient, order: Order):
        created = await api.post(
            "/coupons/admin",
            json={"code": "save10", "discount_type": "percentage", "discount_value": "10"},
            headers=ADMIN,
        )
        body = {
            "coupon_id": created.json()["data"]["id"],
            "order_id": order.id,
            "order_amount": "2500.00",
            "discount_amount": "250.00",
        }

        anonymous = await api.post("/coupons/apply", json=body)
        applied = await api.post("/coupons/apply", json=body, headers=BUYER)

        assert anonymous.status_code == 403
        assert applied.status_code == 200
        assert applied.json()["data"]["order_id"] == order.id

    async def test_unknown_code(self, api: httpx.AsyncClient):
        response = await api.post("/coupons/validate", json={"code": "NOPE", "order_amount": "1000"})

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "COUPON_NOT_FOUND"
