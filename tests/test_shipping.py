import pytest

from storefront import Container
from storefront._types import Move
from storefront.errors import Code
from storefront.orders import Order, OrderStatus, PaymentStatus, ShipmentStatus
from storefront.shipping import decide, manifest, map_status
from storefront.signatures import sign
from support import SHIPPING_SECRET, FakeAggregator, FakeNotifier, shiprocket_event


async def pay(container: Container, order: Order) -> Order:
    """Mark paid without going through verification, so no shipment is booked."""
    paid = await container.orders.repo.update(
        order.id, payment_status=PaymentStatus.COMPLETED, status=OrderStatus.CONFIRMED
    )
    assert paid is not None
    return paid


@pytest.fixture
async def shipped(container: Container, order: Order) -> Order:
    await pay(container, order)
    return (await container.shipments.create_shipment(order.id)).unwrap()


class TestStatusMapping:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("Delivered", ShipmentStatus.DELIVERED),
            ("OUT FOR DELIVERY", ShipmentStatus.OUT_FOR_DELIVERY),
            ("out-for-delivery", ShipmentStatus.OUT_FOR_DELIVERY),
            ("Picked Up", ShipmentStatus.IN_TRANSIT),
            ("RTO Initiated", ShipmentStatus.IN_TRANSIT),
            ("Cancelled", ShipmentStatus.CANCELLED),
            ("lost", ShipmentStatus.LOST),
        ],
    )
    def test_map(self, raw, expected):
        assert map_status(raw) == expected

    @pytest.mark.parametrize(
        ("current", "target", "move"),
        [
            (None, ShipmentStatus.CREATED, Move.APPLY),
            (ShipmentStatus.CREATED, ShipmentStatus.DELIVERED, Move.APPLY),
            (ShipmentStatus.OUT_FOR_DELIVERY, ShipmentStatus.IN_TRANSIT, Move.REJECT),
            (ShipmentStatus.IN_TRANSIT, ShipmentStatus.IN_TRANSIT, Move.SAME),
            (ShipmentStatus.IN_TRANSIT, ShipmentStatus.DAMAGED, Move.APPLY),
            (ShipmentStatus.DELIVERED, ShipmentStatus.CANCELLED, Move.REJECT),
            (ShipmentStatus.LOST, ShipmentStatus.DELIVERED, Move.REJECT),
        ],
    )
    def test_decide(self, current, target, move):
        assert decide(current, target) is move


class TestManifest:
    def test_weights_and_items(self, order: Order):
        request = manifest(order)

        assert request.order_number == order.order_number
        assert request.weight_kg == 0.8
        assert request.items[0].sku == "TR-01"
        assert request.items[0].hsn == "7013"
        assert request.pincode == "560001"


class TestCreateShipment:
    async def test_books_once(self, container: Container, aggregator: FakeAggregator, shipped: Order):
        assert shipped.awb_code == "AWB1001"
        assert shipped.aggregator_order_id == "SR1"
        assert shipped.shipment_status == ShipmentStatus.CREATED
        assert shipped.status == OrderStatus.SHIPPED
        assert shipped.shipped_at is not None
        assert shipped.tracking_url == "https://shiprocket.in/tracking/AWB1001"

        again = await container.shipments.create_shipment(shipped.id)

        assert again.unwrap_err().code == Code.SHIPMENT_EXISTS
        assert len(aggregator.bookings) == 1

    async def test_requires_payment(self, container: Container, aggregator: FakeAggregator, order: Order):
        result = await container.shipments.create_shipment(order.id)

        assert result.unwrap_err().code == Code.ORDER_NOT_PAID
        assert aggregator.bookings == []

    async def test_cancelled_order(self, container: Container, order: Order):
        await container.orders.repo.update(
            order.id, payment_status=PaymentStatus.COMPLETED, status=OrderStatus.CANCELLED
        )

        assert (await container.shipments.create_shipment(order.id)).unwrap_err().code == Code.ORDER_CANCELLED

    async def test_missing_order(self, container: Container):
        assert (await container.shipments.create_shipment("nope")).unwrap_err().code == Code.ORDER_NOT_FOUND

    async def test_provider_failure(self, container: Container, aggregator: FakeAggregator, order: Order):
        await pay(container, order)
        aggregator.fail_create = "pincode not serviceable"

        result = await container.shipments.create_shipment(order.id)

        assert result.unwrap_err().code == Code.SHIPPING_PROVIDER_ERROR
        assert (await container.orders.repo.get(order.id)).awb_code is None

    async def test_booking_is_cancelled_when_it_cannot_be_recorded(
        self, container: Container, aggregator: FakeAggregator, order: Order
    ):
        await pay(container, order)

        async def concurrent_booking() -> None:
            await container.orders.repo.update(order.id, awb_code="AWB_OTHER")

        aggregator.during_create = concurrent_booking

        result = await container.shipments.create_shipment(order.id)

        assert result.unwrap_err().code == Code.SHIPMENT_EXISTS
        assert aggregator.cancelled == ["AWB1001"]
        assert (await container.orders.repo.get(order.id)).awb_code == "AWB_OTHER"

    async def test_storage_failure_while_recording(
        self,
        container: Container,
        aggregator: FakeAggregator,
        order: Order,
        monkeypatch: pytest.MonkeyPatch,
    ):
        await pay(container, order)

        async def broken(*args, **kwargs) -> bool:
            raise RuntimeError("disk full")

        monkeypatch.setattr(container.orders.repo, "compare_and_set", broken)

        result = await container.shipments.create_shipment(order.id)

        error = result.unwrap_err()
        assert error.code == Code.INTERNAL_ERROR
        assert "disk full" in error.message
        assert aggregator.cancelled == ["AWB1001"]


class TestTracking:
    async def test_poll_advances_and_snapshots(
        self, container: Container, aggregator: FakeAggregator, shipped: Order
    ):
        view = (await container.shipments.track(shipped.order_number)).unwrap()

        assert view.status == ShipmentStatus.IN_TRANSIT
        assert view.raw_status == "In Transit"
        assert not view.delivered
        assert view.history[0]["location"] == "Mumbai"
        stored = await container.orders.repo.get(shipped.id)
        assert stored.shipment_status == ShipmentStatus.IN_TRANSIT
        assert stored.last_tracking["status"] == "In Transit"

    async def test_lookup_by_id_and_awb(self, container: Container, shipped: Order):
        by_id = (await container.shipments.track(shipped.id)).unwrap()
        by_awb = (await container.shipments.track("AWB1001")).unwrap()

        assert by_id.order_number == by_awb.order_number == shipped.order_number

    async def test_poll_never_regresses(self, container: Container, aggregator: FakeAggregator, shipped: Order):
        aggregator.tracking_status = "Out For Delivery"
        await container.shipments.track(shipped.id)
        aggregator.tracking_status = "In Transit"

        view = (await container.shipments.track(shipped.id)).unwrap()

        assert view.status == ShipmentStatus.OUT_FOR_DELIVERY
        stored = await container.orders.repo.get(shipped.id)
        assert stored.last_tracking["status"] == "In Transit"

    async def test_delivered_poll_notifies(
        self, container: Container, aggregator: FakeAggregator, notifier: FakeNotifier, shipped: Order
    ):
        aggregator.tracking_status = "Delivered"

        view = (await container.shipments.track(shipped.id)).unwrap()

        await container.dispatcher.drain()
        assert view.delivered
        assert notifier.delivered == [shipped.id]
        assert (await container.orders.repo.get(shipped.id)).status == OrderStatus.DELIVERED

    async def test_unknown_and_unshipped(self, container: Container, order: Order):
        assert (await container.shipments.track("ORD-0-NOPE")).unwrap_err().code == Code.ORDER_NOT_FOUND
        assert (await container.shipments.track(order.id)).unwrap_err().code == Code.SHIPMENT_NOT_FOUND


class TestShippingWebhook:
    async def test_delivered(self, container: Container, notifier: FakeNotifier, shipped: Order):
        body, signature = shiprocket_event("AWB1001", "DELIVERED", delivered_date="2026-10-18T10:30:00+05:30")

        receipt = (await container.shipments.handle_webhook(body, signature)).unwrap()

        await container.dispatcher.drain()
        stored = await container.orders.repo.get(shipped.id)
        assert receipt.message == "Webhook processed"
        assert receipt.order_id == shipped.id
        assert stored.shipment_status == ShipmentStatus.DELIVERED
        assert stored.status == OrderStatus.DELIVERED
        assert (stored.delivered_at.hour, stored.delivered_at.minute) == (5, 0)
        assert notifier.delivered == [shipped.id]

    async def test_redelivery_is_a_no_op(self, container: Container, notifier: FakeNotifier, shipped: Order):
        body, signature = shiprocket_event("AWB1001", "Delivered")

        await container.shipments.handle_webhook(body, signature)
        again = (await container.shipments.handle_webhook(body, signature)).unwrap()

        await container.dispatcher.drain()
        assert again.message == "No status change"
        assert notifier.delivered == [shipped.id]

    async def test_late_in_transit_after_delivery(self, container: Container, shipped: Order):
        delivered, delivered_sig = shiprocket_event("AWB1001", "Delivered")
        late, late_sig = shiprocket_event("AWB1001", "In Transit")

        await container.shipments.handle_webhook(delivered, delivered_sig)
        receipt = (await container.shipments.handle_webhook(late, late_sig)).unwrap()

        assert receipt.message == "No status change"
        assert (await container.orders.repo.get(shipped.id)).shipment_status == ShipmentStatus.DELIVERED

    async def test_unknown_awb(self, container: Container):
        body, signature = shiprocket_event("AWB404", "Delivered")

        receipt = (await container.shipments.handle_webhook(body, signature)).unwrap()

        assert receipt.message == "Order not found for AWB"
        assert receipt.order_id is None

    async def test_incomplete_payload(self, container: Container):
        body = b'{"awb": "AWB1001"}'

        receipt = (await container.shipments.handle_webhook(body, sign(SHIPPING_SECRET, body))).unwrap()

        assert receipt.message == "Nothing to update"

    async def test_bad_signature(self, container: Container, shipped: Order):
        body, _ = shiprocket_event("AWB1001", "Delivered")

        result = await container.shipments.handle_webhook(body, "forged")

        assert result.unwrap_err().code == Code.INVALID_WEBHOOK_SIGNATURE
        assert (await container.orders.repo.get(shipped.id)).shipment_status == ShipmentStatus.CREATED


class TestShipmentAdmin:
    async def test_cancel(self, container: Container, aggregator: FakeAggregator, shipped: Order):
        cancelled = (await container.shipments.cancel_shipment(shipped.id)).unwrap()
        again = (await container.shipments.cancel_shipment(shipped.id)).unwrap()

        assert cancelled.shipment_status == ShipmentStatus.CANCELLED
        assert cancelled.status == OrderStatus.SHIPPED
        assert again.shipment_status == ShipmentStatus.CANCELLED
        assert aggregator.cancelled == ["AWB1001"]

    async def test_cancel_after_delivery(self, container: Container, aggregator: FakeAggregator, shipped: Order):
        body, signature = shiprocket_event("AWB1001", "Delivered")
        await container.shipments.handle_webhook(body, signature)

        result = await container.shipments.cancel_shipment(shipped.id)

        assert result.unwrap_err().code == Code.INVALID_STATUS_TRANSITION
        assert aggregator.cancelled == []

    async def test_cancel_without_shipment(self, container: Container, order: Order):
        assert (await container.shipments.cancel_shipment(order.id)).unwrap_err().code == Code.NO_SHIPMENT

    async def test_label(self, container: Container, order: Order, shipped: Order):
        label = (await container.shipments.label(shipped.id)).unwrap()

        assert label.awb == "AWB1001"
        assert label.order_number == shipped.order_number

    async def test_label_without_shipment(self, container: Container, order: Order):
        assert (await container.shipments.label(order.id)).unwrap_err().code == Code.NO_SHIPMENT

    async def test_service_status(self, container: Container, aggregator: FakeAggregator):
        assert (await container.shipments.service_status()).operational

        aggregator.fail_auth = "invalid credentials"
        status = await container.shipments.service_status()

        assert not status.operational
        assert "invalid credentials" in status.message
