"""
Shipping — booking with the aggregator and reconciling its status feed.

    match await shipments.create_shipment(order_id):
        case Ok(order): order.awb_code
        case Error(e): e.code  # ORDER_NOT_PAID, SHIPMENT_EXISTS, SHIPPING_PROVIDER_ERROR
"""

from storefront.shipping._state import (
    PROGRESS,
    EXCEPTIONS,
    TERMINAL,
    STATUS_MAP,
    map_status,
    decide,
)
from storefront.shipping._service import (
    tracking_url,
    manifest,
    ShipmentSnapshot,
    TrackingView,
    ShippingLabel,
    ShippingWebhookReceipt,
    ServiceStatus,
    ShipmentService,
)

__all__ = (
    "PROGRESS",
    "EXCEPTIONS",
    "TERMINAL",
    "STATUS_MAP",
    "map_status",
    "decide",
    "tracking_url",
    "manifest",
    "ShipmentSnapshot",
    "TrackingView",
    "ShippingLabel",
    "ShippingWebhookReceipt",
    "ServiceStatus",
    "ShipmentService",
)
