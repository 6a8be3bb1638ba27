"""
Vendors — protocols for the payment gateway, shipping aggregator and
notifier, their HTTP clients, and the guarded-call helper.
"""

from storefront.vendors._protocols import (
    VendorError,
    GatewayOrder,
    GatewayPayment,
    GatewayRefund,
    PaymentGateway,
    ManifestItem,
    ShipmentRequest,
    ShipmentBooking,
    TrackingInfo,
    ShippingAggregator,
    Notifier,
)
from storefront.vendors._guard import VendorTimeout, describe, guarded
from storefront.vendors.razorpay import RazorpayClient
from storefront.vendors.shiprocket import ShiprocketClient
from storefront.vendors.notifier import LogNotifier

__all__ = (
    "VendorError",
    "GatewayOrder",
    "GatewayPayment",
    "GatewayRefund",
    "PaymentGateway",
    "ManifestItem",
    "ShipmentRequest",
    "ShipmentBooking",
    "TrackingInfo",
    "ShippingAggregator",
    "Notifier",
    "VendorTimeout",
    "describe",
    "guarded",
    "RazorpayClient",
    "ShiprocketClient",
    "LogNotifier",
)
