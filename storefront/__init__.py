"""
storefront — order lifecycle and payment/shipment reconciliation.

    from storefront import orders    # Checkout validation and order lifecycle
    from storefront import coupons   # Coupon eligibility and usage
    from storefront import payments  # Gateway verification and webhooks
    from storefront import shipping  # Aggregator booking and tracking
    from storefront.http import create_app
"""

from storefront import graph
from storefront import cart
from storefront import coupons
from storefront import orders
from storefront import shipping
from storefront import payments
from storefront import vendors
from storefront._types import Money, money, to_minor, from_minor
from storefront.config import Settings, ConfigError
from storefront.container import Container
from storefront.errors import Code, Errors, ShopError, ShopFailure

__version__ = "0.1.0"

__all__ = (
    "graph",
    "cart",
    "coupons",
    "orders",
    "shipping",
    "payments",
    "vendors",
    "Money",
    "money",
    "to_minor",
    "from_minor",
    "Settings",
    "ConfigError",
    "Container",
    "Code",
    "Errors",
    "ShopError",
    "ShopFailure",
)
