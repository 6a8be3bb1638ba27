from storefront.http.routes import cart, coupons, orders, payments, shipping

ROUTERS = (orders.router, cart.router, payments.router, coupons.router, shipping.router)

__all__ = ("ROUTERS",)
