"""
Cart — per-owner line items, the pre-checkout source of pricing.

    from storefront import cart

    owner = cart.CartOwner(guest_token=cart.new_guest_token())
    result = await service.add_item(owner, product_id, variant_id, 2)
"""

from storefront.cart._aggregate import Cart, CartLine, new_line_id
from storefront.cart._service import CartOwner, CartService, CartValidation, new_guest_token

__all__ = (
    "Cart",
    "CartLine",
    "new_line_id",
    "CartOwner",
    "CartService",
    "CartValidation",
    "new_guest_token",
)
