from decimal import Decimal

from kungfu import Ok

from storefront import Container
from storefront.cart import Cart, CartLine, CartOwner
from storefront.catalog import Product, Variant
from storefront.errors import Code
from storefront.orders import Buyer
from support import SHIPPING

USER = CartOwner(user_id="u1")
GUEST = CartOwner(guest_token="guest-token-1")


def line(line_id: str, variant_id: str, quantity: int, price: str = "100.00") -> CartLine:
    return CartLine(
        id=line_id,
        product_id="p1",
        variant_id=variant_id,
        product_name="Thing",
        variant_size="M",
        price=Decimal(price),
        quantity=quantity,
    )


class TestCartAggregate:
    def test_same_variant_merges(self):
        cart = Cart("user:u1").add(line("a", "v1", 1)).add(line("b", "v1", 2, "120.00"))

        assert len(cart.lines) == 1
        assert cart.lines[0].id == "a"
        assert cart.lines[0].quantity == 3
        assert cart.lines[0].price == Decimal("120.00")

    def test_totals_follow_lines(self):
        cart = Cart("user:u1").add(line("a", "v1", 2)).add(line("b", "v2", 1, "49.50"))

        assert cart.total_items == 3
        assert cart.total_amount == Decimal("249.50")

    def test_update_to_zero_removes(self):
        cart = Cart("user:u1").add(line("a", "v1", 2))

        assert cart.update("a", 0).unwrap().is_empty

    def test_unknown_line(self):
        cart = Cart("user:u1")

        assert cart.update("nope", 1).unwrap_err().code == Code.CART_ITEM_NOT_FOUND
        assert cart.remove("nope").unwrap_err().code == Code.CART_ITEM_NOT_FOUND

    def test_owner_key(self):
        assert USER.key == "user:u1"
        assert GUEST.key == "guest:guest-token-1"
        assert CartOwner(user_id="u1", guest_token="x").key == "user:u1"


class TestCartService:
    async def test_add_and_reload(self, container: Container):
        added = await container.carts.add_item(USER, "trophy", "trophy-s", 2)

        assert isinstance(added, Ok)
        cart = await container.carts.get(USER)
        assert cart.total_items == 2
        assert cart.total_amount == Decimal("2400.00")
        assert cart.lines[0].product_name == "Crystal Trophy"

    async def test_add_rejections(self, container: Container):
        carts = container.carts

        assert (await carts.add_item(USER, None, "trophy-s", 1)).unwrap_err().code == Code.MISSING_REQUIRED_FIELDS
        assert (await carts.add_item(USER, "trophy", "trophy-s", 0)).unwrap_err().code == Code.INVALID_QUANTITY
        assert (await carts.add_item(USER, "ghost", "trophy-s", 1)).unwrap_err().code == Code.PRODUCT_NOT_FOUND
        assert (await carts.add_item(USER, "retired", "retired-std", 1)).unwrap_err().code == Code.PRODUCT_UNAVAILABLE
        assert (await carts.add_item(USER, "trophy", "medal-std", 1)).unwrap_err().code == Code.VARIANT_NOT_FOUND

    async def test_update_and_remove(self, container: Container):
        cart = (await container.carts.add_item(USER, "medal", "medal-std", 1)).unwrap()
        line_id = cart.lines[0].id

        updated = (await container.carts.update_item(USER, line_id, 4)).unwrap()
        assert updated.total_items == 4

        emptied = (await container.carts.remove_item(USER, line_id)).unwrap()
        assert emptied.is_empty
        assert (await container.carts.get(USER)).is_empty

    async def test_carts_are_per_owner(self, container: Container):
        await container.carts.add_item(USER, "medal", "medal-std", 1)
        await container.carts.add_item(GUEST, "trophy", "trophy-s", 1)

        assert (await container.carts.get(USER)).lines[0].variant_id == "medal-std"
        assert (await container.carts.get(GUEST)).lines[0].variant_id == "trophy-s"

    async def test_clear(self, container: Container):
        await container.carts.add_item(GUEST, "medal", "medal-std", 2)

        cleared = await container.carts.clear(GUEST)

        assert cleared.is_empty
        assert (await container.carts.get(GUEST)).is_empty


class TestCartValidation:
    async def test_reprices_and_drops(self, container: Container):
        await container.carts.add_item(USER, "medal", "medal-std", 1)
        await container.carts.add_item(USER, "trophy", "trophy-s", 1)
        await container.catalog.add(
            Product(id="medal", name="Gold Medal"),
            [Variant(id="medal-std", product_id="medal", size="Standard", price=Decimal("350.00"), stock_quantity=50)],
        )
        await container.catalog.add(Product(id="trophy", name="Crystal Trophy", is_active=False), [])

        result = await container.carts.validate(USER)

        assert [l.variant_id for l in result.removed] == ["trophy-s"]
        assert [l.price for l in result.repriced] == [Decimal("350.00")]
        assert [l.variant_id for l in result.cart.lines] == ["medal-std"]
        assert (await container.carts.get(USER)).total_amount == Decimal("350.00")

    async def test_clean_cart_is_untouched(self, container: Container):
        await container.carts.add_item(USER, "medal", "medal-std", 1)

        result = await container.carts.validate(USER)

        assert result.removed == ()
        assert result.repriced == ()
        assert result.cart.total_items == 1


class TestCartCheckout:
    async def test_success_clears_cart(self, container: Container):
        await container.carts.add_item(USER, "trophy", "trophy-s", 2)

        result = await container.orders.create_from_cart(
            USER, Decimal("2400.00"), SHIPPING, Buyer(user_id="u1")
        )

        order = result.unwrap()
        assert order.total_amount == Decimal("2400.00")
        assert (await container.carts.get(USER)).is_empty

    async def test_failure_keeps_cart(self, container: Container):
        await container.carts.add_item(USER, "trophy", "trophy-s", 2)

        result = await container.orders.create_from_cart(
            USER, Decimal("10.00"), SHIPPING, Buyer(user_id="u1")
        )

        assert result.unwrap_err().code == Code.TOTAL_MISMATCH
        assert (await container.carts.get(USER)).total_items == 2

    async def test_empty_cart(self, container: Container):
        result = await container.orders.create_from_cart(
            USER, Decimal("0"), SHIPPING, Buyer(user_id="u1")
        )

        assert result.unwrap_err().code == Code.EMPTY_ORDER
