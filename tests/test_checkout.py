import json

import api.endpoints as endpoints
from api.models import ShippingDetails
from store.cart import CART_KEY
from store.checkout import missing_shipping_fields, order_path
from fake_backend import BackendTestCase


def shipping(**overrides) -> ShippingDetails:
    values = dict(
        name="Asha Rao",
        email="asha@example.com",
        phone="9876543210",
        address="12 MG Road",
        city="Bengaluru",
        state="Karnataka",
        zip_code="560001",
        notes="",
    )
    values.update(overrides)
    return ShippingDetails(**values)


class CheckoutTestCase(BackendTestCase):
    async def asyncSetUp(self):
        self.kurta = self.backend.add_product("Kurta", 500.0, stock=10, category="clothing")
        self.checkout = self.state.checkout
        self.router = self.state.router

    async def fill_cart(self, quantity=2):
        product = await endpoints.get_product(self.state.client, self.kurta["id"])
        self.assertTrue(await self.state.cart.add_to_cart(product, quantity))

    def test_missing_shipping_fields(self):
        self.assertEqual(missing_shipping_fields(shipping()), [])
        self.assertEqual(
            missing_shipping_fields(shipping(phone=" ", zip_code="", notes="")),
            ["phone", "zip_code"],
        )
        # email and notes are optional
        self.assertEqual(missing_shipping_fields(shipping(email="")), [])

    async def test_place_order(self):
        await self.login("buyer@example.com")
        await self.fill_cart(2)
        self.assertEqual(await self.checkout.totals(), (1000.0, 40.0, 1040.0))
        self.assertEqual(await self.checkout.orders(), [])

        order = await self.checkout.place_order(shipping(), "cod")

        self.assertIsNotNone(order)
        self.assertEqual(order.total, 1040.0)
        self.assertEqual(order.payment_method, "cod")
        self.assertEqual(self.router.history[-1], order_path(order.id))
        self.assertIn("Order Placed Successfully", self.notifier.titles())

        # cart and order listings were invalidated
        self.assertEqual(await self.state.cart.items(), [])
        self.assertEqual([o.id for o in await self.checkout.orders()], [order.id])

        posted = json.loads(self.backend.calls("POST", "/api/orders")[0].content)
        details = json.loads(posted["shippingDetails"])
        self.assertEqual(details["zipCode"], "560001")
        self.assertEqual(details["name"], "Asha Rao")

    async def test_order_detail(self):
        await self.login("buyer@example.com")
        await self.fill_cart(3)
        order = await self.checkout.place_order(shipping(), "cod")

        detail, lines = await self.checkout.order_detail(order.id)
        self.assertEqual(detail.id, order.id)
        self.assertEqual(
            [(line.product_id, line.quantity, line.price) for line in lines], [(self.kurta["id"], 3, 500.0)]
        )
        self.assertEqual(lines[0].product.name, "Kurta")

    async def test_unknown_order_detail(self):
        await self.login("buyer@example.com")
        detail, lines = await self.checkout.order_detail(999)
        self.assertIsNone(detail)
        self.assertEqual(lines, [])
        self.assertIn("Could not load order", self.notifier.titles())

    async def test_empty_cart_goes_back_to_cart(self):
        await self.login("buyer@example.com")
        self.assertIsNone(await self.checkout.place_order(shipping()))
        self.assertEqual(self.router.history, ["/cart"])
        self.assertIn("Your cart is empty.", [m for m, _, _ in self.notifier.notices])
        self.assertEqual(self.backend.calls("POST", "/api/orders"), [])

    async def test_missing_shipping_fields_block_order(self):
        await self.login("buyer@example.com")
        await self.fill_cart()
        self.assertIsNone(await self.checkout.place_order(shipping(address="", city="")))
        self.assertEqual(self.backend.calls("POST", "/api/orders"), [])
        message, _, severity = self.notifier.notices[-1]
        self.assertEqual(severity, "error")
        self.assertIn("address", message)
        self.assertIn("city", message)

    async def test_unknown_payment_method(self):
        await self.login("buyer@example.com")
        await self.fill_cart()
        self.assertIsNone(await self.checkout.place_order(shipping(), "barter"))
        self.assertEqual(self.backend.calls("POST", "/api/orders"), [])

    async def test_insufficient_stock_blocks_order(self):
        await self.login("buyer@example.com")
        await self.fill_cart(2)
        self.backend.products[self.kurta["id"]]["stock"] = 1
        await self.state.cache.invalidate(CART_KEY)

        self.assertIsNone(await self.checkout.place_order(shipping()))
        self.assertIn("Insufficient stock", self.notifier.titles())
        self.assertEqual(self.backend.calls("POST", "/api/orders"), [])

    async def test_anonymous_checkout_goes_to_login(self):
        self.assertIsNone(await self.checkout.place_order(shipping()))
        self.assertEqual(self.router.history, ["/auth"])

    async def test_non_buyer_is_sent_home(self):
        await self.login("admin@example.com", role="admin")
        self.assertIsNone(await self.checkout.place_order(shipping()))
        self.assertEqual(self.router.history, ["/admin/dashboard"])
        self.assertIn("Action Not Allowed", self.notifier.titles())

    async def test_backend_failure_keeps_cart(self):
        await self.login("buyer@example.com")
        await self.fill_cart(1)
        self.backend.fail("POST", "/api/orders", 500)

        self.assertIsNone(await self.checkout.place_order(shipping()))
        self.assertIn("Failed to place order", self.notifier.titles())
        self.assertEqual(len(await self.state.cart.items()), 1)
        self.assertEqual(self.router.history, [])
