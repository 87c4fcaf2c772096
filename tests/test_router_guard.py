import unittest

from store.guard import LOGIN_PATH, home_for
from store.router import APP_ROUTES, NOT_FOUND, Route, Router, match_path, resolve
from fake_backend import BackendTestCase


class MatchPathTestCase(unittest.TestCase):
    def test_static_and_param_segments(self):
        self.assertEqual(match_path("/cart", "/cart"), {})
        self.assertEqual(match_path("/cart", "/cart/"), {})
        self.assertIsNone(match_path("/cart", "/carts"))
        self.assertEqual(match_path("/product/:id", "/product/42"), {"id": "42"})
        self.assertIsNone(match_path("/product/:id", "/product"))
        self.assertIsNone(match_path("/product/:id", "/product/42/reviews"))

    def test_wildcard_suffix(self):
        self.assertEqual(match_path("/seller/*", "/seller/products"), {})
        self.assertEqual(match_path("/seller/*", "/seller/products/7/edit"), {})
        self.assertEqual(match_path("/seller/*", "/seller"), {})
        self.assertIsNone(match_path("/seller/*", "/admin/products"))

    def test_query_string_is_ignored(self):
        self.assertEqual(match_path("/order/:id", "/order/9?fresh=1"), {"id": "9"})

    def test_resolve_picks_first_match(self):
        route, params = resolve(APP_ROUTES, "/seller/dashboard")
        self.assertEqual((route.name, route.role), ("seller_products", "seller"))
        route, params = resolve(APP_ROUTES, "/order/12")
        self.assertEqual((route.name, params), ("order", {"id": "12"}))
        self.assertIs(resolve(APP_ROUTES, "/nowhere")[0], NOT_FOUND)

    def test_home_for_roles(self):
        self.assertEqual(home_for("buyer"), "/buyer/dashboard")
        self.assertEqual(home_for("seller"), "/seller/dashboard")
        self.assertEqual(home_for("admin"), "/admin/dashboard")
        self.assertEqual(home_for(None), "/")
        self.assertEqual(home_for("martian"), "/")


class RouterGuardTestCase(BackendTestCase):
    async def asyncSetUp(self):
        self.rendered = []

        async def renderer(route, params):
            self.rendered.append((route.name, params))

        self.router = Router(APP_ROUTES, self.state.guard, renderer=renderer, notifier=self.notifier)

    async def test_public_routes_render_for_anyone(self):
        await self.router.navigate("/")
        await self.router.navigate("/product/5")
        self.assertEqual(self.rendered, [("home", {}), ("product", {"id": "5"})])
        self.assertEqual(self.router.current_path, "/product/5")

    async def test_anonymous_user_is_sent_to_login(self):
        await self.router.navigate("/cart")
        self.assertEqual(self.rendered, [("auth", {})])
        self.assertEqual(self.router.history, [LOGIN_PATH])
        self.assertEqual(self.notifier.severities(), ["warning"])

    async def test_buyer_never_renders_seller_pages(self):
        await self.login("buyer@example.com")
        await self.router.navigate("/seller/products")
        await self.router.navigate("/admin/dashboard")

        names = [name for name, _ in self.rendered]
        self.assertNotIn("seller_products", names)
        self.assertNotIn("admin_orders", names)
        self.assertEqual(names, ["home", "home"])
        self.assertEqual(self.router.history, ["/buyer/dashboard", "/buyer/dashboard"])

    async def test_role_pages_render_for_their_role(self):
        await self.login("seller@example.com", role="seller")
        await self.router.navigate("/seller/products")
        await self.router.navigate("/checkout")
        self.assertEqual(
            [name for name, _ in self.rendered], ["seller_products", "seller_products"]
        )

    async def test_guard_decision_is_recomputed_after_login(self):
        await self.router.navigate("/orders")
        await self.login("buyer@example.com")
        await self.router.navigate("/orders")
        self.assertEqual([name for name, _ in self.rendered], ["auth", "orders"])

    async def test_redirect_loop_is_cut(self):
        loop = [Route("/a", "a", role="buyer")]
        router = Router(loop, self.state.guard)
        await self.login("seller@example.com", role="seller")

        # /seller/dashboard is unknown here, so it is not found and renders
        await router.navigate("/a")
        self.assertEqual(router.history, ["/seller/dashboard"])

        await self.login("buyer@example.com")
        router = Router([Route("/a", "a", role="admin"), Route("*", "any", role="admin")], self.state.guard)
        with self.assertRaises(RuntimeError):
            await router.navigate("/a")
