from typing import Callable, Dict, Optional

import httpx
from textual import on, work
from textual.app import App
from textual.binding import Binding
from textual.screen import Screen

from api.errors import ApiError
from store.guard import home_for
from store.router import Params, Route
from utils.logger import get_logger
from utils.messages import (
    NavigateRequestedMessage,
    QuitRequestedMessage,
    RouteChangedMessage,
    UserLogoutMessage,
)
from utils.state import AppState
from views.modal_checkout import CheckoutModal
from views.modal_dialog import NotFoundModal
from views.modal_order_detail import OrderDetailModal
from views.modal_prod_detail import ProdDetailModal
from views.scr_admin_orders import AdminOrdersScreen
from views.scr_assistant import AssistantScreen
from views.scr_cart import CartScreen
from views.scr_login import LoginScreen
from views.scr_past_orders import PastOrdersScreen
from views.scr_prod_search import ProdSearchScreen
from views.scr_seller_products import SellerProductsScreen

_logger = get_logger(__name__)


class BazaarApp(App):
    BINDINGS = [
        Binding("ctrl+t", "switch_light", "Toggle Theme", show=True),
    ]

    # routes rendered as a mode, one persistent screen each
    MODES = {
        "home": ProdSearchScreen,
        "cart": CartScreen,
        "orders": PastOrdersScreen,
        "assistant": AssistantScreen,
        "seller_products": SellerProductsScreen,
        "admin_orders": AdminOrdersScreen,
    }
    DEFAULT_MODE = "home"

    # routes rendered on top of the current mode
    OVERLAYS: Dict[str, Callable[[Params], Screen]] = {
        "auth": lambda params: LoginScreen(),
        "product": lambda params: ProdDetailModal(int(params["id"])),
        "checkout": lambda params: CheckoutModal(),
        "order": lambda params: OrderDetailModal(int(params["id"])),
    }

    # sidebar menus, path -> title
    GUEST_MENU = {
        "/": "Browse Products",
        "/assistant": "Shopping Assistant",
        "/auth": "Log in",
    }
    MENUS = {
        "buyer": {
            "/": "Browse Products",
            "/cart": "Cart",
            "/orders": "Past Orders",
            "/assistant": "Shopping Assistant",
        },
        "seller": {
            "/seller/dashboard": "My Products",
            "/": "Storefront",
        },
        "admin": {
            "/admin/dashboard": "Orders Report",
            "/": "Storefront",
        },
    }

    SCREEN_TITLES = {
        "ProdSearchScreen": "Browse Products",
        "CartScreen": "Cart",
        "PastOrdersScreen": "Past Orders",
        "AssistantScreen": "Shopping Assistant",
        "SellerProductsScreen": "My Products",
        "AdminOrdersScreen": "Orders Report",
    }

    CSS_PATH = "views/styles/app.tcss"

    state: AppState
    _shown_path: Optional[str] = None

    def __init__(self, base_url: Optional[str] = None):
        super().__init__()
        self.state = AppState.create(
            notifier=self, renderer=self.render_route, base_url=base_url
        )

    async def on_mount(self) -> None:
        self.post_message(NavigateRequestedMessage("/"))

    def action_switch_light(self):
        if self.theme == "textual-dark":
            self.theme = "solarized-light"
        else:
            self.theme = "textual-dark"
        self.notify(f"Theme changed to {self.theme}")

    # ---------------------------
    # Routing
    # ---------------------------

    @on(NavigateRequestedMessage)
    @work(group="navigate")
    async def handle_navigate(self, message: NavigateRequestedMessage):
        try:
            await self.state.router.navigate(message.path)
        except RuntimeError as e:
            _logger.error(str(e))
            self.notify("Could not open that page.", severity="error")

    async def render_route(self, route: Route, params: Params) -> None:
        # screen changes run in their own worker, the caller may be a
        # worker of the very modal that is about to be popped
        self._show_route(route, params, self.state.router.current_path)

    @work(exclusive=True, group="route")
    async def _show_route(self, route: Route, params: Params, path: str) -> None:
        if route.name == "auth":
            user = await self.state.session.current_user()
            if user is not None:
                self.post_message(NavigateRequestedMessage(home_for(user.role)))
                return

        # drop overlays above the mode's own screen
        while len(self.screen_stack) > 1:
            await self.pop_screen()

        if route.name in self.MODES:
            if route.name != self.current_mode:
                await self.switch_mode(route.name)
        elif route.name in self.OVERLAYS:
            try:
                screen = self.OVERLAYS[route.name](params)
            except (KeyError, ValueError):
                screen = NotFoundModal(path)
            await self.push_screen(screen)
        else:
            await self.push_screen(NotFoundModal(path))

        _logger.debug(f"Showing {path} as {route.name}")
        self.screen.post_message(RouteChangedMessage(self._shown_path, path))
        self._shown_path = path

    # ---------------------------
    # Session
    # ---------------------------

    @on(UserLogoutMessage)
    @work
    async def handle_user_logout(self):
        try:
            await self.state.end_session()
        except (ApiError, httpx.HTTPError) as e:
            # local session is gone either way
            _logger.warning(f"Logout request failed: {e}")
        self.notify("Logout successful.")
        await self.state.router.navigate("/")

    @on(QuitRequestedMessage)
    @work
    async def handle_quit(self):
        await self.state.aclose()
        self.exit()


def run() -> None:
    BazaarApp().run()


if __name__ == "__main__":
    run()
