from __future__ import annotations

from dataclasses import fields
from typing import List, Optional, Tuple

import httpx

import api.endpoints as endpoints
from api.client import ApiClient
from api.errors import ApiError, describe_error
from api.models import PAYMENT_METHODS, Order, OrderItem, ShippingDetails
from store.cache import QueryCache
from store.cart import CART_KEY, CartStore
from store.guard import LOGIN_PATH, home_for
from store.interfaces import Navigator, Notifier
from store.session import SessionReader
from utils.logger import get_logger

_logger = get_logger(__name__)

ORDERS_KEY = ("/api/orders",)
CART_PATH = "/cart"

REQUIRED_SHIPPING_FIELDS = ("name", "phone", "address", "city", "state", "zip_code")


def order_path(order_id: int) -> str:
    return f"/order/{order_id}"


def missing_shipping_fields(shipping: ShippingDetails) -> List[str]:
    return [
        f.name
        for f in fields(shipping)
        if f.name in REQUIRED_SHIPPING_FIELDS and not str(getattr(shipping, f.name)).strip()
    ]


class CheckoutFlow:
    """
    Turns the server-side cart into an order. The backend creates the order
    and empties the cart in one step; this side only validates, submits and
    moves on to the confirmation view.
    """

    def __init__(
        self,
        client: ApiClient,
        cache: QueryCache,
        session: SessionReader,
        cart: CartStore,
        navigator: Navigator,
        notifier: Notifier,
    ) -> None:
        self._client = client
        self._cache = cache
        self._session = session
        self._cart = cart
        self._navigator = navigator
        self._notifier = notifier

    async def totals(self) -> Tuple[float, float, float]:
        """(subtotal, shipping, total) of the current cart."""
        items = await self._cart.items()
        subtotal = CartStore.subtotal(items)
        shipping = CartStore.shipping_fee(subtotal)
        return subtotal, shipping, round(subtotal + shipping, 2)

    async def _validate(self, shipping: ShippingDetails, payment_method: str) -> bool:
        user = await self._session.current_user()
        if user is None:
            self._notifier.notify("Please log in to place an order.", severity="warning")
            await self._navigator.navigate(LOGIN_PATH)
            return False
        if user.role != "buyer":
            self._notifier.notify(
                "Only buyers can place orders.", title="Action Not Allowed", severity="error"
            )
            await self._navigator.navigate(home_for(user.role))
            return False

        items = await self._cart.items()
        if not items:
            self._notifier.notify("Your cart is empty.", severity="warning")
            await self._navigator.navigate(CART_PATH)
            return False

        for item in items:
            if item.product is None:
                continue
            if item.product.stock < item.quantity:
                self._notifier.notify(
                    f"Only {item.product.stock} of {item.product.name} left in stock. "
                    "Please update your cart.",
                    title="Insufficient stock",
                    severity="error",
                )
                return False

        missing = missing_shipping_fields(shipping)
        if missing:
            self._notifier.notify(
                "Missing shipping details: " + ", ".join(m.replace("_", " ") for m in missing),
                severity="error",
            )
            return False
        if payment_method not in PAYMENT_METHODS:
            self._notifier.notify(f"Unknown payment method {payment_method!r}.", severity="error")
            return False
        return True

    async def place_order(
        self,
        shipping: ShippingDetails,
        payment_method: str = "cod",
        address_id: Optional[int] = None,
    ) -> Optional[Order]:
        """
        Submit the order. On success the cart and order listings are
        invalidated and the confirmation view is opened; on failure a notice
        is shown and nothing else changes.
        """
        if not await self._validate(shipping, payment_method):
            return None

        _, _, total = await self.totals()
        try:
            order = await endpoints.create_order(
                self._client, shipping, payment_method, total, address_id
            )
        except (ApiError, httpx.HTTPError) as e:
            _logger.warning(f"Order placement failed: {e}")
            self._notifier.notify(
                describe_error(e), title="Failed to place order", severity="error"
            )
            return None

        _logger.info(f"Order {order.id} placed, total {total:.2f}")
        await self._cache.invalidate(CART_KEY)
        await self._cache.invalidate(ORDERS_KEY)
        self._notifier.notify(
            "Your order has been placed successfully. Thank you for shopping with us!",
            title="Order Placed Successfully",
        )
        await self._navigator.navigate(order_path(order.id))
        return order

    # ---------------------------
    # Order views
    # ---------------------------

    async def orders(self) -> List[Order]:
        state = await self._cache.query(
            ORDERS_KEY, lambda: endpoints.list_orders(self._client)
        )
        return list(state.data or [])

    async def order_detail(self, order_id: int) -> Tuple[Optional[Order], List[OrderItem]]:
        """
        Order and its lines for the confirmation/detail view. (None, []) when
        the order cannot be loaded.
        """
        order_state = await self._cache.query(
            ORDERS_KEY + (order_id,),
            lambda: endpoints.get_order(self._client, order_id),
        )
        items_state = await self._cache.query(
            ORDERS_KEY + (order_id, "items"),
            lambda: endpoints.get_order_items(self._client, order_id),
        )
        if order_state.error and not order_state.has_data:
            self._notifier.notify(
                describe_error(order_state.error),
                title="Could not load order",
                severity="error",
            )
        return order_state.data, list(items_state.data or [])
