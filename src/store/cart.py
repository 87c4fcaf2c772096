from __future__ import annotations

from typing import List, Optional, Set

import aiosqlite
import httpx

import api.endpoints as endpoints
import db.guest_cart as guest_cart
from api.client import ApiClient
from api.errors import ApiError, describe_error
from api.models import CartItem, Product
from store.cache import QueryCache
from store.guard import LOGIN_PATH
from store.interfaces import Navigator, Notifier
from store.session import SessionReader
from utils.config import settings
from utils.logger import get_logger

_logger = get_logger(__name__)

CART_KEY = ("/api/cart",)
CHECKOUT_PATH = "/checkout"

_REQUEST_ERRORS = (ApiError, httpx.HTTPError)


class CartStore:
    """
    The buyer's cart. The server is the only authority: every write goes to
    the backend and is followed by an invalidation of the cart key, nothing
    is applied to local state ahead of the server's answer.

    Anonymous add attempts are remembered in the local guest cart and moved
    to the server by ``migrate_guest_cart`` after a buyer logs in.
    """

    def __init__(
        self,
        client: ApiClient,
        cache: QueryCache,
        session: SessionReader,
        navigator: Navigator,
        notifier: Notifier,
    ) -> None:
        self._client = client
        self._cache = cache
        self._session = session
        self._navigator = navigator
        self._notifier = notifier
        # product ids with a write in flight
        self._pending: Set[int] = set()

    # ---------------------------
    # Reads
    # ---------------------------

    async def _fetch_cart(self) -> List[CartItem]:
        return await endpoints.list_cart(self._client)

    async def items(self) -> List[CartItem]:
        """Cart rows, read through the cache. Empty for non-buyers."""
        user = await self._session.current_user()
        if user is None or user.role != "buyer":
            return []
        state = await self._cache.query(CART_KEY, self._fetch_cart)
        return list(state.data or [])

    def cached_items(self) -> List[CartItem]:
        return list(self._cache.peek(CART_KEY) or [])

    def find_cached(self, product_id: int) -> Optional[CartItem]:
        for item in self.cached_items():
            if item.product_id == product_id:
                return item
        return None

    def is_pending(self, product_id: int) -> bool:
        return product_id in self._pending

    @staticmethod
    def subtotal(items: List[CartItem]) -> float:
        return round(
            sum(item.product.price * item.quantity for item in items if item.product),
            2,
        )

    @staticmethod
    def shipping_fee(subtotal: float) -> float:
        return settings.SHIPPING_FEE if subtotal > 0 else 0.0

    # ---------------------------
    # Guards
    # ---------------------------

    async def _ensure_buyer(self, product: Product, quantity: int, action: str) -> bool:
        user = await self._session.current_user()
        if user is None:
            try:
                await guest_cart.add_item(product.id, quantity)
            except aiosqlite.Error as e:
                _logger.warning(f"Could not remember product {product.id} locally: {e}")
            self._notifier.notify(
                f"You need to be logged in to {action}.",
                title="Please log in",
            )
            await self._navigator.navigate(LOGIN_PATH)
            return False
        if user.role != "buyer":
            self._notifier.notify(
                f"Only buyers can {action}. Please switch to a buyer account.",
                title="Action Not Allowed",
                severity="error",
            )
            return False
        if product.stock < 1:
            self._notifier.notify(
                f"{product.name} is out of stock.", severity="warning"
            )
            return False
        return True

    def _begin(self, product_id: int) -> bool:
        if product_id in self._pending:
            _logger.info(f"Ignoring cart write for product {product_id}, one is in flight")
            return False
        self._pending.add(product_id)
        return True

    def _fail(self, title: str, exc: BaseException) -> None:
        _logger.warning(f"{title}: {exc}")
        self._notifier.notify(describe_error(exc), title=title, severity="error")

    # ---------------------------
    # Writes
    # ---------------------------

    async def _add(self, product: Product, quantity: int) -> bool:
        if not self._begin(product.id):
            return False
        try:
            await endpoints.add_to_cart(self._client, product.id, quantity)
        except _REQUEST_ERRORS as e:
            self._fail("Failed to add to cart", e)
            return False
        finally:
            self._pending.discard(product.id)
        await self._cache.invalidate(CART_KEY)
        return True

    async def add_to_cart(self, product: Product, quantity: int = 1) -> bool:
        """
        Create the cart row for ``product`` or increment it.
        Returns True once the server accepted the write.
        """
        if not await self._ensure_buyer(product, quantity, "add items to cart"):
            return False
        if not await self._add(product, quantity):
            return False
        self._notifier.notify(f"{product.name} added to cart.")
        return True

    async def buy_now(self, product: Product, quantity: int = 1) -> bool:
        """Add ``product`` and go straight to checkout, only if the add succeeded."""
        if not await self._ensure_buyer(product, quantity, "purchase items"):
            return False
        if not await self._add(product, quantity):
            return False
        await self._navigator.navigate(CHECKOUT_PATH)
        return True

    async def remove_from_cart(self, product_id: int) -> bool:
        """
        Delete the cached row of ``product_id``. Unknown products (or a cart
        that was never loaded) are a no-op returning False.
        """
        item = self.find_cached(product_id)
        if item is None or item.id is None:
            _logger.debug(f"Product {product_id} not in cached cart, nothing to remove")
            return False
        if not self._begin(product_id):
            return False
        try:
            await endpoints.remove_cart_item(self._client, item.id)
        except _REQUEST_ERRORS as e:
            self._fail("Failed to remove item", e)
            return False
        finally:
            self._pending.discard(product_id)
        await self._cache.invalidate(CART_KEY)
        return True

    async def update_quantity(self, product_id: int, quantity: int) -> bool:
        """
        Set the quantity of a cached row. Stock limits are left to the caller;
        a quantity below 1 removes the row.
        """
        if quantity < 1:
            return await self.remove_from_cart(product_id)

        item = self.find_cached(product_id)
        if item is None or item.id is None:
            _logger.debug(f"Product {product_id} not in cached cart, nothing to update")
            return False
        if not self._begin(product_id):
            return False
        try:
            await endpoints.update_cart_item(self._client, item.id, quantity)
        except _REQUEST_ERRORS as e:
            self._fail("Failed to update cart", e)
            return False
        finally:
            self._pending.discard(product_id)
        await self._cache.invalidate(CART_KEY)
        return True

    async def clear_cart(self) -> int:
        """
        Delete every cached row one by one. Not atomic: a failed delete leaves
        that row in place and the rest are still attempted. Rows with a write
        already in flight are left alone and count as failed. Returns the
        number of rows removed.
        """
        items = self.cached_items()
        removed = 0
        failed: List[CartItem] = []
        for item in items:
            if item.id is None:
                continue
            if not self._begin(item.product_id):
                failed.append(item)
                continue
            try:
                await endpoints.remove_cart_item(self._client, item.id)
            except _REQUEST_ERRORS as e:
                _logger.warning(f"Could not remove cart item {item.id}: {e}")
                failed.append(item)
            else:
                removed += 1
            finally:
                self._pending.discard(item.product_id)

        if items:
            await self._cache.invalidate(CART_KEY)
        if failed:
            self._notifier.notify(
                f"{len(failed)} item(s) could not be removed. Please try again.",
                title="Failed to clear cart",
                severity="error",
            )
        return removed

    # ---------------------------
    # Guest cart
    # ---------------------------

    async def migrate_guest_cart(self) -> int:
        """
        Move locally remembered items into the server cart of the buyer that
        just logged in. Items the server refuses stay in the guest cart.
        Returns the number of migrated items.
        """
        pending = await guest_cart.list_items()
        if not pending:
            return 0

        user = await self._session.current_user()
        if user is None:
            return 0
        if user.role != "buyer":
            await guest_cart.clear()
            self._notifier.notify(
                "Saved items were discarded, only buyers can keep a cart.",
                severity="warning",
            )
            return 0

        migrated = 0
        for item in pending:
            try:
                await endpoints.add_to_cart(self._client, item.product_id, item.quantity)
            except _REQUEST_ERRORS as e:
                _logger.warning(f"Guest item {item.product_id} not migrated: {e}")
                continue
            await guest_cart.remove_item(item.product_id)
            migrated += 1

        if migrated:
            await self._cache.invalidate(CART_KEY)
            self._notifier.notify(f"Moved {migrated} saved item(s) into your cart.")
        return migrated
