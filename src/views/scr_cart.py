from typing import List

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Container, Horizontal, HorizontalGroup, VerticalScroll
from textual.events import ScreenResume
from textual.message import Message
from textual.widgets import Button, Label, Rule

from api.models import CartItem
from store.cart import CART_KEY
from utils.messages import CartChangedMessage, NavigateRequestedMessage
from utils.pure import format_price
from views.base_screen import BaseScreen
from views.modal_dialog import DialogModal


class CartItemActionEditMessage(Message):
    bubble = True


class CartItemActionRemoveMessage(Message):
    bubble = True


class CartItemActionLabel(Label):
    def action_edit(self):
        self.post_message(CartItemActionEditMessage())

    def action_remove(self):
        self.post_message(CartItemActionRemoveMessage())


class CartItemWidget(HorizontalGroup):
    def __init__(self, item: CartItem):
        super().__init__()

        self.item = item

    def compose(self):
        prod = self.item.product
        name = prod.name if prod else f"Product {self.item.product_id}"
        price = format_price(prod.price) if prod else "-"
        with Container(id="div-cart-item-group"):
            with Container(id="div-item"):
                yield Label(content=name, id="label-item-name")
                yield Label(content=str(self.item.quantity), id="label-item-qty")
                yield Label(content=price, id="label-item-price")
            with Container(id="div-actions"):
                yield CartItemActionLabel(
                    content="[@click=edit()]Edit[/]", id="link-item-edit"
                )
                yield CartItemActionLabel(
                    content="[@click=remove()]Remove[/]", id="link-item-remove"
                )

    @on(CartItemActionEditMessage)
    def handle_edit_item(self):
        self.post_message(NavigateRequestedMessage(f"/product/{self.item.product_id}"))

    @on(CartItemActionRemoveMessage)
    @work()
    async def handle_remove_item(self):
        remove_confirmed = await self.app.push_screen_wait(
            DialogModal(
                "Do you really want to remove this item from cart?",
                primary_text="Yes",
                secondary_text="No",
                tone="warning",
            )
        )

        if remove_confirmed and await self.app.state.cart.remove_from_cart(
            self.item.product_id
        ):
            self.notify("Item removed from cart.", severity="information")


class CartScreen(BaseScreen):
    """
    The buyer's cart, redrawn after every settled fetch of the cart key.
    """

    def __init__(self) -> None:
        super().__init__()
        self._unsubscribe = None

    def compose(self) -> ComposeResult:
        yield from super().compose()
        yield VerticalScroll(id="vertscroll-content")
        yield Label("Total Cart Value: -", id="label-cart-total")
        yield Rule(line_style="dashed")
        with Horizontal(id="hort-buttons"):
            yield Button("Clear Cart", id="btn-clear-cart")
            yield Button("Refresh", id="btn-refresh")
            yield Button("Checkout", id="btn-checkout", variant="primary")

    async def on_mount(self):
        self._unsubscribe = self.app.state.cache.subscribe(
            CART_KEY, lambda _: self.post_message(CartChangedMessage())
        )
        self.reload_cart()

    def on_unmount(self):
        if self._unsubscribe:
            self._unsubscribe()

    @on(ScreenResume)
    @on(Button.Pressed, "#btn-refresh")
    @work(exclusive=True, group="cart-load")
    async def reload_cart(self):
        # settles a fetch, the subscription then posts CartChangedMessage
        await self.app.state.cart.items()
        self.post_message(CartChangedMessage())

    @on(CartChangedMessage)
    @work(exclusive=True, group="cart-draw")  # must exclusive, else might race cond and gen duplicate
    async def handle_cart_change(self):
        """
        Redraw from the cached cart, never fetches.
        """
        cart = self.app.state.cart
        cart_items: List[CartItem] = sorted(cart.cached_items(), key=lambda x: x.product_id)

        content = self.query_one("#vertscroll-content")
        content_items = sorted(
            (c.item for c in content.children), key=lambda x: x.product_id
        )

        if content_items != cart_items:
            await content.remove_children()
            await content.mount_all([CartItemWidget(item) for item in cart_items])

        content.set_class(not cart_items, "no-items")

        subtotal = cart.subtotal(cart_items)
        total = subtotal + cart.shipping_fee(subtotal)
        label = f"Total Cart Value: {format_price(total)}"
        if subtotal:
            label += f" (incl. {format_price(cart.shipping_fee(subtotal))} shipping)"
        self.query_one("#label-cart-total").content = label

    @on(Button.Pressed, "#btn-clear-cart")
    @work()
    async def handle_clear_cart(self) -> None:
        if not await self.app.state.cart.items():
            self.app.notify("Cart is empty.", severity="warning")
            return

        remove_confirmed = await self.app.push_screen_wait(
            DialogModal(
                "Do you really want to remove all items from cart?",
                primary_text="Yes",
                secondary_text="No",
                tone="error",
            )
        )
        if remove_confirmed:
            removed = await self.app.state.cart.clear_cart()
            if removed:
                self.app.notify(f"Removed {removed} item(s) from cart.")

    @on(Button.Pressed, "#btn-checkout")
    async def handle_checkout(self) -> None:
        if not self.app.state.cart.cached_items():
            self.app.notify("Cart is empty.", severity="warning")
            return

        self.post_message(NavigateRequestedMessage("/checkout"))
