from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.reactive import reactive
from textual.screen import ModalScreen
from textual.validation import Number
from textual.widgets import Button, Input, Label, MarkdownViewer

import api.endpoints as endpoints
from api.errors import describe_error
from api.models import CartItem, Product
from utils.pure import format_price, generate_markdown_table, product_image_url


class ProdDetailModal(ModalScreen[bool]):
    """
    Product detail, plus ordering.
    Dismissed with True if the cart changed, False if not.
    """

    order_qty = reactive(1)

    def __init__(self, product_id: int) -> None:
        super().__init__()

        self._product_id = product_id

        self._prod: Product | None = None
        self._existing_cart_item: CartItem | None = None

    def compose(self) -> ComposeResult:
        with Horizontal(id="hort-prod-detail"):
            yield MarkdownViewer("", show_table_of_contents=False)
            with Vertical(id="vert-order"):
                yield Label("Order Quantity")
                with Horizontal():
                    yield Button("-", id="btn-sub-qty")
                    yield Input(value="1", id="input-order-qty", type="integer")
                    yield Button("+", id="btn-add-qty")
                yield Button("Add to Cart", id="btn-addcart", variant="primary")
                yield Button("Buy Now", id="btn-buynow", variant="success")
                yield Button("Go Back", id="btn-quit")

    async def on_mount(self):
        state = self.app.state
        cached = await state.cache.query(
            ("/api/products", self._product_id),
            lambda: endpoints.get_product(state.client, self._product_id),
        )
        if not cached.has_data:
            self.notify(
                describe_error(cached.error) if cached.error else "Product not found.",
                title="Could not load product",
                severity="error",
            )
            self.dismiss(False)
            return
        self._prod = cached.data

        state.assistant.track_activity(
            "view_product", product_id=self._prod.id, additional_data={"category": self._prod.category}
        )

        await self.render_detail()

        # update elements depending on stock cnt
        stock_cnt = self._prod.stock
        if stock_cnt < 1:
            for btn_id in ("#btn-addcart", "#btn-buynow"):
                btn = self.query_one(btn_id, Button)
                btn.label = "Out of Stock"
                btn.disabled = True
                btn.variant = "warning"

        self.query_one("#input-order-qty").validators = [
            Number(minimum=1, maximum=max(stock_cnt, 1))
        ]

        # update elements based on cart status
        self._existing_cart_item = next(
            (i for i in await state.cart.items() if i.product_id == self._product_id),
            None,
        )
        if self._existing_cart_item:
            self.order_qty = self._existing_cart_item.quantity
            self.query_one("#btn-addcart", Button).label = "Update Cart"

        self.query_one("#input-order-qty").focus()
        self.load_suggestions()

    async def render_detail(self, suggestions: list | None = None) -> None:
        prod = self._prod
        table_rows = [
            ["Name", prod.name],
            ["Category", prod.category or "-"],
            ["Price", format_price(prod.price)],
            ["In Stock", prod.stock],
            ["Image", product_image_url(prod)],
        ]
        md = f"### Product Detail: {prod.name}\n\n"
        md += generate_markdown_table(["Attribute", "Value"], table_rows, ["l", "l"])
        if prod.description:
            md += f"\n\n{prod.description}"
        if suggestions:
            md += "\n\n#### You may also like\n\n"
            md += "\n".join(f"- {s.name} ({format_price(s.price)}), ID {s.id}" for s in suggestions)
        await self.query_one(MarkdownViewer).document.update(md)

    @work(exclusive=True, group="suggestions")
    async def load_suggestions(self) -> None:
        suggestions = await self.app.state.assistant.get_complementary_products(self._product_id)
        if suggestions:
            await self.render_detail(suggestions)

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(False)

    async def on_input_changed(self, message: Input.Changed) -> None:
        if (
            message.input.id == "input-order-qty"
            and message.input.is_valid
            and message.value.isdigit()
            and self.focused == message.input
        ):
            self.order_qty = int(message.value)

    def watch_order_qty(self, qty: int):
        if self._prod is None:
            return
        self.query_one("#btn-sub-qty").disabled = qty <= 1
        self.query_one("#btn-add-qty").disabled = qty >= self._prod.stock
        self.query_one("#input-order-qty", Input).value = str(qty)

    @on(Button.Pressed, "#btn-add-qty")
    def handle_add_qty(self):
        self.order_qty += 1

    @on(Button.Pressed, "#btn-sub-qty")
    def handle_sub_qty(self):
        self.order_qty -= 1

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self):
        self.dismiss(False)

    @on(Button.Pressed, "#btn-addcart")
    @work(exclusive=True)
    async def handle_addcart(self):
        cart = self.app.state.cart
        if self._existing_cart_item:
            changed = await cart.update_quantity(self._product_id, self.order_qty)
            if changed:
                self.app.notify("Updated cart item quantity.")
        else:
            changed = await cart.add_to_cart(self._prod, self.order_qty)

        if changed:
            self.dismiss(True)

    @on(Button.Pressed, "#btn-buynow")
    @work(exclusive=True)
    async def handle_buynow(self):
        # on success the router replaces this modal with the checkout
        await self.app.state.cart.buy_now(self._prod, self.order_qty)
