from __future__ import annotations

from typing import List, Optional

import httpx
from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.validation import Number
from textual.widgets import Button, Input, Label, MarkdownViewer, OptionList
from textual.widgets.option_list import Option

import api.endpoints as endpoints
from api.errors import ApiError, describe_error
from api.models import Product
from utils.pure import format_price, generate_markdown_table, product_image_url
from views.base_screen import BaseScreen

PRODUCTS_KEY = ("/api/products",)
LISTING_LIMIT = 100


class SellerProductsScreen(BaseScreen):
    """
    Sellers pick one of their own products to view it and update price/stock.
    """

    def __init__(self) -> None:
        super().__init__()
        self._products: List[Product] = []
        self.current: Optional[Product] = None

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield Input(id="input-search", placeholder="Filter your products...")
            yield OptionList(id="optlist-prods")
            yield MarkdownViewer(id="md-prod", show_table_of_contents=False)
            with Horizontal(id="hort-controls"):
                with Horizontal(id="div-new-inputs"):
                    with Vertical():
                        yield Label("New Price:")
                        yield Input(
                            placeholder="leave blank to keep",
                            id="input-price",
                            type="number",
                            validators=[Number(minimum=0.0)],
                        )

                    with Vertical():
                        yield Label("New Stock:")
                        yield Input(
                            placeholder="leave blank to keep",
                            id="input-stock",
                            type="integer",
                            validators=[Number(minimum=0)],
                        )
                with Horizontal(id="div-button"):
                    yield Button("Update", id="btn-update", variant="success")

    def on_mount(self) -> None:
        self.query_one("#input-search", Input).focus()
        self.query_one("#md-prod").add_class("hidden")
        self.query_one("#hort-controls").add_class("hidden")
        self.load_products()

    @on(ScreenResume)
    @work(exclusive=True, group="listing")
    async def load_products(self) -> None:
        state = self.app.state
        user = await state.session.current_user()
        if user is None:
            return
        listing = await state.cache.query(
            PRODUCTS_KEY + ("seller", user.id),
            lambda: endpoints.list_products(
                state.client, page=1, limit=LISTING_LIMIT, seller_id=user.id
            ),
        )
        if listing.error:
            self.notify(
                describe_error(listing.error),
                title="Could not load products",
                severity="error",
            )
        self._products = listing.data.products if listing.has_data else []
        self.update_optlist(self.query_one("#input-search", Input).value)

    def on_input_changed(self, message: Input.Changed) -> None:
        if message.input.id == "input-search":
            self.query_one("#optlist-prods").remove_class("hidden")
            self.update_optlist(message.value)

    def on_option_list_option_selected(self, message: OptionList.OptionSelected):
        pid = int(message.option.id)
        self.current = next((p for p in self._products if p.id == pid), None)
        if self.current is None:
            return
        self.render_product()

        self.query_one("#md-prod").remove_class("hidden")
        self.query_one("#hort-controls").remove_class("hidden")

    def update_optlist(self, query: str) -> None:
        """fill option list with the products matching the filter"""
        needle = query.strip().lower()
        matches = [
            p
            for p in self._products
            if not needle or needle in p.name.lower() or needle in p.category.lower()
        ]
        opt_list = self.query_one("#optlist-prods", OptionList)
        opt_list.clear_options()
        opt_list.add_options(
            [Option(f"{p.id} {p.name}", id=str(p.id)) for p in matches]
        )

    @work(exclusive=True, group="detail")
    async def render_product(self) -> None:
        prod = self.current
        rows = [
            ["ID", prod.id],
            ["Name", prod.name],
            ["Category", prod.category or "-"],
            ["Price", format_price(prod.price)],
            ["Stock", prod.stock],
            ["Approved", "Yes" if prod.approved else "Pending"],
            ["Image", product_image_url(prod)],
        ]
        md_table = generate_markdown_table(["Attribute", "Value"], rows, ["l", "l"])
        await self.query_one("#md-prod", MarkdownViewer).document.update(
            f"### Product Detail: {prod.name}\n\n" + md_table
        )

        # prefill inputs with current values for convenience
        self.query_one("#input-price", Input).value = f"{prod.price:.2f}"
        self.query_one("#input-stock", Input).value = str(prod.stock)

    @on(Button.Pressed, "#btn-update")
    @work(exclusive=True, group="update")
    async def handle_update(self) -> None:
        prod = self.current
        if prod is None:
            return

        price_input = self.query_one("#input-price", Input)
        stock_input = self.query_one("#input-stock", Input)

        for inp in (price_input, stock_input):
            if inp.value and not inp.is_valid:
                inp.focus()
                inp.add_class("-invalid")
                return

        new_price = float(price_input.value) if price_input.value else None
        new_stock = int(stock_input.value) if stock_input.value else None
        if new_price == prod.price:
            new_price = None
        if new_stock == prod.stock:
            new_stock = None

        if new_price is None and new_stock is None:
            self.notify("Nothing to update.", severity="warning")
            return

        state = self.app.state
        try:
            updated = await endpoints.update_product_price_stock(
                state.client, prod.id, new_price, new_stock
            )
        except (ApiError, httpx.HTTPError) as e:
            self.notify(describe_error(e), title="Update failed", severity="error")
            return

        self.notify("Product updated successfully.")
        # storefront listings and product details all go stale
        await state.cache.invalidate(PRODUCTS_KEY)
        self.current = updated or prod
        self._products = [self.current if p.id == prod.id else p for p in self._products]
        self.render_product()
