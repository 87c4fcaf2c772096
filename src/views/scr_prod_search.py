from typing import List

import httpx
from textual import events, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal
from textual.reactive import reactive
from textual.validation import Number
from textual.widgets import DataTable, Input, Label

import api.endpoints as endpoints
from api.errors import ApiError, describe_error
from api.models import Product
from utils.messages import NavigateRequestedMessage
from utils.pure import format_price
from views.base_screen import BaseScreen

PAGE_SIZE = 10
SEARCH_LIMIT = 50


class ProdSearchScreen(BaseScreen):
    """
    Storefront: approved products page by page, or keyword search results.
    Open to everyone; cart actions live in the product detail modal.
    """

    # shown in the footer only
    BINDINGS = [
        Binding("enter", "noop", "View Product", show=True, key_display="⏎"),
    ]

    page_idx = reactive(1)
    page_cnt = reactive(1)
    query_str = reactive("")

    def __init__(self):
        super().__init__()
        self._results: List[Product] = []

    def compose(self) -> ComposeResult:
        yield from super().compose()
        yield Input(id="input-search", placeholder="Start typing to search products...")
        yield DataTable(id="table-search-result")
        with Horizontal(id="hort-page"):
            yield Input("1", id="input-page", type="integer")  # page idx start from 1
            yield Label(" / 1", id="label-total-page-cnt")

    def on_mount(self):
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("ID", "Name", "Category", "Price", "In Stock")

        self.query_one("#input-search").focus()
        self.update_results("", 1)

    def action_noop(self) -> None:
        pass

    async def on_input_changed(self, message: Input.Changed) -> None:
        if message.input.id == "input-search":
            self.query_str = message.value
            self.page_idx = 1
            self.update_results(self.query_str, 1)
        if message.input.id == "input-page" and message.value.isdigit():
            self.page_idx = int(message.value)

    def on_input_submitted(self, message: Input.Submitted) -> None:
        if message.input.id == "input-search" and message.value.strip():
            self.app.state.assistant.track_activity("search", search_query=message.value.strip())

    async def on_key(self, event: events.Key) -> None:
        table = self.query_one(DataTable)
        if event.key == "enter" and self.focused == table and table.row_count:
            row_selected = table.get_row_at(table.cursor_row)
            self.post_message(NavigateRequestedMessage(f"/product/{row_selected[0]}"))

    def validate_page_idx(self, page_idx):
        return max(1, min(page_idx, self.page_cnt))

    def watch_page_idx(self, old_page_idx, new_page_idx):
        if old_page_idx == new_page_idx:
            return
        self.query_one("#input-page").value = str(new_page_idx)
        self.update_results(self.query_str, new_page_idx)

    @work(exclusive=True)
    async def update_results(self, query: str, page: int) -> None:
        client = self.app.state.client
        try:
            if query.strip():
                # search endpoint is not paginated, page locally
                self._results = await endpoints.search_products(client, query, SEARCH_LIMIT)
                total = len(self._results)
                rows = self._results[(page - 1) * PAGE_SIZE : page * PAGE_SIZE]
            else:
                listing = await endpoints.list_products(
                    client, page=page, limit=PAGE_SIZE, approved=True
                )
                self._results = listing.products
                total = listing.total
                rows = listing.products
        except (ApiError, httpx.HTTPError) as e:
            self.notify(describe_error(e), title="Could not load products", severity="error")
            return

        table = self.query_one(DataTable)
        table.clear()
        table.add_rows(
            [p.id, p.name, p.category, format_price(p.price), p.stock] for p in rows
        )
        self.page_cnt = max(-(-total // PAGE_SIZE), 1)
        self.query_one("#label-total-page-cnt").content = f" / {self.page_cnt}"
        self.query_one("#input-page").validators = [Number(minimum=1, maximum=self.page_cnt)]
