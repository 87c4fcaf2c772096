from math import ceil
from typing import List

from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.reactive import reactive
from textual.validation import Number
from textual.widgets import Button, DataTable, Input, Label, MarkdownViewer

from api.models import Order
from store.checkout import ORDERS_KEY
from utils.messages import NavigateRequestedMessage, NewOrderMessage
from utils.pure import format_price, order_detail_markdown, parse_shipping_details
from views.base_screen import BaseScreen

PAGE_SIZE = 5


class PastOrdersScreen(BaseScreen):
    """
    Buyers can browse their past orders with pagination and view details.

    Layout:
    - Markdown detail view at the top, showing selected order details.
    - Orders table below (newest first), 5 per page with Prev/Next.
    """

    BINDINGS = [
        Binding("enter", "open_order", "Open Order", show=True, key_display="⏎"),
    ]

    page_idx = reactive(1)
    page_cnt = reactive(1)

    def __init__(self) -> None:
        super().__init__()
        self._orders: List[Order] = []
        self._unsubscribe = None

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield MarkdownViewer(id="md-order-detail", show_table_of_contents=False)
            yield DataTable(id="table-orders")
        with Horizontal(id="hort-table-control"):
            yield Button("Refresh", id="btn-refresh")
            yield Button("<", id="btn-prev")
            yield Input("1", id="input-page", type="integer")
            yield Label(" / 1", id="label-total-page-cnt")
            yield Button(">", id="btn-next")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Order No", "Date", "Status", "Ship To", "Total")

        self._unsubscribe = self.app.state.cache.subscribe(
            ORDERS_KEY, lambda _: self.post_message(NewOrderMessage())
        )
        self.handle_refresh()

    def on_unmount(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()

    @on(Button.Pressed, "#btn-refresh")
    @on(ScreenResume)
    @work(exclusive=True, group="orders-load")
    async def handle_refresh(self):
        self._orders = await self.app.state.checkout.orders()
        self._render_page()

    @on(NewOrderMessage)
    def handle_new_order(self):
        # the list entry was refetched already, draw what is cached
        self._orders = list(self.app.state.cache.peek(ORDERS_KEY) or [])
        self._render_page()

    @on(DataTable.RowHighlighted)
    def handle_row_highlight(self) -> None:
        ono = self._cursor_order_id()
        if ono is None:
            self._render_detail_md(order_detail_markdown(None, []))
        else:
            self._load_and_render_detail(ono)

    def _cursor_order_id(self) -> int | None:
        table = self.query_one(DataTable)
        if table.row_count == 0 or table.cursor_row is None:
            return None
        return int(table.get_row_at(table.cursor_row)[0])

    def action_open_order(self) -> None:
        ono = self._cursor_order_id()
        if ono is not None:
            self.post_message(NavigateRequestedMessage(f"/order/{ono}"))

    def validate_page_idx(self, page_idx: int) -> int:
        return max(1, min(page_idx, self.page_cnt))

    def watch_page_idx(self, old: int, new: int) -> None:
        if old == new:
            return
        self.query_one("#input-page", Input).value = str(new)
        self._render_page()

    def _refresh_buttons(self) -> None:
        self.query_one("#btn-prev", Button).disabled = self.page_idx <= 1
        self.query_one("#btn-next", Button).disabled = self.page_idx >= self.page_cnt
        self.query_one("#input-page", Input).validators = [
            Number(minimum=1, maximum=self.page_cnt)
        ]

    @on(Button.Pressed, "#btn-prev")
    def handle_prev(self) -> None:
        self.page_idx -= 1

    @on(Button.Pressed, "#btn-next")
    def handle_next(self) -> None:
        self.page_idx += 1

    @on(Input.Changed, "#input-page")
    def handle_page_input(self, ev: Input.Changed) -> None:
        if ev.value and ev.value.isdigit():
            self.page_idx = int(ev.value)

    def _render_page(self) -> None:
        self.page_cnt = max(ceil(len(self._orders) / PAGE_SIZE), 1)
        self.page_idx = self.validate_page_idx(self.page_idx)
        start = (self.page_idx - 1) * PAGE_SIZE
        page = self._orders[start : start + PAGE_SIZE]

        table = self.query_one(DataTable)
        table.clear()
        for o in page:
            ship = parse_shipping_details(o.shipping_details)
            table.add_row(
                o.id,
                o.date.strftime("%Y-%m-%d") if o.date else "-",
                o.status,
                ship.get("city") or ship.get("address") or "-",
                format_price(o.total),
            )
        self.query_one("#label-total-page-cnt", Label).content = f" / {self.page_cnt}"
        self._refresh_buttons()

        if page:
            table.cursor_coordinate = (0, 0)
            self._load_and_render_detail(page[0].id)
        else:
            self._render_detail_md("### You have not placed any orders yet.")

    @work(exclusive=True, group="orders-detail")
    async def _load_and_render_detail(self, ono: int) -> None:
        order, lines = await self.app.state.checkout.order_detail(ono)
        self._render_detail_md(order_detail_markdown(order, lines))

    def _render_detail_md(self, md: str) -> None:
        self.query_one("#md-order-detail", MarkdownViewer).document.update(md)
