from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import List

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Vertical
from textual.events import ScreenResume
from textual.widgets import Button, MarkdownViewer

from api.models import Order
from store.checkout import ORDERS_KEY
from utils.messages import NewOrderMessage
from utils.pure import format_price, generate_markdown_table, parse_shipping_details
from views.base_screen import BaseScreen

RECENT_ORDERS = 10


def orders_report_markdown(orders: List[Order], now: datetime) -> str:
    """Weekly summary, orders per status and the most recent orders."""
    week = [o for o in orders if o.date and o.date >= now - timedelta(days=7)]
    week_total = sum(o.total for o in week)
    customers = {o.user_id for o in week if o.user_id is not None}

    md = (
        "### Weekly Sales Summary (last 7 days)\n\n"
        f"- Orders: {len(week)}\n"
        f"- Distinct Customers: {len(customers)}\n"
        f"- Avg Amount per Customer: {format_price(week_total / len(customers) if customers else 0.0)}\n"
        f"- Total Sales Amount: {format_price(week_total)}\n\n"
    )

    by_status = Counter(o.status for o in orders)
    md += "### Orders by Status\n\n"
    md += generate_markdown_table(
        ["Status", "Count"], sorted(by_status.items()), ["l", "r"]
    ) or "No orders yet."

    rows = []
    for o in orders[:RECENT_ORDERS]:
        ship = parse_shipping_details(o.shipping_details)
        rows.append(
            [
                o.id,
                o.date.strftime("%Y-%m-%d %H:%M") if o.date else "-",
                ship.get("name") or "-",
                o.status,
                o.payment_method.upper(),
                format_price(o.total),
            ]
        )
    md += "\n\n### Recent Orders\n\n"
    md += generate_markdown_table(
        ["Order No", "Date", "Customer", "Status", "Payment", "Total"],
        rows,
        ["r", "l", "l", "l", "c", "r"],
    ) or "No orders yet."
    return md


class AdminOrdersScreen(BaseScreen):
    """
    Marketplace wide order insights for administrators.
    """

    def __init__(self) -> None:
        super().__init__()
        self._unsubscribe = None

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield MarkdownViewer(id="md-top", show_table_of_contents=False)
            yield Button("Refresh", id="btn-refresh", variant="primary")

    def on_mount(self) -> None:
        self._unsubscribe = self.app.state.cache.subscribe(
            ORDERS_KEY, lambda _: self.post_message(NewOrderMessage())
        )
        self.handle_reload()

    def on_unmount(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()

    @on(Button.Pressed, "#btn-refresh")
    @on(ScreenResume)
    @work(exclusive=True, group="report-load")
    async def handle_reload(self) -> None:
        self._render(await self.app.state.checkout.orders())

    @on(NewOrderMessage)
    def handle_new_order(self) -> None:
        self._render(list(self.app.state.cache.peek(ORDERS_KEY) or []))

    def _render(self, orders: List[Order]) -> None:
        md = orders_report_markdown(orders, datetime.now(timezone.utc))
        self.query_one("#md-top", MarkdownViewer).document.update(md)
