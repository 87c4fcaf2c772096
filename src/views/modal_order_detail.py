from textual import events, on
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, MarkdownViewer

from utils.messages import NavigateRequestedMessage
from utils.pure import order_detail_markdown


class OrderDetailModal(ModalScreen[None]):
    """
    Confirmation view of a single order, opened after checkout or from the
    past orders list.
    """

    def __init__(self, order_id: int) -> None:
        super().__init__()
        self._order_id = order_id

    def compose(self) -> ComposeResult:
        with Vertical():
            yield MarkdownViewer("", show_table_of_contents=False)
            with Horizontal():
                yield Button("Close", id="btn-quit")
                yield Button("All Orders", id="btn-orders", variant="primary")
                yield Button("Continue Shopping", id="btn-shop", variant="success")

    async def on_mount(self):
        order, lines = await self.app.state.checkout.order_detail(self._order_id)
        md = order_detail_markdown(order, lines)
        if order is None:
            md = f"### Order #{self._order_id} could not be loaded."
        await self.query_one(MarkdownViewer).document.update(md)
        self.query_one("#btn-quit").focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss()

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self):
        self.dismiss()

    @on(Button.Pressed, "#btn-orders")
    def handle_orders(self):
        self.post_message(NavigateRequestedMessage("/orders"))

    @on(Button.Pressed, "#btn-shop")
    def handle_shop(self):
        self.post_message(NavigateRequestedMessage("/"))
