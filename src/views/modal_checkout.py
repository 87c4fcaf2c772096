from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Grid, Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, MarkdownViewer

from api.models import ShippingDetails
from store.checkout import REQUIRED_SHIPPING_FIELDS
from utils.config import settings
from utils.pure import cart_summary_markdown
from views.modal_dialog import DialogModal

# field name, label, placeholder
SHIPPING_INPUTS = [
    ("name", "Full Name", "Jane Doe"),
    ("email", "Email", "jane@example.com"),
    ("phone", "Phone", "9876543210"),
    ("address", "Address", "12 MG Road"),
    ("city", "City", "Bengaluru"),
    ("state", "State", "Karnataka"),
    ("zip_code", "PIN Code", "560001"),
    ("notes", "Delivery Notes", "Optional"),
]


class CheckoutModal(ModalScreen[bool]):
    """
    A modal screen for check out, including a table of all items and the
    shipping form. Cash on delivery is the only payment offered here.
    Dismissed with False when the buyer backs out; a placed order moves on
    to its confirmation view instead.
    """

    def compose(self) -> ComposeResult:
        with Vertical():
            yield MarkdownViewer("", show_table_of_contents=False)
            with VerticalScroll(id="vertscroll-shipping"):
                yield Label("Shipping Details")
                with Grid(id="grid-shipping"):
                    for field_name, label, placeholder in SHIPPING_INPUTS:
                        required = "*" if field_name in REQUIRED_SHIPPING_FIELDS else ""
                        yield Label(f"{label}{required}")
                        yield Input(placeholder=placeholder, id=f"input-{field_name}")
            yield Label("Payment: Cash on Delivery", id="label-payment")
            with Horizontal():
                yield Button("Go Back", id="btn-quit")
                yield Button("Place Order", id="btn-submit", variant="primary")

    async def on_mount(self):
        state = self.app.state
        cart_items = await state.cart.items()
        md, _ = cart_summary_markdown(cart_items, settings.SHIPPING_FEE)
        await self.query_one(MarkdownViewer).document.update(md)

        user = await state.session.current_user()
        if user:
            self.query_one("#input-name", Input).value = user.name or ""
            self.query_one("#input-email", Input).value = user.email or ""
        self.query_one("#input-phone").focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(False)

    def _shipping_details(self) -> ShippingDetails:
        values = {
            field_name: self.query_one(f"#input-{field_name}", Input).value.strip()
            for field_name, _, _ in SHIPPING_INPUTS
        }
        return ShippingDetails(**values)

    @on(Button.Pressed, "#btn-submit")
    @work(exclusive=True)
    async def handle_submit(self):
        shipping = self._shipping_details()

        for field_name in REQUIRED_SHIPPING_FIELDS:
            inp = self.query_one(f"#input-{field_name}", Input)
            inp.set_class(not inp.value.strip(), "-invalid")

        if not await self.app.push_screen_wait(
            DialogModal(
                "Place order? This cannot be undone.",
                primary_text="Yes",
                secondary_text="No",
                tone="positive",
            )
        ):
            return

        # validation notices and the confirmation view come from the flow
        await self.app.state.checkout.place_order(shipping, "cod")

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self):
        self.dismiss(False)
