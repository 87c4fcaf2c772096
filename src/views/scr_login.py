import httpx
from textual import on, work
from textual.app import ComposeResult
from textual.containers import Container, Horizontal, Vertical
from textual.events import Key
from textual.widgets import Button, Input, Label, Select, TabbedContent, TabPane

from api.errors import ApiError, describe_error
from api.models import User
from store.guard import home_for
from utils.messages import NavigateRequestedMessage, UserLoginMessage
from views.base_screen import BaseScreen

SIGNUP_ROLES = [("Buyer", "buyer"), ("Seller", "seller")]


class LoginScreen(BaseScreen):
    """
    Passwordless login: a one time code is mailed to the user and verified
    here. Unknown emails continue on the sign up tab.
    """

    def __init__(self):
        super().__init__()
        self.configure(header_sub_title="Login", show_sidebar=False)

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with TabbedContent(id="super-tab-loginscr"):
            with TabPane("Login", id="tab-login"):
                with Vertical(id="div-login"):
                    yield Label("Email")
                    yield Input(placeholder="user@example.com", id="input-login-email")
                    yield Label("One Time Code")
                    yield Input(
                        placeholder="123456",
                        id="input-login-otp",
                        type="integer",
                        max_length=6,
                        disabled=True,
                    )
                    with Horizontal(id="div-login-btns"):
                        yield Button("Go Back", id="btn-back")
                        yield Button("Send Code", id="btn-send-otp")
                        yield Button(
                            "Verify", id="btn-login", variant="primary", disabled=True
                        )

            with TabPane("Sign up", id="tab-signup"):
                with Vertical(id="div-reg"):
                    yield Label("Username")
                    yield Input(placeholder="janedoe", id="input-reg-username")
                    yield Label("Name")
                    yield Input(placeholder="Jane Doe", id="input-reg-name")
                    yield Label("Email")
                    yield Input(placeholder="user@example.com", id="input-reg-email")
                    yield Label("Account Type")
                    yield Select(
                        SIGNUP_ROLES, value="buyer", allow_blank=False, id="select-reg-role"
                    )
                    with Container(id="div-reg-btns"):
                        yield Button("Register", id="btn-reg", variant="primary")

    def on_mount(self):
        self.query_one("#input-login-email").focus()

    def on_key(self, event: Key) -> None:
        if event.key != "enter":
            return
        if self.focused == self.query_one("#input-login-email"):
            self.handle_send_otp()
        elif self.focused == self.query_one("#input-login-otp"):
            self.handle_login_submit()

    @on(Button.Pressed, "#btn-send-otp")
    @work(exclusive=True)
    async def handle_send_otp(self) -> None:
        email = self.query_one("#input-login-email", Input).value.strip()
        if "@" not in email:
            self.notify("Please enter a valid email.", severity="error")
            self.query_one("#input-login-email", Input).add_class("-invalid")
            return

        try:
            await self.app.state.session.request_otp(email)
        except (ApiError, httpx.HTTPError) as e:
            self.notify(describe_error(e), title="Could not send code", severity="error")
            return

        self.notify(f"A login code was sent to {email}.")
        input_otp = self.query_one("#input-login-otp", Input)
        input_otp.disabled = False
        self.query_one("#btn-login").disabled = False
        self.query_one("#btn-send-otp", Button).label = "Resend Code"
        input_otp.focus()

    @on(Button.Pressed, "#btn-login")
    @work(exclusive=True)
    async def handle_login_submit(self) -> None:
        email = self.query_one("#input-login-email", Input).value.strip()
        otp = self.query_one("#input-login-otp", Input).value.strip()

        if not email or not otp:
            self.notify("Email or code cannot be empty!", severity="error")
            return

        try:
            result = await self.app.state.session.verify_otp(email, otp)
        except (ApiError, httpx.HTTPError) as e:
            self.notify(describe_error(e), title="Login failed", severity="error")
            input_otp = self.query_one("#input-login-otp", Input)
            input_otp.value = ""
            input_otp.focus()
            input_otp.add_class("-invalid")
            return

        if result.is_new_user or result.user is None:
            self.notify(result.message or "Welcome! Finish signing up to continue.")
            self.get_child_by_type(TabbedContent).active = "tab-signup"
            self.query_one("#input-reg-email", Input).value = result.email or email
            self.query_one("#input-reg-username", Input).focus()
            return

        await self.finish_login(result.user)

    @on(Button.Pressed, "#btn-reg")
    @work(exclusive=True)
    async def handle_registration_submit(self) -> None:
        username = self.query_one("#input-reg-username", Input).value.strip()
        name = self.query_one("#input-reg-name", Input).value.strip()
        email = self.query_one("#input-reg-email", Input).value.strip()
        role = self.query_one("#select-reg-role", Select).value

        if not username or not email:
            self.notify("Make sure username and email are filled.", severity="error")
            return

        try:
            user = await self.app.state.session.register(username, email, name or None, role)
        except (ApiError, httpx.HTTPError) as e:
            self.notify(describe_error(e), title="Registration failed", severity="error")
            return

        self.notify("Registration successful.")
        await self.finish_login(user)

    async def finish_login(self, user: User) -> None:
        self.notify(f"Hello {user.name or user.username}!")
        await self.app.state.cart.migrate_guest_cart()
        self.app.post_message(UserLoginMessage())
        self.post_message(NavigateRequestedMessage(home_for(user.role)))

    @on(Button.Pressed, "#btn-back")
    def handle_back(self) -> None:
        self.post_message(NavigateRequestedMessage("/"))
