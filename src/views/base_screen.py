from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.events import Resize, ScreenResume
from textual.screen import Screen
from textual.widgets import Button, Footer, Header, Label, ListItem, ListView, Markdown

from utils.messages import (
    NavigateRequestedMessage,
    RouteChangedMessage,
    UserLoginMessage,
    UserLogoutMessage,
)
from utils.pure import generate_markdown_table
from views.modal_dialog import DialogModal, QuitDialogModal, ResizeScreenPromptModal

ROLE_TITLES = {"buyer": "Buyer", "seller": "Seller", "admin": "Administrator"}


def _item_id(path: str) -> str:
    return "list-menu-item-" + (path.strip("/").replace("/", "-") or "home")


class Sidebar(Container):
    def __init__(self) -> None:
        super().__init__()
        self._paths: dict[str, str] = {}

    def compose(self) -> ComposeResult:
        yield Label("User Info", id="label-info-1")
        yield Markdown("", id="md-userinfo")
        yield Button("Log out", id="btn-logout", variant="error")
        yield Label("Menu", id="label-info-2")
        yield ListView(id="list-menu")

    def on_mount(self):
        self.reload()

    @work(exclusive=True)
    async def reload(self) -> None:
        """Redraw user info and the role's menu."""
        user = await self.app.state.session.current_user()

        if user:
            table_rows = [
                ["User ID", user.id],
                ["Name", user.name or user.username],
                ["Role", ROLE_TITLES.get(user.role, user.role)],
            ]
            menu = self.app.MENUS.get(user.role, self.app.GUEST_MENU)
        else:
            table_rows = [["User", "Guest"]]
            menu = self.app.GUEST_MENU

        md_table_str = generate_markdown_table(None, table_rows, ["l", "l"])
        await self.query_one(Markdown).update(md_table_str)
        self.query_one("#btn-logout").display = user is not None

        list_menu: ListView = self.query_one("#list-menu")
        await list_menu.clear()
        self._paths = {_item_id(path): path for path in menu}
        await list_menu.extend(
            [ListItem(Label(title), id=_item_id(path)) for path, title in menu.items()]
        )
        self.highlight_item(self.app.state.router.current_path)

    async def on_list_view_selected(self, event: ListView.Selected):
        path = self._paths.get(event.item.id)
        if path and path != self.app.state.router.current_path:
            self.post_message(NavigateRequestedMessage(path))

    @on(Button.Pressed, "#btn-logout")
    @work()
    async def handle_logout(self):
        if not await self.app.push_screen_wait(
            DialogModal(
                "Are you sure you want to log out?",
                primary_text="Yes",
                secondary_text="No",
                tone="warning",
            )
        ):
            return

        self.post_message(UserLogoutMessage())

    def highlight_item(self, path: str | None):
        target = _item_id(path) if path else None
        for item in self.query_one("#list-menu").children:
            item.highlighted = item.id == target


class BaseScreen(Screen):
    """
    Inherited by all screens, contains common elements like
    headers, footers, sidebar, and keybindings.
    """

    BINDINGS = [
        Binding("ctrl+z", "quit", "Quit App", show=True),
    ]

    def __init__(self):
        super().__init__()

        self.configure()

    def configure(
        self,
        header_sub_title: str = "",
        show_sidebar: bool = True,
    ) -> None:
        """
        configure behavior of the base screen
        """
        self.app.title = "Bazaar"
        self.sub_title = header_sub_title or self.app.SCREEN_TITLES.get(
            type(self).__name__, ""
        )
        self._show_sidebar = show_sidebar

    def compose(self) -> ComposeResult:
        if self._show_sidebar:
            yield Sidebar()
        yield Header()
        yield Footer(show_command_palette=False)

    async def on_resize(self, event: Resize) -> None:
        min_width = 60
        min_height = 20
        if event.size.width < min_width or event.size.height < min_height:
            self.app.push_screen(ResizeScreenPromptModal(min_width, min_height))

    @on(ScreenResume)
    @on(UserLoginMessage)
    @on(RouteChangedMessage)
    def handle_session_change(self):
        if self._show_sidebar:
            self.query_one(Sidebar).reload()

    @work()
    async def action_quit(self):
        await self.app.push_screen_wait(QuitDialogModal())
