from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.widgets import Button, Input, Markdown, MarkdownViewer

from utils.pure import format_price
from views.base_screen import BaseScreen

ROLE_NAMES = {"user": "You", "assistant": "Assistant"}


class AssistantScreen(BaseScreen):
    """
    Chat with the shopping assistant, with personalized picks on the side.
    """

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Horizontal(id="hort-assistant"):
            with Vertical(id="vert-chat"):
                yield MarkdownViewer(id="md-chat", show_table_of_contents=False)
                with Horizontal(id="hort-chat-input"):
                    yield Input(placeholder="Ask me anything about products...", id="input-chat")
                    yield Button("Send", id="btn-send", variant="primary")
                    yield Button("Clear", id="btn-clear")
            yield Markdown("", id="md-recommendations")

    def on_mount(self) -> None:
        self.query_one("#input-chat").focus()
        self.render_conversation()

    @on(ScreenResume)
    @work(exclusive=True, group="recommendations")
    async def load_recommendations(self) -> None:
        picks = await self.app.state.assistant.fetch_recommendations()
        md = "### Recommended for You\n\n"
        if picks:
            md += "\n".join(f"- **{p.name}** {format_price(p.price)} (ID {p.id})" for p in picks)
        else:
            md += "Browse a few products to get recommendations."
        await self.query_one("#md-recommendations", Markdown).update(md)

    def render_conversation(self, pending: str = "") -> None:
        """Draw the conversation; ``pending`` is a message still waiting for its reply."""
        history = self.app.state.assistant.conversation_history
        if not history and not pending:
            md = "### Shopping Assistant\n\nHi! How can I help you today?"
        else:
            md = "\n\n".join(f"**{ROLE_NAMES[m.role]}:** {m.content}" for m in history)
        if pending:
            md += f"\n\n**You:** {pending}\n\n*Assistant is typing...*"
        self.query_one("#md-chat", MarkdownViewer).document.update(md)

    @on(Input.Submitted, "#input-chat")
    @on(Button.Pressed, "#btn-send")
    @work(exclusive=True, group="chat")
    async def handle_send(self) -> None:
        inp = self.query_one("#input-chat", Input)
        text = inp.value.strip()
        if not text:
            return
        inp.value = ""

        self.render_conversation(pending=text)
        self.query_one("#btn-send").disabled = True
        try:
            await self.app.state.assistant.send_message(text)
        finally:
            self.query_one("#btn-send").disabled = False
        self.render_conversation()

    @on(Button.Pressed, "#btn-clear")
    def handle_clear(self) -> None:
        self.app.state.assistant.clear_conversation()
        self.render_conversation()
