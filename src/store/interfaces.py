from typing import Literal, Protocol

Severity = Literal["information", "warning", "error"]


class Notifier(Protocol):
    """Anything that can show a transient notice; textual.app.App qualifies."""

    def notify(
        self,
        message: str,
        *,
        title: str = "",
        severity: Severity = "information",
    ) -> None: ...


class Navigator(Protocol):
    async def navigate(self, path: str) -> None: ...
