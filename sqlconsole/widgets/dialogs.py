"""Modal prompts used by the application."""

from __future__ import annotations

from textual import on
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label

_DIALOG_CSS = """
{name} {{
    align: center middle;
}}

{name} > Vertical {{
    width: 60;
    height: auto;
    padding: 1 2;
    border: thick $primary;
    background: $surface;
}}

{name} Input {{
    margin-bottom: 1;
}}

{name} .dialog-buttons {{
    height: auto;
    align-horizontal: right;
}}

{name} .dialog-buttons > Button {{
    margin-left: 1;
}}
"""


class CredentialsScreen(ModalScreen[tuple[str, str] | None]):
    """Asks for user name and password; dismisses with ``None`` on cancel."""

    DEFAULT_CSS = _DIALOG_CSS.format(name="CredentialsScreen")
    BINDINGS = [("escape", "cancel", "Cancel")]

    def __init__(self, profile_name: str, user_name: str | None = None) -> None:
        super().__init__()
        self._profile_name = profile_name
        self._user_name = user_name or ""

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Label(f"Log in to {self._profile_name}", markup=False)
            yield Input(value=self._user_name, placeholder="User name", id="user-name")
            yield Input(placeholder="Password", password=True, id="password")
            with Horizontal(classes="dialog-buttons"):
                yield Button("Cancel", id="cancel")
                yield Button("Connect", id="connect", variant="primary")

    def on_mount(self) -> None:
        target = "#password" if self._user_name else "#user-name"
        self.query_one(target, Input).focus()

    @on(Input.Submitted)
    def _submit_from_input(self) -> None:
        self._accept()

    @on(Button.Pressed, "#connect")
    def _submit_from_button(self) -> None:
        self._accept()

    @on(Button.Pressed, "#cancel")
    def _cancel_from_button(self) -> None:
        self.dismiss(None)

    def action_cancel(self) -> None:
        self.dismiss(None)

    def _accept(self) -> None:
        user = self.query_one("#user-name", Input).value
        password = self.query_one("#password", Input).value
        self.dismiss((user, password))


class FileNameScreen(ModalScreen[str | None]):
    """Prompts for a SQL file name; lists existing names as a hint."""

    DEFAULT_CSS = _DIALOG_CSS.format(name="FileNameScreen")
    BINDINGS = [("escape", "cancel", "Cancel")]

    def __init__(self, title: str, existing: list[str] | None = None) -> None:
        super().__init__()
        self._title = title
        self._existing = existing or []

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Label(self._title, markup=False)
            if self._existing:
                yield Label("Existing: " + ", ".join(self._existing), markup=False)
            yield Input(placeholder="File name", id="file-name")
            with Horizontal(classes="dialog-buttons"):
                yield Button("Cancel", id="cancel")
                yield Button("OK", id="ok", variant="primary")

    def on_mount(self) -> None:
        self.query_one("#file-name", Input).focus()

    @on(Input.Submitted)
    def _submit_from_input(self) -> None:
        self._accept()

    @on(Button.Pressed, "#ok")
    def _submit_from_button(self) -> None:
        self._accept()

    @on(Button.Pressed, "#cancel")
    def _cancel_from_button(self) -> None:
        self.dismiss(None)

    def action_cancel(self) -> None:
        self.dismiss(None)

    def _accept(self) -> None:
        name = self.query_one("#file-name", Input).value.strip()
        self.dismiss(name or None)


__all__ = ["CredentialsScreen", "FileNameScreen"]
