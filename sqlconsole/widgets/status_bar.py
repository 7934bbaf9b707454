"""Status bar widget that mirrors the connection slot."""

from __future__ import annotations

from typing import Callable

from textual.widgets import Static

from sqlconsole.session import ConnectionManager, SessionState


class StatusBar(Static):
    """Compact status strip rendered above Textual's footer."""

    DEFAULT_CSS = """
    StatusBar {
        height: 1;
        padding: 0 1;
        background: $surface-darken-3;
        color: $text;
    }
    """

    def __init__(self, connection_manager: ConnectionManager) -> None:
        super().__init__("", id="status-bar")
        self._connection_manager = connection_manager
        self._unsubscribe: Callable[[], None] | None = None
        self._message = ""
        self._state: SessionState | None = None
        self._text = ""

    async def on_mount(self) -> None:
        self._unsubscribe = self._connection_manager.subscribe(self._handle_session_update)

    def on_unmount(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    @property
    def text(self) -> str:
        return self._text

    def show_message(self, message: str) -> None:
        """Replace the trailing activity message."""

        self._message = message
        self._refresh_text()

    def _handle_session_update(self, state: SessionState) -> None:
        marshal = getattr(self.app, "run_on_ui_thread", None)
        if marshal is None:
            self._apply_state(state)
            return
        marshal(lambda: self._apply_state(state))

    def _apply_state(self, state: SessionState) -> None:
        self._state = state
        self._refresh_text()

    def _refresh_text(self) -> None:
        state = self._state
        parts: list[str] = []
        if state is None or state.profile is None:
            parts.append("Not connected")
        else:
            parts.append(f"Connection: {state.profile.name}")
            parts.append(f"Status: {state.status}")
            if state.connected:
                parts.append(f"Since: {state.changed_at.astimezone().strftime('%H:%M:%S')}")
        if self._message:
            parts.append(self._message.splitlines()[0][:120])
        self._text = " | ".join(parts)
        self.update(self._text)


__all__ = ["StatusBar"]
