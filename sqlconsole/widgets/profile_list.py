"""Sidebar listing the stored connection profiles."""

from __future__ import annotations

from typing import Callable, Sequence

from textual import events, on
from textual.app import ComposeResult
from textual.containers import Container
from textual.widgets import Label, ListItem, ListView, Static

from sqlconsole.models import ConnectionProfile
from sqlconsole.session import ConnectionManager, SessionState


class ProfileList(Container):
    """Profiles in display order; Enter or a profile hotkey connects."""

    DEFAULT_CSS = """
    ProfileList {
        width: 30;
        min-width: 22;
        border-right: solid $surface-darken-1;
        padding: 1;
        height: 1fr;
        background: $surface-darken-2;
    }

    ProfileList .sidebar-heading {
        text-style: bold;
        margin-bottom: 1;
    }

    #profile-list {
        height: 1fr;
        border: round $primary 30%;
    }

    #profile-list .active {
        text-style: bold;
    }

    #profile-summary {
        padding-top: 1;
        border-top: solid $surface-darken-1;
        color: $text-muted;
        min-height: 4;
    }
    """

    def __init__(
        self,
        profiles: Sequence[ConnectionProfile],
        connection_manager: ConnectionManager,
    ) -> None:
        super().__init__(id="profile-sidebar")
        self._profiles = list(profiles)
        self._connection_manager = connection_manager
        self._list_view: ListView | None = None
        self._summary: Static | None = None
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def profiles(self) -> tuple[ConnectionProfile, ...]:
        return tuple(self._profiles)

    def compose(self) -> ComposeResult:
        yield Static("Connections", classes="sidebar-heading")
        self._list_view = ListView(*self._build_items(), id="profile-list")
        yield self._list_view
        self._summary = Static("", id="profile-summary")
        yield self._summary

    async def on_mount(self) -> None:
        self._unsubscribe = self._connection_manager.subscribe(self._handle_session_update)

    def on_unmount(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    async def reload(self, profiles: Sequence[ConnectionProfile]) -> None:
        self._profiles = list(profiles)
        if self._list_view is None:
            return
        await self._list_view.clear()
        await self._list_view.extend(self._build_items())

    def profile_for_hotkey(self, key: str) -> ConnectionProfile | None:
        wanted = key.upper()
        for profile in self._profiles:
            if profile.hotkey is not None and profile.hotkey.upper() == wanted:
                return profile
        return None

    def on_key(self, event: events.Key) -> None:
        if event.character is None or len(event.character) != 1 or not event.character.isprintable():
            return
        profile = self.profile_for_hotkey(event.character)
        if profile is None:
            return
        self._request_connect(profile.name)
        event.stop()

    @on(ListView.Selected)
    def _handle_profile_selected(self, event: ListView.Selected) -> None:
        item = event.item
        if isinstance(item, _ProfileListItem):
            self._request_connect(item.profile_name)
            event.stop()

    def _request_connect(self, name: str) -> None:
        connector = getattr(self.app, "connect_profile", None)
        if connector is None:
            return
        connector(name)

    def _build_items(self) -> list[ListItem]:
        return [_ProfileListItem(profile) for profile in self._profiles]

    def _handle_session_update(self, state: SessionState) -> None:
        marshal = getattr(self.app, "run_on_ui_thread", None)
        if marshal is None:
            self._render_state(state)
            return
        marshal(lambda: self._render_state(state))

    def _render_state(self, state: SessionState) -> None:
        active = state.profile.name if state.profile is not None and state.connected else None
        if self._list_view is not None:
            for item in self._list_view.query(_ProfileListItem):
                item.set_class(item.profile_name == active, "active")
        if self._summary is None:
            return
        if state.profile is None:
            self._summary.update("Not connected.")
            return
        profile = state.profile
        lines = [
            f"Profile: {profile.name}",
            f"URL: {profile.connection_url or '-'}",
            f"Driver: {profile.driver_class_name or 'registered'}",
            f"Status: {state.status}",
        ]
        self._summary.update("\n".join(lines))


class _ProfileListItem(ListItem):
    def __init__(self, profile: ConnectionProfile) -> None:
        label = f"[{profile.hotkey}] {profile.name}" if profile.hotkey else profile.name
        super().__init__(Label(label, markup=False))
        self.profile_name = profile.name


__all__ = ["ProfileList"]
