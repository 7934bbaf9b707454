"""Command palette providers for core app features."""

from __future__ import annotations

from textual.command import DiscoveryHit, Hit, Hits, Provider
from textual.types import IgnoreReturnCallbackType

from .models import ConnectionProfile


class ProfileConnectProvider(Provider):
    """Expose stored connection profiles to the command palette."""

    async def search(self, query: str) -> Hits:
        matcher = self.matcher(query)
        for profile in self._profiles():
            match = matcher.match(profile.name)
            if match > 0:
                yield Hit(
                    score=match,
                    match_display=f"Connect to: {matcher.highlight(profile.name)}",
                    command=self._build_callback(profile.name),
                    help="Open a connection with this profile.",
                )

    async def discover(self) -> Hits:
        for profile in self._profiles():
            yield DiscoveryHit(
                display=f"Connect to: {profile.name}",
                command=self._build_callback(profile.name),
                help="Open a connection with this profile.",
            )

    def _profiles(self) -> tuple[ConnectionProfile, ...]:
        profiles = getattr(self.app, "profiles", None)
        if profiles is None:
            return ()
        return tuple(profiles)

    def _build_callback(self, name: str) -> IgnoreReturnCallbackType:
        async def _run() -> None:
            connector = getattr(self.app, "connect_profile", None)
            if connector is None:
                return
            connector(name)

        return _run


class DisconnectProvider(Provider):
    """Expose a disconnect action for the active connection."""

    _LABEL = "Disconnect"

    async def search(self, query: str) -> Hits:
        if not self._connected:
            return
        matcher = self.matcher(query)
        score = matcher.match(self._LABEL)
        if score > 0:
            yield Hit(
                score=score,
                match_display=matcher.highlight(self._LABEL),
                command=self._build_callback(),
                help="Close the current connection (Ctrl+D).",
            )

    async def discover(self) -> Hits:
        if not self._connected:
            return
        yield DiscoveryHit(
            display=self._LABEL,
            command=self._build_callback(),
            help="Close the current connection (Ctrl+D).",
        )

    @property
    def _connected(self) -> bool:
        manager = getattr(self.app, "connection_manager", None)
        return bool(manager is not None and manager.is_connected)

    def _build_callback(self) -> IgnoreReturnCallbackType:
        async def _run() -> None:
            disconnect = getattr(self.app, "action_disconnect", None)
            if disconnect is None:
                return
            disconnect()

        return _run


__all__ = ["DisconnectProvider", "ProfileConnectProvider"]
