"""Single active connection holder and its session state notifications."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Sequence

from .drivers import Connection
from .errors import ConnectionCloseError, StateError, vendor_code_of
from .loader import DriverLoader
from .models import ConnectionProfile, StatementResult
from .query import CancellationCheck, execute_batch, execute_statement

LOG = logging.getLogger(__name__)

SessionListener = Callable[["SessionState"], None]


@dataclass(frozen=True, slots=True)
class SessionState:
    """Snapshot of the connection slot delivered to listeners."""

    profile: ConnectionProfile | None
    connected: bool
    changed_at: datetime
    status: str = "Disconnected"


class ActiveConnection:
    """One physical database session opened for a profile."""

    def __init__(self, profile: ConnectionProfile, connection: Connection) -> None:
        self._profile = profile
        self._connection = connection
        self._connected_at = datetime.now(tz=timezone.utc)

    @property
    def profile(self) -> ConnectionProfile:
        return self._profile

    @property
    def connected_at(self) -> datetime:
        return self._connected_at

    @property
    def raw(self) -> Connection:
        return self._connection

    def execute(self, sql: str, row_limit: int) -> StatementResult:
        return execute_statement(self._connection, sql, row_limit)

    def execute_batch(
        self,
        statements: Sequence[str],
        row_limit: int,
        should_cancel: CancellationCheck | None = None,
    ) -> list[StatementResult]:
        return execute_batch(self._connection, statements, row_limit, should_cancel)

    def close(self) -> None:
        try:
            self._connection.close()
        except Exception as exc:
            raise ConnectionCloseError(
                f"Failed to close connection '{self._profile.name}': {exc}",
                vendor_code=vendor_code_of(exc),
            ) from exc


class _Pending:
    """Slot marker while a connection is being opened."""

    def __init__(self, profile: ConnectionProfile) -> None:
        self.profile = profile


class ConnectionManager:
    """Owns at most one :class:`ActiveConnection`.

    The slot is checked and exchanged inside a short critical section; the
    driver is never called while the lock is held, so callers fail fast
    instead of queueing behind a slow connect.
    """

    def __init__(self, loader: DriverLoader) -> None:
        self._loader = loader
        self._lock = threading.Lock()
        self._slot: ActiveConnection | _Pending | None = None
        self._listeners: set[SessionListener] = set()

    @property
    def active(self) -> ActiveConnection | None:
        slot = self._slot
        return slot if isinstance(slot, ActiveConnection) else None

    @property
    def is_connected(self) -> bool:
        return self.active is not None

    @property
    def state(self) -> SessionState:
        slot = self._slot
        if isinstance(slot, ActiveConnection):
            return SessionState(profile=slot.profile, connected=True, changed_at=slot.connected_at, status="Connected")
        if isinstance(slot, _Pending):
            return SessionState(profile=slot.profile, connected=False, changed_at=_now(), status="Connecting")
        return SessionState(profile=None, connected=False, changed_at=_now())

    def establish(
        self,
        profile: ConnectionProfile,
        *,
        user_name: str | None = None,
        password: str | None = None,
    ) -> ActiveConnection:
        """Open a connection for ``profile`` and store it in the slot."""

        pending = _Pending(profile)
        with self._lock:
            if self._slot is not None:
                raise StateError("Current connection exists: must disconnect first")
            self._slot = pending
        self._notify()
        try:
            raw = self._loader.open_connection(profile, user_name=user_name, password=password)
        except BaseException:
            with self._lock:
                if self._slot is pending:
                    self._slot = None
            self._notify()
            raise
        active = ActiveConnection(profile, raw)
        with self._lock:
            self._slot = active
        LOG.info("Connection established", extra={"profile": profile.name})
        self._notify()
        return active

    def disconnect(self) -> None:
        """Close the held connection and clear the slot."""

        with self._lock:
            slot = self._slot
            if not isinstance(slot, ActiveConnection):
                raise StateError("No current connection: must establish first")
            self._slot = None
        try:
            slot.close()
        finally:
            LOG.info("Connection closed", extra={"profile": slot.profile.name})
            self._notify()

    def execute(self, sql: str, row_limit: int) -> StatementResult:
        return self._require_active().execute(sql, row_limit)

    def execute_batch(
        self,
        statements: Sequence[str],
        row_limit: int,
        should_cancel: CancellationCheck | None = None,
    ) -> list[StatementResult]:
        return self._require_active().execute_batch(statements, row_limit, should_cancel)

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Subscribe to slot changes; returns an unsubscribe handle."""

        self._listeners.add(listener)
        listener(self.state)

        def _unsubscribe() -> None:
            self._listeners.discard(listener)

        return _unsubscribe

    def _require_active(self) -> ActiveConnection:
        active = self.active
        if active is None:
            raise StateError("No connection: establish one before executing statements")
        return active

    def _notify(self) -> None:
        state = self.state
        for listener in tuple(self._listeners):
            try:
                listener(state)
            except Exception:
                LOG.exception("Session listener failed")


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


__all__ = [
    "ActiveConnection",
    "ConnectionManager",
    "SessionListener",
    "SessionState",
]
