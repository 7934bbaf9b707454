"""Tests for the connection manager."""

from __future__ import annotations

import sqlite3
import threading
from typing import Any

import pytest

from sqlconsole.drivers import DriverRegistry, SqliteDriver
from sqlconsole.errors import ConnectionCloseError, ConnectionOpenError, StateError
from sqlconsole.loader import DriverLoader
from sqlconsole.models import ConnectionProfile, RowSet, UpdateCount
from sqlconsole.session import ConnectionManager, SessionState

LITE = ConnectionProfile(name="Lite", connection_url="sqlite::memory:", auto_login=True)


class _SlowDriver:
    """Blocks inside connect until released."""

    def __init__(self) -> None:
        self.entered = threading.Event()
        self.release = threading.Event()

    def accepts_url(self, url: str) -> bool:
        return url.startswith("slow:")

    def connect(self, url: str, user: str | None, password: str | None) -> sqlite3.Connection:
        self.entered.set()
        self.release.wait(5)
        return sqlite3.connect(":memory:", check_same_thread=False)


class _UnclosableConnection:
    def cursor(self) -> Any:
        raise AssertionError("not used")

    def close(self) -> None:
        raise sqlite3.ProgrammingError("close failed")


class _UnclosableDriver:
    def accepts_url(self, url: str) -> bool:
        return url.startswith("sticky:")

    def connect(self, url: str, user: str | None, password: str | None) -> _UnclosableConnection:
        return _UnclosableConnection()


@pytest.fixture
def manager() -> ConnectionManager:
    return ConnectionManager(DriverLoader(DriverRegistry([SqliteDriver()])))


def test_establish_execute_disconnect(manager: ConnectionManager) -> None:
    active = manager.establish(LITE)

    assert manager.is_connected
    assert active.profile == LITE
    assert manager.execute("CREATE TABLE t (id INTEGER)", 10) == UpdateCount(-1)
    results = manager.execute_batch(["INSERT INTO t VALUES (1)", "SELECT id FROM t"], 10)
    assert results[0] == UpdateCount(1)
    assert isinstance(results[1], RowSet)

    manager.disconnect()

    assert not manager.is_connected
    assert manager.active is None


def test_second_establish_fails_with_state_error(manager: ConnectionManager) -> None:
    manager.establish(LITE)

    with pytest.raises(StateError, match="must disconnect first"):
        manager.establish(LITE)

    manager.disconnect()


def test_disconnect_without_connection_fails(manager: ConnectionManager) -> None:
    with pytest.raises(StateError, match="must establish first"):
        manager.disconnect()


def test_execute_without_connection_fails(manager: ConnectionManager) -> None:
    with pytest.raises(StateError):
        manager.execute("SELECT 1", 10)
    with pytest.raises(StateError):
        manager.execute_batch(["SELECT 1"], 10)


def test_failed_establish_leaves_slot_empty(manager: ConnectionManager) -> None:
    broken = ConnectionProfile(name="Broken", connection_url="nodriver:db")

    with pytest.raises(ConnectionOpenError):
        manager.establish(broken)

    assert not manager.is_connected
    manager.establish(LITE)
    manager.disconnect()


def test_concurrent_establish_fails_fast_while_pending() -> None:
    slow = _SlowDriver()
    manager = ConnectionManager(DriverLoader(DriverRegistry([slow, SqliteDriver()])))
    errors: list[BaseException] = []

    def _connect() -> None:
        try:
            manager.establish(ConnectionProfile(name="Slow", connection_url="slow:db"))
        except BaseException as exc:  # pragma: no cover - reported below
            errors.append(exc)

    worker = threading.Thread(target=_connect)
    worker.start()
    assert slow.entered.wait(5)

    with pytest.raises(StateError):
        manager.establish(LITE)

    assert manager.state.status == "Connecting"
    slow.release.set()
    worker.join(5)
    assert errors == []
    assert manager.active is not None and manager.active.profile.name == "Slow"
    manager.disconnect()


def test_close_failure_clears_slot_and_reports() -> None:
    manager = ConnectionManager(DriverLoader(DriverRegistry([_UnclosableDriver()])))
    manager.establish(ConnectionProfile(name="Sticky", connection_url="sticky:db"))

    with pytest.raises(ConnectionCloseError):
        manager.disconnect()

    assert not manager.is_connected


def test_listeners_see_every_transition(manager: ConnectionManager) -> None:
    states: list[SessionState] = []

    unsubscribe = manager.subscribe(states.append)
    manager.establish(LITE)
    manager.disconnect()
    unsubscribe()
    manager.establish(LITE)
    manager.disconnect()

    assert [state.status for state in states] == ["Disconnected", "Connecting", "Connected", "Disconnected"]
    assert states[2].connected is True
    assert states[2].profile == LITE


def test_failing_listener_does_not_break_transitions(manager: ConnectionManager) -> None:
    calls: list[str] = []

    def _listener(state: SessionState) -> None:
        calls.append(state.status)
        if state.status == "Connected":
            raise RuntimeError("listener bug")

    manager.subscribe(_listener)
    manager.establish(LITE)

    assert manager.is_connected
    assert calls[-1] == "Connected"
    manager.disconnect()
