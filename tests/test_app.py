"""Integration tests for the Textual application."""

from __future__ import annotations

import time
from pathlib import Path
from typing import Callable

import pytest
from textual.pilot import Pilot
from textual.widgets import DataTable

from sqlconsole.app import SqlConsoleApp
from sqlconsole.config import AppConfig
from sqlconsole.drivers import DriverRegistry, SqliteDriver
from sqlconsole.models import ConnectionProfile
from sqlconsole.profiles import ProfileStore
from sqlconsole.sqlfiles import SqlFileRepository
from sqlconsole.storage import InMemoryKeyValueStore
from sqlconsole.widgets import CredentialsScreen, StatusBar


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


def _make_app(tmp_path: Path, *profiles: ConnectionProfile) -> SqlConsoleApp:
    store = ProfileStore(InMemoryKeyValueStore())
    for profile in profiles:
        store.save(profile)
    return SqlConsoleApp(
        config=AppConfig(row_limit=50),
        config_dir=tmp_path,
        profile_store=store,
        registry=DriverRegistry([SqliteDriver()]),
        sql_files=SqlFileRepository(tmp_path / "sqlfiles"),
    )


async def _wait_for(pilot: Pilot, predicate: Callable[[], bool], timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met before timeout")
        await pilot.pause(0.05)


LITE = ConnectionProfile(name="Lite", connection_url="sqlite::memory:", auto_login=True, hotkey="l")


@pytest.mark.anyio
async def test_connect_and_execute_each_statement(tmp_path: Path) -> None:
    app = _make_app(tmp_path, LITE)

    async with app.run_test() as pilot:
        app.connect_profile("lite")
        await _wait_for(pilot, lambda: app.connection_manager.is_connected)

        app.editor.load_text("create table t (id integer);\ninsert into t values (7);\nselect id from t;")
        app.action_execute_each()
        await _wait_for(pilot, lambda: bool(app.results_view.query(DataTable)))

        [table] = app.results_view.query(DataTable)
        assert table.row_count == 1
        assert table.get_row_at(0) == ["7"]


@pytest.mark.anyio
async def test_execute_at_cursor_runs_only_current_statement(tmp_path: Path) -> None:
    app = _make_app(tmp_path, LITE)

    async with app.run_test() as pilot:
        app.connect_profile("Lite")
        await _wait_for(pilot, lambda: app.connection_manager.is_connected)

        app.editor.load_text("select 1 as a;\nselect 2 as b;\nselect 3 as c;")
        app.editor.move_cursor((1, 0))
        app.action_execute_at_cursor()
        await _wait_for(pilot, lambda: bool(app.results_view.query(DataTable)))

        [table] = app.results_view.query(DataTable)
        assert [column.label.plain for column in table.columns.values()] == ["b"]


@pytest.mark.anyio
async def test_profile_hotkey_connects(tmp_path: Path) -> None:
    app = _make_app(tmp_path, LITE)

    async with app.run_test() as pilot:
        app.query_one("#profile-list").focus()
        await pilot.press("l")
        await _wait_for(pilot, lambda: app.connection_manager.is_connected)

        assert app.connection_manager.active is not None
        assert app.connection_manager.active.profile.name == "Lite"


@pytest.mark.anyio
async def test_credentials_prompt_for_manual_login(tmp_path: Path) -> None:
    manual = ConnectionProfile(name="Manual", connection_url="sqlite::memory:", user_name="me")
    app = _make_app(tmp_path, manual)

    async with app.run_test() as pilot:
        app.connect_profile("Manual")
        await pilot.pause()
        assert isinstance(app.screen, CredentialsScreen)

        await pilot.press("escape")
        await pilot.pause()

        assert not isinstance(app.screen, CredentialsScreen)
        assert not app.connection_manager.is_connected


@pytest.mark.anyio
async def test_disconnect_clears_connection(tmp_path: Path) -> None:
    app = _make_app(tmp_path, LITE)

    async with app.run_test() as pilot:
        app.connect_profile("Lite")
        await _wait_for(pilot, lambda: app.connection_manager.is_connected)

        await pilot.press("ctrl+d")
        await _wait_for(pilot, lambda: not app.connection_manager.is_connected)


@pytest.mark.anyio
async def test_tab_inserts_four_spaces(tmp_path: Path) -> None:
    app = _make_app(tmp_path)

    async with app.run_test() as pilot:
        app.editor.focus()
        await pilot.press("tab")

        assert app.editor.text == "    "


@pytest.mark.anyio
async def test_execute_without_connection_does_nothing(tmp_path: Path) -> None:
    app = _make_app(tmp_path, LITE)

    async with app.run_test() as pilot:
        app.editor.load_text("select 1;")
        app.action_execute_each()
        await pilot.pause()

        assert not app.results_view.query(DataTable)


@pytest.mark.anyio
async def test_status_bar_follows_connection(tmp_path: Path) -> None:
    app = _make_app(tmp_path, LITE)

    async with app.run_test() as pilot:
        status = app.query_one(StatusBar)
        await _wait_for(pilot, lambda: status.text.startswith("Not connected"))

        app.connect_profile("Lite")
        await _wait_for(pilot, lambda: "Status: Connected" in status.text)

        assert status.text.startswith("Connection: Lite")


@pytest.mark.anyio
async def test_execution_error_is_reported(tmp_path: Path) -> None:
    app = _make_app(tmp_path, LITE)

    async with app.run_test() as pilot:
        app.connect_profile("Lite")
        await _wait_for(pilot, lambda: app.connection_manager.is_connected)

        app.editor.load_text("select 1 as ok;\nselect * from missing;")
        app.action_execute_each()
        await _wait_for(pilot, lambda: bool(app.results_view.query(DataTable)))

        status = app.query_one(StatusBar)
        await _wait_for(pilot, lambda: "no such table" in status.text)


@pytest.mark.anyio
async def test_exit_closes_open_connection(tmp_path: Path) -> None:
    app = _make_app(tmp_path, LITE)

    async with app.run_test() as pilot:
        app.connect_profile("Lite")
        await _wait_for(pilot, lambda: app.connection_manager.is_connected)

    assert not app.connection_manager.is_connected
