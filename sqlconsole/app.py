"""Textual application entry point for sqlconsole."""

from __future__ import annotations

import asyncio
import inspect
import logging
from pathlib import Path
from typing import Any, Callable, Sequence

from textual import on
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.message import Message
from textual.widgets import Footer, Header

from .config import CONFIG_DIR, CONNECTIONS_FILE_NAME, SQL_FILES_DIR_NAME, AppConfig, load_config
from .drivers import DriverRegistry
from .errors import BatchExecutionError, LoadError, SaveError, SqlConsoleError, describe_error
from .loader import DriverLoader
from .models import ConnectionProfile, StatementResult
from .profiles import ProfileStore
from .providers import DisconnectProvider, ProfileConnectProvider
from .query import summarize
from .session import ConnectionManager
from .splitter import extract_all, extract_at_cursor
from .sqlfiles import SqlFileRepository
from .storage import TomlKeyValueStore
from .tasks import BackgroundTask, CancellationToken, FunctionTask, TaskRunner
from .widgets import CredentialsScreen, FileNameScreen, ProfileList, ResultsView, SqlEditor, StatusBar

LOG = logging.getLogger(__name__)

SHUTDOWN_TIMEOUT = 5.0


class UiCallback(Message):
    """Carries a callback onto the application's message loop."""

    def __init__(self, callback: Callable[[], Any]) -> None:
        super().__init__()
        self.callback = callback


class SqlConsoleApp(App[None]):
    """Profile list, SQL editor and results in one screen."""

    TITLE = "sqlconsole"
    COMMANDS = App.COMMANDS | {ProfileConnectProvider, DisconnectProvider}
    CSS = """
    Screen {
        layout: vertical;
    }
    #content {
        layout: horizontal;
        height: 1fr;
    }
    #main-column {
        layout: vertical;
        padding: 0 1;
        height: 1fr;
    }
    """

    BINDINGS = [
        ("ctrl+c", "quit", "Quit"),
        ("f7", "execute_each", "Execute each"),
        ("f8", "execute_at_cursor", "Execute at cursor"),
        ("f9", "execute_all", "Execute all"),
        ("escape", "cancel_execution", "Cancel"),
        Binding("ctrl+d", "disconnect", "Disconnect", priority=True),
        ("f5", "save_sql", "Save SQL"),
        ("f6", "load_sql", "Load SQL"),
        ("ctrl+p", "command_palette", "Command Palette"),
    ]

    def __init__(
        self,
        *,
        config: AppConfig | None = None,
        config_dir: Path | None = None,
        profile_store: ProfileStore | None = None,
        registry: DriverRegistry | None = None,
        sql_files: SqlFileRepository | None = None,
    ) -> None:
        super().__init__()
        base_dir = config_dir or CONFIG_DIR
        self._config = config or load_config(base_dir / "config.toml")
        self._profile_store = profile_store or ProfileStore(TomlKeyValueStore(base_dir / CONNECTIONS_FILE_NAME))
        self._driver_registry = registry or DriverRegistry.with_defaults()
        self._connection_manager = ConnectionManager(DriverLoader(self._driver_registry, lambda: self._config.classpath))
        self._sql_files = sql_files or SqlFileRepository(base_dir / SQL_FILES_DIR_NAME)
        self._task_runner = TaskRunner(self.run_on_ui_thread)
        self._current_task: BackgroundTask[Any] | None = None
        self._pending_notifications: list[tuple[str, str]] = []
        self._profiles: list[ConnectionProfile] = self._load_profiles()
        self._editor: SqlEditor | None = None
        self._results: ResultsView | None = None
        self._status_bar: StatusBar | None = None
        self._profile_list: ProfileList | None = None

    def compose(self) -> ComposeResult:
        """Compose the root layout."""

        yield Header()
        self._profile_list = ProfileList(self._profiles, self._connection_manager)
        self._editor = SqlEditor()
        self._results = ResultsView()
        yield Horizontal(
            self._profile_list,
            Vertical(self._editor, self._results, id="main-column"),
            id="content",
        )
        self._status_bar = StatusBar(self._connection_manager)
        yield self._status_bar
        yield Footer()

    async def on_mount(self) -> None:
        self._flush_pending_notifications()

    async def _shutdown(self) -> None:
        if self._current_task is not None:
            self._task_runner.cancel(self._current_task)
        try:
            await asyncio.wait_for(asyncio.to_thread(self._close_session), timeout=SHUTDOWN_TIMEOUT)
        except asyncio.TimeoutError:
            LOG.warning("Worker still busy on exit; leaving the connection open")
        await super()._shutdown()

    def _close_session(self) -> None:
        # Runs after the worker drains so no statement is mid-flight on the connection.
        self._task_runner.shutdown(wait=True)
        if self._connection_manager.is_connected:
            try:
                self._connection_manager.disconnect()
            except SqlConsoleError:
                LOG.warning("Failed to close connection on exit", exc_info=True)

    @property
    def profiles(self) -> tuple[ConnectionProfile, ...]:
        return tuple(self._profiles)

    @property
    def connection_manager(self) -> ConnectionManager:
        return self._connection_manager

    @property
    def task_runner(self) -> TaskRunner:
        return self._task_runner

    @property
    def editor(self) -> SqlEditor:
        assert self._editor is not None
        return self._editor

    @property
    def results_view(self) -> ResultsView:
        assert self._results is not None
        return self._results

    def run_on_ui_thread(self, callback: Callable[[], Any]) -> None:
        """Schedule ``callback`` on the app's message loop; safe from any thread."""

        self.post_message(UiCallback(callback))

    @on(UiCallback)
    async def _run_ui_callback(self, message: UiCallback) -> None:
        result = message.callback()
        if inspect.isawaitable(result):
            await result

    async def reload_profiles(self) -> None:
        self._profiles = self._load_profiles()
        self._flush_pending_notifications()
        if self._profile_list is not None:
            await self._profile_list.reload(self._profiles)

    # Connections

    def connect_profile(self, name: str) -> None:
        profile = next((item for item in self._profiles if item.same_name(name)), None)
        if profile is None:
            self.notify(f"Connection '{name}' not found", severity="error")
            return
        if self._connection_manager.is_connected:
            self.notify("Current connection exists: must disconnect first", severity="warning")
            return
        if profile.auto_login:
            self._start_connect(profile, None, None)
            return

        def _credentials_entered(credentials: tuple[str, str] | None) -> None:
            if credentials is None:
                return
            user, password = credentials
            self._start_connect(profile, user, password)

        self.push_screen(CredentialsScreen(profile.name, profile.user_name), _credentials_entered)

    def _start_connect(self, profile: ConnectionProfile, user: str | None, password: str | None) -> None:
        def _work(token: CancellationToken) -> None:
            self._connection_manager.establish(profile, user_name=user, password=password)

        self._start_task(
            FunctionTask(
                _work,
                on_completed=lambda _: self._show_message(f"Connected to {profile.name}"),
                on_failed=self._show_error,
            ),
            f"Connecting to {profile.name}...",
        )

    def action_disconnect(self) -> None:
        if not self._connection_manager.is_connected:
            self.notify("No current connection", severity="warning")
            return

        def _work(token: CancellationToken) -> None:
            self._connection_manager.disconnect()

        self._start_task(
            FunctionTask(_work, on_completed=lambda _: self._show_message("Disconnected"), on_failed=self._show_error),
            "Disconnecting...",
        )

    # Execution

    def action_execute_each(self) -> None:
        separator = self._statement_separator()
        if separator is None:
            return
        self._execute(extract_all(self.editor.buffer_lines, separator))

    def action_execute_at_cursor(self) -> None:
        separator = self._statement_separator()
        if separator is None:
            return
        statement = extract_at_cursor(self.editor.buffer_lines, separator, self.editor.cursor_row)
        self._execute([statement] if statement else [])

    def action_execute_all(self) -> None:
        if self._statement_separator() is None:
            return
        text = self.editor.text.strip()
        self._execute([text] if text else [])

    def action_cancel_execution(self) -> None:
        task = self._current_task
        if task is None or task.state.terminal:
            return
        self._task_runner.cancel(task)
        self._show_message("Cancelling after the current statement...")

    def _statement_separator(self) -> str | None:
        active = self._connection_manager.active
        if active is None:
            self.notify("No connection: establish one before executing statements", severity="warning")
            return None
        return active.profile.statement_separator

    def _execute(self, statements: Sequence[str]) -> None:
        if not statements:
            self.notify("Nothing to execute", severity="warning")
            return
        row_limit = self._config.row_limit or self.results_view.row_limit
        batch = list(statements)

        def _work(token: CancellationToken) -> list[StatementResult]:
            return self._connection_manager.execute_batch(batch, row_limit, token)

        self._start_task(
            FunctionTask(
                _work,
                on_completed=self._show_results,
                on_failed=self._show_execution_error,
                on_interrupted=self._show_interrupted,
            ),
            f"Executing {len(batch)} statement(s)...",
        )

    def _start_task(self, task: BackgroundTask[Any], message: str) -> None:
        current = self._current_task
        if current is not None and not current.state.terminal:
            self.notify("Another operation is still running", severity="warning")
            return
        self._current_task = task
        self._show_message(message)
        self._task_runner.start(task)

    async def _show_results(self, results: list[StatementResult]) -> None:
        await self.results_view.show_results(results)
        self._show_message(summarize(results))

    async def _show_execution_error(self, error: BaseException) -> None:
        if isinstance(error, BatchExecutionError) and error.completed:
            await self.results_view.show_results(error.completed)
        self._show_error(error)

    def _show_interrupted(self) -> None:
        self._show_message("Interrupted")
        self.notify("Statement execution was interrupted", severity="warning", title="Interrupted")

    # SQL files

    def action_save_sql(self) -> None:
        def _save(name: str | None) -> None:
            if not name:
                return
            try:
                self._sql_files.save(name, self.editor.text)
            except SaveError as exc:
                self.notify(str(exc), severity="error")
                return
            self._show_message(f"Saved {name}")

        self.push_screen(FileNameScreen("Save SQL as", self._sql_file_names()), _save)

    def action_load_sql(self) -> None:
        def _load(name: str | None) -> None:
            if not name:
                return
            try:
                content = self._sql_files.load(name)
            except LoadError as exc:
                self.notify(str(exc), severity="error")
                return
            self.editor.load_text(content)
            self._show_message(f"Loaded {name}")

        self.push_screen(FileNameScreen("Load SQL file", self._sql_file_names()), _load)

    def _sql_file_names(self) -> list[str]:
        try:
            return self._sql_files.list_names()
        except LoadError as exc:
            self.notify(str(exc), severity="error")
            return []

    # Feedback

    def _load_profiles(self) -> list[ConnectionProfile]:
        try:
            return self._profile_store.list()
        except LoadError as exc:
            LOG.warning("Could not load connection profiles", exc_info=True)
            self._safe_notify(describe_error(exc), severity="error")
            return []

    def _show_message(self, message: str) -> None:
        if self._status_bar is not None:
            self._status_bar.show_message(message)

    def _show_error(self, error: BaseException) -> None:
        text = describe_error(error)
        self._show_message(text.splitlines()[-1] if text else "Error")
        self.notify(text, severity="error", title="Error")

    def _safe_notify(self, message: str, *, severity: str = "information") -> None:
        if self.is_running:
            try:
                self.notify(message, severity=severity)
            except Exception:
                LOG.exception("Failed to display notification", extra={"message": message})
        else:
            self._pending_notifications.append((message, severity))

    def _flush_pending_notifications(self) -> None:
        if not self._pending_notifications or not self.is_running:
            return
        pending = list(self._pending_notifications)
        self._pending_notifications.clear()
        for message, severity in pending:
            try:
                self.notify(message, severity=severity)
            except Exception:
                LOG.exception("Failed to display queued notification", extra={"message": message})


__all__ = ["SqlConsoleApp", "UiCallback"]
