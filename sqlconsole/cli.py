"""Command line entry point for sqlconsole."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Sequence

import click
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import (
    CONFIG_DIR,
    CONNECTIONS_FILE_NAME,
    SQL_FILES_DIR_NAME,
    AppConfig,
    configure_logging,
    load_config,
    save_config,
    split_classpath,
)
from .drivers import DriverRegistry
from .errors import SqlConsoleError, describe_error
from .loader import DriverLoader
from .models import ConnectionProfile, RowSet, StatementResult, UpdateCount
from .profiles import ProfileStore
from .query import format_value, summarize
from .session import ConnectionManager
from .splitter import extract_all
from .sqlfiles import SqlFileRepository
from .storage import TomlKeyValueStore

console = Console()

DEFAULT_CLI_ROW_LIMIT = 1000


@dataclass(slots=True)
class CliContext:
    """Objects shared by every sub-command."""

    config_dir: Path
    config: AppConfig
    classpath_override: list[str] | None = None

    @property
    def config_file(self) -> Path:
        return self.config_dir / "config.toml"

    @property
    def effective_config(self) -> AppConfig:
        if self.classpath_override is None:
            return self.config
        return self.config.with_classpath(self.classpath_override)

    def profile_store(self) -> ProfileStore:
        return ProfileStore(TomlKeyValueStore(self.config_dir / CONNECTIONS_FILE_NAME))

    def sql_files(self) -> SqlFileRepository:
        return SqlFileRepository(self.config_dir / SQL_FILES_DIR_NAME)


pass_context = click.make_pass_decorator(CliContext)


@click.group(invoke_without_command=True)
@click.version_option(__version__, prog_name="sqlconsole")
@click.option(
    "--config-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory holding config.toml, connections.toml and saved SQL files.",
)
@click.option(
    "--classpath",
    default=None,
    help="Driver search path for this run, entries separated by the platform path separator.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, config_dir: Path | None, classpath: str | None, verbose: bool) -> None:
    """Interactive SQL client with stored connection profiles."""

    base_dir = (config_dir or CONFIG_DIR).expanduser()
    config = load_config(base_dir / "config.toml")
    override = split_classpath(classpath) if classpath is not None else None
    ctx.obj = CliContext(config_dir=base_dir, config=config, classpath_override=override)
    configure_logging(config, verbose=verbose, config_dir=base_dir)

    if ctx.invoked_subcommand is None:
        from .app import SqlConsoleApp

        state: CliContext = ctx.obj
        SqlConsoleApp(
            config=state.effective_config,
            config_dir=base_dir,
            profile_store=state.profile_store(),
            sql_files=state.sql_files(),
        ).run()


@cli.group(name="profiles")
def profiles_group() -> None:
    """Manage stored connection profiles."""


@profiles_group.command(name="list")
@pass_context
def list_profiles(state: CliContext) -> None:
    """List profiles in display order."""

    try:
        profiles = state.profile_store().list()
    except SqlConsoleError as exc:
        raise click.ClickException(describe_error(exc)) from exc
    if not profiles:
        click.echo("No connections configured.")
        return
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("URL", overflow="fold")
    table.add_column("Hotkey")
    table.add_column("Order")
    for profile in profiles:
        table.add_row(
            profile.name,
            profile.connection_url,
            profile.hotkey or "",
            "" if profile.order is None else str(profile.order),
        )
    console.print(table)


@profiles_group.command(name="show")
@click.argument("name")
@pass_context
def show_profile(state: CliContext, name: str) -> None:
    """Show every field of one profile (password masked)."""

    profile = _find_profile(state, name)
    fields = [
        ("Name", profile.name),
        ("Driver", profile.driver_class_name or ""),
        ("URL", profile.connection_url),
        ("User", profile.user_name or ""),
        ("Password", "********" if profile.password else ""),
        ("Login automatically", "yes" if profile.auto_login else "no"),
        ("Statement separator", profile.statement_separator),
        ("Hotkey", profile.hotkey or ""),
        ("Order", "" if profile.order is None else str(profile.order)),
    ]
    for label, value in fields:
        click.echo(f"{label}: {value}")


@profiles_group.command(name="add")
@click.argument("name")
@click.option("--url", "connection_url", required=True, help="Connection URL, e.g. sqlite:///data.db.")
@click.option("--driver", "driver_class_name", default=None, help="Driver to load, e.g. package.module:Driver.")
@click.option("--user", "user_name", default=None)
@click.option("--password", default=None)
@click.option("--auto-login/--no-auto-login", default=False, help="Connect without prompting for credentials.")
@click.option("--separator", "statement_separator", default=";", show_default=True)
@click.option("--hotkey", default=None, help="Single character that connects from the profile list.")
@click.option("--order", type=int, default=None, help="Position in the profile list.")
@click.option("--replace", is_flag=True, help="Overwrite an existing profile with the same name.")
@pass_context
def add_profile(
    state: CliContext,
    name: str,
    connection_url: str,
    driver_class_name: str | None,
    user_name: str | None,
    password: str | None,
    auto_login: bool,
    statement_separator: str,
    hotkey: str | None,
    order: int | None,
    replace: bool,
) -> None:
    """Create a connection profile."""

    store = state.profile_store()
    try:
        if not replace and store.find_by_name(name) is not None:
            raise click.ClickException(f"Connection '{name}' already exists (use --replace)")
        profile = ConnectionProfile(
            name=name,
            driver_class_name=driver_class_name,
            connection_url=connection_url,
            auto_login=auto_login,
            user_name=user_name,
            password=password,
            statement_separator=statement_separator,
            hotkey=hotkey,
            order=order,
        )
        store.save(profile)
    except ValidationError as exc:
        raise click.BadParameter(_first_validation_message(exc)) from exc
    except SqlConsoleError as exc:
        raise click.ClickException(describe_error(exc)) from exc
    click.echo(f"Saved connection '{profile.name}'.")


@profiles_group.command(name="remove")
@click.argument("name")
@pass_context
def remove_profile(state: CliContext, name: str) -> None:
    """Delete a connection profile."""

    try:
        state.profile_store().delete_by_name(name)
    except SqlConsoleError as exc:
        raise click.ClickException(describe_error(exc)) from exc
    click.echo(f"Removed connection '{name}'.")


@profiles_group.command(name="rename")
@click.argument("old_name")
@click.argument("new_name")
@pass_context
def rename_profile(state: CliContext, old_name: str, new_name: str) -> None:
    """Give a profile a new name."""

    profile = _find_profile(state, old_name)
    store = state.profile_store()
    try:
        if not profile.same_name(new_name) and store.find_by_name(new_name) is not None:
            raise click.ClickException(f"Connection '{new_name}' already exists")
        store.rename(profile.name, profile.model_copy(update={"name": new_name}))
    except SqlConsoleError as exc:
        raise click.ClickException(describe_error(exc)) from exc
    click.echo(f"Renamed connection '{profile.name}' to '{new_name}'.")


@profiles_group.command(name="copy")
@click.argument("source")
@click.argument("target", required=False)
@pass_context
def copy_profile(state: CliContext, source: str, target: str | None) -> None:
    """Duplicate SOURCE as TARGET (default "Copy of SOURCE"), without its hotkey."""

    profile = _find_profile(state, source)
    name = target or f"Copy of {profile.name}"
    store = state.profile_store()
    try:
        if store.find_by_name(name) is not None:
            raise click.ClickException(f"Connection '{name}' already exists")
        store.save(profile.model_copy(update={"name": name, "hotkey": None}))
    except SqlConsoleError as exc:
        raise click.ClickException(describe_error(exc)) from exc
    click.echo(f"Copied connection '{profile.name}' to '{name}'.")


@cli.group(name="classpath")
def classpath_group() -> None:
    """Inspect or change the driver search path."""


@classpath_group.command(name="show")
@pass_context
def show_classpath(state: CliContext) -> None:
    entries = state.effective_config.classpath
    if not entries:
        click.echo("Classpath is empty (installed packages only).")
        return
    for entry in entries:
        click.echo(entry)


@classpath_group.command(name="set")
@click.argument("entries", nargs=-1, required=True)
@pass_context
def set_classpath(state: CliContext, entries: tuple[str, ...]) -> None:
    """Replace the stored classpath with ENTRIES."""

    state.config = state.config.with_classpath(list(entries))
    save_config(state.config, state.config_file)
    click.echo(f"Classpath set ({len(state.config.classpath)} entries).")


@classpath_group.command(name="clear")
@pass_context
def clear_classpath(state: CliContext) -> None:
    state.config = state.config.with_classpath([])
    save_config(state.config, state.config_file)
    click.echo("Classpath cleared.")


@cli.group(name="sqlfiles")
def sqlfiles_group() -> None:
    """Manage saved SQL files."""


@sqlfiles_group.command(name="list")
@pass_context
def list_sql_files(state: CliContext) -> None:
    try:
        names = state.sql_files().list_names()
    except SqlConsoleError as exc:
        raise click.ClickException(describe_error(exc)) from exc
    if not names:
        click.echo("No saved SQL files.")
        return
    for name in names:
        click.echo(name)


@sqlfiles_group.command(name="show")
@click.argument("name")
@pass_context
def show_sql_file(state: CliContext, name: str) -> None:
    try:
        content = state.sql_files().load(name)
    except SqlConsoleError as exc:
        raise click.ClickException(describe_error(exc)) from exc
    click.echo(content)


@sqlfiles_group.command(name="delete")
@click.argument("name")
@pass_context
def delete_sql_file(state: CliContext, name: str) -> None:
    """Remove a saved SQL file."""

    try:
        state.sql_files().delete(name)
    except SqlConsoleError as exc:
        raise click.ClickException(describe_error(exc)) from exc
    click.echo(f"Deleted SQL file '{name}'.")


@cli.command(name="run")
@click.argument("profile_name")
@click.argument("sql", nargs=-1)
@click.option("--file", "-f", "sql_file", type=click.File("r", encoding="utf-8"), default=None, help="Read SQL from a file ('-' for stdin).")
@click.option("--saved", default=None, help="Run a saved SQL file by name.")
@click.option("--user", "user_name", default=None, help="Override the profile's user name.")
@click.option("--password", default=None, help="Override the profile's password.")
@click.option("--row-limit", type=click.IntRange(min=1), default=None, help="Maximum rows shown per result.")
@pass_context
def run_statements(
    state: CliContext,
    profile_name: str,
    sql: tuple[str, ...],
    sql_file: IO[str] | None,
    saved: str | None,
    user_name: str | None,
    password: str | None,
    row_limit: int | None,
) -> None:
    """Connect with PROFILE_NAME and execute SQL, printing every result."""

    profile = _find_profile(state, profile_name)
    try:
        text = _collect_sql(state, sql, sql_file, saved)
    except SqlConsoleError as exc:
        raise click.ClickException(describe_error(exc)) from exc
    statements = extract_all(text.splitlines(), profile.statement_separator)
    if not statements:
        raise click.UsageError("No SQL to execute.")
    config = state.effective_config
    limit = row_limit or config.row_limit or DEFAULT_CLI_ROW_LIMIT

    manager = ConnectionManager(DriverLoader(DriverRegistry.with_defaults(), config.classpath))
    try:
        manager.establish(profile, user_name=user_name, password=password)
    except SqlConsoleError as exc:
        raise click.ClickException(describe_error(exc)) from exc
    try:
        results = manager.execute_batch(statements, limit)
    except SqlConsoleError as exc:
        _print_results(getattr(exc, "completed", ()))
        raise click.ClickException(describe_error(exc)) from exc
    finally:
        try:
            manager.disconnect()
        except SqlConsoleError as exc:
            click.echo(describe_error(exc), err=True)
    _print_results(results)
    click.echo(summarize(results))


def _collect_sql(
    state: CliContext,
    sql: Sequence[str],
    sql_file: IO[str] | None,
    saved: str | None,
) -> str:
    parts: list[str] = list(sql)
    if sql_file is not None:
        parts.append(sql_file.read())
    if saved:
        parts.append(state.sql_files().load(saved))
    if not parts and not sys.stdin.isatty():
        parts.append(click.get_text_stream("stdin").read())
    return "\n".join(parts)


def _print_results(results: Sequence[StatementResult]) -> None:
    for index, result in enumerate(results, start=1):
        if isinstance(result, RowSet):
            table = Table(title=f"Result {index}", show_header=True, header_style="bold magenta")
            for column in result.columns:
                table.add_column(column, overflow="fold")
            for row in result.rows:
                table.add_row(*(format_value(row.get(column)) for column in result.columns))
            console.print(table)
            if result.truncated:
                click.echo(f"Result {index}: more rows available than shown.")
        elif isinstance(result, UpdateCount):
            count = "unknown" if result.count < 0 else str(result.count)
            click.echo(f"Result {index}: {count} row(s) affected")


def _find_profile(state: CliContext, name: str) -> ConnectionProfile:
    try:
        profile = state.profile_store().find_by_name(name)
    except SqlConsoleError as exc:
        raise click.ClickException(describe_error(exc)) from exc
    if profile is None:
        raise click.ClickException(f"Connection '{name}' not found")
    return profile


def _first_validation_message(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg', 'invalid value')}" if location else first.get("msg", str(exc))


def main() -> None:
    """Invoke the command line interface."""

    cli(prog_name="sqlconsole")


__all__ = ["cli", "main"]
