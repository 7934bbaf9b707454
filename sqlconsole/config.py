"""App configuration loading helpers."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import tomllib

from pydantic import BaseModel, Field, field_validator

CONFIG_DIR = Path.home() / ".config" / "sqlconsole"
CONFIG_FILE = CONFIG_DIR / "config.toml"
CONNECTIONS_FILE_NAME = "connections.toml"
SQL_FILES_DIR_NAME = "sqlfiles"
LOG_FILE_NAME = "sqlconsole.log"

LOG = logging.getLogger(__name__)


class AppConfig(BaseModel):
    """Shape of the application configuration file."""

    theme: str = "textual-dark"
    classpath: list[str] = Field(default_factory=list)
    row_limit: int | None = None
    log_level: str = "WARNING"
    log_file: str | None = None

    @field_validator("row_limit")
    @classmethod
    def _positive_row_limit(cls, value: int | None) -> int | None:
        if value is not None and value < 1:
            raise ValueError("row_limit must be at least 1")
        return value

    def with_classpath(self, entries: list[str]) -> AppConfig:
        """Return a copy with the driver classpath replaced."""

        cleaned = [entry for entry in (item.strip() for item in entries) if entry]
        return self.model_copy(update={"classpath": cleaned})

    def with_theme(self, theme: str) -> AppConfig:
        """Return a copy with the theme updated."""

        return self.model_copy(update={"theme": theme})

    def log_path(self, config_dir: Path | None = None) -> Path:
        """Where log records are written."""

        if self.log_file:
            return Path(self.log_file).expanduser()
        return (config_dir or CONFIG_DIR) / LOG_FILE_NAME


def split_classpath(value: str) -> list[str]:
    """Split a command-line classpath on the platform path separator."""

    return [entry for entry in value.split(os.pathsep) if entry.strip()]


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from disk; fall back to defaults if missing."""

    target = path or CONFIG_FILE
    try:
        data = _read_config_file(target)
    except FileNotFoundError:
        return AppConfig()
    except (tomllib.TOMLDecodeError, OSError):
        LOG.warning("Ignoring unreadable config file", extra={"path": str(target)}, exc_info=True)
        return AppConfig()
    return AppConfig(**data)


def save_config(config: AppConfig, path: Path | None = None) -> None:
    """Persist configuration to disk."""

    target = path or CONFIG_FILE
    target.parent.mkdir(parents=True, exist_ok=True)
    lines: list[str] = [
        f"theme = {_quote(config.theme)}",
        f"log_level = {_quote(config.log_level)}",
    ]
    if config.row_limit is not None:
        lines.append(f"row_limit = {config.row_limit}")
    if config.log_file:
        lines.append(f"log_file = {_quote(config.log_file)}")
    entries = ", ".join(_quote(entry) for entry in config.classpath)
    lines.append(f"classpath = [{entries}]")
    target.write_text("\n".join(lines) + "\n", encoding="utf-8")


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _read_config_file(path: Path) -> dict[str, object]:
    with path.open("rb") as handle:
        raw = tomllib.load(handle)
    data: dict[str, object] = {}
    if isinstance(raw, dict):
        theme = raw.get("theme")
        if isinstance(theme, str):
            data["theme"] = theme
        log_level = raw.get("log_level")
        if isinstance(log_level, str):
            data["log_level"] = log_level.upper()
        log_file = raw.get("log_file")
        if isinstance(log_file, str) and log_file:
            data["log_file"] = log_file
        row_limit = raw.get("row_limit")
        if isinstance(row_limit, int) and not isinstance(row_limit, bool) and row_limit > 0:
            data["row_limit"] = row_limit
        classpath = raw.get("classpath")
        if isinstance(classpath, list):
            data["classpath"] = [str(entry) for entry in classpath if isinstance(entry, str) and entry.strip()]
        elif isinstance(classpath, str):
            data["classpath"] = [entry for entry in classpath.split("|") if entry.strip()]
    return data


def configure_logging(config: AppConfig, *, verbose: bool = False, config_dir: Path | None = None) -> Path:
    """Route log records to the log file so the terminal UI stays clean."""

    log_path = config.log_path(config_dir)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    level = logging.DEBUG if verbose else getattr(logging, config.log_level.upper(), logging.WARNING)
    handler = logging.FileHandler(log_path, encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root = logging.getLogger("sqlconsole")
    for previous in root.handlers:
        previous.close()
    root.handlers[:] = [handler]
    root.setLevel(level)
    root.propagate = False
    return log_path


__all__ = [
    "AppConfig",
    "CONFIG_DIR",
    "CONFIG_FILE",
    "CONNECTIONS_FILE_NAME",
    "SQL_FILES_DIR_NAME",
    "configure_logging",
    "load_config",
    "save_config",
    "split_classpath",
]
