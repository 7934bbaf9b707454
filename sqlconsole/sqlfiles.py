"""Named SQL snippets saved as plain files."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from .errors import DeleteError, LoadError, SaveError

LOG = logging.getLogger(__name__)

SQL_SUFFIX = ".sql"


class SqlFileRepository:
    """Stores editor contents under ``directory`` one file per name."""

    def __init__(self, directory: Path) -> None:
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def save(self, name: str, content: str) -> Path:
        path = self._path_for(name, SaveError)
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            with path.open("x", encoding="utf-8") as handle:
                handle.write(content)
        except FileExistsError as exc:
            raise SaveError(f"SQL file '{name}' already exists") from exc
        except OSError as exc:
            raise SaveError(f"Could not save SQL file '{name}': {exc}") from exc
        LOG.info("Saved SQL file", extra={"sql_file": path.name})
        return path

    def list_names(self) -> list[str]:
        if not self._directory.is_dir():
            return []
        try:
            entries = os.listdir(self._directory)
        except OSError as exc:
            raise LoadError(f"Could not list SQL files: {exc}") from exc
        names = [entry[: -len(SQL_SUFFIX)] for entry in entries if entry.endswith(SQL_SUFFIX)]
        return sorted(names, key=str.casefold)

    def load(self, name: str) -> str:
        path = self._path_for(name, LoadError)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise LoadError(f"SQL file '{name}' not found") from None
        except (OSError, UnicodeDecodeError) as exc:
            raise LoadError(f"Could not read SQL file '{name}': {exc}") from exc

    def delete(self, name: str) -> None:
        path = self._path_for(name, DeleteError)
        try:
            path.unlink()
        except FileNotFoundError:
            raise DeleteError(f"SQL file '{name}' not found") from None
        except OSError as exc:
            raise DeleteError(f"Could not delete SQL file '{name}': {exc}") from exc
        LOG.info("Deleted SQL file", extra={"sql_file": path.name})

    def _path_for(self, name: str, error: type[Exception]) -> Path:
        cleaned = (name or "").strip()
        if cleaned.endswith(SQL_SUFFIX):
            cleaned = cleaned[: -len(SQL_SUFFIX)]
        if not cleaned or cleaned in (".", "..") or "/" in cleaned or "\\" in cleaned or "\x00" in cleaned:
            raise error(f"Invalid SQL file name: {name!r}")
        return self._directory / f"{cleaned}{SQL_SUFFIX}"


__all__ = ["SQL_SUFFIX", "SqlFileRepository"]
