"""Flat key/value stores backing the profile repository."""

from __future__ import annotations

import os
import tempfile
import threading
from pathlib import Path
from typing import Mapping, Protocol, runtime_checkable

import tomllib


@runtime_checkable
class KeyValueStore(Protocol):
    """Load-all/persist-all string map."""

    def load(self) -> dict[str, str]:
        """Return every stored key with its value."""

    def persist(self, values: Mapping[str, str]) -> None:
        """Replace the stored content with ``values`` in one step."""


class InMemoryKeyValueStore:
    """Store kept in process memory (tests, throwaway sessions)."""

    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(initial or {})
        self.persist_count = 0

    def load(self) -> dict[str, str]:
        return dict(self._values)

    def persist(self, values: Mapping[str, str]) -> None:
        self._values = dict(values)
        self.persist_count += 1


class TomlKeyValueStore:
    """Store persisted as a flat TOML table of quoted keys.

    Reads go through :mod:`tomllib`; writes render the table by hand into a
    temporary sibling file which then replaces the target, so readers never
    observe a partially written file.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> dict[str, str]:
        with self._lock:
            try:
                with self._path.open("rb") as handle:
                    raw = tomllib.load(handle)
            except FileNotFoundError:
                return {}
        values: dict[str, str] = {}
        for key, value in raw.items():
            if isinstance(value, dict):
                raise ValueError(f"Nested table not supported: {key}")
            if isinstance(value, bool):
                values[str(key)] = "true" if value else "false"
            else:
                values[str(key)] = str(value)
        return values

    def persist(self, values: Mapping[str, str]) -> None:
        lines = [f"{_toml_string(key)} = {_toml_string(values[key])}" for key in sorted(values)]
        content = "\n".join(lines) + ("\n" if lines else "")
        with self._lock:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self._path.name}.", dir=self._path.parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as handle:
                    handle.write(content)
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise


_ESCAPES = {
    '"': '\\"',
    "\\": "\\\\",
    "\b": "\\b",
    "\t": "\\t",
    "\n": "\\n",
    "\f": "\\f",
    "\r": "\\r",
}


def _toml_string(value: str) -> str:
    out: list[str] = ['"']
    for char in value:
        if char in _ESCAPES:
            out.append(_ESCAPES[char])
        elif ord(char) < 0x20 or ord(char) == 0x7F:
            out.append(f"\\u{ord(char):04X}")
        else:
            out.append(char)
    out.append('"')
    return "".join(out)


__all__ = ["InMemoryKeyValueStore", "KeyValueStore", "TomlKeyValueStore"]
