"""Tests for the key/value stores."""

from __future__ import annotations

from pathlib import Path

import pytest

from sqlconsole.storage import InMemoryKeyValueStore, KeyValueStore, TomlKeyValueStore


def test_missing_file_loads_empty(tmp_path: Path) -> None:
    store = TomlKeyValueStore(tmp_path / "connections.toml")

    assert store.load() == {}


def test_persist_then_load_preserves_awkward_values(tmp_path: Path) -> None:
    store = TomlKeyValueStore(tmp_path / "nested" / "connections.toml")
    values = {
        "Local.ConnectionUrl": "sqlite:///tmp/data.db",
        'Quote "me".Password': 'p"a\\ss\tword',
        "Multi.StatementSeparator": "\ngo\n",
        "Unicode.ConnectionName": "Résumé ✓",
    }

    store.persist(values)

    assert store.load() == values
    assert list(tmp_path.joinpath("nested").iterdir()) == [store.path]


def test_persist_replaces_previous_content(tmp_path: Path) -> None:
    store = TomlKeyValueStore(tmp_path / "connections.toml")
    store.persist({"A.ConnectionUrl": "sqlite:"})

    store.persist({"B.ConnectionUrl": "sqlite:"})

    assert store.load() == {"B.ConnectionUrl": "sqlite:"}


def test_hand_written_booleans_and_numbers_become_strings(tmp_path: Path) -> None:
    path = tmp_path / "connections.toml"
    path.write_text('"A.LoginAutomatically" = true\n"A.Order" = 3\n', encoding="utf-8")

    assert TomlKeyValueStore(path).load() == {"A.LoginAutomatically": "true", "A.Order": "3"}


def test_nested_tables_are_rejected(tmp_path: Path) -> None:
    path = tmp_path / "connections.toml"
    path.write_text("[section]\nkey = 'value'\n", encoding="utf-8")

    with pytest.raises(ValueError):
        TomlKeyValueStore(path).load()


def test_stores_satisfy_protocol(tmp_path: Path) -> None:
    assert isinstance(InMemoryKeyValueStore(), KeyValueStore)
    assert isinstance(TomlKeyValueStore(tmp_path / "x.toml"), KeyValueStore)


def test_in_memory_store_returns_copies() -> None:
    store = InMemoryKeyValueStore({"A.ConnectionName": "A"})

    loaded = store.load()
    loaded["B.ConnectionName"] = "B"

    assert store.load() == {"A.ConnectionName": "A"}
    assert store.persist_count == 0
