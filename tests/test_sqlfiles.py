"""Tests for saved SQL files."""

from __future__ import annotations

from pathlib import Path

import pytest

from sqlconsole.errors import DeleteError, LoadError, SaveError
from sqlconsole.sqlfiles import SqlFileRepository


@pytest.fixture
def repository(tmp_path: Path) -> SqlFileRepository:
    return SqlFileRepository(tmp_path / "sqlfiles")


def test_save_and_load(repository: SqlFileRepository) -> None:
    path = repository.save("daily", "select 1;\nselect 2;")

    assert path.name == "daily.sql"
    assert repository.load("daily") == "select 1;\nselect 2;"
    assert repository.load("daily.sql") == "select 1;\nselect 2;"


def test_save_refuses_to_overwrite(repository: SqlFileRepository) -> None:
    repository.save("daily", "select 1;")

    with pytest.raises(SaveError, match="already exists"):
        repository.save("daily", "select 2;")

    assert repository.load("daily") == "select 1;"


def test_list_names_sorted(repository: SqlFileRepository) -> None:
    assert repository.list_names() == []
    for name in ["beta", "Alpha", "gamma"]:
        repository.save(name, "")
    (repository.directory / "notes.txt").write_text("ignored")

    assert repository.list_names() == ["Alpha", "beta", "gamma"]


def test_delete(repository: SqlFileRepository) -> None:
    repository.save("old", "select 1;")

    repository.delete("old")

    assert repository.list_names() == []
    with pytest.raises(DeleteError):
        repository.delete("old")


def test_missing_file_is_load_error(repository: SqlFileRepository) -> None:
    with pytest.raises(LoadError, match="not found"):
        repository.load("ghost")


@pytest.mark.parametrize("name", ["", "  ", "../escape", "nested/name", ".."])
def test_names_must_be_plain_file_names(repository: SqlFileRepository, name: str) -> None:
    with pytest.raises(SaveError):
        repository.save(name, "select 1;")
