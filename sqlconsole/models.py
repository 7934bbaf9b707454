"""Shared data types used across the profile, session and query modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, field_validator

DEFAULT_STATEMENT_SEPARATOR = ";"

Row = Mapping[str, Any]


class ConnectionProfile(BaseModel):
    """A named description of how to reach one database."""

    model_config = ConfigDict(frozen=True)

    name: str
    driver_class_name: str | None = None
    connection_url: str = ""
    auto_login: bool = False
    user_name: str | None = None
    password: str | None = None
    statement_separator: str = DEFAULT_STATEMENT_SEPARATOR
    hotkey: str | None = None
    order: int | None = None

    @field_validator("hotkey")
    @classmethod
    def _single_character(cls, value: str | None) -> str | None:
        if value is None or value == "":
            return None
        if len(value) != 1:
            raise ValueError("hotkey must be a single character")
        return value

    @field_validator("statement_separator")
    @classmethod
    def _non_empty_separator(cls, value: str) -> str:
        return value or DEFAULT_STATEMENT_SEPARATOR

    def same_name(self, other: str) -> bool:
        """Profile names compare case-insensitively."""

        return self.name.casefold() == other.casefold()


@dataclass(frozen=True, slots=True)
class RowSet:
    """Rows materialized from a statement that produced a result set."""

    columns: tuple[str, ...]
    rows: tuple[Row, ...] = field(default_factory=tuple)
    truncated: bool = False


@dataclass(frozen=True, slots=True)
class UpdateCount:
    """Affected-row count of a statement without a result set (-1 when unknown)."""

    count: int


StatementResult = RowSet | UpdateCount


__all__ = [
    "ConnectionProfile",
    "DEFAULT_STATEMENT_SEPARATOR",
    "Row",
    "RowSet",
    "StatementResult",
    "UpdateCount",
]
