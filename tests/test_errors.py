"""Tests for error rendering helpers."""

from __future__ import annotations

import pytest

from sqlconsole.errors import (
    ConnectionOpenError,
    QueryExecutionError,
    describe_error,
    root_cause,
    vendor_code_of,
)


class _VendorError(Exception):
    def __init__(self, message: str, sqlstate: str) -> None:
        super().__init__(message)
        self.sqlstate = sqlstate


def _chain(inner: BaseException, outer: BaseException) -> BaseException:
    try:
        try:
            raise inner
        except type(inner) as exc:
            raise outer from exc
    except type(outer) as exc:
        return exc
    raise AssertionError("unreachable")


def test_root_cause_follows_explicit_chain() -> None:
    inner = ValueError("innermost")
    error = _chain(inner, QueryExecutionError("wrapped"))

    assert root_cause(error) is inner


def test_root_cause_respects_suppressed_context() -> None:
    try:
        try:
            raise ValueError("hidden")
        except ValueError:
            raise QueryExecutionError("visible") from None
    except QueryExecutionError as exc:
        error = exc

    assert root_cause(error) is error


def test_root_cause_detects_loops() -> None:
    first = ValueError("a")
    second = ValueError("b")
    first.__cause__ = second
    second.__cause__ = first

    with pytest.raises(ValueError, match="loop"):
        root_cause(first)


def test_describe_error_shows_sqlstate_and_root_message() -> None:
    error = _chain(_VendorError('relation "missing" does not exist', "42P01"), QueryExecutionError("failed"))

    assert describe_error(error) == 'SQLState: 42P01\nrelation "missing" does not exist'


def test_describe_error_shows_other_codes_as_error_code() -> None:
    error = ConnectionOpenError("Failed to establish connection: refused", vendor_code=1045)

    assert describe_error(error) == "Error Code: 1045\nFailed to establish connection: refused"


def test_describe_error_reports_missing_module() -> None:
    error = _chain(ModuleNotFoundError("No module named 'nodriver'", name="nodriver"), RuntimeError("load"))

    assert describe_error(error) == "Module not found: nodriver"


def test_describe_error_falls_back_to_outer_message_and_type() -> None:
    error = _chain(ValueError(""), QueryExecutionError("outer"))

    assert describe_error(error) == "outer"
    assert describe_error(RuntimeError()) == "RuntimeError"


def test_vendor_code_of_ignores_empty_values() -> None:
    error = _VendorError("x", "")

    assert vendor_code_of(error) is None
