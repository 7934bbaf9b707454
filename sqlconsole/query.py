"""Statement execution against a DB-API connection."""

from __future__ import annotations

import logging
from typing import Any, Callable, Sequence

from .drivers import Connection
from .errors import BatchExecutionError, ExecutionCancelled, QueryExecutionError, vendor_code_of
from .models import Row, RowSet, StatementResult, UpdateCount

LOG = logging.getLogger(__name__)

CancellationCheck = Callable[[], bool]


def execute_statement(connection: Connection, sql: str, row_limit: int) -> StatementResult:
    """Run one statement, keeping at most ``row_limit`` rows of a result set."""

    if row_limit < 1:
        raise ValueError("row_limit must be at least 1")
    statement = sql.strip()
    if not statement:
        raise QueryExecutionError("Provide SQL to execute.")
    try:
        cursor = connection.cursor()
    except Exception as exc:
        raise QueryExecutionError(str(exc) or "SQL execution failed", vendor_code=vendor_code_of(exc)) from exc
    try:
        cursor.execute(statement)
        if cursor.description:
            return _materialize(cursor, row_limit)
        count = cursor.rowcount
        return UpdateCount(count if isinstance(count, int) else -1)
    except QueryExecutionError:
        raise
    except Exception as exc:
        raise QueryExecutionError(str(exc) or "SQL execution failed", vendor_code=vendor_code_of(exc)) from exc
    finally:
        try:
            cursor.close()
        except Exception:  # pragma: no cover - best effort cleanup
            LOG.debug("Cursor close failed", exc_info=True)


def _materialize(cursor: Any, row_limit: int) -> RowSet:
    columns = tuple(str(column[0]) for column in cursor.description)
    fetched = cursor.fetchmany(row_limit)
    truncated = cursor.fetchone() is not None
    rows: list[Row] = []
    for record in fetched:
        rows.append(dict(zip(columns, record)))
    return RowSet(columns=columns, rows=tuple(rows), truncated=truncated)


def execute_batch(
    connection: Connection,
    statements: Sequence[str],
    row_limit: int,
    should_cancel: CancellationCheck | None = None,
) -> list[StatementResult]:
    """Run ``statements`` in order, stopping at the first failure or cancellation."""

    results: list[StatementResult] = []
    for index, sql in enumerate(statements):
        if should_cancel is not None and should_cancel():
            LOG.info("Batch cancelled", extra={"completed": len(results), "total": len(statements)})
            raise ExecutionCancelled(results)
        try:
            results.append(execute_statement(connection, sql, row_limit))
        except QueryExecutionError as exc:
            raise BatchExecutionError(index, results, exc) from exc
    return results


def summarize(results: Sequence[StatementResult]) -> str:
    """One-line status for a finished batch."""

    row_sets = [result for result in results if isinstance(result, RowSet)]
    updated = sum(result.count for result in results if isinstance(result, UpdateCount) and result.count > 0)
    parts = [f"Executed {len(results)} statement(s)"]
    if row_sets:
        fetched = sum(len(result.rows) for result in row_sets)
        more = " (truncated)" if any(result.truncated for result in row_sets) else ""
        parts.append(f"{fetched} row(s) fetched{more}")
    if updated:
        parts.append(f"Total rows affected: {updated}")
    return ". ".join(parts)


def format_value(value: object) -> str:
    """Cell rendering shared by the TUI and the CLI."""

    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    return str(value)


__all__ = [
    "CancellationCheck",
    "execute_batch",
    "execute_statement",
    "format_value",
    "summarize",
]
