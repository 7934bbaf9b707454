"""PostgreSQL driver running asyncpg behind a blocking DB-API facade."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Awaitable, Callable, Sequence, TypeVar

import asyncpg

LOG = logging.getLogger(__name__)

T = TypeVar("T")
Runner = Callable[[Awaitable[T]], T]

_SCHEMES = frozenset({"postgres", "postgresql"})


def _rowcount_from_status(status: str | None) -> int:
    """``"INSERT 0 3"`` -> 3, ``"CREATE TABLE"`` -> -1."""

    if not status:
        return -1
    tail = status.rsplit(" ", 1)[-1]
    return int(tail) if tail.isdigit() else -1


class AsyncpgCursor:
    """Buffered cursor over one asyncpg prepared statement."""

    arraysize = 1

    def __init__(self, conn: Any, run: Runner) -> None:
        self._conn = conn
        self._run = run
        self._rows: list[tuple[Any, ...]] = []
        self._position = 0
        self.description: tuple[tuple[Any, ...], ...] | None = None
        self.rowcount = -1

    def execute(self, operation: str) -> AsyncpgCursor:
        attributes, records, status = self._run(self._execute(operation))
        if attributes:
            self.description = tuple(
                (attr.name, getattr(attr.type, "name", None), None, None, None, None, None)
                for attr in attributes
            )
            self._rows = [tuple(record) for record in records]
            self.rowcount = len(self._rows)
        else:
            self.description = None
            self._rows = []
            self.rowcount = _rowcount_from_status(status)
        self._position = 0
        return self

    async def _execute(self, operation: str) -> tuple[Sequence[Any], list[Any], str | None]:
        statement = await self._conn.prepare(operation)
        attributes = tuple(statement.get_attributes())
        records = await statement.fetch()
        return attributes, list(records), statement.get_statusmsg()

    def fetchone(self) -> tuple[Any, ...] | None:
        if self._position >= len(self._rows):
            return None
        row = self._rows[self._position]
        self._position += 1
        return row

    def fetchmany(self, size: int | None = None) -> list[tuple[Any, ...]]:
        count = self.arraysize if size is None else size
        chunk = self._rows[self._position : self._position + count]
        self._position += len(chunk)
        return chunk

    def fetchall(self) -> list[tuple[Any, ...]]:
        chunk = self._rows[self._position :]
        self._position = len(self._rows)
        return chunk

    def close(self) -> None:
        self._rows = []
        self._position = 0


class AsyncpgConnection:
    """DB-API style connection; every call blocks on the driver's event loop."""

    def __init__(self, conn: Any, run: Runner) -> None:
        self._conn = conn
        self._run = run

    @property
    def raw(self) -> Any:
        return self._conn

    def cursor(self) -> AsyncpgCursor:
        return AsyncpgCursor(self._conn, self._run)

    def commit(self) -> None:
        """asyncpg runs in autocommit mode outside explicit transactions."""

    def close(self) -> None:
        self._run(self._conn.close())


class AsyncpgDriver:
    """Driver for ``postgresql://`` and ``postgres://`` URLs."""

    name = "asyncpg"

    def __init__(self, *, connect_timeout: float = 5.0) -> None:
        self._connect_timeout = connect_timeout
        self._lock = threading.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._loop_thread: threading.Thread | None = None

    def accepts_url(self, url: str) -> bool:
        scheme, sep, _ = url.partition(":")
        return bool(sep) and scheme.lower() in _SCHEMES

    def connect(self, url: str, user: str | None, password: str | None) -> AsyncpgConnection:
        kwargs: dict[str, object] = {"dsn": url, "timeout": self._connect_timeout}
        if user:
            kwargs["user"] = user
        if password:
            kwargs["password"] = password
        conn = self._run(asyncpg.connect(**kwargs))
        return AsyncpgConnection(conn, self._run)

    def shutdown(self) -> None:
        """Stop the background event loop."""

        with self._lock:
            loop, thread = self._loop, self._loop_thread
            self._loop = None
            self._loop_thread = None
        if loop is None or not loop.is_running():
            return
        loop.call_soon_threadsafe(loop.stop)
        if thread is not None:
            thread.join(timeout=1)

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        with self._lock:
            if self._loop is None:
                self._loop = asyncio.new_event_loop()
                self._loop_thread = threading.Thread(
                    target=self._loop.run_forever,
                    name="sqlconsole-asyncpg-driver",
                    daemon=True,
                )
                self._loop_thread.start()
            return self._loop

    def _run(self, coro: Awaitable[T]) -> T:
        future = asyncio.run_coroutine_threadsafe(coro, self._ensure_loop())  # type: ignore[arg-type]
        return future.result()

    def __repr__(self) -> str:
        return "AsyncpgDriver()"


__all__ = ["AsyncpgConnection", "AsyncpgCursor", "AsyncpgDriver"]
