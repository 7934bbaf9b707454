"""Driver capability interface and the registry that opens connections."""

from __future__ import annotations

import importlib.metadata as metadata
import inspect
import logging
import sqlite3
import threading
from types import ModuleType
from typing import Any, Iterable, Protocol, Sequence, runtime_checkable

from .errors import ConnectionOpenError, DriverLoadError, vendor_code_of

LOG = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "sqlconsole.drivers"


@runtime_checkable
class Cursor(Protocol):
    """Subset of the DB-API 2.0 cursor used by the executor."""

    description: Sequence[Sequence[Any]] | None
    rowcount: int

    def execute(self, operation: str) -> Any: ...

    def fetchmany(self, size: int) -> Sequence[Sequence[Any]]: ...

    def fetchone(self) -> Sequence[Any] | None: ...

    def close(self) -> None: ...


@runtime_checkable
class Connection(Protocol):
    """Subset of the DB-API 2.0 connection used by the session layer."""

    def cursor(self) -> Cursor: ...

    def close(self) -> None: ...


@runtime_checkable
class Driver(Protocol):
    """Capability implemented by every driver the registry can hold."""

    def accepts_url(self, url: str) -> bool:
        """Whether this driver understands ``url``."""

    def connect(self, url: str, user: str | None, password: str | None) -> Connection:
        """Open a physical connection."""


class DelegatingDriver:
    """Registry-facing wrapper forwarding every call to the loaded driver."""

    def __init__(self, delegate: Driver) -> None:
        if delegate is None:
            raise ValueError("delegate cannot be None")
        self._delegate = delegate

    @property
    def delegate(self) -> Driver:
        return self._delegate

    def accepts_url(self, url: str) -> bool:
        return self._delegate.accepts_url(url)

    def connect(self, url: str, user: str | None, password: str | None) -> Connection:
        return self._delegate.connect(url, user, password)

    def __getattr__(self, name: str) -> Any:
        if name == "_delegate":
            raise AttributeError(name)
        return getattr(self._delegate, name)

    def __repr__(self) -> str:
        return f"DelegatingDriver({self._delegate!r})"


def url_scheme(url: str) -> str:
    scheme, sep, _ = url.partition(":")
    return scheme.lower() if sep else ""


class SqliteDriver:
    """Built-in driver for ``sqlite:`` URLs backed by :mod:`sqlite3`.

    ``sqlite::memory:`` and ``sqlite:`` open an in-memory database,
    ``sqlite:///abs/path.db`` and ``sqlite:relative.db`` open files.
    """

    name = "sqlite"

    def accepts_url(self, url: str) -> bool:
        return url_scheme(url) == "sqlite"

    def connect(self, url: str, user: str | None, password: str | None) -> Connection:
        database = self.database_path(url)
        return sqlite3.connect(database, isolation_level=None, check_same_thread=False)

    @staticmethod
    def database_path(url: str) -> str:
        _, _, rest = url.partition(":")
        if rest.startswith("//"):
            rest = rest[2:]
        return rest or ":memory:"

    def __repr__(self) -> str:
        return "SqliteDriver()"


class DbApiModuleDriver:
    """Adapts a DB-API 2.0 module to the driver capability.

    URLs take the form ``<module>:<dsn>``; the DSN part is handed to the
    module's ``connect`` unchanged, credentials as keyword arguments.
    """

    def __init__(self, module: ModuleType, *, schemes: Iterable[str] | None = None) -> None:
        if not callable(getattr(module, "connect", None)):
            raise DriverLoadError(f"Module '{module.__name__}' has no DB-API connect()")
        self._module = module
        default = {module.__name__.lower(), module.__name__.rsplit(".", 1)[-1].lower()}
        self._schemes = frozenset(scheme.lower() for scheme in schemes) if schemes else frozenset(default)

    @property
    def module(self) -> ModuleType:
        return self._module

    @property
    def name(self) -> str:
        return self._module.__name__

    def accepts_url(self, url: str) -> bool:
        return url_scheme(url) in self._schemes

    def connect(self, url: str, user: str | None, password: str | None) -> Connection:
        _, _, dsn = url.partition(":")
        kwargs: dict[str, object] = {}
        if user:
            kwargs["user"] = user
        if password:
            kwargs["password"] = password
        conn = self._module.connect(dsn, **kwargs) if dsn else self._module.connect(**kwargs)
        _enable_autocommit(conn)
        return conn

    def __repr__(self) -> str:
        return f"DbApiModuleDriver({self._module.__name__!r})"


def _enable_autocommit(conn: Any) -> None:
    if not hasattr(conn, "autocommit"):
        return
    try:
        conn.autocommit = True
    except Exception:  # pragma: no cover - driver specific
        LOG.debug("Driver refused autocommit", exc_info=True)


def adapt_driver(obj: object) -> Driver:
    """Turn an imported object (module, class or instance) into a driver."""

    if inspect.ismodule(obj):
        return DbApiModuleDriver(obj)
    if inspect.isclass(obj):
        try:
            obj = obj()
        except Exception as exc:
            raise DriverLoadError(f"Could not instantiate driver class {obj.__qualname__}: {exc}") from exc
    if not isinstance(obj, Driver):
        raise DriverLoadError(f"{obj!r} does not implement the driver interface (accepts_url/connect)")
    return obj


def _driver_key(driver: Driver) -> object:
    inner = driver.delegate if isinstance(driver, DelegatingDriver) else driver
    if isinstance(inner, DbApiModuleDriver):
        return ("module", inner.name)
    return type(inner)


class DriverRegistry:
    """Holds the drivers consulted when a connection is opened."""

    def __init__(self, drivers: Iterable[Driver] = ()) -> None:
        self._lock = threading.Lock()
        self._drivers: list[Driver] = []
        for driver in drivers:
            self.register(driver)

    @classmethod
    def with_defaults(cls, *, discover: bool = True) -> DriverRegistry:
        """Registry pre-populated with the built-in drivers."""

        from .postgres import AsyncpgDriver

        registry = cls([SqliteDriver(), AsyncpgDriver()])
        if discover:
            registry.discover()
        return registry

    def register(self, driver: Driver) -> None:
        """Register ``driver``, replacing an earlier driver of the same kind."""

        if not isinstance(driver, Driver):
            raise DriverLoadError(f"{driver!r} does not implement the driver interface")
        key = _driver_key(driver)
        with self._lock:
            self._drivers = [existing for existing in self._drivers if _driver_key(existing) != key]
            self._drivers.append(driver)
        LOG.debug("Registered driver", extra={"driver": repr(driver)})

    def deregister(self, driver: Driver) -> None:
        with self._lock:
            self._drivers = [existing for existing in self._drivers if existing is not driver]

    def drivers(self) -> tuple[Driver, ...]:
        with self._lock:
            return tuple(self._drivers)

    def driver_for(self, url: str) -> Driver | None:
        """Return the first registered driver that accepts ``url``."""

        for driver in self.drivers():
            if driver.accepts_url(url):
                return driver
        return None

    def connect(self, url: str, user: str | None = None, password: str | None = None) -> Connection:
        """Open ``url`` with the first accepting driver that succeeds."""

        if not url or not url.strip():
            raise ConnectionOpenError("No connection URL configured")
        first_error: Exception | None = None
        for driver in self.drivers():
            if not driver.accepts_url(url):
                continue
            try:
                return driver.connect(url, user, password)
            except Exception as exc:
                LOG.debug("Driver failed to connect", extra={"driver": repr(driver)}, exc_info=True)
                if first_error is None:
                    first_error = exc
        if first_error is not None:
            raise ConnectionOpenError(
                f"Failed to establish connection: {first_error}",
                vendor_code=vendor_code_of(first_error),
            ) from first_error
        raise ConnectionOpenError(f"No suitable driver found for {url}")

    def discover(self, group: str = ENTRY_POINT_GROUP) -> list[str]:
        """Register drivers advertised by installed distributions."""

        found: list[str] = []
        for entry_point in sorted(metadata.entry_points().select(group=group), key=lambda ep: ep.name):
            try:
                driver = adapt_driver(entry_point.load())
            except Exception:
                LOG.warning("Skipping driver entry point", extra={"entry_point": entry_point.name}, exc_info=True)
                continue
            self.register(DelegatingDriver(driver))
            found.append(entry_point.name)
        return found


__all__ = [
    "Connection",
    "Cursor",
    "DbApiModuleDriver",
    "DelegatingDriver",
    "Driver",
    "DriverRegistry",
    "ENTRY_POINT_GROUP",
    "SqliteDriver",
    "adapt_driver",
    "url_scheme",
]
