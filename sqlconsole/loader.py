"""Dynamic driver loading from a user supplied classpath.

A *classpath* is an ordered list of import path entries (directories or zip
archives such as wheels) that only become importable while a driver is being
loaded and a connection opened. Drivers named by a profile are imported from
there, adapted to the :class:`~sqlconsole.drivers.Driver` capability, wrapped
in a :class:`~sqlconsole.drivers.DelegatingDriver` and registered.
"""

from __future__ import annotations

import importlib
import logging
import os
import sys
import threading
import zipfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Iterator, Sequence

from .drivers import Connection, DelegatingDriver, Driver, DriverRegistry, adapt_driver
from .errors import ClasspathError, ConnectionOpenError, DatabaseError, DriverLoadError
from .models import ConnectionProfile

LOG = logging.getLogger(__name__)

_SYS_PATH_LOCK = threading.RLock()


@dataclass(frozen=True, slots=True)
class ClassPath:
    """Import path entries made importable by :meth:`activate`."""

    entries: tuple[str, ...] = ()

    @property
    def is_ambient(self) -> bool:
        return not self.entries

    @contextmanager
    def activate(self) -> Iterator[ClassPath]:
        """Prepend the entries to ``sys.path``; restore the previous path on exit."""

        with _SYS_PATH_LOCK:
            if self.is_ambient:
                yield self
                return
            saved = list(sys.path)
            sys.path[:0] = [entry for entry in self.entries if entry not in sys.path]
            importlib.invalidate_caches()
            try:
                yield self
            finally:
                sys.path[:] = saved
                importlib.invalidate_caches()


AMBIENT = ClassPath()


def resolve_class_loader(entries: Iterable[str]) -> ClassPath:
    """Validate classpath entries; an empty list means the ambient path."""

    resolved: list[str] = []
    for raw in entries:
        resolved.append(_resolve_entry(raw))
    if not resolved:
        return AMBIENT
    return ClassPath(tuple(resolved))


def _resolve_entry(raw: str) -> str:
    if raw is None or not str(raw).strip():
        raise ClasspathError("Malformed classpath entry: empty path")
    text = str(raw).strip()
    if "\x00" in text:
        raise ClasspathError(f"Malformed classpath entry: {text!r}")
    path = Path(text).expanduser()
    try:
        absolute = path.resolve()
    except (OSError, RuntimeError) as exc:
        raise ClasspathError(f"Malformed classpath entry: {text} ({exc})") from exc
    if absolute.exists() and not absolute.is_dir() and not zipfile.is_zipfile(absolute):
        raise ClasspathError(f"Classpath entry is neither a directory nor an archive: {text}")
    if not absolute.exists():
        LOG.warning("Classpath entry does not exist", extra={"entry": str(absolute)})
    return os.fspath(absolute)


def _import_reference(reference: str) -> object:
    """Import ``pkg.module``, ``pkg.module:Attr`` or ``pkg.module.Attr``."""

    module_name, sep, attribute = reference.partition(":")
    if sep:
        module = importlib.import_module(module_name)
        target: object = module
        for part in attribute.split("."):
            target = getattr(target, part)
        return target
    try:
        return importlib.import_module(reference)
    except ModuleNotFoundError as exc:
        parent, dot, attr = reference.rpartition(".")
        if not dot or exc.name not in (reference, None):
            raise
        module = importlib.import_module(parent)
        try:
            return getattr(module, attr)
        except AttributeError:
            raise exc from None


def register_driver(driver_class_name: str, class_path: ClassPath, registry: DriverRegistry) -> Driver:
    """Load the named driver through ``class_path`` and register it behind a proxy."""

    reference = driver_class_name.strip()
    if not reference:
        raise DriverLoadError("Driver name is empty")
    with class_path.activate():
        try:
            loaded = _import_reference(reference)
        except Exception as exc:
            raise DriverLoadError(f"Could not load driver {reference}: {exc}") from exc
        driver = adapt_driver(loaded)
    proxy = DelegatingDriver(driver)
    registry.register(proxy)
    LOG.info("Registered driver", extra={"driver": reference})
    return proxy


ClasspathSource = Callable[[], Sequence[str]]


class DriverLoader:
    """Opens physical connections for profiles."""

    def __init__(self, registry: DriverRegistry, classpath: ClasspathSource | Sequence[str] = ()) -> None:
        self._registry = registry
        self._classpath = classpath

    @property
    def registry(self) -> DriverRegistry:
        return self._registry

    def classpath_entries(self) -> list[str]:
        source = self._classpath
        entries = source() if callable(source) else source
        return list(entries)

    def open_connection(
        self,
        profile: ConnectionProfile,
        *,
        user_name: str | None = None,
        password: str | None = None,
    ) -> Connection:
        """Resolve the classpath, register the profile's driver and connect."""

        class_path = resolve_class_loader(self.classpath_entries())
        user = user_name if user_name is not None else profile.user_name
        secret = password if password is not None else profile.password
        with class_path.activate():
            if profile.driver_class_name and profile.driver_class_name.strip():
                register_driver(profile.driver_class_name, class_path, self._registry)
            try:
                connection = self._registry.connect(profile.connection_url, user, secret)
            except DatabaseError:
                raise
            except Exception as exc:
                raise ConnectionOpenError(f"Failed to establish connection: {exc}") from exc
        LOG.info("Opened connection", extra={"profile": profile.name})
        return connection


__all__ = [
    "AMBIENT",
    "ClassPath",
    "DriverLoader",
    "register_driver",
    "resolve_class_loader",
]
