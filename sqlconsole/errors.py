"""Error types shared by the persistence, driver and execution layers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from .models import StatementResult


class SqlConsoleError(RuntimeError):
    """Base class for every error raised by sqlconsole."""


class StateError(SqlConsoleError):
    """Raised when an operation is attempted in the wrong state."""


class LoadError(SqlConsoleError):
    """Raised when persisted data cannot be read."""


class SaveError(SqlConsoleError):
    """Raised when data cannot be persisted."""


class DeleteError(SqlConsoleError):
    """Raised when persisted data cannot be removed."""


class HotkeyConflictError(SaveError, StateError):
    """Raised when a hotkey is already taken by another profile."""

    def __init__(self, hotkey: str, owner: str) -> None:
        super().__init__(f"Hotkey '{hotkey}' is already used by: {owner}")
        self.hotkey = hotkey
        self.owner = owner


class ProfileNotFoundError(DeleteError, StateError):
    """Raised when a profile referenced by name does not exist."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Connection profile not found: {name}")
        self.name = name


class DriverLoadError(SqlConsoleError):
    """Raised when a driver cannot be imported, instantiated or registered."""


class ClasspathError(DriverLoadError):
    """Raised when a classpath entry is malformed."""


class DatabaseError(SqlConsoleError):
    """Wraps a failure reported by the underlying driver."""

    def __init__(self, message: str, *, vendor_code: str | int | None = None) -> None:
        super().__init__(message)
        self.vendor_code = vendor_code


class ConnectionOpenError(DatabaseError):
    """Raised when a physical connection cannot be opened."""


class ConnectionCloseError(DatabaseError):
    """Raised when closing the physical connection fails."""


class QueryExecutionError(DatabaseError):
    """Raised when a statement fails to execute."""


class BatchExecutionError(QueryExecutionError):
    """Raised when a statement of a batch fails; earlier results are kept."""

    def __init__(
        self,
        index: int,
        completed: Sequence["StatementResult"],
        cause: DatabaseError,
    ) -> None:
        super().__init__(
            f"Statement {index + 1} failed: {cause}",
            vendor_code=cause.vendor_code,
        )
        self.index = index
        self.completed = tuple(completed)


class ExecutionCancelled(SqlConsoleError):
    """Raised when execution stops because cancellation was requested."""

    def __init__(self, completed: Sequence["StatementResult"] = ()) -> None:
        super().__init__("Statement execution was interrupted")
        self.completed = tuple(completed)


_VENDOR_CODE_ATTRIBUTES = ("sqlstate", "pgcode", "sqlite_errorname", "errno", "vendor_code")


def vendor_code_of(exc: BaseException) -> str | int | None:
    """Return the driver specific error code carried by ``exc``, if any."""

    for attribute in _VENDOR_CODE_ATTRIBUTES:
        value = getattr(exc, attribute, None)
        if value not in (None, ""):
            return value
    return None


def root_cause(exc: BaseException) -> BaseException:
    """Follow ``__cause__``/``__context__`` links to the innermost exception."""

    seen: set[int] = {id(exc)}
    current = exc
    while True:
        nxt = current.__cause__
        if nxt is None and not current.__suppress_context__:
            nxt = current.__context__
        if nxt is None:
            return current
        if id(nxt) in seen:
            raise ValueError("Cannot extract root cause: loop detected in causes chain") from exc
        seen.add(id(nxt))
        current = nxt


def describe_error(exc: BaseException) -> str:
    """Render an exception for display: vendor code first, then the root message."""

    root = root_cause(exc)
    lines: list[str] = []
    code = vendor_code_of(root)
    if code is None:
        code = vendor_code_of(exc)
    if code is not None:
        label = "SQLState" if isinstance(code, str) and len(code) == 5 and code.isalnum() else "Error Code"
        lines.append(f"{label}: {code}")
    if isinstance(root, ModuleNotFoundError) and root.name:
        lines.append(f"Module not found: {root.name}")
    else:
        message = str(root).strip() or str(exc).strip()
        if message:
            lines.append(message)
    if not lines:
        lines.append(type(exc).__name__)
    return "\n".join(lines)


__all__ = [
    "BatchExecutionError",
    "ClasspathError",
    "ConnectionCloseError",
    "ConnectionOpenError",
    "DatabaseError",
    "DeleteError",
    "DriverLoadError",
    "ExecutionCancelled",
    "HotkeyConflictError",
    "LoadError",
    "ProfileNotFoundError",
    "QueryExecutionError",
    "SaveError",
    "SqlConsoleError",
    "StateError",
    "describe_error",
    "root_cause",
    "vendor_code_of",
]
