"""Run work off the UI thread and hand outcomes back through a UI sink."""

from __future__ import annotations

import enum
import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from functools import partial
from typing import Any, Callable, Generic, TypeVar

from .errors import ExecutionCancelled

LOG = logging.getLogger(__name__)

T = TypeVar("T")

UiSink = Callable[[Callable[[], Any]], Any]


class CancellationToken:
    """Cooperative cancellation flag checked by running work."""

    def __init__(self) -> None:
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ExecutionCancelled()

    def __call__(self) -> bool:
        return self.cancelled


class TaskState(enum.Enum):
    SUBMITTED = "submitted"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    INTERRUPTED = "interrupted"

    @property
    def terminal(self) -> bool:
        return self in (TaskState.COMPLETED, TaskState.FAILED, TaskState.INTERRUPTED)


class BackgroundTask(ABC, Generic[T]):
    """Unit of work executed by :class:`TaskRunner`.

    ``run`` executes on the worker thread. Exactly one of the ``on_*`` hooks
    is later invoked through the runner's UI sink; whatever the hook returns
    (an awaitable, for instance) is handed back to the sink.
    """

    def __init__(self) -> None:
        self._token = CancellationToken()
        self._state = TaskState.SUBMITTED
        self._state_lock = threading.Lock()

    @property
    def token(self) -> CancellationToken:
        return self._token

    @property
    def state(self) -> TaskState:
        return self._state

    @abstractmethod
    def run(self, token: CancellationToken) -> T:
        """Do the work; check ``token`` at safe points."""

    def on_completed(self, result: T) -> Any:
        return None

    def on_failed(self, error: BaseException) -> Any:
        return None

    def on_interrupted(self) -> Any:
        return None

    def _transition(self, new: TaskState) -> bool:
        with self._state_lock:
            if self._state.terminal:
                return False
            self._state = new
            return True


class FunctionTask(BackgroundTask[T]):
    """Adapts plain callables to :class:`BackgroundTask`."""

    def __init__(
        self,
        work: Callable[[CancellationToken], T],
        *,
        on_completed: Callable[[T], Any] | None = None,
        on_failed: Callable[[BaseException], Any] | None = None,
        on_interrupted: Callable[[], Any] | None = None,
    ) -> None:
        super().__init__()
        self._work = work
        self._completed = on_completed
        self._failed = on_failed
        self._interrupted = on_interrupted

    def run(self, token: CancellationToken) -> T:
        return self._work(token)

    def on_completed(self, result: T) -> Any:
        if self._completed is not None:
            return self._completed(result)
        return None

    def on_failed(self, error: BaseException) -> Any:
        if self._failed is not None:
            return self._failed(error)
        return None

    def on_interrupted(self) -> Any:
        if self._interrupted is not None:
            return self._interrupted()
        return None


class TaskRunner:
    """Single worker thread; tasks run one at a time in submission order."""

    def __init__(self, ui_sink: UiSink, *, thread_name_prefix: str = "sqlconsole-worker") -> None:
        self._sink = ui_sink
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=thread_name_prefix)

    def start(self, task: BackgroundTask[Any]) -> BackgroundTask[Any]:
        """Queue ``task`` and return immediately."""

        future = self._executor.submit(self._execute, task)
        future.add_done_callback(partial(self._discarded, task))
        return task

    def cancel(self, task: BackgroundTask[Any]) -> None:
        """Request interruption; ignored once the task has finished."""

        if task.state.terminal:
            return
        task.token.cancel()

    def shutdown(self, *, wait: bool = True) -> None:
        """Stop the worker; queued tasks that never started are interrupted."""

        self._executor.shutdown(wait=wait, cancel_futures=True)

    def _execute(self, task: BackgroundTask[Any]) -> None:
        if task.token.cancelled:
            self._finish(task, TaskState.INTERRUPTED, task.on_interrupted)
            return
        task._transition(TaskState.RUNNING)
        try:
            result = task.run(task.token)
        except ExecutionCancelled:
            self._finish(task, TaskState.INTERRUPTED, task.on_interrupted)
        except Exception as exc:
            LOG.debug("Task failed", extra={"task": type(task).__name__}, exc_info=True)
            self._finish(task, TaskState.FAILED, partial(task.on_failed, exc))
        else:
            if task.token.cancelled:
                self._finish(task, TaskState.INTERRUPTED, task.on_interrupted)
            else:
                self._finish(task, TaskState.COMPLETED, partial(task.on_completed, result))

    def _discarded(self, task: BackgroundTask[Any], future: Future[None]) -> None:
        if future.cancelled():
            self._finish(task, TaskState.INTERRUPTED, task.on_interrupted)

    def _finish(self, task: BackgroundTask[Any], state: TaskState, callback: Callable[[], Any]) -> None:
        if not task._transition(state):
            return
        try:
            self._sink(callback)
        except Exception:
            LOG.exception("UI sink rejected task outcome", extra={"task": type(task).__name__})


__all__ = [
    "BackgroundTask",
    "CancellationToken",
    "FunctionTask",
    "TaskRunner",
    "TaskState",
    "UiSink",
]
