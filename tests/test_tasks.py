"""Tests for the background task runner."""

from __future__ import annotations

import asyncio
import inspect
import queue
import threading
from typing import Callable

import pytest

from sqlconsole.errors import ExecutionCancelled
from sqlconsole.tasks import BackgroundTask, CancellationToken, FunctionTask, TaskRunner, TaskState


class _QueueSink:
    """Collects callbacks the way a UI loop would, run later by the test."""

    def __init__(self) -> None:
        self.pending: queue.Queue[Callable[[], object]] = queue.Queue()

    def __call__(self, callback: Callable[[], object]) -> None:
        self.pending.put(callback)

    def drain_one(self, timeout: float = 5.0) -> None:
        self.pending.get(timeout=timeout)()


class _RecordingTask(BackgroundTask[str]):
    def __init__(self, work: Callable[[CancellationToken], str]) -> None:
        super().__init__()
        self._work = work
        self.outcomes: list[tuple[str, object]] = []
        self.ran = False

    def run(self, token: CancellationToken) -> str:
        self.ran = True
        return self._work(token)

    def on_completed(self, result: str) -> None:
        self.outcomes.append(("completed", result))

    def on_failed(self, error: BaseException) -> None:
        self.outcomes.append(("failed", error))

    def on_interrupted(self) -> None:
        self.outcomes.append(("interrupted", None))


@pytest.fixture
def sink() -> _QueueSink:
    return _QueueSink()


@pytest.fixture
def runner(sink: _QueueSink):
    task_runner = TaskRunner(sink)
    yield task_runner
    task_runner.shutdown()


def test_completed_outcome_is_delivered_through_sink(runner: TaskRunner, sink: _QueueSink) -> None:
    task = _RecordingTask(lambda token: "done")

    runner.start(task)
    callback = sink.pending.get(timeout=5)

    assert task.outcomes == []
    assert task.state is TaskState.COMPLETED
    callback()
    assert task.outcomes == [("completed", "done")]
    assert sink.pending.empty()


def test_failure_outcome_carries_error(runner: TaskRunner, sink: _QueueSink) -> None:
    def _boom(token: CancellationToken) -> str:
        raise RuntimeError("boom")

    task = _RecordingTask(_boom)
    runner.start(task)
    sink.drain_one()

    assert task.state is TaskState.FAILED
    assert len(task.outcomes) == 1
    kind, error = task.outcomes[0]
    assert kind == "failed"
    assert isinstance(error, RuntimeError)
    assert str(error) == "boom"


def test_execution_cancelled_is_reported_as_interrupted(runner: TaskRunner, sink: _QueueSink) -> None:
    def _cancelled(token: CancellationToken) -> str:
        raise ExecutionCancelled()

    task = _RecordingTask(_cancelled)
    runner.start(task)
    sink.drain_one()

    assert task.state is TaskState.INTERRUPTED
    assert task.outcomes == [("interrupted", None)]


def test_task_cancelled_before_start_never_runs(runner: TaskRunner, sink: _QueueSink) -> None:
    release = threading.Event()
    blocker = _RecordingTask(lambda token: "first" if release.wait(5) else "timeout")
    queued = _RecordingTask(lambda token: "second")

    runner.start(blocker)
    runner.start(queued)
    runner.cancel(queued)
    release.set()
    sink.drain_one()
    sink.drain_one()

    assert blocker.outcomes == [("completed", "first")]
    assert queued.ran is False
    assert queued.outcomes == [("interrupted", None)]


def test_cancel_during_run_discards_result(runner: TaskRunner, sink: _QueueSink) -> None:
    started = threading.Event()
    proceed = threading.Event()

    def _work(token: CancellationToken) -> str:
        started.set()
        proceed.wait(5)
        return "late"

    task = _RecordingTask(_work)
    runner.start(task)
    assert started.wait(5)
    runner.cancel(task)
    proceed.set()
    sink.drain_one()

    assert task.outcomes == [("interrupted", None)]


def test_cancel_after_completion_has_no_effect(runner: TaskRunner, sink: _QueueSink) -> None:
    task = _RecordingTask(lambda token: "ok")
    runner.start(task)
    sink.drain_one()

    runner.cancel(task)

    assert task.token.cancelled is False
    assert task.state is TaskState.COMPLETED
    assert task.outcomes == [("completed", "ok")]
    assert sink.pending.empty()


def test_tasks_run_one_at_a_time_in_order(runner: TaskRunner, sink: _QueueSink) -> None:
    active = 0
    peak = 0
    order: list[int] = []
    lock = threading.Lock()

    def _make(index: int) -> Callable[[CancellationToken], str]:
        def _work(token: CancellationToken) -> str:
            nonlocal active, peak
            with lock:
                active += 1
                peak = max(peak, active)
            order.append(index)
            with lock:
                active -= 1
            return str(index)

        return _work

    tasks = [_RecordingTask(_make(index)) for index in range(5)]
    for task in tasks:
        runner.start(task)
    for _ in tasks:
        sink.drain_one()

    assert peak == 1
    assert order == [0, 1, 2, 3, 4]


def test_function_task_routes_hooks(runner: TaskRunner, sink: _QueueSink) -> None:
    seen: list[object] = []
    task = FunctionTask(lambda token: 42, on_completed=seen.append, on_failed=seen.append)

    runner.start(task)
    sink.drain_one()

    assert seen == [42]


def test_function_task_hands_hook_result_to_sink(runner: TaskRunner, sink: _QueueSink) -> None:
    shown: list[object] = []

    async def _show(value: object) -> str:
        shown.append(value)
        return "shown"

    runner.start(FunctionTask(lambda token: "rows", on_completed=_show))
    outcome = sink.pending.get(timeout=5)()

    assert inspect.isawaitable(outcome)
    assert asyncio.run(outcome) == "shown"
    assert shown == ["rows"]


def test_async_failure_hook_receives_error(runner: TaskRunner, sink: _QueueSink) -> None:
    seen: list[BaseException] = []

    async def _show_error(error: BaseException) -> None:
        seen.append(error)

    def _boom(token: CancellationToken) -> str:
        raise ValueError("bad sql")

    runner.start(FunctionTask(_boom, on_failed=_show_error))
    outcome = sink.pending.get(timeout=5)()
    asyncio.run(outcome)

    assert [str(error) for error in seen] == ["bad sql"]


def test_shutdown_interrupts_tasks_that_never_started(runner: TaskRunner, sink: _QueueSink) -> None:
    started = threading.Event()
    release = threading.Event()

    def _block(token: CancellationToken) -> str:
        started.set()
        release.wait(5)
        return "first"

    blocker = _RecordingTask(_block)
    queued = _RecordingTask(lambda token: "second")
    runner.start(blocker)
    runner.start(queued)
    assert started.wait(5)

    runner.shutdown(wait=False)
    release.set()
    sink.drain_one()
    sink.drain_one()

    assert queued.ran is False
    assert queued.state is TaskState.INTERRUPTED
    assert queued.outcomes == [("interrupted", None)]
    assert blocker.outcomes == [("completed", "first")]


def test_cancellation_token_raises_when_cancelled() -> None:
    token = CancellationToken()
    token.raise_if_cancelled()
    assert token() is False

    token.cancel()

    assert token.cancelled is True
    assert token() is True
    with pytest.raises(ExecutionCancelled):
        token.raise_if_cancelled()
