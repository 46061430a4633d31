"""Unit tests for the Task Executor."""

import threading
import time
from unittest.mock import MagicMock

import pytest

from paperboy.core.lifecycle import LifecycleGuard
from paperboy.core.task_executor import TaskExecutor, TaskStatus
from paperboy.utils.exceptions import TaskExecutorError


def test_task_executor_initialization(config_manager, logger_manager, router):
    """Test that the TaskExecutor initializes from configuration."""
    task_executor = TaskExecutor(config_manager, logger_manager, router)
    task_executor.initialize()

    assert task_executor.initialized
    assert task_executor.healthy
    assert task_executor.status()["thread_name_prefix"] == "test-worker"

    task_executor.shutdown()
    assert not task_executor.initialized


def test_submit_runs_work_on_worker_thread(executor, dispatcher):
    """Work runs off the submitting thread; the callback runs on it."""
    main_thread = threading.get_ident()
    work_threads = []
    callback_threads = []

    def work():
        work_threads.append((threading.get_ident(), threading.current_thread().name))
        return 21 * 2

    handle = executor.submit(
        work,
        lambda outcome: callback_threads.append((outcome.value, threading.get_ident())),
        name="answer",
    )
    outcome = handle.wait(timeout=2.0)

    assert outcome.ok
    assert outcome.value == 42
    assert work_threads[0][0] != main_thread
    assert work_threads[0][1] == "test-worker-answer"
    assert handle.status == TaskStatus.COMPLETED

    assert callback_threads == []
    dispatcher.run_pending()
    assert callback_threads == [(42, main_thread)]


def test_failing_task_becomes_error_outcome(executor, dispatcher):
    """An exception in the work function is delivered as a failed outcome."""

    def failing_function():
        raise ValueError("Test error")

    received = []
    handle = executor.submit(failing_function, received.append)
    outcome = handle.wait(timeout=2.0)

    assert not outcome.ok
    assert outcome.error == "Test error"
    assert outcome.error_type == "ValueError"
    assert "ValueError" in outcome.traceback
    assert handle.status == TaskStatus.FAILED

    dispatcher.run_pending()
    assert received == [outcome]
    assert executor.status()["tasks"]["failed"] == 1


def test_dead_guard_drops_callback(executor, dispatcher):
    """A session torn down while the work runs never sees the result."""
    release = threading.Event()
    guard = LifecycleGuard("dialog")
    callback = MagicMock()

    handle = executor.submit(lambda: release.wait(2.0), callback, guard=guard)
    guard.invalidate()
    release.set()
    handle.wait(timeout=2.0)

    dispatcher.run_pending()
    callback.assert_not_called()


def test_discarded_task_keeps_running_but_is_not_delivered(executor, dispatcher):
    """Discarding is logical cancellation."""
    release = threading.Event()
    finished = []
    callback = MagicMock()

    def work():
        release.wait(2.0)
        finished.append(True)
        return "late"

    handle = executor.submit(work, callback)
    handle.discard()
    assert handle.status == TaskStatus.DISCARDED

    release.set()
    outcome = handle.wait(timeout=2.0)

    assert outcome.value == "late"
    assert finished == [True]
    assert handle.status == TaskStatus.DISCARDED
    dispatcher.run_pending()
    callback.assert_not_called()


def test_submit_without_callback(executor, dispatcher):
    """Fire-and-forget work posts nothing."""
    handle = executor.submit(lambda: "done")
    assert handle.wait(timeout=2.0).value == "done"
    assert dispatcher.pending() == 0


def test_submit_after_shutdown_raises(config_manager, logger_manager, router):
    """A stopped executor refuses work."""
    task_executor = TaskExecutor(config_manager, logger_manager, router)
    task_executor.initialize()
    task_executor.shutdown()

    with pytest.raises(TaskExecutorError):
        task_executor.submit(lambda: None)


def test_shutdown_waits_for_running_workers(config_manager, logger_manager, router):
    """Shutdown joins workers that finish within the join timeout."""
    task_executor = TaskExecutor(config_manager, logger_manager, router)
    task_executor.initialize()

    task_executor.submit(lambda: time.sleep(0.05))
    task_executor.shutdown()

    assert task_executor.active_count() == 0


def test_config_change_updates_prefix(executor, config_manager):
    """Thread naming follows configuration changes."""
    config_manager.set("thread_pool.thread_name_prefix", "renamed")

    names = []
    executor.submit(lambda: names.append(threading.current_thread().name), name="probe").wait(2.0)
    assert names == ["renamed-probe"]


def test_independent_tasks_run_concurrently(executor):
    """Each task has its own thread, so a blocked task does not block others."""
    release = threading.Event()
    blocked = executor.submit(lambda: release.wait(2.0))
    quick = executor.submit(lambda: "quick")

    assert quick.wait(timeout=1.0).value == "quick"
    assert not blocked.done()
    release.set()
    blocked.wait(timeout=2.0)
