from __future__ import annotations

import concurrent.futures
import threading
import time
import traceback
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

from paperboy.core.base import PaperboyManager
from paperboy.core.lifecycle import LifecycleGuard
from paperboy.core.result_router import ResultRouter
from paperboy.utils.exceptions import ManagerInitializationError, ManagerShutdownError, TaskExecutorError

T = TypeVar('T')


class TaskStatus(str, Enum):
    """Status of task execution."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    DISCARDED = "discarded"


@dataclass(frozen=True)
class TaskOutcome(Generic[T]):
    """Value or error produced by one task, safe to hand across threads."""

    task_id: str
    task_name: str
    value: Optional[T] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    traceback: Optional[str] = None

    @property
    def ok(self) -> bool:
        """Whether the work function returned normally."""
        return self.error is None


class TaskHandle:
    """
    Submitter's view of a running task.

    The worker thread cannot be interrupted once its blocking call has
    started; ``discard`` instead tells the router to drop the result when
    it arrives.
    """

    def __init__(self, task_id: str, name: str) -> None:
        self.task_id = task_id
        self.name = name
        self.created_at = time.time()
        self._status = TaskStatus.PENDING
        self._status_lock = threading.Lock()
        self._discarded = threading.Event()
        self._future: concurrent.futures.Future = concurrent.futures.Future()

    @property
    def status(self) -> TaskStatus:
        """Current status of the task."""
        return self._status

    @property
    def discarded(self) -> bool:
        """Whether the submitter no longer wants this task's result."""
        return self._discarded.is_set()

    def discard(self) -> None:
        """Mark the result as unwanted; the work itself keeps running."""
        with self._status_lock:
            self._discarded.set()
            if self._status in (TaskStatus.PENDING, TaskStatus.RUNNING):
                self._status = TaskStatus.DISCARDED

    def done(self) -> bool:
        """Whether the work function has finished."""
        return self._future.done()

    def wait(self, timeout: Optional[float] = None) -> TaskOutcome:
        """
        Block until the outcome is available.

        Intended for worker threads, scripts and tests; UI code receives the
        outcome through its callback instead.
        """
        return self._future.result(timeout=timeout)

    def _set_status(self, status: TaskStatus) -> None:
        with self._status_lock:
            if not self._discarded.is_set():
                self._status = status

    def _finish(self, outcome: TaskOutcome) -> None:
        self._set_status(TaskStatus.COMPLETED if outcome.ok else TaskStatus.FAILED)

    def _resolve(self, outcome: TaskOutcome) -> None:
        self._future.set_result(outcome)

    def __repr__(self) -> str:
        """Return string representation."""
        return f"TaskHandle(task_id={self.task_id!r}, name={self.name!r}, status={self.status.value})"


class TaskExecutor(PaperboyManager):
    """
    Runs each submitted unit of work on its own worker thread.

    There is no pool and no queue: every ``submit`` call starts an
    independent daemon thread. Exceptions raised by the work function are
    caught at the thread boundary and turned into a failed ``TaskOutcome``,
    which is handed to the ``ResultRouter`` like any other result; the
    completion callback therefore always runs on the UI thread.
    """

    def __init__(self, config_manager: Any, logger_manager: Any, router: ResultRouter) -> None:
        """
        Initialize the task executor.

        Args:
            config_manager: Configuration manager
            logger_manager: Logger manager
            router: Router that marshals outcomes onto the UI thread
        """
        super().__init__(name='task_executor')
        self._config_manager = config_manager
        self._logger = logger_manager.get_logger('task_executor')
        self._router = router

        self._thread_name_prefix = 'paperboy-worker'
        self._join_timeout = 2.0

        self._threads: Dict[str, threading.Thread] = {}
        self._threads_lock = threading.RLock()
        self._submitted = 0
        self._failed = 0
        self._accepting = False

    def initialize(self) -> None:
        """Initialize the task executor."""
        try:
            thread_config = self._config_manager.get('thread_pool', {})
            self._thread_name_prefix = thread_config.get('thread_name_prefix', 'paperboy-worker')
            self._join_timeout = float(thread_config.get('join_timeout', 2.0))

            self._config_manager.register_listener('thread_pool', self._on_config_changed)

            self._accepting = True
            self._initialized = True
            self._healthy = True
            self._logger.info('Task Executor initialized')

        except Exception as e:
            self._logger.error(f'Failed to initialize Task Executor: {str(e)}')
            raise ManagerInitializationError(
                f'Failed to initialize TaskExecutor: {str(e)}',
                manager_name=self.name
            ) from e

    def submit(self,
               work_fn: Callable[[], T],
               on_result: Optional[Callable[[TaskOutcome[T]], None]] = None,
               *,
               guard: Optional[LifecycleGuard] = None,
               name: Optional[str] = None) -> TaskHandle:
        """
        Run ``work_fn`` on a new worker thread.

        Args:
            work_fn: Blocking work; must not touch UI-owned objects
            on_result: Callback run on the UI thread with the outcome
            guard: Guard of the submitting session; a dead guard drops the callback
            name: Task name for logs and thread naming

        Returns:
            Handle for the submitted task

        Raises:
            TaskExecutorError: If the executor is not accepting work
        """
        if not self._accepting:
            raise TaskExecutorError('Task Executor is not accepting tasks')

        task_id = str(uuid.uuid4())
        task_name = name or f'task-{task_id[:8]}'
        handle = TaskHandle(task_id, task_name)

        thread = threading.Thread(
            target=self._run_task,
            args=(handle, work_fn, on_result, guard),
            name=f'{self._thread_name_prefix}-{task_name}',
            daemon=True,
        )
        with self._threads_lock:
            self._threads[task_id] = thread
            self._submitted += 1
        thread.start()

        self._logger.debug(
            f"Submitted task {task_name}",
            extra={
                'task_id': task_id,
                'guard': guard.snapshot() if guard is not None else None,
            }
        )
        return handle

    def _run_task(self,
                  handle: TaskHandle,
                  work_fn: Callable[[], Any],
                  on_result: Optional[Callable[[TaskOutcome], None]],
                  guard: Optional[LifecycleGuard]) -> None:
        """Worker thread body."""
        try:
            handle._set_status(TaskStatus.RUNNING)
            try:
                outcome = TaskOutcome(task_id=handle.task_id, task_name=handle.name, value=work_fn())
            except Exception as e:
                with self._threads_lock:
                    self._failed += 1
                self._logger.error(
                    f"Task {handle.name} failed: {str(e)}",
                    extra={'task_id': handle.task_id},
                    exc_info=True
                )
                outcome = TaskOutcome(
                    task_id=handle.task_id,
                    task_name=handle.name,
                    error=str(e) or type(e).__name__,
                    error_type=type(e).__name__,
                    traceback=traceback.format_exc(),
                )

            handle._finish(outcome)
            try:
                if on_result is not None:
                    self._router.deliver(outcome, on_result, guard=guard, handle=handle)
            finally:
                handle._resolve(outcome)
        finally:
            with self._threads_lock:
                self._threads.pop(handle.task_id, None)

    def active_count(self) -> int:
        """Number of worker threads still running."""
        with self._threads_lock:
            return len(self._threads)

    def _on_config_changed(self, key: str, value: Any) -> None:
        """
        Handle configuration changes.

        Args:
            key: Changed configuration key
            value: New value
        """
        if key == 'thread_pool.thread_name_prefix':
            self._thread_name_prefix = str(value)
        elif key == 'thread_pool.join_timeout':
            self._join_timeout = float(value)

    def shutdown(self) -> None:
        """
        Stop accepting work and give running workers a bounded time to finish.

        Workers blocked in a subprocess or network call are daemon threads and
        are left behind after ``join_timeout``; their results are dropped by
        the owning sessions' guards.
        """
        if not self._initialized:
            return

        try:
            self._logger.info('Shutting down Task Executor')
            self._accepting = False

            with self._threads_lock:
                threads = list(self._threads.values())

            deadline = time.monotonic() + self._join_timeout
            for thread in threads:
                thread.join(timeout=max(0.0, deadline - time.monotonic()))

            left_behind = self.active_count()
            if left_behind:
                self._logger.warning(f'{left_behind} worker thread(s) still running at shutdown')

            self._config_manager.unregister_listener('thread_pool', self._on_config_changed)

            self._initialized = False
            self._healthy = False
            self._logger.info('Task Executor shut down successfully')

        except Exception as e:
            self._logger.error(f'Failed to shut down Task Executor: {str(e)}')
            raise ManagerShutdownError(
                f'Failed to shut down TaskExecutor: {str(e)}',
                manager_name=self.name
            ) from e

    def status(self) -> Dict[str, Any]:
        """
        Get task executor status.

        Returns:
            Status information dictionary
        """
        status = super().status()
        with self._threads_lock:
            status.update({
                'tasks': {
                    'active': len(self._threads),
                    'submitted': self._submitted,
                    'failed': self._failed,
                },
                'thread_name_prefix': self._thread_name_prefix,
                'router': self._router.stats(),
            })
        return status
