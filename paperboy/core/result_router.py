from __future__ import annotations

import functools
import threading
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from paperboy.core.dispatcher import Dispatcher
from paperboy.core.lifecycle import LifecycleGuard

if TYPE_CHECKING:
    from paperboy.core.task_executor import TaskHandle, TaskOutcome


class ResultRouter:
    """
    The single re-entry point from worker threads into UI-thread code.

    Every result produced off the UI thread is wrapped in a closure that
    re-checks the owning session's ``LifecycleGuard`` (and the task handle,
    when there is one) as its very first action on the UI thread. When the
    session has gone away, or the task was superseded, the closure returns
    without touching anything. Such drops are normal and are only logged at
    debug level.
    """

    def __init__(self, dispatcher: Dispatcher, logger_manager: Any) -> None:
        """
        Initialize the router.

        Args:
            dispatcher: Dispatcher that runs closures on the UI thread
            logger_manager: Logger manager
        """
        self._dispatcher = dispatcher
        self._logger = logger_manager.get_logger('result_router')
        self._counts = {'posted': 0, 'delivered': 0, 'dropped': 0}
        self._counts_lock = threading.Lock()

    @property
    def dispatcher(self) -> Dispatcher:
        """Dispatcher used for delivery."""
        return self._dispatcher

    def deliver(self,
                outcome: TaskOutcome,
                on_result: Callable[[TaskOutcome], None],
                guard: Optional[LifecycleGuard] = None,
                handle: Optional[TaskHandle] = None) -> None:
        """
        Hand a task outcome to ``on_result`` on the UI thread.

        Called from the worker thread that produced ``outcome``.

        Args:
            outcome: Immutable task outcome
            on_result: UI-thread callback receiving the outcome
            guard: Guard of the session that submitted the task
            handle: Handle of the task, checked for discard at delivery time
        """
        if self._is_stale(guard, handle):
            self._record_drop(on_result, guard, 'before post')
            return
        self.post(guard, on_result, outcome, handle=handle)

    def post(self,
             guard: Optional[LifecycleGuard],
             func: Callable[..., Any],
             *args: Any,
             handle: Optional[TaskHandle] = None,
             **kwargs: Any) -> None:
        """
        Post any UI-mutating closure behind a liveness check.

        Args:
            guard: Guard of the session that owns ``func``
            func: Closure to run on the UI thread
            *args: Plain-data arguments for ``func``
            handle: Optional task handle; a discarded handle drops the call
            **kwargs: Plain-data keyword arguments for ``func``
        """
        with self._counts_lock:
            self._counts['posted'] += 1
        self._dispatcher.post(self.guarded(func, guard, handle=handle), *args, **kwargs)

    def guarded(self,
                func: Callable[..., Any],
                guard: Optional[LifecycleGuard],
                handle: Optional[TaskHandle] = None) -> Callable[..., None]:
        """
        Wrap ``func`` so it becomes a no-op once its owner is gone.

        Args:
            func: Closure to protect
            guard: Guard captured now, checked when the closure runs
            handle: Optional task handle, checked when the closure runs

        Returns:
            The guarded closure
        """

        @functools.wraps(func)
        def guarded_closure(*args: Any, **kwargs: Any) -> None:
            if self._is_stale(guard, handle):
                self._record_drop(func, guard, 'on delivery')
                return
            with self._counts_lock:
                self._counts['delivered'] += 1
            func(*args, **kwargs)

        return guarded_closure

    @staticmethod
    def _is_stale(guard: Optional[LifecycleGuard], handle: Optional[TaskHandle]) -> bool:
        if guard is not None and not guard.is_alive():
            return True
        return handle is not None and handle.discarded

    def _record_drop(self, func: Callable[..., Any], guard: Optional[LifecycleGuard], stage: str) -> None:
        with self._counts_lock:
            self._counts['dropped'] += 1
        self._logger.debug(
            f"Dropped stale result for {getattr(func, '__qualname__', func)!s} ({stage})",
            extra={'guard': guard.snapshot() if guard is not None else None},
        )

    def stats(self) -> Dict[str, int]:
        """Counts of posted, delivered and dropped closures."""
        with self._counts_lock:
            return dict(self._counts)
