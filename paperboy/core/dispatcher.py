from __future__ import annotations

import abc
import logging
import queue
import threading
import time
from typing import Any, Callable, Optional

from PySide6.QtCore import QCoreApplication, QObject, Qt, Signal, Slot

from paperboy.utils.exceptions import DispatcherError

logger = logging.getLogger('dispatcher')


class Dispatcher(abc.ABC):
    """
    Single-threaded queue of closures executed on the UI thread.

    Closures run one at a time, in the order they were posted. ``post`` may be
    called from any thread and never waits for the closure to run.
    """

    def __init__(self) -> None:
        """Remember the thread that owns the dispatcher as the UI thread."""
        self._ui_thread_id = threading.get_ident()

    def is_ui_thread(self) -> bool:
        """Check if the current thread is the UI thread."""
        return threading.get_ident() == self._ui_thread_id

    @abc.abstractmethod
    def post(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        """
        Queue a closure for execution on the UI thread.

        Args:
            func: Function to execute
            *args: Function arguments
            **kwargs: Function keyword arguments
        """
        pass

    def _run(self, func: Callable[..., Any], args: tuple, kwargs: dict) -> None:
        """Run one posted closure; a failure is logged and never stops the loop."""
        try:
            func(*args, **kwargs)
        except Exception:
            logger.error(
                f"Posted closure {getattr(func, '__qualname__', func)!s} raised",
                exc_info=True,
            )


class _SignalBridge(QObject):
    """Carries closures across threads through a queued connection."""

    execute_signal = Signal(object, object, object)

    def __init__(self, handler: Callable[[Callable, tuple, dict], None]) -> None:
        super().__init__()
        self._handler = handler
        self.execute_signal.connect(
            self._execute_on_main,
            type=Qt.ConnectionType.QueuedConnection
        )

    @Slot(object, object, object)
    def _execute_on_main(self, func: Callable, args: tuple, kwargs: dict) -> None:
        self._handler(func, args, kwargs)


class QtDispatcher(Dispatcher):
    """
    Dispatcher backed by the Qt event loop.

    Must be created on the thread running the Qt application. Posted closures
    are delivered through a queued signal/slot connection, which Qt drains in
    emission order on the thread the bridge object lives on.
    """

    def __init__(self) -> None:
        """Initialize the dispatcher on the Qt main thread."""
        if QCoreApplication.instance() is None:
            raise DispatcherError('QtDispatcher requires a running QCoreApplication')
        super().__init__()
        self._bridge = _SignalBridge(self._run)

    def post(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        """
        Queue a closure for execution on the Qt main thread.

        Closures are always queued, even when posted from the UI thread
        itself, so a caller never re-enters its own code synchronously.
        """
        self._bridge.execute_signal.emit(func, args, kwargs)


class ManualDispatcher(Dispatcher):
    """
    Dispatcher drained explicitly by its owner.

    Used by headless front ends and tests: worker threads ``post`` into a
    thread-safe queue and the owning thread calls ``run_pending`` (or
    ``run_until``) to execute the queued closures.
    """

    def __init__(self) -> None:
        """Initialize an empty work queue."""
        super().__init__()
        self._work_queue: queue.Queue = queue.Queue()

    def post(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        """Queue a closure; safe to call from any thread."""
        self._work_queue.put((func, args, kwargs))

    def pending(self) -> int:
        """Number of closures waiting to run."""
        return self._work_queue.qsize()

    def run_pending(self, timeout: Optional[float] = None) -> int:
        """
        Run queued closures in order.

        Args:
            timeout: When given, wait up to this long for the first closure

        Returns:
            Number of closures executed
        """
        if not self.is_ui_thread():
            raise DispatcherError('ManualDispatcher must be drained by its owning thread')

        executed = 0
        block = timeout is not None
        while True:
            try:
                func, args, kwargs = self._work_queue.get(block=block, timeout=timeout)
            except queue.Empty:
                return executed
            block = False
            self._run(func, args, kwargs)
            executed += 1

    def run_until(self, condition: Callable[[], bool], timeout: float = 5.0) -> bool:
        """
        Drain the queue until ``condition`` holds or ``timeout`` seconds pass.

        Returns:
            Whether the condition was met
        """
        deadline = time.monotonic() + timeout
        while not condition():
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            self.run_pending(timeout=min(remaining, 0.05))
        return True
