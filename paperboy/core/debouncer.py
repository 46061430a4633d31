from __future__ import annotations

import itertools
import logging
import threading
from typing import Callable, Optional

from PySide6.QtCore import QObject, QTimer

from paperboy.utils.exceptions import DispatcherError

logger = logging.getLogger('debouncer')

DEFAULT_DELAY_MS = 250


class Debouncer(QObject):
    """
    Coalesce a burst of triggers into one delayed action.

    Each ``trigger`` cancels whatever is pending and starts a fresh delay
    window; only the most recent action runs, once, after the input has
    been quiet for the whole window. Every schedule gets its own pending id
    and single-shot timer. A timer that fires for an id that is no longer
    current does nothing, so a superseded action cannot run even when the
    cancel and the new schedule land in the same event-loop tick.

    Lives on, and must be used from, the UI thread.
    """

    def __init__(self,
                 default_delay_ms: int = DEFAULT_DELAY_MS,
                 name: str = 'debouncer',
                 parent: Optional[QObject] = None) -> None:
        """
        Initialize the debouncer.

        Args:
            default_delay_ms: Delay used when ``trigger`` is given none
            name: Name used in log messages
            parent: Optional Qt parent
        """
        super().__init__(parent)
        self._default_delay_ms = default_delay_ms
        self._name = name
        self._owner_thread_id = threading.get_ident()
        self._ids = itertools.count(1)
        self._timer: Optional[QTimer] = None
        self._pending_id: Optional[int] = None
        self._action: Optional[Callable[[], None]] = None

    @property
    def pending(self) -> bool:
        """Whether an action is waiting to fire."""
        return self._pending_id is not None

    @property
    def pending_id(self) -> Optional[int]:
        """Identifier of the pending schedule, if any."""
        return self._pending_id

    @property
    def default_delay_ms(self) -> int:
        """Delay used when ``trigger`` is not given one."""
        return self._default_delay_ms

    @default_delay_ms.setter
    def default_delay_ms(self, value: int) -> None:
        self._default_delay_ms = int(value)

    def trigger(self, delay_ms: Optional[int], action: Callable[[], None]) -> int:
        """
        Replace any pending action with ``action`` after ``delay_ms`` of quiet.

        Args:
            delay_ms: Inactivity window in milliseconds, None for the default
            action: Closure to run on the UI thread

        Returns:
            The pending id of the new schedule
        """
        self._check_thread()
        self.cancel()

        delay = self._default_delay_ms if delay_ms is None else int(delay_ms)
        pending_id = next(self._ids)

        timer = QTimer(self)
        timer.setSingleShot(True)
        timer.timeout.connect(lambda: self._fire(pending_id))

        self._timer = timer
        self._pending_id = pending_id
        self._action = action
        timer.start(max(0, delay))
        return pending_id

    def cancel(self) -> bool:
        """
        Drop the pending action, if any.

        Returns:
            True if an action was pending
        """
        self._check_thread()
        had_pending = self._pending_id is not None
        self._release_timer()
        self._pending_id = None
        self._action = None
        return had_pending

    def _fire(self, pending_id: int) -> None:
        if pending_id != self._pending_id:
            logger.debug(f"{self._name}: ignoring superseded schedule {pending_id}")
            return

        action = self._action
        self._release_timer()
        self._pending_id = None
        self._action = None
        if action is not None:
            action()

    def _release_timer(self) -> None:
        if self._timer is not None:
            self._timer.stop()
            self._timer.deleteLater()
            self._timer = None

    def _check_thread(self) -> None:
        if threading.get_ident() != self._owner_thread_id:
            raise DispatcherError(f'{self._name} used off its owning thread')
