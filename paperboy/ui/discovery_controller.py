from __future__ import annotations

from typing import Optional

from PySide6.QtCore import QObject, Signal

from paperboy.core.lifecycle import LifecycleGuard
from paperboy.core.task_executor import TaskExecutor, TaskHandle, TaskOutcome
from paperboy.services.feed_discovery import DiscoveryReport, FeedDiscoveryService, normalize_query


class DiscoveryController(QObject):
    """
    UI-side owner of feed discovery runs.

    ``discover`` returns immediately; the helper runs on a worker thread and
    the report arrives as ``discovery_finished`` on the UI thread. After
    ``close`` nothing is emitted, even for runs that were already in flight.
    """

    discovery_started = Signal(str)
    discovery_finished = Signal(object)

    def __init__(self,
                 executor: TaskExecutor,
                 service: FeedDiscoveryService,
                 parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._executor = executor
        self._service = service
        self._guard = LifecycleGuard.create('discovery_controller')
        self._handle: Optional[TaskHandle] = None
        self._last_report: Optional[DiscoveryReport] = None

    @property
    def guard(self) -> LifecycleGuard:
        return self._guard

    @property
    def running(self) -> bool:
        """Whether a discovery run is in flight."""
        return self._handle is not None and not self._handle.done()

    @property
    def last_report(self) -> Optional[DiscoveryReport]:
        return self._last_report

    def discover(self, query: str) -> Optional[TaskHandle]:
        """
        Start discovery for ``query``.

        A newer run supersedes an older one; the older report is dropped
        when it arrives.

        Args:
            query: Location to discover feeds for

        Returns:
            Handle of the run, or None after ``close``
        """
        if not self._guard.is_alive():
            return None

        if self._handle is not None:
            self._handle.discard()

        service = self._service
        self._handle = self._executor.submit(
            lambda: service.discover(query),
            lambda outcome: self._on_finished(query, outcome),
            guard=self._guard,
            name='feed-discovery',
        )
        self.discovery_started.emit(normalize_query(query))
        return self._handle

    def _on_finished(self, query: str, outcome: TaskOutcome[DiscoveryReport]) -> None:
        if outcome.ok:
            report = outcome.value
        else:
            report = DiscoveryReport(
                query=normalize_query(query),
                ok=False,
                summary=f"Error running {self._service.helper_name}: {outcome.error}",
            )
        self._last_report = report
        self.discovery_finished.emit(report)

    def close(self) -> None:
        """Stop delivering results. Idempotent."""
        if self._guard.invalidate() and self._handle is not None:
            self._handle.discard()
