from __future__ import annotations

from typing import Any, List, Optional, Tuple

from PySide6.QtCore import QObject, Signal

from paperboy.core.debouncer import Debouncer
from paperboy.core.lifecycle import LifecycleGuard
from paperboy.core.task_executor import TaskExecutor, TaskHandle, TaskOutcome
from paperboy.services.zip_lookup import ZipLookup, looks_numeric

HINT_ENTER_ZIP = 'Enter a ZIP code and press Search.'
HINT_SLOW_LOOKUP = 'Lookup is taking longer than expected, still waiting...'
HINT_NO_MAPPING = 'No local mapping found for this ZIP code.'
HINT_DETECTED = 'Detected: {city}. Click Save to use this location.'

MIN_SUGGESTION_LENGTH = 2


class LocationSession(QObject):
    """
    Headless model of the "Set User Location" dialog.

    A view binds its widgets to the signals and forwards user input to
    ``text_changed``, ``search`` and ``confirm``. ZIP lookups run on the
    task executor; their results come back through the router and are
    dropped once the session is closed or a newer search has started.

    Lives on the UI thread.
    """

    hint_changed = Signal(str)
    busy_changed = Signal(bool)
    confirm_enabled_changed = Signal(bool)
    suggestions_changed = Signal(list)
    location_confirmed = Signal(str, str, str)

    def __init__(self,
                 executor: TaskExecutor,
                 zip_lookup: ZipLookup,
                 *,
                 debounce_ms: int = 250,
                 slow_lookup_ms: int = 8000,
                 suggestion_limit: int = 8,
                 existing_location: str = '',
                 parent: Optional[QObject] = None) -> None:
        """
        Initialize the session.

        Args:
            executor: Executor that runs ZIP lookups
            zip_lookup: ZIP resolver and city suggestion source
            debounce_ms: Quiet period before suggestions are computed
            slow_lookup_ms: Delay before the slow-lookup notice is shown
            suggestion_limit: Maximum number of city suggestions
            existing_location: Location already saved in preferences
            parent: Optional Qt parent
        """
        super().__init__(parent)
        self._executor = executor
        self._zip_lookup = zip_lookup
        self._slow_lookup_ms = slow_lookup_ms
        self._suggestion_limit = suggestion_limit
        self._has_existing_location = bool(existing_location.strip())

        self._guard = LifecycleGuard.create('location_session')
        self._suggestions = Debouncer(debounce_ms, name='location-suggestions', parent=self)
        self._slow_notice = Debouncer(slow_lookup_ms, name='location-slow-notice', parent=self)

        self._lookup_handle: Optional[TaskHandle] = None
        self._detected_zip = ''
        self._detected_city = ''
        self._hint = ''
        self._busy = False
        self._confirm_enabled = self._has_existing_location

    @classmethod
    def from_config(cls,
                    config_manager: Any,
                    executor: TaskExecutor,
                    zip_lookup: ZipLookup,
                    existing_location: str = '',
                    parent: Optional[QObject] = None) -> LocationSession:
        """Build a session using the ``ui`` and ``location`` configuration sections."""
        return cls(
            executor,
            zip_lookup,
            debounce_ms=config_manager.get('ui.debounce_ms', 250),
            slow_lookup_ms=config_manager.get('ui.slow_lookup_ms', 8000),
            suggestion_limit=config_manager.get('location.suggestion_limit', 8),
            existing_location=existing_location,
            parent=parent,
        )

    @property
    def guard(self) -> LifecycleGuard:
        """Guard shared with this session's in-flight callbacks."""
        return self._guard

    @property
    def closed(self) -> bool:
        return not self._guard.is_alive()

    @property
    def hint(self) -> str:
        return self._hint

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def confirm_enabled(self) -> bool:
        return self._confirm_enabled

    @property
    def detected_city(self) -> str:
        return self._detected_city

    @property
    def detected_zip(self) -> str:
        return self._detected_zip

    def text_changed(self, text: str) -> None:
        """Schedule city suggestions for ``text`` once typing pauses."""
        if self.closed:
            return
        self._suggestions.trigger(None, lambda: self._publish_suggestions(text))

    def _publish_suggestions(self, text: str) -> None:
        txt = text.strip()
        if len(txt) < MIN_SUGGESTION_LENGTH or looks_numeric(txt):
            self.suggestions_changed.emit([])
            return
        suggestions: List[str] = list(self._zip_lookup.suggest_cities(txt, self._suggestion_limit))
        self.suggestions_changed.emit(suggestions)

    def search(self, text: str) -> Optional[TaskHandle]:
        """
        Start a ZIP lookup for ``text``.

        A newer search supersedes an older one; the older result is dropped
        when it arrives.

        Args:
            text: Entry contents

        Returns:
            Handle of the lookup, or None when ``text`` is not a ZIP code
        """
        if self.closed:
            return None

        txt = text.strip()
        if not txt or not looks_numeric(txt):
            self._set_hint(HINT_ENTER_ZIP)
            return None

        if self._lookup_handle is not None:
            self._lookup_handle.discard()

        self._set_hint('')
        self._detected_zip = txt
        self._detected_city = ''
        self._update_confirm_enabled()
        self._set_busy(True)
        self._slow_notice.trigger(self._slow_lookup_ms, self._on_slow_lookup)

        zip_lookup = self._zip_lookup
        self._lookup_handle = self._executor.submit(
            lambda: zip_lookup.lookup(txt),
            self._on_lookup_finished,
            guard=self._guard,
            name='zip-lookup',
        )
        return self._lookup_handle

    def _on_slow_lookup(self) -> None:
        if self.closed:
            return
        self._set_hint(HINT_SLOW_LOOKUP)
        self._update_confirm_enabled()

    def _on_lookup_finished(self, outcome: TaskOutcome[str]) -> None:
        self._slow_notice.cancel()
        self._lookup_handle = None
        self._set_busy(False)

        city = outcome.value if outcome.ok and outcome.value else ''
        self._detected_city = city
        if city:
            self._set_hint(HINT_DETECTED.format(city=city))
        else:
            self._set_hint(HINT_NO_MAPPING)
        self._update_confirm_enabled()

    def confirm(self, text: str) -> Tuple[str, str, str]:
        """
        Resolve what to save for the entry contents ``text``.

        A city detected by the last lookup wins over the raw text. Empty text
        clears the saved location.

        Returns:
            ``(location_to_save, city_to_save, discovery_query)``
        """
        val = text.strip()
        if not val:
            result = ('', '', '')
        elif self._detected_city:
            result = (self._detected_zip, self._detected_city, self._detected_city)
        else:
            result = (val, '', val)

        if not self.closed:
            self.location_confirmed.emit(*result)
        return result

    def close(self) -> None:
        """Tear the session down. Pending timers stop and late lookups are dropped."""
        if not self._guard.invalidate():
            return
        self._suggestions.cancel()
        self._slow_notice.cancel()
        if self._lookup_handle is not None:
            self._lookup_handle.discard()
            self._lookup_handle = None

    def _set_hint(self, hint: str) -> None:
        if hint != self._hint:
            self._hint = hint
            self.hint_changed.emit(hint)

    def _set_busy(self, busy: bool) -> None:
        if busy != self._busy:
            self._busy = busy
            self.busy_changed.emit(busy)

    def _update_confirm_enabled(self) -> None:
        enabled = bool(self._detected_city) or self._has_existing_location
        if enabled != self._confirm_enabled:
            self._confirm_enabled = enabled
            self.confirm_enabled_changed.emit(enabled)
