from __future__ import annotations

import itertools
import threading
from typing import Any, Dict

_GENERATIONS = itertools.count(1)
_GENERATIONS_LOCK = threading.Lock()


class LifecycleGuard:
    """
    Liveness flag shared between a UI session and its in-flight callbacks.

    The owning session creates the guard when it opens and invalidates it
    exactly once when it is torn down. Every deferred closure captures the
    guard when it is built and calls ``is_alive()`` as its first action
    once it runs on the UI thread. The flag never returns to alive.

    Backed by ``threading.Event`` so the teardown write is visible to any
    thread that reads it afterwards.
    """

    __slots__ = ('_torn_down', '_invalidate_lock', '_generation', '_owner')

    def __init__(self, owner: str = '') -> None:
        """
        Initialize the guard in the alive state.

        Args:
            owner: Human readable name of the owning session, for logs
        """
        self._torn_down = threading.Event()
        self._invalidate_lock = threading.Lock()
        with _GENERATIONS_LOCK:
            self._generation = next(_GENERATIONS)
        self._owner = owner

    @classmethod
    def create(cls, owner: str = '') -> LifecycleGuard:
        """Create a guard for a session that is opening now."""
        return cls(owner)

    def invalidate(self) -> bool:
        """
        Mark the owning session as gone.

        Returns:
            True on the first call, False for every later (no-op) call
        """
        with self._invalidate_lock:
            if self._torn_down.is_set():
                return False
            self._torn_down.set()
            return True

    def is_alive(self) -> bool:
        """Check whether the owning session is still open."""
        return not self._torn_down.is_set()

    @property
    def generation(self) -> int:
        """Process-unique sequence number of the owning session."""
        return self._generation

    @property
    def owner(self) -> str:
        """Name of the owning session."""
        return self._owner

    def snapshot(self) -> Dict[str, Any]:
        """Plain-data view of the guard for logging."""
        return {'owner': self._owner, 'generation': self._generation, 'alive': self.is_alive()}

    def __repr__(self) -> str:
        """Return string representation."""
        state = 'alive' if self.is_alive() else 'invalidated'
        return f"LifecycleGuard(owner={self._owner!r}, generation={self._generation}, {state})"
