"""Table-level change notification for live queries."""

import threading
from typing import Dict, FrozenSet, Iterable, Protocol

from sunflower.utils.logging import get_logger

logger = get_logger(__name__)


class TableObserver(Protocol):
    def invalidate(self) -> None:
        ...


class InvalidationTracker:
    """
    Maps table names to the observers reading them.

    Writers call notify() after their transaction commits; each observer of a
    touched table is invalidated once per notify.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._observers: Dict[TableObserver, FrozenSet[str]] = {}

    def add_observer(self, observer: TableObserver, tables: Iterable[str]) -> None:
        with self._lock:
            self._observers[observer] = frozenset(tables)

    def remove_observer(self, observer: TableObserver) -> None:
        with self._lock:
            self._observers.pop(observer, None)

    def observer_count(self) -> int:
        with self._lock:
            return len(self._observers)

    def notify(self, tables: Iterable[str]) -> int:
        """
        Invalidate every observer of the given tables.

        Returns:
            Number of observers invalidated
        """
        touched = frozenset(tables)
        with self._lock:
            matched = [obs for obs, obs_tables in self._observers.items() if obs_tables & touched]
        for observer in matched:
            observer.invalidate()
        logger.debug(f"Invalidated {len(matched)} observers for tables {sorted(touched)}")
        return len(matched)

    def clear(self) -> None:
        with self._lock:
            self._observers.clear()
