"""Live queries: re-run a read whenever one of its tables changes."""

import threading
from concurrent.futures import Future
from typing import Callable, FrozenSet, Generic, Iterable, Optional, TypeVar

from sunflower.live.invalidation import InvalidationTracker
from sunflower.live.observable import CancellationToken, Subscription
from sunflower.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class _LiveObserver(Generic[T]):
    """
    One subscriber's view of a live query.

    Invalidations that arrive while a refresh is queued or running collapse
    into one more refresh, which reads the latest committed state.
    """

    def __init__(self, live_query: "LiveQuery[T]", callback: Callable[[T], None], token: CancellationToken):
        self._live_query = live_query
        self._callback = callback
        self._token = token
        self._state_lock = threading.Lock()
        self._dirty = False
        self._scheduled = False

    def invalidate(self) -> None:
        if self._token.cancelled:
            return
        with self._state_lock:
            self._dirty = True
            if self._scheduled:
                return
            self._scheduled = True
        try:
            self._live_query._submit(self._drain)
        except RuntimeError as e:
            # Executor already shut down: the store is closing
            logger.debug(f"Dropping refresh of {self._live_query.description}: {e}")
            with self._state_lock:
                self._scheduled = False

    def _drain(self) -> None:
        while True:
            with self._state_lock:
                if not self._dirty or self._token.cancelled:
                    self._scheduled = False
                    return
                self._dirty = False
            try:
                value = self._live_query._reader()
            except Exception:
                logger.exception(f"Live query {self._live_query.description} failed; keeping last snapshot")
                continue
            if self._token.cancelled:
                continue
            logger.debug(f"Delivering snapshot of {self._live_query.description}")
            try:
                self._callback(value)
            except Exception:
                logger.exception(f"Subscriber of {self._live_query.description} failed")


class LiveQuery(Generic[T]):
    """
    A read that re-delivers a fresh snapshot after every committed write to its tables.

    Each subscriber gets its own initial snapshot followed by refreshes until
    its Subscription is cancelled.
    """

    def __init__(
        self,
        reader: Callable[[], T],
        tables: Iterable[str],
        tracker: InvalidationTracker,
        submit: Callable[[Callable[[], None]], Future],
        description: str = "live-query",
    ):
        self._reader = reader
        self.tables: FrozenSet[str] = frozenset(tables)
        self._tracker = tracker
        self._submit = submit
        self.description = description

    def subscribe(self, callback: Callable[[T], None]) -> Subscription:
        subscription = Subscription()
        observer = _LiveObserver(self, callback, subscription.token)
        self._tracker.add_observer(observer, self.tables)
        subscription.token.add_callback(lambda: self._tracker.remove_observer(observer))
        observer.invalidate()
        return subscription

    def first(self, timeout: Optional[float] = 5.0) -> T:
        """Block until the first snapshot arrives, then unsubscribe."""
        arrived = threading.Event()
        box = []

        def _capture(value: T) -> None:
            if not box:
                box.append(value)
                arrived.set()

        subscription = self.subscribe(_capture)
        try:
            if not arrived.wait(timeout):
                raise TimeoutError(f"{self.description}: no snapshot within {timeout}s")
            return box[0]
        finally:
            subscription.cancel()

    def __repr__(self) -> str:
        return f"LiveQuery({self.description!r}, tables={sorted(self.tables)})"
