"""Cancellation tokens, subscription handles and a latest-value holder."""

import threading
from typing import Callable, Generic, List, Optional, TypeVar

from sunflower.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

_UNSET = object()


class CancellationToken:
    """Cooperative cancellation flag; long-running work checks `cancelled`."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Cancellation callback failed")

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Run callback on cancel (immediately if already cancelled)."""
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()


class Subscription:
    """Handle returned by subscribe(); cancel() stops further deliveries."""

    def __init__(self, token: Optional[CancellationToken] = None):
        self.token = token or CancellationToken()

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled

    def cancel(self) -> None:
        self.token.cancel()

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cancel()


class LiveData(Generic[T]):
    """
    Holds the latest value of a stream and pushes every new value to subscribers.

    New subscribers receive the current value (if any) right away. Deliveries
    are serialized under `lock`, so subscribers see values in post order.
    Producers that must make a check-then-post atomic hold `lock` themselves.
    """

    def __init__(self, initial: T = _UNSET, name: str = "live-data"):
        self.name = name
        self.lock = threading.RLock()
        self._changed = threading.Condition(self.lock)
        self._value = initial
        self._version = 0 if initial is _UNSET else 1
        self._subscribers: List[tuple] = []

    @property
    def has_value(self) -> bool:
        return self._value is not _UNSET

    @property
    def value(self) -> Optional[T]:
        """Latest value, or None before the first post."""
        return None if self._value is _UNSET else self._value

    @property
    def version(self) -> int:
        """Number of values posted so far."""
        return self._version

    def post(self, value: T) -> None:
        with self.lock:
            self._value = value
            self._version += 1
            subscribers = list(self._subscribers)
            self._changed.notify_all()
            for subscription, callback in subscribers:
                if subscription.cancelled:
                    continue
                try:
                    callback(value)
                except Exception:
                    logger.exception(f"Subscriber of {self.name} failed")

    def subscribe(self, callback: Callable[[T], None]) -> Subscription:
        subscription = Subscription()
        entry = (subscription, callback)
        with self.lock:
            self._subscribers.append(entry)
            subscription.token.add_callback(lambda: self._remove(entry))
            if self.has_value:
                try:
                    callback(self._value)
                except Exception:
                    logger.exception(f"Subscriber of {self.name} failed")
        return subscription

    def _remove(self, entry: tuple) -> None:
        with self.lock:
            if entry in self._subscribers:
                self._subscribers.remove(entry)

    def subscriber_count(self) -> int:
        with self.lock:
            return len(self._subscribers)

    def wait_for(
        self,
        predicate: Optional[Callable[[T], bool]] = None,
        timeout: float = 5.0,
        *,
        after_version: int = 0,
    ) -> T:
        """
        Block until a posted value satisfies predicate.

        Args:
            predicate: Condition on the value (default: any value)
            timeout: Seconds to wait
            after_version: Only accept values posted after this version

        Raises:
            TimeoutError: If no matching value arrives in time
        """

        def _ready() -> bool:
            if not self.has_value or self._version <= after_version:
                return False
            return predicate is None or predicate(self._value)

        with self._changed:
            if not self._changed.wait_for(_ready, timeout=timeout):
                raise TimeoutError(f"{self.name}: no matching value within {timeout}s")
            return self._value

    def close(self) -> None:
        """Cancel every subscription."""
        with self.lock:
            subscribers = list(self._subscribers)
        for subscription, _ in subscribers:
            subscription.cancel()
