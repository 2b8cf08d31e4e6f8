"""Combine independently-settable inputs into one switch-latest live output."""

from types import MappingProxyType
from typing import Any, Callable, Dict, Generic, Mapping, Optional, TypeVar

from sunflower.live.live_query import LiveQuery
from sunflower.live.observable import LiveData, Subscription
from sunflower.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class CompositeFilter(Generic[T]):
    """
    Holds named inputs and derives `output` from select(inputs).

    Every effective input change cancels the live query derived from the old
    inputs before subscribing to the new one. Deliveries carry the generation
    they were derived for and are dropped once a newer generation exists, so
    `output` never receives a value for a stale input combination.
    """

    def __init__(
        self,
        inputs: Mapping[str, Any],
        select: Callable[[Mapping[str, Any]], LiveQuery[T]],
        name: str = "composite-filter",
    ):
        if not inputs:
            raise ValueError("CompositeFilter needs at least one input")
        self.name = name
        self._inputs: Dict[str, Any] = dict(inputs)
        self._select = select
        self.output: LiveData[T] = LiveData(name=name)
        self._current: Optional[Subscription] = None
        self._generation = 0
        self._delivered_generation = 0
        self._closed = False
        with self.output.lock:
            self._switch()

    @property
    def inputs(self) -> Mapping[str, Any]:
        with self.output.lock:
            return MappingProxyType(dict(self._inputs))

    @property
    def generation(self) -> int:
        """Number of derivations started so far."""
        return self._generation

    def get(self, name: str) -> Any:
        return self._inputs[name]

    def set(self, name: str, value: Any) -> bool:
        """
        Overwrite one input.

        Returns:
            True if the value changed and a new derivation started
        """
        return self.update({name: value})

    def update(self, changes: Mapping[str, Any]) -> bool:
        """Overwrite several inputs at once; at most one new derivation starts."""
        with self.output.lock:
            if self._closed:
                raise RuntimeError(f"{self.name} is closed")
            unknown = set(changes) - set(self._inputs)
            if unknown:
                raise KeyError(f"Unknown inputs for {self.name}: {sorted(unknown)}")
            if all(self._inputs[key] == value for key, value in changes.items()):
                return False
            self._inputs.update(changes)
            self._switch()
            return True

    def _switch(self) -> None:
        # Caller holds output.lock
        if self._current is not None:
            self._current.cancel()
            self._current = None
        self._generation += 1
        generation = self._generation
        snapshot = MappingProxyType(dict(self._inputs))
        logger.debug(f"{self.name}: deriving generation {generation} for {dict(snapshot)}")

        def _forward(value: T) -> None:
            with self.output.lock:
                if self._closed or generation != self._generation:
                    logger.debug(f"{self.name}: dropping result of stale generation {generation}")
                    return
                self._delivered_generation = generation
                self.output.post(value)

        self._current = self._select(snapshot).subscribe(_forward)

    def current(self, timeout: float = 5.0) -> T:
        """Block until the output holds a value derived from the current inputs."""
        return self.output.wait_for(lambda _: self._delivered_generation == self._generation, timeout=timeout)

    def close(self) -> None:
        with self.output.lock:
            if self._closed:
                return
            self._closed = True
            if self._current is not None:
                self._current.cancel()
                self._current = None
        self.output.close()
