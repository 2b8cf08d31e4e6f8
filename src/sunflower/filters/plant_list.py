"""Plant list filter: grow zone plus free-text query over the local store."""

from typing import TYPE_CHECKING, Any, List, Mapping

from sunflower.filters.composite import CompositeFilter
from sunflower.live.live_query import LiveQuery
from sunflower.live.observable import LiveData
from sunflower.models import NO_GROW_ZONE, FilterState, PlantedItem
from sunflower.state.saved_state import GROW_ZONE_SAVED_STATE_KEY, SavedStateHandle
from sunflower.utils.logging import get_logger

if TYPE_CHECKING:
    from sunflower.database.garden_store import GardenStore

logger = get_logger(__name__)


def _coerce_zone(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring invalid saved grow zone {value!r}")
        return NO_GROW_ZONE


class PlantListFilter:
    """
    Filtered, live list of planted items.

    The zone starts from the saved-state slot (NO_GROW_ZONE when absent) and
    every zone change is written back to it. The query is not persisted.
    """

    def __init__(self, store: "GardenStore", saved_state: SavedStateHandle):
        self._store = store
        self._saved_state = saved_state
        zone = _coerce_zone(saved_state.get(GROW_ZONE_SAVED_STATE_KEY, NO_GROW_ZONE))
        self._filter: CompositeFilter[List[PlantedItem]] = CompositeFilter(
            {"zone": zone, "query": ""},
            self._select,
            name="plant-list",
        )
        self._saved_state.set(GROW_ZONE_SAVED_STATE_KEY, zone)

    def _select(self, inputs: Mapping[str, Any]) -> LiveQuery[List[PlantedItem]]:
        return self._store.observe_filtered_planted_items(inputs["zone"], inputs["query"])

    @property
    def plants(self) -> LiveData[List[PlantedItem]]:
        return self._filter.output

    @property
    def filter_state(self) -> FilterState:
        inputs = self._filter.inputs
        return FilterState(zone=inputs["zone"], query=inputs["query"])

    def current_plants(self, timeout: float = 5.0) -> List[PlantedItem]:
        """Block until the plant list reflects the current zone and query."""
        return self._filter.current(timeout)

    def set_zone(self, num: int) -> bool:
        changed = self._filter.set("zone", int(num))
        self._saved_state.set(GROW_ZONE_SAVED_STATE_KEY, int(num))
        if changed:
            logger.info(f"Grow zone filter set to {num}")
        return changed

    def clear_zone(self) -> bool:
        return self.set_zone(NO_GROW_ZONE)

    def set_query(self, query: str) -> bool:
        return self._filter.set("query", query or "")

    def is_filtered(self) -> bool:
        return self._filter.get("zone") != NO_GROW_ZONE

    def close(self) -> None:
        self._filter.close()
