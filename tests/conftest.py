"""Pytest configuration and fixtures."""

import threading

import pytest

from sunflower.database.garden_store import GardenStore
from sunflower.database.sqlite_client import get_engine, get_session_factory
from sunflower.models import PlantedItem

WAIT_SECONDS = 5.0


def make_plant(plant_id: str, name: str, zone: int, watering_interval: int = 7) -> PlantedItem:
    return PlantedItem(
        id=plant_id,
        name=name,
        description=f"{name} description",
        grow_zone_number=zone,
        watering_interval=watering_interval,
    )


SAMPLE_PLANTS = [
    make_plant("malus-pumila", "Apple", 3, 30),
    make_plant("beta-vulgaris", "Beet", 2),
    make_plant("coriandrum-sativum", "Cilantro", 2, 2),
    make_plant("solanum-lycopersicum", "Tomato", 9, 4),
    make_plant("persea-americana", "Avocado", 9, 3),
    make_plant("vitis-vinifera", "Grape", 9, 3),
    make_plant("ananas-comosus", "Pineapple", 11, 5),
]


class Recorder:
    """Collects values pushed to a subscriber callback and lets tests wait for them."""

    def __init__(self):
        self.values = []
        self._cond = threading.Condition()

    def __call__(self, value):
        with self._cond:
            self.values.append(value)
            self._cond.notify_all()

    def wait_for(self, predicate, timeout: float = WAIT_SECONDS):
        with self._cond:
            ok = self._cond.wait_for(lambda: any(predicate(v) for v in self.values), timeout=timeout)
        assert ok, f"no matching value in {self.values!r}"
        return next(v for v in self.values if predicate(v))

    def wait_count(self, count: int, timeout: float = WAIT_SECONDS):
        with self._cond:
            ok = self._cond.wait_for(lambda: len(self.values) >= count, timeout=timeout)
        assert ok, f"expected {count} values, got {self.values!r}"
        return list(self.values)

    @property
    def last(self):
        with self._cond:
            return self.values[-1]


@pytest.fixture
def session():
    """Create a temporary in-memory database session for testing."""
    engine = get_engine(":memory:")
    session = get_session_factory(engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def store(tmp_path):
    """An empty GardenStore backed by a temporary SQLite file."""
    garden_store = GardenStore.open(str(tmp_path / "garden.db"))
    try:
        yield garden_store
    finally:
        garden_store.close()


@pytest.fixture
def seeded_store(store):
    """GardenStore holding SAMPLE_PLANTS."""
    store.bulk_insert_planted_items(SAMPLE_PLANTS).result(WAIT_SECONDS)
    return store


@pytest.fixture
def recorder():
    return Recorder()
