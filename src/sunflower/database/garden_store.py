"""GardenStore: the process-wide handle on the local garden database.

Construct it once at process start with GardenStore.open() and close it at
shutdown. Reads are exposed as LiveQuery objects; writes run on the store's
worker pool and return futures whose result() raises the write's error.
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import contextmanager, nullcontext
from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, List, Optional, TypeVar, Union

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from sunflower.database import plant_repo, planting_repo
from sunflower.database.schema import PLANTED_ITEMS_TABLE, PLANTINGS_TABLE
from sunflower.database.sqlite_client import MEMORY_PATH, get_engine, get_session_factory, session_context
from sunflower.errors import ConstraintViolation
from sunflower.live.invalidation import InvalidationTracker
from sunflower.live.live_query import LiveQuery
from sunflower.models import NO_GROW_ZONE, Planting, PlantedItem, PlantedItemWithPlantings
from sunflower.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# Marks worker threads of a store-owned pool so nested submits run inline
_pool_state = threading.local()


class GardenStore:
    """Live queries and writes over planted items and plantings."""

    def __init__(
        self,
        engine: Engine,
        *,
        executor: Optional[ThreadPoolExecutor] = None,
        max_workers: int = 4,
        shared_connection: bool = False,
    ):
        self._engine = engine
        self._session_factory = get_session_factory(engine)
        self._tracker = InvalidationTracker()
        self._owns_executor = executor is None
        if executor is None:
            executor = ThreadPoolExecutor(
                max_workers=max_workers,
                thread_name_prefix="sunflower-db",
                initializer=self._mark_worker,
            )
        self._executor = executor
        self._table_locks: Dict[str, threading.Lock] = {
            PLANTED_ITEMS_TABLE: threading.Lock(),
            PLANTINGS_TABLE: threading.Lock(),
        }
        # An in-memory database is a single connection; every access is serialized
        self._shared_lock = threading.RLock() if shared_connection else None
        self._closed = False
        self.seed_future: Optional[Future] = None

    @classmethod
    def open(
        cls,
        sqlite_path: str,
        *,
        seed_file: Optional[Union[str, Path]] = None,
        executor: Optional[ThreadPoolExecutor] = None,
        max_workers: int = 4,
    ) -> "GardenStore":
        """
        Open (creating if needed) the store at sqlite_path.

        When the database is created by this call and seed_file is given, the
        seed loader is queued on the worker pool; its bool result is available
        through `seed_future`.
        """
        created = sqlite_path == MEMORY_PATH or not Path(sqlite_path).exists()
        engine = get_engine(sqlite_path)
        store = cls(
            engine,
            executor=executor,
            max_workers=max_workers,
            shared_connection=sqlite_path == MEMORY_PATH,
        )
        logger.info(f"Opened garden store at {sqlite_path} (created={created})")
        if created and seed_file:
            from sunflower.ingestion.seed_loader import seed_database

            store.seed_future = store._executor.submit(store._run_as_worker, seed_database, store, seed_file)
        return store

    def _mark_worker(self) -> None:
        _pool_state.store = self

    def _run_as_worker(self, fn: Callable[..., T], *args) -> T:
        # Writes issued by fn run inline, even on a caller-supplied pool
        previous = getattr(_pool_state, "store", None)
        _pool_state.store = self
        try:
            return fn(*args)
        finally:
            _pool_state.store = previous

    def _submit(self, fn: Callable[..., T], *args) -> "Future[T]":
        if self._closed:
            raise RuntimeError("GardenStore is closed")
        if getattr(_pool_state, "store", None) is self:
            future: Future = Future()
            try:
                future.set_result(fn(*args))
            except Exception as e:
                future.set_exception(e)
            return future
        return self._executor.submit(fn, *args)

    def _submit_read(self, fn: Callable[[], None]) -> Future:
        # Refreshes always go to the pool so subscribers never run on the writer's thread
        if self._closed:
            raise RuntimeError("GardenStore is closed")
        return self._executor.submit(fn)

    @contextmanager
    def _write_access(self, table: str) -> Iterator[None]:
        with self._shared_lock or self._table_locks[table]:
            yield

    def _read(self, query: Callable[[Session], T]) -> T:
        with self._shared_lock or nullcontext():
            with session_context(self._session_factory) as session:
                return query(session)

    def _live(self, query: Callable[[Session], T], tables: Iterable[str], description: str) -> LiveQuery[T]:
        return LiveQuery(
            reader=lambda: self._read(query),
            tables=tables,
            tracker=self._tracker,
            submit=self._submit_read,
            description=description,
        )

    # Live reads

    def observe_all_planted_items(self) -> LiveQuery[List[PlantedItem]]:
        return self._live(plant_repo.list_planted_items, [PLANTED_ITEMS_TABLE], "all-planted-items")

    def observe_filtered_planted_items(self, zone: int = NO_GROW_ZONE, text_query: str = "") -> LiveQuery[List[PlantedItem]]:
        return self._live(
            lambda session: plant_repo.list_planted_items(session, zone, text_query),
            [PLANTED_ITEMS_TABLE],
            f"planted-items(zone={zone}, query={text_query!r})",
        )

    def observe_planted_item(self, plant_id: str) -> LiveQuery[Optional[PlantedItem]]:
        return self._live(
            lambda session: plant_repo.get_planted_item(session, plant_id),
            [PLANTED_ITEMS_TABLE],
            f"planted-item({plant_id})",
        )

    def observe_is_planted(self, plant_id: str) -> LiveQuery[bool]:
        return self._live(
            lambda session: planting_repo.is_planted(session, plant_id),
            [PLANTINGS_TABLE],
            f"is-planted({plant_id})",
        )

    def observe_plantings(self) -> LiveQuery[List[Planting]]:
        return self._live(planting_repo.list_plantings, [PLANTINGS_TABLE], "plantings")

    def observe_plantings_with_items(self) -> LiveQuery[List[PlantedItemWithPlantings]]:
        return self._live(
            planting_repo.list_planted_with_plantings,
            [PLANTED_ITEMS_TABLE, PLANTINGS_TABLE],
            "plantings-with-items",
        )

    # Writes

    def insert_planting(self, plant_id: str) -> "Future[Planting]":
        """Plant plant_id now. result() raises ConstraintViolation for an unknown id."""
        return self._submit(self._insert_planting, plant_id)

    def _insert_planting(self, plant_id: str) -> Planting:
        with self._write_access(PLANTINGS_TABLE):
            with session_context(self._session_factory) as session:
                try:
                    row = planting_repo.create_planting(session, plant_id)
                    session.commit()
                except IntegrityError as e:
                    raise ConstraintViolation(
                        f"Cannot plant '{plant_id}': {e.orig}",
                        table=PLANTINGS_TABLE,
                        key=plant_id,
                    ) from e
                planting = planting_repo.row_to_planting(row)
        logger.info(f"Planted {plant_id} (planting {planting.id})")
        self._tracker.notify([PLANTINGS_TABLE])
        return planting

    def delete_planting(self, planting: Union[Planting, int]) -> "Future[bool]":
        """Remove a planting. result() is False if it was already gone."""
        planting_id = planting.id if isinstance(planting, Planting) else int(planting)
        return self._submit(self._delete_planting, planting_id)

    def _delete_planting(self, planting_id: int) -> bool:
        with self._write_access(PLANTINGS_TABLE):
            with session_context(self._session_factory) as session:
                deleted = planting_repo.delete_planting(session, planting_id)
                session.commit()
        if not deleted:
            logger.debug(f"Planting {planting_id} already absent")
            return False
        logger.info(f"Removed planting {planting_id}")
        self._tracker.notify([PLANTINGS_TABLE])
        return True

    def bulk_insert_planted_items(self, items: Iterable[PlantedItem]) -> "Future[int]":
        """Upsert planted items by id."""
        return self._submit(self._bulk_insert_planted_items, list(items))

    def _bulk_insert_planted_items(self, items: List[PlantedItem]) -> int:
        with self._write_access(PLANTED_ITEMS_TABLE):
            with session_context(self._session_factory) as session:
                count = plant_repo.upsert_planted_items(session, items)
                session.commit()
        logger.info(f"Wrote {count} planted items")
        self._tracker.notify([PLANTED_ITEMS_TABLE])
        return count

    # Lifecycle

    @property
    def closed(self) -> bool:
        return self._closed

    def active_observer_count(self) -> int:
        return self._tracker.observer_count()

    def close(self) -> None:
        """Stop live queries, shut down an owned worker pool and dispose the engine."""
        if self._closed:
            return
        self._closed = True
        self._tracker.clear()
        if self._owns_executor:
            self._executor.shutdown(wait=True)
        self._engine.dispose()
        logger.info("Closed garden store")

    def __enter__(self) -> "GardenStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
