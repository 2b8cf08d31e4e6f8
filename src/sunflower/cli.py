"""CLI entrypoint for the sunflower garden tracker."""

import argparse
import sys
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, List, Optional

from sunflower.config.loader import load_config
from sunflower.database.garden_store import GardenStore
from sunflower.errors import SunflowerError
from sunflower.filters.plant_list import PlantListFilter
from sunflower.models import PlantedItem
from sunflower.retrieval.gallery import GallerySearch, UnsplashRepository
from sunflower.retrieval.paging import LoadState
from sunflower.retrieval.unsplash_client import UnsplashService
from sunflower.state.saved_state import SavedStateHandle
from sunflower.utils.grow_zone import get_zone_for_latitude
from sunflower.utils.logging import configure_logging, get_logger
from sunflower.utils.time import utc_now

logger = get_logger(__name__)

DATE_FORMAT = "%b %d, %Y"


def _open_store(config: Dict[str, Any]) -> GardenStore:
    db = config["database"]
    return GardenStore.open(
        db["sqlite_path"],
        seed_file=db.get("seed_file"),
        max_workers=config["workers"]["max_workers"],
    )


def _wait_for_seed(store: GardenStore, timeout: float) -> Optional[bool]:
    if store.seed_future is None:
        return None
    return store.seed_future.result(timeout=timeout)


def _print_plants(plants: List[PlantedItem]) -> None:
    if not plants:
        print("No plants found.")
        return
    print(f"{'ID':<20} {'Name':<24} {'Zone':<6} {'Water every':<12}")
    print("-" * 64)
    for plant in plants:
        print(f"{plant.id:<20} {plant.name:<24} {plant.grow_zone_number:<6} {plant.watering_interval} days")


def cmd_init(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    """Create the database and load the seed catalog."""
    with _open_store(config) as store:
        seeded = _wait_for_seed(store, args.timeout)
        if seeded is None:
            print(f"Database already exists at {config['database']['sqlite_path']}")
            return 0
        if not seeded:
            print("Error: seeding failed (see log)", file=sys.stderr)
            return 1
        count = len(store.observe_all_planted_items().first(args.timeout))
        print(f"Seeded {count} plants into {config['database']['sqlite_path']}")
    return 0


def cmd_plants(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    """List plants, optionally filtered by grow zone and name."""
    saved_state = SavedStateHandle(config["state"]["path"])
    with _open_store(config) as store:
        _wait_for_seed(store, args.timeout)
        plant_filter = PlantListFilter(store, saved_state)
        try:
            if args.clear_zone:
                plant_filter.clear_zone()
            elif args.latitude is not None:
                plant_filter.set_zone(get_zone_for_latitude(args.latitude))
            elif args.zone is not None:
                plant_filter.set_zone(args.zone)
            if args.query:
                plant_filter.set_query(args.query)

            plants = plant_filter.current_plants(args.timeout)
            state = plant_filter.filter_state
            if plant_filter.is_filtered():
                print(f"Grow zone {state.zone}" + (f", name contains {state.query!r}" if state.query else ""))
            _print_plants(plants)
        finally:
            plant_filter.close()
    return 0


def cmd_plant(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    """Show one plant."""
    with _open_store(config) as store:
        _wait_for_seed(store, args.timeout)
        plant = store.observe_planted_item(args.plant_id).first(args.timeout)
        if plant is None:
            print(f"Error: no plant with id {args.plant_id!r}", file=sys.stderr)
            return 1
        planted = store.observe_is_planted(args.plant_id).first(args.timeout)
        print(f"{plant.name} ({plant.id})")
        print(f"  Grow zone: {plant.grow_zone_number}")
        print(f"  Water every {plant.watering_interval} days")
        print(f"  In garden: {'yes' if planted else 'no'}")
        if plant.description:
            print()
            print(plant.description)
    return 0


def cmd_garden(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    """List the plants in the garden."""
    with _open_store(config) as store:
        _wait_for_seed(store, args.timeout)
        garden = store.observe_plantings_with_items().first(args.timeout)
        if not garden:
            print("Your garden is empty.")
            return 0
        now = utc_now()
        print(f"{'Planting':<10} {'Plant':<24} {'Planted':<14} {'Last watered':<14} {'Needs water':<11}")
        print("-" * 77)
        for entry in garden:
            latest = entry.most_recent
            needs_water = entry.plant.should_be_watered(now, latest.last_watering_date)
            print(
                f"{latest.id:<10} {entry.plant.name:<24} "
                f"{latest.plant_date.strftime(DATE_FORMAT):<14} "
                f"{latest.last_watering_date.strftime(DATE_FORMAT):<14} "
                f"{'yes' if needs_water else 'no':<11}"
            )
    return 0


def cmd_garden_add(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    """Add a plant to the garden."""
    with _open_store(config) as store:
        _wait_for_seed(store, args.timeout)
        planting = store.insert_planting(args.plant_id).result(args.timeout)
        print(f"Planted {args.plant_id} (planting {planting.id})")
    return 0


def cmd_garden_remove(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    """Remove a planting from the garden."""
    with _open_store(config) as store:
        removed = store.delete_planting(args.planting_id).result(args.timeout)
        print(f"Removed planting {args.planting_id}" if removed else f"Planting {args.planting_id} was not in the garden")
    return 0


def cmd_zone(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    """Print the grow zone for a latitude."""
    print(get_zone_for_latitude(args.latitude))
    return 0


def cmd_gallery(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    """Search photos and print the first pages of results."""
    service = UnsplashService.from_config(config)
    executor = ThreadPoolExecutor(max_workers=config["workers"]["max_workers"], thread_name_prefix="sunflower-gallery")
    repository = UnsplashRepository(service, executor=executor, page_size=config["unsplash"]["page_size"])
    gallery = GallerySearch(repository)
    try:
        # search() has already requested the first page
        cache = gallery.search(args.query)
        cache.snapshots.wait_for(lambda s: s.load_state != LoadState.LOADING, timeout=args.timeout)
        for _ in range(args.pages - 1):
            snapshot = cache.snapshot
            if snapshot.load_state == LoadState.FAILED or snapshot.end_of_pagination:
                break
            cache.load_next().result(args.timeout)

        snapshot = cache.snapshot
        for photo in snapshot.items:
            print(f"{photo.id:<14} {photo.user.name:<28} {photo.image_url or ''}")
            print(f"{'':<14} {photo.user.attribution_url}")
        print(f"{len(snapshot.items)} photos from {snapshot.page_count} pages")
        if snapshot.load_state == LoadState.FAILED:
            print(f"Error: {snapshot.error}", file=sys.stderr)
            return 1
    finally:
        gallery.close()
        executor.shutdown(wait=False)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sunflower",
        description="Track a garden of plants and browse plant photos",
    )
    parser.add_argument("--config", type=Path, default=None, help="Path to sunflower.config.yaml")
    parser.add_argument("--log-level", type=str, default=None, help="Override logging level (DEBUG, INFO, ...)")
    parser.add_argument("--timeout", type=float, default=30.0, help="Seconds to wait for results (default: 30)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    init_parser = subparsers.add_parser("init", help="Create the database and load the plant catalog")
    init_parser.set_defaults(func=cmd_init)

    plants_parser = subparsers.add_parser("plants", help="List plants")
    zone_group = plants_parser.add_mutually_exclusive_group()
    zone_group.add_argument("--zone", type=int, help="Only plants for this grow zone (remembered)")
    zone_group.add_argument("--latitude", type=float, help="Only plants for the grow zone of this latitude")
    zone_group.add_argument("--clear-zone", action="store_true", help="Forget the remembered grow zone")
    plants_parser.add_argument("--query", type=str, default="", help="Case-insensitive name filter")
    plants_parser.set_defaults(func=cmd_plants)

    plant_parser = subparsers.add_parser("plant", help="Show one plant")
    plant_parser.add_argument("plant_id", type=str)
    plant_parser.set_defaults(func=cmd_plant)

    garden_parser = subparsers.add_parser("garden", help="List the plants in your garden")
    garden_parser.set_defaults(func=cmd_garden)

    garden_add_parser = subparsers.add_parser("garden-add", help="Add a plant to your garden")
    garden_add_parser.add_argument("plant_id", type=str)
    garden_add_parser.set_defaults(func=cmd_garden_add)

    garden_remove_parser = subparsers.add_parser("garden-remove", help="Remove a planting from your garden")
    garden_remove_parser.add_argument("planting_id", type=int)
    garden_remove_parser.set_defaults(func=cmd_garden_remove)

    zone_parser = subparsers.add_parser("zone", help="Grow zone for a latitude")
    zone_parser.add_argument("latitude", type=float)
    zone_parser.set_defaults(func=cmd_zone)

    gallery_parser = subparsers.add_parser("gallery", help="Search plant photos")
    gallery_parser.add_argument("query", type=str)
    gallery_parser.add_argument("--pages", type=int, default=1, help="Number of pages to load (default: 1)")
    gallery_parser.set_defaults(func=cmd_gallery)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entrypoint."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    config = load_config(args.config, required=args.config is not None)
    configure_logging(args.log_level or config["logging"]["level"], config["logging"].get("file"))

    try:
        return args.func(args, config)
    except SunflowerError as e:
        logger.error(f"Error running command '{args.command}': {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
