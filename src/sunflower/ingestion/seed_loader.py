"""Load the bundled planted-item catalog into a freshly created store."""

import json
from pathlib import Path
from typing import TYPE_CHECKING, List, Union

from pydantic import ValidationError

from ..errors import SeedFailure
from ..models import PlantedItem
from ..utils.logging import get_logger

if TYPE_CHECKING:
    from ..database.garden_store import GardenStore

logger = get_logger(__name__)


def load_planted_items(path: Path) -> List[PlantedItem]:
    """
    Parse a JSON list of planted items.

    Accepts both the catalog's camelCase fields (plantId, growZoneNumber,
    wateringInterval, imageUrl) and snake_case names.

    Raises:
        SeedFailure: If the file is missing or malformed
    """
    if not path.exists():
        raise SeedFailure(f"Seed file not found: {path}")
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise SeedFailure(f"Could not read seed file {path}: {e}") from e

    if not isinstance(data, list):
        raise SeedFailure(f"Seed file {path} must contain a JSON list")

    try:
        return [PlantedItem.model_validate(entry) for entry in data]
    except ValidationError as e:
        raise SeedFailure(f"Malformed planted item in {path}: {e}") from e


def seed_database(store: "GardenStore", filename: Union[str, Path]) -> bool:
    """
    Load the seed file and upsert its items into the store.

    Failures are logged and reported as False; the store stays usable.

    Returns:
        True on success, False otherwise
    """
    if not filename:
        logger.error("Error seeding database - no valid filename")
        return False

    path = Path(filename)
    try:
        items = load_planted_items(path)
        count = store.bulk_insert_planted_items(items).result()
    except Exception as e:
        logger.error(f"Error seeding database from {path}: {e}", exc_info=True)
        return False

    logger.info(f"Seeded {count} planted items from {path}")
    return True
