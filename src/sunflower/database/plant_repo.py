"""Repository functions for planted_items table operations."""

from typing import Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from sunflower.database.schema import PlantedItemRow
from sunflower.models import NO_GROW_ZONE, PlantedItem
from sunflower.utils.logging import get_logger

logger = get_logger(__name__)


def row_to_planted_item(row: PlantedItemRow) -> PlantedItem:
    """Convert a PlantedItemRow into an immutable PlantedItem."""
    return PlantedItem(
        id=row.id,
        name=row.name,
        description=row.description or "",
        grow_zone_number=row.grow_zone_number,
        watering_interval=row.watering_interval if row.watering_interval is not None else 7,
        image_url=row.image_url or "",
    )


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def list_planted_items(
    session: Session,
    zone: int = NO_GROW_ZONE,
    text_query: str = "",
) -> List[PlantedItem]:
    """
    List planted items ordered by name.

    Args:
        session: SQLAlchemy session
        zone: Exact grow zone to match, or NO_GROW_ZONE for every zone
        text_query: Case-insensitive substring of the name; empty matches all

    Returns:
        List of PlantedItem snapshots
    """
    query = session.query(PlantedItemRow)
    if zone != NO_GROW_ZONE:
        query = query.filter(PlantedItemRow.grow_zone_number == zone)
    if text_query:
        pattern = f"%{_escape_like(text_query.lower())}%"
        query = query.filter(func.lower(PlantedItemRow.name).like(pattern, escape="\\"))
    rows = query.order_by(PlantedItemRow.name, PlantedItemRow.id).all()
    return [row_to_planted_item(row) for row in rows]


def get_planted_item(session: Session, plant_id: str) -> Optional[PlantedItem]:
    """Get a planted item by ID."""
    row = session.get(PlantedItemRow, plant_id)
    return row_to_planted_item(row) if row is not None else None


def planted_item_exists(session: Session, plant_id: str) -> bool:
    return session.query(PlantedItemRow.id).filter(PlantedItemRow.id == plant_id).first() is not None


def upsert_planted_items(session: Session, items: Iterable[PlantedItem]) -> int:
    """
    Insert planted items, replacing any existing row with the same ID.

    The caller commits.

    Returns:
        Number of items written
    """
    count = 0
    for item in items:
        if not item.id:
            raise ValueError("PlantedItem must have an id")
        session.merge(
            PlantedItemRow(
                id=item.id,
                name=item.name,
                description=item.description,
                grow_zone_number=item.grow_zone_number,
                watering_interval=item.watering_interval,
                image_url=item.image_url,
            )
        )
        count += 1
    logger.debug(f"Upserted {count} planted items")
    return count
