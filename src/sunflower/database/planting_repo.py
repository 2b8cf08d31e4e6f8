"""Repository functions for plantings table operations."""

from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from sunflower.database.plant_repo import planted_item_exists, row_to_planted_item
from sunflower.database.schema import PlantedItemRow, PlantingRow
from sunflower.errors import ConstraintViolation
from sunflower.models import Planting, PlantedItemWithPlantings
from sunflower.utils.logging import get_logger
from sunflower.utils.time import parse_utc_z, to_utc_z, utc_now

logger = get_logger(__name__)


def row_to_planting(row: PlantingRow) -> Planting:
    """Convert a PlantingRow into an immutable Planting."""
    return Planting(
        id=row.id,
        plant_id=row.plant_id,
        plant_date=parse_utc_z(row.plant_date),
        last_watering_date=parse_utc_z(row.last_watering_date),
    )


def create_planting(
    session: Session,
    plant_id: str,
    planted_at: Optional[datetime] = None,
) -> PlantingRow:
    """
    Add a planting of an existing planted item. The caller commits.

    Args:
        session: SQLAlchemy session
        plant_id: ID of the planted item
        planted_at: Timestamp for both plant and last-watering dates (defaults to now)

    Returns:
        PlantingRow (flushed, so its id is assigned)

    Raises:
        ConstraintViolation: If plant_id does not reference a planted item
    """
    if not plant_id:
        raise ValueError("plant_id must be a non-empty string")
    if not planted_item_exists(session, plant_id):
        raise ConstraintViolation(
            f"Planted item '{plant_id}' does not exist",
            table=PlantedItemRow.__tablename__,
            key=plant_id,
        )

    stamp = to_utc_z(planted_at or utc_now())
    planting_row = PlantingRow(plant_id=plant_id, plant_date=stamp, last_watering_date=stamp)
    session.add(planting_row)
    session.flush()
    logger.debug(f"Created planting {planting_row.id} for {plant_id}")
    return planting_row


def delete_planting(session: Session, planting_id: int) -> bool:
    """
    Delete a planting by ID. The caller commits.

    Returns:
        True if a row was removed, False if it was already absent
    """
    deleted = session.query(PlantingRow).filter(PlantingRow.id == planting_id).delete()
    return deleted > 0


def is_planted(session: Session, plant_id: str) -> bool:
    """True iff at least one planting references plant_id."""
    return session.query(PlantingRow.id).filter(PlantingRow.plant_id == plant_id).first() is not None


def list_plantings(session: Session) -> List[Planting]:
    """All plantings, oldest first."""
    rows = session.query(PlantingRow).order_by(PlantingRow.id).all()
    return [row_to_planting(row) for row in rows]


def list_planted_with_plantings(session: Session) -> List[PlantedItemWithPlantings]:
    """
    One entry per planted item that has at least one planting.

    Entries are ordered by plant name; each entry's plantings are ordered most
    recent first so index 0 is the latest planting.
    """
    rows = (
        session.query(PlantedItemRow, PlantingRow)
        .join(PlantingRow, PlantingRow.plant_id == PlantedItemRow.id)
        .order_by(
            PlantedItemRow.name,
            PlantedItemRow.id,
            PlantingRow.plant_date.desc(),
            PlantingRow.id.desc(),
        )
        .all()
    )

    grouped: Dict[str, List[Planting]] = {}
    plants: Dict[str, PlantedItemRow] = {}
    for plant_row, planting_row in rows:
        if plant_row.id not in grouped:
            grouped[plant_row.id] = []
            plants[plant_row.id] = plant_row
        grouped[plant_row.id].append(row_to_planting(planting_row))

    # dicts keep insertion order, which follows the name ordering above
    return [
        PlantedItemWithPlantings(plant=row_to_planted_item(plants[plant_id]), plantings=tuple(plantings))
        for plant_id, plantings in grouped.items()
    ]
