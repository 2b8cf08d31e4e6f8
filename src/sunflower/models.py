"""Immutable snapshot models handed to live-query subscribers.

ORM rows never leave the database package; repositories convert them into
these models inside the read transaction.
"""

from datetime import datetime, timedelta
from typing import Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

NO_GROW_ZONE = -1


class PlantedItem(BaseModel):
    """A catalog entry describing one kind of plant."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(..., alias="plantId")
    name: str
    description: str
    grow_zone_number: int = Field(..., alias="growZoneNumber")
    watering_interval: int = Field(default=7, alias="wateringInterval")
    image_url: str = Field(default="", alias="imageUrl")

    def should_be_watered(self, since: datetime, last_watering_date: datetime) -> bool:
        """True when `since` is past the last watering plus the watering interval."""
        return since > last_watering_date + timedelta(days=self.watering_interval)

    def __str__(self) -> str:
        return self.name


class Planting(BaseModel):
    """One user-owned instance of a PlantedItem."""

    model_config = ConfigDict(frozen=True)

    id: int
    plant_id: str
    plant_date: datetime
    last_watering_date: datetime


class PlantedItemWithPlantings(BaseModel):
    """A planted item plus all of its plantings, most recent first."""

    model_config = ConfigDict(frozen=True)

    plant: PlantedItem
    plantings: Tuple[Planting, ...]

    @field_validator("plantings")
    @classmethod
    def _require_plantings(cls, value: Tuple[Planting, ...]) -> Tuple[Planting, ...]:
        if not value:
            raise ValueError("PlantedItemWithPlantings requires at least one planting")
        return value

    @property
    def most_recent(self) -> Planting:
        return self.plantings[0]


class FilterState(BaseModel):
    """Current inputs of the plant list filter."""

    model_config = ConfigDict(frozen=True)

    zone: int = NO_GROW_ZONE
    query: str = ""

    @property
    def is_filtered(self) -> bool:
        return self.zone != NO_GROW_ZONE
