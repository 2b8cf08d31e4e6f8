from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base

Base = declarative_base()

PLANTED_ITEMS_TABLE = "planted_items"
PLANTINGS_TABLE = "plantings"


class PlantedItemRow(Base):
    __tablename__ = PLANTED_ITEMS_TABLE

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False, index=True)
    description = Column(Text, nullable=False, default="")
    grow_zone_number = Column(Integer, nullable=False, index=True)
    watering_interval = Column(Integer, nullable=False, default=7, server_default="7")
    image_url = Column(String, nullable=False, default="", server_default="")


class PlantingRow(Base):
    __tablename__ = PLANTINGS_TABLE

    id = Column(Integer, primary_key=True, autoincrement=True)
    plant_id = Column(String, ForeignKey(f"{PLANTED_ITEMS_TABLE}.id"), nullable=False, index=True)
    plant_date = Column(String, nullable=False)  # ISO 8601 UTC string
    last_watering_date = Column(String, nullable=False)  # ISO 8601 UTC string


def create_all(engine: Engine) -> None:
    Base.metadata.create_all(engine)
