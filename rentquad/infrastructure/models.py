"""
SQLAlchemy ORM models  (maps to PostgreSQL + PostGIS).

Tables
------
* ``vehicles`` -- rentable vehicles with their live status and position

Indexes
-------
* **GIST** on ``current_location`` for spatial queries.
* **B-Tree** on ``status`` and ``h3_cell`` for the nearby-vehicles lookup.
"""

import uuid

from sqlalchemy import (
    Column,
    DateTime,
    Enum,
    Float,
    Index,
    String,
    func,
)
from geoalchemy2 import Geometry

from .database import Base
from rentquad.domain.enums import VehicleStatus


class VehicleModel(Base):
    __tablename__ = "vehicles"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    code = Column(String(32), unique=True, nullable=True)
    display_name = Column(String(120), nullable=True)
    model = Column(String(120), nullable=True)
    status = Column(
        Enum(VehicleStatus, values_callable=lambda e: [m.value for m in e]),
        default=VehicleStatus.AVAILABLE,
        nullable=False,
    )
    battery_percent = Column(Float, default=100.0)

    # PostGIS point for spatial indexing
    current_location = Column(
        Geometry("POINT", srid=4326, spatial_index=False), nullable=True
    )

    # Also stored as plain floats / H3 cell for fast reads
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    h3_cell = Column(String(20), nullable=True)

    last_seen_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_vehicles_location", "current_location", postgresql_using="gist"),
        Index("idx_vehicles_status", "status"),
        Index("idx_vehicles_cell", "h3_cell"),
    )
