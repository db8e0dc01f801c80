"""
SQLite stand-ins for the production models.

PostGIS ``Geometry`` columns and PostgreSQL enums are replaced with plain
String columns so repository code can run against in-memory SQLite (via
aiosqlite) without Docker / PostgreSQL.
"""

from sqlalchemy import Column, DateTime, Float, String, func
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from rentquad.infrastructure.repositories import VehicleRepository

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

test_engine = create_async_engine(TEST_DB_URL, echo=False)
TestSessionFactory = async_sessionmaker(
    test_engine, class_=AsyncSession, expire_on_commit=False
)


class TestBase(DeclarativeBase):
    pass


class TestVehicleModel(TestBase):
    __tablename__ = "vehicles"
    id = Column(String(36), primary_key=True)
    code = Column(String(32), unique=True, nullable=True)
    display_name = Column(String(120), nullable=True)
    model = Column(String(120), nullable=True)
    status = Column(String(20), default="available", nullable=False)
    battery_percent = Column(Float, default=100.0)
    current_location = Column(String, nullable=True)  # stub for Geometry
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    h3_cell = Column(String(20), nullable=True)
    last_seen_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now())


class SqliteVehicleRepository(VehicleRepository):
    """``VehicleRepository`` queries running against the SQLite model."""

    model = TestVehicleModel
