"""Initial schema with PostGIS extension and the vehicles table.

Revision ID: 001
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa
from geoalchemy2 import Geometry


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Enable PostGIS extension
    op.execute("CREATE EXTENSION IF NOT EXISTS postgis")

    # ── vehicles ──────────────────────────────────────────────────────
    op.create_table(
        "vehicles",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("code", sa.String(32), unique=True, nullable=True),
        sa.Column("display_name", sa.String(120), nullable=True),
        sa.Column("model", sa.String(120), nullable=True),
        sa.Column(
            "status",
            sa.Enum(
                "available",
                "reserved",
                "in_use",
                "maintenance",
                "retired",
                name="vehiclestatus",
            ),
            default="available",
            nullable=False,
        ),
        sa.Column("battery_percent", sa.Float, default=100.0),
        sa.Column(
            "current_location",
            Geometry("POINT", srid=4326, spatial_index=False),
            nullable=True,
        ),
        sa.Column("latitude", sa.Float, nullable=True),
        sa.Column("longitude", sa.Float, nullable=True),
        sa.Column("h3_cell", sa.String(20), nullable=True),
        sa.Column("last_seen_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "idx_vehicles_location",
        "vehicles",
        ["current_location"],
        postgresql_using="gist",
    )
    op.create_index("idx_vehicles_status", "vehicles", ["status"])
    op.create_index("idx_vehicles_cell", "vehicles", ["h3_cell"])


def downgrade() -> None:
    op.drop_table("vehicles")
    op.execute("DROP TYPE IF EXISTS vehiclestatus")
