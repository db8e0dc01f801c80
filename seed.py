"""
Seed script -- populates the database with sample vehicles for reviewers.

Run after migrations:
    python seed.py

Creates 12 vehicles around Kadikoy, Istanbul: mostly available, plus one
of each non-rentable status so the nearby listing filters are visible.
Prints each vehicle's QR payload for use with ``POST /rentals/{user}/scan-qr``.
"""

import asyncio
from datetime import datetime, timezone

from sqlalchemy import text
from geoalchemy2.functions import ST_MakePoint

from rentquad.config import settings
from rentquad.domain.enums import VehicleStatus
from rentquad.domain.geo import vehicle_h3_cell
from rentquad.domain.qr import build_vehicle_qr
from rentquad.infrastructure.database import async_session_factory, engine
from rentquad.infrastructure.models import VehicleModel


VEHICLES = [
    {"code": "RQ-001", "display_name": "Sahil", "model": "Quad X1", "battery": 92, "lat": 40.9903, "lng": 29.0290},
    {"code": "RQ-002", "display_name": "Quad X1", "model": "Quad X1", "battery": 81, "lat": 40.9911, "lng": 29.0302},
    {"code": "RQ-003", "display_name": "Moda", "model": "Quad X1", "battery": 64, "lat": 40.9842, "lng": 29.0265},
    {"code": "RQ-004", "display_name": None, "model": "Quad X2", "battery": 47, "lat": 40.9878, "lng": 29.0361},
    {"code": "RQ-005", "display_name": "Yeldegirmeni", "model": "Quad X2", "battery": 99, "lat": 40.9955, "lng": 29.0320},
    {"code": "RQ-006", "display_name": "Bahariye", "model": "Quad X2", "battery": 23, "lat": 40.9866, "lng": 29.0298},
    {"code": "RQ-007", "display_name": "Fenerbahce", "model": "Quad X1", "battery": 71, "lat": 40.9708, "lng": 29.0383},
    {"code": "RQ-008", "display_name": "Kalamis", "model": "Quad X1", "battery": 58, "lat": 40.9762, "lng": 29.0418},
    {"code": "RQ-009", "display_name": "Acibadem", "model": "Quad X2", "battery": 88, "lat": 41.0010, "lng": 29.0442},
    {"code": "RQ-010", "display_name": "Rezerve", "model": "Quad X1", "battery": 76, "lat": 40.9899, "lng": 29.0279, "status": VehicleStatus.RESERVED},
    {"code": "RQ-011", "display_name": "Servis", "model": "Quad X1", "battery": 5, "lat": 40.9890, "lng": 29.0310, "status": VehicleStatus.MAINTENANCE},
    {"code": "RQ-012", "display_name": "Emekli", "model": "Quad X0", "battery": 0, "lat": 40.9920, "lng": 29.0250, "status": VehicleStatus.RETIRED},
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM vehicles"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        now = datetime.now(timezone.utc)
        models = []
        for v in VEHICLES:
            m = VehicleModel(
                code=v["code"],
                display_name=v["display_name"],
                model=v["model"],
                status=v.get("status", VehicleStatus.AVAILABLE),
                battery_percent=v["battery"],
                current_location=ST_MakePoint(v["lng"], v["lat"]),
                latitude=v["lat"],
                longitude=v["lng"],
                h3_cell=vehicle_h3_cell(v["lat"], v["lng"], settings.h3_resolution),
                last_seen_at=now,
            )
            session.add(m)
            models.append(m)
        await session.flush()
        print(f"  Created {len(models)} vehicles")
        for m in models:
            print(f"    {m.code:<7} {m.status.value:<12} {build_vehicle_qr(m.id)}")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
