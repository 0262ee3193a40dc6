"""Create demo scheduling data (services, workers, business hours) for one site."""

import asyncio
import sys

from sqlalchemy import select

from app.db.init_db import create_default_hours, create_tables
from app.db.session import AsyncSessionLocal
from app.models.catalog import Service, ServiceVariant
from app.models.roster import Worker

DEFAULT_SITE = "demo"


async def create_demo_site(site_id: str = DEFAULT_SITE):
    """Create a small catalog and roster, then default business hours."""
    await create_tables()

    async with AsyncSessionLocal() as session:
        result = await session.execute(select(Service).where(Service.site_id == site_id).limit(1))
        if result.scalar_one_or_none():
            print(f"Site {site_id} already has services, skipping catalog...")
        else:
            haircut = Service(site_id=site_id, name="Haircut", category="Hair")
            color = Service(site_id=site_id, name="Color", category="Hair")
            shave = Service(site_id=site_id, name="Shave", category="Barber")
            session.add_all([haircut, color, shave])
            await session.flush()

            session.add_all(
                [
                    ServiceVariant(
                        service_id=haircut.id,
                        name="Standard",
                        duration_minutes=30,
                    ),
                    # Cut and color: the color phase follows after the cut settles
                    ServiceVariant(
                        service_id=haircut.id,
                        name="Cut & Color",
                        duration_minutes=30,
                        follow_up_name="Color",
                        follow_up_wait_minutes=10,
                        follow_up_duration_minutes=45,
                        follow_up_service_id=color.id,
                    ),
                    ServiceVariant(
                        service_id=color.id,
                        name="Full",
                        duration_minutes=60,
                    ),
                    ServiceVariant(
                        service_id=shave.id,
                        name="Classic",
                        duration_minutes=20,
                    ),
                ]
            )
            print("Created 3 services with 4 variants")

            workers = [
                Worker(
                    site_id=site_id,
                    name="Maya",
                    capabilities=[haircut.id, color.id],
                    weekly_availability={},
                    display_order=0,
                ),
                Worker(
                    site_id=site_id,
                    name="Alex",
                    capabilities=[haircut.id, shave.id],
                    # Short Saturdays, off on Mondays
                    weekly_availability={
                        "0": None,
                        "5": {"open": "10:00", "close": "14:00", "breaks": []},
                    },
                    display_order=1,
                ),
                Worker(
                    site_id=site_id,
                    name="Sam",
                    capabilities=[],
                    all_services=True,
                    weekly_availability={
                        "2": {
                            "open": "09:00",
                            "close": "18:00",
                            "breaks": [{"start": "12:30", "end": "13:15"}],
                        },
                    },
                    display_order=2,
                ),
            ]
            session.add_all(workers)
            print(f"Created {len(workers)} workers")

        await session.commit()

        days = await create_default_hours(session, site_id)
        print(f"Created {days} business days")

    print("\n=== Summary ===")
    print(f"Site: {site_id}")
    print("Demo site setup complete!")


if __name__ == "__main__":
    asyncio.run(create_demo_site(sys.argv[1] if len(sys.argv) > 1 else DEFAULT_SITE))
