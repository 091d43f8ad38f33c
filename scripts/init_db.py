"""Create the tables and seed the service catalog."""

import asyncio

from sqlalchemy import select

from booking_api.database import engine
from booking_api.models import metadata, services

SEED_SERVICES = [
    {
        "name": "Consultație",
        "slug": "consultatie",
        "category": "nutritie",
        "short_description": "Consultație inițială de nutriție",
        "duration_minutes": 60,
        "price": 250,
        "display_order": 1,
    },
    {
        "name": "Consultație de control",
        "slug": "consultatie-control",
        "category": "nutritie",
        "short_description": "Evaluarea progresului și ajustarea planului",
        "duration_minutes": 30,
        "price": 150,
        "display_order": 2,
    },
    {
        "name": "Plan alimentar personalizat",
        "slug": "plan-alimentar",
        "category": "nutritie",
        "short_description": "Consultație și plan alimentar pe 4 săptămâni",
        "duration_minutes": 90,
        "price": 400,
        "display_order": 3,
    },
]


async def init_db() -> None:
    """Create all tables and insert seed services that do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

        existing = set((await conn.execute(select(services.c.slug))).scalars())
        missing = [s for s in SEED_SERVICES if s["slug"] not in existing]
        if missing:
            await conn.execute(services.insert(), missing)

    await engine.dispose()
    print(f"✓ Database initialized successfully! Seeded {len(missing)} service(s).")


if __name__ == "__main__":
    asyncio.run(init_db())
