"""Script to initialize the database without running migrations."""

import asyncio

from sqlalchemy import text

from app.database import engine
from app.models.appointments import DOCTOR_APPOINTMENTS_VIEW_SQL, metadata
from app.models.doctors import metadata as doctors_metadata
from app.models.patients import metadata as patients_metadata


async def init_db() -> None:
    """Create tables and the doctor appointments view."""
    async with engine.begin() as conn:
        # Enable pgcrypto extension
        await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "pgcrypto"'))

        # Create all tables
        await conn.run_sync(patients_metadata.create_all)
        await conn.run_sync(doctors_metadata.create_all)
        await conn.run_sync(metadata.create_all)

        await conn.execute(text(DOCTOR_APPOINTMENTS_VIEW_SQL))

    await engine.dispose()
    print("✓ Database initialized successfully!")


if __name__ == "__main__":
    asyncio.run(init_db())
