#!/usr/bin/env python3
"""Setup script for the hotel booking API."""

import asyncio
import logging
import sys
from decimal import Decimal
from pathlib import Path

# Add the server directory to the Python path
server_dir = Path(__file__).parent.parent / "server"
sys.path.insert(0, str(server_dir))

from alembic import command
from alembic.config import Config
from sqlalchemy import func, select

from hotel_booking.core.database import async_session_factory, close_db
from hotel_booking.models import Hotel, Room, RoomRate, RoomType

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SAMPLE_ROOM_TYPES = [
    # name, capacity, room numbers, base, weekend, holiday
    ("Standard Double", 2, ["101", "102", "103", "104"], Decimal("100.00"), Decimal("120.00"), Decimal("150.00")),
    ("Deluxe King", 2, ["201", "202"], Decimal("180.00"), Decimal("210.00"), None),
    ("Family Suite", 4, ["301"], Decimal("260.00"), None, None),
]


def setup_database():
    """Bring the schema up to date with Alembic."""
    logger.info("Setting up database...")

    alembic_cfg = Config(str(server_dir / "db" / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(server_dir / "db" / "alembic"))

    logger.info("Running database migrations...")
    command.upgrade(alembic_cfg, "head")
    logger.info("Database migrations completed")


async def create_sample_data():
    """Create a sample hotel with rooms and general rates."""
    logger.info("Creating sample data...")

    async with async_session_factory() as db:
        try:
            existing = await db.execute(select(func.count()).select_from(Hotel))
            if existing.scalar_one() > 0:
                logger.info("Sample data already exists, skipping...")
                return

            hotel = Hotel(name="Harbour View Hotel", city="Lisbon", email="frontdesk@harbourview.example")
            db.add(hotel)
            await db.flush()

            for name, capacity, numbers, base, weekend, holiday in SAMPLE_ROOM_TYPES:
                room_type = RoomType(hotel_id=hotel.id, name=name, capacity=capacity)
                db.add(room_type)
                await db.flush()

                for number in numbers:
                    db.add(Room(hotel_id=hotel.id, room_type_id=room_type.id, room_number=number))

                db.add(RoomRate(
                    hotel_id=hotel.id,
                    room_type_id=room_type.id,
                    base_price=base,
                    weekend_price=weekend,
                    holiday_price=holiday,
                ))

            await db.commit()
            logger.info("Sample data created successfully!")

        except Exception as e:
            await db.rollback()
            logger.error(f"Failed to create sample data: {e}")
            raise

    await close_db()


def main():
    """Main setup function."""
    logger.info("Starting hotel booking API setup...")

    try:
        setup_database()
    except Exception as e:
        logger.error(f"Database setup failed: {e}")
        raise

    asyncio.run(create_sample_data())

    logger.info("Setup completed successfully!")
    logger.info("You can now start the API server with: cd server && uvicorn hotel_booking.main:app --reload")


if __name__ == "__main__":
    main()
