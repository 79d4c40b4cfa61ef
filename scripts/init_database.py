#!/usr/bin/env python3
"""
Initialize database tables.

Development helper: creates the schema directly from the models (use
Alembic in production) and optionally stores the built-in commission
settings as version 1.

Usage:
    python scripts/init_database.py [--seed-settings]
"""

import argparse
import asyncio
import sys
from pathlib import Path


# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger

from compensation.config.business_constants import default_commission_settings
from compensation.config.database import create_engine, create_session_maker
from compensation.models import Base
from compensation.services.settings_service import SettingsService


# Configure logger for script
logger.remove()
logger.add(sys.stderr, level="INFO")


async def init_database(seed_settings: bool) -> None:
    """Create all database tables."""
    engine = create_engine(echo=False)

    async with engine.begin() as conn:
        logger.info("Creating tables (checkfirst=True)...")
        await conn.run_sync(Base.metadata.create_all, checkfirst=True)

    if seed_settings:
        session_maker = create_session_maker(engine)
        async with session_maker() as session:
            service = SettingsService(session)
            current = await service.get_settings()
            if current.version == 0:
                record = await service.save_settings(
                    default_commission_settings(), saved_by="init_database", comment="Defaults"
                )
                await session.commit()
                logger.info(f"Default settings stored as version {record.version}")
            else:
                logger.info(f"Settings already at version {current.version}, not seeding")

    await engine.dispose()
    logger.success("Database tables created successfully!")


def main() -> None:
    parser = argparse.ArgumentParser(description="Create compensation tables")
    parser.add_argument(
        "--seed-settings",
        action="store_true",
        help="Store the built-in commission settings as version 1",
    )
    args = parser.parse_args()
    asyncio.run(init_database(args.seed_settings))


if __name__ == "__main__":
    main()
