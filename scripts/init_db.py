"""
Create all tables and seed the status taxonomy
"""

import asyncio
import logging
import sys
import os

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.database import async_session_maker, engine
from core.logging import setup_logging
from ingestion.loaders.postgres_loader import PostgresEntityStore
from ingestion.transformers.status_canonicalizer import StatusCanonicalizer
# Import all models to ensure they are registered
import models  # noqa: F401
from models.base import Base

setup_logging()
logger = logging.getLogger(__name__)


async def init_database():
    logger.info("Connecting to database...")

    async with engine.begin() as conn:
        logger.info("Creating tables...")
        await conn.run_sync(Base.metadata.create_all)
        logger.info("Tables created successfully.")

    async with async_session_maker() as session:
        created = await StatusCanonicalizer(PostgresEntityStore(session)).seed()
        logger.info(f"Status taxonomy ready ({created} new mappings)")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(init_database())
