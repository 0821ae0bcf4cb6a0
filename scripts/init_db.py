import asyncio
import logging
import sys
import os

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings
from core.database import create_engine, create_all
from core.logging import setup_logging

logger = logging.getLogger(__name__)


async def init_database():
    logger.info("Connecting to database...")
    engine = create_engine(settings.DATABASE_URL)

    try:
        logger.info("Creating tables...")
        # uploads, upload_files, datasets, usage_daily, usage_events
        await create_all(engine)
        logger.info("Tables created successfully.")
    finally:
        await engine.dispose()

if __name__ == "__main__":
    setup_logging()
    asyncio.run(init_database())
