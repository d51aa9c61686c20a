#!/usr/bin/env python3
"""
Database migration runner for Intranet Search.

Waits for the database to accept connections, then upgrades the schema to the
latest Alembic revision.
"""

import sys
import os
import logging
import asyncio
import time

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

# Add the backend directory to Python path
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def _ping(database_url: str) -> None:
    engine = create_async_engine(database_url, poolclass=NullPool)
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    finally:
        await engine.dispose()


def wait_for_database(database_url: str, max_retries: int = 30, retry_interval: int = 2) -> bool:
    """Wait for database to be available"""
    logger.info("Waiting for database connection...")

    for attempt in range(max_retries):
        try:
            asyncio.run(_ping(database_url))
            logger.info("Database connection successful!")
            return True
        except (OperationalError, OSError) as e:
            logger.warning(f"Database connection attempt {attempt + 1}/{max_retries} failed: {e}")
            if attempt < max_retries - 1:
                time.sleep(retry_interval)

    logger.error("Maximum database connection retries exceeded")
    return False


def run_alembic_migration() -> bool:
    """Run Alembic migrations with proper error handling"""
    from alembic.config import Config
    from alembic import command
    from intranet_search.core.config import settings

    if not settings.is_postgres:
        logger.error("Migrations target PostgreSQL; use create_tables.py for other databases")
        return False

    host = settings.DATABASE_URL.split('@')[1].split('/')[0] if '@' in settings.DATABASE_URL else 'unknown'
    logger.info(f"Database URL configured (host: {host})")

    if not wait_for_database(settings.DATABASE_URL):
        logger.error("Database is not available")
        return False

    try:
        alembic_cfg = Config(os.path.join(os.path.dirname(os.path.abspath(__file__)), "alembic.ini"))
        logger.info("Running Alembic upgrade to head...")
        command.upgrade(alembic_cfg, "head")
        logger.info("Migration completed successfully!")
        return True
    except Exception as e:
        logger.exception(f"Migration failed with error: {e}")
        return False


def main():
    logger.info("=== Intranet Search Database Migration Runner ===")

    if run_alembic_migration():
        logger.info("=== Migration completed successfully ===")
        sys.exit(0)
    else:
        logger.error("=== Migration failed ===")
        sys.exit(1)

if __name__ == "__main__":
    main()
