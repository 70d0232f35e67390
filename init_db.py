#!/usr/bin/env python3
"""
Database initialization script.

Creates the live tables and, with --archives, the archive tables used by
the retention jobs. Connection settings come from the environment / .env
file through the application settings. NO credentials are hardcoded.
"""

import argparse
import logging
import sys

from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.db.models import ArchiveBase, Base
from app.db.session import engine

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


def create_database_tables(include_archives: bool = False) -> bool:
    """Create database tables using SQLAlchemy models."""
    db_url = settings.get_database_url()
    logger.info(f"Connecting to database at {db_url.split('@')[-1]}")

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("Database connection successful")

        Base.metadata.create_all(bind=engine)
        if include_archives:
            ArchiveBase.metadata.create_all(bind=engine)
        logger.info("All tables created successfully")

        tables = inspect(engine).get_table_names()
        logger.info(f"Tables in database: {', '.join(sorted(tables))}")
        return True
    except SQLAlchemyError as e:
        logger.error(f"Database error: {e}")
        return False


def main():
    parser = argparse.ArgumentParser(description="Create database tables")
    parser.add_argument(
        "--archives", action="store_true", help="Also create the archive tables"
    )
    args = parser.parse_args()

    logger.info("=" * 60)
    logger.info("Database Initialization Script")
    logger.info("=" * 60)

    if create_database_tables(include_archives=args.archives):
        logger.info("Database initialization completed successfully")
        sys.exit(0)
    logger.error("Database initialization failed")
    sys.exit(1)


if __name__ == "__main__":
    main()
