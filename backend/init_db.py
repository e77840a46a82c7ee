#!/usr/bin/env python3
# backend/init_db.py
"""
Create the portfolio tables.

    python backend/init_db.py            # create missing tables
    python backend/init_db.py --reset    # drop everything first (development only)

Existing tables are never altered; schema changes on a live database
need a manual migration.
"""
import argparse
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from app.config import settings
from app.database import engine
from app.models import Base
from app.utils.logging import setup_logging

logger = logging.getLogger("init_db")


def init_db(reset: bool = False) -> list[str]:
    """
    Create every table in the model metadata.

    Returns:
        Sorted table names
    """
    if reset:
        if settings.is_production:
            raise RuntimeError("Refusing to drop tables in production")
        logger.warning("Dropping all portfolio tables")
        Base.metadata.drop_all(bind=engine)

    Base.metadata.create_all(bind=engine)
    tables = sorted(Base.metadata.tables)
    logger.info(f"Tables ready: {', '.join(tables)}")
    return tables


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--reset", action="store_true", help="Drop all tables before creating them")
    args = parser.parse_args()

    setup_logging()
    init_db(reset=args.reset)
