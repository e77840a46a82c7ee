#!/usr/bin/env python3
# backend/scripts/auto_import.py
"""
Import every CSV export found under a folder.

Each detected format lands in its own account ("Stock Portfolio",
"Commodities", "Crypto Portfolio", "Imported"), created on first use.
Re-running is safe: already imported rows are skipped.

    python backend/scripts/auto_import.py ./transactions
    AUTO_IMPORT_DIR=./transactions python backend/scripts/auto_import.py
"""
import argparse
import logging
import sys
from pathlib import Path

# Setup path to import app modules
backend_dir = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(backend_dir))

from app.config import settings
from app.database import SessionLocal, engine
from app.models import Base
from app.services.importer import ImportService
from app.utils import setup_logging

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument(
        "directory",
        nargs="?",
        default=settings.auto_import_dir,
        help="Folder to scan recursively (default: AUTO_IMPORT_DIR)",
    )
    args = parser.parse_args(argv)

    if not args.directory:
        parser.error("no directory given and AUTO_IMPORT_DIR is not set")

    setup_logging()
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        outcomes = ImportService().import_folder(db, args.directory)
    finally:
        db.close()

    failed = 0
    for outcome in outcomes:
        if outcome.error:
            failed += 1
            print(f"FAILED   {outcome.path}: {outcome.error}")
        elif outcome.result is None:
            print(f"SKIPPED  {outcome.path}: unknown format")
        else:
            r = outcome.result
            print(
                f"IMPORTED {outcome.path} [{r.format.value}] "
                f"imported={r.imported} skipped={r.skipped} errors={len(r.errors)}"
            )

    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
