# backend/app/services/importer/__init__.py
"""
CSV Import Package.

Turns broker and wallet exports into ledger transactions:
- Format detection from the header row (formats.py)
- One parser per export format (parsers/)
- Fingerprint deduplication (fingerprint.py)
- Savepoint-per-row persistence (service.py)
- Ledger export back to CSV (exporter.py)

Usage:
    from app.services.importer import ImportService, export_csv

    result = ImportService().import_csv(db, content, account_id=1)
    csv_text = export_csv(db, account_id=1)

Architecture:
    importer/
    ├── __init__.py          # This file - package exports
    ├── formats.py           # CSVFormat, detection, record reading
    ├── fingerprint.py       # Dedup key
    ├── parsers/             # Revolut, Trezor, generic
    ├── service.py           # ImportService
    └── exporter.py          # export_csv
"""

from app.services.importer.exporter import export_csv, EXPORT_COLUMNS
from app.services.importer.fingerprint import transaction_fingerprint, load_fingerprints
from app.services.importer.formats import CSVFormat, detect_format, read_csv_records
from app.services.importer.parsers import PARSERS, NormalizedTransaction
from app.services.importer.service import (
    ImportService,
    ImportResult,
    DetectResult,
    FolderImportResult,
)

__all__ = [
    # Service
    "ImportService",
    "ImportResult",
    "DetectResult",
    "FolderImportResult",

    # Formats
    "CSVFormat",
    "detect_format",
    "read_csv_records",
    "PARSERS",
    "NormalizedTransaction",

    # Dedup
    "transaction_fingerprint",
    "load_fingerprints",

    # Export
    "export_csv",
    "EXPORT_COLUMNS",
]
