# backend/app/services/importer/service.py
"""
Import service for broker and wallet CSV exports.

This service orchestrates the complete import flow:
1. Read records (encoding fallback, ragged rows tolerated)
2. Detect the export format from the header row (or take the caller's hint)
3. Normalize rows with the format's parser
4. Skip rows whose fingerprint is already in the account's ledger
5. Insert the rest, each inside its own savepoint

Unlike a fail-fast upload, one bad row never aborts the batch: a database
error on a row rolls back only that row's savepoint and is reported as
"Row {n}: message". The whole file is committed once at the end.

Usage:
    from app.services.importer import ImportService

    service = ImportService()
    result = service.import_csv(db, content=raw_bytes, account_id=1)
    print(f"{result.imported} imported, {result.skipped} duplicates")
"""

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models import Account, Transaction
from app.services.exceptions import AccountNotFoundError, ImportFormatError
from app.services.importer.fingerprint import load_fingerprints, transaction_fingerprint
from app.services.importer.formats import CSVFormat, detect_format, read_csv_records
from app.services.importer.parsers import PARSERS

logger = logging.getLogger(__name__)


# =============================================================================
# RESULT DATA CLASSES
# =============================================================================

@dataclass
class ImportResult:
    """
    Outcome of one CSV import.

    Attributes:
        imported: Rows inserted into the ledger
        skipped: Rows already present (fingerprint match)
        total: Normalized transactions produced by the parser
        errors: "Row {n}: message" strings, parser errors included
        format: Format the file was parsed as
    """

    imported: int = 0
    skipped: int = 0
    total: int = 0
    errors: list[str] = field(default_factory=list)
    format: CSVFormat = CSVFormat.UNKNOWN


@dataclass
class DetectResult:
    format: CSVFormat
    headers: list[str] = field(default_factory=list)


@dataclass
class FolderImportResult:
    """Per-file outcome of a folder scan."""

    path: str
    format: CSVFormat
    account_id: int | None = None
    result: ImportResult | None = None
    error: str | None = None


@dataclass(frozen=True)
class AccountTemplate:
    name: str
    type: str
    icon: str
    color: str


# Account created (or reused) for each detected format during a folder scan
FOLDER_ACCOUNTS: dict[CSVFormat, AccountTemplate] = {
    CSVFormat.REVOLUT_STOCKS: AccountTemplate("Stock Portfolio", "stock", "chart-line", "#10b981"),
    CSVFormat.REVOLUT_COMMODITIES: AccountTemplate("Commodities", "commodity", "gem", "#8b5cf6"),
    CSVFormat.TREZOR: AccountTemplate("Crypto Portfolio", "crypto", "bitcoin", "#f59e0b"),
}
DEFAULT_FOLDER_ACCOUNT = AccountTemplate("Imported", "general", "wallet", "#6366f1")
FOLDER_ACCOUNT_CURRENCY = "EUR"


# =============================================================================
# IMPORT SERVICE
# =============================================================================

class ImportService:
    """
    Imports CSV exports into an account's ledger with deduplication.

    Concurrent imports into the same account are serialized by a
    per-account lock held from fingerprint load to commit, so two
    uploads of the same file never both insert a row.
    """

    def __init__(self) -> None:
        self._locks: dict[int, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _account_lock(self, account_id: int) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(account_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[account_id] = lock
            return lock

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def import_csv(
            self,
            db: Session,
            content: bytes | str,
            account_id: int,
            format_hint: CSVFormat | str | None = None,
    ) -> ImportResult:
        """
        Import a CSV file into an account.

        Args:
            db: Database session
            content: Raw file content
            account_id: Target account
            format_hint: Skip detection and parse as this format

        Returns:
            ImportResult with counts and per-row errors

        Raises:
            AccountNotFoundError: Account does not exist
            ImportFormatError: Unreadable CSV or invalid format hint
        """
        if db.get(Account, account_id) is None:
            raise AccountNotFoundError(account_id)

        headers, records = read_csv_records(content)
        if not records:
            return ImportResult()

        csv_format = self._resolve_format(format_hint, headers)
        if csv_format == CSVFormat.UNKNOWN:
            return ImportResult(
                total=len(records),
                errors=[f"Unknown CSV format. Headers: {', '.join(headers)}"],
            )

        normalized, parse_errors = PARSERS[csv_format](records)
        result = ImportResult(total=len(normalized), format=csv_format)
        logger.info(
            f"Importing {len(normalized)} {csv_format.value} rows into account {account_id}"
        )

        with self._account_lock(account_id):
            existing = load_fingerprints(db, account_id)

            try:
                for index, txn in enumerate(normalized):
                    fingerprint = transaction_fingerprint(
                        account_id, txn.symbol, txn.type, txn.quantity, txn.price, txn.date
                    )
                    if fingerprint in existing:
                        result.skipped += 1
                        continue

                    try:
                        with db.begin_nested():
                            db.add(Transaction(
                                account_id=account_id,
                                symbol=txn.symbol,
                                type=txn.type,
                                quantity=txn.quantity,
                                price=txn.price,
                                fee=txn.fee,
                                currency=txn.currency,
                                date=txn.date,
                                notes=txn.notes,
                            ))
                    except SQLAlchemyError as e:
                        result.errors.append(f"Row {index + 1}: {e}")
                        continue

                    # Later rows in the same file are checked against this one too
                    existing.add(fingerprint)
                    result.imported += 1

                db.commit()
            except Exception:
                db.rollback()
                logger.error(f"Import into account {account_id} failed", exc_info=True)
                raise

        result.errors.extend(parse_errors)
        logger.info(
            f"Import complete for account {account_id}: imported={result.imported}, "
            f"skipped={result.skipped}, errors={len(result.errors)}"
        )
        return result

    def detect(self, content: bytes | str) -> DetectResult:
        """Report the detected format and header row without importing."""
        headers, records = read_csv_records(content)
        if not headers:
            return DetectResult(format=CSVFormat.UNKNOWN)
        return DetectResult(format=detect_format(headers), headers=headers)

    def import_folder(self, db: Session, directory: str | Path) -> list[FolderImportResult]:
        """
        Import every CSV file found under a directory.

        Each detected format goes into its own account, created on first
        use. A failing file is logged and recorded; the scan continues.
        """
        root = Path(directory)
        if not root.is_dir():
            logger.info(f"No transactions directory found at {root}")
            return []

        csv_files = sorted(p for p in root.rglob("*") if p.is_file() and p.suffix.lower() == ".csv")
        logger.info(f"Found {len(csv_files)} CSV file(s) in {root}")

        outcomes: list[FolderImportResult] = []
        for path in csv_files:
            try:
                content = path.read_bytes()
                detected = self.detect(content)
                if detected.format == CSVFormat.UNKNOWN:
                    logger.info(f"Skipping {path}: unknown format")
                    outcomes.append(FolderImportResult(path=str(path), format=CSVFormat.UNKNOWN))
                    continue

                account = self._get_or_create_folder_account(db, detected.format)
                result = self.import_csv(db, content, account.id, detected.format)
                logger.info(
                    f"{path.name}: imported={result.imported}, skipped={result.skipped}, "
                    f"format={result.format.value}"
                )
                if result.errors:
                    logger.warning(f"{path.name}: {result.errors[:5]}")
                outcomes.append(FolderImportResult(
                    path=str(path), format=detected.format, account_id=account.id, result=result,
                ))
            except (OSError, ImportFormatError, SQLAlchemyError) as e:
                logger.error(f"Error processing {path}: {e}")
                outcomes.append(FolderImportResult(path=str(path), format=CSVFormat.UNKNOWN, error=str(e)))

        return outcomes

    # =========================================================================
    # PRIVATE METHODS
    # =========================================================================

    @staticmethod
    def _resolve_format(format_hint: CSVFormat | str | None, headers: list[str]) -> CSVFormat:
        if not format_hint:
            return detect_format(headers)
        try:
            return CSVFormat(format_hint)
        except ValueError:
            raise ImportFormatError(f"Invalid format '{format_hint}'", headers=headers)

    @staticmethod
    def _get_or_create_folder_account(db: Session, csv_format: CSVFormat) -> Account:
        template = FOLDER_ACCOUNTS.get(csv_format, DEFAULT_FOLDER_ACCOUNT)
        account = db.scalars(
            select(Account).where(Account.name == template.name, Account.type == template.type)
        ).first()
        if account is not None:
            return account

        account = Account(
            name=template.name,
            type=template.type,
            currency=FOLDER_ACCOUNT_CURRENCY,
            description=f"Auto-imported from {csv_format.value}",
            icon=template.icon,
            color=template.color,
        )
        db.add(account)
        db.commit()
        db.refresh(account)
        logger.info(f"Created account: {template.name}")
        return account
