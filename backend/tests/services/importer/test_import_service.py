# backend/tests/services/importer/test_import_service.py
"""
Tests for ImportService.

This module tests:
- Deduplication across imports and within one file
- Format detection vs. an explicit format hint
- Per-row savepoints: one failing row never rolls back the others
- Folder imports with per-format accounts
"""

from datetime import date
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from app.models import Account, Transaction, TransactionType
from app.services.exceptions import AccountNotFoundError, ImportFormatError
from app.services.importer import CSVFormat, ImportService
from app.services.importer.fingerprint import transaction_fingerprint
from tests.conftest import create_account

GENERIC_CSV = (
    "symbol,type,quantity,price,fee,currency,date,notes\n"
    "AAPL,buy,10,150,1,USD,2024-01-15,first\n"
    "MSFT,buy,2,400,0,USD,2024-01-16,\n"
    "AAPL,sell,4,180,1,USD,2024-02-01,\n"
)

REVOLUT_CSV = (
    "Date,Ticker,Type,Quantity,Price per share,Total Amount,Currency,FX Rate\n"
    "2024-01-10T09:00:00.000Z,,CASH TOP-UP,,,USD 1000,USD,1.09\n"
    "2024-01-11T15:31:00.000Z,NVDA,BUY - MARKET,2,USD 500.00,USD 1000.00,USD,1.09\n"
)

TREZOR_CSV = (
    "Date,Time,Type,Transaction ID,Fee,Fee unit,Address,Label,Amount,Amount unit,Fiat (USD),Other\n"
    "3/15/2024,10:15:00,RECV,abcdef0123456789abcdef,0,BTC,bc1q,,0.5,BTC,22500,\n"
)


@pytest.fixture
def service() -> ImportService:
    return ImportService()


@pytest.fixture
def account(db) -> Account:
    return create_account(db, "Stocks", currency="USD")


def ledger(db, account_id: int) -> list[Transaction]:
    return list(db.scalars(
        select(Transaction).where(Transaction.account_id == account_id).order_by(Transaction.id)
    ))


# =============================================================================
# DEDUPLICATION
# =============================================================================

class TestDeduplication:
    """Tests for fingerprint-based deduplication."""

    def test_reimport_skips_everything(self, db, service, account):
        first = service.import_csv(db, GENERIC_CSV, account.id)
        second = service.import_csv(db, GENERIC_CSV, account.id)

        assert (first.imported, first.skipped, first.total) == (3, 0, 3)
        assert (second.imported, second.skipped, second.total) == (0, 3, 3)
        assert len(ledger(db, account.id)) == 3

    def test_identical_rows_in_one_file(self, db, service, account):
        content = (
            "symbol,type,quantity,price,date\n"
            "AAPL,buy,1,100,2024-01-15\n"
            "AAPL,buy,1,100,2024-01-15\n"
        )

        result = service.import_csv(db, content, account.id)

        assert (result.imported, result.skipped) == (1, 1)

    def test_rows_differing_only_in_fee_are_duplicates(self, db, service, account):
        content = (
            "symbol,type,quantity,price,fee,date\n"
            "AAPL,buy,1,100,0,2024-01-15\n"
            "AAPL,buy,1,100,2.5,2024-01-15\n"
        )

        result = service.import_csv(db, content, account.id)

        assert (result.imported, result.skipped) == (1, 1)

    def test_same_rows_into_another_account_are_imported(self, db, service, account):
        other = create_account(db, "Other")
        service.import_csv(db, GENERIC_CSV, account.id)

        result = service.import_csv(db, GENERIC_CSV, other.id)

        assert result.imported == 3

    def test_fingerprint_normalizes_precision_and_day(self):
        a = transaction_fingerprint(1, "AAPL", TransactionType.BUY, Decimal("1"), Decimal("100"), date(2024, 1, 15))
        b = transaction_fingerprint(1, "AAPL", "buy", Decimal("1.00000000"), Decimal("100.0000"), "2024-01-15T10:00:00")

        assert a == b == "1|AAPL|buy|1.00000000|100.0000|2024-01-15"


# =============================================================================
# FORMATS
# =============================================================================

class TestFormats:
    """Tests for detection and format hints."""

    def test_revolut_cash_top_up_skipped(self, db, service, account):
        result = service.import_csv(db, REVOLUT_CSV, account.id)

        assert result.format == CSVFormat.REVOLUT_STOCKS
        assert result.imported == 1
        assert result.errors == []
        assert ledger(db, account.id)[0].symbol == "NVDA"

    def test_trezor_receive(self, db, service, account):
        result = service.import_csv(db, TREZOR_CSV, account.id)

        txn = ledger(db, account.id)[0]
        assert result.format == CSVFormat.TREZOR
        assert txn.type == TransactionType.TRANSFER_IN
        assert Decimal(txn.price) == Decimal("45000")

    def test_unknown_format(self, db, service, account):
        result = service.import_csv(db, "foo,bar\n1,2\n3,4\n", account.id)

        assert result.format == CSVFormat.UNKNOWN
        assert result.imported == 0
        assert result.total == 2
        assert result.errors == ["Unknown CSV format. Headers: foo, bar"]

    def test_format_hint_overrides_detection(self, db, service, account):
        content = "symbol,type,Ticker,Price per share,date\nAAPL,buy,X,1,2024-01-15\n"

        result = service.import_csv(db, content, account.id, format_hint="generic")

        assert result.format == CSVFormat.GENERIC
        assert ledger(db, account.id)[0].symbol == "AAPL"

    def test_invalid_format_hint(self, db, service, account):
        with pytest.raises(ImportFormatError):
            service.import_csv(db, GENERIC_CSV, account.id, format_hint="excel")

    def test_empty_file(self, db, service, account):
        result = service.import_csv(db, b"", account.id)

        assert (result.imported, result.total, result.errors) == (0, 0, [])

    def test_unknown_account(self, db, service):
        with pytest.raises(AccountNotFoundError):
            service.import_csv(db, GENERIC_CSV, 999)

    def test_parse_errors_do_not_stop_import(self, db, service, account):
        content = (
            "symbol,type,quantity,price,date\n"
            "AAPL,buy,1,100,2024-01-15\n"
            "MSFT,buy,lots,100,2024-01-15\n"
            "NVDA,buy,1,100,2024-01-15\n"
        )

        result = service.import_csv(db, content, account.id)

        assert result.imported == 2
        assert result.errors == ["Row 2: Invalid quantity 'lots'"]

    def test_oversized_and_negative_rows_are_reported(self, db, service, account):
        content = (
            "symbol,type,quantity,price,date\n"
            "AAPL,buy,1,100,2024-01-15\n"
            "MSFT,buy,100000000000000000000000,1,2024-01-15\n"
            "NVDA,buy,-5,100,2024-01-15\n"
        )

        result = service.import_csv(db, content, account.id)

        assert result.imported == 1
        assert [t.symbol for t in ledger(db, account.id)] == ["AAPL"]
        assert result.errors == [
            "Row 2: quantity '100000000000000000000000' is out of range",
            "Row 3: quantity must be non-negative, got -5",
        ]

    def test_detect(self, service):
        detected = service.detect(TREZOR_CSV.encode())

        assert detected.format == CSVFormat.TREZOR
        assert "Amount unit" in detected.headers


# =============================================================================
# PER-ROW ISOLATION
# =============================================================================

class TestRowIsolation:
    """A database error on one row is reported and the rest still commit."""

    def test_failing_row_is_reported_and_others_kept(self, db, service, account):
        original_add = db.add

        def flaky_add(instance, *args, **kwargs):
            if isinstance(instance, Transaction) and instance.symbol == "MSFT":
                raise IntegrityError("INSERT", {}, Exception("constraint failed"))
            return original_add(instance, *args, **kwargs)

        with patch.object(db, "add", side_effect=flaky_add):
            result = service.import_csv(db, GENERIC_CSV, account.id)

        assert result.imported == 2
        assert len(result.errors) == 1
        assert result.errors[0].startswith("Row 2: ")
        assert [t.symbol for t in ledger(db, account.id)] == ["AAPL", "AAPL"]

    def test_failed_row_is_retried_on_next_import(self, db, service, account):
        original_add = db.add

        def flaky_add(instance, *args, **kwargs):
            if isinstance(instance, Transaction) and instance.symbol == "MSFT":
                raise IntegrityError("INSERT", {}, Exception("constraint failed"))
            return original_add(instance, *args, **kwargs)

        with patch.object(db, "add", side_effect=flaky_add):
            service.import_csv(db, GENERIC_CSV, account.id)

        result = service.import_csv(db, GENERIC_CSV, account.id)

        assert (result.imported, result.skipped) == (1, 2)


# =============================================================================
# FOLDER IMPORT
# =============================================================================

class TestImportFolder:
    """Tests for ImportService.import_folder."""

    def test_imports_each_format_into_its_account(self, db, service, tmp_path):
        (tmp_path / "revolut").mkdir()
        (tmp_path / "revolut" / "stocks.csv").write_text(REVOLUT_CSV)
        (tmp_path / "trezor.CSV").write_text(TREZOR_CSV)
        (tmp_path / "readme.txt").write_text("not a csv")

        outcomes = service.import_folder(db, tmp_path)

        assert len(outcomes) == 2
        names = {a.name for a in db.scalars(select(Account))}
        assert names == {"Stock Portfolio", "Crypto Portfolio"}
        assert all(o.result.imported == 1 for o in outcomes)

    def test_second_scan_reuses_accounts_and_skips(self, db, service, tmp_path):
        (tmp_path / "stocks.csv").write_text(REVOLUT_CSV)
        service.import_folder(db, tmp_path)

        outcomes = service.import_folder(db, tmp_path)

        assert outcomes[0].result.skipped == 1
        assert len(list(db.scalars(select(Account)))) == 1

    def test_generic_files_go_to_default_account(self, db, service, tmp_path):
        (tmp_path / "manual.csv").write_text(GENERIC_CSV)

        outcomes = service.import_folder(db, tmp_path)

        account = db.get(Account, outcomes[0].account_id)
        assert account.name == "Imported"
        assert account.currency == "EUR"

    def test_unknown_files_recorded(self, db, service, tmp_path):
        (tmp_path / "other.csv").write_text("foo,bar\n1,2\n")

        outcomes = service.import_folder(db, tmp_path)

        assert outcomes[0].format == CSVFormat.UNKNOWN
        assert outcomes[0].result is None

    def test_missing_directory(self, db, service, tmp_path):
        assert service.import_folder(db, tmp_path / "missing") == []
