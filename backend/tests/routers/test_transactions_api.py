# backend/tests/routers/test_transactions_api.py
"""
API tests for CSV import, format detection and export.
"""

import csv
import io

from sqlalchemy import func, select

from app.models import Transaction
from tests.conftest import create_account, create_transaction

GENERIC_CSV = (
    "symbol,type,quantity,price,fee,currency,date,notes\n"
    "AAPL,buy,10,150,1,USD,2024-01-15,first\n"
    "MSFT,buy,2,400,0,USD,2024-01-16,\n"
)

REVOLUT_CSV = (
    "Date,Ticker,Type,Quantity,Price per share,Total Amount,Currency,FX Rate\n"
    "2024-01-11T15:31:00.000Z,NVDA,BUY - MARKET,2,USD 500.00,USD 1000.00,USD,1.09\n"
)


def upload(client, headers, content: str, account_id: int, **form):
    return client.post(
        "/transactions/import/csv",
        files={"file": ("export.csv", content.encode("utf-8"), "text/csv")},
        data={"account_id": str(account_id), **form},
        headers=headers,
    )


def ledger_size(db) -> int:
    return db.scalar(select(func.count()).select_from(Transaction))


# =============================================================================
# IMPORT
# =============================================================================

class TestImportCsv:
    """Tests for POST /transactions/import/csv."""

    def test_import_generic(self, client, auth_headers, db):
        account = create_account(db, currency="USD")

        response = upload(client, auth_headers, GENERIC_CSV, account.id)

        assert response.status_code == 200
        assert response.json() == {
            "imported": 2,
            "skipped": 0,
            "total": 2,
            "errors": [],
            "format": "generic",
        }
        assert ledger_size(db) == 2

    def test_reimport_is_skipped(self, client, auth_headers, db):
        account = create_account(db, currency="USD")
        upload(client, auth_headers, GENERIC_CSV, account.id)

        data = upload(client, auth_headers, GENERIC_CSV, account.id).json()

        assert (data["imported"], data["skipped"]) == (0, 2)
        assert ledger_size(db) == 2

    def test_detects_revolut(self, client, auth_headers, db):
        account = create_account(db, currency="USD")

        data = upload(client, auth_headers, REVOLUT_CSV, account.id).json()

        assert data["format"] == "revolut-stocks"
        assert data["imported"] == 1

    def test_explicit_format(self, client, auth_headers, db):
        account = create_account(db, currency="USD")

        data = upload(client, auth_headers, GENERIC_CSV, account.id, format="generic").json()

        assert data["imported"] == 2

    def test_unknown_headers(self, client, auth_headers, db):
        account = create_account(db)

        data = upload(client, auth_headers, "foo,bar\n1,2\n", account.id).json()

        assert data["format"] == "unknown"
        assert data["imported"] == 0
        assert data["errors"] == ["Unknown CSV format. Headers: foo, bar"]

    def test_row_errors_reported(self, client, auth_headers, db):
        account = create_account(db, currency="USD")
        content = GENERIC_CSV + "TSLA,buy,abc,200,0,USD,2024-01-17,\n"

        data = upload(client, auth_headers, content, account.id).json()

        assert data["imported"] == 2
        assert len(data["errors"]) == 1
        assert data["errors"][0].startswith("Row 3:")

    def test_missing_file(self, client, auth_headers, db):
        account = create_account(db)

        response = client.post(
            "/transactions/import/csv",
            data={"account_id": str(account.id)},
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.json()["message"] == "No file uploaded"

    def test_invalid_format(self, client, auth_headers, db):
        account = create_account(db)

        response = upload(client, auth_headers, GENERIC_CSV, account.id, format="excel")

        assert response.status_code == 400
        assert "Invalid format 'excel'" in response.json()["message"]

    def test_unknown_account(self, client, auth_headers):
        response = upload(client, auth_headers, GENERIC_CSV, 999)

        assert response.status_code == 404
        assert response.json()["error"] == "AccountNotFoundError"
        assert response.json()["details"] == {"account_id": 999}

    def test_requires_authentication(self, client, db):
        account = create_account(db)

        response = upload(client, {}, GENERIC_CSV, account.id)

        assert response.status_code == 401
        assert ledger_size(db) == 0


class TestDetectFormat:
    """Tests for POST /transactions/import/detect."""

    def test_detect(self, client, auth_headers):
        response = client.post(
            "/transactions/import/detect",
            files={"file": ("export.csv", REVOLUT_CSV.encode("utf-8"), "text/csv")},
            headers=auth_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["format"] == "revolut-stocks"
        assert data["headers"][:2] == ["Date", "Ticker"]

    def test_detect_does_not_import(self, client, auth_headers, db):
        client.post(
            "/transactions/import/detect",
            files={"file": ("export.csv", GENERIC_CSV.encode("utf-8"), "text/csv")},
            headers=auth_headers,
        )

        assert ledger_size(db) == 0


# =============================================================================
# EXPORT
# =============================================================================

class TestExportCsv:
    """Tests for GET /transactions/export/csv."""

    def test_download(self, client, auth_headers, db):
        account = create_account(db, "Stocks")
        create_transaction(db, account, "AAPL", quantity="10", price="150")

        response = client.get("/transactions/export/csv", headers=auth_headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert response.headers["content-disposition"] == "attachment; filename=transactions.csv"
        rows = list(csv.DictReader(io.StringIO(response.text)))
        assert rows[0]["symbol"] == "AAPL"
        assert rows[0]["account_name"] == "Stocks"

    def test_unknown_account(self, client, auth_headers):
        response = client.get("/transactions/export/csv?account_id=999", headers=auth_headers)

        assert response.status_code == 404

    def test_round_trip_through_api(self, client, auth_headers, db):
        account = create_account(db, currency="USD")
        upload(client, auth_headers, GENERIC_CSV, account.id)
        exported = client.get(f"/transactions/export/csv?account_id={account.id}", headers=auth_headers).text

        data = upload(client, auth_headers, exported, account.id).json()

        assert data["format"] == "generic"
        assert (data["imported"], data["skipped"]) == (0, 2)
