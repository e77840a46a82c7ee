# backend/app/routers/transactions.py
"""
Transaction import and export endpoints.

- POST /transactions/import/csv     - Import a broker/wallet export into an account
- POST /transactions/import/detect  - Report the detected format without importing
- GET  /transactions/export/csv     - Download the ledger as CSV

Imports never fail on a single bad row: duplicates are counted as skipped
and malformed rows are reported in `errors`. All endpoints require
authentication.
"""

import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_current_user, get_import_service
from app.middleware.rate_limit import limiter, RATE_LIMIT_DEFAULT, RATE_LIMIT_UPLOAD
from app.models import User
from app.schemas.transactions import DetectResponse, ImportResultResponse
from app.services.constants import MAX_UPLOAD_FILE_SIZE_BYTES
from app.services.exceptions import ImportFormatError
from app.services.importer import CSVFormat, ImportService, export_csv

logger = logging.getLogger(__name__)

# =============================================================================
# ROUTER SETUP
# =============================================================================

router = APIRouter(
    prefix="/transactions",
    tags=["Transactions"],
)

# Formats a caller may force; "unknown" is a detection outcome only
IMPORTABLE_FORMATS = [f.value for f in CSVFormat if f != CSVFormat.UNKNOWN]


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def _read_upload(file: UploadFile | None) -> bytes:
    """Read an uploaded file, enforcing presence and the size limit."""
    if file is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file uploaded")

    content = file.file.read()
    if len(content) > MAX_UPLOAD_FILE_SIZE_BYTES:
        max_mb = MAX_UPLOAD_FILE_SIZE_BYTES / (1024 * 1024)
        actual_mb = len(content) / (1024 * 1024)
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File too large: {actual_mb:.1f}MB exceeds maximum of {max_mb:.0f}MB",
        )
    return content


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post(
    "/import/csv",
    response_model=ImportResultResponse,
    summary="Import transactions from CSV",
    responses={
        400: {"description": "Missing file, invalid format or unreadable CSV"},
        401: {"description": "Not authenticated"},
        404: {"description": "Account not found"},
    },
)
@limiter.limit(RATE_LIMIT_UPLOAD)
def import_csv(
        request: Request,
        file: UploadFile | None = File(default=None, description="CSV export to import"),
        account_id: int = Form(..., gt=0, description="Target account"),
        format: str | None = Form(
            default=None,
            description=f"Skip detection and parse as: {', '.join(IMPORTABLE_FORMATS)}",
        ),
        db: Session = Depends(get_db),
        service: ImportService = Depends(get_import_service),
        current_user: User = Depends(get_current_user),
) -> ImportResultResponse:
    """
    Import a CSV export into an account.

    **Detected formats:** Revolut stocks, Revolut commodities, Trezor Suite
    and the generic `symbol,type,quantity,price,fee,currency,date,notes`
    layout (also what the export endpoint writes).

    **Deduplication:** a row whose account, symbol, type, quantity, price
    and day already exist is counted in `skipped`. Importing the same file
    twice imports nothing the second time.

    **Errors:** malformed rows are listed in `errors` and do not stop the
    import. An unrecognized header row returns `format: "unknown"` with a
    single error listing the headers.
    """
    if format and format not in IMPORTABLE_FORMATS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid format '{format}'. Expected one of: {', '.join(IMPORTABLE_FORMATS)}",
        )

    content = _read_upload(file)
    logger.info(f"Import request: {file.filename} -> account {account_id} (format={format or 'auto'})")

    try:
        result = service.import_csv(db, content, account_id, format or None)
    except ImportFormatError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Failed to import CSV: {e}",
        )

    return ImportResultResponse(
        imported=result.imported,
        skipped=result.skipped,
        total=result.total,
        errors=result.errors,
        format=result.format.value,
    )


@router.post(
    "/import/detect",
    response_model=DetectResponse,
    summary="Detect CSV format",
)
@limiter.limit(RATE_LIMIT_UPLOAD)
def detect_format(
        request: Request,
        file: UploadFile | None = File(default=None),
        service: ImportService = Depends(get_import_service),
        current_user: User = Depends(get_current_user),
) -> DetectResponse:
    """Return the detected format and the header row, without importing."""
    content = _read_upload(file)
    try:
        detected = service.detect(content)
    except ImportFormatError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Failed to read CSV: {e}",
        )
    return DetectResponse(format=detected.format.value, headers=detected.headers)


@router.get(
    "/export/csv",
    summary="Export transactions as CSV",
    response_class=Response,
    responses={200: {"content": {"text/csv": {}}}},
)
@limiter.limit(RATE_LIMIT_DEFAULT)
def export_transactions(
        request: Request,
        account_id: int | None = Query(default=None, gt=0),
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
) -> Response:
    """
    Download the ledger (one account or all), newest first.

    Columns: id, account_name, symbol, type, quantity, price, fee,
    currency, date, notes.
    """
    body = export_csv(db, account_id)
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=transactions.csv"},
    )
