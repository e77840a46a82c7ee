# backend/app/schemas/transactions.py
"""
Pydantic schemas for the /transactions import and export endpoints.

Import requests are multipart forms, so only responses live here.
"""

from pydantic import BaseModel, ConfigDict, Field


class ImportResultResponse(BaseModel):
    """
    Outcome of a CSV import.

    A row error never aborts the import: check `errors` even when
    `imported` is non-zero.
    """

    model_config = ConfigDict(from_attributes=True)

    imported: int = Field(..., description="Rows inserted into the ledger")
    skipped: int = Field(..., description="Rows already present (duplicates)")
    total: int = Field(..., description="Transactions recognized in the file")
    errors: list[str] = Field(
        default_factory=list,
        description='Per-row problems, formatted "Row {n}: message"'
    )
    format: str = Field(..., description="Format the file was parsed as")


class DetectResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    format: str
    headers: list[str]
