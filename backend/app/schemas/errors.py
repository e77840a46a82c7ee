# backend/app/schemas/errors.py
"""
Error envelopes returned by the exception handlers in main.py.

Every non-2xx JSON body has the same three keys, so a client can branch
on `error` without knowing which layer produced the failure:

    {"error": "AccountNotFoundError", "message": "...", "details": {"account_id": 7}}
"""

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """Envelope for domain, HTTP and authentication failures."""

    error: str = Field(
        ...,
        description="Exception or status name, e.g. 'PriceUnavailableError' or 'BadRequestError'"
    )
    message: str = Field(..., description="Readable explanation")
    details: dict | None = Field(
        default=None,
        description="Structured context such as the symbol or account id"
    )


class ValidationErrorDetail(BaseModel):
    """Envelope for 422 responses: one entry per offending field."""

    error: str = "ValidationError"
    message: str = "Request validation failed"
    details: list[dict] = Field(
        ...,
        description='Items shaped {"field": "query.amount", "message": ..., "type": ...}'
    )
