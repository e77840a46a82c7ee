# backend/app/schemas/validators.py
"""
Field validators shared by request schemas and path parameters.

Both normalize (strip, upper-case) before checking, and raise ValueError
so pydantic reports a 422 and routers can turn it into a 400.
"""

import re

# ^GSPC, BRK.B, BTC-USD, GC=F, SAP.DE
SYMBOL_PATTERN = re.compile(r"^\^?[A-Z0-9][A-Z0-9.\-=]{0,19}$")
SYMBOL_MAX_LENGTH = 20

ISO_CURRENCY_PATTERN = re.compile(r"^[A-Z]{3}$")


def _normalize(value: str | None) -> str:
    return (value or "").strip().upper()


def validate_symbol(value: str) -> str:
    symbol = _normalize(value)
    if not symbol:
        raise ValueError("Symbol cannot be empty")
    if len(symbol) > SYMBOL_MAX_LENGTH:
        raise ValueError(f"Symbol too long: max {SYMBOL_MAX_LENGTH} characters")
    if SYMBOL_PATTERN.fullmatch(symbol) is None:
        raise ValueError(f"Invalid symbol format: '{symbol}'")
    return symbol


def validate_currency(value: str) -> str:
    """'usd ' -> 'USD'. Only the shape is checked, not ISO 4217 membership."""
    code = _normalize(value)
    if not code:
        raise ValueError("Currency cannot be empty")
    if ISO_CURRENCY_PATTERN.fullmatch(code) is None:
        raise ValueError(f"Invalid currency format: '{code}'. Currency must be a 3-letter ISO code (e.g., USD, EUR)")
    return code
