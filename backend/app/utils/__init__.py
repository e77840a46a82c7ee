# backend/app/utils/__init__.py
"""Logging setup, request context and period helpers."""

from app.utils.context import clear_correlation_id, get_correlation_id, set_correlation_id
from app.utils.logging import setup_logging

__all__ = ["clear_correlation_id", "get_correlation_id", "set_correlation_id", "setup_logging"]
