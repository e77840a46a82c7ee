# backend/app/services/auth/__init__.py
"""Stateless bearer tokens; expiry is the only revocation."""

from app.services.auth.jwt_handler import JWTHandler

__all__ = ["JWTHandler"]
