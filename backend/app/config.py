# backend/app/config.py
"""
Runtime settings for the portfolio API (pydantic-settings).

Values come from the process environment, then from a `.env` file at the
repository root. Names are case-insensitive and unknown keys are ignored.

Per-environment defaults:
- test: in-memory SQLite, fixed JWT secret
- development: ./portfolio.db, insecure JWT secret with a warning
- production: DATABASE_URL and JWT_SECRET_KEY must be provided

A bad value fails at import time with a ValueError, before the app
starts serving.

Usage:
    from app.config import settings

    oracle = PriceOracle(provider, ttl_seconds=settings.price_cache_ttl_seconds)
"""
import warnings
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_FILE = Path(__file__).resolve().parents[2] / ".env"

DEFAULT_DEV_DATABASE_URL = "sqlite:///./portfolio.db"
TEST_DATABASE_URL = "sqlite:///:memory:"
TEST_JWT_SECRET = "test-secret-key-for-testing-only-32chars"
DEV_JWT_SECRET = "development-secret-key-change-me-32ch"


class Settings(BaseSettings):
    """Environment-driven configuration; see the module docstring for defaults."""

    environment: Literal["development", "test", "production"] = "development"
    app_name: str = "Portfolio Tracker"
    debug: bool = False

    log_level: str = Field(default="INFO", description="DEBUG, INFO, WARNING, ERROR or CRITICAL")
    log_format: Literal["text", "json"] = "text"

    # =========================================================================
    # DATABASE
    # =========================================================================
    database_url: str | None = Field(
        default=None,
        description="SQLAlchemy URL; SQLite file in development, required in production"
    )
    # Pool settings apply to server databases only (SQLite uses StaticPool/defaults)
    db_pool_size: int = Field(default=5, ge=1, le=20)
    db_pool_max_overflow: int = Field(default=10, ge=0, le=30)
    db_pool_recycle: int = Field(default=3600, ge=300, description="Seconds before a connection is recycled")
    db_pool_pre_ping: bool = True

    # =========================================================================
    # AUTH
    # =========================================================================
    jwt_secret_key: str | None = Field(default=None, min_length=32)
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = Field(default=60, ge=1, le=1440)

    # =========================================================================
    # HTTP
    # =========================================================================
    cors_origins: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    trust_proxy_headers: bool = Field(
        default=False,
        description="Honour X-Forwarded-For from any peer (only behind a load balancer)"
    )
    trusted_proxy_ips: list[str] = Field(
        default=["127.0.0.1"],
        description="Peers whose X-Forwarded-For is honoured"
    )
    rate_limit_enabled: bool = True

    # =========================================================================
    # VALUATION / MARKET DATA
    # =========================================================================
    default_base_currency: str = Field(
        default="EUR",
        min_length=3,
        max_length=3,
        description="Base currency when no user row exists"
    )
    price_cache_ttl_seconds: int = Field(default=300, ge=0, description="Quote freshness window")
    market_data_timeout_seconds: int = Field(default=10, ge=1, le=120, description="Per-symbol fetch deadline")
    market_data_max_workers: int = Field(default=4, ge=1, le=32, description="Parallel provider calls")

    # =========================================================================
    # IMPORT
    # =========================================================================
    auto_import_dir: str | None = Field(
        default=None,
        description="Folder scanned recursively by scripts/auto_import.py"
    )

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE) if _ENV_FILE.exists() else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("default_base_currency")
    @classmethod
    def uppercase_currency(cls, v: str) -> str:
        return v.upper()

    @model_validator(mode="after")
    def apply_environment_defaults(self) -> "Settings":
        if self.environment == "production":
            missing = [
                name for name, value in (
                    ("DATABASE_URL", self.database_url),
                    ("JWT_SECRET_KEY", self.jwt_secret_key),
                )
                if value is None
            ]
            if missing:
                raise ValueError(f"{' and '.join(missing)} must be set when ENVIRONMENT=production")
            return self

        if self.environment == "test":
            database_url, secret = TEST_DATABASE_URL, TEST_JWT_SECRET
        else:
            database_url, secret = DEFAULT_DEV_DATABASE_URL, DEV_JWT_SECRET
            if self.jwt_secret_key is None:
                warnings.warn(
                    "JWT_SECRET_KEY is not set; using an insecure development secret.",
                    UserWarning,
                    stacklevel=2,
                )

        # Assigned via object.__setattr__ to skip re-validation inside the validator
        if self.database_url is None:
            object.__setattr__(self, "database_url", database_url)
        if self.jwt_secret_key is None:
            object.__setattr__(self, "jwt_secret_key", secret)
        return self

    @property
    def is_sqlite(self) -> bool:
        return (self.database_url or "").lower().startswith("sqlite")

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_test(self) -> bool:
        return self.environment == "test"


settings = Settings()
