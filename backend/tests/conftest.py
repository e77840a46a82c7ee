# backend/tests/conftest.py
"""
Shared fixtures.

Each test gets its own in-memory SQLite database (StaticPool, so the
TestClient threadpool sees the same connection) and a scripted
MockMarketDataProvider in place of Yahoo. The factories at module level are
imported directly by tests that need more than the default user.
"""

import os

# Must be set before anything imports app.config
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import threading
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Iterator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import configure_sqlite_engine, get_db
from app.dependencies import (
    get_daily_wealth_service,
    get_import_service,
    get_market_data_provider,
    get_price_oracle,
    get_valuation_service,
)
from app.main import app
from app.models import (
    Account,
    Base,
    CurrencyRate,
    PriceCache,
    Transaction,
    TransactionType,
    User,
)
from app.services.auth.jwt_handler import JWTHandler
from app.services.exceptions import TickerNotFoundError
from app.services.importer import ImportService
from app.services.market_data.base import (
    HistoricalPricesResult,
    MarketDataProvider,
    OHLCVData,
    Quote,
    SymbolMatch,
)
from app.services.market_data.price_oracle import PriceOracle
from app.services.valuation import DailyWealthService, ValuationService


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture(scope="function")
def db_engine():
    """Create an in-memory SQLite database engine for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    configure_sqlite_engine(engine)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db(db_engine) -> Iterator[Session]:
    """Create a database session for testing."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


# =============================================================================
# MOCK MARKET DATA PROVIDER
# =============================================================================

class MockMarketDataProvider(MarketDataProvider):
    """
    Mock implementation of MarketDataProvider for testing.

    Quotes and histories are configured per symbol; unknown symbols raise
    TickerNotFoundError. Safe to call from the oracle's worker threads.
    """

    def __init__(self):
        self._quotes: dict[str, Quote] = {}
        self._histories: dict[str, list[OHLCVData]] = {}
        self._errors: dict[str, Exception] = {}
        self._history_errors: dict[str, Exception] = {}
        self._matches: list[SymbolMatch] = []
        self._call_count: dict[str, int] = {"quote": 0, "history": 0, "search": 0}
        self._quote_calls: list[str] = []
        self._available = True
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return "mock"

    def add_quote(
            self,
            symbol: str,
            price: Decimal | str,
            currency: str = "USD",
            name: str | None = None,
            change_percent: Decimal | str = "0",
    ) -> None:
        """Configure a successful quote for a symbol."""
        symbol = symbol.upper()
        self._quotes[symbol] = Quote(
            symbol=symbol,
            price=Decimal(str(price)),
            currency=currency,
            name=name or symbol,
            change_percent=Decimal(str(change_percent)),
        )
        self._errors.pop(symbol, None)

    def add_error(self, symbol: str, error: Exception) -> None:
        """Configure a quote error for a symbol."""
        self._errors[symbol.upper()] = error

    def add_history(self, symbol: str, closes: dict[date, Decimal | str]) -> None:
        """Configure a daily close series for a symbol."""
        self._histories[symbol.upper()] = [
            make_bar(day, close) for day, close in sorted(closes.items())
        ]

    def add_history_error(self, symbol: str, error: Exception) -> None:
        self._history_errors[symbol.upper()] = error

    def set_matches(self, matches: list[SymbolMatch]) -> None:
        self._matches = matches

    def set_available(self, available: bool) -> None:
        """Set provider availability for health checks."""
        self._available = available

    @property
    def quote_call_count(self) -> int:
        return self._call_count["quote"]

    @property
    def history_call_count(self) -> int:
        return self._call_count["history"]

    @property
    def quoted_symbols(self) -> list[str]:
        return list(self._quote_calls)

    def get_quote(self, symbol: str) -> Quote:
        with self._lock:
            self._call_count["quote"] += 1
            self._quote_calls.append(symbol)

        key = symbol.upper()
        if key in self._errors:
            raise self._errors[key]
        if key in self._quotes:
            return self._quotes[key]
        raise TickerNotFoundError(ticker=symbol, provider=self.name)

    def get_history(
            self,
            symbol: str,
            start_date: date,
            interval: str = "1d",
            end_date: date | None = None,
    ) -> HistoricalPricesResult:
        with self._lock:
            self._call_count["history"] += 1

        key = symbol.upper()
        if key in self._history_errors:
            raise self._history_errors[key]
        if key not in self._histories:
            raise TickerNotFoundError(ticker=symbol, provider=self.name)

        bars = [
            bar for bar in self._histories[key]
            if bar.date >= start_date and (end_date is None or bar.date <= end_date)
        ]
        return HistoricalPricesResult(
            symbol=key,
            interval=interval,
            prices=bars,
            from_date=start_date,
            to_date=end_date,
        )

    def search(self, query: str) -> list[SymbolMatch]:
        with self._lock:
            self._call_count["search"] += 1
        return list(self._matches)

    def is_available(self) -> bool:
        return self._available


def make_bar(day: date, close: Decimal | str) -> OHLCVData:
    """Daily bar with open = high = low = close."""
    price = Decimal(str(close))
    return OHLCVData(
        timestamp=datetime(day.year, day.month, day.day),
        open=price,
        high=price,
        low=price,
        close=price,
        volume=1000,
    )


@pytest.fixture
def mock_provider() -> MockMarketDataProvider:
    """Create a fresh mock provider for each test."""
    return MockMarketDataProvider()


@pytest.fixture
def price_oracle(mock_provider) -> PriceOracle:
    return PriceOracle(mock_provider, ttl_seconds=300, max_workers=4, timeout_seconds=5)


@pytest.fixture
def valuation_service(price_oracle) -> ValuationService:
    return ValuationService(price_oracle)


# =============================================================================
# SAMPLE DATA FACTORIES
# =============================================================================

def create_user(db: Session, email: str = "test@example.com", base_currency: str = "EUR") -> User:
    user = User(email=email, base_currency=base_currency)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def create_account(
        db: Session,
        name: str = "Brokerage",
        currency: str = "EUR",
        type: str = "stock",
) -> Account:
    account = Account(name=name, currency=currency, type=type)
    db.add(account)
    db.commit()
    db.refresh(account)
    return account


def create_transaction(
        db: Session,
        account: Account,
        symbol: str,
        type: TransactionType = TransactionType.BUY,
        quantity: Decimal | str = "1",
        price: Decimal | str = "0",
        day: date = date(2024, 1, 15),
        fee: Decimal | str = "0",
        currency: str = "USD",
        notes: str = "",
) -> Transaction:
    txn = Transaction(
        account_id=account.id,
        symbol=symbol,
        type=type,
        quantity=Decimal(str(quantity)),
        price=Decimal(str(price)),
        fee=Decimal(str(fee)),
        currency=currency,
        date=day,
        notes=notes,
    )
    db.add(txn)
    db.commit()
    db.refresh(txn)
    return txn


def create_rate(db: Session, from_currency: str, to_currency: str, rate: Decimal | str) -> CurrencyRate:
    record = CurrencyRate(from_currency=from_currency, to_currency=to_currency, rate=Decimal(str(rate)))
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def cache_price(
        db: Session,
        symbol: str,
        price: Decimal | str,
        currency: str = "USD",
        age: timedelta = timedelta(0),
) -> PriceCache:
    """Insert a price_cache row that was written `age` ago."""
    entry = PriceCache(
        symbol=symbol,
        price=Decimal(str(price)),
        currency=currency,
        name=symbol,
        change_percent=Decimal("0"),
        updated_at=datetime.now(timezone.utc) - age,
    )
    db.add(entry)
    db.commit()
    return entry


# =============================================================================
# API CLIENT
# =============================================================================

@pytest.fixture
def user(db) -> User:
    return create_user(db)


@pytest.fixture
def auth_headers(user) -> dict[str, str]:
    token = JWTHandler.create_access_token(user.id, user.email)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(db, mock_provider, price_oracle) -> Iterator[TestClient]:
    """
    Test client wired to the test session and the mock provider.

    Service singletons are replaced with instances built around the mock
    provider so no test ever reaches Yahoo Finance.
    """
    valuation = ValuationService(price_oracle)

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_market_data_provider] = lambda: mock_provider
    app.dependency_overrides[get_price_oracle] = lambda: price_oracle
    app.dependency_overrides[get_valuation_service] = lambda: valuation
    app.dependency_overrides[get_daily_wealth_service] = lambda: DailyWealthService(valuation)
    app.dependency_overrides[get_import_service] = lambda: ImportService()

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()
