# backend/app/models.py
import enum
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import String, Date, DateTime, ForeignKey, Enum, Numeric, UniqueConstraint, JSON, Index, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Enums help enforce data integrity at the database level
class TransactionType(str, enum.Enum):
    # Acquiring
    BUY = "buy"
    TRANSFER_IN = "transfer_in"

    # Disposing
    SELL = "sell"
    TRANSFER_OUT = "transfer_out"

    # Cash events: no effect on quantity or cost basis
    DIVIDEND = "dividend"
    INTEREST = "interest"
    FEE = "fee"


ACQUIRING_TYPES = frozenset({TransactionType.BUY, TransactionType.TRANSFER_IN})
DISPOSING_TYPES = frozenset({TransactionType.SELL, TransactionType.TRANSFER_OUT})


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    email: Mapped[str] = mapped_column(String, unique=True, index=True)
    # All aggregate totals are converted into this currency
    base_currency: Mapped[str] = mapped_column(String(3), default="EUR")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class Account(Base):
    """
    A brokerage, wallet or bank account.

    Owns a currency denomination (used for cost basis conversion) and a
    set of ledger transactions. Deleting an account purges its ledger.
    """
    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String)
    type: Mapped[str] = mapped_column(String, default="general")  # e.g. "stock", "crypto", "commodity"
    currency: Mapped[str] = mapped_column(String(3), default="EUR")
    description: Mapped[str | None] = mapped_column(String, nullable=True)
    icon: Mapped[str | None] = mapped_column(String, nullable=True)
    color: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    transactions: Mapped[list["Transaction"]] = relationship(
        back_populates="account",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Transaction(Base):
    """
    Immutable ledger entry; the single source of truth for holdings.

    Replay order is (date, id) ascending. Dates are calendar days, not
    timestamps.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        # "All transactions for account X up to date Y" (replay, fingerprints)
        Index('ix_transaction_account_date', 'account_id', 'date'),
        Index('ix_transaction_symbol', 'symbol'),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id", ondelete="CASCADE"), index=True)
    symbol: Mapped[str] = mapped_column(String)  # Uppercase market symbol, e.g. "AAPL", "BTC-USD"
    type: Mapped[TransactionType] = mapped_column(
        Enum(
            TransactionType,
            name="transaction_type",
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        )
    )

    # Numeric(18, 8) supports crypto precision (1 satoshi)
    quantity: Mapped[Decimal] = mapped_column(Numeric(18, 8), default=Decimal(0))
    price: Mapped[Decimal] = mapped_column(Numeric(18, 8), default=Decimal(0))  # Unit price in `currency`
    fee: Mapped[Decimal] = mapped_column(Numeric(18, 8), default=Decimal(0))
    currency: Mapped[str] = mapped_column(String(3), default="EUR")
    date: Mapped[date] = mapped_column(Date, index=True)
    notes: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    account: Mapped["Account"] = relationship(back_populates="transactions")


class PriceCache(Base):
    """
    Last known quote per symbol.

    Entries older than the freshness window are stale but still served as a
    last-resort fallback when the provider fails.
    """
    __tablename__ = "price_cache"

    symbol: Mapped[str] = mapped_column(String, primary_key=True)
    price: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    currency: Mapped[str] = mapped_column(String(3), default="USD")
    name: Mapped[str | None] = mapped_column(String, nullable=True)
    change_percent: Mapped[Decimal] = mapped_column(Numeric(18, 8), default=Decimal(0))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class CurrencyRate(Base):
    """
    Directed exchange-rate edge: 1 unit of from_currency = rate units of to_currency.

    No inverse is derived automatically.
    """
    __tablename__ = "currency_rates"
    __table_args__ = (
        UniqueConstraint('from_currency', 'to_currency', name='uq_currency_pair'),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    from_currency: Mapped[str] = mapped_column(String(3))
    to_currency: Mapped[str] = mapped_column(String(3))
    rate: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class DailyWealth(Base):
    """
    One valuation snapshot per calendar day.

    Recomputing "today" overwrites the row; past dates are never recomputed
    automatically.
    """
    __tablename__ = "daily_wealth"

    date: Mapped[date] = mapped_column(Date, primary_key=True)
    total_wealth: Mapped[Decimal] = mapped_column(Numeric(18, 2))
    total_cost: Mapped[Decimal] = mapped_column(Numeric(18, 2))
    base_currency: Mapped[str] = mapped_column(String(3))
    # {"accounts": [{account_id, name, market_value, cost_basis}], "holdings_count": n}
    details: Mapped[dict] = mapped_column(JSON, default=dict)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
