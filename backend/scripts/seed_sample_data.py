#!/usr/bin/env python3
# backend/scripts/seed_sample_data.py
"""
Seed a demo user, accounts, a few transactions and exchange rates, then
print a bearer token for the demo user.

    python backend/scripts/seed_sample_data.py
"""
import logging
import sys
from datetime import date
from decimal import Decimal
from pathlib import Path

# Setup path to import app modules
backend_dir = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(backend_dir))

from sqlalchemy import select

from app.database import SessionLocal, engine
from app.models import Account, Base, Transaction, TransactionType, User
from app.services.auth import JWTHandler
from app.services.currency_converter import CurrencyRateService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEMO_EMAIL = "demo@example.com"

ACCOUNTS = [
    {"name": "Stock Portfolio", "type": "stock", "currency": "USD", "icon": "chart-line", "color": "#10b981"},
    {"name": "Crypto Portfolio", "type": "crypto", "currency": "USD", "icon": "bitcoin", "color": "#f59e0b"},
]

TRANSACTIONS = {
    "Stock Portfolio": [
        ("AAPL", TransactionType.BUY, "10", "150.00", date(2024, 1, 15)),
        ("MSFT", TransactionType.BUY, "5", "370.00", date(2024, 2, 1)),
        ("AAPL", TransactionType.SELL, "2", "185.00", date(2024, 6, 3)),
    ],
    "Crypto Portfolio": [
        ("BTC-USD", TransactionType.TRANSFER_IN, "0.25", "42000.00", date(2024, 1, 20)),
    ],
}

RATES = [
    ("USD", "EUR", Decimal("0.92")),
    ("EUR", "USD", Decimal("1.087")),
]


def seed() -> None:
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        logger.info("Starting database seeding...")

        # 1. Demo user (its base currency drives every dashboard total)
        user = db.scalars(select(User).where(User.email == DEMO_EMAIL)).first()
        if user is None:
            user = User(email=DEMO_EMAIL, base_currency="EUR")
            db.add(user)
            db.commit()
            db.refresh(user)
            logger.info(f"Created user: {user.email}")
        else:
            logger.info(f"User exists: {user.email}")

        # 2. Accounts and their ledgers
        for account_data in ACCOUNTS:
            account = db.scalars(select(Account).where(Account.name == account_data["name"])).first()
            if account is not None:
                logger.info(f"Account exists: {account.name}")
                continue

            account = Account(description="Sample data", **account_data)
            db.add(account)
            db.flush()
            for symbol, txn_type, quantity, price, day in TRANSACTIONS[account_data["name"]]:
                db.add(Transaction(
                    account_id=account.id,
                    symbol=symbol,
                    type=txn_type,
                    quantity=Decimal(quantity),
                    price=Decimal(price),
                    currency=account_data["currency"],
                    date=day,
                    notes="Sample data",
                ))
            logger.info(f"Created account: {account.name}")
        db.commit()

        # 3. Directed exchange rates
        rate_service = CurrencyRateService()
        for source, target, rate in RATES:
            rate_service.upsert_rate(db, source, target, rate)
            logger.info(f"Rate {source}→{target} = {rate}")

        token = JWTHandler.create_access_token(user_id=user.id, email=user.email)
        print(f"\nAccess token for {user.email} (expires {JWTHandler.get_token_expiry(token)}):")
        print(token)

    except Exception as e:
        logger.error(f"Seeding failed: {e}")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed()
