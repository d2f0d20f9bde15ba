"""
Shared fixtures.

Every test gets a fresh in-memory SQLite database. The exchange rate provider
is always faked; no test talks to the network.
"""
import threading
import time
from datetime import date
from decimal import Decimal
from typing import Dict, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ledger.db.core import (
    Base, UserDB, AccountDB, CategoryDB, TransactionDB, AccountType, Currency, TransactionType,
)
from ledger.months import month_start
from ledger.services.exchange_rates import ConversionService, RateSnapshot


DEFAULT_RATES = {
    Currency.USD: {Currency.EUR: Decimal("0.92"), Currency.ILS: Decimal("3.70")},
    Currency.EUR: {Currency.USD: Decimal("1.10"), Currency.ILS: Decimal("4.02")},
    Currency.ILS: {Currency.USD: Decimal("0.27"), Currency.EUR: Decimal("0.25")},
}


class FakeRateProvider:
    """Stands in for the HTTP provider and records every fetch"""

    def __init__(self, rates: Optional[Dict] = None, error: Optional[Exception] = None, delay: float = 0):
        self.rates = rates if rates is not None else DEFAULT_RATES
        self.error = error
        self.delay = delay
        self.calls = []
        self._lock = threading.Lock()

    def fetch_latest(self, base: Currency) -> RateSnapshot:
        with self._lock:
            self.calls.append(base)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return RateSnapshot(base=base, rate_date=date.today(), rates=dict(self.rates.get(base, {})))


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def provider():
    return FakeRateProvider()


@pytest.fixture
def conversion(session_factory, provider):
    return ConversionService(session_factory=session_factory, provider=provider)


@pytest.fixture
def owner(db):
    user = UserDB(email="owner@example.com", display_name="Dana", preferred_currency=Currency.USD)
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def partner(db, owner):
    user = UserDB(email="Partner@Example.com", display_name="Noa", preferred_currency=Currency.ILS)
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def account(db, owner):
    account = AccountDB(user_id=owner.id, name="Main", account_type=AccountType.SELF, preferred_currency=Currency.USD)
    db.add(account)
    db.commit()
    return account


@pytest.fixture
def partner_account(db, partner):
    account = AccountDB(user_id=partner.id, name="Partner", account_type=AccountType.PARTNER,
                        preferred_currency=Currency.USD)
    db.add(account)
    db.commit()
    return account


@pytest.fixture
def categories(db):
    salary = CategoryDB(name="Salary", transaction_type=TransactionType.INCOME)
    groceries = CategoryDB(name="Groceries", transaction_type=TransactionType.EXPENSE)
    rent = CategoryDB(name="Rent", transaction_type=TransactionType.EXPENSE)
    db.add_all([salary, groceries, rent])
    db.commit()
    return {"salary": salary, "groceries": groceries, "rent": rent}


@pytest.fixture
def make_transaction(db):
    def _make(account, category, amount, transaction_date, currency=Currency.USD, **kwargs):
        transaction = TransactionDB(
            account_id=account.id,
            category_id=category.id,
            transaction_type=category.transaction_type,
            amount=Decimal(amount),
            currency=currency,
            transaction_date=transaction_date,
            month=month_start(transaction_date),
            **kwargs,
        )
        db.add(transaction)
        db.commit()
        return transaction
    return _make
