"""
Exchange Rate Service

Serves currency conversion rates backed by the exchange_rates table and a
Frankfurter-compatible HTTP provider.

Lookup order for a single rate:
1. Same currency -> 1
2. Stored rate for (from, to, date)
3. Fresh provider snapshot for base=from, persisted for every target
4. Most recent stored rate for (from, to) on any date (stale fallback)

Concurrent lookups that need a snapshot for the same base currency share one
outstanding provider call.
"""
import threading
from concurrent.futures import Future
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Dict, Optional

import requests
from sqlalchemy import desc, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ledger.db.core import Currency, ExchangeRateDB, session_local
from ledger.errors import ExternalServiceError
from ledger.logging_config import get_logger
from ledger.money import round_money
from ledger.settings import RATE_PROVIDER_URL, RATE_PROVIDER_TIMEOUT

logger = get_logger(__name__)

PROVIDER_NAME = "Exchange rate provider"

RateCache = Dict[str, Decimal]


def rate_key(from_currency: Currency, to_currency: Currency) -> str:
    return f"{from_currency.value}:{to_currency.value}"


@dataclass
class RateSnapshot:
    """All rates from one base currency, as returned by one provider call"""
    base: Currency
    rate_date: date
    rates: Dict[Currency, Decimal] = field(default_factory=dict)


@dataclass
class RefreshResult:
    success: bool
    updated_at: datetime
    error: Optional[str] = None


class RateProvider:
    """HTTP client for GET {base_url}/latest?base=X&symbols=Y,Z"""

    def __init__(self, base_url: str = RATE_PROVIDER_URL, timeout: float = RATE_PROVIDER_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def fetch_latest(self, base: Currency) -> RateSnapshot:
        symbols = ",".join(c.value for c in Currency if c != base)
        url = f"{self.base_url}/latest"

        try:
            response = requests.get(
                url,
                params={"base": base.value, "symbols": symbols},
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json(parse_float=Decimal)
        except requests.RequestException as e:
            raise ExternalServiceError(PROVIDER_NAME, str(e)) from e
        except ValueError as e:
            raise ExternalServiceError(PROVIDER_NAME, f"Invalid response body: {e}") from e

        return self._parse_snapshot(base, payload)

    @staticmethod
    def _parse_snapshot(base: Currency, payload: dict) -> RateSnapshot:
        raw_rates = payload.get("rates")
        if not isinstance(raw_rates, dict):
            raise ExternalServiceError(PROVIDER_NAME, "Response has no rates")

        try:
            snapshot_date = date.fromisoformat(payload["date"])
        except (KeyError, TypeError, ValueError):
            snapshot_date = date.today()

        rates: Dict[Currency, Decimal] = {}
        for code, value in raw_rates.items():
            try:
                target = Currency(code)
            except ValueError:
                # Provider may know currencies we don't
                continue
            rate = Decimal(str(value))
            if rate > 0:
                rates[target] = rate

        return RateSnapshot(base=base, rate_date=snapshot_date, rates=rates)


class ConversionService:
    """
    Converts amounts between supported currencies.

    Each instance owns its in-flight snapshot map, so tests can build isolated
    services around a fake provider and a throwaway database.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = session_local,
        provider: Optional[RateProvider] = None,
    ):
        self.session_factory = session_factory
        self.provider = provider or RateProvider()
        self._in_flight: Dict[Currency, Future] = {}
        self._lock = threading.Lock()

    # ===== SINGLE RATES =====

    def get_rate(self, from_currency: Currency, to_currency: Currency, rate_date: Optional[date] = None) -> Decimal:
        if from_currency == to_currency:
            return Decimal("1")

        target_date = rate_date or date.today()

        cached = self._stored_rate(from_currency, to_currency, target_date)
        if cached is not None:
            return cached

        try:
            snapshot = self._load_snapshot(from_currency, target_date)
            rate = snapshot.rates.get(to_currency)
            if rate is None:
                raise ExternalServiceError(PROVIDER_NAME, f"No exchange rate found for {from_currency.value} -> {to_currency.value}")
            return rate
        except ExternalServiceError as e:
            logger.error(f"Failed to fetch exchange rate {from_currency.value} -> {to_currency.value}: {e}")
            return self._fallback_rate(from_currency, to_currency)

    def convert_amount(
        self,
        amount: Decimal,
        from_currency: Currency,
        to_currency: Currency,
        rate_date: Optional[date] = None,
    ) -> Decimal:
        if from_currency == to_currency:
            return amount
        rate = self.get_rate(from_currency, to_currency, rate_date)
        return round_money(Decimal(amount) * rate)

    def _stored_rate(self, from_currency: Currency, to_currency: Currency, rate_date: date) -> Optional[Decimal]:
        with self.session_factory() as db:
            row = db.query(ExchangeRateDB).filter(
                ExchangeRateDB.base_currency == from_currency,
                ExchangeRateDB.target_currency == to_currency,
                ExchangeRateDB.rate_date == rate_date,
            ).first()
            return row.rate if row else None

    def _fallback_rate(self, from_currency: Currency, to_currency: Currency) -> Decimal:
        with self.session_factory() as db:
            row = db.query(ExchangeRateDB).filter(
                ExchangeRateDB.base_currency == from_currency,
                ExchangeRateDB.target_currency == to_currency,
            ).order_by(desc(ExchangeRateDB.rate_date)).first()

        if row is None:
            raise ExternalServiceError(
                PROVIDER_NAME, f"No exchange rate available for {from_currency.value} -> {to_currency.value}"
            )

        logger.warning(
            f"Using stale exchange rate {from_currency.value} -> {to_currency.value} from {row.rate_date.isoformat()}"
        )
        return row.rate

    # ===== SNAPSHOTS =====

    def _load_snapshot(self, base: Currency, rate_date: date) -> RateSnapshot:
        """Fetch and persist a snapshot for ``base``, joining any fetch already running."""
        # Keyed by base only. The provider serves its latest snapshot whatever
        # date was asked for, so a waiter on another date gets the leader's
        # rates, which are stored under the leader's date alone.
        with self._lock:
            future = self._in_flight.get(base)
            is_leader = future is None
            if is_leader:
                future = Future()
                self._in_flight[base] = future

        if not is_leader:
            logger.debug(f"Joining in-flight rate fetch for {base.value}")
            return future.result()

        try:
            snapshot = self._stored_snapshot(base, rate_date)
            if snapshot is None:
                snapshot = self.provider.fetch_latest(base)
                self._persist_snapshot(snapshot, rate_date)
            future.set_result(snapshot)
            return snapshot
        except Exception as e:
            future.set_exception(e)
            raise
        finally:
            with self._lock:
                self._in_flight.pop(base, None)

    def _stored_snapshot(self, base: Currency, rate_date: date) -> Optional[RateSnapshot]:
        # A fetch that settled between our cache miss and taking the lead already
        # wrote the rows; reuse them instead of calling the provider again
        with self.session_factory() as db:
            rows = db.query(ExchangeRateDB).filter(
                ExchangeRateDB.base_currency == base,
                ExchangeRateDB.rate_date == rate_date,
            ).all()
        if not rows:
            return None
        return RateSnapshot(base=base, rate_date=rate_date, rates={row.target_currency: row.rate for row in rows})

    def _persist_snapshot(self, snapshot: RateSnapshot, rate_date: date, fetched_at: Optional[datetime] = None) -> None:
        fetched_at = fetched_at or datetime.utcnow()
        with self.session_factory() as db:
            try:
                for target, rate in snapshot.rates.items():
                    upsert_rate(db, snapshot.base, target, rate_date, rate, fetched_at)
                db.commit()
            except IntegrityError:
                # Another writer stored the same day first; its rows are as good as ours
                db.rollback()
                logger.info(f"Rates for {snapshot.base.value} on {rate_date} were stored concurrently")
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Failed to store exchange rates for {snapshot.base.value}: {e}")

    # ===== BATCH CONVERSION =====

    def batch_load_rates(self, db: Optional[Session] = None, rate_date: Optional[date] = None) -> RateCache:
        """
        Load rates for one date into a "FROM:TO" -> rate mapping.

        When nothing is stored for the date, the most recent rate of every
        stored pair is used instead. Identity rates are always present.
        """
        if db is None:
            with self.session_factory() as session:
                return self.batch_load_rates(session, rate_date)

        target_date = rate_date or date.today()
        cache: RateCache = {}

        rows = db.query(ExchangeRateDB).filter(ExchangeRateDB.rate_date == target_date).all()
        if not rows:
            rows = db.query(ExchangeRateDB).order_by(desc(ExchangeRateDB.rate_date)).all()

        for row in rows:
            # Rows are newest first in the fallback query, keep the first per pair
            cache.setdefault(rate_key(row.base_currency, row.target_currency), row.rate)

        for currency in Currency:
            cache[rate_key(currency, currency)] = Decimal("1")

        return cache

    @staticmethod
    def convert_with_cache(amount: Decimal, from_currency: Currency, to_currency: Currency, cache: RateCache) -> Decimal:
        """Convert using a preloaded cache; a missing rate leaves the amount unconverted."""
        if from_currency == to_currency:
            return amount

        rate = cache.get(rate_key(from_currency, to_currency))
        if rate is None:
            logger.warning(
                f"No cached exchange rate for {from_currency.value} -> {to_currency.value}, using original amount"
            )
            return amount

        return round_money(Decimal(amount) * rate)

    # ===== REFRESH =====

    def refresh_rates(self, rate_date: Optional[date] = None) -> RefreshResult:
        """Fetch and store a snapshot for every supported base currency."""
        now = datetime.utcnow()
        target_date = rate_date or date.today()

        try:
            snapshots = [self.provider.fetch_latest(base) for base in Currency]
        except ExternalServiceError as e:
            logger.error(f"Failed to refresh exchange rates: {e}")
            return RefreshResult(success=False, updated_at=now, error=str(e))

        with self.session_factory() as db:
            try:
                for snapshot in snapshots:
                    for target, rate in snapshot.rates.items():
                        upsert_rate(db, snapshot.base, target, target_date, rate, now)
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Failed to store refreshed exchange rates: {e}")
                return RefreshResult(success=False, updated_at=now, error=str(e))

        logger.info(f"Refreshed exchange rates for {len(snapshots)} base currencies on {target_date}")
        return RefreshResult(success=True, updated_at=now)

    def last_update_time(self, db: Optional[Session] = None) -> Optional[datetime]:
        if db is None:
            with self.session_factory() as session:
                return self.last_update_time(session)
        return db.query(func.max(ExchangeRateDB.fetched_at)).scalar()


def upsert_rate(
    db: Session,
    base: Currency,
    target: Currency,
    rate_date: date,
    rate: Decimal,
    fetched_at: datetime,
) -> ExchangeRateDB:
    """Insert or update the (base, target, date) row. Caller commits."""
    row = db.query(ExchangeRateDB).filter(
        ExchangeRateDB.base_currency == base,
        ExchangeRateDB.target_currency == target,
        ExchangeRateDB.rate_date == rate_date,
    ).first()

    if row:
        row.rate = rate
        row.fetched_at = fetched_at
    else:
        row = ExchangeRateDB(
            base_currency=base,
            target_currency=target,
            rate_date=rate_date,
            rate=rate,
            fetched_at=fetched_at,
        )
        db.add(row)
    db.flush()
    return row
