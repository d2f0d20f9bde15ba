#!/usr/bin/env python
"""
Daily Rates Job

Runs once a day to:
1. Fetch the latest exchange rates for every supported base currency
2. Optionally generate the month's recurring transactions for every account

Usage:
    python scripts/refresh_rates_job.py [--date YYYY-MM-DD] [--apply-recurring] [--month YYYY-MM] [--account-id ID]

Options:
    --date: Date to store the rates under (default: today)
    --apply-recurring: Also apply recurring templates
    --month: Month to apply templates for (default: month of --date)
    --account-id: Apply templates for one account only (default: all accounts)
"""
import sys
from pathlib import Path
from datetime import date, datetime
from argparse import ArgumentParser

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from ledger.db.core import Base, engine, session_local, AccountDB
from ledger.crud.crud_recurring import apply_recurring_templates
from ledger.errors import LedgerError
from ledger.logging_config import setup_logging, get_logger
from ledger.months import month_key
from ledger.services.exchange_rates import ConversionService

logger = get_logger("refresh_rates_job")


def run_daily_job(
    rate_date: date,
    apply_recurring: bool = False,
    month: str = None,
    account_id: int = None,
    conversion: ConversionService = None,
    session_factory=session_local
) -> bool:
    """
    Refresh rates, then apply recurring templates if asked. Returns overall success.
    """
    logger.info("=" * 60)
    logger.info(f"Running daily rates job - {rate_date}")
    logger.info("=" * 60)

    conversion = conversion or ConversionService(session_factory=session_factory)
    result = conversion.refresh_rates(rate_date)
    if result.success:
        logger.info(f"Exchange rates refreshed at {result.updated_at:%Y-%m-%d %H:%M:%S}")
    else:
        logger.error(f"Exchange rate refresh failed: {result.error}")

    if not apply_recurring:
        return result.success

    month = month or month_key(rate_date)
    db = session_factory()
    total_created = 0
    total_skipped = 0
    total_errors = 0

    try:
        query = db.query(AccountDB)
        if account_id:
            query = query.filter(AccountDB.id == account_id)
        accounts = query.all()
        if not accounts:
            logger.warning(f"No accounts found{f' with id {account_id}' if account_id else ''}")
            return result.success

        logger.info(f"Applying recurring templates for {month} to {len(accounts)} account(s)...")

        for account in accounts:
            try:
                applied = apply_recurring_templates(db, month, account.id)
                total_created += applied.created
                total_skipped += applied.skipped
            except LedgerError as e:
                logger.error(f"Account {account.id} ({account.name}): {e}")
                total_errors += 1
                continue

        logger.info("=" * 60)
        logger.info("Job Complete!")
        logger.info(f"  Transactions created: {total_created}")
        logger.info(f"  Already generated: {total_skipped}")
        logger.info(f"  Errors: {total_errors}")
        logger.info("=" * 60)
    finally:
        db.close()

    return result.success and total_errors == 0


def main():
    parser = ArgumentParser(description="Refresh exchange rates and apply recurring templates")

    parser.add_argument(
        '--date',
        type=str,
        help='Rate date (YYYY-MM-DD), defaults to today'
    )

    parser.add_argument(
        '--apply-recurring',
        action='store_true',
        help='Also generate recurring transactions'
    )

    parser.add_argument(
        '--month',
        type=str,
        help='Month to generate (YYYY-MM), defaults to the month of --date'
    )

    parser.add_argument(
        '--account-id',
        type=int,
        help='Process only this account'
    )

    args = parser.parse_args()

    if args.date:
        try:
            rate_date = datetime.strptime(args.date, '%Y-%m-%d').date()
        except ValueError:
            print(f"Invalid date format: {args.date}. Use YYYY-MM-DD")
            sys.exit(1)
    else:
        rate_date = date.today()

    setup_logging()
    Base.metadata.create_all(bind=engine)

    ok = run_daily_job(
        rate_date=rate_date,
        apply_recurring=args.apply_recurring,
        month=args.month,
        account_id=args.account_id
    )
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
