"""
Monthly Dashboard Aggregation

Builds the actual-vs-planned picture for one month:
- actual income/expense from the month's transactions
- planned income/expense from the month's budgets
- remaining and projected net
- per-category budget progress
- six month income/expense history and a previous-month comparison

All amounts are reported in the preferred currency. Each month is converted
with the rates stored for the first day of that month; a pair with no rate
keeps its original amount.
"""
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session, joinedload

from ledger.db.core import (
    AccountDB, BudgetDB, CategoryDB, Currency, RecurringTemplateDB, RequestStatus,
    TransactionDB, TransactionRequestDB, TransactionType,
)
from ledger.errors import NotFoundError
from ledger.logging_config import get_logger
from ledger.models.account import AccountResponse
from ledger.models.category import CategoryResponse
from ledger.models.dashboard import (
    CategoryBudgetSummary, DashboardData, DashboardTotals, DashboardTransaction,
    MonetaryStat, MonthComparison, MonthlyHistoryPoint,
)
from ledger.models.recurring import RecurringTemplateResponse
from ledger.models.request import TransactionRequestResponse
from ledger.models.transaction import CurrencyEnum, TransactionResponse
from ledger.months import add_months, month_key, parse_month_key, previous_months
from ledger.services.exchange_rates import ConversionService, RateCache
from ledger.settings import HISTORY_MONTHS

logger = get_logger(__name__)

ZERO = Decimal("0")


def _variant(amount: Decimal) -> str:
    return "positive" if amount >= 0 else "negative"


class _MonthRates:
    """Per-month rate caches, loaded once per month touched by this dashboard"""

    def __init__(self, db: Session, conversion: ConversionService, preferred_currency: Optional[Currency]):
        self.db = db
        self.conversion = conversion
        self.preferred_currency = preferred_currency
        self.caches: Dict[date, RateCache] = {}

    def cache_for(self, month: date) -> RateCache:
        if month not in self.caches:
            self.caches[month] = self.conversion.batch_load_rates(self.db, month)
        return self.caches[month]

    def convert(self, amount: Decimal, currency: Currency, month: date) -> Decimal:
        if self.preferred_currency is None:
            return amount
        return self.conversion.convert_with_cache(amount, currency, self.preferred_currency, self.cache_for(month))


def _scoped(query, column, account_id: Optional[int], account_ids: Optional[List[int]] = None):
    if account_id is not None:
        return query.filter(column == account_id)
    if account_ids is not None:
        return query.filter(column.in_(account_ids))
    return query


def _sum_by_type(entries: Iterable, transaction_type: TransactionType) -> Decimal:
    return sum((amount for kind, amount in entries if kind == transaction_type), ZERO)


def _template_in_window(template: RecurringTemplateDB, month: date) -> bool:
    if template.start_month > month:
        return False
    return template.end_month is None or template.end_month >= month


def build_dashboard(
    db: Session,
    month_key_value: str,
    account_id: Optional[int] = None,
    preferred_currency: Optional[Currency] = None,
    conversion: Optional[ConversionService] = None,
    account_ids: Optional[List[int]] = None,
) -> DashboardData:
    """
    Build one month's dashboard.

    ``account_ids`` limits everything to the acting user's accounts; an
    ``account_id`` outside it is reported as not found. With neither, every
    account is included.
    """
    month = parse_month_key(month_key_value)
    previous_month = add_months(month, -1)
    history_months = previous_months(month, HISTORY_MONTHS)
    conversion = conversion or ConversionService()

    # ===== LOAD =====

    accounts_query = db.query(AccountDB).order_by(AccountDB.name)
    if account_ids is not None:
        accounts_query = accounts_query.filter(AccountDB.id.in_(account_ids))
    if account_id is not None:
        account = db.query(AccountDB).filter(AccountDB.id == account_id).first()
        if not account or (account_ids is not None and account_id not in account_ids):
            raise NotFoundError("Account", account_id)
        if preferred_currency is None:
            preferred_currency = account.preferred_currency
    accounts = accounts_query.all()

    categories = db.query(CategoryDB).filter(CategoryDB.is_archived.is_(False)).order_by(CategoryDB.name).all()

    budgets = _scoped(
        db.query(BudgetDB).options(joinedload(BudgetDB.category), joinedload(BudgetDB.account))
        .filter(BudgetDB.month == month),
        BudgetDB.account_id, account_id, account_ids,
    ).order_by(BudgetDB.category_id).all()

    transactions = _scoped(
        db.query(TransactionDB).filter(TransactionDB.month == month),
        TransactionDB.account_id, account_id, account_ids,
    ).order_by(TransactionDB.transaction_date.desc(), TransactionDB.id.desc()).all()

    history_transactions = _scoped(
        db.query(TransactionDB).filter(
            TransactionDB.month >= history_months[0],
            TransactionDB.month <= month,
        ),
        TransactionDB.account_id, account_id, account_ids,
    ).all()

    templates = _scoped(
        db.query(RecurringTemplateDB).filter(RecurringTemplateDB.deleted_at.is_(None)),
        RecurringTemplateDB.account_id, account_id, account_ids,
    ).order_by(RecurringTemplateDB.day_of_month, RecurringTemplateDB.id).all()

    pending_requests = _scoped(
        db.query(TransactionRequestDB).filter(TransactionRequestDB.status == RequestStatus.PENDING),
        TransactionRequestDB.to_account_id, account_id, account_ids,
    ).order_by(TransactionRequestDB.request_date.desc()).all()

    rates = _MonthRates(db, conversion, preferred_currency)

    # ===== ACTUALS =====

    converted = [(tx, rates.convert(tx.amount, tx.currency, month)) for tx in transactions]
    totals = [(tx.transaction_type, amount) for tx, amount in converted]

    actual_income = _sum_by_type(totals, TransactionType.INCOME)
    actual_expense = _sum_by_type(totals, TransactionType.EXPENSE)

    # A budget reads the side its category is for
    actual_by_category: Dict[Tuple[int, TransactionType], Decimal] = defaultdict(lambda: ZERO)
    for tx, amount in converted:
        actual_by_category[(tx.category_id, tx.transaction_type)] += amount

    # ===== PLANNED =====

    planned_by_budget = {
        budget.id: rates.convert(budget.planned, budget.currency, month) for budget in budgets
    }
    planned_income = sum(
        (planned_by_budget[b.id] for b in budgets if b.category.transaction_type == TransactionType.INCOME), ZERO
    )
    planned_expense = sum(
        (planned_by_budget[b.id] for b in budgets if b.category.transaction_type == TransactionType.EXPENSE), ZERO
    )

    remaining_income = planned_income - actual_income
    remaining_expense = planned_expense - actual_expense
    actual_net = actual_income - actual_expense
    planned_net = planned_income - planned_expense
    projected_net = (actual_income + max(remaining_income, ZERO)) - (actual_expense + max(remaining_expense, ZERO))

    def budget_actual(budget: BudgetDB) -> Decimal:
        return actual_by_category[(budget.category_id, budget.category.transaction_type)]

    budget_summaries = [
        CategoryBudgetSummary(
            budget_id=budget.id,
            account_id=budget.account_id,
            account_name=budget.account.name,
            category_id=budget.category_id,
            category_name=budget.category.name,
            category_type=budget.category.transaction_type.value,
            planned=planned_by_budget[budget.id],
            actual=budget_actual(budget),
            remaining=planned_by_budget[budget.id] - budget_actual(budget),
            month=month_key_value,
        )
        for budget in budgets
    ]

    # Recurring amounts are in their own currencies, convert like budgets
    expected_recurring_income = sum(
        (
            rates.convert(t.amount, t.currency, month)
            for t in templates
            if t.is_active and t.transaction_type == TransactionType.INCOME and _template_in_window(t, month)
        ),
        ZERO,
    )

    # ===== HISTORY =====

    history_seed: Dict[date, Dict[TransactionType, Decimal]] = {
        m: {TransactionType.INCOME: ZERO, TransactionType.EXPENSE: ZERO} for m in history_months
    }
    for tx in history_transactions:
        bucket = history_seed.get(tx.month)
        if bucket is None:
            continue
        bucket[tx.transaction_type] += rates.convert(tx.amount, tx.currency, tx.month)

    history = sorted(
        (
            MonthlyHistoryPoint(
                month=month_key(m),
                income=values[TransactionType.INCOME],
                expense=values[TransactionType.EXPENSE],
                net=values[TransactionType.INCOME] - values[TransactionType.EXPENSE],
            )
            for m, values in history_seed.items()
        ),
        key=lambda point: point.month,
    )

    previous = history_seed[previous_month]
    previous_net = previous[TransactionType.INCOME] - previous[TransactionType.EXPENSE]

    # ===== STATS =====

    stats = [
        MonetaryStat(
            label="Saved so far",
            amount=actual_net,
            variant=_variant(actual_net),
            helper="Income minus expenses this month",
        ),
        MonetaryStat(
            label="On track for",
            amount=projected_net,
            variant=_variant(projected_net),
            helper="Where you'll be at month end",
        ),
        MonetaryStat(
            label="Left to spend",
            amount=max(remaining_expense, ZERO),
            variant="neutral" if remaining_expense <= 0 else "negative",
            helper="Budget not yet used",
        ),
        MonetaryStat(
            label="Monthly goal",
            amount=planned_net,
            variant=_variant(planned_net),
            helper="Expected income minus budgeted expenses",
        ),
    ]

    logger.debug(
        f"Dashboard {month_key_value} account={account_id}: {len(transactions)} transactions, "
        f"{len(budgets)} budgets, {len(rates.caches)} rate caches"
    )

    return DashboardData(
        month=month_key_value,
        preferred_currency=CurrencyEnum(preferred_currency.value) if preferred_currency else None,
        totals=DashboardTotals(
            actual_income=actual_income,
            actual_expense=actual_expense,
            planned_income=planned_income,
            planned_expense=planned_expense,
            remaining_income=remaining_income,
            remaining_expense=remaining_expense,
            actual_net=actual_net,
            planned_net=planned_net,
            projected_net=projected_net,
        ),
        expected_recurring_income=expected_recurring_income,
        stats=stats,
        budgets=budget_summaries,
        transactions=[
            DashboardTransaction(**TransactionResponse.model_validate(tx).model_dump(), converted_amount=amount)
            for tx, amount in converted
        ],
        recurring_templates=[RecurringTemplateResponse.model_validate(t) for t in templates],
        pending_requests=[TransactionRequestResponse.model_validate(r) for r in pending_requests],
        accounts=[AccountResponse.model_validate(a) for a in accounts],
        categories=[CategoryResponse.model_validate(c) for c in categories],
        history=history,
        comparison=MonthComparison(
            previous_month=month_key(previous_month),
            previous_net=previous_net,
            change=actual_net - previous_net,
        ),
        exchange_rate_last_update=conversion.last_update_time(db),
    )
