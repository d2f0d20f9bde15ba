from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal

from ledger.models.account import AccountResponse
from ledger.models.category import CategoryResponse
from ledger.models.recurring import RecurringTemplateResponse
from ledger.models.request import TransactionRequestResponse
from ledger.models.transaction import CurrencyEnum, TransactionResponse, TransactionTypeEnum

# ===== DASHBOARD PYDANTIC MODELS =====

class DashboardTotals(BaseModel):
    actual_income: Decimal
    actual_expense: Decimal
    planned_income: Decimal
    planned_expense: Decimal
    remaining_income: Decimal
    remaining_expense: Decimal
    actual_net: Decimal
    planned_net: Decimal
    projected_net: Decimal = Field(..., description="Actual so far plus what is still budgeted, never counting overspend as income")


class MonetaryStat(BaseModel):
    label: str
    amount: Decimal
    variant: str = Field(..., description="positive, negative or neutral")
    helper: str


class CategoryBudgetSummary(BaseModel):
    budget_id: int
    account_id: int
    account_name: str
    category_id: int
    category_name: str
    category_type: TransactionTypeEnum
    planned: Decimal
    actual: Decimal
    remaining: Decimal
    month: str


class DashboardTransaction(TransactionResponse):
    converted_amount: Decimal


class MonthlyHistoryPoint(BaseModel):
    month: str
    income: Decimal
    expense: Decimal
    net: Decimal


class MonthComparison(BaseModel):
    previous_month: str
    previous_net: Decimal
    change: Decimal


class DashboardData(BaseModel):
    month: str
    preferred_currency: Optional[CurrencyEnum] = None
    totals: DashboardTotals
    expected_recurring_income: Decimal
    stats: List[MonetaryStat]
    budgets: List[CategoryBudgetSummary]
    transactions: List[DashboardTransaction]
    recurring_templates: List[RecurringTemplateResponse]
    pending_requests: List[TransactionRequestResponse]
    accounts: List[AccountResponse]
    categories: List[CategoryResponse]
    history: List[MonthlyHistoryPoint]
    comparison: MonthComparison
    exchange_rate_last_update: Optional[datetime] = None
