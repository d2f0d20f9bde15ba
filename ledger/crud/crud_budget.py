from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from typing import Optional, List
from datetime import datetime

from ledger.db.core import BudgetDB, AccountDB, CategoryDB, Currency
from ledger.errors import NotFoundError, ConflictError
from ledger.models.budget import BudgetUpsert
from ledger.months import parse_month_key


# ===== DATABASE OPERATIONS =====

def upsert_db_budget(db: Session, budget_data: BudgetUpsert, account_ids: Optional[List[int]] = None) -> BudgetDB:
    """Create or replace the planned amount for (account, category, month)"""

    if account_ids is not None and budget_data.account_id not in account_ids:
        raise NotFoundError("Account", budget_data.account_id)
    if not db.query(AccountDB).filter(AccountDB.id == budget_data.account_id).first():
        raise NotFoundError("Account", budget_data.account_id)
    if not db.query(CategoryDB).filter(CategoryDB.id == budget_data.category_id).first():
        raise NotFoundError("Category", budget_data.category_id)

    month = parse_month_key(budget_data.month)

    db_budget = db.query(BudgetDB).filter(
        BudgetDB.account_id == budget_data.account_id,
        BudgetDB.category_id == budget_data.category_id,
        BudgetDB.month == month,
    ).first()

    if db_budget:
        db_budget.planned = budget_data.planned
        db_budget.currency = Currency(budget_data.currency.value)
        db_budget.notes = budget_data.notes
        db_budget.updated_at = datetime.utcnow()
    else:
        db_budget = BudgetDB(
            account_id=budget_data.account_id,
            category_id=budget_data.category_id,
            month=month,
            planned=budget_data.planned,
            currency=Currency(budget_data.currency.value),
            notes=budget_data.notes,
        )
        db.add(db_budget)

    try:
        db.commit()
        db.refresh(db_budget)
        return db_budget
    except IntegrityError:
        db.rollback()
        raise ConflictError("Budget for this category and month was changed concurrently")


def read_db_month_budgets(db: Session, month_key: str, account_id: Optional[int] = None) -> List[BudgetDB]:
    query = db.query(BudgetDB).filter(BudgetDB.month == parse_month_key(month_key))
    if account_id is not None:
        query = query.filter(BudgetDB.account_id == account_id)
    return query.order_by(BudgetDB.category_id).all()


def delete_db_budget(db: Session, budget_id: int, account_ids: Optional[List[int]] = None) -> None:
    query = db.query(BudgetDB).filter(BudgetDB.id == budget_id)
    if account_ids is not None:
        query = query.filter(BudgetDB.account_id.in_(account_ids))
    db_budget = query.first()
    if not db_budget:
        raise NotFoundError("Budget", budget_id)
    db.delete(db_budget)
    db.commit()
