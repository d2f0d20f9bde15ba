from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional

from ledger.crud import crud_budget
from ledger.models import budget as budget_models
from ledger.db.core import get_db
from ledger.routers.dependencies import get_acting_account_ids

router = APIRouter(
    prefix="/budgets",
    tags=["budgets"],
)


@router.put("/", response_model=budget_models.BudgetResponse)
def upsert_budget(
    budget: budget_models.BudgetUpsert,
    db: Session = Depends(get_db),
    account_ids: List[int] = Depends(get_acting_account_ids)
):
    """
    Set the planned amount for a category in a month, replacing any previous value.
    """
    return crud_budget.upsert_db_budget(db=db, budget_data=budget, account_ids=account_ids)


@router.get("/", response_model=List[budget_models.BudgetResponse])
def read_budgets(
    month: str,
    account_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    return crud_budget.read_db_month_budgets(db=db, month_key=month, account_id=account_id)


@router.delete("/{budget_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_budget(
    budget_id: int,
    db: Session = Depends(get_db),
    account_ids: List[int] = Depends(get_acting_account_ids)
):
    crud_budget.delete_db_budget(db=db, budget_id=budget_id, account_ids=account_ids)
