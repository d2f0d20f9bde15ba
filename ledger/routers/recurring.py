from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional

from ledger.crud import crud_recurring
from ledger.models import recurring as recurring_models
from ledger.models import transaction as transaction_models
from ledger.db.core import get_db
from ledger.errors import NotFoundError
from ledger.routers.dependencies import get_acting_account_ids

router = APIRouter(
    prefix="/recurring",
    tags=["recurring"],
)


@router.get("/", response_model=List[recurring_models.RecurringTemplateResponse])
def read_templates(
    account_id: Optional[int] = None,
    active_only: bool = False,
    db: Session = Depends(get_db),
    account_ids: List[int] = Depends(get_acting_account_ids)
):
    return crud_recurring.read_db_templates(
        db=db, account_id=account_id, active_only=active_only, account_ids=account_ids
    )


@router.post("/", response_model=recurring_models.RecurringTemplateResponse)
def upsert_template(
    template: recurring_models.RecurringTemplateUpsert,
    db: Session = Depends(get_db),
    account_ids: List[int] = Depends(get_acting_account_ids)
):
    """
    Create a recurring template, or update it when an id is given.
    """
    return crud_recurring.upsert_db_template(db=db, template_data=template, account_ids=account_ids)


@router.patch("/{template_id}/toggle", response_model=recurring_models.RecurringTemplateResponse)
def toggle_template(
    template_id: int,
    toggle: recurring_models.RecurringToggle,
    db: Session = Depends(get_db),
    account_ids: List[int] = Depends(get_acting_account_ids)
):
    return crud_recurring.toggle_db_template(
        db=db, template_id=template_id, is_active=toggle.is_active, account_ids=account_ids
    )


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_template(
    template_id: int,
    db: Session = Depends(get_db),
    account_ids: List[int] = Depends(get_acting_account_ids)
):
    """
    Delete a template. Transactions it already generated are kept.
    """
    crud_recurring.delete_db_template(db=db, template_id=template_id, account_ids=account_ids)


@router.post("/apply", response_model=recurring_models.ApplyRecurringResponse)
def apply_templates(
    request: recurring_models.ApplyRecurringRequest,
    db: Session = Depends(get_db),
    account_ids: List[int] = Depends(get_acting_account_ids)
):
    """
    Generate the month's transactions for the account's active templates.
    Templates already generated for the month are counted as skipped.
    """
    if request.account_id not in account_ids:
        raise NotFoundError("Account", request.account_id)
    result = crud_recurring.apply_recurring_templates(
        db=db, month_key=request.month, account_id=request.account_id, template_ids=request.template_ids
    )
    return recurring_models.ApplyRecurringResponse(created=result.created, skipped=result.skipped)


@router.post("/{template_id}/generate", response_model=transaction_models.TransactionResponse,
             status_code=status.HTTP_201_CREATED)
def generate_transaction(
    template_id: int,
    month: str,
    db: Session = Depends(get_db),
    account_ids: List[int] = Depends(get_acting_account_ids)
):
    """
    Generate one template's transaction for a month. Fails if it already exists.
    """
    return crud_recurring.generate_template_transaction(
        db=db, template_id=template_id, month_key=month, account_ids=account_ids
    )
