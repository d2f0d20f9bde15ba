from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from ledger.crud import crud_account
from ledger.models import account as account_models
from ledger.db.core import get_db
from ledger.routers.dependencies import get_current_user_id

router = APIRouter(
    prefix="/accounts",
    tags=["accounts"],
)


@router.get("/", response_model=List[account_models.AccountResponse])
def read_accounts(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    """
    Retrieve the current user's accounts.
    """
    return crud_account.read_db_accounts(db=db, user_id=user_id)


@router.get("/{account_id}", response_model=account_models.AccountResponse)
def read_account(
    account_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    return crud_account.read_db_account(db=db, account_id=account_id, user_id=user_id)
