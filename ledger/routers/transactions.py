from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional

from ledger.crud import crud_transaction
from ledger.models import transaction as transaction_models
from ledger.db.core import get_db
from ledger.routers.dependencies import get_acting_account_ids

router = APIRouter(
    prefix="/transactions",
    tags=["transactions"],
)


@router.post("/", response_model=transaction_models.TransactionResponse, status_code=status.HTTP_201_CREATED)
def create_transaction(
    transaction: transaction_models.TransactionCreate,
    db: Session = Depends(get_db),
    account_ids: List[int] = Depends(get_acting_account_ids)
):
    """
    Create a transaction. A recurring transaction without a template gets one.
    """
    return crud_transaction.create_db_transaction(db=db, transaction_data=transaction, account_ids=account_ids)


@router.get("/", response_model=transaction_models.TransactionMonthList)
def read_month_transactions(
    month: str,
    account_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    """
    Retrieve all transactions of a month, newest first.
    """
    transactions = crud_transaction.read_db_month_transactions(db=db, month_key=month, account_id=account_id)
    return transaction_models.TransactionMonthList(
        month=month,
        transactions=[transaction_models.TransactionResponse.model_validate(t) for t in transactions],
    )


@router.get("/{transaction_id}", response_model=transaction_models.TransactionResponse)
def read_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    account_ids: List[int] = Depends(get_acting_account_ids)
):
    return crud_transaction.read_db_transaction(db=db, transaction_id=transaction_id, account_ids=account_ids)


@router.put("/{transaction_id}", response_model=transaction_models.TransactionResponse)
def update_transaction(
    transaction_id: int,
    transaction: transaction_models.TransactionUpdate,
    db: Session = Depends(get_db),
    account_ids: List[int] = Depends(get_acting_account_ids)
):
    return crud_transaction.update_db_transaction(
        db=db, transaction_id=transaction_id, transaction_updates=transaction, account_ids=account_ids
    )


@router.delete("/{transaction_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    account_ids: List[int] = Depends(get_acting_account_ids)
):
    crud_transaction.delete_db_transaction(db=db, transaction_id=transaction_id, account_ids=account_ids)
