from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.orm import Session
from typing import List, Optional

from ledger.crud import crud_sharing
from ledger.models import sharing as sharing_models
from ledger.models.transaction import CurrencyEnum
from ledger.db.core import get_db, Currency, PaymentStatus
from ledger.routers.dependencies import get_current_user_id

router = APIRouter(
    prefix="/sharing",
    tags=["sharing"],
)


class SettleRequest(BaseModel):
    other_user_id: int
    currency: CurrencyEnum


class SettleResponse(BaseModel):
    settled_count: int


@router.post("/", response_model=sharing_models.SharedExpenseResponse, status_code=status.HTTP_201_CREATED)
def share_expense(
    share: sharing_models.ShareExpenseCreate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    """
    Split one of your transactions with other users.
    """
    return crud_sharing.share_expense(db=db, owner_id=user_id, share_data=share)


@router.get("/", response_model=List[sharing_models.SharedExpenseResponse])
def read_shared_expenses(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    return crud_sharing.read_shared_expenses(db=db, owner_id=user_id)


@router.get("/with-me", response_model=List[sharing_models.ParticipationResponse])
def read_shared_with_me(
    payment_status: Optional[sharing_models.PaymentStatusEnum] = None,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    """
    Expenses other users have shared with you.
    """
    return crud_sharing.read_shares_for_participant(
        db=db, user_id=user_id, status=PaymentStatus(payment_status.value) if payment_status else None
    )


@router.get("/balances", response_model=List[sharing_models.SettlementBalanceResponse])
def read_settlement_balances(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    """
    Who owes whom, per user and currency, across all pending shares.
    """
    balances = crud_sharing.read_settlement_balances(db=db, user_id=user_id)
    return [sharing_models.SettlementBalanceResponse.model_validate(balance) for balance in balances]


@router.post("/participants/{participant_id}/decline", response_model=sharing_models.ExpenseParticipantResponse)
def decline_share(
    participant_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    return crud_sharing.decline_share(db=db, user_id=user_id, participant_record_id=participant_id)


@router.post("/participants/{participant_id}/paid", response_model=sharing_models.ExpenseParticipantResponse)
def mark_share_paid(
    participant_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    return crud_sharing.mark_share_paid(db=db, owner_id=user_id, participant_record_id=participant_id)


@router.post("/settle", response_model=SettleResponse)
def settle_all(
    settle: SettleRequest,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    """
    Mark every pending share between you and another user as paid.
    """
    count = crud_sharing.settle_all_with_user(
        db=db, user_id=user_id, other_user_id=settle.other_user_id, currency=Currency(settle.currency.value)
    )
    return SettleResponse(settled_count=count)


@router.delete("/{shared_expense_id}", status_code=status.HTTP_204_NO_CONTENT)
def cancel_shared_expense(
    shared_expense_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
):
    crud_sharing.cancel_shared_expense(db=db, owner_id=user_id, shared_expense_id=shared_expense_id)
