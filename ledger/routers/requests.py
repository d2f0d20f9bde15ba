from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional

from ledger.crud import crud_request
from ledger.models import request as request_models
from ledger.models import transaction as transaction_models
from ledger.db.core import get_db, RequestStatus
from ledger.routers.dependencies import get_acting_account_ids

router = APIRouter(
    prefix="/requests",
    tags=["requests"],
)


@router.post("/", response_model=request_models.TransactionRequestResponse, status_code=status.HTTP_201_CREATED)
def create_request(
    request: request_models.TransactionRequestCreate,
    db: Session = Depends(get_db),
    account_ids: List[int] = Depends(get_acting_account_ids)
):
    """
    Ask another account to record an expense.
    """
    return crud_request.create_transaction_request(db=db, request_data=request, acting_account_ids=account_ids)


@router.get("/", response_model=List[request_models.TransactionRequestResponse])
def read_requests(
    request_status: Optional[request_models.RequestStatusEnum] = None,
    db: Session = Depends(get_db),
    account_ids: List[int] = Depends(get_acting_account_ids)
):
    """
    Retrieve requests addressed to the current user's accounts.
    """
    status_filter = RequestStatus(request_status.value) if request_status else None
    return crud_request.read_db_requests(db=db, to_account_ids=account_ids, status=status_filter)


@router.post("/{request_id}/approve", response_model=request_models.RequestDecisionResponse)
def approve_request(
    request_id: int,
    db: Session = Depends(get_db),
    account_ids: List[int] = Depends(get_acting_account_ids)
):
    """
    Approve a pending request; the expense is recorded on the recipient's account.
    """
    db_request, db_transaction = crud_request.approve_transaction_request(
        db=db, request_id=request_id, acting_account_ids=account_ids
    )
    return request_models.RequestDecisionResponse(
        request=request_models.TransactionRequestResponse.model_validate(db_request),
        transaction=transaction_models.TransactionResponse.model_validate(db_transaction),
    )


@router.post("/{request_id}/reject", response_model=request_models.RequestDecisionResponse)
def reject_request(
    request_id: int,
    db: Session = Depends(get_db),
    account_ids: List[int] = Depends(get_acting_account_ids)
):
    db_request = crud_request.reject_transaction_request(db=db, request_id=request_id, acting_account_ids=account_ids)
    return request_models.RequestDecisionResponse(request=request_models.TransactionRequestResponse.model_validate(db_request))
