"""
Transaction request state machine.

A request asks another account to record an expense. It starts PENDING and is
decided exactly once: APPROVED writes the expense into the recipient's ledger
in the same commit as the status change, REJECTED only changes the status.
"""
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.exc import IntegrityError
from typing import Optional, List, Tuple
from datetime import datetime

from ledger.db.core import TransactionRequestDB, TransactionDB, AccountDB, RequestStatus, TransactionType, Currency
from ledger.crud.crud_category import check_category_type
from ledger.errors import NotFoundError, AuthorizationError, ConflictError, ConcurrencyError
from ledger.models.request import TransactionRequestCreate
from ledger.months import month_start
from ledger.logging_config import get_logger

logger = get_logger(__name__)


# Terminal states have no outgoing transitions
REQUEST_TRANSITIONS = {
    RequestStatus.PENDING: {RequestStatus.APPROVED, RequestStatus.REJECTED},
    RequestStatus.APPROVED: set(),
    RequestStatus.REJECTED: set(),
}


def check_transition(current: RequestStatus, target: RequestStatus) -> None:
    if target not in REQUEST_TRANSITIONS[current]:
        raise ConflictError(f"Request is already {current.value.lower()}")


# ===== DATABASE OPERATIONS =====

def create_transaction_request(db: Session, request_data: TransactionRequestCreate,
                               acting_account_ids: List[int]) -> TransactionRequestDB:
    if request_data.from_account_id not in acting_account_ids:
        raise AuthorizationError("You can only send requests from your own accounts")
    if request_data.from_account_id == request_data.to_account_id:
        raise ConflictError("Requests can only be sent to another account")

    for account_id in (request_data.from_account_id, request_data.to_account_id):
        if not db.query(AccountDB).filter(AccountDB.id == account_id).first():
            raise NotFoundError("Account", account_id)
    # Approval records an expense, so the category must be an expense category
    check_category_type(db, request_data.category_id, TransactionType.EXPENSE)

    db_request = TransactionRequestDB(
        from_account_id=request_data.from_account_id,
        to_account_id=request_data.to_account_id,
        category_id=request_data.category_id,
        amount=request_data.amount,
        currency=Currency(request_data.currency.value),
        request_date=request_data.request_date,
        description=request_data.description,
        status=RequestStatus.PENDING,
    )

    try:
        db.add(db_request)
        db.commit()
        db.refresh(db_request)
        return db_request
    except IntegrityError:
        db.rollback()
        raise ConflictError("Transaction request could not be created")


def read_db_request(db: Session, request_id: int) -> TransactionRequestDB:
    db_request = db.query(TransactionRequestDB).filter(TransactionRequestDB.id == request_id).first()
    if not db_request:
        raise NotFoundError("Transaction request", request_id)
    return db_request


def read_db_requests(db: Session, to_account_ids: List[int], status: Optional[RequestStatus] = None) -> List[TransactionRequestDB]:
    query = db.query(TransactionRequestDB).filter(TransactionRequestDB.to_account_id.in_(to_account_ids))
    if status is not None:
        query = query.filter(TransactionRequestDB.status == status)
    return query.order_by(TransactionRequestDB.request_date.desc(), TransactionRequestDB.id.desc()).all()


def _load_for_decision(db: Session, request_id: int, acting_account_ids: List[int],
                       target: RequestStatus) -> TransactionRequestDB:
    db_request = read_db_request(db, request_id)
    if db_request.to_account_id not in acting_account_ids:
        raise AuthorizationError("Only the recipient can respond to this request")
    check_transition(db_request.status, target)
    return db_request


def _ledger_entry_for(db_request: TransactionRequestDB) -> TransactionDB:
    return TransactionDB(
        account_id=db_request.to_account_id,
        category_id=db_request.category_id,
        transaction_type=TransactionType.EXPENSE,
        amount=db_request.amount,
        currency=db_request.currency,
        transaction_date=db_request.request_date,
        month=month_start(db_request.request_date),
        description=db_request.description,
        is_recurring=False,
    )


def _commit_decision(db: Session, db_request: TransactionRequestDB) -> None:
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        logger.warning(f"Transaction request {db_request.id} was decided concurrently")
        raise ConcurrencyError("This request was updated by someone else, reload and try again")
    except Exception:
        db.rollback()
        raise


def approve_transaction_request(db: Session, request_id: int,
                                acting_account_ids: List[int]) -> Tuple[TransactionRequestDB, TransactionDB]:
    """Approve a pending request and record the expense on the recipient's account"""

    db_request = _load_for_decision(db, request_id, acting_account_ids, RequestStatus.APPROVED)

    db_request.status = RequestStatus.APPROVED
    db_request.decided_at = datetime.utcnow()
    db_transaction = _ledger_entry_for(db_request)
    db.add(db_transaction)

    _commit_decision(db, db_request)

    db.refresh(db_request)
    db.refresh(db_transaction)
    logger.info(f"Transaction request {request_id} approved, created transaction {db_transaction.id}")
    return db_request, db_transaction


def reject_transaction_request(db: Session, request_id: int, acting_account_ids: List[int]) -> TransactionRequestDB:
    db_request = _load_for_decision(db, request_id, acting_account_ids, RequestStatus.REJECTED)

    db_request.status = RequestStatus.REJECTED
    db_request.decided_at = datetime.utcnow()

    _commit_decision(db, db_request)

    db.refresh(db_request)
    logger.info(f"Transaction request {request_id} rejected")
    return db_request
