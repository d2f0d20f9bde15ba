from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy import desc
from typing import Optional, List
from datetime import datetime

from ledger.db.core import TransactionDB, AccountDB, RecurringTemplateDB, TransactionType, Currency
from ledger.errors import NotFoundError, ValidationError, ConflictError
from ledger.models.transaction import TransactionCreate, TransactionUpdate
from ledger.crud.crud_category import check_category_type
from ledger.crud.crud_recurring import create_template_for_transaction
from ledger.months import month_start, parse_month_key
from ledger.logging_config import get_logger

logger = get_logger(__name__)


# ===== VALIDATION HELPERS =====

def _check_account(db: Session, account_id: int, account_ids: Optional[List[int]]) -> AccountDB:
    if account_ids is not None and account_id not in account_ids:
        raise NotFoundError("Account", account_id)
    account = db.query(AccountDB).filter(AccountDB.id == account_id).first()
    if not account:
        raise NotFoundError("Account", account_id)
    return account


def _check_template(db: Session, template_id: int, account_id: int) -> RecurringTemplateDB:
    template = db.query(RecurringTemplateDB).filter(
        RecurringTemplateDB.id == template_id,
        RecurringTemplateDB.deleted_at.is_(None),
    ).first()
    if not template or template.account_id != account_id:
        raise NotFoundError("Recurring template", template_id)
    return template


def _integrity_error(error: IntegrityError) -> Exception:
    message = str(error.orig)
    if "uq_template_month" in message or "transactions.recurring_template_id" in message:
        return ConflictError("This recurring template already has a transaction for that month")
    logger.warning(f"Transaction write rejected by the database: {message}")
    return ValidationError.field("transaction", "Transaction violates a database constraint")


def _link_recurring_template(db: Session, transaction: TransactionDB) -> None:
    """Give an unlinked recurring transaction its own template. Caller commits."""
    if not transaction.is_recurring or transaction.recurring_template_id is not None:
        return
    template = create_template_for_transaction(db, transaction)
    transaction.recurring_template_id = template.id
    logger.info(f"Created recurring template {template.id} for ad hoc recurring transaction")


# ===== DATABASE OPERATIONS =====

def create_db_transaction(db: Session, transaction_data: TransactionCreate, account_ids: Optional[List[int]] = None) -> TransactionDB:
    """Create a transaction; a recurring one without a template gets a new template in the same commit"""

    _check_account(db, transaction_data.account_id, account_ids)
    transaction_type = TransactionType(transaction_data.transaction_type.value)
    check_category_type(db, transaction_data.category_id, transaction_type)
    if transaction_data.recurring_template_id is not None:
        _check_template(db, transaction_data.recurring_template_id, transaction_data.account_id)

    db_transaction = TransactionDB(
        account_id=transaction_data.account_id,
        category_id=transaction_data.category_id,
        transaction_type=transaction_type,
        amount=transaction_data.amount,
        currency=Currency(transaction_data.currency.value),
        transaction_date=transaction_data.transaction_date,
        month=month_start(transaction_data.transaction_date),
        description=transaction_data.description,
        is_recurring=transaction_data.is_recurring or transaction_data.recurring_template_id is not None,
        recurring_template_id=transaction_data.recurring_template_id,
    )

    try:
        _link_recurring_template(db, db_transaction)
        db.add(db_transaction)
        db.commit()
        db.refresh(db_transaction)
        return db_transaction
    except IntegrityError as e:
        db.rollback()
        raise _integrity_error(e)


def read_db_transaction(db: Session, transaction_id: int, account_ids: Optional[List[int]] = None) -> TransactionDB:
    query = db.query(TransactionDB).filter(TransactionDB.id == transaction_id)
    if account_ids is not None:
        query = query.filter(TransactionDB.account_id.in_(account_ids))
    transaction = query.first()
    if not transaction:
        raise NotFoundError("Transaction", transaction_id)
    return transaction


def read_db_month_transactions(db: Session, month_key: str, account_id: Optional[int] = None) -> List[TransactionDB]:
    query = db.query(TransactionDB).filter(TransactionDB.month == parse_month_key(month_key))
    if account_id is not None:
        query = query.filter(TransactionDB.account_id == account_id)
    return query.order_by(desc(TransactionDB.transaction_date), desc(TransactionDB.id)).all()


def update_db_transaction(db: Session, transaction_id: int, transaction_updates: TransactionUpdate,
                          account_ids: Optional[List[int]] = None) -> TransactionDB:
    """
    Update a transaction.

    Template linking on update: an explicit ``recurring_template_id`` wins, then
    the existing link; a recurring transaction with neither gets a new template.
    """
    db_transaction = read_db_transaction(db, transaction_id, account_ids)
    update_data = transaction_updates.model_dump(exclude_unset=True)

    for field, value in update_data.items():
        if field == 'transaction_type' and value is not None:
            setattr(db_transaction, field, TransactionType(value.value))
        elif field == 'currency' and value is not None:
            setattr(db_transaction, field, Currency(value.value))
        elif field == 'recurring_template_id':
            if value is not None:
                _check_template(db, value, db_transaction.account_id)
                db_transaction.recurring_template_id = value
        elif value is not None or field == 'description':
            setattr(db_transaction, field, value)

    check_category_type(db, db_transaction.category_id, db_transaction.transaction_type)
    db_transaction.month = month_start(db_transaction.transaction_date)
    db_transaction.updated_at = datetime.utcnow()

    try:
        _link_recurring_template(db, db_transaction)
        db.commit()
        db.refresh(db_transaction)
        return db_transaction
    except IntegrityError as e:
        db.rollback()
        raise _integrity_error(e)


def delete_db_transaction(db: Session, transaction_id: int, account_ids: Optional[List[int]] = None) -> None:
    db_transaction = read_db_transaction(db, transaction_id, account_ids)
    if db_transaction.shared_expense is not None:
        raise ConflictError("Cancel the shared expense before deleting this transaction")
    db.delete(db_transaction)
    db.commit()
