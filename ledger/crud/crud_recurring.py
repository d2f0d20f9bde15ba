from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy import or_
from dataclasses import dataclass
from typing import Optional, List
from datetime import date, datetime

from ledger.db.core import RecurringTemplateDB, TransactionDB, AccountDB, TransactionType, Currency
from ledger.crud.crud_category import check_category_type
from ledger.errors import NotFoundError, ConflictError, ValidationError
from ledger.models.recurring import RecurringTemplateUpsert
from ledger.months import parse_month_key, month_start, clamp_day
from ledger.logging_config import get_logger

logger = get_logger(__name__)

APPLY_ATTEMPTS = 2


@dataclass
class ApplyRecurringResult:
    created: int = 0
    skipped: int = 0


# ===== TEMPLATE OPERATIONS =====

def read_db_template(db: Session, template_id: int, account_ids: Optional[List[int]] = None) -> RecurringTemplateDB:
    query = db.query(RecurringTemplateDB).filter(
        RecurringTemplateDB.id == template_id,
        RecurringTemplateDB.deleted_at.is_(None),
    )
    if account_ids is not None:
        query = query.filter(RecurringTemplateDB.account_id.in_(account_ids))
    template = query.first()
    if not template:
        raise NotFoundError("Recurring template", template_id)
    return template


def read_db_templates(db: Session, account_id: Optional[int] = None, active_only: bool = False,
                      account_ids: Optional[List[int]] = None) -> List[RecurringTemplateDB]:
    query = db.query(RecurringTemplateDB).filter(RecurringTemplateDB.deleted_at.is_(None))
    if account_id is not None:
        query = query.filter(RecurringTemplateDB.account_id == account_id)
    if account_ids is not None:
        query = query.filter(RecurringTemplateDB.account_id.in_(account_ids))
    if active_only:
        query = query.filter(RecurringTemplateDB.is_active.is_(True))
    return query.order_by(RecurringTemplateDB.day_of_month, RecurringTemplateDB.id).all()


def upsert_db_template(db: Session, template_data: RecurringTemplateUpsert, account_ids: Optional[List[int]] = None) -> RecurringTemplateDB:
    """Create a template, or update it in place when ``id`` is given"""

    if account_ids is not None and template_data.account_id not in account_ids:
        raise NotFoundError("Account", template_data.account_id)
    if not db.query(AccountDB).filter(AccountDB.id == template_data.account_id).first():
        raise NotFoundError("Account", template_data.account_id)
    transaction_type = TransactionType(template_data.transaction_type.value)
    check_category_type(db, template_data.category_id, transaction_type)

    start = parse_month_key(template_data.start_month)
    end = parse_month_key(template_data.end_month) if template_data.end_month else None

    if template_data.id is not None:
        template = read_db_template(db, template_data.id, account_ids)
    else:
        template = RecurringTemplateDB()
        db.add(template)

    template.account_id = template_data.account_id
    template.category_id = template_data.category_id
    template.transaction_type = transaction_type
    template.amount = template_data.amount
    template.currency = Currency(template_data.currency.value)
    template.day_of_month = template_data.day_of_month
    template.description = template_data.description
    template.start_month = start
    template.end_month = end
    template.is_active = template_data.is_active

    try:
        db.commit()
        db.refresh(template)
        return template
    except IntegrityError:
        db.rollback()
        raise ValidationError.field("template", "Recurring template violates a database constraint")


def toggle_db_template(db: Session, template_id: int, is_active: bool, account_ids: Optional[List[int]] = None) -> RecurringTemplateDB:
    template = read_db_template(db, template_id, account_ids)
    template.is_active = is_active
    db.commit()
    db.refresh(template)
    logger.info(f"Recurring template {template_id} {'activated' if is_active else 'paused'}")
    return template


def delete_db_template(db: Session, template_id: int, account_ids: Optional[List[int]] = None) -> None:
    """Soft delete; transactions already generated from the template are kept"""
    template = read_db_template(db, template_id, account_ids)
    template.deleted_at = datetime.utcnow()
    template.is_active = False
    db.commit()
    logger.info(f"Recurring template {template_id} deleted")


def create_template_for_transaction(db: Session, transaction: TransactionDB) -> RecurringTemplateDB:
    """
    Build a template from an ad hoc recurring transaction.

    The template is added and flushed but not committed, so the caller can link
    the transaction and commit both together.
    """
    template = RecurringTemplateDB(
        account_id=transaction.account_id,
        category_id=transaction.category_id,
        transaction_type=transaction.transaction_type,
        amount=transaction.amount,
        currency=transaction.currency,
        day_of_month=transaction.transaction_date.day,
        description=transaction.description,
        start_month=month_start(transaction.transaction_date),
        end_month=None,
        is_active=True,
    )
    db.add(template)
    db.flush()
    return template


# ===== GENERATION =====

def _templates_in_window(db: Session, month: date, account_id: int, template_ids: Optional[List[int]] = None) -> List[RecurringTemplateDB]:
    query = db.query(RecurringTemplateDB).filter(
        RecurringTemplateDB.account_id == account_id,
        RecurringTemplateDB.is_active.is_(True),
        RecurringTemplateDB.deleted_at.is_(None),
        RecurringTemplateDB.start_month <= month,
        or_(RecurringTemplateDB.end_month.is_(None), RecurringTemplateDB.end_month >= month),
    )
    if template_ids:
        query = query.filter(RecurringTemplateDB.id.in_(template_ids))
    return query.order_by(RecurringTemplateDB.id).all()


def _month_transaction_exists(db: Session, template_id: int, month: date) -> bool:
    return db.query(TransactionDB.id).filter(
        TransactionDB.recurring_template_id == template_id,
        TransactionDB.month == month,
    ).first() is not None


def _transaction_from_template(template: RecurringTemplateDB, month: date) -> TransactionDB:
    return TransactionDB(
        account_id=template.account_id,
        category_id=template.category_id,
        transaction_type=template.transaction_type,
        amount=template.amount,
        currency=template.currency,
        transaction_date=clamp_day(month, template.day_of_month),
        month=month,
        description=template.description,
        is_recurring=True,
        recurring_template_id=template.id,
    )


def apply_recurring_templates(db: Session, month_key: str, account_id: int, template_ids: Optional[List[int]] = None) -> ApplyRecurringResult:
    """
    Generate this month's transactions for the account's active templates.

    Templates that already produced a transaction for the month are skipped, so
    running this twice for the same month creates nothing the second time.
    """
    month = parse_month_key(month_key)

    for attempt in range(1, APPLY_ATTEMPTS + 1):
        result = ApplyRecurringResult()
        templates = _templates_in_window(db, month, account_id, template_ids)

        for template in templates:
            if _month_transaction_exists(db, template.id, month):
                logger.debug(f"Template {template.id} already has a transaction for {month_key}")
                result.skipped += 1
                continue
            db.add(_transaction_from_template(template, month))
            result.created += 1

        try:
            db.commit()
            break
        except IntegrityError:
            # Another run inserted the same (template, month) between our check
            # and commit; the retry sees its rows and counts them as skipped
            db.rollback()
            if attempt == APPLY_ATTEMPTS:
                raise ConflictError(f"Recurring transactions for {month_key} are being generated concurrently")
            logger.info(f"Concurrent recurring generation for account {account_id} in {month_key}, retrying")

    logger.info(
        f"Applied recurring templates for account {account_id} in {month_key}: "
        f"{result.created} created, {result.skipped} skipped"
    )
    return result


def generate_template_transaction(db: Session, template_id: int, month_key: str, account_ids: Optional[List[int]] = None) -> TransactionDB:
    """Explicitly generate one template's transaction for a month; refuses duplicates"""

    month = parse_month_key(month_key)
    template = read_db_template(db, template_id, account_ids)

    if template.start_month > month or (template.end_month is not None and template.end_month < month):
        raise ValidationError.field("month", f"Template is not scheduled for {month_key}")

    if _month_transaction_exists(db, template.id, month):
        raise ConflictError(f"A transaction for {month_key} already exists for this template")

    transaction = _transaction_from_template(template, month)
    try:
        db.add(transaction)
        db.commit()
        db.refresh(transaction)
        return transaction
    except IntegrityError:
        db.rollback()
        raise ConflictError(f"A transaction for {month_key} already exists for this template")
