from sqlalchemy.orm import Session
from typing import Optional, List

from ledger.db.core import CategoryDB, TransactionType
from ledger.errors import NotFoundError, ValidationError


def read_db_category(db: Session, category_id: int) -> CategoryDB:
    category = db.query(CategoryDB).filter(CategoryDB.id == category_id).first()
    if not category:
        raise NotFoundError("Category", category_id)
    return category


def read_db_categories(db: Session, transaction_type: Optional[TransactionType] = None,
                       include_archived: bool = False) -> List[CategoryDB]:
    query = db.query(CategoryDB)
    if transaction_type is not None:
        query = query.filter(CategoryDB.transaction_type == transaction_type)
    if not include_archived:
        query = query.filter(CategoryDB.is_archived.is_(False))
    return query.order_by(CategoryDB.name).all()


def check_category_type(db: Session, category_id: int, transaction_type: TransactionType) -> CategoryDB:
    """Load a category and make sure it is meant for ``transaction_type``"""
    category = read_db_category(db, category_id)
    if category.transaction_type != transaction_type:
        raise ValidationError.field(
            "category_id", f"Category '{category.name}' is for {category.transaction_type.value.lower()} transactions"
        )
    return category
