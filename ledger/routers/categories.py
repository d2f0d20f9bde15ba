from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional

from ledger.crud import crud_category
from ledger.models import category as category_models
from ledger.models.transaction import TransactionTypeEnum
from ledger.db.core import get_db, TransactionType

router = APIRouter(
    prefix="/categories",
    tags=["categories"],
)


@router.get("/", response_model=List[category_models.CategoryResponse])
def read_categories(
    transaction_type: Optional[TransactionTypeEnum] = None,
    include_archived: bool = False,
    db: Session = Depends(get_db)
):
    """
    Retrieve all categories, optionally only INCOME or EXPENSE ones.
    """
    type_filter = TransactionType(transaction_type.value) if transaction_type else None
    return crud_category.read_db_categories(db=db, transaction_type=type_filter, include_archived=include_archived)


@router.get("/{category_id}", response_model=category_models.CategoryResponse)
def read_category(
    category_id: int,
    db: Session = Depends(get_db)
):
    return crud_category.read_db_category(db=db, category_id=category_id)
