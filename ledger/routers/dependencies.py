from functools import lru_cache
from typing import List

from fastapi import Depends
from sqlalchemy.orm import Session

from ledger.crud.crud_account import read_user_account_ids
from ledger.db.core import get_db
from ledger.services.exchange_rates import ConversionService


# This is a placeholder for a proper authentication dependency.
def get_current_user_id() -> int:
    return 1


def get_acting_account_ids(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id)
) -> List[int]:
    """Accounts the current user is allowed to act for"""
    return read_user_account_ids(db, user_id)


@lru_cache
def get_conversion_service() -> ConversionService:
    # One instance per process so concurrent requests share in-flight rate fetches
    return ConversionService()
