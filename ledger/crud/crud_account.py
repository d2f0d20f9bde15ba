from sqlalchemy.orm import Session
from typing import Optional, List

from ledger.db.core import AccountDB
from ledger.errors import NotFoundError


def read_db_account(db: Session, account_id: int, user_id: Optional[int] = None) -> AccountDB:
    query = db.query(AccountDB).filter(AccountDB.id == account_id)
    if user_id is not None:
        query = query.filter(AccountDB.user_id == user_id)
    account = query.first()
    if not account:
        raise NotFoundError("Account", account_id)
    return account


def read_db_accounts(db: Session, user_id: Optional[int] = None) -> List[AccountDB]:
    query = db.query(AccountDB)
    if user_id is not None:
        query = query.filter(AccountDB.user_id == user_id)
    return query.order_by(AccountDB.name).all()


def read_user_account_ids(db: Session, user_id: int) -> List[int]:
    """Account ids the acting user may act for"""
    return [row.id for row in db.query(AccountDB.id).filter(AccountDB.user_id == user_id).all()]
