from pydantic import BaseModel

from ledger.models.transaction import TransactionTypeEnum


class CategoryResponse(BaseModel):
    id: int
    name: str
    transaction_type: TransactionTypeEnum
    is_archived: bool

    class Config:
        from_attributes = True
