from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime, date
from decimal import Decimal
from enum import Enum

from ledger.money import round_money
from ledger.models.transaction import CurrencyEnum, TransactionResponse

# ===== TRANSACTION REQUEST PYDANTIC MODELS =====

class RequestStatusEnum(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class TransactionRequestCreate(BaseModel):
    from_account_id: int = Field(..., description="Account asking for the expense to be recorded")
    to_account_id: int = Field(..., description="Account that will record the expense on approval")
    category_id: int
    amount: Decimal = Field(..., gt=0)
    currency: CurrencyEnum = Field(default=CurrencyEnum.USD)
    request_date: date
    description: Optional[str] = Field(None, max_length=500)

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v: Decimal) -> Decimal:
        return round_money(v)


class TransactionRequestResponse(BaseModel):
    id: int
    from_account_id: int
    to_account_id: int
    category_id: int
    amount: Decimal
    currency: CurrencyEnum
    request_date: date
    description: Optional[str] = None
    status: RequestStatusEnum
    created_at: datetime
    decided_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RequestDecisionResponse(BaseModel):
    request: TransactionRequestResponse
    transaction: Optional[TransactionResponse] = None
