from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime, date
from decimal import Decimal
from enum import Enum

from ledger.money import round_money

# ===== TRANSACTION PYDANTIC MODELS =====

class CurrencyEnum(str, Enum):
    USD = "USD"
    EUR = "EUR"
    ILS = "ILS"


class TransactionTypeEnum(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class TransactionCreate(BaseModel):
    account_id: int = Field(..., description="Account ID for this transaction")
    category_id: int = Field(..., description="The ID of the transaction's category")
    transaction_type: TransactionTypeEnum = Field(..., description="INCOME or EXPENSE")
    amount: Decimal = Field(..., gt=0, description="Transaction amount, always positive")
    currency: CurrencyEnum = Field(default=CurrencyEnum.USD, description="Currency of the amount")
    transaction_date: date = Field(..., description="Date of the transaction")
    description: Optional[str] = Field(None, max_length=500, description="Transaction description")
    is_recurring: bool = Field(default=False, description="Repeats monthly; links to a recurring template")
    recurring_template_id: Optional[int] = Field(None, description="Template this transaction belongs to")

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v: Decimal) -> Decimal:
        return round_money(v)

    @field_validator('description')
    @classmethod
    def validate_description(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v else v


class TransactionUpdate(BaseModel):
    category_id: Optional[int] = None
    transaction_type: Optional[TransactionTypeEnum] = None
    amount: Optional[Decimal] = Field(None, gt=0)
    currency: Optional[CurrencyEnum] = None
    transaction_date: Optional[date] = None
    description: Optional[str] = Field(None, max_length=500)
    is_recurring: Optional[bool] = None
    recurring_template_id: Optional[int] = None

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        return round_money(v) if v is not None else v

    @field_validator('description')
    @classmethod
    def validate_description(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v else v


class TransactionResponse(BaseModel):
    id: int
    account_id: int
    category_id: int
    transaction_type: TransactionTypeEnum
    amount: Decimal
    currency: CurrencyEnum
    transaction_date: date
    month: date
    description: Optional[str] = None
    is_recurring: bool
    recurring_template_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TransactionMonthList(BaseModel):
    month: str = Field(..., description="Month key, YYYY-MM")
    transactions: List[TransactionResponse]
