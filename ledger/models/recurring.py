from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime, date
from decimal import Decimal

from ledger.money import round_money
from ledger.models.transaction import CurrencyEnum, TransactionTypeEnum

# ===== RECURRING TEMPLATE PYDANTIC MODELS =====

MONTH_KEY_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


class RecurringTemplateUpsert(BaseModel):
    id: Optional[int] = Field(None, description="Existing template to update; omitted to create")
    account_id: int = Field(..., description="Account the template generates into")
    category_id: int = Field(..., description="Category of generated transactions")
    transaction_type: TransactionTypeEnum = Field(..., description="INCOME or EXPENSE")
    amount: Decimal = Field(..., gt=0, description="Amount of each generated transaction")
    currency: CurrencyEnum = Field(default=CurrencyEnum.USD)
    day_of_month: int = Field(..., ge=1, le=31, description="Day to post on; clamped to short months")
    description: Optional[str] = Field(None, max_length=500)
    start_month: str = Field(..., pattern=MONTH_KEY_PATTERN, description="First month, YYYY-MM")
    end_month: Optional[str] = Field(None, pattern=MONTH_KEY_PATTERN, description="Last month, YYYY-MM")
    is_active: bool = True

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v: Decimal) -> Decimal:
        return round_money(v)

    @field_validator('end_month')
    @classmethod
    def validate_end_month(cls, v: Optional[str], info) -> Optional[str]:
        # Keys are zero padded so string order is month order
        if v and 'start_month' in info.data and v < info.data['start_month']:
            raise ValueError('end_month must not be before start_month')
        return v


class RecurringTemplateResponse(BaseModel):
    id: int
    account_id: int
    category_id: int
    transaction_type: TransactionTypeEnum
    amount: Decimal
    currency: CurrencyEnum
    day_of_month: int
    description: Optional[str] = None
    start_month: date
    end_month: Optional[date] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class RecurringToggle(BaseModel):
    is_active: bool


class ApplyRecurringRequest(BaseModel):
    month: str = Field(..., pattern=MONTH_KEY_PATTERN, description="Month to generate, YYYY-MM")
    account_id: int
    template_ids: Optional[List[int]] = Field(None, description="Only apply these templates")


class ApplyRecurringResponse(BaseModel):
    created: int
    skipped: int
