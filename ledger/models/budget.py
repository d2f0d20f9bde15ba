from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime, date
from decimal import Decimal

from ledger.money import round_money
from ledger.models.recurring import MONTH_KEY_PATTERN
from ledger.models.transaction import CurrencyEnum

# ===== BUDGET PYDANTIC MODELS =====

class BudgetUpsert(BaseModel):
    account_id: int = Field(..., description="The ID of the account")
    category_id: int = Field(..., description="The ID of the category")
    month: str = Field(..., pattern=MONTH_KEY_PATTERN, description="Budget month, YYYY-MM")
    planned: Decimal = Field(..., ge=0, description="Planned amount for the month")
    currency: CurrencyEnum = Field(default=CurrencyEnum.USD)
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator('planned')
    @classmethod
    def validate_planned(cls, v: Decimal) -> Decimal:
        return round_money(v)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v else v


class BudgetResponse(BaseModel):
    id: int
    account_id: int
    category_id: int
    month: date
    planned: Decimal
    currency: CurrencyEnum
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
