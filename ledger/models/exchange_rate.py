from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime, date
from decimal import Decimal

from ledger.models.transaction import CurrencyEnum

# ===== EXCHANGE RATE PYDANTIC MODELS =====

class ConvertRequest(BaseModel):
    amount: Decimal = Field(..., description="Amount in the source currency")
    from_currency: CurrencyEnum
    to_currency: CurrencyEnum
    rate_date: Optional[date] = Field(None, description="Rate date, defaults to today")


class ConvertResponse(BaseModel):
    amount: Decimal
    from_currency: CurrencyEnum
    to_currency: CurrencyEnum
    converted_amount: Decimal


class RefreshRatesResponse(BaseModel):
    success: bool
    updated_at: datetime
    error: Optional[str] = None


class LastUpdateResponse(BaseModel):
    last_update: Optional[datetime] = None
