from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict
from datetime import datetime
from decimal import Decimal
from enum import Enum

from ledger.models.transaction import CurrencyEnum

# ===== EXPENSE SHARING PYDANTIC MODELS =====

class SplitTypeEnum(str, Enum):
    EQUAL = "EQUAL"
    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"


class PaymentStatusEnum(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    DECLINED = "DECLINED"


class SplitParticipant(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    share_percentage: Optional[Decimal] = Field(None, ge=0, le=100)
    share_amount: Optional[Decimal] = Field(None, ge=0)

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: str) -> str:
        return v.strip().lower()


class ComputeSharesRequest(BaseModel):
    split_type: SplitTypeEnum
    total_amount: Decimal = Field(..., gt=0)
    participants: List[SplitParticipant] = Field(default_factory=list)
    valid_emails: List[str] = Field(default_factory=list)


class ShareResult(BaseModel):
    amount: Decimal
    percentage: Optional[Decimal] = None


class ComputeSharesResponse(BaseModel):
    shares: Dict[str, ShareResult]


class ShareExpenseCreate(BaseModel):
    transaction_id: int
    split_type: SplitTypeEnum = SplitTypeEnum.EQUAL
    participants: List[SplitParticipant] = Field(..., min_length=1)
    description: Optional[str] = Field(None, max_length=500)


class ExpenseParticipantResponse(BaseModel):
    id: int
    participant_id: int
    share_amount: Decimal
    share_percentage: Optional[Decimal] = None
    status: PaymentStatusEnum
    paid_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SharedExpenseResponse(BaseModel):
    id: int
    transaction_id: int
    owner_id: int
    split_type: SplitTypeEnum
    total_amount: Decimal
    currency: CurrencyEnum
    description: Optional[str] = None
    created_at: datetime
    participants: List[ExpenseParticipantResponse] = []

    class Config:
        from_attributes = True


class UserSummary(BaseModel):
    id: int
    email: str
    display_name: Optional[str] = None

    class Config:
        from_attributes = True


class SharedExpenseSummary(BaseModel):
    id: int
    transaction_id: int
    split_type: SplitTypeEnum
    total_amount: Decimal
    currency: CurrencyEnum
    description: Optional[str] = None
    created_at: datetime
    owner: UserSummary

    class Config:
        from_attributes = True


class ParticipationResponse(ExpenseParticipantResponse):
    """A share seen from the participant's side"""
    shared_expense: SharedExpenseSummary


class SettlementBalanceResponse(BaseModel):
    user: UserSummary
    currency: CurrencyEnum
    you_owe: Decimal
    they_owe: Decimal
    net_balance: Decimal = Field(..., description="Positive when the other user owes you")

    class Config:
        from_attributes = True
