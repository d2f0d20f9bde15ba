from pydantic import BaseModel
from enum import Enum

from ledger.models.transaction import CurrencyEnum

# ===== ACCOUNT PYDANTIC MODELS =====

class AccountTypeEnum(str, Enum):
    SELF = "SELF"
    PARTNER = "PARTNER"
    JOINT = "JOINT"
    OTHER = "OTHER"


class AccountResponse(BaseModel):
    id: int
    user_id: int
    name: str
    account_type: AccountTypeEnum
    preferred_currency: CurrencyEnum

    class Config:
        from_attributes = True
