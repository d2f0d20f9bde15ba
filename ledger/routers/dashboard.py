from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional

from ledger.db.core import get_db, Currency
from ledger.models.dashboard import DashboardData
from ledger.models.transaction import CurrencyEnum
from ledger.routers.dependencies import get_acting_account_ids, get_conversion_service
from ledger.services.dashboard import build_dashboard
from ledger.services.exchange_rates import ConversionService

router = APIRouter(
    prefix="/dashboard",
    tags=["dashboard"],
)


@router.get("/", response_model=DashboardData)
def read_dashboard(
    month: str,
    account_id: Optional[int] = None,
    preferred_currency: Optional[CurrencyEnum] = None,
    db: Session = Depends(get_db),
    conversion: ConversionService = Depends(get_conversion_service),
    account_ids: List[int] = Depends(get_acting_account_ids)
):
    """
    Monthly summary: actual vs planned totals, budget progress, history and pending requests.
    """
    return build_dashboard(
        db=db,
        month_key_value=month,
        account_id=account_id,
        preferred_currency=Currency(preferred_currency.value) if preferred_currency else None,
        conversion=conversion,
        account_ids=account_ids,
    )
