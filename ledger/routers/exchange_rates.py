from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ledger.db.core import get_db, Currency
from ledger.models import exchange_rate as rate_models
from ledger.routers.dependencies import get_conversion_service
from ledger.services.exchange_rates import ConversionService

router = APIRouter(
    prefix="/exchange-rates",
    tags=["exchange-rates"],
)


@router.post("/convert", response_model=rate_models.ConvertResponse)
def convert_amount(
    request: rate_models.ConvertRequest,
    conversion: ConversionService = Depends(get_conversion_service)
):
    """
    Convert an amount between two supported currencies.
    """
    converted = conversion.convert_amount(
        request.amount,
        Currency(request.from_currency.value),
        Currency(request.to_currency.value),
        request.rate_date,
    )
    return rate_models.ConvertResponse(
        amount=request.amount,
        from_currency=request.from_currency,
        to_currency=request.to_currency,
        converted_amount=converted,
    )


@router.post("/refresh", response_model=rate_models.RefreshRatesResponse)
def refresh_rates(conversion: ConversionService = Depends(get_conversion_service)):
    """
    Fetch today's rates for every supported base currency.
    """
    result = conversion.refresh_rates()
    return rate_models.RefreshRatesResponse(success=result.success, updated_at=result.updated_at, error=result.error)


@router.get("/last-update", response_model=rate_models.LastUpdateResponse)
def last_update(
    db: Session = Depends(get_db),
    conversion: ConversionService = Depends(get_conversion_service)
):
    return rate_models.LastUpdateResponse(last_update=conversion.last_update_time(db))
