from decimal import Decimal, ROUND_HALF_UP
from typing import Union


CENT = Decimal("0.01")


def round_money(value: Union[Decimal, int, str]) -> Decimal:
    """Round an amount to 2 decimal places, halves away from zero."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)
