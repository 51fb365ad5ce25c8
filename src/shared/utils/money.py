from decimal import ROUND_HALF_DOWN, ROUND_HALF_UP, Decimal
from typing import Union

# Type alias for money values
Money = Decimal

ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def round_money(value: Union[Decimal, float, int, str]) -> Decimal:
    """
    Round monetary value to 2 decimal places using ROUND_HALF_UP.

    Examples:
        >>> round_money(10.125)
        Decimal('10.13')
        >>> round_money(10.124)
        Decimal('10.12')
        >>> round_money("10.115")
        Decimal('10.12')
    """
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    if value < 0:
        return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_DOWN)
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def percent_of(amount: Union[Decimal, int, str], percent: Union[Decimal, int, str]) -> Decimal:
    """
    Return `percent`% of `amount`, rounded to money precision.

    Examples:
        >>> percent_of(Decimal("1500"), 10)
        Decimal('150.00')
        >>> percent_of(Decimal("1350"), 27)
        Decimal('364.50')
    """
    if not isinstance(amount, Decimal):
        amount = Decimal(str(amount))
    if not isinstance(percent, Decimal):
        percent = Decimal(str(percent))
    return round_money(amount * percent / HUNDRED)
