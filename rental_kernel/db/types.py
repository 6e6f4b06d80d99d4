"""
Module: rental_kernel.db.types
Responsibility: Money coercion and rounding helpers.  Every amount that
    enters the kernel (contract rent, invoice amount, payment amount, balance
    reset) passes through ``to_money`` so that binary floating point never
    reaches an aggregate-sum-then-compare.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/ and selectors/.

CRITICAL: No floats anywhere in the kernel.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated

from sqlalchemy import Numeric

# 38 digits total, 9 decimal places
Money = Annotated[Decimal, Numeric(38, 9)]

MONEY_DECIMAL_PLACES = 9
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")


def to_money(value: Decimal | str | int) -> Decimal:
    """
    Coerce an incoming amount to Decimal.

    Accepts Decimal, int and decimal strings ("1000000", "12.50").

    Raises:
        TypeError: If value is a float (or bool).
        ValueError: If value is not a finite decimal number.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(
            f"Monetary amounts must be Decimal, int or str, not {type(value).__name__}"
        )
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ValueError(f"Invalid monetary amount: {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"Invalid monetary amount: {value!r}")
    return result


def to_positive_money(value: Decimal | str | int, field: str = "amount") -> Decimal:
    """Coerce and require a strictly positive amount."""
    result = to_money(value)
    if result <= ZERO:
        raise ValueError(f"{field} must be positive, got {result}")
    return result


def round_money(
    value: Decimal,
    decimal_places: int = 2,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to specified decimal places.

    Only used for presentation (notification payloads); stored and
    compared amounts are never rounded.
    """
    quantize_str = "0." + "0" * decimal_places if decimal_places else "1"
    return value.quantize(Decimal(quantize_str), rounding=rounding)
