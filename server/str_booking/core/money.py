"""Money rounding helpers.

All monetary arithmetic uses ``Decimal`` and rounds half-up to cents at every
intermediate step, so totals match what guests were quoted to the cent.
"""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_decimal(value: Decimal | int | float | str | None) -> Decimal:
    """Coerce a numeric value to Decimal without going through binary floats."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def round_money(value: Decimal | int | float | str) -> Decimal:
    """Round to two decimal places, half-up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_minor_units(value: Decimal | int | float | str) -> int:
    """Convert a money amount to integer cents for gateway APIs."""
    return int((round_money(value) * 100).to_integral_value(rounding=ROUND_HALF_UP))
