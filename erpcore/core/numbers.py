from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

QUANTUM = Decimal("0.000001")
ZERO = Decimal("0")


def to_decimal(value: Decimal | int | str | float) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize(value: Decimal | int | str | float) -> Decimal:
    return to_decimal(value).quantize(QUANTUM, rounding=ROUND_HALF_UP)
