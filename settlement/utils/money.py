from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

CENTS = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """Parse a JSON number or numeric string into a Decimal.

    Floats go through ``str`` so 0.1 stays 0.1. Raises ``ValueError`` for
    anything that is not a finite number.
    """
    if isinstance(value, bool) or value is None:
        raise ValueError(f"not a number: {value!r}")
    if isinstance(value, Decimal):
        d = value
    else:
        try:
            d = Decimal(str(value).strip())
        except InvalidOperation as e:
            raise ValueError(f"not a number: {value!r}") from e
    if not d.is_finite():
        raise ValueError(f"not a finite number: {value!r}")
    return d


def quantize_cents(amount: Decimal) -> Decimal:
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def to_wire(amount: Decimal) -> float:
    # The API takes JSON numbers
    return float(quantize_cents(amount))
