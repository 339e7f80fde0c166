# Overview: Fixed-point money helpers; amounts live as integer cents and
# cross the API boundary as two-decimal strings.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal("0.01")


def to_cents(value) -> int:
    """
    Parse a money value ("12.5", "12.50", 12.5, 12) into integer cents.

    Rounds half-up to the nearest cent. Raises ValueError for anything that
    is not a finite number (booleans included) or is too large to
    represent in cents.
    """
    if value is None or isinstance(value, bool):
        raise ValueError("not a number")
    if isinstance(value, Decimal):
        amount = value
    else:
        text = str(value).strip()
        if not text:
            raise ValueError("not a number")
        try:
            amount = Decimal(text)
        except InvalidOperation:
            raise ValueError("not a number")
    if not amount.is_finite():
        raise ValueError("not a number")
    try:
        # Values too large for the decimal context ("1e30") cannot be quantized
        cents = amount.quantize(CENT, rounding=ROUND_HALF_UP) * 100
    except InvalidOperation:
        raise ValueError("amount out of range")
    return int(cents.to_integral_value())


def format_cents(cents: int | None) -> str | None:
    """12345 -> "123.45"; None passes through."""
    if cents is None:
        return None
    return str((Decimal(cents) / 100).quantize(CENT))
