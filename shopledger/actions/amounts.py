"""Money and quantity normalization.

All monetary values are kept as `Decimal` rounded to two places; quantities are rounded to three
places (catalog items may be sold by weight or volume, e.g. 2.5 kg). Values arriving from the
classifier may be ints, floats or numeric strings.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

AMOUNT_PLACES = Decimal("0.01")
QUANTITY_PLACES = Decimal("0.001")

# Largest magnitudes the ledger columns hold: NUMERIC(14, 2) money, NUMERIC(14, 3) quantities.
MAX_AMOUNT = Decimal("999999999999.99")
MAX_QUANTITY = Decimal("99999999999.999")


class AmountError(ValueError):
    """Raised when a value cannot be used as an amount or quantity."""


def to_decimal(value: Any) -> Decimal:
    """Convert a decoded JSON value into a finite `Decimal`.

    Raises:
        AmountError: If the value is not numeric (booleans included) or not finite.
    """

    if isinstance(value, bool) or value is None:
        raise AmountError("value must be a number")

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        # `str()` keeps the short float repr (0.1 -> "0.1") instead of the binary expansion.
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip().replace(",", ""))
        except InvalidOperation as exc:
            raise AmountError(f"value {value!r} is not a number") from exc
    else:
        raise AmountError("value must be a number")

    if not result.is_finite():
        raise AmountError("value must be finite")
    return result


def _bounded(value: Any, places: Decimal, limit: Decimal, label: str) -> Decimal:
    number = to_decimal(value)
    if abs(number) > limit:
        raise AmountError(f"{label} must not exceed {limit}")
    try:
        return number.quantize(places, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise AmountError(f"{label} is out of range") from exc


def round_amount(value: Any) -> Decimal:
    """Round a monetary value to two decimal places (half-up).

    Raises:
        AmountError: If the value is not a finite number or exceeds `MAX_AMOUNT`.
    """

    return _bounded(value, AMOUNT_PLACES, MAX_AMOUNT, "amount")


def round_quantity(value: Any) -> Decimal:
    """Round a quantity to three decimal places (half-up); magnitude is capped at `MAX_QUANTITY`."""

    return _bounded(value, QUANTITY_PLACES, MAX_QUANTITY, "quantity")


def positive_amount(value: Any) -> Decimal:
    """Return a rounded, strictly positive monetary value."""

    amount = round_amount(value)
    if amount <= 0:
        raise AmountError("amount must be greater than zero")
    return amount


def positive_quantity(value: Any) -> Decimal:
    """Return a rounded, strictly positive quantity."""

    quantity = round_quantity(value)
    if quantity <= 0:
        raise AmountError("quantity must be greater than zero")
    return quantity


def format_number(value: Decimal) -> str:
    """Render a value for user-facing text: `1200.00` -> `1200`, `2.500` -> `2.5`."""

    if value == value.to_integral_value():
        return str(int(value))
    return format(value.normalize(), "f")
