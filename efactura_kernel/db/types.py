"""
Module: efactura_kernel.db.types
Responsibility: The sanctioned rounding helpers for monetary values.

Invariants enforced:
    - Line totals and VAT amounts are rounded with ROUND_HALF_UP to the
      currency precision (2 decimals for every currency the Authority
      accepts).
    - No floats: helpers accept Decimal, int or str only.
"""

from decimal import ROUND_HALF_UP, Decimal

CURRENCY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

_QUANTUM = Decimal(1).scaleb(-CURRENCY_DECIMAL_PLACES)


def to_decimal(value: Decimal | int | str | None) -> Decimal:
    """Coerce to Decimal; None becomes zero."""
    if value is None:
        return Decimal("0")
    if isinstance(value, float):
        raise TypeError("float amounts are not accepted; pass str or Decimal")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value).strip())


def round_money(value: Decimal | int | str) -> Decimal:
    """Round to currency precision with ROUND_HALF_UP."""
    return to_decimal(value).quantize(_QUANTUM, rounding=DEFAULT_ROUNDING)


def compute_line_amounts(
    quantity: Decimal | str,
    unit_price: Decimal | str,
    vat_rate: Decimal | str,
    discount: Decimal | str | None = None,
) -> tuple[Decimal, Decimal]:
    """
    Return ``(line_total, vat_amount)`` for one document line.

    ``line_total = quantity * unit_price - discount`` and
    ``vat_amount = round(line_total * vat_rate / 100)``.
    """
    line_total = round_money(
        to_decimal(quantity) * to_decimal(unit_price) - to_decimal(discount)
    )
    vat_amount = round_money(line_total * to_decimal(vat_rate) / Decimal("100"))
    return line_total, vat_amount
