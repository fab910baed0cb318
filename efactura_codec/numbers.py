"""Fixed-point rendering and parsing of numeric XML values."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from efactura_kernel.exceptions import CodecError

_TWO_PLACES = Decimal("0.01")


def format_decimal(value: Decimal | int | str) -> str:
    """
    Render a decimal without trailing fractional zeros.

    ``"2500.00"`` -> ``"2500"``, ``"25000.09"`` -> ``"25000.09"``,
    ``"1.50"`` -> ``"1.5"``.  Never uses exponent notation.
    """
    text = format(Decimal(str(value)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    if text in ("-0", ""):
        return "0"
    return text


def format_amount(value: Decimal | int | str, places: int = 2) -> str:
    """Render a monetary amount with exactly ``places`` decimals (ROUND_HALF_UP)."""
    quantum = _TWO_PLACES if places == 2 else Decimal(1).scaleb(-places)
    return format(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP), "f")


def parse_decimal(text: str | None, default: Decimal | None = Decimal("0")) -> Decimal | None:
    """
    Parse an XML numeric value; blank or malformed input yields ``default``.

    ``NaN`` and infinities raise :class:`CodecError`.
    """
    if text is None:
        return default
    text = text.strip()
    if not text:
        return default
    try:
        value = Decimal(text)
    except InvalidOperation:
        return default
    if not value.is_finite():
        raise CodecError(f"Non-finite numeric value: {text!r}")
    return value
