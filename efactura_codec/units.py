"""
Unit-of-measure mapping between local unit names and UN/ECE Rec 20 codes.

The table is fixed.  Unknown values fall back to "piece" in both directions;
that loss is accepted rather than treated as an error.
"""

from __future__ import annotations

DEFAULT_UNIT = "buc"
DEFAULT_UNIT_CODE = "H87"

UNIT_TO_CODE: dict[str, str] = {
    "buc": "H87",
    "bucata": "H87",
    "bucati": "H87",
    "kg": "KGM",
    "kilogram": "KGM",
    "l": "LTR",
    "litru": "LTR",
    "litri": "LTR",
    "m": "MTR",
    "metru": "MTR",
    "metri": "MTR",
    "ora": "HUR",
    "ore": "HUR",
    "h": "HUR",
    "zi": "DAY",
    "zile": "DAY",
    "luna": "MON",
    "luni": "MON",
    "set": "SET",
    "pachet": "PK",
}

CODE_TO_UNIT: dict[str, str] = {
    "H87": "buc",
    "C62": "buc",
    "KGM": "kg",
    "LTR": "l",
    "MTR": "m",
    "HUR": "ora",
    "DAY": "zi",
    "MON": "luna",
    "SET": "set",
    "PK": "pachet",
}


def to_unit_code(unit: str | None) -> str:
    """Local unit name -> UN/ECE code (unknown -> H87)."""
    return UNIT_TO_CODE.get((unit or "").strip().lower(), DEFAULT_UNIT_CODE)


def from_unit_code(code: str | None) -> str:
    """UN/ECE code -> local unit name (unknown -> buc)."""
    return CODE_TO_UNIT.get((code or "").strip().upper(), DEFAULT_UNIT)
