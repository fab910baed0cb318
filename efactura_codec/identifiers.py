"""
Tax identifiers, personal identifiers and county codes.

Romanian identifiers come in three shapes:

* CUI/CIF -- 2 to 10 digits, optionally prefixed with ``RO`` for VAT payers;
* CNP -- 13 digits starting with 1-9 (a private individual);
* placeholders -- empty or all zeros, used for individuals without a CNP.

Party kind (company vs individual) is always derived from these patterns.
"""

from __future__ import annotations

import re
from enum import Enum

_CNP_RE = re.compile(r"^[1-9]\d{12}$")
_CUI_RE = re.compile(r"^[1-9]\d{1,9}$")
_PREFIX_RE = re.compile(r"^RO", re.IGNORECASE)

PLACEHOLDER_PERSONAL_ID = "0000000000000"


class IdentifierKind(str, Enum):
    COMPANY = "company"
    PERSONAL = "personal"  # CNP
    PLACEHOLDER = "placeholder"


def normalize_tax_id(value: str | int | None) -> str | None:
    """Strip whitespace and a leading ``RO`` prefix; empty becomes None."""
    if value is None:
        return None
    text = re.sub(r"\s+", "", str(value))
    text = _PREFIX_RE.sub("", text)
    return text or None


def is_placeholder(value: str | None) -> bool:
    normalized = normalize_tax_id(value)
    return normalized is None or set(normalized) == {"0"}


def is_personal_id(value: str | None) -> bool:
    normalized = normalize_tax_id(value)
    return bool(normalized and _CNP_RE.match(normalized))


def is_valid_tin(value: str | int | None) -> bool:
    """CUI/CIF (2-10 digits) or CNP (13 digits), optional RO prefix."""
    normalized = normalize_tax_id(value)
    if not normalized:
        return False
    return bool(_CNP_RE.match(normalized) or _CUI_RE.match(normalized))


def classify_party_identifier(value: str | None) -> IdentifierKind:
    if is_placeholder(value):
        return IdentifierKind.PLACEHOLDER
    if is_personal_id(value):
        return IdentifierKind.PERSONAL
    return IdentifierKind.COMPANY


COUNTY_CODES = frozenset({
    "AB", "AG", "AR", "B", "BC", "BH", "BN", "BR", "BT", "BV", "BZ",
    "CJ", "CL", "CS", "CT", "CV", "DB", "DJ", "GJ", "GL", "GR",
    "HD", "HR", "IF", "IL", "IS", "MH", "MM", "MS", "NT", "OT",
    "PH", "SB", "SJ", "SM", "SV", "TL", "TM", "TR", "VL", "VN", "VS",
})

_COUNTY_NAMES = {
    "ALBA": "AB", "ARGES": "AG", "ARAD": "AR", "BUCURESTI": "B",
    "BACAU": "BC", "BIHOR": "BH", "BISTRITA-NASAUD": "BN",
    "BRAILA": "BR", "BOTOSANI": "BT", "BRASOV": "BV", "BUZAU": "BZ",
    "CLUJ": "CJ", "CALARASI": "CL", "CARAS-SEVERIN": "CS",
    "CONSTANTA": "CT", "COVASNA": "CV", "DAMBOVITA": "DB", "DOLJ": "DJ",
    "GORJ": "GJ", "GALATI": "GL", "GIURGIU": "GR",
    "HUNEDOARA": "HD", "HARGHITA": "HR", "ILFOV": "IF",
    "IALOMITA": "IL", "IASI": "IS", "MEHEDINTI": "MH",
    "MARAMURES": "MM", "MURES": "MS", "NEAMT": "NT", "OLT": "OT",
    "PRAHOVA": "PH", "SIBIU": "SB", "SALAJ": "SJ", "SATU MARE": "SM",
    "SUCEAVA": "SV", "TULCEA": "TL", "TIMIS": "TM",
    "TELEORMAN": "TR", "VALCEA": "VL", "VRANCEA": "VN", "VASLUI": "VS",
}


def normalize_county(value: str) -> str:
    """``"RO-CJ"`` / ``"Cluj"`` / ``"CJ"`` -> ``"CJ"``; unknown values pass through."""
    code = value.strip().upper()
    if code.startswith("RO-"):
        code = code[3:]
    if code in COUNTY_CODES:
        return code
    return _COUNTY_NAMES.get(code, value)


_SECTOR_RE = re.compile(r"sect(?:or(?:ul)?|\.?)\s*(\d)", re.IGNORECASE)


def normalize_bucharest_sector(city: str | None) -> str:
    """``"Sector 6"`` / ``"Sectorul 3"`` -> ``"SECTOR6"``; blank defaults to SECTOR1."""
    if not city:
        return "SECTOR1"
    match = _SECTOR_RE.search(city)
    if match:
        return f"SECTOR{match.group(1)}"
    return city
