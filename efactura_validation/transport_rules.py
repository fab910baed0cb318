"""
Entity rules for e-Transport declarations.

Rule ids follow the Authority's published business-rule numbering so the
messages match what the Authority itself would report.  National
transport (TTN, operation type 30) carries the strictest set; intra-EU
arrivals and departures (DIN 60 / DIE 70) are exempt from the tariff code,
net weight and value requirements.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation

from efactura_codec.identifiers import is_valid_tin
from efactura_codec.numbers import format_decimal
from efactura_codec.types import OP_INTRA_IN, OP_INTRA_OUT, OP_NATIONAL, TransportData
from efactura_codec.uit import validate_uit
from efactura_validation.result import Violation

TTN_PURPOSE_CODES = frozenset({101, 704, 705, 9901})
PRIVATE_PERSON_CODE = "PF"

_PLATE_RE = re.compile(r"^[A-Z0-9]{2,20}$")
_NUM12_2_RE = re.compile(r"^[0-9]{0,12}(\.[0-9]{0,2})?$")

_TIN_HINT = "Se accepta 2-10 cifre (CUI/CIF), exact 13 cifre (CNP) sau \"PF\"."
_PLATE_HINT = "Se accepta 2-20 caractere alfanumerice majuscule (A-Z, 0-9)."
_NUM_HINT = "maxim 12 cifre intregi si 2 zecimale"


def _error(rule_id: str, message: str) -> Violation:
    return Violation(message=message, rule_id=rule_id, source="business")


def _decimal(value) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def is_num12_2(value) -> bool:
    number = _decimal(value)
    if number is None:
        return False
    return bool(_NUM12_2_RE.match(format_decimal(abs(number))))


def _check_length(errors, rule_id, label, value) -> None:
    if value:
        length = len(value)
        if length < 2 or length > 100:
            errors.append(_error(
                rule_id,
                f"{label} TREBUIE sa aiba intre 2 si 100 de caractere "
                f"(lungime curenta: {length}).",
            ))


def _check_plate(errors, rule_id, label, value) -> None:
    if value and not _PLATE_RE.match(value):
        errors.append(_error(
            rule_id,
            f'{label} nu are un format valid (valoare: "{value}"). {_PLATE_HINT}',
        ))


def _route_complete(location) -> bool:
    return bool(
        location is not None
        and location.county is not None
        and location.locality
        and location.street
    )


def check_transport(document) -> list[Violation]:
    """Return every entity-rule violation of a transport declaration."""
    errors: list[Violation] = []
    try:
        transport = TransportData.from_dict(document.transport, uit=document.transport_uit)
    except ValueError as exc:
        # Malformed stored dates or county codes.
        return [_error("TRANSPORT", f"Datele de transport nu pot fi citite: {exc}")]
    tenant = document.tenant
    party = document.party
    op_type = transport.operation_type
    is_ttn = op_type == OP_NATIONAL
    exempt = op_type in (OP_INTRA_IN, OP_INTRA_OUT)

    declarant = tenant.tax_id if tenant is not None else ""
    if not is_valid_tin(declarant):
        errors.append(_error(
            "BR-002",
            f'Codul fiscal al declarantului (CUI/CIF/CNP) nu are un format valid '
            f'(valoare: "{declarant or ""}"). Se accepta 2-10 cifre (CUI/CIF) '
            f"sau exact 13 cifre (CNP).",
        ))

    if is_ttn and party is not None:
        if party.country and party.country != "RO":
            errors.append(_error(
                "BR-005",
                "Pentru transport pe teritoriul national (TTN), tara partenerului "
                f'comercial TREBUIE sa fie "RO" (Romania). Valoare curenta: "{party.country}".',
            ))
        partner_code = party.tax_id or party.personal_id
        if partner_code and partner_code != PRIVATE_PERSON_CODE and not is_valid_tin(partner_code):
            errors.append(_error(
                "BR-007",
                "Codul de identificare fiscala al partenerului comercial nu are un "
                f'format valid (valoare: "{partner_code}"). {_TIN_HINT}',
            ))

    if transport.uit:
        reason = validate_uit(transport.uit)
        if reason is not None:
            errors.append(_error("BR-019", reason))

    lines = list(document.lines)

    if is_ttn:
        for number, line in enumerate(lines, start=1):
            if line.purpose_code is not None and line.purpose_code not in TTN_PURPOSE_CODES:
                errors.append(_error(
                    "BR-070",
                    f"Linia {number}: pentru transport pe teritoriul national (TTN), "
                    "scopul operatiunii (codScopOperatiune) TREBUIE sa fie 101, 704, "
                    f"705 sau 9901 (valoare: {line.purpose_code}).",
                ))

        code = transport.transporter_code
        if (
            transport.transporter_country == "RO"
            and code
            and code != PRIVATE_PERSON_CODE
            and not is_valid_tin(code)
        ):
            errors.append(_error(
                "BR-209",
                "Codul organizatorului de transport nu are un format valid pentru "
                f'Romania (valoare: "{code}"). {_TIN_HINT}',
            ))

        if not _route_complete(transport.start):
            errors.append(_error(
                "BR-210",
                "Locul de start al traseului rutier este incomplet. Judetul, "
                "localitatea si strada sunt obligatorii pentru transport pe "
                "teritoriul national (TTN).",
            ))
        if not _route_complete(transport.end):
            errors.append(_error(
                "BR-211",
                "Locul de final al traseului rutier este incomplet. Judetul, "
                "localitatea si strada sunt obligatorii pentru transport pe "
                "teritoriul national (TTN).",
            ))

    for label, location in (("start", transport.start), ("final", transport.end)):
        if location is None:
            continue
        _check_length(errors, "BR-214", f"Denumirea localitatii de {label}", location.locality)
        _check_length(errors, "BR-215", f"Denumirea strazii de {label}", location.street)

    _check_plate(errors, "BR-031", "Numarul de inmatriculare al vehiculului", transport.vehicle_number)
    _check_plate(errors, "BR-032", "Numarul de inmatriculare al remorcii 1", transport.trailer1)
    _check_plate(errors, "BR-033", "Numarul de inmatriculare al remorcii 2", transport.trailer2)

    for number, line in enumerate(lines, start=1):
        errors.extend(_check_goods_line(number, line, exempt))

    if not transport.vehicle_number:
        errors.append(_error("BR-031", "Numarul de inmatriculare al vehiculului este obligatoriu."))
    if transport.transport_date is None:
        errors.append(_error("BR-002", "Data transportului este obligatorie."))
    if not transport.transporter_country:
        errors.append(_error("BR-002", "Tara organizatorului de transport este obligatorie."))
    if not transport.transporter_name:
        errors.append(_error("BR-002", "Denumirea organizatorului de transport este obligatorie."))

    if not lines:
        errors.append(_error(
            "BR-206",
            "Avizul de expeditie nu contine nicio linie de bunuri transportate.",
        ))
    for number, line in enumerate(lines, start=1):
        if not line.description:
            errors.append(_error(
                "BR-206",
                f"Linia {number}: denumirea marfii (denumireMarfa) este obligatorie.",
            ))
        if not line.unit:
            errors.append(_error(
                "BR-206",
                f"Linia {number}: codul unitatii de masura este obligatoriu.",
            ))

    return errors


def _check_goods_line(number: int, line, exempt: bool) -> list[Violation]:
    errors: list[Violation] = []
    net = _decimal(line.net_weight)
    gross = _decimal(line.gross_weight)
    value = _decimal(line.value_without_vat)
    quantity = _decimal(line.quantity) or Decimal("0")

    if not exempt:
        if not line.tariff_code:
            errors.append(_error(
                "BR-206",
                f"Linia {number}: codul tarifar (codTarifar) este obligatoriu pentru "
                "aceasta operatiune.",
            ))
        if net is None:
            errors.append(_error(
                "BR-207",
                f"Linia {number}: greutatea neta (greutateNeta) este obligatorie pentru "
                "aceasta operatiune.",
            ))
        if value is None:
            errors.append(_error(
                "BR-208",
                f"Linia {number}: valoarea fara TVA (valoareLeiFaraTva) este obligatorie "
                "pentru aceasta operatiune.",
            ))

    if gross is None:
        errors.append(_error(
            "BR-218", f"Linia {number}: greutatea bruta (greutateBruta) este obligatorie."
        ))
    if gross is not None and net is not None and gross < net:
        errors.append(_error(
            "BR-020",
            f"Linia {number}: greutatea bruta ({gross}) TREBUIE sa fie mai mare sau "
            f"egala cu greutatea neta ({net}).",
        ))

    if quantity <= 0:
        errors.append(_error(
            "BR-027",
            f"Linia {number}: cantitatea bunului transportat TREBUIE sa fie mai mare "
            f"decat zero (valoare: {line.quantity}).",
        ))
    if not is_num12_2(quantity):
        errors.append(_error(
            "BR-027",
            f"Linia {number}: cantitatea depaseste formatul numeric permis "
            f"({_NUM_HINT}, valoare: {line.quantity}).",
        ))

    for label, amount in (
        ("greutatea neta", net),
        ("greutatea bruta", gross),
        ("valoarea fara TVA", value),
    ):
        if amount is None:
            continue
        if amount < 0:
            errors.append(_error(
                "BR-027",
                f"Linia {number}: {label} nu poate fi negativa (valoare: {amount}).",
            ))
        if not is_num12_2(amount):
            errors.append(_error(
                "BR-027",
                f"Linia {number}: {label} depaseste formatul numeric permis "
                f"({_NUM_HINT}, valoare: {amount}).",
            ))
    return errors
