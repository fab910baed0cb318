"""
e-Transport declaration generator (schema ``mfp:anaf:dgti:eTransport:declaratie:v2``).

Four message shapes share one root element:

* notification -- ``<notificare>`` with goods, partner, vehicle, route and
  document sections;
* correction -- a notification whose first child is ``<corectie uit=...>``;
* deletion -- ``<stergere uit=...>``;
* confirmation -- ``<confirmare uit=... tipConfirmare=...>``.

All data lives in attributes.  Numeric attributes drop trailing fractional
zeros (``2500.00`` -> ``2500``).
"""

from __future__ import annotations

from lxml import etree

from efactura_codec.identifiers import normalize_tax_id
from efactura_codec.numbers import format_decimal
from efactura_codec.text import xml_text
from efactura_codec.types import (
    OP_NATIONAL,
    DocumentData,
    LineData,
    RouteLocation,
    TransportData,
)
from efactura_codec.units import to_unit_code
from efactura_kernel.exceptions import CodecError

ETRANSPORT_NS = "mfp:anaf:dgti:eTransport:declaratie:v2"
TRANSPORT_DOCUMENT_TYPE = "30"
POST_INCIDENT_FLAG = "D"


def _el(parent, tag, **attribs):
    """Child element in the e-Transport namespace; ``None``/blank attributes are skipped."""
    elem = etree.SubElement(parent, f"{{{ETRANSPORT_NS}}}{tag}")
    for name, value in attribs.items():
        if value is None or value == "":
            continue
        elem.set(name, xml_text(value))
    return elem


def _root(tax_id: str | None, reference=None):
    declarant = normalize_tax_id(tax_id)
    if not declarant:
        raise CodecError("e-Transport declarations require the declarant tax id")
    root = etree.Element(f"{{{ETRANSPORT_NS}}}eTransport", nsmap={None: ETRANSPORT_NS})
    root.set("codDeclarant", declarant)
    if reference is not None:
        root.set("refDeclarant", xml_text(reference))
    return root


def _serialize(root) -> bytes:
    return etree.tostring(root, xml_declaration=True, encoding="UTF-8", pretty_print=True)


def _optional_decimal(value):
    return format_decimal(value) if value is not None else None


def generate_notification(data: DocumentData) -> bytes:
    """Serialize a transport declaration for first upload."""
    return _serialize(_build_declaration(data, correction_uit=None))


def generate_correction(data: DocumentData, uit: str) -> bytes:
    """Serialize a correction of the declaration identified by ``uit``."""
    return _serialize(_build_declaration(data, correction_uit=uit))


def generate_deletion(tax_id: str, uit: str) -> bytes:
    root = _root(tax_id)
    _el(root, "stergere", uit=uit)
    return _serialize(root)


def generate_confirmation(
    tax_id: str, uit: str, confirmation_type: int, remarks: str | None = None
) -> bytes:
    root = _root(tax_id)
    _el(
        root,
        "confirmare",
        uit=uit,
        tipConfirmare=confirmation_type,
        observatii=remarks,
    )
    return _serialize(root)


def _build_declaration(data: DocumentData, correction_uit: str | None):
    transport = data.transport or TransportData()
    root = _root(data.supplier.tax_id, data.document_id)
    if transport.post_incident:
        root.set("declPostAvarie", POST_INCIDENT_FLAG)

    notification = _el(
        root, "notificare", codTipOperatiune=transport.operation_type or OP_NATIONAL
    )
    if correction_uit:
        _el(notification, "corectie", uit=correction_uit)

    for line in data.lines:
        _build_goods(notification, line)

    partner = data.customer
    _el(
        notification,
        "partenerComercial",
        codTara=(partner.country if partner and partner.country else "RO"),
        cod=normalize_tax_id(partner.tax_id) if partner else None,
        denumire=partner.name if partner else None,
    )

    _el(
        notification,
        "dateTransport",
        nrVehicul=transport.vehicle_number,
        nrRemorca1=transport.trailer1,
        nrRemorca2=transport.trailer2,
        codTaraOrgTransport=transport.transporter_country,
        codOrgTransport=transport.transporter_code,
        denumireOrgTransport=transport.transporter_name,
        dataTransport=transport.transport_date.isoformat() if transport.transport_date else None,
    )

    start = _el(notification, "locStartTraseuRutier")
    _build_location(start, transport.start)
    end = _el(notification, "locFinalTraseuRutier")
    _build_location(end, transport.end)

    _el(
        notification,
        "documenteTransport",
        tipDocument=TRANSPORT_DOCUMENT_TYPE,
        numarDocument=data.number,
        dataDocument=data.issue_date.isoformat() if data.issue_date else None,
    )
    return root


def _build_goods(parent, line: LineData) -> None:
    _el(
        parent,
        "bunuriTransportate",
        codScopOperatiune=line.purpose_code,
        codTarifar=line.tariff_code,
        denumireMarfa=line.description,
        cantitate=format_decimal(line.quantity),
        codUnitateMasura=line.unit_code or to_unit_code(line.unit),
        greutateNeta=_optional_decimal(line.net_weight),
        greutateBruta=_optional_decimal(line.gross_weight),
        valoareLeiFaraTva=_optional_decimal(line.value_without_vat),
    )


def _build_location(parent, location: RouteLocation | None) -> None:
    location = location or RouteLocation()
    _el(
        parent,
        "locatie",
        codJudet=location.county,
        denumireLocalitate=location.locality,
        denumireStrada=location.street,
        numar=location.number,
        codPostal=location.postal_code,
        alteInfo=location.other_info,
    )
