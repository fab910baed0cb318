"""
UBL 2.1 parser -- the inverse of ``efactura_codec.ubl``.

Responsibility:
    Read an ``Invoice`` or ``CreditNote`` received from the Authority into
    a ``ParsedDocument``.  Documents produced by third-party software are
    accepted as long as the root element is one of the two UBL types;
    missing optional elements yield ``None`` or defaults.

Failure modes:
    - XmlParseError with line/column for malformed input.
    - UnsupportedDocumentError for any other root element.
"""

from __future__ import annotations

import re
from dataclasses import replace
from datetime import date
from decimal import Decimal

from lxml import etree

from efactura_codec.identifiers import is_personal_id, normalize_county
from efactura_codec.numbers import parse_decimal
from efactura_codec.types import (
    ParsedAttachment,
    ParsedDocument,
    ParsedLine,
    ParsedParty,
    PayeeData,
)
from efactura_codec.ubl import (
    CAC_NS,
    CBC_NS,
    CREDIT_NOTE_NS,
    INVOICE_NS,
    OBJECT_IDENTIFIER_TYPE_CODE,
    PROJECT_REFERENCE_TYPE_CODE,
)
from efactura_codec.units import from_unit_code
from efactura_kernel.db.types import round_money
from efactura_kernel.domain.types import DocumentKind
from efactura_kernel.exceptions import UnsupportedDocumentError, XmlParseError
from efactura_kernel.logging_config import get_logger

logger = get_logger("codec.ubl_parser")

NS = {"cac": CAC_NS, "cbc": CBC_NS}

_RO_PREFIX_RE = re.compile(r"^RO(\d+)$", re.IGNORECASE)


def _text(node, path: str) -> str | None:
    if node is None:
        return None
    found = node.find(path, NS)
    if found is None or found.text is None:
        return None
    value = found.text.strip()
    return value or None


def _decimal(node, path: str, default: Decimal = Decimal("0")) -> Decimal:
    return parse_decimal(_text(node, path), default)


def _date(node, path: str) -> date | None:
    value = _text(node, path)
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def _strip_prefix(value: str | None) -> str | None:
    if not value:
        return None
    match = _RO_PREFIX_RE.match(value.replace(" ", ""))
    return match.group(1) if match else value


def load_xml(xml: bytes):
    """Parse bytes into an lxml root, mapping syntax errors to XmlParseError."""
    parser = etree.XMLParser(resolve_entities=False, no_network=True)
    try:
        return etree.fromstring(xml, parser)
    except etree.XMLSyntaxError as exc:
        line, column = (exc.position if exc.position else (exc.lineno, None))
        raise XmlParseError(exc.msg or str(exc), line=line, column=column) from exc


def parse_document(xml: bytes) -> ParsedDocument:
    root = load_xml(xml)
    qname = etree.QName(root)
    if qname.namespace == INVOICE_NS and qname.localname == "Invoice":
        kind = DocumentKind.INVOICE
        line_path, qty_path = "cac:InvoiceLine", "cbc:InvoicedQuantity"
    elif qname.namespace == CREDIT_NOTE_NS and qname.localname == "CreditNote":
        kind = DocumentKind.CREDIT_NOTE
        line_path, qty_path = "cac:CreditNoteLine", "cbc:CreditedQuantity"
    else:
        raise UnsupportedDocumentError(root.tag)

    seller = _parse_party(root.find("cac:AccountingSupplierParty/cac:Party", NS))
    if seller is not None:
        account = root.find("cac:PaymentMeans/cac:PayeeFinancialAccount", NS)
        if account is not None:
            seller = _with_bank(seller, account)
    buyer = _parse_party(root.find("cac:AccountingCustomerParty/cac:Party", NS))

    totals = root.find("cac:LegalMonetaryTotal", NS)
    notes = [
        n.text.strip()
        for n in root.findall("cbc:Note", NS)
        if n.text and n.text.strip()
    ]

    lines = tuple(
        _parse_line(line, qty_path) for line in root.findall(line_path, NS)
    )

    parsed = ParsedDocument(
        kind=kind,
        number=_text(root, "cbc:ID"),
        issue_date=_date(root, "cbc:IssueDate"),
        due_date=_date(root, "cbc:DueDate"),
        currency=_text(root, "cbc:DocumentCurrencyCode") or "RON",
        subtotal=_decimal(totals, "cbc:TaxExclusiveAmount"),
        vat_total=_decimal(root, "cac:TaxTotal/cbc:TaxAmount"),
        total=_decimal(totals, "cbc:PayableAmount"),
        seller=seller,
        buyer=buyer,
        lines=lines,
        notes="\n".join(notes) if notes else None,
        payment_terms=_text(root, "cac:PaymentTerms/cbc:Note"),
        delivery_location=_parse_delivery(root),
        project_reference=_text(root, "cac:ProjectReference/cbc:ID")
        or _typed_reference(root, PROJECT_REFERENCE_TYPE_CODE),
        tax_point_date=_date(root, "cbc:TaxPointDate"),
        buyer_reference=_text(root, "cbc:BuyerReference"),
        order_reference=_text(root, "cac:OrderReference/cbc:ID"),
        contract_reference=_text(root, "cac:ContractDocumentReference/cbc:ID"),
        invoiced_object_identifier=_typed_reference(root, OBJECT_IDENTIFIER_TYPE_CODE),
        accounting_cost=_text(root, "cbc:AccountingCost"),
        payee=_parse_payee(root.find("cac:PayeeParty", NS)),
        attachments=_parse_attachments(root),
    )
    logger.debug(
        "ubl_parsed",
        extra={"kind": kind.value, "number": parsed.number, "line_count": len(lines)},
    )
    return parsed


def _parse_party(party) -> ParsedParty | None:
    if party is None:
        return None

    vat_code = _text(party, "cac:PartyTaxScheme/cbc:CompanyID")
    legal_id = _text(party, "cac:PartyLegalEntity/cbc:CompanyID")
    raw_id = vat_code or _text(party, "cac:PartyIdentification/cbc:ID")
    if raw_id is None and is_personal_id(legal_id):
        # Individuals carry their CNP only in PartyLegalEntity.
        raw_id = legal_id
    name = _text(party, "cac:PartyName/cbc:Name") or _text(
        party, "cac:PartyLegalEntity/cbc:RegistrationName"
    )
    county = _text(party, "cac:PostalAddress/cbc:CountrySubentity")

    return ParsedParty(
        tax_id=_strip_prefix(raw_id),
        name=name,
        vat_code=vat_code,
        registration_number=legal_id,
        address=_text(party, "cac:PostalAddress/cbc:StreetName"),
        city=_text(party, "cac:PostalAddress/cbc:CityName"),
        county=normalize_county(county) if county else None,
        country=_text(party, "cac:PostalAddress/cac:Country/cbc:IdentificationCode") or "RO",
        postal_code=_text(party, "cac:PostalAddress/cbc:PostalZone"),
        phone=_text(party, "cac:Contact/cbc:Telephone"),
        email=_text(party, "cac:Contact/cbc:ElectronicMail"),
    )


def _with_bank(party: ParsedParty, account) -> ParsedParty:
    return replace(
        party,
        bank_account=_text(account, "cbc:ID"),
        bank_name=_text(account, "cac:FinancialInstitutionBranch/cbc:Name")
        or _text(account, "cbc:Name"),
    )


def _parse_line(line, qty_path: str) -> ParsedLine:
    quantity_el = line.find(qty_path, NS)
    unit_code = quantity_el.get("unitCode") if quantity_el is not None else None
    description = _text(line, "cac:Item/cbc:Name") or _text(line, "cac:Item/cbc:Description") or ""
    line_total = _decimal(line, "cbc:LineExtensionAmount")
    vat_rate = _decimal(line, "cac:Item/cac:ClassifiedTaxCategory/cbc:Percent")
    vat_amount = parse_decimal(_text(line, "cac:TaxTotal/cbc:TaxAmount"), None)
    if vat_amount is None:
        vat_amount = round_money(line_total * vat_rate / Decimal("100"))
    return ParsedLine(
        description=description,
        quantity=_decimal(line, qty_path, Decimal("1")),
        unit=from_unit_code(unit_code),
        unit_price=_decimal(line, "cac:Price/cbc:PriceAmount"),
        vat_rate=vat_rate,
        vat_category=_text(line, "cac:Item/cac:ClassifiedTaxCategory/cbc:ID") or "S",
        vat_amount=vat_amount,
        line_total=line_total,
        buyer_item_id=_text(line, "cac:Item/cac:BuyersItemIdentification/cbc:ID"),
        standard_item_id=_text(line, "cac:Item/cac:StandardItemIdentification/cbc:ID"),
        cpv_code=_cpv_code(line),
    )


def _parse_payee(party) -> PayeeData | None:
    if party is None:
        return None
    payee = PayeeData(
        name=_text(party, "cac:PartyName/cbc:Name"),
        identifier=_text(party, "cac:PartyIdentification/cbc:ID"),
        legal_id=_text(party, "cac:PartyLegalEntity/cbc:CompanyID"),
    )
    return payee or None


def _typed_reference(root, type_code: str) -> str | None:
    for ref in root.findall("cac:AdditionalDocumentReference", NS):
        if _text(ref, "cbc:DocumentTypeCode") == type_code:
            return _text(ref, "cbc:ID")
    return None


def _cpv_code(line) -> str | None:
    for code in line.findall("cac:Item/cac:CommodityClassification/cbc:ItemClassificationCode", NS):
        if code.get("listID") == "CPV" and code.text and code.text.strip():
            return code.text.strip()
    return None


def _parse_delivery(root) -> str | None:
    address = root.find("cac:Delivery/cac:DeliveryLocation/cac:Address", NS)
    if address is None:
        address = root.find("cac:Delivery/cac:DeliveryAddress", NS)
    if address is None:
        return None
    parts = [
        _text(address, "cbc:StreetName"),
        _text(address, "cbc:CityName"),
        _text(address, "cbc:CountrySubentity"),
    ]
    joined = ", ".join(p for p in parts if p)
    return joined or None


def _parse_attachments(root) -> tuple[ParsedAttachment, ...]:
    attachments = []
    for ref in root.findall("cac:AdditionalDocumentReference", NS):
        binary = ref.find("cac:Attachment/cbc:EmbeddedDocumentBinaryObject", NS)
        if binary is None or not (binary.text or "").strip():
            continue
        attachments.append(
            ParsedAttachment(
                content_base64="".join(binary.text.split()),
                filename=binary.get("filename"),
                mime_type=binary.get("mimeCode") or "application/octet-stream",
                description=_text(ref, "cbc:DocumentDescription"),
            )
        )
    return tuple(attachments)
