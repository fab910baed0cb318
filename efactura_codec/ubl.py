"""
UBL 2.1 generator (CIUS-RO 1.0.1).

Responsibility:
    Turn a ``DocumentData`` snapshot into an ``Invoice`` or ``CreditNote``
    document that the Authority accepts.  Element order follows the UBL
    2.1 schema sequence exactly; the XSD phase of the validation pipeline
    rejects anything else.

Invariants:
    - Monetary amounts are fixed point with two decimals and carry
      ``currencyID``.
    - The VAT identifier gets the country prefix only for VAT payers.
    - Non-RON documents carry a second ``TaxTotal`` in RON computed from
      the document's exchange rate.

Failure modes:
    - CodecError when a non-RON document has no exchange rate.
"""

from __future__ import annotations

from collections import OrderedDict
from decimal import Decimal

from lxml import etree

from efactura_codec.identifiers import (
    PLACEHOLDER_PERSONAL_ID,
    IdentifierKind,
    classify_party_identifier,
    normalize_bucharest_sector,
    normalize_county,
)
from efactura_codec.numbers import format_amount, format_decimal
from efactura_codec.text import xml_text
from efactura_codec.types import DocumentData, LineData, PartyData, PayeeData
from efactura_codec.units import to_unit_code
from efactura_kernel.exceptions import CodecError
from efactura_kernel.logging_config import get_logger

logger = get_logger("codec.ubl")

CUSTOMIZATION_ID = (
    "urn:cen.eu:en16931:2017#compliant#urn:efactura.mfinante.ro:CIUS-RO:1.0.1"
)
UBL_VERSION = "2.1"

INVOICE_NS = "urn:oasis:names:specification:ubl:schema:xsd:Invoice-2"
CREDIT_NOTE_NS = "urn:oasis:names:specification:ubl:schema:xsd:CreditNote-2"
CAC_NS = "urn:oasis:names:specification:ubl:schema:xsd:CommonAggregateComponents-2"
CBC_NS = "urn:oasis:names:specification:ubl:schema:xsd:CommonBasicComponents-2"

NAMESPACES = {"cac": CAC_NS, "cbc": CBC_NS}

INVOICE_TYPE_CODE = "380"
CREDIT_NOTE_TYPE_CODE = "381"
PROJECT_REFERENCE_TYPE_CODE = "50"
OBJECT_IDENTIFIER_TYPE_CODE = "130"
GTIN_SCHEME_ID = "0160"
DEFAULT_PAYMENT_TERMS = "Plata la emitere"
ACCOUNTING_CURRENCY = "RON"

PAYMENT_MEANS_CODES = {
    "cash": "10",
    "cheque": "20",
    "bank_transfer": "30",
    "card": "48",
    "other": "ZZZ",
}
DEFAULT_PAYMENT_MEANS_CODE = "30"

VAT_EXEMPTION_REASONS = {
    "E": "Scutit de TVA",
    "AE": "Taxare inversa",
    "K": "Livrare intracomunitara",
    "G": "Export in afara UE",
    "O": "Nu se supune TVA",
}


def _e(parent, tag, text=None, ns="cbc", **attribs):
    elem = etree.SubElement(parent, f"{{{NAMESPACES[ns]}}}{tag}")
    for name, value in attribs.items():
        elem.set(name, xml_text(value))
    if text is not None:
        elem.text = xml_text(text)
    return elem


def _amount(parent, tag, value, currency):
    return _e(parent, tag, format_amount(value), currencyID=currency)


def payment_means_code(method: str | None) -> str:
    return PAYMENT_MEANS_CODES.get(method or "", DEFAULT_PAYMENT_MEANS_CODE)


def generate_invoice_xml(data: DocumentData) -> bytes:
    """Serialize ``data`` as a UBL Invoice, or a CreditNote for refunds."""
    is_credit_note = data.is_refund
    root_ns = CREDIT_NOTE_NS if is_credit_note else INVOICE_NS
    root_tag = "CreditNote" if is_credit_note else "Invoice"
    currency = data.currency or ACCOUNTING_CURRENCY

    root = etree.Element(
        f"{{{root_ns}}}{root_tag}",
        nsmap={None: root_ns, "cac": CAC_NS, "cbc": CBC_NS},
    )

    _e(root, "UBLVersionID", UBL_VERSION)
    _e(root, "CustomizationID", CUSTOMIZATION_ID)
    _e(root, "ID", data.number or "")
    _e(root, "IssueDate", data.issue_date.isoformat() if data.issue_date else "")
    if not is_credit_note and data.due_date is not None:
        _e(root, "DueDate", data.due_date.isoformat())
    # TaxPointDate precedes the type code in CreditNote, follows Note in Invoice.
    if is_credit_note:
        _tax_point_date(root, data)
        _e(root, "CreditNoteTypeCode", CREDIT_NOTE_TYPE_CODE)
    else:
        _e(root, "InvoiceTypeCode", INVOICE_TYPE_CODE)
    for note in data.notes:
        if note:
            _e(root, "Note", note)
    if not is_credit_note:
        _tax_point_date(root, data)
    _e(root, "DocumentCurrencyCode", currency)
    if currency != ACCOUNTING_CURRENCY:
        _e(root, "TaxCurrencyCode", ACCOUNTING_CURRENCY)
    if data.accounting_cost:
        _e(root, "AccountingCost", data.accounting_cost)
    if data.buyer_reference:
        _e(root, "BuyerReference", data.buyer_reference)

    if data.order_reference:
        order = _e(root, "OrderReference", ns="cac")
        _e(order, "ID", data.order_reference)

    if data.parent_number is not None:
        billing = _e(root, "BillingReference", ns="cac")
        ref = _e(billing, "InvoiceDocumentReference", ns="cac")
        _e(ref, "ID", data.parent_number)
        if data.parent_issue_date is not None:
            _e(ref, "IssueDate", data.parent_issue_date.isoformat())

    if data.contract_reference:
        contract = _e(root, "ContractDocumentReference", ns="cac")
        _e(contract, "ID", data.contract_reference)

    if data.invoiced_object_identifier:
        _document_reference(root, data.invoiced_object_identifier, OBJECT_IDENTIFIER_TYPE_CODE)

    if data.project_reference:
        # CreditNote has no ProjectReference; BT-11 travels as a type 50 reference.
        if is_credit_note:
            _document_reference(root, data.project_reference, PROJECT_REFERENCE_TYPE_CODE)
        else:
            project = _e(root, "ProjectReference", ns="cac")
            _e(project, "ID", data.project_reference)

    supplier = _e(root, "AccountingSupplierParty", ns="cac")
    _build_party(supplier, data.supplier, is_supplier=True)
    customer = _e(root, "AccountingCustomerParty", ns="cac")
    if data.customer is not None:
        _build_party(customer, data.customer, is_supplier=False)
    else:
        _e(customer, "Party", ns="cac")
    if data.payee:
        _build_payee(root, data.payee)

    if data.delivery_location:
        _build_delivery(root, data.delivery_location)

    if data.bank_account:
        means = _e(root, "PaymentMeans", ns="cac")
        _e(means, "PaymentMeansCode", payment_means_code(data.payment_method))
        account = _e(means, "PayeeFinancialAccount", ns="cac")
        _e(account, "ID", data.bank_account)
        if data.bank_name:
            _e(account, "Name", data.bank_name)

    terms_note = data.payment_terms
    has_due_date = not is_credit_note and data.due_date is not None
    if not terms_note and not has_due_date:
        terms_note = DEFAULT_PAYMENT_TERMS
    if terms_note:
        terms = _e(root, "PaymentTerms", ns="cac")
        _e(terms, "Note", terms_note)

    _build_tax_total(root, data.lines, data.vat_total, currency)
    if currency != ACCOUNTING_CURRENCY:
        if not data.exchange_rate:
            raise CodecError(
                f"Exchange rate for {currency} is required for non-RON documents"
            )
        tax_total_ron = _e(root, "TaxTotal", ns="cac")
        _amount(
            tax_total_ron, "TaxAmount",
            Decimal(data.vat_total) * Decimal(data.exchange_rate),
            ACCOUNTING_CURRENCY,
        )

    totals = _e(root, "LegalMonetaryTotal", ns="cac")
    _amount(totals, "LineExtensionAmount", data.subtotal, currency)
    _amount(totals, "TaxExclusiveAmount", data.subtotal, currency)
    _amount(totals, "TaxInclusiveAmount", data.total, currency)
    _amount(totals, "PayableAmount", data.total, currency)

    for index, line in enumerate(data.lines, start=1):
        _build_line(root, line, index, currency, is_credit_note)

    logger.debug(
        "ubl_generated",
        extra={
            "root": root_tag,
            "number": data.number,
            "line_count": len(data.lines),
        },
    )
    return etree.tostring(root, xml_declaration=True, encoding="UTF-8", pretty_print=True)


def _build_party(parent, party: PartyData, is_supplier: bool) -> None:
    p = _e(parent, "Party", ns="cac")

    name = _e(p, "PartyName", ns="cac")
    _e(name, "Name", party.name or "")

    country = party.country or "RO"
    county = party.county or ""
    if county and country == "RO":
        county = normalize_county(county)
        if not county.startswith("RO-"):
            county = f"RO-{county}"
    city = party.city or ""
    if county == "RO-B":
        city = normalize_bucharest_sector(city)

    address = _e(p, "PostalAddress", ns="cac")
    _e(address, "StreetName", party.address or "")
    _e(address, "CityName", city)
    if party.postal_code:
        _e(address, "PostalZone", party.postal_code)
    if county:
        _e(address, "CountrySubentity", county)
    country_el = _e(address, "Country", ns="cac")
    _e(country_el, "IdentificationCode", country)

    # Individuals carry their CNP only in PartyLegalEntity.
    is_company = classify_party_identifier(party.tax_id) is IdentifierKind.COMPANY
    if is_supplier or is_company:
        tax_scheme = _e(p, "PartyTaxScheme", ns="cac")
        _e(tax_scheme, "CompanyID", party.vat_identifier or "")
        scheme = _e(tax_scheme, "TaxScheme", ns="cac")
        _e(scheme, "ID", "VAT")

    legal = _e(p, "PartyLegalEntity", ns="cac")
    _e(legal, "RegistrationName", party.name or "")
    _e(legal, "CompanyID", party.tax_id or PLACEHOLDER_PERSONAL_ID)
    if is_supplier and party.registration_number:
        _e(legal, "CompanyLegalForm", party.registration_number)

    if party.email or party.phone:
        contact = _e(p, "Contact", ns="cac")
        if party.phone:
            _e(contact, "Telephone", party.phone)
        if party.email:
            _e(contact, "ElectronicMail", party.email)


def _tax_point_date(root, data: DocumentData) -> None:
    if data.tax_point_date is not None:
        _e(root, "TaxPointDate", data.tax_point_date.isoformat())


def _document_reference(root, identifier: str, type_code: str) -> None:
    ref = _e(root, "AdditionalDocumentReference", ns="cac")
    _e(ref, "ID", identifier)
    _e(ref, "DocumentTypeCode", type_code)


def _build_payee(root, payee: PayeeData) -> None:
    p = _e(root, "PayeeParty", ns="cac")
    if payee.identifier:
        identification = _e(p, "PartyIdentification", ns="cac")
        _e(identification, "ID", payee.identifier)
    if payee.name:
        name = _e(p, "PartyName", ns="cac")
        _e(name, "Name", payee.name)
    if payee.legal_id:
        legal = _e(p, "PartyLegalEntity", ns="cac")
        _e(legal, "CompanyID", payee.legal_id)


def _build_delivery(parent, location: str) -> None:
    delivery = _e(parent, "Delivery", ns="cac")
    place = _e(delivery, "DeliveryLocation", ns="cac")
    address = _e(place, "Address", ns="cac")
    _e(address, "StreetName", location)
    country = _e(address, "Country", ns="cac")
    _e(country, "IdentificationCode", "RO")


def _build_tax_total(parent, lines, vat_total, currency) -> None:
    tax_total = _e(parent, "TaxTotal", ns="cac")
    _amount(tax_total, "TaxAmount", vat_total, currency)

    groups: OrderedDict[tuple[str, Decimal], dict[str, Decimal]] = OrderedDict()
    for line in lines:
        key = (line.vat_category, Decimal(line.vat_rate))
        group = groups.setdefault(key, {"taxable": Decimal("0"), "tax": Decimal("0")})
        group["taxable"] += Decimal(line.line_total)
        group["tax"] += Decimal(line.vat_amount)

    for (category, rate), amounts in groups.items():
        subtotal = _e(tax_total, "TaxSubtotal", ns="cac")
        _amount(subtotal, "TaxableAmount", amounts["taxable"], currency)
        _amount(subtotal, "TaxAmount", amounts["tax"], currency)
        tax_category = _e(subtotal, "TaxCategory", ns="cac")
        _e(tax_category, "ID", category)
        _e(tax_category, "Percent", format_amount(rate))
        reason = VAT_EXEMPTION_REASONS.get(category)
        if reason is not None:
            _e(tax_category, "TaxExemptionReason", reason)
        scheme = _e(tax_category, "TaxScheme", ns="cac")
        _e(scheme, "ID", "VAT")


def _build_line(parent, line: LineData, index: int, currency: str, is_credit_note: bool) -> None:
    line_el = _e(parent, "CreditNoteLine" if is_credit_note else "InvoiceLine", ns="cac")
    _e(line_el, "ID", str(index))
    _e(
        line_el,
        "CreditedQuantity" if is_credit_note else "InvoicedQuantity",
        format_decimal(line.quantity),
        unitCode=line.unit_code or to_unit_code(line.unit),
    )
    _amount(line_el, "LineExtensionAmount", line.line_total, currency)

    item = _e(line_el, "Item", ns="cac")
    _e(item, "Name", line.description or "")
    if line.buyer_item_id:
        buyers = _e(item, "BuyersItemIdentification", ns="cac")
        _e(buyers, "ID", line.buyer_item_id)
    if line.standard_item_id:
        standard = _e(item, "StandardItemIdentification", ns="cac")
        _e(standard, "ID", line.standard_item_id, schemeID=GTIN_SCHEME_ID)
    if line.cpv_code:
        classification = _e(item, "CommodityClassification", ns="cac")
        _e(classification, "ItemClassificationCode", line.cpv_code, listID="CPV")
    classified = _e(item, "ClassifiedTaxCategory", ns="cac")
    _e(classified, "ID", line.vat_category)
    _e(classified, "Percent", format_amount(line.vat_rate))
    scheme = _e(classified, "TaxScheme", ns="cac")
    _e(scheme, "ID", "VAT")

    price = _e(line_el, "Price", ns="cac")
    _e(price, "PriceAmount", format_decimal(line.unit_price), currencyID=currency)
