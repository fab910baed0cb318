"""
UBL 2.1 generation and parsing.

Verifies:
- Generated documents carry the CIUS-RO header and schema element order
- Party tax schemes follow the identifier kind (company, CNP, placeholder)
- Non-RON documents need an exchange rate and carry a RON tax total
- Credit notes switch root, type code and line elements
- The parser reads back what the generator writes
- Business references, payee and item identifiers keep UBL element order
- Header dates, references and buyer address survive a generate/parse cycle
- Malformed and foreign documents are rejected with typed errors
"""

from datetime import date
from decimal import Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st
from lxml import etree

from efactura_codec.mapping import document_data_from_model, generate_xml
from efactura_codec.types import DocumentData, LineData, PartyData, PayeeData
from efactura_codec.ubl import (
    CREDIT_NOTE_NS,
    CUSTOMIZATION_ID,
    INVOICE_NS,
    NAMESPACES,
    generate_invoice_xml,
    payment_means_code,
)
from efactura_codec.ubl_parser import parse_document
from efactura_kernel.domain.types import DocumentKind
from efactura_kernel.exceptions import CodecError, UnsupportedDocumentError, XmlParseError

SUPPLIER = PartyData(
    name="Exemplu Software SRL",
    tax_id="12345678",
    vat_payer=True,
    address="Str. Memorandumului 28",
    city="Cluj-Napoca",
    county="CJ",
    postal_code="400114",
    registration_number="J12/1234/2020",
    email="office@exemplu.ro",
)
CUSTOMER = PartyData(
    name="Client Beta SA",
    tax_id="87654321",
    vat_payer=True,
    address="Bd. Unirii 10",
    city="Sectorul 3",
    county="Bucuresti",
)
LINE = LineData(
    position=1,
    description="Servicii dezvoltare software",
    quantity=Decimal("10.000"),
    unit="ora",
    unit_price=Decimal("150.00"),
    line_total=Decimal("1500.00"),
    vat_rate=Decimal("21.00"),
    vat_amount=Decimal("315.00"),
)


def _data(**overrides) -> DocumentData:
    values = dict(
        document_id=None,
        kind=DocumentKind.INVOICE,
        number="FCT-0042",
        issue_date=date(2026, 1, 30),
        supplier=SUPPLIER,
        customer=CUSTOMER,
        lines=(LINE,),
        subtotal=Decimal("1500.00"),
        vat_total=Decimal("315.00"),
        total=Decimal("1815.00"),
        bank_account="RO49AAAA1B31007593840000",
        bank_name="Banca Transilvania",
    )
    values.update(overrides)
    return DocumentData(**values)


def _tree(xml: bytes):
    return etree.fromstring(xml)


def _text(root, path):
    return root.findtext(path, namespaces=NAMESPACES)


# =============================================================================
# Generation
# =============================================================================


class TestInvoiceGeneration:
    def test_header(self):
        root = _tree(generate_invoice_xml(_data()))

        assert root.tag == f"{{{INVOICE_NS}}}Invoice"
        assert _text(root, "cbc:UBLVersionID") == "2.1"
        assert _text(root, "cbc:CustomizationID") == CUSTOMIZATION_ID
        assert _text(root, "cbc:ID") == "FCT-0042"
        assert _text(root, "cbc:IssueDate") == "2026-01-30"
        assert _text(root, "cbc:InvoiceTypeCode") == "380"
        assert _text(root, "cbc:DocumentCurrencyCode") == "RON"
        assert root.find("cbc:TaxCurrencyCode", NAMESPACES) is None

    def test_element_order(self):
        root = _tree(generate_invoice_xml(_data(notes=("Comanda 17",))))

        names = [etree.QName(child).localname for child in root]
        assert names == [
            "UBLVersionID", "CustomizationID", "ID", "IssueDate", "InvoiceTypeCode",
            "Note", "DocumentCurrencyCode", "AccountingSupplierParty",
            "AccountingCustomerParty", "PaymentMeans", "PaymentTerms", "TaxTotal",
            "LegalMonetaryTotal", "InvoiceLine",
        ]

    def test_supplier_party(self):
        root = _tree(generate_invoice_xml(_data()))
        party = root.find("cac:AccountingSupplierParty/cac:Party", NAMESPACES)

        assert _text(party, "cac:PartyTaxScheme/cbc:CompanyID") == "RO12345678"
        assert _text(party, "cac:PartyLegalEntity/cbc:CompanyID") == "12345678"
        assert _text(party, "cac:PartyLegalEntity/cbc:CompanyLegalForm") == "J12/1234/2020"
        assert _text(party, "cac:PostalAddress/cbc:CountrySubentity") == "RO-CJ"
        assert _text(party, "cac:Contact/cbc:ElectronicMail") == "office@exemplu.ro"

    def test_bucharest_customer_address(self):
        root = _tree(generate_invoice_xml(_data()))
        address = root.find("cac:AccountingCustomerParty/cac:Party/cac:PostalAddress", NAMESPACES)

        assert _text(address, "cbc:CountrySubentity") == "RO-B"
        assert _text(address, "cbc:CityName") == "SECTOR3"

    def test_non_payer_supplier_has_bare_vat_identifier(self):
        supplier = PartyData(name="Mic SRL", tax_id="7654321", vat_payer=False)
        root = _tree(generate_invoice_xml(_data(supplier=supplier)))

        path = "cac:AccountingSupplierParty/cac:Party/cac:PartyTaxScheme/cbc:CompanyID"
        assert _text(root, path) == "7654321"

    def test_individual_buyer_has_no_tax_scheme(self):
        buyer = PartyData(name="Ion Popescu", tax_id="1800101223344")
        root = _tree(generate_invoice_xml(_data(customer=buyer)))
        party = root.find("cac:AccountingCustomerParty/cac:Party", NAMESPACES)

        assert party.find("cac:PartyTaxScheme", NAMESPACES) is None
        assert _text(party, "cac:PartyLegalEntity/cbc:CompanyID") == "1800101223344"

    def test_anonymous_buyer_gets_placeholder(self):
        buyer = PartyData(name="Persoana fizica")
        root = _tree(generate_invoice_xml(_data(customer=buyer)))
        party = root.find("cac:AccountingCustomerParty/cac:Party", NAMESPACES)

        assert party.find("cac:PartyTaxScheme", NAMESPACES) is None
        assert _text(party, "cac:PartyLegalEntity/cbc:CompanyID") == "0000000000000"

    def test_payment_means(self):
        root = _tree(generate_invoice_xml(_data(payment_method="card")))

        assert _text(root, "cac:PaymentMeans/cbc:PaymentMeansCode") == "48"
        assert _text(root, "cac:PaymentMeans/cac:PayeeFinancialAccount/cbc:ID") == (
            "RO49AAAA1B31007593840000"
        )

    @pytest.mark.parametrize(
        "method, code", [("cash", "10"), ("bank_transfer", "30"), (None, "30"), ("crypto", "30")]
    )
    def test_payment_means_codes(self, method, code):
        assert payment_means_code(method) == code

    def test_default_payment_terms(self):
        root = _tree(generate_invoice_xml(_data()))

        assert _text(root, "cac:PaymentTerms/cbc:Note") == "Plata la emitere"

    def test_due_date_replaces_default_terms(self):
        root = _tree(generate_invoice_xml(_data(due_date=date(2026, 2, 28))))

        assert _text(root, "cbc:DueDate") == "2026-02-28"
        assert root.find("cac:PaymentTerms", NAMESPACES) is None

    def test_totals_and_line(self):
        root = _tree(generate_invoice_xml(_data()))

        totals = root.find("cac:LegalMonetaryTotal", NAMESPACES)
        assert _text(totals, "cbc:TaxExclusiveAmount") == "1500.00"
        assert _text(totals, "cbc:PayableAmount") == "1815.00"
        assert totals.find("cbc:PayableAmount", NAMESPACES).get("currencyID") == "RON"

        line = root.find("cac:InvoiceLine", NAMESPACES)
        quantity = line.find("cbc:InvoicedQuantity", NAMESPACES)
        assert (quantity.text, quantity.get("unitCode")) == ("10", "HUR")
        assert _text(line, "cac:Price/cbc:PriceAmount") == "150"
        assert _text(line, "cac:Item/cac:ClassifiedTaxCategory/cbc:Percent") == "21.00"

    def test_tax_subtotals_grouped_by_category_and_rate(self):
        reduced = LineData(
            position=2, description="Carte", quantity=Decimal("1"), unit="buc",
            unit_price=Decimal("100"), line_total=Decimal("100.00"),
            vat_rate=Decimal("11.00"), vat_amount=Decimal("11.00"),
        )
        reverse = LineData(
            position=3, description="Deseuri", quantity=Decimal("1"), unit="kg",
            unit_price=Decimal("50"), line_total=Decimal("50.00"),
            vat_rate=Decimal("0"), vat_category="AE",
        )
        root = _tree(generate_invoice_xml(_data(lines=(LINE, reduced, LINE, reverse))))

        subtotals = root.findall("cac:TaxTotal/cac:TaxSubtotal", NAMESPACES)
        assert [_text(s, "cbc:TaxableAmount") for s in subtotals] == ["3000.00", "100.00", "50.00"]
        assert _text(subtotals[2], "cac:TaxCategory/cbc:TaxExemptionReason") == "Taxare inversa"
        assert subtotals[0].find("cac:TaxCategory/cbc:TaxExemptionReason", NAMESPACES) is None

    def test_control_characters_replaced(self):
        line = LineData(
            position=1, description="Servicii\x0bsoftware", quantity=Decimal("1"), unit="buc",
            unit_price=Decimal("100"), line_total=Decimal("100.00"), vat_rate=Decimal("21.00"),
        )
        customer = PartyData(name="Client\x00Beta SA", tax_id="87654321", vat_payer=True)

        data = _data(lines=(line,), customer=customer, notes=("A\x1bB",))

        root = _tree(generate_invoice_xml(data))

        assert _text(root, "cac:InvoiceLine/cac:Item/cbc:Name") == "Servicii software"
        assert _text(root, "cbc:Note") == "A B"
        party = root.find("cac:AccountingCustomerParty/cac:Party", NAMESPACES)
        assert _text(party, "cac:PartyLegalEntity/cbc:RegistrationName") == "Client Beta SA"


class TestForeignCurrency:
    def test_exchange_rate_required(self):
        with pytest.raises(CodecError, match="Exchange rate for EUR"):
            generate_invoice_xml(_data(currency="EUR"))

    def test_ron_tax_total_added(self):
        root = _tree(generate_invoice_xml(_data(currency="EUR", exchange_rate=Decimal("4.97"))))

        assert _text(root, "cbc:TaxCurrencyCode") == "RON"
        tax_totals = root.findall("cac:TaxTotal", NAMESPACES)
        assert len(tax_totals) == 2
        ron = tax_totals[1].find("cbc:TaxAmount", NAMESPACES)
        assert (ron.text, ron.get("currencyID")) == ("1565.55", "RON")
        assert tax_totals[0].find("cbc:TaxAmount", NAMESPACES).get("currencyID") == "EUR"


class TestCreditNote:
    def test_credit_note_kind(self):
        root = _tree(generate_invoice_xml(_data(kind=DocumentKind.CREDIT_NOTE)))

        assert root.tag == f"{{{CREDIT_NOTE_NS}}}CreditNote"
        assert _text(root, "cbc:CreditNoteTypeCode") == "381"
        assert root.find("cac:CreditNoteLine/cbc:CreditedQuantity", NAMESPACES) is not None
        assert root.find("cac:InvoiceLine", NAMESPACES) is None

    def test_parent_reference_makes_credit_note(self):
        data = _data(
            parent_number="FCT-0040",
            parent_issue_date=date(2026, 1, 5),
            due_date=date(2026, 2, 28),
        )
        root = _tree(generate_invoice_xml(data))

        assert etree.QName(root).localname == "CreditNote"
        assert root.find("cbc:DueDate", NAMESPACES) is None
        ref = root.find("cac:BillingReference/cac:InvoiceDocumentReference", NAMESPACES)
        assert _text(ref, "cbc:ID") == "FCT-0040"
        assert _text(ref, "cbc:IssueDate") == "2026-01-05"


# =============================================================================
# Business references, payee and item identifiers
# =============================================================================


REFERENCES = dict(
    tax_point_date=date(2026, 1, 31),
    buyer_reference="DEP-IT",
    order_reference="PO-2026-17",
    contract_reference="CTR-9/2025",
    invoiced_object_identifier="CJ-SEDIU-3",
    accounting_cost="CC-410",
    project_reference="PRJ-ALFA",
)
PAYEE = PayeeData(name="Factor IFN SA", identifier="FCT-PAYEE-1", legal_id="33445566")
IDENTIFIED_LINE = LineData(
    position=1,
    description="Licenta anuala",
    quantity=Decimal("2"),
    unit="buc",
    unit_price=Decimal("750.00"),
    line_total=Decimal("1500.00"),
    vat_rate=Decimal("21.00"),
    vat_amount=Decimal("315.00"),
    buyer_item_id="ART-77",
    standard_item_id="5941234567890",
    cpv_code="48000000-8",
)


class TestReferences:
    def test_invoice_element_order(self):
        data = _data(
            notes=("Comanda 17",),
            due_date=date(2026, 2, 28),
            payment_terms="30 zile",
            delivery_location="Depozit Turda",
            payee=PAYEE,
            **REFERENCES,
        )

        root = _tree(generate_invoice_xml(data))

        names = [etree.QName(child).localname for child in root]
        assert names == [
            "UBLVersionID", "CustomizationID", "ID", "IssueDate", "DueDate",
            "InvoiceTypeCode", "Note", "TaxPointDate", "DocumentCurrencyCode",
            "AccountingCost", "BuyerReference", "OrderReference",
            "ContractDocumentReference", "AdditionalDocumentReference", "ProjectReference",
            "AccountingSupplierParty", "AccountingCustomerParty", "PayeeParty", "Delivery",
            "PaymentMeans", "PaymentTerms", "TaxTotal", "LegalMonetaryTotal", "InvoiceLine",
        ]

    def test_invoice_values(self):
        root = _tree(generate_invoice_xml(_data(**REFERENCES)))

        assert _text(root, "cbc:TaxPointDate") == "2026-01-31"
        assert _text(root, "cbc:BuyerReference") == "DEP-IT"
        assert _text(root, "cbc:AccountingCost") == "CC-410"
        assert _text(root, "cac:OrderReference/cbc:ID") == "PO-2026-17"
        assert _text(root, "cac:ContractDocumentReference/cbc:ID") == "CTR-9/2025"
        assert _text(root, "cac:ProjectReference/cbc:ID") == "PRJ-ALFA"
        [ref] = root.findall("cac:AdditionalDocumentReference", NAMESPACES)
        assert (_text(ref, "cbc:ID"), _text(ref, "cbc:DocumentTypeCode")) == (
            "CJ-SEDIU-3", "130",
        )

    def test_credit_note_element_order(self):
        data = _data(
            parent_number="FCT-0040",
            parent_issue_date=date(2026, 1, 5),
            tax_point_date=date(2026, 1, 31),
            buyer_reference="DEP-IT",
            project_reference="PRJ-ALFA",
        )

        root = _tree(generate_invoice_xml(data))

        names = [etree.QName(child).localname for child in root]
        assert names == [
            "UBLVersionID", "CustomizationID", "ID", "IssueDate", "TaxPointDate",
            "CreditNoteTypeCode", "DocumentCurrencyCode", "BuyerReference",
            "BillingReference", "AdditionalDocumentReference",
            "AccountingSupplierParty", "AccountingCustomerParty", "PaymentMeans",
            "PaymentTerms", "TaxTotal", "LegalMonetaryTotal", "CreditNoteLine",
        ]

    def test_credit_note_project_travels_as_typed_reference(self):
        root = _tree(generate_invoice_xml(_data(kind=DocumentKind.CREDIT_NOTE, **REFERENCES)))

        assert root.find("cac:ProjectReference", NAMESPACES) is None
        refs = root.findall("cac:AdditionalDocumentReference", NAMESPACES)
        assert [(_text(r, "cbc:ID"), _text(r, "cbc:DocumentTypeCode")) for r in refs] == [
            ("CJ-SEDIU-3", "130"),
            ("PRJ-ALFA", "50"),
        ]

    def test_payee_party(self):
        root = _tree(generate_invoice_xml(_data(payee=PAYEE)))
        payee = root.find("cac:PayeeParty", NAMESPACES)

        assert [etree.QName(child).localname for child in payee] == [
            "PartyIdentification", "PartyName", "PartyLegalEntity",
        ]
        assert _text(payee, "cac:PartyIdentification/cbc:ID") == "FCT-PAYEE-1"
        assert _text(payee, "cac:PartyName/cbc:Name") == "Factor IFN SA"
        assert _text(payee, "cac:PartyLegalEntity/cbc:CompanyID") == "33445566"

    def test_partial_payee(self):
        root = _tree(generate_invoice_xml(_data(payee=PayeeData(name="Factor IFN SA"))))
        payee = root.find("cac:PayeeParty", NAMESPACES)

        assert [etree.QName(child).localname for child in payee] == ["PartyName"]

    def test_empty_payee_omitted(self):
        root = _tree(generate_invoice_xml(_data(payee=PayeeData())))

        assert root.find("cac:PayeeParty", NAMESPACES) is None

    def test_line_item_identifiers(self):
        root = _tree(generate_invoice_xml(_data(lines=(IDENTIFIED_LINE,))))
        item = root.find("cac:InvoiceLine/cac:Item", NAMESPACES)

        assert [etree.QName(child).localname for child in item] == [
            "Name", "BuyersItemIdentification", "StandardItemIdentification",
            "CommodityClassification", "ClassifiedTaxCategory",
        ]
        assert _text(item, "cac:BuyersItemIdentification/cbc:ID") == "ART-77"
        gtin = item.find("cac:StandardItemIdentification/cbc:ID", NAMESPACES)
        assert (gtin.text, gtin.get("schemeID")) == ("5941234567890", "0160")
        cpv = item.find("cac:CommodityClassification/cbc:ItemClassificationCode", NAMESPACES)
        assert (cpv.text, cpv.get("listID")) == ("48000000-8", "CPV")

    def test_plain_line_has_no_identifiers(self):
        root = _tree(generate_invoice_xml(_data()))
        item = root.find("cac:InvoiceLine/cac:Item", NAMESPACES)

        assert [etree.QName(child).localname for child in item] == [
            "Name", "ClassifiedTaxCategory",
        ]


# =============================================================================
# Parsing
# =============================================================================


class TestParse:
    def test_reads_generated_invoice(self):
        parsed = parse_document(generate_invoice_xml(_data(notes=("Prima", "A doua"))))

        assert parsed.kind is DocumentKind.INVOICE
        assert parsed.number == "FCT-0042"
        assert parsed.issue_date == date(2026, 1, 30)
        assert (parsed.subtotal, parsed.vat_total, parsed.total) == (
            Decimal("1500.00"), Decimal("315.00"), Decimal("1815.00"),
        )
        assert parsed.notes == "Prima\nA doua"
        assert parsed.payment_terms == "Plata la emitere"

        assert parsed.seller.tax_id == "12345678"
        assert parsed.seller.vat_code == "RO12345678"
        assert parsed.seller.county == "CJ"
        assert parsed.seller.bank_account == "RO49AAAA1B31007593840000"
        assert parsed.seller.bank_name == "Banca Transilvania"
        assert (parsed.buyer.county, parsed.buyer.city) == ("B", "SECTOR3")

        line = parsed.lines[0]
        assert line.unit == "ora"
        assert line.quantity == Decimal("10")
        assert line.unit_price == Decimal("150")
        assert line.vat_amount == Decimal("315.00")

    def test_reads_credit_note(self):
        parsed = parse_document(generate_invoice_xml(_data(kind=DocumentKind.CREDIT_NOTE)))

        assert parsed.kind is DocumentKind.CREDIT_NOTE
        assert len(parsed.lines) == 1

    def test_reads_references_payee_and_item_ids(self):
        data = _data(lines=(IDENTIFIED_LINE,), payee=PAYEE, **REFERENCES)

        parsed = parse_document(generate_invoice_xml(data))

        assert parsed.tax_point_date == date(2026, 1, 31)
        assert parsed.buyer_reference == "DEP-IT"
        assert parsed.order_reference == "PO-2026-17"
        assert parsed.contract_reference == "CTR-9/2025"
        assert parsed.invoiced_object_identifier == "CJ-SEDIU-3"
        assert parsed.accounting_cost == "CC-410"
        assert parsed.project_reference == "PRJ-ALFA"
        assert parsed.payee == PAYEE
        line = parsed.lines[0]
        assert (line.buyer_item_id, line.standard_item_id, line.cpv_code) == (
            "ART-77", "5941234567890", "48000000-8",
        )

    def test_reads_credit_note_project_reference(self):
        data = _data(kind=DocumentKind.CREDIT_NOTE, project_reference="PRJ-ALFA")

        parsed = parse_document(generate_invoice_xml(data))

        assert parsed.project_reference == "PRJ-ALFA"
        assert parsed.invoiced_object_identifier is None

    def test_absent_references_are_none(self):
        parsed = parse_document(generate_invoice_xml(_data()))

        assert parsed.payee is None
        assert parsed.tax_point_date is None
        assert parsed.order_reference is None
        assert parsed.lines[0].cpv_code is None

    def test_non_cpv_classification_ignored(self):
        xml = generate_invoice_xml(_data(lines=(IDENTIFIED_LINE,))).replace(
            b'listID="CPV"', b'listID="STI"'
        )

        assert parse_document(xml).lines[0].cpv_code is None

    def test_individual_buyer_recovered_from_legal_entity(self):
        buyer = PartyData(name="Ion Popescu", tax_id="1800101223344")

        parsed = parse_document(generate_invoice_xml(_data(customer=buyer)))

        assert parsed.buyer.tax_id == "1800101223344"
        assert parsed.buyer.vat_code is None

    def test_minimal_third_party_document(self):
        xml = f"""<?xml version="1.0"?>
        <Invoice xmlns="{INVOICE_NS}"
                 xmlns:cac="{NAMESPACES['cac']}" xmlns:cbc="{NAMESPACES['cbc']}">
          <cbc:ID>X-1</cbc:ID>
          <cbc:IssueDate>2026-01-15T10:00:00</cbc:IssueDate>
          <cac:AdditionalDocumentReference>
            <cbc:ID>anexa</cbc:ID>
            <cbc:DocumentDescription>Proces verbal</cbc:DocumentDescription>
            <cac:Attachment>
              <cbc:EmbeddedDocumentBinaryObject mimeCode="application/pdf" filename="pv.pdf">
                JVBERi0x
                LjQK
              </cbc:EmbeddedDocumentBinaryObject>
            </cac:Attachment>
          </cac:AdditionalDocumentReference>
          <cac:InvoiceLine>
            <cbc:LineExtensionAmount currencyID="RON">100.00</cbc:LineExtensionAmount>
            <cac:Item><cbc:Description>Transport</cbc:Description></cac:Item>
          </cac:InvoiceLine>
        </Invoice>""".encode()

        parsed = parse_document(xml)

        assert parsed.issue_date == date(2026, 1, 15)
        assert parsed.currency == "RON"
        assert parsed.total == Decimal("0")
        assert parsed.seller is None
        assert parsed.payment_terms is None
        line = parsed.lines[0]
        assert (line.description, line.quantity, line.unit) == ("Transport", Decimal("1"), "buc")
        assert (line.vat_category, line.vat_amount) == ("S", Decimal("0.00"))
        attachment = parsed.attachments[0]
        assert attachment.content_base64 == "JVBERi0xLjQK"
        assert (attachment.filename, attachment.mime_type) == ("pv.pdf", "application/pdf")
        assert attachment.description == "Proces verbal"

    def test_non_finite_amount_rejected(self):
        xml = generate_invoice_xml(_data()).replace(
            b">1815.00</cbc:PayableAmount>", b">NaN</cbc:PayableAmount>"
        )

        with pytest.raises(CodecError, match="Non-finite"):
            parse_document(xml)

    def test_malformed_xml(self):
        with pytest.raises(XmlParseError) as exc_info:
            parse_document(b"<Invoice>\n<cbc:ID>")

        assert str(exc_info.value).startswith("Malformed XML")

    def test_unsupported_root(self):
        with pytest.raises(UnsupportedDocumentError, match="Order"):
            parse_document(b'<Order xmlns="urn:example:order"/>')

    def test_invoice_in_wrong_namespace(self):
        with pytest.raises(UnsupportedDocumentError):
            parse_document(b"<Invoice/>")


# Generator and parser both strip; characters outside XML 1.0 are covered above.
plain_text = (
    st.text(st.characters(whitelist_categories=("L", "N", "P")), min_size=1, max_size=30)
    | st.builds(
        "{} {}".format,
        st.text(st.characters(whitelist_categories=("L", "N")), min_size=1, max_size=12),
        st.text(st.characters(whitelist_categories=("L", "N")), min_size=1, max_size=12),
    )
)


class TestRoundTrip:
    @given(
        due_date=st.dates(min_value=date(2000, 1, 1), max_value=date(2099, 12, 31)),
        project_reference=plain_text,
        delivery_location=plain_text,
        payment_terms=plain_text,
        address=plain_text,
        city=plain_text,
        county=st.sampled_from(["CJ", "TM", "IS", "BV", "AB"]),
        postal_code=st.from_regex(r"[0-9]{6}", fullmatch=True),
    )
    def test_header_and_buyer_address_survive(
        self, due_date, project_reference, delivery_location, payment_terms,
        address, city, county, postal_code,
    ):
        customer = PartyData(
            name="Client Beta SA", tax_id="87654321", vat_payer=True,
            address=address, city=city, county=county, postal_code=postal_code,
        )
        data = _data(
            customer=customer,
            due_date=due_date,
            project_reference=project_reference,
            delivery_location=delivery_location,
            payment_terms=payment_terms,
        )

        parsed = parse_document(generate_invoice_xml(data))

        assert parsed.due_date == due_date
        assert parsed.project_reference == project_reference
        assert parsed.delivery_location == delivery_location
        assert parsed.payment_terms == payment_terms
        assert (parsed.buyer.address, parsed.buyer.city) == (address, city)
        assert (parsed.buyer.county, parsed.buyer.postal_code) == (county, postal_code)


# =============================================================================
# ORM snapshot
# =============================================================================


class TestDocumentMapping:
    def test_snapshot_from_model(self, make_document):
        document = make_document(notes="Prima\n\nA doua", payment_terms="30 zile")

        data = document_data_from_model(document)

        assert data.kind is DocumentKind.INVOICE
        assert data.number == "FCT-0001"
        assert data.supplier.vat_identifier == "RO12345678"
        assert data.customer.tax_id == "87654321"
        assert data.customer.vat_payer is True
        assert data.notes == ("Prima", "A doua")
        assert data.bank_account == "RO49AAAA1B31007593840000"
        assert data.total == Decimal("1815.00")
        assert data.lines[0].line_total == Decimal("1500.00")
        assert data.parent_number is None

    def test_snapshot_carries_references(self, make_document):
        document = make_document(
            buyer_reference="DEP-IT",
            order_reference="PO-2026-17",
            contract_reference="CTR-9/2025",
            invoiced_object_identifier="CJ-SEDIU-3",
            accounting_cost="CC-410",
            tax_point_date=date(2026, 1, 31),
            payee_name="Factor IFN SA",
        )
        line = document.lines[0]
        line.buyer_item_id, line.standard_item_id, line.cpv_code = (
            "ART-77", "5941234567890", "48000000-8",
        )

        data = document_data_from_model(document)

        assert (data.buyer_reference, data.order_reference, data.contract_reference) == (
            "DEP-IT", "PO-2026-17", "CTR-9/2025",
        )
        assert (data.invoiced_object_identifier, data.accounting_cost) == ("CJ-SEDIU-3", "CC-410")
        assert data.tax_point_date == date(2026, 1, 31)
        assert data.payee == PayeeData(name="Factor IFN SA")
        assert data.lines[0].cpv_code == "48000000-8"
        assert data.lines[0].standard_item_id == "5941234567890"

    def test_snapshot_without_payee(self, make_document):
        assert document_data_from_model(make_document()).payee is None

    def test_generate_xml_for_invoice(self, make_document):
        root = _tree(generate_xml(document_data_from_model(make_document())))

        assert etree.QName(root).localname == "Invoice"
        assert _text(root, "cac:PaymentTerms/cbc:Note") == "Plata la emitere"

    def test_credit_note_references_parent(self, make_document):
        parent = make_document("FCT-0001")
        refund = make_document("NC-0001", kind="credit_note", parent_document=parent)

        data = document_data_from_model(refund)

        assert data.is_refund
        assert data.parent_number == "FCT-0001"
        assert data.parent_issue_date == date(2026, 1, 30)

    def test_transport_note_routes_to_declaration(self, make_document):
        document = make_document(
            "AVZ-0001", kind="transport_note", transport={"vehicle_number": "CJ10ABC"},
        )

        root = _tree(generate_xml(document_data_from_model(document)))

        assert etree.QName(root).localname == "eTransport"
        assert root.find("{*}notificare/{*}corectie") is None

    def test_transport_note_with_uit_is_correction(self, make_document):
        document = make_document(
            "AVZ-0002", kind="transport_note", transport={}, transport_uit="0000000000000173",
        )

        root = _tree(generate_xml(document_data_from_model(document)))

        assert root.find("{*}notificare/{*}corectie").get("uit") == "0000000000000173"
