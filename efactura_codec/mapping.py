"""
ORM -> DTO snapshot.

``document_data_from_model`` is the only place the codec touches ORM
objects.  It reads the document, its lines, its party and its tenant and
returns an immutable ``DocumentData`` the generators can consume.
"""

from __future__ import annotations

from decimal import Decimal

from efactura_codec.etransport import generate_correction, generate_notification
from efactura_codec.types import (
    DocumentData,
    LineData,
    PartyData,
    PayeeData,
    TransportData,
)
from efactura_codec.ubl import generate_invoice_xml
from efactura_kernel.domain.types import DocumentKind, PartyKind


def _tenant_party(tenant) -> PartyData:
    return PartyData(
        name=tenant.name,
        tax_id=tenant.tax_id,
        vat_payer=bool(tenant.vat_payer),
        country=tenant.country or "RO",
        address=tenant.address,
        city=tenant.city,
        county=tenant.county,
        postal_code=tenant.postal_code,
        registration_number=tenant.registration_number,
        email=tenant.email,
        phone=tenant.phone,
    )


def _counterparty(party) -> PartyData | None:
    if party is None:
        return None
    if party.kind == PartyKind.INDIVIDUAL.value:
        tax_id = party.personal_id
    else:
        tax_id = party.tax_id
    return PartyData(
        name=party.name,
        tax_id=tax_id,
        vat_payer=party.is_vat_payer,
        country=party.country or "RO",
        address=party.address,
        city=party.city,
        county=party.county,
        postal_code=party.postal_code,
        registration_number=party.registration_number,
        email=party.email,
        phone=party.phone,
    )


def _line(line) -> LineData:
    return LineData(
        position=line.position,
        description=line.description or "",
        quantity=Decimal(line.quantity),
        unit=line.unit,
        unit_price=Decimal(line.unit_price),
        line_total=Decimal(line.line_total),
        vat_rate=Decimal(line.vat_rate),
        vat_category=line.vat_category or "S",
        vat_amount=Decimal(line.vat_amount),
        discount=Decimal(line.discount or 0),
        buyer_item_id=line.buyer_item_id,
        standard_item_id=line.standard_item_id,
        cpv_code=line.cpv_code,
        tariff_code=line.tariff_code,
        purpose_code=line.purpose_code,
        net_weight=line.net_weight,
        gross_weight=line.gross_weight,
        value_without_vat=line.value_without_vat,
    )


def document_data_from_model(document) -> DocumentData:
    """Snapshot an outgoing ORM ``Document`` for XML generation."""
    kind = DocumentKind(document.kind)
    parent = document.parent_document
    notes = tuple(n for n in (document.notes or "").split("\n") if n.strip())

    payee = PayeeData(
        name=document.payee_name,
        identifier=document.payee_identifier,
        legal_id=document.payee_legal_id,
    )

    transport = None
    if kind is DocumentKind.TRANSPORT_NOTE:
        transport = TransportData.from_dict(document.transport, uit=document.transport_uit)

    return DocumentData(
        document_id=document.id,
        kind=kind,
        number=document.number,
        issue_date=document.issue_date,
        due_date=document.due_date,
        supplier=_tenant_party(document.tenant),
        customer=_counterparty(document.party),
        lines=tuple(_line(line) for line in document.lines),
        currency=document.currency or "RON",
        subtotal=Decimal(document.subtotal),
        vat_total=Decimal(document.vat_total),
        total=Decimal(document.total),
        exchange_rate=document.exchange_rate,
        notes=notes,
        payment_terms=document.payment_terms,
        payment_method=document.payment_method,
        bank_account=document.tenant.bank_account,
        bank_name=document.tenant.bank_name,
        delivery_location=document.delivery_location,
        project_reference=document.project_reference,
        tax_point_date=document.tax_point_date,
        buyer_reference=document.buyer_reference,
        order_reference=document.order_reference,
        contract_reference=document.contract_reference,
        invoiced_object_identifier=document.invoiced_object_identifier,
        accounting_cost=document.accounting_cost,
        payee=payee or None,
        parent_number=(parent.number or "") if parent is not None else None,
        parent_issue_date=parent.issue_date if parent is not None else None,
        transport=transport,
    )


def generate_xml(data: DocumentData) -> bytes:
    """Pick the generator for ``data.kind``; transport documents with a UIT become corrections."""
    if data.kind is DocumentKind.TRANSPORT_NOTE:
        if data.transport is not None and data.transport.uit:
            return generate_correction(data, data.transport.uit)
        return generate_notification(data)
    return generate_invoice_xml(data)
