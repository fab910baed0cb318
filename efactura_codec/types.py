"""
efactura_codec.types -- Immutable DTOs exchanged with the codec.

``DocumentData`` is what the generators consume; ``ParsedDocument`` is what
the parser produces.  Neither depends on the ORM, so the codec can be used
and tested without a database.  ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from uuid import UUID

from efactura_kernel.domain.types import DocumentKind


# =============================================================================
# Generation input
# =============================================================================


@dataclass(frozen=True)
class PartyData:
    name: str
    tax_id: str | None = None  # Normalized, no country prefix
    vat_payer: bool = False  # Re-apply the country prefix on output
    country: str = "RO"
    address: str | None = None
    city: str | None = None
    county: str | None = None  # ISO 3166-2:RO suffix ("CJ", "B")
    postal_code: str | None = None
    registration_number: str | None = None
    email: str | None = None
    phone: str | None = None

    @property
    def vat_identifier(self) -> str | None:
        if not self.tax_id:
            return None
        if self.vat_payer:
            return f"{self.country}{self.tax_id}"
        return self.tax_id


@dataclass(frozen=True)
class PayeeData:
    """Payment recipient distinct from the supplier (factoring, collection)."""

    name: str | None = None
    identifier: str | None = None
    legal_id: str | None = None

    def __bool__(self) -> bool:
        return bool(self.name or self.identifier or self.legal_id)


@dataclass(frozen=True)
class LineData:
    position: int
    description: str
    quantity: Decimal
    unit: str
    unit_price: Decimal
    line_total: Decimal
    vat_rate: Decimal = Decimal("21.00")
    vat_category: str = "S"
    vat_amount: Decimal = Decimal("0")
    discount: Decimal = Decimal("0")
    buyer_item_id: str | None = None
    standard_item_id: str | None = None  # GTIN, scheme 0160
    cpv_code: str | None = None
    # e-Transport goods attributes
    unit_code: str | None = None
    tariff_code: str | None = None
    purpose_code: int | None = None
    net_weight: Decimal | None = None
    gross_weight: Decimal | None = None
    value_without_vat: Decimal | None = None


@dataclass(frozen=True)
class RouteLocation:
    county: int | None = None  # e-Transport numeric county code
    locality: str | None = None
    street: str | None = None
    number: str | None = None
    postal_code: str | None = None
    other_info: str | None = None

    @classmethod
    def from_dict(cls, data: dict | None) -> RouteLocation | None:
        if not data:
            return None
        county = data.get("county")
        return cls(
            county=int(county) if county not in (None, "") else None,
            locality=data.get("locality"),
            street=data.get("street"),
            number=data.get("number"),
            postal_code=data.get("postal_code"),
            other_info=data.get("other_info"),
        )


# e-Transport operation types (codTipOperatiune)
OP_INTRA_ACQUISITION = 10
OP_INTRA_DELIVERY = 20
OP_NATIONAL = 30  # TTN
OP_IMPORT = 40
OP_EXPORT = 50
OP_INTRA_IN = 60  # DIN
OP_INTRA_OUT = 70  # DIE


@dataclass(frozen=True)
class TransportData:
    operation_type: int = OP_NATIONAL
    vehicle_number: str | None = None
    trailer1: str | None = None
    trailer2: str | None = None
    transporter_country: str | None = None
    transporter_code: str | None = None
    transporter_name: str | None = None
    transport_date: date | None = None
    start: RouteLocation | None = None
    end: RouteLocation | None = None
    post_incident: bool = False
    uit: str | None = None

    @classmethod
    def from_dict(cls, data: dict | None, uit: str | None = None) -> TransportData:
        data = data or {}
        raw_date = data.get("transport_date")
        return cls(
            operation_type=int(data.get("operation_type") or OP_NATIONAL),
            vehicle_number=data.get("vehicle_number"),
            trailer1=data.get("trailer1"),
            trailer2=data.get("trailer2"),
            transporter_country=data.get("transporter_country"),
            transporter_code=data.get("transporter_code"),
            transporter_name=data.get("transporter_name"),
            transport_date=date.fromisoformat(raw_date) if raw_date else None,
            start=RouteLocation.from_dict(data.get("start")),
            end=RouteLocation.from_dict(data.get("end")),
            post_incident=bool(data.get("post_incident")),
            uit=uit,
        )


@dataclass(frozen=True)
class DocumentData:
    """Everything a generator needs, snapshotted from the ORM document."""

    document_id: UUID | None
    kind: DocumentKind
    number: str | None
    issue_date: date | None
    supplier: PartyData
    customer: PartyData | None
    lines: tuple[LineData, ...]
    currency: str = "RON"
    due_date: date | None = None
    subtotal: Decimal = Decimal("0")
    vat_total: Decimal = Decimal("0")
    total: Decimal = Decimal("0")
    exchange_rate: Decimal | None = None
    notes: tuple[str, ...] = ()
    payment_terms: str | None = None
    payment_method: str | None = None
    bank_account: str | None = None
    bank_name: str | None = None
    delivery_location: str | None = None
    project_reference: str | None = None
    tax_point_date: date | None = None
    buyer_reference: str | None = None
    order_reference: str | None = None
    contract_reference: str | None = None
    invoiced_object_identifier: str | None = None
    accounting_cost: str | None = None
    payee: PayeeData | None = None
    parent_number: str | None = None
    parent_issue_date: date | None = None
    transport: TransportData | None = None

    @property
    def is_refund(self) -> bool:
        return self.kind is DocumentKind.CREDIT_NOTE or self.parent_number is not None


# =============================================================================
# Parse output
# =============================================================================


@dataclass(frozen=True)
class ParsedParty:
    tax_id: str | None = None
    name: str | None = None
    vat_code: str | None = None
    registration_number: str | None = None
    address: str | None = None
    city: str | None = None
    county: str | None = None
    country: str = "RO"
    postal_code: str | None = None
    phone: str | None = None
    email: str | None = None
    bank_account: str | None = None
    bank_name: str | None = None


@dataclass(frozen=True)
class ParsedLine:
    description: str
    quantity: Decimal
    unit: str
    unit_price: Decimal
    vat_rate: Decimal
    vat_category: str
    vat_amount: Decimal
    line_total: Decimal
    buyer_item_id: str | None = None
    standard_item_id: str | None = None
    cpv_code: str | None = None


@dataclass(frozen=True)
class ParsedAttachment:
    content_base64: str
    filename: str | None = None
    mime_type: str = "application/octet-stream"
    description: str | None = None


@dataclass(frozen=True)
class ParsedDocument:
    kind: DocumentKind
    number: str | None
    issue_date: date | None
    due_date: date | None
    currency: str
    subtotal: Decimal
    vat_total: Decimal
    total: Decimal
    seller: ParsedParty | None
    buyer: ParsedParty | None
    lines: tuple[ParsedLine, ...] = ()
    notes: str | None = None
    payment_terms: str | None = None
    delivery_location: str | None = None
    project_reference: str | None = None
    tax_point_date: date | None = None
    buyer_reference: str | None = None
    order_reference: str | None = None
    contract_reference: str | None = None
    invoiced_object_identifier: str | None = None
    accounting_cost: str | None = None
    payee: PayeeData | None = None
    attachments: tuple[ParsedAttachment, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class DownloadedPayload:
    """Contents of a downloaded message archive."""

    xml: bytes
    signature: bytes | None = None
