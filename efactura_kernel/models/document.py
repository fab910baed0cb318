"""
Document, line, attachment and status-event models.

Contract:
    A Document is an invoice, credit note or transport declaration owned by
    one tenant.  Lines, attachments and events are owned exclusively by the
    document and are cascade-deleted with it.

Invariants enforced:
    - Monetary columns are Numeric; never floats.
    - ``external_message_id`` is unique per tenant (inbox idempotency).
    - ``external_status`` only ever holds an ExternalStatus value.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from efactura_kernel.db.base import TrackedBase, UUIDString
from efactura_kernel.db.types import compute_line_amounts

if TYPE_CHECKING:
    from efactura_kernel.models.party import Party
    from efactura_kernel.models.tenant import Tenant


class Document(TrackedBase):
    __tablename__ = "documents"

    __table_args__ = (
        UniqueConstraint("tenant_id", "external_message_id", name="uq_documents_tenant_message"),
        Index("ix_documents_tenant_upload", "tenant_id", "external_upload_id"),
        Index("ix_documents_tenant_number", "tenant_id", "number", "direction"),
        Index("ix_documents_status", "status"),
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False,
    )
    kind: Mapped[str] = mapped_column(String(20), default="invoice", nullable=False)
    direction: Mapped[str] = mapped_column(String(10), default="outgoing", nullable=False)
    status: Mapped[str] = mapped_column(String(30), default="draft", nullable=False)

    number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    issue_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    currency: Mapped[str] = mapped_column(String(3), default="RON", nullable=False)
    exchange_rate: Mapped[Decimal | None] = mapped_column(nullable=True)

    subtotal: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    vat_total: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    total: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    payment_terms: Mapped[str | None] = mapped_column(Text, nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String(30), nullable=True)
    delivery_location: Mapped[str | None] = mapped_column(String(500), nullable=True)
    project_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    tax_point_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    buyer_reference: Mapped[str | None] = mapped_column(String(200), nullable=True)
    order_reference: Mapped[str | None] = mapped_column(String(200), nullable=True)
    contract_reference: Mapped[str | None] = mapped_column(String(200), nullable=True)
    invoiced_object_identifier: Mapped[str | None] = mapped_column(String(200), nullable=True)
    accounting_cost: Mapped[str | None] = mapped_column(String(200), nullable=True)

    # Payee, when payment goes to someone other than the supplier.
    payee_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payee_identifier: Mapped[str | None] = mapped_column(String(100), nullable=True)
    payee_legal_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    scheduled_send_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    deadline_warning_sent_on: Mapped[date | None] = mapped_column(Date, nullable=True)

    party_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("parties.id", ondelete="SET NULL"), nullable=True,
    )
    parent_document_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("documents.id", ondelete="SET NULL"), nullable=True,
    )

    sender_tax_id: Mapped[str | None] = mapped_column(String(20), nullable=True)
    sender_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    receiver_tax_id: Mapped[str | None] = mapped_column(String(20), nullable=True)
    receiver_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Authority correlation
    external_message_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    external_upload_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    external_download_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    external_status: Mapped[str | None] = mapped_column(String(30), nullable=True)
    external_error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    xml_path: Mapped[str | None] = mapped_column(String(500), nullable=True)
    signature_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_duplicate: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_late_submission: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # e-Transport declaration data (vehicle, route, transporter).
    transport: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    transport_uit: Mapped[str | None] = mapped_column(String(16), nullable=True)

    tenant: Mapped[Tenant] = relationship("Tenant")
    party: Mapped[Party | None] = relationship("Party")
    parent_document: Mapped[Document | None] = relationship(
        "Document", remote_side="Document.id",
    )
    lines: Mapped[list[DocumentLine]] = relationship(
        "DocumentLine",
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="DocumentLine.position",
    )
    attachments: Mapped[list[DocumentAttachment]] = relationship(
        "DocumentAttachment",
        back_populates="document",
        cascade="all, delete-orphan",
    )
    events: Mapped[list[DocumentEvent]] = relationship(
        "DocumentEvent",
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="DocumentEvent.created_at",
    )

    @property
    def is_refund(self) -> bool:
        return self.parent_document_id is not None or self.kind == "credit_note"

    def add_line(self, line: DocumentLine) -> DocumentLine:
        line.position = len(self.lines) + 1
        self.lines.append(line)
        return line

    def recalculate_totals(self) -> None:
        """Recompute every line's amounts and the document totals."""
        subtotal = Decimal("0")
        vat_total = Decimal("0")
        for line in self.lines:
            line.recalculate()
            subtotal += line.line_total
            vat_total += line.vat_amount
        self.subtotal = subtotal
        self.vat_total = vat_total
        self.total = subtotal + vat_total

    def record_status_change(
        self, new_status: str, metadata: dict[str, Any] | None = None,
    ) -> DocumentEvent:
        event = DocumentEvent(
            previous_status=self.status,
            new_status=new_status,
            event_metadata=metadata or {},
        )
        self.status = new_status
        self.events.append(event)
        return event

    def has_status_event(self, status: str) -> bool:
        return any(e.new_status == status for e in self.events)

    def __repr__(self) -> str:
        return f"<Document {self.kind} {self.number!r} {self.direction} {self.status}>"


class DocumentLine(TrackedBase):
    __tablename__ = "document_lines"

    document_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("documents.id", ondelete="CASCADE"), nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    description: Mapped[str] = mapped_column(String(500), default="", nullable=False)
    quantity: Mapped[Decimal] = mapped_column(default=Decimal("1"), nullable=False)
    unit: Mapped[str] = mapped_column(String(20), default="buc", nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    discount: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    vat_rate: Mapped[Decimal] = mapped_column(default=Decimal("21.00"), nullable=False)
    vat_category: Mapped[str] = mapped_column(String(5), default="S", nullable=False)
    vat_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    line_total: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    catalog_item_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("catalog_items.id", ondelete="SET NULL"), nullable=True,
    )

    # e-Transport goods attributes
    tariff_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    purpose_code: Mapped[int | None] = mapped_column(Integer, nullable=True)
    net_weight: Mapped[Decimal | None] = mapped_column(nullable=True)
    gross_weight: Mapped[Decimal | None] = mapped_column(nullable=True)
    value_without_vat: Mapped[Decimal | None] = mapped_column(nullable=True)

    buyer_item_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    standard_item_id: Mapped[str | None] = mapped_column(String(100), nullable=True)  # GTIN
    cpv_code: Mapped[str | None] = mapped_column(String(20), nullable=True)

    document: Mapped[Document] = relationship("Document", back_populates="lines")

    def recalculate(self) -> None:
        self.line_total, self.vat_amount = compute_line_amounts(
            self.quantity, self.unit_price, self.vat_rate, self.discount,
        )


class DocumentAttachment(TrackedBase):
    __tablename__ = "document_attachments"

    document_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("documents.id", ondelete="CASCADE"), nullable=False,
    )
    filename: Mapped[str | None] = mapped_column(String(255), nullable=True)
    mime_type: Mapped[str] = mapped_column(String(100), default="application/octet-stream")
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    content_base64: Mapped[str] = mapped_column(Text, nullable=False)

    document: Mapped[Document] = relationship("Document", back_populates="attachments")


class DocumentEvent(TrackedBase):
    """Append-only status transition record."""

    __tablename__ = "document_events"

    document_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("documents.id", ondelete="CASCADE"), nullable=False,
    )
    previous_status: Mapped[str | None] = mapped_column(String(30), nullable=True)
    new_status: Mapped[str] = mapped_column(String(30), nullable=False)
    event_metadata: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)

    document: Mapped[Document] = relationship("Document", back_populates="events")
