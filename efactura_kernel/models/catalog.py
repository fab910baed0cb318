"""
Catalog items and document numbering series.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from efactura_kernel.db.base import TrackedBase, UUIDString


class CatalogItem(TrackedBase):
    __tablename__ = "catalog_items"

    __table_args__ = (
        Index("ix_catalog_items_tenant_name_unit", "tenant_id", "name", "unit"),
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    unit: Mapped[str] = mapped_column(String(20), default="buc", nullable=False)
    default_price: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    vat_rate: Mapped[Decimal] = mapped_column(default=Decimal("21.00"), nullable=False)
    is_service: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    source: Mapped[str] = mapped_column(String(30), default="manual", nullable=False)


class DocumentSeries(TrackedBase):
    """Numbering series (``prefix`` + ``next_number``) per document kind."""

    __tablename__ = "document_series"

    __table_args__ = (
        Index("ix_document_series_tenant_prefix_kind", "tenant_id", "prefix", "kind", unique=True),
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False,
    )
    prefix: Mapped[str] = mapped_column(String(30), nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    next_number: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    source: Mapped[str] = mapped_column(String(30), default="manual", nullable=False)
