"""
Counterparty and bank account models.

A Party is either a client (buyer on outgoing documents) or a supplier
(seller on incoming documents).  Company vs individual is derived from the
identifier pattern when the row is created, never supplied by callers.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from efactura_kernel.db.base import TrackedBase, UUIDString


class Party(TrackedBase):
    __tablename__ = "parties"

    __table_args__ = (
        Index("ix_parties_tenant_role_tax_id", "tenant_id", "role", "tax_id"),
        Index("ix_parties_tenant_role_personal_id", "tenant_id", "role", "personal_id"),
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False,
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)

    # Normalized: no country prefix, no whitespace.
    tax_id: Mapped[str | None] = mapped_column(String(20), nullable=True)
    personal_id: Mapped[str | None] = mapped_column(String(13), nullable=True)
    vat_code: Mapped[str | None] = mapped_column(String(30), nullable=True)
    registration_number: Mapped[str | None] = mapped_column(String(50), nullable=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    county: Mapped[str | None] = mapped_column(String(50), nullable=True)
    country: Mapped[str] = mapped_column(String(2), default="RO", nullable=False)
    postal_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    bank_account: Mapped[str | None] = mapped_column(String(50), nullable=True)
    bank_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    source: Mapped[str] = mapped_column(String(30), default="manual", nullable=False)

    @property
    def is_vat_payer(self) -> bool:
        return bool(self.vat_code and self.vat_code.upper().startswith("RO"))


class BankAccount(TrackedBase):
    """A tenant's own bank account, discovered from outgoing invoices."""

    __tablename__ = "bank_accounts"

    __table_args__ = (
        Index("ix_bank_accounts_tenant_iban", "tenant_id", "iban", unique=True),
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False,
    )
    iban: Mapped[str] = mapped_column(String(50), nullable=False)
    bank_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    currency: Mapped[str] = mapped_column(String(3), default="RON", nullable=False)
    source: Mapped[str] = mapped_column(String(30), default="manual", nullable=False)
