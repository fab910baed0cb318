"""
Tenant model.

The tenant is the company on whose behalf documents are submitted and whose
Authority inbox is reconciled.  It is also the seller on outgoing invoices.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from efactura_kernel.db.base import TrackedBase


class Tenant(TrackedBase):
    __tablename__ = "tenants"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    tax_id: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    vat_payer: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    registration_number: Mapped[str | None] = mapped_column(String(50), nullable=True)

    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    county: Mapped[str | None] = mapped_column(String(50), nullable=True)
    country: Mapped[str] = mapped_column(String(2), default="RO", nullable=False)
    postal_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    bank_account: Mapped[str | None] = mapped_column(String(50), nullable=True)
    bank_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Decimal strings ("21.00"); empty means the fallback rate set applies.
    vat_rates: Mapped[list | None] = mapped_column(JSON, nullable=True)
    oss_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    sync_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    sync_days_back: Mapped[int] = mapped_column(Integer, default=60, nullable=False)
    last_synced_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Tenant {self.tax_id} {self.name!r}>"
