"""
InboxMessage model -- the append-only audit trail of every message the
Authority has ever reported for a tenant.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from efactura_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from efactura_kernel.models.document import Document


class InboxMessage(TrackedBase):
    __tablename__ = "inbox_messages"

    __table_args__ = (
        UniqueConstraint("tenant_id", "external_message_id", name="uq_inbox_tenant_message"),
        Index("ix_inbox_messages_upload_id", "upload_id"),
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False,
    )
    external_message_id: Mapped[str] = mapped_column(String(255), nullable=False)
    message_type: Mapped[str] = mapped_column(String(100), nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    tax_id: Mapped[str | None] = mapped_column(String(20), nullable=True)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    upload_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    document_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("documents.id", ondelete="SET NULL"), nullable=True,
    )
    document: Mapped[Document | None] = relationship("Document")

    def __repr__(self) -> str:
        return f"<InboxMessage {self.external_message_id} {self.message_type!r} {self.status}>"
