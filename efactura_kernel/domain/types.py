"""
efactura_kernel.domain.types -- Status and classification enums.

Shared by the ORM models, the submission state machine and the sync
engine.  ZERO I/O.
"""

from __future__ import annotations

from enum import Enum


# =============================================================================
# Document enums
# =============================================================================


class DocumentKind(str, Enum):
    INVOICE = "invoice"
    CREDIT_NOTE = "credit_note"
    TRANSPORT_NOTE = "transport_note"


class Direction(str, Enum):
    INCOMING = "incoming"
    OUTGOING = "outgoing"


class DocumentStatus(str, Enum):
    """Local lifecycle of a document, independent of the Authority."""

    DRAFT = "draft"
    ISSUED = "issued"
    SENT_TO_PROVIDER = "sent_to_provider"  # Uploaded, verdict pending
    VALIDATED = "validated"  # Authority accepted
    REJECTED = "rejected"  # Authority refused
    SYNCED = "synced"  # Discovered through inbox sync


class ExternalStatus(str, Enum):
    """Authority-side status stored on the document row."""

    PENDING = "pending"
    UPLOADED = "uploaded"
    OK = "ok"
    NOK = "nok"
    VALIDATION_FAILED = "validation_failed"
    UPLOAD_FAILED = "upload_failed"
    PENDING_TIMEOUT = "pending_timeout"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_EXTERNAL


_TERMINAL_EXTERNAL = frozenset({
    ExternalStatus.OK,
    ExternalStatus.NOK,
    ExternalStatus.PENDING_TIMEOUT,
})


# States from which a (re)submission is allowed.
SUBMITTABLE_EXTERNAL_STATUSES: frozenset[str | None] = frozenset({
    None,
    ExternalStatus.PENDING.value,
    ExternalStatus.VALIDATION_FAILED.value,
    ExternalStatus.UPLOAD_FAILED.value,
})


# =============================================================================
# Party enums
# =============================================================================


class PartyRole(str, Enum):
    CLIENT = "client"
    SUPPLIER = "supplier"


class PartyKind(str, Enum):
    COMPANY = "company"
    INDIVIDUAL = "individual"


# =============================================================================
# Inbox enums
# =============================================================================


class MessageKind(str, Enum):
    """Closed classification of an inbox message type tag."""

    INCOMING = "incoming"  # FACTURA PRIMITA
    OUTGOING = "outgoing"  # FACTURA TRIMISA
    ERROR_NOTICE = "error_notice"  # ERORI FACTURA
    OTHER = "other"

    @classmethod
    def from_type_tag(cls, tag: str | None) -> MessageKind:
        return _TYPE_TAGS.get((tag or "").strip().upper(), cls.OTHER)

    @property
    def direction(self) -> Direction | None:
        if self is MessageKind.INCOMING:
            return Direction.INCOMING
        if self is MessageKind.OUTGOING:
            return Direction.OUTGOING
        return None


_TYPE_TAGS = {
    "FACTURA PRIMITA": MessageKind.INCOMING,
    "FACTURA TRIMISA": MessageKind.OUTGOING,
    "ERORI FACTURA": MessageKind.ERROR_NOTICE,
}


class InboxStatus(str, Enum):
    PENDING = "pending"
    PROCESSED = "processed"
    ERROR = "error"
