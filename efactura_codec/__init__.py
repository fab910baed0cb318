"""
Module: efactura_codec
Responsibility:
    Document <-> XML conversion for the Authority: UBL 2.1 / CIUS-RO
    invoices and credit notes, e-Transport v2 declarations, downloaded zip
    payloads and Authority reply envelopes.

Architecture position:
    Codec -- pure transformation layer, no database or network I/O.
    May import efactura_kernel (exceptions, logging, domain enums, money
    helpers).  MUST NOT import validation, authority, submission or sync.

Invariants enforced:
    - Generated element order follows the target schema sequence.
    - Numeric attributes of e-Transport declarations drop trailing zeros;
      UBL monetary amounts are always two decimals.
    - Unknown unit codes fall back to "piece" in both directions.

Failure modes:
    - XmlParseError (line/column) for malformed XML.
    - UnsupportedDocumentError for an unknown root element.
    - PayloadExtractionError for archives without an XML document.

Usage:
    from efactura_codec import generate_invoice_xml, parse_document
    from efactura_codec import validate_uit, compute_uit_check_digits
"""

from efactura_codec.etransport import (
    generate_confirmation,
    generate_correction,
    generate_deletion,
    generate_notification,
)
from efactura_codec.mapping import document_data_from_model, generate_xml
from efactura_codec.numbers import format_amount, format_decimal, parse_decimal
from efactura_codec.payloads import extract_payload, parse_error_report
from efactura_codec.replies import (
    MessageListResponse,
    ProcessingState,
    RawMessage,
    StatusResponse,
    UploadResponse,
    parse_message_list,
    parse_status_reply,
    parse_transport_list,
    parse_transport_status_reply,
    parse_transport_upload_reply,
    parse_upload_reply,
)
from efactura_codec.types import (
    DocumentData,
    DownloadedPayload,
    LineData,
    ParsedAttachment,
    ParsedDocument,
    ParsedLine,
    ParsedParty,
    PartyData,
    PayeeData,
    RouteLocation,
    TransportData,
)
from efactura_codec.ubl import generate_invoice_xml
from efactura_codec.ubl_parser import parse_document
from efactura_codec.uit import compute_uit_check_digits, is_valid_uit, validate_uit
from efactura_codec.units import from_unit_code, to_unit_code

__all__ = [
    "DocumentData",
    "DownloadedPayload",
    "LineData",
    "MessageListResponse",
    "ParsedAttachment",
    "ParsedDocument",
    "ParsedLine",
    "ParsedParty",
    "PartyData",
    "PayeeData",
    "ProcessingState",
    "RawMessage",
    "RouteLocation",
    "StatusResponse",
    "TransportData",
    "UploadResponse",
    "compute_uit_check_digits",
    "document_data_from_model",
    "extract_payload",
    "format_amount",
    "format_decimal",
    "from_unit_code",
    "generate_confirmation",
    "generate_correction",
    "generate_deletion",
    "generate_invoice_xml",
    "generate_notification",
    "generate_xml",
    "is_valid_uit",
    "parse_decimal",
    "parse_document",
    "parse_error_report",
    "parse_message_list",
    "parse_status_reply",
    "parse_transport_list",
    "parse_transport_status_reply",
    "parse_transport_upload_reply",
    "parse_upload_reply",
    "to_unit_code",
    "validate_uit",
]
