"""
Authority reply parsing.

Responsibility:
    Decode the bodies returned by the e-Factura (XML ``header`` envelopes,
    JSON message list) and e-Transport (JSON) endpoints into typed,
    immutable results.  Body-level error fields are normalized into the
    same ``error_message`` shape the client uses for HTTP failures.

Invariants:
    - A list reply whose ``eroare`` says there are no messages
      ("nu exista" + "mesaj", case-insensitive) is an empty success.
    - Status ``stare`` values other than ``ok`` / ``nok`` / ``XML cu
      erori nepreluat de sistem`` mean the Authority is still processing.

Failure modes:
    - AuthorityResponseError when a body is not the expected XML or JSON.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum

from lxml import etree

from efactura_kernel.exceptions import AuthorityResponseError


class ProcessingState(str, Enum):
    PENDING = "pending"
    OK = "ok"
    ERROR = "error"


@dataclass(frozen=True)
class UploadResponse:
    success: bool
    upload_id: str | None = None
    error_message: str | None = None
    uit: str | None = None  # e-Transport only


@dataclass(frozen=True)
class StatusResponse:
    state: ProcessingState
    download_id: str | None = None
    error_message: str | None = None

    @property
    def is_ok(self) -> bool:
        return self.state is ProcessingState.OK

    @property
    def is_error(self) -> bool:
        return self.state is ProcessingState.ERROR

    @property
    def is_pending(self) -> bool:
        return self.state is ProcessingState.PENDING


@dataclass(frozen=True)
class RawMessage:
    """One entry of the Authority's message list."""

    id: str
    type: str
    detail: str | None = None
    created_at: str | None = None  # YYYYMMDDHHmm as sent by the Authority
    tax_id: str | None = None
    request_id: str | None = None


@dataclass(frozen=True)
class MessageListResponse:
    messages: tuple[RawMessage, ...] = ()
    error_message: str | None = None

    @property
    def success(self) -> bool:
        return self.error_message is None


_OK_STATES = {"ok"}
_ERROR_STATES = {"nok", "xml cu erori nepreluat de sistem"}


def is_no_messages_error(text: str | None) -> bool:
    if not text:
        return False
    lowered = text.lower()
    return "nu exista" in lowered and "mesaj" in lowered


def _load_envelope(operation: str, body: bytes):
    try:
        root = etree.fromstring(body, etree.XMLParser(resolve_entities=False))
    except etree.XMLSyntaxError as exc:
        raise AuthorityResponseError(operation, f"invalid XML: {exc}") from exc
    if etree.QName(root).localname != "header":
        # Some gateways wrap the header in an outer element.
        for child in root.iter():
            if isinstance(child.tag, str) and etree.QName(child).localname == "header":
                return child
    return root


def _envelope_errors(header) -> str | None:
    messages = []
    for node in header.iter():
        if not isinstance(node.tag, str):
            continue
        if etree.QName(node).localname == "Errors":
            message = node.get("errorMessage")
            if message:
                messages.append(message)
    return "; ".join(messages) if messages else None


def _load_json(operation: str, body: bytes):
    try:
        data = json.loads(body or b"null")
    except ValueError as exc:
        raise AuthorityResponseError(operation, f"invalid JSON: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise AuthorityResponseError(operation, "expected a JSON object")
    return data


def _json_errors(data: dict) -> str | None:
    errors = data.get("Errors") or data.get("errors")
    if isinstance(errors, list):
        messages = [
            e.get("errorMessage") if isinstance(e, dict) else str(e) for e in errors
        ]
        messages = [m for m in messages if m]
        if messages:
            return "; ".join(messages)
    for key in ("eroare", "error", "message"):
        if data.get(key):
            return str(data[key])
    return None


# =============================================================================
# e-Factura (XML envelopes + JSON list)
# =============================================================================


def parse_upload_reply(body: bytes) -> UploadResponse:
    header = _load_envelope("upload", body)
    upload_id = header.get("index_incarcare")
    status = header.get("ExecutionStatus")
    error = _envelope_errors(header)
    if status == "0" and upload_id:
        return UploadResponse(success=True, upload_id=upload_id)
    return UploadResponse(
        success=False,
        error_message=error or "Upload rejected by the Authority",
    )


def parse_status_reply(body: bytes) -> StatusResponse:
    header = _load_envelope("check_status", body)
    state = (header.get("stare") or "").strip().lower()
    error = _envelope_errors(header)
    if state in _OK_STATES:
        return StatusResponse(ProcessingState.OK, download_id=header.get("id_descarcare"))
    if state in _ERROR_STATES:
        return StatusResponse(
            ProcessingState.ERROR,
            download_id=header.get("id_descarcare"),
            error_message=error or header.get("stare"),
        )
    if error:
        return StatusResponse(ProcessingState.ERROR, error_message=error)
    return StatusResponse(ProcessingState.PENDING)


def parse_message_list(body: bytes) -> MessageListResponse:
    data = _load_json("list_messages", body)
    error = data.get("eroare") or data.get("error")
    if error:
        if is_no_messages_error(error):
            return MessageListResponse()
        return MessageListResponse(error_message=str(error))

    messages = []
    for raw in data.get("mesaje") or []:
        if not isinstance(raw, dict) or raw.get("id") in (None, ""):
            continue
        messages.append(
            RawMessage(
                id=str(raw["id"]),
                type=str(raw.get("tip") or ""),
                detail=raw.get("detalii"),
                created_at=raw.get("data_creare"),
                tax_id=str(raw["cif"]) if raw.get("cif") is not None else None,
                request_id=(
                    str(raw["id_solicitare"]) if raw.get("id_solicitare") is not None else None
                ),
            )
        )
    return MessageListResponse(messages=tuple(messages))


# =============================================================================
# e-Transport (JSON)
# =============================================================================


def parse_transport_upload_reply(body: bytes) -> UploadResponse:
    data = _load_json("transport_upload", body)
    error = _json_errors(data)
    upload_id = data.get("index_incarcare")
    status = data.get("ExecutionStatus")
    if str(status) == "0" and upload_id not in (None, ""):
        return UploadResponse(
            success=True,
            upload_id=str(upload_id),
            uit=data.get("UIT") or data.get("uit"),
        )
    return UploadResponse(
        success=False,
        error_message=error or "Upload rejected by the Authority",
    )


def parse_transport_status_reply(body: bytes) -> StatusResponse:
    data = _load_json("transport_check_status", body)
    state = str(data.get("stare") or "").strip().lower()
    error = _json_errors(data)
    if state in _OK_STATES:
        return StatusResponse(ProcessingState.OK, download_id=data.get("id_descarcare"))
    if state in _ERROR_STATES or error:
        return StatusResponse(ProcessingState.ERROR, error_message=error or data.get("stare"))
    return StatusResponse(ProcessingState.PENDING)


def parse_transport_list(body: bytes) -> list[dict]:
    data = _load_json("transport_list", body)
    error = data.get("eroare") or data.get("error")
    if error and not is_no_messages_error(error):
        raise AuthorityResponseError("transport_list", str(error))
    declarations = data.get("mesaje") or data.get("declaratii") or []
    return [d for d in declarations if isinstance(d, dict)]
