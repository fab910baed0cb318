"""
Shared test helpers: collaborator fakes, the Authority stub and builders
for UBL documents and downloaded archives.
"""

import io
import zipfile
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

import httpx

from efactura_codec.types import DocumentData, LineData, PartyData
from efactura_codec.ubl import generate_invoice_xml
from efactura_kernel.domain.types import DocumentKind

TENANT_TAX_ID = "12345678"
SUPPLIER_TAX_ID = "11223344"
CLIENT_TAX_ID = "87654321"
TOKEN = "test-token"
FIXED_NOW = datetime(2026, 2, 1, 12, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# Collaborator fakes
# =============================================================================


class StaticTokenResolver:
    def __init__(self, token: str | None = TOKEN):
        self.token = token
        self.calls: list[UUID] = []

    def resolve(self, tenant_id: UUID) -> str | None:
        self.calls.append(tenant_id)
        return self.token


class RecordingPublisher:
    def __init__(self):
        self.events: list[tuple[str, dict]] = []

    def publish(self, channel: str, payload: dict[str, Any]) -> None:
        self.events.append((channel, payload))

    def types(self) -> list[str]:
        return [payload["type"] for _, payload in self.events]


class RecordingNotifications:
    def __init__(self):
        self.sent: list[dict[str, Any]] = []

    def notify(self, tenant_id, notification_type, title, body, data) -> None:
        self.sent.append(
            {
                "tenant_id": tenant_id,
                "type": notification_type,
                "title": title,
                "body": body,
                "data": data,
            }
        )


class RecordingArchiver:
    def __init__(self):
        self.archived: list[tuple[str | None, bytes, bytes | None]] = []

    def archive(self, document, xml: bytes, signature: bytes | None) -> None:
        self.archived.append((document.number, xml, signature))


# =============================================================================
# Authority stub
# =============================================================================


class AuthorityStub:
    """
    In-process stand-in for the Authority REST API.

    Serves the e-Factura endpoints from configurable state and records
    every request.  Wrap it with ``httpx.MockTransport(stub.handler)``.
    """

    def __init__(self):
        self.messages: list[dict[str, Any]] = []
        self.archives: dict[str, bytes] = {}
        self.list_error: str | None = None
        self.upload_replies: list[httpx.Response] = []
        self.status_replies: list[httpx.Response] = []
        self.requests: list[httpx.Request] = []
        self.transport_upload_replies: list[httpx.Response] = []
        self.transport_status_replies: list[httpx.Response] = []
        self.declarations: list[dict[str, Any]] = []

    def add_message(
        self,
        message_id: str,
        message_type: str,
        archive: bytes | None = None,
        detail: str | None = None,
        created_at: str = "202602011000",
    ) -> None:
        self.messages.append(
            {
                "data_creare": created_at,
                "cif": TENANT_TAX_ID,
                "id_solicitare": message_id,
                "detalii": detail or f"Factura cu id_incarcare={message_id}",
                "tip": message_type,
                "id": message_id,
            }
        )
        if archive is not None:
            self.archives[message_id] = archive

    def paths(self) -> list[str]:
        return [request.url.path.rsplit("/", 1)[-1] for request in self.requests]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if "/ETRANSPORT/" in path:
            return self._transport(path)
        if path.endswith("/listaMesajeFactura"):
            if self.list_error:
                return httpx.Response(200, json={"eroare": self.list_error})
            if not self.messages:
                return httpx.Response(
                    200, json={"eroare": "Nu exista mesaje in ultimele 60 zile"}
                )
            return httpx.Response(200, json={"mesaje": self.messages, "cui": TENANT_TAX_ID})
        if path.endswith("/descarcare"):
            archive = self.archives.get(request.url.params["id"])
            if archive is None:
                return httpx.Response(404, text="Not found")
            return httpx.Response(200, content=archive)
        if path.endswith("/upload"):
            return self.upload_replies.pop(0)
        if path.endswith("/stareMesaj"):
            return self.status_replies.pop(0)
        return httpx.Response(404)

    def _transport(self, path: str) -> httpx.Response:
        if "/upload/ETRANSP/" in path:
            return self.transport_upload_replies.pop(0)
        if "/stareMesaj/" in path:
            return self.transport_status_replies.pop(0)
        if "/lista/" in path:
            if not self.declarations:
                return httpx.Response(200, json={"eroare": "Nu exista mesaje"})
            return httpx.Response(200, json={"mesaje": self.declarations})
        return httpx.Response(404)


def upload_reply(upload_id: str | None = "5001", error: str | None = None) -> httpx.Response:
    if error:
        body = (
            '<header xmlns="mfp:anaf:dgti:spv:respUploadFisier:v1" ExecutionStatus="1">'
            f'<Errors errorMessage="{error}"/></header>'
        )
    else:
        body = (
            '<header xmlns="mfp:anaf:dgti:spv:respUploadFisier:v1" '
            f'ExecutionStatus="0" index_incarcare="{upload_id}"/>'
        )
    return httpx.Response(200, content=body.encode())


def status_reply(state: str, download_id: str | None = None, error: str | None = None) -> httpx.Response:
    attributes = f'stare="{state}"'
    if download_id:
        attributes += f' id_descarcare="{download_id}"'
    errors = f'<Errors errorMessage="{error}"/>' if error else ""
    body = (
        f'<header xmlns="mfp:anaf:dgti:efactura:stareMesajFactura:v1" {attributes}>'
        f"{errors}</header>"
    )
    return httpx.Response(200, content=body.encode())


def transport_upload_reply(
    upload_id: str = "6001", uit: str | None = "0000000000000173", error: str | None = None
) -> httpx.Response:
    if error:
        return httpx.Response(
            200, json={"ExecutionStatus": 1, "Errors": [{"errorMessage": error}]}
        )
    return httpx.Response(
        200, json={"ExecutionStatus": 0, "index_incarcare": upload_id, "UIT": uit}
    )


def transport_status_reply(state: str, error: str | None = None) -> httpx.Response:
    body: dict[str, Any] = {"stare": state}
    if error:
        body["Errors"] = [{"errorMessage": error}]
    return httpx.Response(200, json=body)


# =============================================================================
# Validation doubles
# =============================================================================

_PERMISSIVE_XSD = """<?xml version="1.0" encoding="UTF-8"?>
<xs:schema xmlns:xs="http://www.w3.org/2001/XMLSchema"
           targetNamespace="{namespace}" elementFormDefault="qualified">
  <xs:element name="{root}">
    <xs:complexType>
      <xs:sequence>
        <xs:any namespace="##any" processContents="skip" minOccurs="0" maxOccurs="unbounded"/>
      </xs:sequence>
      <xs:anyAttribute processContents="skip"/>
    </xs:complexType>
  </xs:element>
</xs:schema>
"""

_EMPTY_ROOT_XSD = """<?xml version="1.0" encoding="UTF-8"?>
<xs:schema xmlns:xs="http://www.w3.org/2001/XMLSchema"
           targetNamespace="{namespace}" elementFormDefault="qualified">
  <xs:element name="{root}">
    <xs:complexType/>
  </xs:element>
</xs:schema>
"""

SCHEMA_ROOTS = {
    "Invoice": "urn:oasis:names:specification:ubl:schema:xsd:Invoice-2",
    "CreditNote": "urn:oasis:names:specification:ubl:schema:xsd:CreditNote-2",
    "eTransport": "mfp:anaf:dgti:eTransport:declaratie:v2",
}


def write_schemas(directory, strict: bool = False) -> dict[str, str]:
    """
    Write one XSD per root element and return ``{root: path}``.

    The permissive schemas accept any content under the right root; the
    strict ones accept only an empty root, so every generated document fails.
    """
    template = _EMPTY_ROOT_XSD if strict else _PERMISSIVE_XSD
    paths = {}
    for root, namespace in SCHEMA_ROOTS.items():
        path = directory / f"{root}{'-strict' if strict else ''}.xsd"
        path.write_text(template.format(namespace=namespace, root=root), encoding="utf-8")
        paths[root] = str(path)
    return paths


class FakeSchematron:
    """SchematronEvaluator returning canned violations and recording calls."""

    name = "fake"

    def __init__(
        self,
        violations=(),
        available: bool = True,
        doc_types=("FACT1", "FCN", "ETRANSPORT"),
        error: Exception | None = None,
    ):
        self.violations = list(violations)
        self.available = available
        self.doc_types = set(doc_types)
        self.error = error
        self.calls: list[str] = []

    def supports(self, doc_type: str) -> bool:
        return doc_type in self.doc_types

    def is_available(self) -> bool:
        return self.available

    def evaluate(self, xml: bytes, doc_type: str):
        self.calls.append(doc_type)
        if self.error is not None:
            raise self.error
        return list(self.violations)


# =============================================================================
# Document and archive builders
# =============================================================================


def build_invoice_xml(
    number: str,
    seller_tax_id: str = SUPPLIER_TAX_ID,
    buyer_tax_id: str | None = TENANT_TAX_ID,
    seller_name: str = "Furnizor Alfa SRL",
    buyer_name: str = "Exemplu Software SRL",
    issue_date: date = date(2026, 1, 28),
    lines: tuple[tuple[str, str, str, str, str], ...] = (
        ("Licenta software", "2", "buc", "500.00", "21.00"),
    ),
    kind: DocumentKind = DocumentKind.INVOICE,
    seller_bank_account: str | None = None,
    line_fields: dict | None = None,
    **header_fields,
) -> bytes:
    """UBL invoice from plain values; lines are (description, qty, unit, price, rate)."""
    line_data = []
    for position, (description, quantity, unit, price, rate) in enumerate(lines, start=1):
        total = (Decimal(quantity) * Decimal(price)).quantize(Decimal("0.01"))
        vat = (total * Decimal(rate) / 100).quantize(Decimal("0.01"))
        line_data.append(
            LineData(
                position=position,
                description=description,
                quantity=Decimal(quantity),
                unit=unit,
                unit_price=Decimal(price),
                line_total=total,
                vat_rate=Decimal(rate),
                vat_amount=vat,
                **(line_fields or {}),
            )
        )
    subtotal = sum((line.line_total for line in line_data), Decimal("0"))
    vat_total = sum((line.vat_amount for line in line_data), Decimal("0"))
    data = DocumentData(
        document_id=None,
        kind=kind,
        number=number,
        issue_date=issue_date,
        supplier=PartyData(
            name=seller_name,
            tax_id=seller_tax_id,
            vat_payer=True,
            address="Str. Fabricii 5",
            city="Cluj-Napoca",
            county="CJ",
        ),
        customer=PartyData(
            name=buyer_name,
            tax_id=buyer_tax_id,
            vat_payer=bool(buyer_tax_id and len(buyer_tax_id) < 13),
            address="Str. Memorandumului 28",
            city="Cluj-Napoca",
            county="CJ",
        ),
        lines=tuple(line_data),
        subtotal=subtotal,
        vat_total=vat_total,
        total=subtotal + vat_total,
        bank_account=seller_bank_account,
        bank_name="Banca Transilvania" if seller_bank_account else None,
        **header_fields,
    )
    return generate_invoice_xml(data)


def build_archive(
    xml: bytes | None,
    name: str = "4001",
    signature: bytes | None = b"<Signature>sig</Signature>",
    extra: dict[str, bytes] | None = None,
) -> bytes:
    """Zip archive shaped like an Authority download."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        if xml is not None:
            archive.writestr(f"{name}.xml", xml)
        if signature is not None:
            archive.writestr(f"semnatura_{name}.xml", signature)
        for member, content in (extra or {}).items():
            archive.writestr(member, content)
    return buffer.getvalue()
