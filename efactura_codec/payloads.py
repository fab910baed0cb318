"""
Downloaded message archives.

The Authority delivers every inbox message as a zip.  For documents the
archive holds the UBL XML plus a detached signature (``semnatura_*.xml``);
for error notices it holds one or more XML or plain-text error reports.
"""

from __future__ import annotations

import io
import zipfile

from lxml import etree

from efactura_codec.types import DownloadedPayload
from efactura_kernel.exceptions import PayloadExtractionError
from efactura_kernel.logging_config import get_logger

logger = get_logger("codec.payloads")

SIGNATURE_PREFIX = "semnatura_"


def _open(zip_bytes: bytes) -> zipfile.ZipFile:
    try:
        return zipfile.ZipFile(io.BytesIO(zip_bytes))
    except zipfile.BadZipFile as exc:
        raise PayloadExtractionError(f"not a zip archive ({exc})") from exc


def _members(archive: zipfile.ZipFile):
    for info in archive.infolist():
        if info.is_dir():
            continue
        yield info.filename, archive.read(info)


def _is_signature(name: str) -> bool:
    return name.rsplit("/", 1)[-1].lower().startswith(SIGNATURE_PREFIX)


def extract_payload(zip_bytes: bytes) -> DownloadedPayload:
    """Split a document archive into the XML document and its detached signature."""
    xml = None
    signature = None
    with _open(zip_bytes) as archive:
        for name, content in _members(archive):
            if _is_signature(name):
                signature = content
            elif xml is None and name.lower().endswith(".xml"):
                xml = content
    if xml is None:
        raise PayloadExtractionError("archive contains no XML document")
    logger.debug(
        "payload_extracted",
        extra={"xml_bytes": len(xml), "has_signature": signature is not None},
    )
    return DownloadedPayload(xml=xml, signature=signature)


def parse_error_report(zip_bytes: bytes) -> str | None:
    """
    Collect the error text of an error-notice archive.

    ``errorMessage`` attributes and the text of leaf elements whose name
    contains ``error`` are gathered from XML members; non-XML members are
    kept verbatim.  Duplicates are dropped, order is preserved and the
    result is newline-joined, or None when nothing was found.
    """
    errors: list[str] = []
    with _open(zip_bytes) as archive:
        for _name, content in _members(archive):
            try:
                root = etree.fromstring(content, etree.XMLParser(resolve_entities=False))
            except etree.XMLSyntaxError:
                text = content.decode("utf-8", errors="replace").strip()
                if text:
                    errors.append(text)
                continue
            _collect_errors(root, errors)

    unique = list(dict.fromkeys(errors))
    return "\n".join(unique) if unique else None


def _collect_errors(element, errors: list[str]) -> None:
    for node in element.iter():
        if not isinstance(node.tag, str):
            continue
        for name, value in node.attrib.items():
            if etree.QName(name).localname.lower() == "errormessage" and value:
                errors.append(value)
        local = etree.QName(node).localname.lower()
        if "error" in local and len(node) == 0 and node.text and node.text.strip():
            errors.append(node.text.strip())
