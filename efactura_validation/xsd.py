"""
XSD structural validation with lxml.

Responsibility:
    Validate generated XML against the published schema for its root
    element (``Invoice``, ``CreditNote`` or ``eTransport``).  Compiled
    schemas are cached per path for the lifetime of the validator.

Failure modes:
    - Malformed XML: one violation per parser diagnostic.
    - Schema failures: one violation per error-log entry.
    - Missing or unreadable XSD: a single violation naming the path.
    All violations carry ``source="xsd"`` and rule id ``XSD``.
"""

from __future__ import annotations

from pathlib import Path

from lxml import etree

from efactura_config.schema import ValidationSettings
from efactura_kernel.logging_config import get_logger
from efactura_validation.result import Violation

logger = get_logger("validation.xsd")

XSD_RULE_ID = "XSD"


def _violation(message: str) -> Violation:
    return Violation(message=message, rule_id=XSD_RULE_ID, source="xsd")


class XsdValidator:
    """
    Root-element-aware XSD validator.

    Contract:
        ``validate(xml)`` never raises for bad input; every problem is
        returned as a Violation.

    Non-goals:
        - Does not download schemas; paths come from ValidationSettings.
    """

    def __init__(self, settings: ValidationSettings):
        self._paths = {
            "Invoice": settings.ubl_invoice_xsd,
            "CreditNote": settings.ubl_credit_note_xsd,
            "eTransport": settings.etransport_xsd,
        }
        self._schemas: dict[str, etree.XMLSchema] = {}

    def schema_path(self, root_name: str) -> str | None:
        return self._paths.get(root_name)

    def _load_schema(self, path: str) -> etree.XMLSchema:
        schema = self._schemas.get(path)
        if schema is None:
            with open(path, "rb") as f:
                schema_doc = etree.parse(f)
            schema = etree.XMLSchema(schema_doc)
            self._schemas[path] = schema
        return schema

    def validate(self, xml: bytes) -> list[Violation]:
        if not xml or not xml.strip():
            return [_violation("XML-ul este gol.")]

        parser = etree.XMLParser(resolve_entities=False, no_network=True)
        try:
            doc = etree.fromstring(xml, parser)
        except etree.XMLSyntaxError as exc:
            entries = list(exc.error_log) or [exc]
            return [
                _violation(
                    f"XML malformat (linia {getattr(e, 'line', None) or getattr(e, 'lineno', '?')}): "
                    f"{getattr(e, 'message', None) or getattr(e, 'msg', str(e))}"
                )
                for e in entries
            ]

        root_name = etree.QName(doc).localname
        path = self.schema_path(root_name)
        if not path or not Path(path).is_file():
            logger.warning(
                "xsd_schema_missing", extra={"root": root_name, "path": path}
            )
            return [_violation(f"Fisierul XSD nu a fost gasit: {path or root_name}")]

        try:
            schema = self._load_schema(path)
        except (OSError, etree.XMLSchemaParseError, etree.XMLSyntaxError) as exc:
            logger.error(
                "xsd_schema_unreadable", extra={"path": path, "error": str(exc)}
            )
            return [_violation(f"Fisierul XSD nu poate fi incarcat: {path} ({exc})")]

        if schema.validate(doc):
            return []
        return [
            _violation(f"Eroare XSD (linia {e.line}): {e.message.strip()}")
            for e in schema.error_log
            if e.level_name != "WARNING"
        ]
