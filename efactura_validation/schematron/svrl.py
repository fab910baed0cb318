"""
Report parsers for Schematron output.

Two formats are understood:

* SVRL (``http://purl.oclc.org/dsdl/svrl``) as produced by an XSLT2
  transform of the compiled rules;
* the plain-text report written by the Authority's validator JAR
  (``textEroare=[RULE]-message`` lines, technical error codes and SAX
  parse exceptions).
"""

from __future__ import annotations

import re

from lxml import etree

from efactura_kernel.exceptions import SchematronUnavailableError
from efactura_validation.result import Severity, Violation

SVRL_NS = "http://purl.oclc.org/dsdl/svrl"
_NS = {"svrl": SVRL_NS}

_TEXT_ERROR_RE = re.compile(r"textEroare=\[([^\]]+)\]-(.+)", re.MULTILINE)
_TECH_ERROR_RE = re.compile(r"A aparut o eroare tehnica\.\s*Cod:\s*(\d+)", re.MULTILINE)
_SAX_ERROR_RE = re.compile(r"org\.xml\.sax\.SAXParseException[^;]*;\s*(.+)", re.MULTILINE)


def parse_svrl(svrl: bytes | str) -> list[Violation]:
    """Failed assertions and warning-flagged reports of an SVRL document."""
    if isinstance(svrl, str):
        svrl = svrl.encode("utf-8", errors="replace")
    if not svrl.strip():
        raise SchematronUnavailableError("svrl", "empty report")
    try:
        root = etree.fromstring(svrl, etree.XMLParser(resolve_entities=False, recover=False))
    except etree.XMLSyntaxError as exc:
        raise SchematronUnavailableError("svrl", f"unreadable report ({exc})") from exc

    violations: list[Violation] = []
    for assertion in root.iterfind(".//svrl:failed-assert", _NS):
        flag = assertion.get("flag") or "fatal"
        text = assertion.findtext("svrl:text", default="", namespaces=_NS).strip()
        violations.append(
            Violation(
                message=text or "Unknown Schematron error",
                rule_id=assertion.get("id"),
                severity=Severity.WARNING if flag == "warning" else Severity.FATAL,
                source="schematron",
                location=assertion.get("location"),
            )
        )
    for report in root.iterfind(".//svrl:successful-report[@flag='warning']", _NS):
        text = report.findtext("svrl:text", default="", namespaces=_NS).strip()
        if text:
            violations.append(
                Violation(
                    message=text,
                    rule_id=report.get("id"),
                    severity=Severity.WARNING,
                    source="schematron",
                    location=report.get("location"),
                )
            )
    return violations


def parse_text_report(text: str) -> list[Violation]:
    violations: list[Violation] = []
    for rule_id, message in _TEXT_ERROR_RE.findall(text):
        violations.append(
            Violation(message=message.strip(), rule_id=rule_id.strip(), source="schematron")
        )
    for code in _TECH_ERROR_RE.findall(text):
        violations.append(
            Violation(
                message=f"Eroare tehnica validator (Cod: {code})",
                rule_id=f"TECH-{code}",
                source="schematron",
            )
        )
    for message in _SAX_ERROR_RE.findall(text):
        violations.append(Violation(message=message.strip(), source="xsd"))
    return violations
