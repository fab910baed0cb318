"""
Downloaded message archives: document extraction and error reports.
"""

import pytest

from efactura_codec.payloads import extract_payload, parse_error_report
from efactura_kernel.exceptions import PayloadExtractionError
from tests.helpers import build_archive


class TestExtractPayload:
    def test_document_and_signature(self):
        payload = extract_payload(build_archive(b"<Invoice/>", name="4001"))

        assert payload.xml == b"<Invoice/>"
        assert payload.signature == b"<Signature>sig</Signature>"

    def test_signature_optional(self):
        payload = extract_payload(build_archive(b"<Invoice/>", signature=None))

        assert payload.signature is None

    def test_signature_never_taken_as_document(self):
        # Signature members come first in some archives.
        archive = build_archive(
            None, signature=None,
            extra={"semnatura_4001.xml": b"<Signature/>", "4001.xml": b"<Invoice/>"},
        )

        payload = extract_payload(archive)

        assert payload.xml == b"<Invoice/>"
        assert payload.signature == b"<Signature/>"

    def test_non_xml_members_ignored(self):
        archive = build_archive(b"<Invoice/>", extra={"readme.txt": b"hello"})

        assert extract_payload(archive).xml == b"<Invoice/>"

    def test_not_a_zip(self):
        with pytest.raises(PayloadExtractionError) as exc_info:
            extract_payload(b"definitely not a zip")

        assert str(exc_info.value).startswith("Failed to extract XML: not a zip archive")

    def test_no_document(self):
        with pytest.raises(PayloadExtractionError, match="contains no XML document"):
            extract_payload(build_archive(None))


class TestParseErrorReport:
    def test_error_message_attributes(self):
        report = (
            b'<header xmlns="mfp:anaf:dgti:efactura:mesajEroriFactuta:v1" Index_incarcare="5001">'
            b'<Error errorMessage="E: [BR-RO-010] numarul facturii lipseste"/>'
            b'<Error errorMessage="E: [BR-CO-15] total incorect"/>'
            b"</header>"
        )

        text = parse_error_report(build_archive(None, signature=None, extra={"5001.xml": report}))

        assert text == "E: [BR-RO-010] numarul facturii lipseste\nE: [BR-CO-15] total incorect"

    def test_error_leaf_text(self):
        report = b"<raport><erori><errorText>Semnatura invalida</errorText></erori></raport>"

        text = parse_error_report(build_archive(None, signature=None, extra={"r.xml": report}))

        assert text == "Semnatura invalida"

    def test_duplicates_removed_across_members(self):
        report = b'<header><Error errorMessage="duplicat"/></header>'
        archive = build_archive(
            None, signature=None, extra={"a.xml": report, "b.xml": report, "c.txt": b"text liber"}
        )

        assert parse_error_report(archive) == "duplicat\ntext liber"

    def test_nothing_found(self):
        archive = build_archive(None, signature=None, extra={"a.xml": b"<header/>"})

        assert parse_error_report(archive) is None

    def test_not_a_zip(self):
        with pytest.raises(PayloadExtractionError):
            parse_error_report(b"nope")
