"""
Document model helpers: line amounts, totals, status events, domain enums.
"""

from decimal import Decimal

import pytest

from efactura_kernel.db.types import compute_line_amounts, round_money, to_decimal
from efactura_kernel.domain.types import DocumentKind, ExternalStatus, MessageKind
from efactura_kernel.models.document import Document, DocumentLine


def _line(quantity="1", price="0", rate="21.00", discount="0") -> DocumentLine:
    return DocumentLine(
        description="x",
        quantity=Decimal(quantity),
        unit_price=Decimal(price),
        vat_rate=Decimal(rate),
        discount=Decimal(discount),
    )


class TestRounding:
    @pytest.mark.parametrize(
        "value, expected",
        [("1.005", "1.01"), ("-1.005", "-1.01"), ("2.344", "2.34"), (7, "7.00")],
    )
    def test_half_up(self, value, expected):
        assert round_money(value) == Decimal(expected)

    def test_floats_rejected(self):
        with pytest.raises(TypeError, match="float"):
            to_decimal(1.5)

    def test_none_is_zero(self):
        assert to_decimal(None) == Decimal("0")

    def test_line_amounts(self):
        assert compute_line_amounts("3", "33.33", "21", "1.00") == (
            Decimal("98.99"), Decimal("20.79"),
        )


class TestDocumentTotals:
    def test_recalculate(self):
        document = Document(kind=DocumentKind.INVOICE.value, status="draft")
        document.add_line(_line("10", "150.00"))
        document.add_line(_line("1", "100.00", rate="9.00"))

        document.recalculate_totals()

        assert [line.position for line in document.lines] == [1, 2]
        assert document.subtotal == Decimal("1600.00")
        assert document.vat_total == Decimal("324.00")
        assert document.total == Decimal("1924.00")

    def test_refund_flags(self):
        assert Document(kind="credit_note").is_refund
        assert not Document(kind="invoice").is_refund


class TestStatusEvents:
    def test_record_status_change(self):
        document = Document(kind="invoice", status="issued")

        event = document.record_status_change("sent_to_provider", {"upload_id": "5001"})

        assert document.status == "sent_to_provider"
        assert (event.previous_status, event.new_status) == ("issued", "sent_to_provider")
        assert event.event_metadata == {"upload_id": "5001"}
        assert document.has_status_event("sent_to_provider")
        assert not document.has_status_event("validated")


class TestDomainEnums:
    @pytest.mark.parametrize(
        "status, terminal",
        [
            (ExternalStatus.OK, True),
            (ExternalStatus.NOK, True),
            (ExternalStatus.PENDING_TIMEOUT, True),
            (ExternalStatus.UPLOADED, False),
            (ExternalStatus.UPLOAD_FAILED, False),
        ],
    )
    def test_terminal_external_status(self, status, terminal):
        assert status.is_terminal is terminal

    @pytest.mark.parametrize(
        "tag, kind",
        [
            ("FACTURA PRIMITA", MessageKind.INCOMING),
            (" factura trimisa ", MessageKind.OUTGOING),
            ("ERORI FACTURA", MessageKind.ERROR_NOTICE),
            ("MESAJ CUMPARATOR", MessageKind.OTHER),
            (None, MessageKind.OTHER),
        ],
    )
    def test_message_kind_from_tag(self, tag, kind):
        assert MessageKind.from_type_tag(tag) is kind
