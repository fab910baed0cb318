"""
Submission-specific test fixtures.

Provides:
- SubmissionService, StatusPoller and SubmissionWorker sharing db_session
- Builders for uploaded invoices and transport declarations
"""

from decimal import Decimal

import pytest

from efactura_submission.poller import StatusPoller
from efactura_submission.submitter import SubmissionService
from efactura_submission.worker import SubmissionWorker

VALID_TRANSPORT = {
    "operation_type": 50,
    "vehicle_number": "CJ10ABC",
    "transporter_country": "RO",
    "transporter_name": "Exemplu Software SRL",
    "transport_date": "2026-02-03",
}


@pytest.fixture
def submitter(
    db_session, pipeline, authority_client, tokens, storage, queue, transport_client, clock
) -> SubmissionService:
    return SubmissionService(
        db_session,
        pipeline,
        authority_client,
        tokens,
        storage,
        queue,
        transport_client=transport_client,
        clock=clock,
    )


@pytest.fixture
def poller(
    db_session, authority_client, tokens, queue, transport_client, notifications
) -> StatusPoller:
    return StatusPoller(
        db_session,
        authority_client,
        tokens,
        queue,
        transport_client=transport_client,
        notifications=notifications,
    )


@pytest.fixture
def worker(db_session, submitter, poller) -> SubmissionWorker:
    return SubmissionWorker(db_session, submitter, poller)


@pytest.fixture
def make_uploaded(make_document):
    """An invoice already uploaded and waiting for the Authority's verdict."""

    def _make(number: str = "FCT-0001", upload_id: str = "5001", **fields):
        fields.setdefault("status", "sent_to_provider")
        fields.setdefault("external_status", "uploaded")
        return make_document(number, external_upload_id=upload_id, **fields)

    return _make


@pytest.fixture
def make_transport(db_session, make_document):
    """An issued export transport declaration that passes every entity rule."""

    def _make(number: str = "AVZ-0001", **fields):
        fields.setdefault("transport", dict(VALID_TRANSPORT))
        document = make_document(
            number,
            kind="transport_note",
            lines=[("Otel beton", "100", "4.20", "21.00")],
            **fields,
        )
        for line in document.lines:
            line.tariff_code = "72142000"
            line.net_weight = Decimal("100")
            line.gross_weight = Decimal("110")
            line.value_without_vat = Decimal("420")
        db_session.commit()
        return document

    return _make
