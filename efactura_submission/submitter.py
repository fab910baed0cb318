"""
SubmissionService -- validate, archive and upload one document.

Responsibility:
    Handle a ``SubmitDocument`` task: re-check the document's persisted
    state, run the full validation pipeline, archive the generated XML,
    resolve a token, upload, and schedule the first status poll.

Architecture position:
    Submission -- task handler invoked by the worker dispatch.  Uses the
    validation pipeline, the Authority clients and the Storage /
    TokenResolver collaborators.

Invariants enforced:
    - Idempotency guard: the document must exist, be ``issued`` and have
      an external status from which submission is allowed; otherwise the
      task is a no-op.  Duplicate deliveries therefore never re-upload.
    - The XML is archived before the upload is attempted.
    - Validation and upload failures are terminal for this attempt and
      leave the document ``issued`` so a user can correct and resubmit.
    - Rate limits are never retried inline; the task is re-enqueued
      after ``retry_after_seconds``.

Failure modes:
    - VALIDATION_FAILED: pipeline errors joined with ``"; "``.
    - UPLOAD_FAILED: no token, transport error, or Authority refusal.
    - RESCHEDULED: rate limit hit before the upload.

Audit relevance:
    Successful uploads append a DocumentEvent
    (``issued -> sent_to_provider``) with the upload id.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from sqlalchemy.orm import Session

from efactura_authority.client import AuthorityClient, TransportClient
from efactura_config.schema import SubmissionSettings
from efactura_kernel.domain.clock import Clock, SystemClock
from efactura_kernel.domain.collaborators import Storage, TokenResolver
from efactura_kernel.domain.types import (
    SUBMITTABLE_EXTERNAL_STATUSES,
    DocumentKind,
    DocumentStatus,
    ExternalStatus,
)
from efactura_kernel.exceptions import AuthorityError, RateLimitedError
from efactura_kernel.logging_config import LogContext, get_logger
from efactura_kernel.models.document import Document
from efactura_submission.backoff import backoff_delay_ms
from efactura_submission.tasks import PollStatus, SubmitDocument, TaskQueue
from efactura_validation.pipeline import ValidationPipeline

logger = get_logger("submission.submitter")


class SubmitOutcome(str, Enum):
    SKIPPED = "skipped"
    VALIDATION_FAILED = "validation_failed"
    UPLOAD_FAILED = "upload_failed"
    UPLOADED = "uploaded"
    RESCHEDULED = "rescheduled"


@dataclass(frozen=True)
class SubmitResult:
    outcome: SubmitOutcome
    document_id: UUID
    upload_id: str | None = None
    message: str | None = None


def archive_path(document: Document, tax_id: str, clock: Clock) -> str:
    """``{tax_id}/{YYYY}/{MM}/{id}.xml``; transport declarations under ``etransport/``."""
    when = document.issue_date or clock.now_utc().date()
    path = f"{tax_id}/{when:%Y}/{when:%m}/{document.id}.xml"
    if document.kind == DocumentKind.TRANSPORT_NOTE.value:
        return f"etransport/{path}"
    return path


class SubmissionService:
    """
    Handler for ``SubmitDocument`` tasks.

    Contract:
        ``submit(task)`` returns a SubmitResult and leaves every state
        change flushed on the session.  The caller owns the commit.

    Guarantees:
        - At most one upload per document while its external status is
          ``uploaded`` or terminal.
        - Exactly one ``PollStatus(attempt=0)`` is enqueued per upload.

    Non-goals:
        - Does NOT poll; see StatusPoller.
        - Does NOT refresh tokens; TokenResolver owns that.
    """

    def __init__(
        self,
        session: Session,
        pipeline: ValidationPipeline,
        client: AuthorityClient,
        token_resolver: TokenResolver,
        storage: Storage,
        queue: TaskQueue,
        transport_client: TransportClient | None = None,
        settings: SubmissionSettings | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._pipeline = pipeline
        self._client = client
        self._transport_client = transport_client
        self._tokens = token_resolver
        self._storage = storage
        self._queue = queue
        self._settings = settings or SubmissionSettings()
        self._clock = clock or SystemClock()

    def submit(self, task: SubmitDocument) -> SubmitResult:
        with LogContext.bind(document_id=str(task.document_id)):
            document = self._session.get(Document, task.document_id)
            if document is None:
                logger.warning("submission_document_missing")
                return SubmitResult(SubmitOutcome.SKIPPED, task.document_id, message="not found")

            if (
                document.status != DocumentStatus.ISSUED.value
                or document.external_status not in SUBMITTABLE_EXTERNAL_STATUSES
            ):
                logger.info(
                    "submission_skipped",
                    extra={
                        "status": document.status,
                        "external_status": document.external_status,
                    },
                )
                return SubmitResult(SubmitOutcome.SKIPPED, document.id)

            LogContext.set(tenant_id=str(document.tenant_id))
            return self._submit(document, task)

    def _submit(self, document: Document, task: SubmitDocument) -> SubmitResult:
        report = self._pipeline.validate_full(document)
        if not report.valid:
            message = report.error_summary()
            self._fail(document, ExternalStatus.VALIDATION_FAILED, message)
            logger.info(
                "submission_validation_failed",
                extra={"error_count": len(report.errors)},
            )
            return SubmitResult(SubmitOutcome.VALIDATION_FAILED, document.id, message=message)

        xml = report.xml
        tax_id = document.tenant.tax_id
        if not document.xml_path:
            path = archive_path(document, tax_id, self._clock)
            self._storage.write(path, xml)
            document.xml_path = path
            self._session.flush()

        token = self._tokens.resolve(document.tenant_id)
        if token is None:
            self._fail(document, ExternalStatus.UPLOAD_FAILED, self._settings.no_token_message)
            logger.warning("submission_no_token")
            return SubmitResult(
                SubmitOutcome.UPLOAD_FAILED, document.id, message=self._settings.no_token_message
            )

        is_transport = document.kind == DocumentKind.TRANSPORT_NOTE.value
        try:
            if is_transport:
                reply = self._transport_client_or_raise().upload(xml, tax_id, token)
            else:
                reply = self._client.upload(xml, tax_id, token)
        except RateLimitedError as exc:
            self._queue.enqueue(task, delay_ms=exc.retry_after_seconds * 1000)
            logger.warning(
                "submission_rate_limited",
                extra={"bucket": exc.bucket, "retry_after_seconds": exc.retry_after_seconds},
            )
            return SubmitResult(SubmitOutcome.RESCHEDULED, document.id, message=str(exc))
        except AuthorityError as exc:
            self._fail(document, ExternalStatus.UPLOAD_FAILED, str(exc))
            logger.error("submission_upload_error", extra={"error": str(exc)})
            return SubmitResult(SubmitOutcome.UPLOAD_FAILED, document.id, message=str(exc))

        if not reply.success:
            self._fail(document, ExternalStatus.UPLOAD_FAILED, reply.error_message)
            logger.warning("submission_upload_rejected", extra={"error": reply.error_message})
            return SubmitResult(
                SubmitOutcome.UPLOAD_FAILED, document.id, message=reply.error_message
            )

        document.external_upload_id = reply.upload_id
        document.external_status = ExternalStatus.UPLOADED.value
        document.external_error_message = None
        document.synced_at = self._clock.now_utc()
        if is_transport and reply.uit:
            document.transport_uit = reply.uit
        document.record_status_change(
            DocumentStatus.SENT_TO_PROVIDER.value,
            {"action": "submitted_to_authority", "upload_id": reply.upload_id},
        )
        self._session.flush()

        self._queue.enqueue(
            PollStatus(document_id=document.id, attempt=0),
            delay_ms=backoff_delay_ms(0, self._settings.backoff_ms),
        )
        logger.info("submission_uploaded", extra={"upload_id": reply.upload_id})
        return SubmitResult(SubmitOutcome.UPLOADED, document.id, upload_id=reply.upload_id)

    def _transport_client_or_raise(self) -> TransportClient:
        if self._transport_client is None:
            raise AuthorityError("No e-Transport client configured")
        return self._transport_client

    def _fail(self, document: Document, status: ExternalStatus, message: str | None) -> None:
        document.external_status = status.value
        document.external_error_message = message
        self._session.flush()
