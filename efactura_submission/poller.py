"""
StatusPoller -- bounded polling of the Authority's asynchronous verdict.

Responsibility:
    Handle a ``PollStatus`` task for an uploaded document: check status
    once, move the document to a terminal state when the Authority has
    decided, otherwise re-enqueue itself with the next backoff delay.

Architecture position:
    Submission -- task handler invoked by the worker dispatch.  Stateless
    between invocations; the attempt counter travels in the task.

Invariants enforced:
    - Stale tasks are no-ops: the document must still be
      ``sent_to_provider`` with external status ``uploaded``.
    - ``attempt >= max_attempts`` ends in ``pending_timeout`` without
      another status call.
    - Pending verdicts re-enqueue ``attempt + 1`` after
      ``backoff_delay_ms(attempt)``; nothing sleeps.
    - A rate limit re-enqueues the same attempt after
      ``retry_after_seconds``; it does not count as an attempt.

Failure modes:
    - Transport or HTTP errors on the status call count as a pending
      verdict and consume an attempt.
    - No token: logged, task dropped; the periodic sweep picks the
      document up later.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from efactura_authority.client import AuthorityClient, TransportClient
from efactura_codec.replies import StatusResponse
from efactura_config.schema import SubmissionSettings
from efactura_kernel.domain.collaborators import NotificationSink, TokenResolver
from efactura_kernel.domain.types import DocumentKind, DocumentStatus, ExternalStatus
from efactura_kernel.exceptions import AuthorityError, RateLimitedError
from efactura_kernel.logging_config import LogContext, get_logger
from efactura_kernel.models.document import Document
from efactura_submission.backoff import backoff_delay_ms
from efactura_submission.tasks import PollStatus, TaskQueue

logger = get_logger("submission.poller")


class PollOutcome(str, Enum):
    SKIPPED = "skipped"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    TIMED_OUT = "timed_out"
    RESCHEDULED = "rescheduled"


@dataclass(frozen=True)
class PollResult:
    outcome: PollOutcome
    document_id: UUID
    next_attempt: int | None = None
    delay_ms: int | None = None
    message: str | None = None


def apply_verdict(
    document: Document,
    status: StatusResponse,
    notifications: NotificationSink | None = None,
) -> PollOutcome | None:
    """
    Record an ok/error verdict on ``document``.

    Returns None for a pending verdict.  Shared by the poller and the
    periodic sweep so both write the same fields and events.
    """
    if status.is_ok:
        document.external_status = ExternalStatus.OK.value
        document.external_error_message = None
        if status.download_id:
            document.external_download_id = status.download_id
        document.record_status_change(
            DocumentStatus.VALIDATED.value,
            {
                "action": "authority_validated",
                "upload_id": document.external_upload_id,
                "download_id": status.download_id,
                "uit": document.transport_uit,
            },
        )
        _notify(
            notifications,
            document,
            "invoice.validated",
            "Factură validată ANAF",
            f"Factura {document.number} a fost validată de ANAF",
        )
        return PollOutcome.CONFIRMED

    if status.is_error:
        document.external_status = ExternalStatus.NOK.value
        document.external_error_message = status.error_message
        if status.download_id:
            document.external_download_id = status.download_id
        document.record_status_change(
            DocumentStatus.REJECTED.value,
            {
                "action": "authority_rejected",
                "upload_id": document.external_upload_id,
                "error": status.error_message,
            },
        )
        _notify(
            notifications,
            document,
            "invoice.rejected",
            "Factură respinsă ANAF",
            f"Factura {document.number} a fost respinsă de ANAF: "
            f"{status.error_message or 'Eroare necunoscută'}",
        )
        return PollOutcome.REJECTED

    return None


def _notify(
    sink: NotificationSink | None,
    document: Document,
    notification_type: str,
    title: str,
    body: str,
) -> None:
    if sink is None:
        return
    data: dict[str, Any] = {
        "document_id": str(document.id),
        "document_number": document.number,
        "tenant_id": str(document.tenant_id),
    }
    try:
        sink.notify(document.tenant_id, notification_type, title, body, data)
    except Exception:
        logger.exception(
            "notification_failed",
            extra={"document_id": str(document.id), "notification_type": notification_type},
        )


class StatusPoller:
    """
    Handler for ``PollStatus`` tasks.

    Contract:
        ``poll(task)`` performs at most one status call and returns a
        PollResult.  State changes are flushed; the caller commits.

    Guarantees:
        - Terminal verdicts are recorded once; a redelivered task finds
          the document no longer ``uploaded`` and does nothing.
    """

    def __init__(
        self,
        session: Session,
        client: AuthorityClient,
        token_resolver: TokenResolver,
        queue: TaskQueue,
        transport_client: TransportClient | None = None,
        settings: SubmissionSettings | None = None,
        notifications: NotificationSink | None = None,
    ):
        self._session = session
        self._client = client
        self._transport_client = transport_client
        self._tokens = token_resolver
        self._queue = queue
        self._settings = settings or SubmissionSettings()
        self._notifications = notifications

    def poll(self, task: PollStatus) -> PollResult:
        with LogContext.bind(document_id=str(task.document_id)):
            document = self._session.get(Document, task.document_id)
            if document is None:
                logger.warning("poll_document_missing")
                return PollResult(PollOutcome.SKIPPED, task.document_id, message="not found")

            if (
                document.status != DocumentStatus.SENT_TO_PROVIDER.value
                or document.external_status != ExternalStatus.UPLOADED.value
                or not document.external_upload_id
            ):
                logger.info(
                    "poll_skipped",
                    extra={
                        "status": document.status,
                        "external_status": document.external_status,
                        "attempt": task.attempt,
                    },
                )
                return PollResult(PollOutcome.SKIPPED, document.id)

            LogContext.set(tenant_id=str(document.tenant_id))
            return self._poll(document, task)

    def _poll(self, document: Document, task: PollStatus) -> PollResult:
        if task.attempt >= self._settings.max_attempts:
            document.external_status = ExternalStatus.PENDING_TIMEOUT.value
            document.external_error_message = self._settings.timeout_message
            self._session.flush()
            logger.warning("poll_timed_out", extra={"attempt": task.attempt})
            return PollResult(
                PollOutcome.TIMED_OUT, document.id, message=self._settings.timeout_message
            )

        token = self._tokens.resolve(document.tenant_id)
        if token is None:
            logger.error("poll_no_token", extra={"attempt": task.attempt})
            return PollResult(PollOutcome.SKIPPED, document.id, message="no token")

        try:
            status = self._check(document, token)
        except RateLimitedError as exc:
            delay_ms = exc.retry_after_seconds * 1000
            self._queue.enqueue(task, delay_ms=delay_ms)
            logger.warning(
                "poll_rate_limited",
                extra={
                    "attempt": task.attempt,
                    "bucket": exc.bucket,
                    "retry_after_seconds": exc.retry_after_seconds,
                },
            )
            return PollResult(
                PollOutcome.RESCHEDULED,
                document.id,
                next_attempt=task.attempt,
                delay_ms=delay_ms,
                message=str(exc),
            )
        except AuthorityError as exc:
            logger.warning(
                "poll_status_error", extra={"attempt": task.attempt, "error": str(exc)}
            )
            status = None

        outcome = apply_verdict(document, status, self._notifications) if status else None
        if outcome is not None:
            self._session.flush()
            logger.info("poll_verdict", extra={"outcome": outcome.value, "attempt": task.attempt})
            return PollResult(outcome, document.id, message=document.external_error_message)

        delay_ms = backoff_delay_ms(task.attempt, self._settings.backoff_ms)
        next_task = PollStatus(document_id=document.id, attempt=task.attempt + 1)
        self._queue.enqueue(next_task, delay_ms=delay_ms)
        logger.info(
            "poll_rescheduled",
            extra={"next_attempt": next_task.attempt, "delay_ms": delay_ms},
        )
        return PollResult(
            PollOutcome.RESCHEDULED,
            document.id,
            next_attempt=next_task.attempt,
            delay_ms=delay_ms,
        )

    def _check(self, document: Document, token: str) -> StatusResponse:
        if document.kind == DocumentKind.TRANSPORT_NOTE.value:
            if self._transport_client is None:
                raise AuthorityError("No e-Transport client configured")
            return self._transport_client.check_status(document.external_upload_id, token)
        return self._client.check_status(document.external_upload_id, token)
