"""
StatusSweep -- periodic batch check of documents awaiting a verdict.

Catches documents whose poll chain ended early (no token at the time,
timed out, lost task).  Oldest first, at most ``limit`` per run.  Pending
documents are left untouched; a rate limit stops the run so the rest are
checked next time.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from efactura_authority.client import AuthorityClient
from efactura_config.schema import SubmissionSettings
from efactura_kernel.domain.collaborators import NotificationSink, TokenResolver
from efactura_kernel.domain.types import DocumentKind, DocumentStatus
from efactura_kernel.exceptions import AuthorityError, RateLimitedError
from efactura_kernel.logging_config import get_logger
from efactura_kernel.models.document import Document
from efactura_submission.poller import PollOutcome, apply_verdict

logger = get_logger("submission.sweep")


@dataclass
class SweepResult:
    checked: int = 0
    confirmed: int = 0
    rejected: int = 0
    errors: int = 0
    rate_limited: bool = False


class StatusSweep:
    def __init__(
        self,
        session: Session,
        client: AuthorityClient,
        token_resolver: TokenResolver,
        settings: SubmissionSettings | None = None,
        notifications: NotificationSink | None = None,
    ):
        self._session = session
        self._client = client
        self._tokens = token_resolver
        self._settings = settings or SubmissionSettings()
        self._notifications = notifications

    def run(self, limit: int | None = None) -> SweepResult:
        limit = limit or self._settings.sweep_limit
        documents = self._session.scalars(
            select(Document)
            .where(
                Document.status == DocumentStatus.SENT_TO_PROVIDER.value,
                Document.kind != DocumentKind.TRANSPORT_NOTE.value,
            )
            .order_by(Document.created_at)
            .limit(limit)
        ).all()

        result = SweepResult()
        tokens: dict = {}
        for document in documents:
            if not document.external_upload_id:
                continue
            if document.tenant_id not in tokens:
                tokens[document.tenant_id] = self._tokens.resolve(document.tenant_id)
            token = tokens[document.tenant_id]
            if token is None:
                logger.warning(
                    "sweep_no_token", extra={"tenant_id": str(document.tenant_id)}
                )
                continue

            try:
                status = self._client.check_status(document.external_upload_id, token)
            except RateLimitedError as exc:
                logger.warning(
                    "sweep_rate_limited",
                    extra={"bucket": exc.bucket, "retry_after_seconds": exc.retry_after_seconds},
                )
                result.rate_limited = True
                break
            except AuthorityError as exc:
                logger.error(
                    "sweep_status_error",
                    extra={"document_id": str(document.id), "error": str(exc)},
                )
                result.errors += 1
                continue

            result.checked += 1
            outcome = apply_verdict(document, status, self._notifications)
            if outcome is PollOutcome.CONFIRMED:
                result.confirmed += 1
            elif outcome is PollOutcome.REJECTED:
                result.rejected += 1

        self._session.flush()
        logger.info(
            "sweep_completed",
            extra={
                "checked": result.checked,
                "confirmed": result.confirmed,
                "rejected": result.rejected,
                "errors": result.errors,
                "rate_limited": result.rate_limited,
            },
        )
        return result
