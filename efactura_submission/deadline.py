"""
DeadlineWarning -- remind tenants of documents about to miss the upload deadline.

Romanian law gives five calendar days from issue to upload an invoice.
Each run looks for issued outgoing invoices and credit notes whose
deadline falls tomorrow and that have not been uploaded, and sends one
``invoice.anaf_deadline`` notification per document.  The day of the last
warning is stored on the document, so repeated runs on the same day send
nothing new.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from efactura_config.schema import SubmissionSettings
from efactura_kernel.domain.clock import Clock, SystemClock
from efactura_kernel.domain.collaborators import NotificationSink
from efactura_kernel.domain.types import Direction, DocumentKind, DocumentStatus
from efactura_kernel.logging_config import get_logger
from efactura_kernel.models.document import Document
from efactura_submission.scheduler import submittable_clause

logger = get_logger("submission.deadline")

NOTIFICATION_TYPE = "invoice.anaf_deadline"
TITLE = "Termen ANAF expiră mâine"


@dataclass
class DeadlineResult:
    warned: int = 0
    failed: int = 0


def deadline_message(document: Document, deadline_days: int = 5) -> str:
    issued = document.issue_date.strftime("%d.%m.%Y") if document.issue_date else ""
    message = (
        f"Factura {document.number} din {issued} nu a fost trimisă la ANAF. "
        f"Termenul de {deadline_days} zile expiră mâine."
    )
    client = document.party.name if document.party is not None else document.receiver_name
    if client:
        message += f" Client: {client}"
    return message


class DeadlineWarning:
    def __init__(
        self,
        session: Session,
        notifications: NotificationSink,
        settings: SubmissionSettings | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._notifications = notifications
        self._settings = settings or SubmissionSettings()
        self._clock = clock or SystemClock()

    def pending(self) -> list[Document]:
        today = self._clock.now_utc().date()
        issued_on = today - timedelta(days=self._settings.deadline_days - 1)
        return list(self._session.scalars(
            select(Document)
            .where(
                Document.status == DocumentStatus.ISSUED.value,
                Document.direction == Direction.OUTGOING.value,
                Document.kind != DocumentKind.TRANSPORT_NOTE.value,
                Document.issue_date == issued_on,
                submittable_clause(),
                or_(
                    Document.deadline_warning_sent_on.is_(None),
                    Document.deadline_warning_sent_on != today,
                ),
            )
            .order_by(Document.created_at)
            .limit(self._settings.deadline_warning_limit)
        ))

    def run(self) -> DeadlineResult:
        today = self._clock.now_utc().date()
        result = DeadlineResult()
        for document in self.pending():
            data = {
                "document_id": str(document.id),
                "document_number": document.number,
                "tenant_id": str(document.tenant_id),
            }
            try:
                self._notifications.notify(
                    document.tenant_id, NOTIFICATION_TYPE, TITLE,
                    deadline_message(document, self._settings.deadline_days), data,
                )
            except Exception:
                logger.exception("deadline_warning_failed", extra={"document_id": str(document.id)})
                result.failed += 1
                continue
            document.deadline_warning_sent_on = today
            result.warned += 1

        self._session.flush()
        logger.info(
            "deadline_warning_completed",
            extra={"warned": result.warned, "failed": result.failed},
        )
        return result
