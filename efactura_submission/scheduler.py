"""
ScheduledSubmission -- hand documents whose send time has come to the queue.

Users can issue a document now and let it go to the Authority later
(``scheduled_send_at``).  Each run picks the issued outgoing documents that
are due and have no active submission, oldest schedule first, and
enqueues one ``SubmitDocument`` per document.  The submitter's guard makes
a second delivery of the same task harmless, so the schedule column is
left as it is.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from efactura_config.schema import SubmissionSettings
from efactura_kernel.domain.clock import Clock, SystemClock
from efactura_kernel.domain.collaborators import TokenResolver
from efactura_kernel.domain.types import (
    SUBMITTABLE_EXTERNAL_STATUSES,
    Direction,
    DocumentStatus,
)
from efactura_kernel.logging_config import get_logger
from efactura_kernel.models.document import Document
from efactura_submission.tasks import SubmitDocument, TaskQueue

logger = get_logger("submission.scheduler")


def submittable_clause():
    """SQL form of SUBMITTABLE_EXTERNAL_STATUSES (NULL needs its own test)."""
    values = [s for s in SUBMITTABLE_EXTERNAL_STATUSES if s is not None]
    return or_(Document.external_status.is_(None), Document.external_status.in_(values))


@dataclass
class ScheduleResult:
    dispatched: list[UUID] = field(default_factory=list)
    skipped: int = 0


class ScheduledSubmission:
    def __init__(
        self,
        session: Session,
        queue: TaskQueue,
        token_resolver: TokenResolver | None = None,
        settings: SubmissionSettings | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._queue = queue
        self._tokens = token_resolver
        self._settings = settings or SubmissionSettings()
        self._clock = clock or SystemClock()

    def due(self, limit: int | None = None) -> list[Document]:
        now = self._clock.now_utc()
        return list(self._session.scalars(
            select(Document)
            .where(
                Document.status == DocumentStatus.ISSUED.value,
                Document.direction == Direction.OUTGOING.value,
                Document.scheduled_send_at.is_not(None),
                Document.scheduled_send_at <= now,
                submittable_clause(),
            )
            .order_by(Document.scheduled_send_at)
            .limit(limit or self._settings.schedule_limit)
        ))

    def run(self, limit: int | None = None) -> ScheduleResult:
        result = ScheduleResult()
        tokens: dict = {}
        for document in self.due(limit):
            if self._tokens is not None:
                if document.tenant_id not in tokens:
                    tokens[document.tenant_id] = self._tokens.resolve(document.tenant_id)
                if tokens[document.tenant_id] is None:
                    logger.debug(
                        "scheduled_submission_no_token",
                        extra={"document_id": str(document.id), "number": document.number},
                    )
                    result.skipped += 1
                    continue

            self._queue.enqueue(SubmitDocument(document.id))
            result.dispatched.append(document.id)
            logger.info(
                "scheduled_submission_dispatched",
                extra={
                    "document_id": str(document.id),
                    "number": document.number,
                    "scheduled_send_at": document.scheduled_send_at.isoformat(),
                },
            )

        logger.info(
            "scheduled_submission_completed",
            extra={"dispatched": len(result.dispatched), "skipped": result.skipped},
        )
        return result
