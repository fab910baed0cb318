"""
SubmissionWorker -- task-queue entry point.

``dispatch(task)`` routes a task to the submitter or the poller and
commits the session afterwards; each task is its own transaction.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from efactura_kernel.logging_config import get_logger
from efactura_submission.poller import PollResult, StatusPoller
from efactura_submission.submitter import SubmissionService, SubmitResult
from efactura_submission.tasks import InMemoryTaskQueue, PollStatus, SubmitDocument, Task

logger = get_logger("submission.worker")


class SubmissionWorker:
    def __init__(self, session: Session, submitter: SubmissionService, poller: StatusPoller):
        self._session = session
        self._submitter = submitter
        self._poller = poller

    def dispatch(self, task: Task) -> SubmitResult | PollResult:
        try:
            if isinstance(task, SubmitDocument):
                result = self._submitter.submit(task)
            elif isinstance(task, PollStatus):
                result = self._poller.poll(task)
            else:
                raise TypeError(f"Unknown task type: {type(task).__name__}")
            self._session.commit()
        except Exception:
            self._session.rollback()
            logger.exception("task_failed", extra={"task_type": type(task).__name__})
            raise
        return result

    def run_due(self, queue: InMemoryTaskQueue) -> list[SubmitResult | PollResult]:
        """Dispatch every task in ``queue`` that is due now."""
        return [self.dispatch(task) for task in queue.due()]
