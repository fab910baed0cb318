"""
Module: efactura_submission
Responsibility:
    The submit/poll state machine for outgoing documents:

        issued --submit--> sent_to_provider (external: uploaded)
            --poll ok-->      validated  (external: ok)
            --poll error-->   rejected   (external: nok)
            --5 pending-->    external: pending_timeout

    Validation and upload failures leave the document ``issued`` with
    external status ``validation_failed`` / ``upload_failed``.

    Batch entry points: ``ScheduledSubmission`` enqueues documents whose
    send time has come, ``StatusSweep`` re-checks stalled verdicts and
    ``DeadlineWarning`` notifies about uploads due tomorrow.

Architecture position:
    Submission -- imports validation, authority, codec, config, kernel.
    Driven by a TaskQueue; holds no state between tasks.
"""

from efactura_submission.backoff import DEFAULT_BACKOFF_MS, backoff_delay_ms
from efactura_submission.deadline import DeadlineResult, DeadlineWarning
from efactura_submission.poller import (
    PollOutcome,
    PollResult,
    StatusPoller,
    apply_verdict,
)
from efactura_submission.scheduler import ScheduledSubmission, ScheduleResult
from efactura_submission.submitter import (
    SubmissionService,
    SubmitOutcome,
    SubmitResult,
    archive_path,
)
from efactura_submission.sweep import StatusSweep, SweepResult
from efactura_submission.tasks import (
    InMemoryTaskQueue,
    PollStatus,
    ScheduledTask,
    SubmitDocument,
    Task,
    TaskQueue,
)
from efactura_submission.worker import SubmissionWorker

__all__ = [
    "DEFAULT_BACKOFF_MS",
    "DeadlineResult",
    "DeadlineWarning",
    "InMemoryTaskQueue",
    "PollOutcome",
    "PollResult",
    "PollStatus",
    "ScheduleResult",
    "ScheduledSubmission",
    "ScheduledTask",
    "StatusPoller",
    "StatusSweep",
    "SubmissionService",
    "SubmissionWorker",
    "SubmitDocument",
    "SubmitOutcome",
    "SubmitResult",
    "SweepResult",
    "Task",
    "TaskQueue",
    "apply_verdict",
    "archive_path",
]
