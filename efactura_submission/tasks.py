"""
Task messages and the delayed task queue interface.

Contract:
    ``SubmitDocument`` and ``PollStatus`` are immutable payloads carrying
    everything a worker needs; all other state lives on the Document row.
    A ``TaskQueue`` accepts a task and a delay in milliseconds and delivers
    it at least once after that delay.

Non-goals:
    - The production queue (broker, cron table, timer wheel) is wired by
      the host application.  ``InMemoryTaskQueue`` serves local runs and
      tests.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol, Union, runtime_checkable
from uuid import UUID

from efactura_kernel.domain.clock import Clock, SystemClock


@dataclass(frozen=True)
class SubmitDocument:
    document_id: UUID


@dataclass(frozen=True)
class PollStatus:
    document_id: UUID
    attempt: int = 0


Task = Union[SubmitDocument, PollStatus]


@runtime_checkable
class TaskQueue(Protocol):
    def enqueue(self, task: Task, delay_ms: int = 0) -> None:
        ...


@dataclass(frozen=True)
class ScheduledTask:
    task: Task
    due_at: datetime
    delay_ms: int


class InMemoryTaskQueue:
    """
    TaskQueue that records scheduled tasks with their due time.

    ``due()`` pops the tasks whose due time has passed (in scheduling
    order); ``drain()`` pops everything regardless of due time.
    """

    def __init__(self, clock: Clock | None = None):
        self._clock = clock or SystemClock()
        self._scheduled: list[ScheduledTask] = []

    def enqueue(self, task: Task, delay_ms: int = 0) -> None:
        due_at = self._clock.now_utc() + timedelta(milliseconds=delay_ms)
        self._scheduled.append(ScheduledTask(task=task, due_at=due_at, delay_ms=delay_ms))

    @property
    def scheduled(self) -> list[ScheduledTask]:
        return list(self._scheduled)

    def __len__(self) -> int:
        return len(self._scheduled)

    def due(self, now: datetime | None = None) -> list[Task]:
        now = now or self._clock.now_utc()
        ready = [s for s in self._scheduled if s.due_at <= now]
        self._scheduled = [s for s in self._scheduled if s.due_at > now]
        return [s.task for s in ready]

    def drain(self) -> list[Task]:
        tasks = [s.task for s in self._scheduled]
        self._scheduled = []
        return tasks
