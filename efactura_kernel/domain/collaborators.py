"""
Collaborator protocols for out-of-scope services.

Contract:
    Token acquisition, durable storage, archiving, user notifications and
    real-time pub/sub are owned by other parts of the platform.  The
    submission state machine and the sync engine only see these narrow
    interfaces.

Non-goals:
    - No implementations live here beyond the in-process ``MemoryStorage``
      used by local runs; production adapters are wired by the host
      application.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable
from uuid import UUID


@runtime_checkable
class TokenResolver(Protocol):
    """Resolve a bearer token for a tenant, or None when none is valid."""

    def resolve(self, tenant_id: UUID) -> str | None:
        ...


@runtime_checkable
class Storage(Protocol):
    """Write-only durable storage addressed by relative path."""

    def write(self, path: str, content: bytes) -> None:
        ...


@runtime_checkable
class Archiver(Protocol):
    """Archive a document's raw XML and detached signature."""

    def archive(self, document: Any, xml: bytes, signature: bytes | None) -> None:
        ...


@runtime_checkable
class NotificationSink(Protocol):
    """Deliver a user-facing notification to the members of a tenant."""

    def notify(
        self,
        tenant_id: UUID,
        notification_type: str,
        title: str,
        body: str,
        data: dict[str, Any],
    ) -> None:
        ...


@runtime_checkable
class EventPublisher(Protocol):
    """Publish a real-time event on a channel."""

    def publish(self, channel: str, payload: dict[str, Any]) -> None:
        ...


class MemoryStorage:
    """Dict-backed Storage, handy for local runs and tests."""

    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}

    def write(self, path: str, content: bytes) -> None:
        self.files[path] = content

    def read(self, path: str) -> bytes:
        return self.files[path]
