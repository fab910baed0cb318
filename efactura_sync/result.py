"""
SyncResult -- counters and errors for one tenant sync run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class SyncResult:
    """
    Mutable accumulator owned by a single ``sync_tenant`` call.

    Errors are human-readable strings in the order they occurred; the run
    continues past per-message errors, so a result can carry both new
    documents and errors.
    """

    new_documents: int = 0
    skipped_duplicates: int = 0
    new_parties: int = 0
    new_catalog_items: int = 0
    new_series: int = 0
    errors: list[str] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        self.errors.append(message)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def to_dict(self) -> dict[str, Any]:
        return {
            "new_documents": self.new_documents,
            "skipped_duplicates": self.skipped_duplicates,
            "new_parties": self.new_parties,
            "new_catalog_items": self.new_catalog_items,
            "new_series": self.new_series,
            "errors": list(self.errors),
        }
