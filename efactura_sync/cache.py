"""
SyncCache -- per-run lookup cache for rows created before the next flush.

Find-or-create lookups query the database, which only sees flushed rows.
Two messages in the same batch naming the same supplier would otherwise
both create it.  The cache is owned by one sync run and cleared whenever
the session is committed or reset, so it never outlives the rows it
points at.
"""

from __future__ import annotations

from uuid import UUID

from efactura_kernel.models.catalog import CatalogItem, DocumentSeries
from efactura_kernel.models.party import BankAccount, Party

# Party key: (tenant_id, role, identifier kind, identifier value)
PartyKey = tuple[UUID, str, str, str]


class SyncCache:
    def __init__(self) -> None:
        self.parties: dict[PartyKey, Party] = {}
        self.catalog_items: dict[tuple[UUID, str, str], CatalogItem] = {}
        self.bank_accounts: dict[tuple[UUID, str], BankAccount] = {}
        self.series: dict[tuple[UUID, str], DocumentSeries] = {}

    def clear(self) -> None:
        self.parties.clear()
        self.catalog_items.clear()
        self.bank_accounts.clear()
        self.series.clear()

    def __len__(self) -> int:
        return (
            len(self.parties)
            + len(self.catalog_items)
            + len(self.bank_accounts)
            + len(self.series)
        )
