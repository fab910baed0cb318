"""
Module: efactura_sync
Responsibility:
    Reconcile each tenant's Authority inbox with local documents:
    list -> record InboxMessage -> download -> parse -> match or create.

Architecture position:
    Sync -- imports authority, codec, config, kernel.  Independent of
    submission; the two meet only through Document rows (upload ids and
    message ids).

Invariants enforced:
    - One InboxMessage per listed message id per tenant.
    - One Document per message id, across runs.
    - A failure in one message or one batch never aborts the run.

Usage:
    service = SyncService(get_session_factory(), client, tokens, settings.sync)
    result = service.sync_tenant(tenant_id)
"""

from efactura_sync.cache import SyncCache
from efactura_sync.resolvers import (
    DEFAULT_SERIES,
    detect_series,
    ensure_default_series,
    normalize_address,
    resolve_bank_account,
    resolve_catalog_item,
    resolve_party,
    upsert_series,
)
from efactura_sync.result import SyncResult
from efactura_sync.service import SyncService, extract_upload_id, parse_created_at

__all__ = [
    "DEFAULT_SERIES",
    "SyncCache",
    "SyncResult",
    "SyncService",
    "detect_series",
    "ensure_default_series",
    "extract_upload_id",
    "normalize_address",
    "parse_created_at",
    "resolve_bank_account",
    "resolve_catalog_item",
    "resolve_party",
    "upsert_series",
]
