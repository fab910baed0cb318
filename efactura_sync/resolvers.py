"""
Find-or-create helpers for the records a synced document references.

Responsibility:
    Resolve parties, the tenant's own bank accounts, catalog items and
    numbering series from parsed Authority documents, creating them when
    absent.

Architecture position:
    Sync -- called only from inside a sync run.  Every function takes the
    run's SyncCache so rows created earlier in the same batch (not yet
    visible to queries until flushed) are found rather than duplicated.

Invariants enforced:
    - Party kind is derived from the identifier: placeholder or empty ->
      individual keyed by lower-cased name; CNP -> individual keyed by
      personal id; anything else -> company keyed by tax id.
    - Series numbers only ever move upward.
    - Rows created here carry ``source="efactura_sync"``.
"""

from __future__ import annotations

import re
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from efactura_codec.identifiers import (
    IdentifierKind,
    classify_party_identifier,
    normalize_bucharest_sector,
    normalize_county,
    normalize_tax_id,
)
from efactura_codec.types import ParsedLine, ParsedParty
from efactura_kernel.domain.types import DocumentKind, PartyKind, PartyRole
from efactura_kernel.logging_config import get_logger
from efactura_kernel.models.catalog import CatalogItem, DocumentSeries
from efactura_kernel.models.party import BankAccount, Party
from efactura_sync.cache import SyncCache
from efactura_sync.result import SyncResult

logger = get_logger("sync.resolvers")

SYNC_SOURCE = "efactura_sync"

_BUCHAREST_VARIANTS = {"B", "BUCURESTI", "BUCHAREST"}
_SERVICE_UNITS = {"ora", "zi", "luna"}
_SERIES_RE = re.compile(r"^(.*?)(\d+)$")

# Created for tenants that have no series at all.
DEFAULT_SERIES = (
    ("FCT", DocumentKind.INVOICE),
    ("NC", DocumentKind.CREDIT_NOTE),
)


def normalize_address(county: str | None, city: str | None) -> tuple[str | None, str | None]:
    """Bucharest is stored as county ``B`` with a ``SECTORn`` city."""
    if county:
        county = normalize_county(county)
    if county and county.strip().upper() in _BUCHAREST_VARIANTS:
        return "B", normalize_bucharest_sector(city)
    return county, city


# =============================================================================
# Parties
# =============================================================================


def _party_key(parsed: ParsedParty) -> tuple[str, str] | None:
    kind = classify_party_identifier(parsed.tax_id)
    if kind is IdentifierKind.PLACEHOLDER:
        name = (parsed.name or "").strip().lower()
        return ("individual", name) if name else None
    if kind is IdentifierKind.PERSONAL:
        return "cnp", normalize_tax_id(parsed.tax_id)
    return "cif", normalize_tax_id(parsed.tax_id)


def _find_party(
    session: Session, tenant_id: UUID, role: PartyRole, key: tuple[str, str],
) -> Party | None:
    kind, value = key
    query = select(Party).where(Party.tenant_id == tenant_id, Party.role == role.value)
    if kind == "cnp":
        query = query.where(Party.personal_id == value)
    elif kind == "individual":
        query = query.where(
            Party.kind == PartyKind.INDIVIDUAL.value,
            Party.personal_id.is_(None),
            func.lower(Party.name) == value,
        )
    else:
        query = query.where(Party.tax_id == value)
    return session.scalars(query.limit(1)).first()


def _apply_party_fields(party: Party, parsed: ParsedParty) -> None:
    if parsed.name:
        party.name = parsed.name
    if parsed.address:
        party.address = parsed.address
    if parsed.city or parsed.county:
        party.county, party.city = normalize_address(
            parsed.county or party.county, parsed.city or party.city,
        )
    if parsed.postal_code:
        party.postal_code = parsed.postal_code
    if parsed.vat_code and party.kind == PartyKind.COMPANY.value:
        party.vat_code = parsed.vat_code
    if parsed.registration_number:
        party.registration_number = parsed.registration_number
    if parsed.phone:
        party.phone = parsed.phone
    if parsed.email:
        party.email = parsed.email
    if parsed.bank_account:
        party.bank_account = parsed.bank_account
    if parsed.bank_name:
        party.bank_name = parsed.bank_name


def resolve_party(
    session: Session,
    tenant_id: UUID,
    parsed: ParsedParty,
    role: PartyRole,
    cache: SyncCache,
    result: SyncResult,
) -> Party | None:
    """
    Find or create the party described by ``parsed``.

    Returns None when the party cannot be identified at all (placeholder
    identifier and no name).  Existing rows are refreshed with any
    non-empty parsed field.
    """
    key = _party_key(parsed)
    if key is None:
        return None

    cache_key = (tenant_id, role.value, *key)
    cached = cache.parties.get(cache_key)
    if cached is not None:
        return cached

    party = _find_party(session, tenant_id, role, key)
    if party is None:
        identifier_kind, value = key
        party = Party(
            tenant_id=tenant_id,
            role=role.value,
            kind=(
                PartyKind.COMPANY.value
                if identifier_kind == "cif"
                else PartyKind.INDIVIDUAL.value
            ),
            tax_id=value if identifier_kind == "cif" else None,
            personal_id=value if identifier_kind == "cnp" else None,
            name=parsed.name or "Unknown",
            country=parsed.country or "RO",
            source=SYNC_SOURCE,
        )
        session.add(party)
        result.new_parties += 1
        logger.info(
            "party_created",
            extra={"role": role.value, "party_kind": party.kind, "tax_id": party.tax_id},
        )

    _apply_party_fields(party, parsed)
    cache.parties[cache_key] = party
    return party


# =============================================================================
# Bank accounts
# =============================================================================


def resolve_bank_account(
    session: Session,
    tenant_id: UUID,
    iban: str,
    bank_name: str | None,
    currency: str,
    cache: SyncCache,
) -> BankAccount:
    iban = re.sub(r"\s+", "", iban).upper()
    cached = cache.bank_accounts.get((tenant_id, iban))
    if cached is not None:
        return cached

    account = session.scalars(
        select(BankAccount).where(BankAccount.tenant_id == tenant_id, BankAccount.iban == iban)
    ).first()
    if account is None:
        account = BankAccount(
            tenant_id=tenant_id,
            iban=iban,
            bank_name=bank_name,
            currency=currency,
            source=SYNC_SOURCE,
        )
        session.add(account)
        logger.info("bank_account_created", extra={"iban": iban})

    cache.bank_accounts[(tenant_id, iban)] = account
    return account


# =============================================================================
# Catalog items
# =============================================================================


def resolve_catalog_item(
    session: Session,
    tenant_id: UUID,
    line: ParsedLine,
    cache: SyncCache,
    result: SyncResult,
) -> CatalogItem:
    """Catalog items are matched on ``(name[:255], unit)``."""
    name = line.description[:255]
    cache_key = (tenant_id, name, line.unit)
    cached = cache.catalog_items.get(cache_key)
    if cached is not None:
        return cached

    item = session.scalars(
        select(CatalogItem).where(
            CatalogItem.tenant_id == tenant_id,
            CatalogItem.name == name,
            CatalogItem.unit == line.unit,
        )
    ).first()
    if item is None:
        # Lines reference the item by id before the next flush.
        item = CatalogItem(
            id=uuid4(),
            tenant_id=tenant_id,
            name=name,
            unit=line.unit,
            default_price=line.unit_price,
            vat_rate=line.vat_rate,
            is_service=line.unit in _SERVICE_UNITS,
            source=SYNC_SOURCE,
        )
        session.add(item)
        result.new_catalog_items += 1

    cache.catalog_items[cache_key] = item
    return item


# =============================================================================
# Series
# =============================================================================


def detect_series(number: str | None) -> tuple[str, int] | None:
    """
    Split a document number into ``(prefix, sequence)``.

    ``"FCT-0042"`` -> ``("FCT", 42)``.  Numbers without a textual prefix
    or without a trailing sequence yield None.
    """
    if not number:
        return None
    match = _SERIES_RE.match(number.strip())
    if not match:
        return None
    prefix = match.group(1).rstrip(" -/_.")
    if not prefix:
        return None
    return prefix, int(match.group(2))


def upsert_series(
    session: Session,
    tenant_id: UUID,
    prefix: str,
    number: int,
    kind: DocumentKind,
    cache: SyncCache,
) -> bool:
    """
    Record that ``prefix``/``number`` is in use.  Returns True when the
    series was created.
    """
    next_number = number + 1
    cache_key = (tenant_id, f"{kind.value}:{prefix}")
    series = cache.series.get(cache_key)
    created = False
    if series is None:
        series = session.scalars(
            select(DocumentSeries).where(
                DocumentSeries.tenant_id == tenant_id,
                DocumentSeries.prefix == prefix,
                DocumentSeries.kind == kind.value,
            )
        ).first()
    if series is None:
        series = DocumentSeries(
            tenant_id=tenant_id,
            prefix=prefix,
            kind=kind.value,
            next_number=next_number,
            source=SYNC_SOURCE,
        )
        session.add(series)
        created = True
        logger.info("series_created", extra={"prefix": prefix, "kind": kind.value})
    elif next_number > series.next_number:
        series.next_number = next_number

    cache.series[cache_key] = series
    return created


def ensure_default_series(session: Session, tenant_id: UUID) -> int:
    """Create the default series for a tenant that has none.  Returns the count created."""
    existing = session.scalar(
        select(func.count()).select_from(DocumentSeries).where(
            DocumentSeries.tenant_id == tenant_id
        )
    )
    if existing:
        return 0
    for prefix, kind in DEFAULT_SERIES:
        session.add(
            DocumentSeries(
                tenant_id=tenant_id,
                prefix=prefix,
                kind=kind.value,
                next_number=1,
                is_default=True,
                source="default",
            )
        )
    session.flush()
    logger.info("default_series_created", extra={"count": len(DEFAULT_SERIES)})
    return len(DEFAULT_SERIES)