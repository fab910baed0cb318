"""
Sync-specific test fixtures.

Provides:
- SyncService wired to the Authority stub and the recording fakes
- Helpers for queueing incoming and outgoing invoice messages
"""

import pytest

from efactura_config.schema import SyncSettings
from efactura_sync.service import SyncService
from tests.helpers import CLIENT_TAX_ID, TENANT_TAX_ID, build_archive, build_invoice_xml


@pytest.fixture
def sync_settings() -> SyncSettings:
    return SyncSettings()


@pytest.fixture
def sync_service(
    session_factory,
    authority_client,
    tokens,
    sync_settings,
    clock,
    archiver,
    publisher,
    notifications,
) -> SyncService:
    return SyncService(
        session_factory,
        authority_client,
        tokens,
        sync_settings,
        clock,
        archiver,
        publisher,
        notifications,
    )


@pytest.fixture
def add_incoming(authority):
    """Queue ``count`` received invoices INV-0001.. with message ids 4001.."""

    def _add(count: int = 1, start: int = 1) -> list[str]:
        ids = []
        for index in range(start, start + count):
            message_id = str(4000 + index)
            xml = build_invoice_xml(f"INV-{index:04d}")
            authority.add_message(
                message_id, "FACTURA PRIMITA", build_archive(xml, name=message_id)
            )
            ids.append(message_id)
        return ids

    return _add


@pytest.fixture
def add_outgoing(authority):
    """Queue a sent invoice issued by the tenant to the client."""

    def _add(
        message_id: str,
        number: str,
        upload_id: str | None = None,
        buyer_tax_id: str = CLIENT_TAX_ID,
        buyer_name: str = "Client Beta SA",
        **xml_fields,
    ) -> None:
        xml = build_invoice_xml(
            number,
            seller_tax_id=TENANT_TAX_ID,
            seller_name="Exemplu Software SRL",
            buyer_tax_id=buyer_tax_id,
            buyer_name=buyer_name,
            **xml_fields,
        )
        authority.add_message(
            message_id,
            "FACTURA TRIMISA",
            build_archive(xml, name=message_id),
            detail=(
                f"Factura cu id_incarcare={upload_id or message_id} emisa de "
                f"cif_emitent={TENANT_TAX_ID} pentru cif_beneficiar={buyer_tax_id}"
            ),
        )

    return _add
