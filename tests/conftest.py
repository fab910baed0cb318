"""
Pytest fixtures for the e-Factura integration test suite.

Provides:
- In-memory SQLite database (one per test) with every table created
- A fixed DeterministicClock
- Recording fakes for the collaborator protocols
- An Authority stub served through httpx.MockTransport

Builders and fakes live in tests/helpers.py.
"""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from typing import Any

import httpx
import pytest
from sqlalchemy.orm import Session

from efactura_authority.client import AuthorityClient, TransportClient
from efactura_authority.rate_limiter import RateLimiter
from efactura_config.schema import RateLimitSettings, ValidationSettings
from efactura_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from efactura_kernel.domain.clock import DeterministicClock
from efactura_kernel.domain.collaborators import MemoryStorage
from efactura_kernel.domain.types import DocumentKind
from efactura_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from efactura_kernel.models.document import Document, DocumentLine
from efactura_kernel.models.party import Party
from efactura_kernel.models.tenant import Tenant
from efactura_submission.tasks import InMemoryTaskQueue
from efactura_validation.pipeline import ValidationPipeline
from tests.helpers import (
    CLIENT_TAX_ID,
    FIXED_NOW,
    TENANT_TAX_ID,
    AuthorityStub,
    FakeSchematron,
    RecordingArchiver,
    RecordingNotifications,
    RecordingPublisher,
    StaticTokenResolver,
    write_schemas,
)

# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture efactura logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, sync_service):
            sync_service.sync_tenant(tenant_id)
            logs = captured_logs()
            assert any(r["message"] == "sync_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("efactura")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def engine():
    """Fresh in-memory database per test."""
    engine = init_engine_from_url("sqlite:///:memory:")
    create_tables()
    yield engine
    drop_tables()
    reset_engine()


@pytest.fixture
def session_factory(engine):
    return get_session_factory()


@pytest.fixture
def db_session(session_factory) -> Session:
    """
    Session for seeding and for services that share the caller's session.

    Every session shares one SQLite connection.  Commit seeded data before
    running a service that opens its own sessions (the sync engine).
    """
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def fetch(session_factory):
    """Run a ``select`` on a short-lived session and return the scalars."""

    def _fetch(statement) -> list:
        with session_factory() as session:
            return list(session.scalars(statement))

    return _fetch


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(FIXED_NOW)


# =============================================================================
# Domain data
# =============================================================================


@pytest.fixture
def tenant(db_session) -> Tenant:
    tenant = Tenant(
        name="Exemplu Software SRL",
        tax_id=TENANT_TAX_ID,
        vat_payer=True,
        registration_number="J12/1234/2020",
        address="Str. Memorandumului 28",
        city="Cluj-Napoca",
        county="CJ",
        country="RO",
        postal_code="400114",
        email="office@exemplu.ro",
        bank_account="RO49AAAA1B31007593840000",
        bank_name="Banca Transilvania",
        sync_days_back=60,
    )
    db_session.add(tenant)
    db_session.commit()
    return tenant


@pytest.fixture
def client_party(db_session, tenant) -> Party:
    party = Party(
        tenant_id=tenant.id,
        role="client",
        kind="company",
        tax_id=CLIENT_TAX_ID,
        vat_code=f"RO{CLIENT_TAX_ID}",
        name="Client Beta SA",
        address="Bd. Unirii 10",
        city="Sector 3",
        county="B",
        country="RO",
    )
    db_session.add(party)
    db_session.commit()
    return party


@pytest.fixture
def make_document(db_session, tenant, client_party):
    """Build (and commit) an issued outgoing invoice with recalculated totals."""

    def _make(
        number: str = "FCT-0001",
        lines: list[tuple[str, str, str, str]] | None = None,
        **fields: Any,
    ) -> Document:
        fields.setdefault("kind", DocumentKind.INVOICE.value)
        fields.setdefault("status", "issued")
        fields.setdefault("issue_date", date(2026, 1, 30))
        document = Document(
            tenant_id=tenant.id,
            direction="outgoing",
            number=number,
            currency=fields.pop("currency", "RON"),
            **fields,
        )
        document.tenant = tenant
        document.party = client_party
        for description, quantity, unit_price, vat_rate in lines or [
            ("Servicii dezvoltare software", "10", "150.00", "21.00"),
        ]:
            document.add_line(
                DocumentLine(
                    description=description,
                    quantity=Decimal(quantity),
                    unit="ora",
                    unit_price=Decimal(unit_price),
                    vat_rate=Decimal(vat_rate),
                    discount=Decimal("0"),
                    vat_category="S",
                )
            )
        document.recalculate_totals()
        db_session.add(document)
        db_session.commit()
        return document

    return _make


# =============================================================================
# Collaborator fakes
# =============================================================================


@pytest.fixture
def tokens() -> StaticTokenResolver:
    return StaticTokenResolver()


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def notifications() -> RecordingNotifications:
    return RecordingNotifications()


@pytest.fixture
def archiver() -> RecordingArchiver:
    return RecordingArchiver()


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def queue(clock) -> InMemoryTaskQueue:
    return InMemoryTaskQueue(clock)


# =============================================================================
# Authority stub
# =============================================================================


@pytest.fixture
def authority() -> AuthorityStub:
    return AuthorityStub()


@pytest.fixture
def rate_limits() -> RateLimitSettings:
    """Override in a test module to tighten the quotas."""
    return RateLimitSettings()


@pytest.fixture
def rate_limiter(rate_limits, clock) -> RateLimiter:
    return RateLimiter(rate_limits, clock)


@pytest.fixture
def http_client(authority):
    client = httpx.Client(transport=httpx.MockTransport(authority.handler))
    yield client
    client.close()


@pytest.fixture
def authority_client(http_client, rate_limiter) -> AuthorityClient:
    return AuthorityClient(http_client, rate_limiter)


@pytest.fixture
def transport_client(http_client, rate_limiter) -> TransportClient:
    return TransportClient(http_client, rate_limiter)


# =============================================================================
# Validation
# =============================================================================


@pytest.fixture
def validation_settings(tmp_path) -> ValidationSettings:
    """Settings pointing at permissive schemas written under tmp_path."""
    paths = write_schemas(tmp_path)
    return ValidationSettings(
        ubl_invoice_xsd=paths["Invoice"],
        ubl_credit_note_xsd=paths["CreditNote"],
        etransport_xsd=paths["eTransport"],
    )


@pytest.fixture
def schematron() -> FakeSchematron:
    return FakeSchematron()


@pytest.fixture
def pipeline(validation_settings, schematron) -> ValidationPipeline:
    return ValidationPipeline(validation_settings, schematron=schematron)
