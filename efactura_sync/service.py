"""
SyncService -- reconcile a tenant's Authority inbox with local state.

Responsibility:
    List the messages the Authority holds for a tenant, record every one
    of them as an InboxMessage, turn invoice messages into Documents (or
    merge them into the locally created document they confirm) and
    attach error notices to the documents they reject.

Architecture position:
    Sync -- task entry point (one task per tenant run).  Uses the
    Authority client, the codec and the kernel models.  Owns its session:
    it receives a session factory so a poisoned session can be replaced
    mid-run.

Invariants enforced:
    - Idempotency: a message id that already produced (or confirmed) a
      document is never imported again, within one run or across runs.
      Known ids are preloaded with one query per run.
    - Every listed message gets exactly one InboxMessage row, including
      types that never produce a document.
    - Messages are processed in the order the Authority listed them.
    - Each message runs inside its own SAVEPOINT: a failure while
      importing one message rolls back only that message.
    - Work is committed every ``batch_size`` touched messages.  A failed
      commit resets the session and the SyncCache and the run continues.
    - The SyncCache is cleared after every commit and every reset.

Failure modes:
    - Run level (the run ends early, errors published and notified): no
      token, the message list call fails or is rate limited.
    - Message level (recorded in SyncResult.errors, run continues): rate
      limited or failed download, unreadable archive, unparseable XML,
      persistence failure inside the message SAVEPOINT.
    - Batch level: ``Batch flush error: ...`` and a session reset.  The
      counters fall back to their values at the last successful commit.

Audit relevance:
    New documents carry a ``synced`` DocumentEvent; merged documents get
    one only if they do not already have it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from efactura_authority.client import AuthorityClient
from efactura_codec.payloads import extract_payload, parse_error_report
from efactura_codec.replies import RawMessage
from efactura_codec.types import DownloadedPayload, ParsedDocument
from efactura_codec.ubl_parser import parse_document
from efactura_config.schema import SyncSettings
from efactura_kernel.domain.clock import Clock, SystemClock, ensure_utc
from efactura_kernel.domain.collaborators import (
    Archiver,
    EventPublisher,
    NotificationSink,
    TokenResolver,
)
from efactura_kernel.domain.types import (
    Direction,
    DocumentKind,
    DocumentStatus,
    ExternalStatus,
    InboxStatus,
    MessageKind,
    PartyRole,
)
from efactura_kernel.exceptions import (
    AuthorityError,
    CodecError,
    PayloadExtractionError,
    PersistenceFailureError,
    RateLimitedError,
    TenantNotFoundError,
)
from efactura_kernel.logging_config import LogContext, get_logger
from efactura_kernel.models.document import Document, DocumentAttachment, DocumentLine
from efactura_kernel.models.inbox import InboxMessage
from efactura_kernel.models.tenant import Tenant
from efactura_sync.cache import SyncCache
from efactura_sync.resolvers import (
    detect_series,
    ensure_default_series,
    resolve_bank_account,
    resolve_catalog_item,
    resolve_party,
    upsert_series,
)
from efactura_sync.result import SyncResult

logger = get_logger("sync.service")

SYNC_ACTION = "synced_from_authority"
ERROR_DETAILS_UNAVAILABLE = "Eroare ANAF (detalii indisponibile)"

_UPLOAD_ID_RE = re.compile(r"id_incarcare=(\d+)")
_COMPACT_TIMESTAMP_RE = re.compile(r"^\d{12,14}$")


def extract_upload_id(detail: str | None) -> str | None:
    match = _UPLOAD_ID_RE.search(detail or "")
    return match.group(1) if match else None


def parse_created_at(value: str | None) -> date | None:
    """Authority timestamps are ``YYYYMMDDHHmm``; ISO dates are accepted too."""
    if not value:
        return None
    try:
        if _COMPACT_TIMESTAMP_RE.match(value):
            return datetime.strptime(value[:12], "%Y%m%d%H%M").date()
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


class SyncService:
    """
    Inbox reconciliation for one or all tenants.

    Contract:
        ``sync_tenant(tenant_id)`` runs one reconciliation and returns its
        SyncResult.  All writes are committed before it returns; the
        caller does not manage the session.

    Guarantees:
        - Run-level failures return a result with exactly one error and
          never raise.
        - ``last_synced_at`` is only advanced after the message list was
          obtained.

    Non-goals:
        - Does NOT retry rate-limited messages; they are retried by the
          next run because they were never marked known.
        - Does NOT refresh tokens.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        client: AuthorityClient,
        token_resolver: TokenResolver,
        settings: SyncSettings | None = None,
        clock: Clock | None = None,
        archiver: Archiver | None = None,
        publisher: EventPublisher | None = None,
        notifications: NotificationSink | None = None,
    ):
        self._session_factory = session_factory
        self._client = client
        self._tokens = token_resolver
        self._settings = settings or SyncSettings()
        self._clock = clock or SystemClock()
        self._archiver = archiver
        self._publisher = publisher
        self._notifications = notifications

    def sync_all(self, tenant_ids: list[UUID] | None = None) -> dict[UUID, SyncResult]:
        """
        Sync every sync-enabled tenant (optionally restricted to ``tenant_ids``).

        Tenants are independent: an unexpected error in one run is logged
        and recorded in that tenant's result, and the next tenant runs.
        """
        session = self._session_factory()
        try:
            query = select(Tenant.id).where(Tenant.sync_enabled.is_(True))
            if tenant_ids is not None:
                query = query.where(Tenant.id.in_(tenant_ids))
            ids = list(session.scalars(query.order_by(Tenant.created_at)))
        finally:
            session.close()

        results: dict[UUID, SyncResult] = {}
        for tenant_id in ids:
            try:
                results[tenant_id] = self.sync_tenant(tenant_id)
            except Exception as exc:
                logger.exception("sync_tenant_crashed", extra={"tenant_id": str(tenant_id)})
                result = SyncResult()
                result.add_error(f"Sync failed: {exc}")
                results[tenant_id] = result
        return results

    def sync_tenant(self, tenant_id: UUID, lookback_days: int | None = None) -> SyncResult:
        run = _SyncRun(self, tenant_id)
        try:
            with LogContext.bind(tenant_id=str(tenant_id)):
                return run.execute(lookback_days)
        finally:
            run.session.close()

    # Collaborator calls are best-effort: a broken pub/sub or notification
    # backend must not fail a sync run.

    def publish(self, tenant_id: UUID, payload: dict[str, Any]) -> None:
        if self._publisher is None:
            return
        channel = f"{self._settings.channel_prefix}{tenant_id}"
        try:
            self._publisher.publish(channel, payload)
        except Exception:
            logger.exception("sync_publish_failed", extra={"event_type": payload.get("type")})

    def notify(
        self, tenant_id: UUID, notification_type: str, title: str, body: str, data: dict[str, Any],
    ) -> None:
        if self._notifications is None:
            return
        try:
            self._notifications.notify(tenant_id, notification_type, title, body, data)
        except Exception:
            logger.exception(
                "sync_notification_failed", extra={"notification_type": notification_type}
            )

    def archive(self, document: Document, payload: DownloadedPayload) -> None:
        if self._archiver is None:
            return
        try:
            self._archiver.archive(document, payload.xml, payload.signature)
        except Exception:
            logger.exception("sync_archive_failed", extra={"document_id": str(document.id)})


@dataclass
class _Counters:
    """Snapshot of the SyncResult counters."""

    new_documents: int = 0
    skipped_duplicates: int = 0
    new_parties: int = 0
    new_catalog_items: int = 0
    new_series: int = 0

    @classmethod
    def of(cls, result: SyncResult) -> _Counters:
        return cls(
            result.new_documents,
            result.skipped_duplicates,
            result.new_parties,
            result.new_catalog_items,
            result.new_series,
        )

    def restore(self, result: SyncResult) -> None:
        result.new_documents = self.new_documents
        result.skipped_duplicates = self.skipped_duplicates
        result.new_parties = self.new_parties
        result.new_catalog_items = self.new_catalog_items
        result.new_series = self.new_series


class _SyncRun:
    """State of one ``sync_tenant`` call: session, cache, result, known ids."""

    def __init__(self, service: SyncService, tenant_id: UUID):
        self.service = service
        self.settings = service._settings
        self.client = service._client
        self.clock = service._clock
        self.tenant_id = tenant_id
        self.session: Session = service._session_factory()
        self.cache = SyncCache()
        self.result = SyncResult()
        self.known_ids: set[str] = set()
        # Counters as of the last successful commit.
        self.committed = _Counters()
        self.message_ids: list[str] = []
        self.token: str | None = None
        self.tenant: Tenant | None = None

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------

    def execute(self, lookback_days: int | None) -> SyncResult:
        self.tenant = self.session.get(Tenant, self.tenant_id)
        if self.tenant is None:
            raise TenantNotFoundError(str(self.tenant_id))
        tenant_name = self.tenant.name

        self.token = self.service._tokens.resolve(self.tenant_id)
        if self.token is None:
            logger.warning("sync_no_token")
            return self._abort(f"No valid ANAF token found for company {tenant_name}")

        days = lookback_days or self.lookback_days()
        logger.info("sync_started", extra={"days": days, "tax_id": self.tenant.tax_id})

        try:
            listing = self.client.list_messages(self.tenant.tax_id, self.token, days)
        except RateLimitedError as exc:
            logger.warning("sync_list_rate_limited", extra={"retry_after_seconds": exc.retry_after_seconds})
            return self._abort(f"ANAF rate limit reached: {exc}")
        except AuthorityError as exc:
            logger.error("sync_list_failed", extra={"error": str(exc)})
            return self._abort(f"Failed to list messages from ANAF: {exc}")
        if not listing.success:
            logger.error("sync_list_failed", extra={"error": listing.error_message})
            return self._abort(f"Failed to list messages from ANAF: {listing.error_message}")

        messages = listing.messages
        total = len(messages)
        if not messages:
            self.tenant.last_synced_at = self.clock.now_utc()
            self.session.commit()
            logger.info("sync_no_messages")
            self.service.publish(
                self.tenant_id, {"type": "sync.completed", "stats": self.result.to_dict()}
            )
            return self.result

        self.service.publish(self.tenant_id, {"type": "sync.started", "total": total})
        self.message_ids = [message.id for message in messages]
        self.known_ids = self._load_known_ids()

        touched = 0
        for index, message in enumerate(messages, start=1):
            if self._process(message):
                touched += 1
                if touched % self.settings.batch_size == 0:
                    self._commit("batch")
            if index % self.settings.progress_interval == 0 or index == total:
                self.service.publish(
                    self.tenant_id,
                    {
                        "type": "sync.progress",
                        "processed": index,
                        "total": total,
                        "stats": self.result.to_dict(),
                    },
                )

        self._commit("final")
        self._touch_last_synced()
        self._ensure_defaults()

        stats = self.result.to_dict()
        self.service.publish(self.tenant_id, {"type": "sync.completed", "stats": stats})
        logger.info(
            "sync_completed",
            extra={
                "total": total,
                "new_documents": self.result.new_documents,
                "skipped_duplicates": self.result.skipped_duplicates,
                "error_count": len(self.result.errors),
            },
        )

        if self.result.new_documents > 0:
            self._notify_new_documents(self.result.new_documents)
        if self.result.has_errors:
            self._report_errors(tenant_name)
        return self.result

    def lookback_days(self) -> int:
        """
        Days to list: ``max(days since last sync + 1, floor)`` after a
        previous sync, otherwise the tenant's configured window.
        """
        last = ensure_utc(self.tenant.last_synced_at)
        if last is not None:
            elapsed = (self.clock.now_utc() - last).days
            return max(elapsed + 1, self.settings.lookback_floor_days)
        return self.tenant.sync_days_back or self.settings.default_lookback_days

    def _abort(self, error: str) -> SyncResult:
        self.result.add_error(error)
        self._report_errors(self.tenant.name)
        return self.result

    # -------------------------------------------------------------------------
    # Messages
    # -------------------------------------------------------------------------

    def _process(self, message: RawMessage) -> bool:
        """Handle one listed message.  Returns True when it wrote anything."""
        kind = MessageKind.from_type_tag(message.type)
        with LogContext.bind(message_id=message.id):
            try:
                inbox, created = self._store_inbox(message, kind)
            except SQLAlchemyError as exc:
                self._persistence_failed(message, exc)
                return False

            if kind is MessageKind.ERROR_NOTICE:
                return self._process_error_notice(inbox, message) or created

            direction = kind.direction
            if direction is None:
                inbox.status = InboxStatus.PROCESSED.value
                return created

            if message.id in self.known_ids:
                self.result.skipped_duplicates += 1
                inbox.status = InboxStatus.PROCESSED.value
                logger.debug("sync_message_known")
                return created

            counters = _Counters.of(self.result)
            try:
                with self.session.begin_nested():
                    imported = self._import(message, inbox, direction)
            except RateLimitedError as exc:
                self._restore(counters)
                self.result.add_error(
                    f"ANAF rate limit hit for message {message.id} "
                    f"(retry after {exc.retry_after_seconds}s)"
                )
                self._mark_error(inbox, f"ANAF rate limit: {exc}")
                logger.warning(
                    "sync_message_rate_limited",
                    extra={"bucket": exc.bucket, "retry_after_seconds": exc.retry_after_seconds},
                )
                return created
            except SQLAlchemyError as exc:
                self._restore(counters)
                self._persistence_failed(message, exc, inbox)
                return created
            except Exception as exc:
                self._restore(counters)
                self.result.add_error(f"Error processing message {message.id}: {exc}")
                self._mark_error(inbox, str(exc))
                logger.exception("sync_message_failed")
                return created

            if imported is None:
                return created
            self.known_ids.add(message.id)
            return True

    def _store_inbox(self, message: RawMessage, kind: MessageKind) -> tuple[InboxMessage, bool]:
        inbox = self.session.scalars(
            select(InboxMessage).where(
                InboxMessage.tenant_id == self.tenant_id,
                InboxMessage.external_message_id == message.id,
            )
        ).first()
        if inbox is not None:
            return inbox, False

        with self.session.begin_nested():
            inbox = InboxMessage(
                tenant_id=self.tenant_id,
                external_message_id=message.id,
                message_type=message.type,
                kind=kind.value,
                tax_id=message.tax_id,
                details=message.detail,
                upload_id=extract_upload_id(message.detail),
                status=InboxStatus.PENDING.value,
            )
            self.session.add(inbox)
        return inbox, True

    def _process_error_notice(self, inbox: InboxMessage, message: RawMessage) -> bool:
        if inbox.error_message is not None:
            return False

        try:
            content = self.client.download(message.id, self.token)
            error_text = parse_error_report(content)
        except RateLimitedError as exc:
            # error_message stays empty so the next run downloads it again.
            self.result.add_error(
                f"ANAF rate limit hit for message {message.id} "
                f"(retry after {exc.retry_after_seconds}s)"
            )
            inbox.status = InboxStatus.ERROR.value
            return True
        except (AuthorityError, CodecError) as exc:
            logger.error("sync_error_notice_failed", extra={"error": str(exc)})
            self._mark_error(inbox, f"Eroare la descărcarea detaliilor: {exc}")
            return True

        inbox.error_message = error_text or ERROR_DETAILS_UNAVAILABLE
        inbox.status = InboxStatus.ERROR.value

        if inbox.upload_id:
            document = self.session.scalars(
                select(Document).where(
                    Document.tenant_id == self.tenant_id,
                    Document.external_upload_id == inbox.upload_id,
                )
            ).first()
            if document is not None:
                inbox.document = document
                document.external_status = ExternalStatus.NOK.value
                document.external_error_message = error_text
                if document.status != DocumentStatus.REJECTED.value:
                    document.record_status_change(
                        DocumentStatus.REJECTED.value,
                        {"action": "authority_error_notice", "message_id": message.id},
                    )
                logger.info("sync_error_notice_linked", extra={"document_id": str(document.id)})
        return True

    def _import(
        self, message: RawMessage, inbox: InboxMessage, direction: Direction,
    ) -> Document | None:
        content = self.client.download(message.id, self.token)
        try:
            payload = extract_payload(content)
        except PayloadExtractionError:
            self.result.add_error(f"Failed to extract XML from message {message.id}")
            self._mark_error(inbox, "Failed to extract XML")
            return None

        parsed = parse_document(payload.xml)

        existing = self._match_local(inbox.upload_id, direction, parsed)
        if existing is not None:
            self._merge(existing, message, payload)
            inbox.document = existing
            inbox.status = InboxStatus.PROCESSED.value
            inbox.error_message = None
            self.session.flush()
            self.service.archive(existing, payload)
            self.result.skipped_duplicates += 1
            logger.info("sync_document_merged", extra={"document_id": str(existing.id)})
            return existing

        document = self._create(message, inbox, direction, parsed, payload)
        inbox.document = document
        inbox.status = InboxStatus.PROCESSED.value
        inbox.error_message = None
        self.session.flush()
        self.service.archive(document, payload)
        self.result.new_documents += 1
        logger.info(
            "sync_document_created",
            extra={"document_id": str(document.id), "direction": direction.value},
        )
        return document

    # -------------------------------------------------------------------------
    # Documents
    # -------------------------------------------------------------------------

    def _match_local(
        self, upload_id: str | None, direction: Direction, parsed: ParsedDocument,
    ) -> Document | None:
        """Outgoing documents created here are matched by upload id, then by number."""
        if direction is not Direction.OUTGOING:
            return None
        if upload_id:
            document = self.session.scalars(
                select(Document).where(
                    Document.tenant_id == self.tenant_id,
                    Document.external_upload_id == upload_id,
                )
            ).first()
            if document is not None:
                return document
        if parsed.number:
            return self.session.scalars(
                select(Document).where(
                    Document.tenant_id == self.tenant_id,
                    Document.number == parsed.number,
                    Document.direction == Direction.OUTGOING.value,
                    Document.external_message_id.is_(None),
                )
            ).first()
        return None

    def _merge(self, document: Document, message: RawMessage, payload: DownloadedPayload) -> None:
        document.external_message_id = message.id
        document.external_download_id = message.id
        document.signature_content = _decode(payload.signature)
        document.synced_at = self.clock.now_utc()

        if document.status not in (
            DocumentStatus.ISSUED.value,
            DocumentStatus.SENT_TO_PROVIDER.value,
        ):
            return
        already_synced = any(
            event.new_status == DocumentStatus.SYNCED.value
            and (event.event_metadata or {}).get("action") == SYNC_ACTION
            for event in document.events
        )
        if not already_synced:
            document.record_status_change(
                DocumentStatus.SYNCED.value,
                {"action": SYNC_ACTION, "message_id": message.id, "matched_existing": True},
            )

    def _create(
        self,
        message: RawMessage,
        inbox: InboxMessage,
        direction: Direction,
        parsed: ParsedDocument,
        payload: DownloadedPayload,
    ) -> Document:
        seller, buyer = parsed.seller, parsed.buyer
        payee = parsed.payee
        document = Document(
            tenant_id=self.tenant_id,
            kind=parsed.kind.value,
            direction=direction.value,
            number=parsed.number or "N/A",
            issue_date=parsed.issue_date,
            due_date=parsed.due_date,
            currency=parsed.currency,
            subtotal=parsed.subtotal,
            vat_total=parsed.vat_total,
            total=parsed.total,
            notes=parsed.notes,
            payment_terms=parsed.payment_terms,
            delivery_location=parsed.delivery_location,
            project_reference=parsed.project_reference,
            tax_point_date=parsed.tax_point_date,
            buyer_reference=parsed.buyer_reference,
            order_reference=parsed.order_reference,
            contract_reference=parsed.contract_reference,
            invoiced_object_identifier=parsed.invoiced_object_identifier,
            accounting_cost=parsed.accounting_cost,
            payee_name=payee.name if payee else None,
            payee_identifier=payee.identifier if payee else None,
            payee_legal_id=payee.legal_id if payee else None,
            sender_tax_id=seller.tax_id if seller else None,
            sender_name=seller.name if seller else None,
            receiver_tax_id=buyer.tax_id if buyer else None,
            receiver_name=buyer.name if buyer else None,
            external_message_id=message.id,
            external_upload_id=inbox.upload_id,
            external_download_id=message.id,
            signature_content=_decode(payload.signature),
            synced_at=self.clock.now_utc(),
        )
        document.is_duplicate = self._is_duplicate(document)
        document.is_late_submission = self._is_late(document.issue_date, message.created_at)

        if direction is Direction.OUTGOING and buyer and (buyer.tax_id or buyer.name):
            document.party = resolve_party(
                self.session, self.tenant_id, buyer, PartyRole.CLIENT, self.cache, self.result
            )
        elif direction is Direction.INCOMING and seller and seller.tax_id:
            document.party = resolve_party(
                self.session, self.tenant_id, seller, PartyRole.SUPPLIER, self.cache, self.result
            )

        if direction is Direction.OUTGOING and seller and seller.bank_account:
            resolve_bank_account(
                self.session,
                self.tenant_id,
                seller.bank_account,
                seller.bank_name,
                parsed.currency,
                self.cache,
            )

        for parsed_line in parsed.lines:
            line = DocumentLine(
                description=parsed_line.description[:500],
                quantity=parsed_line.quantity,
                unit=parsed_line.unit,
                unit_price=parsed_line.unit_price,
                vat_rate=parsed_line.vat_rate,
                vat_category=parsed_line.vat_category,
                vat_amount=parsed_line.vat_amount,
                line_total=parsed_line.line_total,
                buyer_item_id=parsed_line.buyer_item_id,
                standard_item_id=parsed_line.standard_item_id,
                cpv_code=parsed_line.cpv_code,
            )
            if parsed_line.description:
                item = resolve_catalog_item(
                    self.session, self.tenant_id, parsed_line, self.cache, self.result
                )
                line.catalog_item_id = item.id
            document.add_line(line)

        for attachment in parsed.attachments:
            document.attachments.append(
                DocumentAttachment(
                    filename=attachment.filename or "attachment",
                    mime_type=attachment.mime_type,
                    description=attachment.description,
                    content_base64=attachment.content_base64,
                )
            )

        document.record_status_change(
            DocumentStatus.SYNCED.value,
            {"action": SYNC_ACTION, "message_id": message.id, "direction": direction.value},
        )

        if direction is Direction.OUTGOING:
            detected = detect_series(parsed.number)
            if detected is not None:
                kind = (
                    DocumentKind.CREDIT_NOTE
                    if parsed.kind is DocumentKind.CREDIT_NOTE
                    else DocumentKind.INVOICE
                )
                prefix, sequence = detected
                if upsert_series(self.session, self.tenant_id, prefix, sequence, kind, self.cache):
                    self.result.new_series += 1

        self.session.add(document)
        return document

    def _is_duplicate(self, document: Document) -> bool:
        """Same number, same seller, same direction already on file."""
        if not document.number or not document.sender_tax_id:
            return False
        existing = self.session.scalars(
            select(Document.id).where(
                Document.tenant_id == self.tenant_id,
                Document.number == document.number,
                Document.sender_tax_id == document.sender_tax_id,
                Document.direction == document.direction,
            ).limit(1)
        ).first()
        return existing is not None

    def _is_late(self, issue_date: date | None, created_at: str | None) -> bool:
        uploaded = parse_created_at(created_at)
        if issue_date is None or uploaded is None:
            return False
        return (uploaded - issue_date).days > self.settings.late_submission_days

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def _load_known_ids(self) -> set[str]:
        if not self.message_ids:
            return set()
        return set(
            self.session.scalars(
                select(Document.external_message_id).where(
                    Document.tenant_id == self.tenant_id,
                    Document.external_message_id.in_(self.message_ids),
                )
            )
        )

    def _commit(self, stage: str) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            failure = PersistenceFailureError(stage, exc)
            logger.error(
                "sync_commit_failed",
                extra={"stage": stage, "error": str(failure), "cause_type": failure.cause_type},
            )
            label = "Batch" if stage == "batch" else stage.capitalize()
            self.result.add_error(f"{label} flush error: {exc}")
            self.committed.restore(self.result)
            self._reset()
        else:
            self.committed = _Counters.of(self.result)
        self.cache.clear()

    def _reset(self) -> None:
        """Throw the session away and continue on a fresh one."""
        try:
            self.session.rollback()
        finally:
            self.session.close()
        self.session = self.service._session_factory()
        self.cache.clear()
        self.tenant = self.session.get(Tenant, self.tenant_id)
        self.known_ids = self._load_known_ids()
        logger.warning("sync_session_reset")

    def _touch_last_synced(self) -> None:
        try:
            self.tenant.last_synced_at = self.clock.now_utc()
            self.session.commit()
        except SQLAlchemyError:
            logger.exception("sync_last_synced_update_failed")
            self.session.rollback()

    def _ensure_defaults(self) -> None:
        try:
            ensure_default_series(self.session, self.tenant_id)
            self.session.commit()
        except SQLAlchemyError as exc:
            logger.exception("sync_default_series_failed")
            self.result.add_error(f"Default series error: {exc}")
            self.session.rollback()

    def _persistence_failed(
        self, message: RawMessage, exc: SQLAlchemyError, inbox: InboxMessage | None = None,
    ) -> None:
        failure = PersistenceFailureError("message", exc)
        self.result.add_error(f"Error processing message {message.id}: {failure}")
        self.cache.clear()
        logger.error(
            "sync_message_persistence_failed",
            extra={"error": str(exc), "cause_type": failure.cause_type},
        )
        if inbox is not None:
            self._mark_error(inbox, str(exc))

    def _mark_error(self, inbox: InboxMessage, error: str) -> None:
        inbox.status = InboxStatus.ERROR.value
        inbox.error_message = error

    def _restore(self, counters: _Counters) -> None:
        """Undo counter increments and cached rows of a rolled-back message."""
        self.cache.clear()
        counters.restore(self.result)

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------

    def _notify_new_documents(self, count: int) -> None:
        noun = "document nou" if count == 1 else "documente noi"
        self.service.notify(
            self.tenant_id,
            "efactura.new_documents",
            "Documente noi e-Factura",
            f"{count} {noun} primite în e-Factura",
            {"tenant_id": str(self.tenant_id), "count": count},
        )

    def _report_errors(self, tenant_name: str) -> None:
        errors = list(self.result.errors)
        self.service.publish(
            self.tenant_id,
            {"type": "sync.error", "errors": errors, "tenant_id": str(self.tenant_id)},
        )
        first = errors[0] if errors else "Eroare necunoscută"
        if len(errors) == 1:
            body = f"{tenant_name}: {first}"
        else:
            body = f"{tenant_name}: {len(errors)} erori la sincronizare. Prima: {first}"
        self.service.notify(
            self.tenant_id,
            "sync.error",
            "Eroare sincronizare e-Factura",
            body,
            {
                "tenant_id": str(self.tenant_id),
                "errors": errors[: self.settings.notification_error_cap],
            },
        )


def _decode(signature: bytes | None) -> str | None:
    if signature is None:
        return None
    return signature.decode("utf-8", errors="replace")
