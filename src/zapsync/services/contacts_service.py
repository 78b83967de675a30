"""Contacts service: every entry point of the sync engine.

Rules:
- Nothing runs when the store is not configured (explicit failure result).
- The tenant auth gate runs first on every call; denial short-circuits.
- Documented failure modes come back as values (LookupResult, SyncSummary,
  ServiceResult), never as exceptions.
"""

from __future__ import annotations

import time
from typing import Callable

import psycopg2

from zapsync.domain.auth_gate import authorize
from zapsync.domain.enrichment import ContactScanner
from zapsync.domain.lookup import ContactLookup
from zapsync.domain.models import (
    ContactObservation,
    ContactRecord,
    ContactStats,
    LookupResult,
    ScanOptions,
    ServiceResult,
    SessionContext,
    SyncSummary,
)
from zapsync.domain.sync import SyncEngine
from zapsync.infra.db import Store, StoreNotConfiguredError
from zapsync.infra.repositories.contacts_repository import (
    get_user_stats,
    list_contact_records,
    set_contact_user_deleted,
)
from zapsync.infra.settings import SyncPolicy
from zapsync.observability.correlation import sync_run_scope
from zapsync.observability.logging import get_logger
from zapsync.whatsapp.client import WhatsAppClient, WhatsAppClientError

logger = get_logger(__name__)

STORE_NOT_CONFIGURED = "store not configured"
UNAUTHORIZED = "Unauthorized"
NOT_READY = "WhatsApp connection not ready"
STORE_UNAVAILABLE = "store unavailable"
SYNC_ABORTED = "contact sync failed"

_STORE_ERRORS = (psycopg2.Error, StoreNotConfiguredError)


class ContactsService:
    def __init__(
        self,
        store: Store,
        client: WhatsAppClient,
        policy: SyncPolicy | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._store = store
        self._client = client
        self._policy = policy or SyncPolicy()
        self.engine = SyncEngine(store, self._policy, sleep=sleep)
        self.scanner = ContactScanner(client, self._policy, sleep=sleep)
        self.lookup = ContactLookup(store, client, self.engine)

    # ── Gate ─────────────────────────────────────────────────────────────────

    def session(self, operation: str) -> SessionContext | None:
        """Authorize the live session's own number for `operation`."""
        if not self._store.is_configured:
            logger.error(
                "operation refused",
                extra={"extra_fields": {"operation": operation, "reason": "store_not_configured"}},
            )
            return None
        try:
            me = self._client.get_my_user_id()
        except WhatsAppClientError:
            logger.warning(
                "unauthorized access",
                extra={"extra_fields": {"operation": operation, "reason": "session_unavailable"}},
            )
            return None
        return authorize(self._store, me, operation=operation)

    # ── Entry points ─────────────────────────────────────────────────────────

    def check_number(self, identifier: str) -> LookupResult:
        """Read-through lookup of a phone number or WhatsApp identifier."""
        if not self._store.is_configured:
            return LookupResult.failure(STORE_NOT_CONFIGURED)
        ctx = self.session("check_number")
        if ctx is None:
            return LookupResult.denied()
        try:
            return self.lookup.lookup(ctx, identifier)
        except WhatsAppClientError:
            return LookupResult.failure("live lookup failed")

    def save_contact(self, observation: ContactObservation) -> bool:
        """Write a single observation (contact, overlay, message snapshot)."""
        ctx = self.session("save_contact")
        if ctx is None:
            return False
        return self.engine.sync_one(ctx, observation)

    def sync_all_contacts(self, options: ScanOptions | None = None) -> SyncSummary:
        """Scan every contact of the live session and write them in chunks.

        Always returns a summary; an unexpected error ends the run as a
        failed summary.
        """
        if not self._store.is_configured:
            return SyncSummary.failure(STORE_NOT_CONFIGURED)

        with sync_run_scope() as run_id:
            try:
                return self._sync_all(run_id, options)
            except Exception as e:
                logger.exception(
                    "contact sync aborted",
                    extra={"extra_fields": {"run_id": run_id, "error_type": type(e).__name__}},
                )
                return SyncSummary.failure(SYNC_ABORTED)

    def _sync_all(self, run_id: str, options: ScanOptions | None) -> SyncSummary:
        ctx = self.session("sync_all_contacts")
        if ctx is None:
            return SyncSummary.failure(UNAUTHORIZED)

        try:
            ready = self._client.is_ready()
        except WhatsAppClientError:
            ready = False
        if not ready:
            logger.warning("sync refused", extra={"extra_fields": {"reason": "not_ready"}})
            return SyncSummary.failure(NOT_READY)

        logger.info("contact sync started", extra={"extra_fields": {"run_id": run_id}})
        try:
            observations = self.scanner.scan(options)
        except WhatsAppClientError as e:
            logger.error(
                "contact scan failed",
                extra={"extra_fields": {"error_type": type(e).__name__}},
            )
            return SyncSummary.failure("contact scan failed")

        result = self.engine.sync_batch(ctx, observations)
        summary = SyncSummary(
            success=True,
            total=len(observations),
            saved=result.saved,
            failed=result.failed,
            skipped=result.skipped,
        )
        logger.info(
            "contact sync complete",
            extra={
                "extra_fields": {
                    "run_id": run_id,
                    "total": summary.total,
                    "saved": summary.saved,
                    "failed": summary.failed,
                }
            },
        )
        return summary

    # ── Management ───────────────────────────────────────────────────────────

    def _gate(self, operation: str) -> tuple[SessionContext | None, ServiceResult | None]:
        """Return (ctx, None) when allowed, (None, refusal) otherwise."""
        if not self._store.is_configured:
            return None, ServiceResult.failure(STORE_NOT_CONFIGURED)
        ctx = self.session(operation)
        if ctx is None:
            return None, ServiceResult.denied()
        return ctx, None

    def _store_failure(self, operation: str, e: Exception) -> ServiceResult:
        logger.warning(
            "store operation failed",
            extra={"extra_fields": {"operation": operation, "error_type": type(e).__name__}},
        )
        return ServiceResult.failure(STORE_UNAVAILABLE)

    def list_contacts(self, *, deleted: bool = False) -> ServiceResult[list[ContactRecord]]:
        """Active (or soft-deleted) contacts of the caller."""
        ctx, refusal = self._gate("list_contacts")
        if refusal is not None:
            return refusal
        try:
            with self._store.txn() as cur:
                records = list_contact_records(cur, user_id=ctx.user_id, deleted=deleted)
        except _STORE_ERRORS as e:
            return self._store_failure("list_contacts", e)
        return ServiceResult(value=records)

    def set_deleted(self, contact_id: int, *, deleted: bool) -> ServiceResult[bool]:
        """Soft delete or restore the caller's overlay.

        The value is False when the caller has no such contact.
        """
        operation = "delete_contact" if deleted else "restore_contact"
        ctx, refusal = self._gate(operation)
        if refusal is not None:
            return refusal
        try:
            with self._store.txn() as cur:
                found = set_contact_user_deleted(
                    cur, contact_id=contact_id, user_id=ctx.user_id, deleted=deleted
                )
        except _STORE_ERRORS as e:
            return self._store_failure(operation, e)
        logger.info(
            "contact soft delete toggled",
            extra={"extra_fields": {"contact_id": contact_id, "deleted": deleted, "found": found}},
        )
        return ServiceResult(value=found)

    def readiness(self) -> dict[str, bool]:
        """Configuration state of both sides; makes no network call."""
        return {"store": self._store.is_configured, "bridge": self._client.is_configured}

    def stats(self) -> ServiceResult[ContactStats]:
        ctx, refusal = self._gate("contact_stats")
        if refusal is not None:
            return refusal
        try:
            with self._store.txn() as cur:
                stats = get_user_stats(cur, user_id=ctx.user_id)
        except _STORE_ERRORS as e:
            return self._store_failure("contact_stats", e)
        return ServiceResult(value=stats)
